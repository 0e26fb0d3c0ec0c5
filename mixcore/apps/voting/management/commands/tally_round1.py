from __future__ import annotations

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from mixcore.apps.competitions.models import Competition
from mixcore.apps.voting.exceptions import VotingConflict
from mixcore.apps.voting.models import SubmissionGroup
from mixcore.apps.voting.services.disqualification import disqualify_non_voters
from mixcore.apps.voting.services.tally import tally_votes_and_determine_advancement


class Command(BaseCommand):
    help = "Cuenta la Ronda 1 de una competencia (opcionalmente descalifica antes a quienes no votaron)."

    def add_arguments(self, parser):
        parser.add_argument("slug", type=str)
        parser.add_argument("--disqualify", action="store_true", help="Descalificar no-votantes antes del conteo.")
        parser.add_argument("--override", action="store_true", help="Permitir re-conteo después del plazo.")

    def handle(self, *args, **opts):
        try:
            competition = Competition.objects.get(slug=opts["slug"])
        except Competition.DoesNotExist:
            raise CommandError(f"No existe la competencia '{opts['slug']}'.")

        try:
            if opts["disqualify"]:
                dq = disqualify_non_voters(competition.pk)
                self.stdout.write(f"Descalificadas: {dq}")
            advanced = tally_votes_and_determine_advancement(competition.pk, override=opts["override"])
        except ValidationError as exc:
            raise CommandError("; ".join(exc.messages))
        except VotingConflict as exc:
            raise CommandError(exc.message)

        groups = (
            SubmissionGroup.objects.filter(competition=competition)
            .select_related("submission")
            .order_by("group_number", "rank_in_group")
        )
        current = None
        for g in groups:
            if g.group_number != current:
                current = g.group_number
                self.stdout.write(f"\nGrupo {current}")
            mark = "⬆" if g.submission.advanced_to_round2 else " "
            self.stdout.write(
                f"  {mark} {g.rank_in_group or '-':>2}. #{g.submission_id} {g.submission.mix_title} "
                f"· {g.total_points} pts ({g.first_place_votes}/{g.second_place_votes}/{g.third_place_votes})"
            )
        self.stdout.write(self.style.SUCCESS(f"\n✅ {advanced} mezclas avanzan a la Ronda 2."))

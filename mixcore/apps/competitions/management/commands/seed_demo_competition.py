from __future__ import annotations

import random
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone
from django.utils.text import slugify

from mixcore.apps.competitions.models import Competition, CompetitionStatus, ScoringSource, Submission
from mixcore.apps.competitions.services.lifecycle import transition
from mixcore.apps.judging.models import JudgingCriteria
from mixcore.apps.judging.services.judgments import record_judgment
from mixcore.apps.judging.services.rubric import DEFAULT_MIX_RUBRIC, define_judging_criteria
from mixcore.apps.voting.models import Round1Assignment
from mixcore.apps.voting.services.ballots import process_voter_submission
from mixcore.apps.voting.services.grouping import (
    create_groups_and_assign_voters,
    get_assigned_submissions_for_voter,
)


def ensure_demo_user(username: str, email: str):
    User = get_user_model()
    user, created = User.objects.get_or_create(username=username, defaults={"email": email})
    if created or not user.has_usable_password():
        user.set_password("Pass1234!")
        user.save()
    return user


class Command(BaseCommand):
    help = "Crea una competencia DEMO en Ronda 1 abierta, con mezclas, grupos y (opcional) votos simulados."

    def add_arguments(self, parser):
        parser.add_argument("--title", type=str, default="Remix Contest Demo")
        parser.add_argument("--submitters", type=int, default=40)
        parser.add_argument("--group-size", type=int, default=20)
        parser.add_argument("--mode", choices=["peer", "judge"], default="peer")
        parser.add_argument("--seed", type=int, default=42)
        parser.add_argument("--simulate", action="store_true", help="Simular votos/juicios de Ronda 1.")
        parser.add_argument("--skip-voters", type=int, default=0, help="Cuántos votantes NO votan (para probar descalificación).")

    @transaction.atomic
    def handle(self, *args, **opts):
        title: str = opts["title"]
        slug = slugify(title)
        n: int = opts["submitters"]
        rng = random.Random(opts["seed"])
        mode = ScoringSource.JUDGE_RUBRIC if opts["mode"] == "judge" else ScoringSource.PEER_BALLOT

        if n < 4:
            raise CommandError("Se necesitan al menos 4 participantes.")
        if Competition.objects.filter(slug=slug).exists():
            raise CommandError(f"Ya existe una competencia con slug '{slug}'.")

        now = timezone.now()
        organizer = ensure_demo_user("demo_organizer", "organizer@example.com")

        # 1) Competencia (directo a ROUND1_SETUP: las inscripciones ya "cerraron")
        competition = Competition.objects.create(
            title=title,
            slug=slug,
            description="Competencia de demostración generada por seed_demo_competition.",
            song_creator="Demo Artist",
            organizer=organizer,
            status=CompetitionStatus.ROUND1_SETUP,
            start_date=now - timedelta(days=14),
            submission_deadline=now - timedelta(days=1),
            round1_voting_end_date=now + timedelta(days=7),
            round2_voting_end_date=now + timedelta(days=14),
            scoring_source=mode,
        )

        # 2) Mezclas
        for i in range(1, n + 1):
            user = ensure_demo_user(f"demo_mixer_{i:03d}", f"mixer{i:03d}@example.com")
            Submission.objects.create(
                competition=competition,
                user=user,
                mix_title=f"Mix #{i:03d}",
                mix_description="Mezcla demo",
            )

        try:
            if mode == ScoringSource.JUDGE_RUBRIC:
                define_judging_criteria(competition.pk, DEFAULT_MIX_RUBRIC)
            groups = create_groups_and_assign_voters(competition.pk, target_group_size=opts["group_size"], rng=rng)
            competition.refresh_from_db()
            transition(competition, CompetitionStatus.ROUND1_OPEN)
        except ValidationError as exc:
            raise CommandError("; ".join(exc.messages))

        self.stdout.write(self.style.SUCCESS(f"✅ '{competition.title}' con {n} mezclas en {groups} grupos ({mode})."))

        if not opts["simulate"]:
            return

        # 3) Votos simulados
        assignments = list(Round1Assignment.objects.filter(competition=competition).order_by("voter_id"))
        skip = set(a.voter_id for a in rng.sample(assignments, min(opts["skip_voters"], len(assignments))))
        criteria = list(JudgingCriteria.objects.filter(competition=competition))
        cast = 0
        for a in assignments:
            if a.voter_id in skip:
                continue
            candidates = [s.pk for s in get_assigned_submissions_for_voter(competition.pk, a.voter_id)]
            if mode == ScoringSource.PEER_BALLOT:
                first, second, third = rng.sample(candidates, 3)
                process_voter_submission(competition.pk, a.voter_id, first, second, third)
            else:
                for sid in candidates:
                    scores = {c.pk: rng.randint(c.min_score, c.max_score) for c in criteria}
                    comments = {c.pk: "Demo" for c in criteria if c.is_comment_required}
                    record_judgment(competition.pk, sid, a.voter_id, scores, comments=comments)
            cast += 1

        self.stdout.write(self.style.SUCCESS(f"🗳️  {cast} votantes simulados; {len(skip)} sin votar."))

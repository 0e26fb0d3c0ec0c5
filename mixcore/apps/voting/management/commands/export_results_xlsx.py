from __future__ import annotations

from datetime import datetime
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from openpyxl import Workbook
from openpyxl.styles import Font

from mixcore.apps.competitions.models import Competition, Submission
from mixcore.apps.voting.exceptions import VotingClosed
from mixcore.apps.voting.models import SubmissionGroup
from mixcore.apps.voting.services.results import get_competition_results


# ======================
# Columnas
# ======================

ROUND1_COLUMNS = [
    "group_number",
    "rank_in_group",
    "submission_id",
    "mix_title",
    "username",
    "total_points",
    "first_place_votes",
    "second_place_votes",
    "third_place_votes",
    "advanced_to_round2",
    "is_disqualified",
    "feedback",
]

FINALIST_COLUMNS = [
    "final_rank",
    "submission_id",
    "mix_title",
    "round1_score",
    "round2_votes",
    "final_score",
    "is_winner",
]

PICK_COLUMNS = ["rank", "submission_id", "mix_title", "comment"]


def _header(ws, columns) -> None:
    ws.append(columns)
    for cell in ws[1]:
        cell.font = Font(bold=True)


class Command(BaseCommand):
    help = "Exporta a .xlsx el ranking de Ronda 1 y, si ya existen, los resultados de Ronda 2."

    def add_arguments(self, parser):
        parser.add_argument("slug", type=str, help="Slug de la competencia")
        parser.add_argument("--output", type=str, default=None, help="Ruta del .xlsx (por defecto: ./results_<slug>_<fecha>.xlsx)")

    def handle(self, *args, **options):
        slug = options["slug"]
        try:
            competition = Competition.objects.get(slug=slug)
        except Competition.DoesNotExist:
            raise CommandError(f"Competencia '{slug}' no existe.")

        groups = list(
            SubmissionGroup.objects.filter(competition=competition)
            .select_related("submission__user")
            .order_by("group_number", "rank_in_group", "submission_id")
        )
        if not groups:
            raise CommandError("La competencia no tiene grupos de Ronda 1; no hay nada que exportar.")

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output = Path(options["output"]) if options["output"] else Path.cwd() / f"results_{slug}_{timestamp}.xlsx"

        wb = Workbook()

        # Hoja 1: ranking por grupo
        ws = wb.active
        ws.title = "Ronda 1"
        _header(ws, ROUND1_COLUMNS)
        for g in groups:
            s: Submission = g.submission
            ws.append([
                g.group_number,
                g.rank_in_group,
                s.pk,
                s.mix_title,
                s.user.get_username(),
                g.total_points,
                g.first_place_votes,
                g.second_place_votes,
                g.third_place_votes,
                "SI" if s.advanced_to_round2 else "",
                "SI" if s.is_disqualified else "",
                s.feedback,
            ])

        # Hojas 2 y 3: solo si la Ronda 2 ya se contó
        try:
            results = get_competition_results(competition.pk)
        except VotingClosed:
            results = None

        if results is not None:
            ws = wb.create_sheet("Finalistas")
            _header(ws, FINALIST_COLUMNS)
            for f in results.finalists:
                ws.append([
                    f.final_rank,
                    f.submission_id,
                    f.mix_title,
                    f.round1_score,
                    f.round2_votes,
                    f.final_score,
                    "SI" if f.is_winner else "",
                ])

            ws = wb.create_sheet("Picks")
            _header(ws, PICK_COLUMNS)
            for p in results.song_creator_picks:
                ws.append([p.rank, p.submission_id, p.mix_title, p.comment])

        wb.save(str(output))

        self.stdout.write(self.style.SUCCESS(f"Filas Ronda 1: {len(groups)}"))
        if results is not None:
            self.stdout.write(self.style.SUCCESS(f"Finalistas: {len(results.finalists)}  ·  Picks: {len(results.song_creator_picks)}"))
        else:
            self.stdout.write(self.style.WARNING("La Ronda 2 aún no se cuenta: solo se exportó la Ronda 1."))
        self.stdout.write(self.style.SUCCESS(f"📄 Archivo: {output}"))

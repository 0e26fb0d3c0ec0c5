from __future__ import annotations

from django.core.management.base import BaseCommand
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from mixcore.apps.competitions.services.lifecycle import advance_due_competitions


class Command(BaseCommand):
    help = "Avanza una fase a cada competencia con plazos vencidos (pensado para cron)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--now", type=str, default="",
            help="Fecha/hora ISO para simular el reloj (por defecto: ahora).",
        )

    def handle(self, *args, **opts):
        now = timezone.now()
        if opts["now"]:
            parsed = parse_datetime(opts["now"])
            if parsed is None:
                self.stderr.write(self.style.ERROR(f"--now inválido: {opts['now']}"))
                return
            now = parsed if timezone.is_aware(parsed) else timezone.make_aware(parsed)

        report = advance_due_competitions(now=now)
        if not report:
            self.stdout.write("Nada que avanzar.")
            return

        for row in report:
            if row["error"]:
                self.stdout.write(self.style.WARNING(
                    f"⚠️  #{row['competition_id']} ({row['from']}): {row['error']}"
                ))
            else:
                self.stdout.write(self.style.SUCCESS(
                    f"✅ #{row['competition_id']}: {row['from']} → {row['to']}"
                ))

from __future__ import annotations

from django.contrib import admin, messages
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.utils.translation import gettext_lazy as _

from mixcore.apps.voting.exceptions import VotingConflict
from mixcore.apps.voting.services.disqualification import disqualify_non_voters
from mixcore.apps.voting.services.grouping import create_groups_and_assign_voters
from mixcore.apps.voting.services.round2 import setup_round2_voting
from mixcore.apps.voting.services.tally import tally_round2_votes, tally_votes_and_determine_advancement
from mixcore.apps.voting.services.winner import set_competition_winner
from .models import Competition, Submission
from .services.lifecycle import advance_due_competitions


def _run_per_competition(modeladmin, request, queryset, label, fn):
    """Ejecuta `fn(competition)` para cada fila y reporta éxito/errores sin cortar el lote."""
    ok = 0
    for competition in queryset:
        try:
            result = fn(competition)
        except (ValidationError, VotingConflict, ObjectDoesNotExist) as exc:
            text = "; ".join(exc.messages) if isinstance(exc, ValidationError) else str(exc)
            modeladmin.message_user(request, f"{competition}: {text}", level=messages.ERROR)
            continue
        ok += 1
        modeladmin.message_user(request, f"{competition}: {label} → {result}", level=messages.SUCCESS)
    return ok


# -----------------------------
# Submission inline
# -----------------------------
class SubmissionInline(admin.TabularInline):
    model = Submission
    extra = 0
    fields = ["user", "mix_title", "is_disqualified", "advanced_to_round2", "round1_score", "final_rank", "is_winner"]
    readonly_fields = ["advanced_to_round2", "round1_score", "final_rank", "is_winner"]
    show_change_link = True


# -----------------------------
# Competition
# -----------------------------
@admin.register(Competition)
class CompetitionAdmin(admin.ModelAdmin):
    list_display = ("title", "status", "scoring_source", "round1_voting_end_date", "round2_voting_end_date")
    list_filter = ("status", "scoring_source")
    search_fields = ("title", "slug", "song_creator")
    prepopulated_fields = {"slug": ("title",)}
    readonly_fields = ("completed_date", "lock_owner", "locked_at", "created_at")
    inlines = [SubmissionInline]
    actions = [
        "action_create_groups",
        "action_disqualify_non_voters",
        "action_tally_round1",
        "action_tally_round1_override",
        "action_setup_round2",
        "action_tally_round2",
        "action_advance_due",
    ]

    @admin.action(description=_("Ronda 1: crear grupos y asignar votantes"))
    def action_create_groups(self, request, queryset):
        _run_per_competition(self, request, queryset, "grupos", lambda c: create_groups_and_assign_voters(c.pk))

    @admin.action(description=_("Ronda 1: descalificar a quienes no votaron"))
    def action_disqualify_non_voters(self, request, queryset):
        _run_per_competition(self, request, queryset, "descalificadas", lambda c: disqualify_non_voters(c.pk))

    @admin.action(description=_("Ronda 1: contar votos y definir avance"))
    def action_tally_round1(self, request, queryset):
        _run_per_competition(
            self, request, queryset, "avanzan", lambda c: tally_votes_and_determine_advancement(c.pk)
        )

    @admin.action(description=_("Ronda 1: re-contar después del plazo (override)"))
    def action_tally_round1_override(self, request, queryset):
        _run_per_competition(
            self, request, queryset, "avanzan",
            lambda c: tally_votes_and_determine_advancement(c.pk, override=True),
        )

    @admin.action(description=_("Ronda 2: preparar finalistas y abrir votación"))
    def action_setup_round2(self, request, queryset):
        _run_per_competition(self, request, queryset, "finalistas", lambda c: setup_round2_voting(c.pk))

    @admin.action(description=_("Ronda 2: contar votos y resolver ganador"))
    def action_tally_round2(self, request, queryset):
        def _tally(c):
            res = tally_round2_votes(c.pk)
            if res.is_tie:
                return f"EMPATE entre {list(res.tied_submission_ids)}; elegir ganador manualmente"
            return f"ganador #{res.winner_id} ({res.resolved_by})"
        _run_per_competition(self, request, queryset, "resultado", _tally)

    @admin.action(description=_("Avanzar competencias vencidas (todas)"))
    def action_advance_due(self, request, queryset):
        report = advance_due_competitions()
        moved = [r for r in report if r["to"]]
        failed = [r for r in report if r["error"]]
        self.message_user(request, f"{len(moved)} competencias avanzaron.", level=messages.SUCCESS)
        for r in failed:
            self.message_user(request, f"#{r['competition_id']}: {r['error']}", level=messages.WARNING)


# -----------------------------
# Submission
# -----------------------------
@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    list_display = (
        "mix_title", "competition", "user", "is_disqualified", "advanced_to_round2",
        "round1_score", "round2_score", "final_rank", "is_winner",
    )
    list_filter = ("competition", "is_disqualified", "advanced_to_round2", "is_winner")
    search_fields = ("mix_title", "user__username")
    readonly_fields = (
        "advanced_to_round2", "is_eligible_for_round2_voting", "is_winner",
        "round1_score", "round2_score", "final_score", "final_rank",
    )
    actions = ["action_set_winner"]

    @admin.action(description=_("Elegir como ganador (resolución manual de empate)"))
    def action_set_winner(self, request, queryset):
        if queryset.count() != 1:
            self.message_user(request, "Selecciona exactamente una mezcla.", level=messages.ERROR)
            return
        submission = queryset.first()
        try:
            set_competition_winner(submission.competition_id, submission.pk)
        except (ValidationError, VotingConflict, ObjectDoesNotExist) as exc:
            text = "; ".join(exc.messages) if isinstance(exc, ValidationError) else str(exc)
            self.message_user(request, text, level=messages.ERROR)
            return
        self.message_user(request, f"{submission} es la ganadora.", level=messages.SUCCESS)

from __future__ import annotations

from django.contrib import admin, messages
from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

from .models import CriteriaScore, JudgingCriteria, SubmissionJudgment
from .services.rubric import validate_criteria_weights


@admin.register(JudgingCriteria)
class JudgingCriteriaAdmin(admin.ModelAdmin):
    list_display = ("competition", "display_order", "name", "scoring_type", "min_score", "max_score", "weight", "is_comment_required")
    list_filter = ("competition", "scoring_type")
    ordering = ("competition", "display_order")
    actions = ["action_validate_weights"]

    @admin.action(description=_("Validar que los pesos sumen 1.0"))
    def action_validate_weights(self, request, queryset):
        seen = set()
        for c in queryset.select_related("competition"):
            if c.competition_id in seen:
                continue
            seen.add(c.competition_id)
            try:
                total = validate_criteria_weights(c.competition)
            except ValidationError as exc:
                self.message_user(request, f"{c.competition}: {'; '.join(exc.messages)}", level=messages.ERROR)
            else:
                self.message_user(request, f"{c.competition}: pesos OK ({total}).", level=messages.SUCCESS)


class CriteriaScoreInline(admin.TabularInline):
    model = CriteriaScore
    extra = 0
    fields = ["criteria", "score", "comments"]
    readonly_fields = ["criteria", "score", "comments"]
    can_delete = False


@admin.register(SubmissionJudgment)
class SubmissionJudgmentAdmin(admin.ModelAdmin):
    list_display = ("competition", "judge", "submission", "voting_round", "overall_score", "is_completed", "last_updated")
    list_filter = ("competition", "voting_round", "is_completed")
    readonly_fields = ("overall_score", "is_completed", "judgment_time", "last_updated")
    inlines = [CriteriaScoreInline]

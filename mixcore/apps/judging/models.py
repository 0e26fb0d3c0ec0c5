# mixcore/apps/judging/models.py
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone


class ScoringType(models.TextChoices):
    SLIDER = "SLIDER", "Slider"
    STARS = "STARS", "Estrellas"
    RADIO_BUTTONS = "RADIO_BUTTONS", "Opciones"


class JudgingCriteria(models.Model):
    """
    Dimensión ponderada de la rúbrica. Los pesos de una competencia deben
    sumar 1.0; se congela en cuanto existe el primer juicio.
    """
    competition = models.ForeignKey(
        "competitions.Competition", on_delete=models.CASCADE, related_name="judging_criteria"
    )
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    scoring_type = models.CharField(max_length=16, choices=ScoringType.choices, default=ScoringType.SLIDER)
    min_score = models.IntegerField(default=1)
    max_score = models.IntegerField(default=10)
    weight = models.DecimalField(
        max_digits=5, decimal_places=4,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("1"))],
    )
    display_order = models.PositiveIntegerField(default=0)
    is_comment_required = models.BooleanField(default=False)
    scoring_options = models.JSONField(
        default=list, blank=True,
        help_text="Etiquetas para RADIO_BUTTONS, una por valor entre min y max.",
    )

    class Meta:
        verbose_name_plural = "judging criteria"
        ordering = ("competition", "display_order", "id")
        constraints = [
            models.UniqueConstraint(fields=("competition", "name"), name="uniq_criteria_name"),
            models.CheckConstraint(condition=models.Q(max_score__gt=models.F("min_score")), name="criteria_max_gt_min"),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.weight})"

    def clean(self):
        if self.min_score is not None and self.max_score is not None and self.max_score <= self.min_score:
            raise ValidationError({"max_score": "max_score debe ser mayor que min_score."})
        if self.scoring_type == ScoringType.RADIO_BUTTONS:
            expected = (self.max_score or 0) - (self.min_score or 0) + 1
            if not isinstance(self.scoring_options, list) or len(self.scoring_options) != expected:
                raise ValidationError(
                    {"scoring_options": f"RADIO_BUTTONS requiere {expected} etiquetas (una por valor)."}
                )

    def label_for(self, score: int) -> str:
        if self.scoring_type == ScoringType.RADIO_BUTTONS and self.scoring_options:
            idx = int(score) - self.min_score
            if 0 <= idx < len(self.scoring_options):
                return str(self.scoring_options[idx])
        return str(score)


class SubmissionJudgment(models.Model):
    competition = models.ForeignKey(
        "competitions.Competition", on_delete=models.CASCADE, related_name="judgments"
    )
    submission = models.ForeignKey(
        "competitions.Submission", on_delete=models.CASCADE, related_name="judgments"
    )
    judge = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="submission_judgments"
    )
    voting_round = models.PositiveSmallIntegerField(default=1)
    overall_score = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)
    overall_comments = models.TextField(blank=True, default="")
    is_completed = models.BooleanField(default=False)
    judgment_time = models.DateTimeField(default=timezone.now)
    last_updated = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("competition", "judge_id", "submission_id")
        constraints = [
            models.UniqueConstraint(
                fields=("submission", "judge", "voting_round"), name="uniq_judgment_submission_judge_round"
            ),
        ]

    def __str__(self) -> str:
        state = "completo" if self.is_completed else "borrador"
        return f"Juez {self.judge_id} · #{self.submission_id} · {self.overall_score or '-'} ({state})"


class CriteriaScore(models.Model):
    judgment = models.ForeignKey(SubmissionJudgment, on_delete=models.CASCADE, related_name="criteria_scores")
    criteria = models.ForeignKey(JudgingCriteria, on_delete=models.CASCADE, related_name="scores")
    score = models.IntegerField()
    comments = models.TextField(blank=True, default="")
    score_time = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ("judgment", "criteria__display_order")
        constraints = [
            models.UniqueConstraint(fields=("judgment", "criteria"), name="uniq_criteria_score"),
        ]

    def __str__(self) -> str:
        return f"{self.criteria.name}: {self.score}"

    def clean(self):
        c = self.criteria
        if self.score is None or not (c.min_score <= self.score <= c.max_score):
            raise ValidationError(
                {"score": f"'{c.name}' debe estar entre {c.min_score} y {c.max_score} (recibido {self.score})."}
            )
        if c.is_comment_required and not (self.comments or "").strip():
            raise ValidationError({"comments": f"'{c.name}' requiere comentario."})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

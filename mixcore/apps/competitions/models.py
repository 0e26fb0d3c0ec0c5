# mixcore/apps/competitions/models.py
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.text import slugify


class CompetitionStatus(models.TextChoices):
    UPCOMING = "UPCOMING", "Próxima"
    OPEN_FOR_SUBMISSIONS = "OPEN_FOR_SUBMISSIONS", "Recibiendo mezclas"
    ROUND1_SETUP = "ROUND1_SETUP", "Ronda 1 · preparación"
    ROUND1_OPEN = "ROUND1_OPEN", "Ronda 1 · votación abierta"
    ROUND1_TALLYING = "ROUND1_TALLYING", "Ronda 1 · conteo"
    ROUND2_SETUP = "ROUND2_SETUP", "Ronda 2 · preparación"
    ROUND2_OPEN = "ROUND2_OPEN", "Ronda 2 · votación abierta"
    ROUND2_TALLYING = "ROUND2_TALLYING", "Ronda 2 · conteo"
    REQUIRES_MANUAL_WINNER = "REQUIRES_MANUAL_WINNER", "Empate · requiere selección manual"
    COMPLETED = "COMPLETED", "Finalizada"
    ARCHIVED = "ARCHIVED", "Archivada"
    CANCELLED = "CANCELLED", "Cancelada"


class ScoringSource(models.TextChoices):
    PEER_BALLOT = "PEER_BALLOT", "Votos entre participantes (3/2/1)"
    JUDGE_RUBRIC = "JUDGE_RUBRIC", "Rúbrica de jueces"


class Round2VoterPolicy(models.TextChoices):
    ROUND1_VOTERS = "ROUND1_VOTERS", "Solo quienes votaron en Ronda 1"
    ALL_SUBMITTERS = "ALL_SUBMITTERS", "Todos los participantes no descalificados"


class Competition(models.Model):
    title = models.CharField(max_length=200)
    slug = models.SlugField(unique=True, max_length=220)
    description = models.TextField(blank=True)
    song_creator = models.CharField(
        max_length=160, blank=True,
        help_text="Autor de la canción original; puede registrar picks en Ronda 2.",
    )
    organizer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name="organized_competitions",
    )

    status = models.CharField(
        max_length=32, choices=CompetitionStatus.choices, default=CompetitionStatus.UPCOMING
    )

    # Calendario
    start_date = models.DateTimeField(null=True, blank=True)
    submission_deadline = models.DateTimeField(null=True, blank=True)
    round1_voting_end_date = models.DateTimeField(null=True, blank=True)
    round2_voting_end_date = models.DateTimeField(null=True, blank=True)
    completed_date = models.DateTimeField(null=True, blank=True)

    # Configuración de votación
    round1_advancement_count = models.PositiveIntegerField(
        default=2,
        validators=[MinValueValidator(1)],
        help_text="Cuántas mezclas avanzan por grupo a la Ronda 2.",
    )
    scoring_source = models.CharField(
        max_length=16, choices=ScoringSource.choices, default=ScoringSource.PEER_BALLOT
    )
    round2_voter_policy = models.CharField(
        max_length=16, choices=Round2VoterPolicy.choices, default=Round2VoterPolicy.ROUND1_VOTERS
    )
    song_creator_tiebreak = models.BooleanField(
        default=False,
        help_text="Si está activo, el pick #1 del autor desempata la Ronda 2.",
    )
    judging_score_max = models.DecimalField(
        max_digits=6, decimal_places=2, default=Decimal("10.00"),
        help_text="Escala del puntaje general de la rúbrica (0..max).",
    )

    # Candado por competencia para tallies/agrupación (ver voting.services.locks)
    lock_owner = models.CharField(max_length=64, blank=True, default="", editable=False)
    locked_at = models.DateTimeField(null=True, blank=True, editable=False)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at", "title")
        constraints = [
            models.CheckConstraint(
                condition=models.Q(round1_advancement_count__gte=1),
                name="competition_advancement_count_gte_1",
            ),
        ]

    def __str__(self) -> str:
        return self.title

    def clean(self):
        if self.judging_score_max is not None and self.judging_score_max <= 0:
            raise ValidationError({"judging_score_max": "Debe ser mayor que 0."})
        ordered = [
            ("submission_deadline", self.submission_deadline),
            ("round1_voting_end_date", self.round1_voting_end_date),
            ("round2_voting_end_date", self.round2_voting_end_date),
        ]
        previous = None
        for name, value in ordered:
            if value is None:
                continue
            if previous and value < previous[1]:
                raise ValidationError({name: f"{name} no puede ser anterior a {previous[0]}."})
            previous = (name, value)

    def save(self, *args, **kwargs):
        if not self.slug:
            base = slugify(self.title) or "competition"
            slug = base
            i = 2
            while Competition.objects.filter(slug=slug).exclude(pk=self.pk).exists():
                slug = f"{base}-{i}"
                i += 1
            self.slug = slug
        super().save(*args, **kwargs)

    # --- helpers de calendario ---
    def round1_deadline_passed(self, now=None) -> bool:
        now = now or timezone.now()
        return bool(self.round1_voting_end_date and now > self.round1_voting_end_date)

    def round2_deadline_passed(self, now=None) -> bool:
        now = now or timezone.now()
        return bool(self.round2_voting_end_date and now > self.round2_voting_end_date)

    @property
    def uses_judge_rubric(self) -> bool:
        return self.scoring_source == ScoringSource.JUDGE_RUBRIC


class Submission(models.Model):
    """
    Mezcla inscrita por un usuario. El motor de votación solo escribe las
    banderas y puntajes; nunca borra submissions.
    """
    competition = models.ForeignKey(Competition, on_delete=models.CASCADE, related_name="submissions")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="mix_submissions"
    )
    mix_title = models.CharField(max_length=200)
    mix_description = models.TextField(blank=True)
    submitted_at = models.DateTimeField(default=timezone.now)

    # Banderas del motor
    is_disqualified = models.BooleanField(default=False)
    advanced_to_round2 = models.BooleanField(default=False)
    is_eligible_for_round1_voting = models.BooleanField(default=True)
    is_eligible_for_round2_voting = models.BooleanField(default=False)
    is_winner = models.BooleanField(default=False)
    feedback = models.TextField(blank=True, default="")

    # Puntajes
    round1_score = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    round2_score = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    final_score = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    final_rank = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        ordering = ("competition", "id")
        constraints = [
            # Una mezcla por usuario y competencia
            models.UniqueConstraint(fields=("competition", "user"), name="uniq_submission_competition_user"),
        ]

    def __str__(self) -> str:
        return f"{self.competition.title} · {self.mix_title} (#{self.pk})"

    @property
    def is_finalist(self) -> bool:
        return self.advanced_to_round2 and not self.is_disqualified

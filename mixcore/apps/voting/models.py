# mixcore/apps/voting/models.py
from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

# Escala Borda fija de la Ronda 1: 1º=3, 2º=2, 3º=1
ROUND1_POINTS = {1: 3, 2: 2, 3: 1}


class Round1Assignment(models.Model):
    """
    Un votante (= dueño de una submission) y el grupo que le toca revisar.
    Se crea en bloque al agrupar; solo el colector de boletas lo modifica.
    """
    competition = models.ForeignKey(
        "competitions.Competition", on_delete=models.CASCADE, related_name="round1_assignments"
    )
    voter = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="round1_assignments"
    )
    voter_group_number = models.PositiveIntegerField(help_text="Grupo de la mezcla propia del votante.")
    assigned_group_number = models.PositiveIntegerField(help_text="Grupo que el votante debe revisar.")
    has_voted = models.BooleanField(default=False)
    voting_completed_date = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ("competition", "voter_id")
        constraints = [
            models.UniqueConstraint(fields=("competition", "voter"), name="uniq_round1_assignment_voter"),
        ]

    def __str__(self) -> str:
        return f"{self.competition} · votante {self.voter_id} → grupo {self.assigned_group_number}"


class SubmissionGroup(models.Model):
    """Pertenencia de una submission a un grupo de Ronda 1, con los agregados del último tally."""
    competition = models.ForeignKey(
        "competitions.Competition", on_delete=models.CASCADE, related_name="submission_groups"
    )
    submission = models.ForeignKey(
        "competitions.Submission", on_delete=models.CASCADE, related_name="group_memberships"
    )
    group_number = models.PositiveIntegerField()

    # Agregados (nulos hasta el primer tally; se sobrescriben en cada corrida)
    total_points = models.PositiveIntegerField(null=True, blank=True)
    first_place_votes = models.PositiveIntegerField(null=True, blank=True)
    second_place_votes = models.PositiveIntegerField(null=True, blank=True)
    third_place_votes = models.PositiveIntegerField(null=True, blank=True)
    rank_in_group = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        ordering = ("competition", "group_number", "rank_in_group", "submission_id")
        constraints = [
            models.UniqueConstraint(fields=("competition", "submission"), name="uniq_submission_group"),
        ]

    def __str__(self) -> str:
        return f"{self.competition} · G{self.group_number} · #{self.submission_id} · rank {self.rank_in_group or '-'}"


class SubmissionVote(models.Model):
    """
    Voto individual. Ronda 1: rank 1..3 con puntos 3/2/1. Ronda 2: rank nulo, 1 punto.
    Inmutable una vez creado.
    """
    competition = models.ForeignKey(
        "competitions.Competition", on_delete=models.CASCADE, related_name="votes"
    )
    submission = models.ForeignKey(
        "competitions.Submission", on_delete=models.CASCADE, related_name="votes"
    )
    voter = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="submission_votes"
    )
    rank = models.PositiveSmallIntegerField(null=True, blank=True)
    points = models.PositiveSmallIntegerField()
    voting_round = models.PositiveSmallIntegerField(default=1)
    vote_time = models.DateTimeField(default=timezone.now)
    comment = models.TextField(blank=True, default="")

    class Meta:
        ordering = ("competition", "voting_round", "voter_id", "rank")
        constraints = [
            models.UniqueConstraint(
                fields=("submission", "voter", "voting_round"), name="uniq_vote_submission_voter_round"
            ),
            # Un solo voto por casilla (1º, 2º, 3º) por votante y ronda
            models.UniqueConstraint(
                fields=("competition", "voter", "voting_round", "rank"),
                condition=models.Q(rank__isnull=False),
                name="uniq_vote_rank_slot",
            ),
            # Ronda 2: un solo voto por votante
            models.UniqueConstraint(
                fields=("competition", "voter"),
                condition=models.Q(voting_round=2),
                name="uniq_round2_vote_per_voter",
            ),
            models.CheckConstraint(
                condition=models.Q(voting_round__in=(1, 2)),
                name="vote_round_1_or_2",
            ),
        ]

    def __str__(self) -> str:
        return f"R{self.voting_round} · votante {self.voter_id} → #{self.submission_id} ({self.points} pts)"

    def clean(self):
        if self.submission_id and self.voter_id and self.submission.user_id == self.voter_id:
            raise ValidationError("No se puede votar por la mezcla propia.")
        if self.voting_round == 1 and ROUND1_POINTS.get(self.rank) != self.points:
            raise ValidationError("Los puntos de Ronda 1 deben corresponder al lugar (3/2/1).")


class SongCreatorPick(models.Model):
    """Ranking editorial del autor de la canción. No suma votos: solo desempate/visualización."""
    competition = models.ForeignKey(
        "competitions.Competition", on_delete=models.CASCADE, related_name="song_creator_picks"
    )
    submission = models.ForeignKey(
        "competitions.Submission", on_delete=models.CASCADE, related_name="song_creator_picks"
    )
    rank = models.PositiveSmallIntegerField()
    comment = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("competition", "rank")
        constraints = [
            models.UniqueConstraint(fields=("competition", "rank"), name="uniq_song_creator_pick_rank"),
            models.UniqueConstraint(fields=("competition", "submission"), name="uniq_song_creator_pick_submission"),
        ]

    def __str__(self) -> str:
        return f"{self.competition} · pick #{self.rank} → #{self.submission_id}"

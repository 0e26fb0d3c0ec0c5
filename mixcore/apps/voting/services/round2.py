# mixcore/apps/voting/services/round2.py
from __future__ import annotations

import logging
from typing import List, Mapping, Optional, Sequence

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from mixcore.apps.competitions.models import (
    Competition,
    CompetitionStatus as S,
    Round2VoterPolicy,
    Submission,
)
from mixcore.apps.competitions.services.lifecycle import transition
from ..exceptions import AlreadyVoted, VotingClosed, VotingConflict
from ..models import Round1Assignment, SongCreatorPick, SubmissionVote
from .locks import competition_lock

logger = logging.getLogger(__name__)

MAX_SONG_CREATOR_PICKS = 3
PICK_STATUSES = (S.ROUND2_OPEN, S.ROUND2_TALLYING, S.REQUIRES_MANUAL_WINNER)


# ------------------------------
# Setup
# ------------------------------
def setup_round2_voting(competition_id: int) -> int:
    """
    Arma el pool de finalistas (avanzadas y no descalificadas), marca
    is_eligible_for_round2_voting y abre la votación. Devuelve cuántas finalistas.
    """
    competition = Competition.objects.get(pk=competition_id)
    if competition.status not in (S.ROUND1_TALLYING, S.ROUND2_SETUP):
        raise VotingClosed(f"La Ronda 2 se prepara desde ROUND1_TALLYING (estado: {competition.status}).")

    with competition_lock(competition.pk, "setup_round2"):
        competition.refresh_from_db()
        with transaction.atomic():
            if competition.status == S.ROUND1_TALLYING:
                transition(competition, S.ROUND2_SETUP)
            Submission.objects.filter(competition=competition).update(is_eligible_for_round2_voting=False)
            count = Submission.objects.filter(
                competition=competition, advanced_to_round2=True, is_disqualified=False
            ).update(is_eligible_for_round2_voting=True)
            transition(competition, S.ROUND2_OPEN)

    logger.info("Competencia #%s: Ronda 2 abierta con %s finalistas", competition.pk, count)
    return count


def get_round2_submissions(competition_id: int) -> List[Submission]:
    return list(
        Submission.objects.filter(
            competition_id=competition_id, is_eligible_for_round2_voting=True, is_disqualified=False
        ).order_by("id")
    )


# ------------------------------
# Elegibilidad
# ------------------------------
def _check_round2_open(competition: Competition, now) -> None:
    if competition.status != S.ROUND2_OPEN:
        raise VotingClosed(f"La votación de Ronda 2 no está abierta (estado: {competition.status}).")
    if competition.round2_deadline_passed(now):
        raise VotingClosed("El plazo de votación de Ronda 2 ya venció.")


def round2_ineligibility_reason(competition: Competition, user_id: int) -> Optional[str]:
    """None si el usuario cumple la política de votantes de Ronda 2; si no, el motivo."""
    submission = Submission.objects.filter(competition=competition, user_id=user_id).first()
    if submission is None:
        return "Solo pueden votar quienes participaron con una mezcla."
    if submission.is_disqualified:
        return "Tu mezcla fue descalificada; no puedes votar en la Ronda 2."
    if competition.round2_voter_policy == Round2VoterPolicy.ROUND1_VOTERS:
        voted = Round1Assignment.objects.filter(competition=competition, voter_id=user_id, has_voted=True).exists()
        if not voted:
            return "Solo pueden votar en la Ronda 2 quienes completaron la Ronda 1."
    return None


def is_user_eligible_for_round2_voting(competition_id: int, user_id: int, now=None) -> bool:
    now = now or timezone.now()
    competition = Competition.objects.get(pk=competition_id)
    try:
        _check_round2_open(competition, now)
    except VotingClosed:
        return False
    return round2_ineligibility_reason(competition, user_id) is None


def _validated_target(competition: Competition, voter_id: int, submission_id: int, now) -> Submission:
    _check_round2_open(competition, now)
    reason = round2_ineligibility_reason(competition, voter_id)
    if reason:
        raise ValidationError(reason)
    submission = Submission.objects.get(pk=submission_id, competition=competition)
    if submission.user_id == voter_id:
        raise ValidationError("No se puede votar por la mezcla propia.")
    if not submission.is_eligible_for_round2_voting or submission.is_disqualified:
        raise ValidationError(f"La mezcla #{submission.pk} no es finalista.")
    return submission


# ------------------------------
# Votos de Ronda 2
# ------------------------------
def record_round2_vote(
    competition_id: int,
    voter_id: int,
    submission_id: int,
    comment: str = "",
    now=None,
) -> SubmissionVote:
    """Voto único por pluralidad. Un segundo voto se rechaza (usar update_round2_vote)."""
    now = now or timezone.now()
    competition = Competition.objects.get(pk=competition_id)
    submission = _validated_target(competition, voter_id, submission_id, now)

    if SubmissionVote.objects.filter(competition=competition, voter_id=voter_id, voting_round=2).exists():
        raise AlreadyVoted("Ya votaste en la Ronda 2. Para cambiar tu voto usa la opción de actualizar.")

    try:
        with transaction.atomic():
            vote = SubmissionVote.objects.create(
                competition=competition,
                submission=submission,
                voter_id=voter_id,
                rank=None,
                points=1,
                voting_round=2,
                vote_time=now,
                comment=comment or "",
            )
    except IntegrityError as exc:
        # Carrera con otra petición del mismo votante
        raise AlreadyVoted("Ya votaste en la Ronda 2.") from exc

    logger.info("Competencia #%s: voto R2 de %s → #%s", competition.pk, voter_id, submission.pk)
    return vote


def update_round2_vote(
    competition_id: int,
    voter_id: int,
    submission_id: int,
    comment: str = "",
    now=None,
) -> SubmissionVote:
    """Camino explícito para cambiar el voto de Ronda 2 mientras la votación sigue abierta."""
    now = now or timezone.now()
    competition = Competition.objects.get(pk=competition_id)
    submission = _validated_target(competition, voter_id, submission_id, now)

    with transaction.atomic():
        previous = SubmissionVote.objects.select_for_update().get(
            competition=competition, voter_id=voter_id, voting_round=2
        )
        old_submission_id = previous.submission_id
        previous.delete()
        vote = SubmissionVote.objects.create(
            competition=competition,
            submission=submission,
            voter_id=voter_id,
            rank=None,
            points=1,
            voting_round=2,
            vote_time=now,
            comment=comment or "",
        )

    logger.info(
        "Competencia #%s: voto R2 de %s cambiado #%s → #%s",
        competition.pk, voter_id, old_submission_id, submission.pk,
    )
    return vote


# ------------------------------
# Picks del autor de la canción
# ------------------------------
def record_song_creator_picks(
    competition_id: int,
    ordered_submission_ids: Sequence[int],
    comments: Optional[Mapping[int, str]] = None,
    replace: bool = False,
) -> List[SongCreatorPick]:
    """
    Guarda el ranking editorial del autor (1..N, máx. 3) entre las finalistas.
    No suma votos; solo desempata (si está configurado) y se muestra en resultados.
    """
    competition = Competition.objects.get(pk=competition_id)
    if competition.status not in PICK_STATUSES:
        raise VotingClosed(f"Los picks se registran durante la Ronda 2 (estado: {competition.status}).")

    ids = list(ordered_submission_ids)
    if not ids:
        raise ValidationError("Debes elegir al menos una mezcla.")
    if len(ids) > MAX_SONG_CREATOR_PICKS:
        raise ValidationError(f"Máximo {MAX_SONG_CREATOR_PICKS} picks.")
    if len(set(ids)) != len(ids):
        raise ValidationError("Los picks deben ser mezclas distintas.")

    finalists = set(
        Submission.objects.filter(
            competition=competition, pk__in=ids, is_eligible_for_round2_voting=True, is_disqualified=False
        ).values_list("pk", flat=True)
    )
    missing = [sid for sid in ids if sid not in finalists]
    if missing:
        raise ValidationError(f"Solo se pueden elegir finalistas; no lo son: {missing}.")

    comments = comments or {}
    with transaction.atomic():
        existing = SongCreatorPick.objects.filter(competition=competition)
        if existing.exists():
            if not replace:
                raise VotingConflict("Ya existen picks del autor; usa replace=True para reemplazarlos.")
            existing.delete()
        picks = SongCreatorPick.objects.bulk_create(
            [
                SongCreatorPick(competition=competition, submission_id=sid, rank=rank, comment=comments.get(sid, ""))
                for rank, sid in enumerate(ids, start=1)
            ]
        )

    logger.info("Competencia #%s: picks del autor %s", competition.pk, ids)
    return picks

# mixcore/apps/voting/services/ballots.py
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from mixcore.apps.competitions.models import Competition, CompetitionStatus
from ..exceptions import AlreadyVoted, VotingClosed
from ..models import ROUND1_POINTS, Round1Assignment, SubmissionVote
from .grouping import get_assigned_submissions_for_voter

logger = logging.getLogger(__name__)


def _check_round1_open(competition: Competition, now) -> None:
    if competition.status != CompetitionStatus.ROUND1_OPEN:
        raise VotingClosed(f"La votación de Ronda 1 no está abierta (estado: {competition.status}).")
    if competition.round1_deadline_passed(now):
        raise VotingClosed("El plazo de votación de Ronda 1 ya venció.")


def process_voter_submission(
    competition_id: int,
    voter_id: int,
    first: int,
    second: int,
    third: int,
    comments: Optional[Dict[int, str]] = None,
    now=None,
) -> List[SubmissionVote]:
    """
    Registra la boleta 1º/2º/3º de un votante de Ronda 1.
    - Valida todo antes de escribir (no hay boletas parciales).
    - Los 3 votos y el has_voted=True se confirman en una sola transacción;
      el flip es un UPDATE condicional: si otra petición ganó, se revierte todo.
    """
    now = now or timezone.now()
    competition = Competition.objects.get(pk=competition_id)
    _check_round1_open(competition, now)
    if competition.uses_judge_rubric:
        raise VotingClosed("Esta competencia se califica con rúbrica de jueces, no con boletas.")

    assignment = Round1Assignment.objects.get(competition=competition, voter_id=voter_id)
    if assignment.has_voted:
        raise AlreadyVoted("Ya votaste en la Ronda 1 de esta competencia.")

    ranked = [first, second, third]
    if len(set(ranked)) != 3:
        raise ValidationError("Las tres mezclas elegidas deben ser distintas.")

    allowed = {s.pk: s for s in get_assigned_submissions_for_voter(competition.pk, voter_id)}
    for sid in ranked:
        if sid not in allowed:
            raise ValidationError(
                f"La mezcla #{sid} no pertenece a tu grupo asignado (o es tu propia mezcla)."
            )

    comments = comments or {}
    votes = [
        SubmissionVote(
            competition=competition,
            submission_id=sid,
            voter_id=voter_id,
            rank=rank,
            points=ROUND1_POINTS[rank],
            voting_round=1,
            vote_time=now,
            comment=comments.get(sid, ""),
        )
        for rank, sid in enumerate(ranked, start=1)
    ]

    try:
        with transaction.atomic():
            SubmissionVote.objects.bulk_create(votes)
            flipped = Round1Assignment.objects.filter(pk=assignment.pk, has_voted=False).update(
                has_voted=True, voting_completed_date=now
            )
            if flipped != 1:
                # Otra petición concurrente ya registró la boleta → rollback de los 3 votos
                raise AlreadyVoted("Ya votaste en la Ronda 1 de esta competencia.")
    except IntegrityError as exc:
        # La otra petición ya insertó sus votos (uniq_vote_rank_slot)
        raise AlreadyVoted("Ya votaste en la Ronda 1 de esta competencia.") from exc

    logger.info(
        "Competencia #%s: votante %s → 1º #%s, 2º #%s, 3º #%s",
        competition.pk, voter_id, first, second, third,
    )
    return votes

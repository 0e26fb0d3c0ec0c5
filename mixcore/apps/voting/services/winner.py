# mixcore/apps/voting/services/winner.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from mixcore.apps.competitions.models import Competition, CompetitionStatus as S, Submission
from mixcore.apps.competitions.services.lifecycle import transition
from ..exceptions import VotingClosed
from .locks import competition_lock

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


def final_ranking(submissions: List[Submission], winner_id: int) -> List[Submission]:
    """
    Orden final completo:
    1) ganador
    2) resto de finalistas por votos de Ronda 2, puntaje de Ronda 1, id
    3) no finalistas por puntaje de Ronda 1, id
    4) descalificadas al final, por id
    """
    winner = [s for s in submissions if s.pk == winner_id]
    finalists = [s for s in submissions if s.pk != winner_id and s.is_eligible_for_round2_voting and not s.is_disqualified]
    finalist_ids = {s.pk for s in finalists} | {winner_id}
    others = [s for s in submissions if s.pk not in finalist_ids and not s.is_disqualified]
    disqualified = [s for s in submissions if s.pk != winner_id and s.is_disqualified]

    finalists.sort(key=lambda s: (-(s.round2_score or _ZERO), -(s.round1_score or _ZERO), s.pk))
    others.sort(key=lambda s: (-(s.round1_score or _ZERO), s.pk))
    disqualified.sort(key=lambda s: s.pk)
    return winner + finalists + others + disqualified


def _set_winner_locked(competition: Competition, submission_id: int, now) -> Submission:
    submission = Submission.objects.get(pk=submission_id, competition=competition)
    if submission.is_disqualified:
        raise ValidationError(f"La mezcla #{submission.pk} está descalificada.")
    if not (submission.advanced_to_round2 and submission.is_eligible_for_round2_voting):
        raise ValidationError(f"La mezcla #{submission.pk} no es finalista.")

    with transaction.atomic():
        submissions = list(Submission.objects.filter(competition=competition).order_by("id"))
        for rank, s in enumerate(final_ranking(submissions, submission.pk), start=1):
            s.final_rank = rank
            s.is_winner = s.pk == submission.pk
        Submission.objects.bulk_update(submissions, ["final_rank", "is_winner"], batch_size=500)
        transition(competition, S.COMPLETED, now=now)

    submission.refresh_from_db()
    logger.info("Competencia #%s: ganador #%s (usuario %s)", competition.pk, submission.pk, submission.user_id)
    return submission


def set_competition_winner(competition_id: int, submission_id: int, now=None) -> Submission:
    """
    Marca el ganador (is_winner, final_rank=1), asigna el rank final al resto
    y cierra la competencia (COMPLETED + completed_date).
    Permitido en ROUND2_TALLYING o REQUIRES_MANUAL_WINNER.
    """
    now = now or timezone.now()
    competition = Competition.objects.get(pk=competition_id)
    if competition.status not in (S.ROUND2_TALLYING, S.REQUIRES_MANUAL_WINNER):
        raise VotingClosed(f"No se puede definir ganador en estado {competition.status}.")

    with competition_lock(competition.pk, "set_winner"):
        competition.refresh_from_db()
        return _set_winner_locked(competition, submission_id, now)

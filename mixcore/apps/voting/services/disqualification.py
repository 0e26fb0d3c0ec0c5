# mixcore/apps/voting/services/disqualification.py
from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from mixcore.apps.competitions.models import Competition, CompetitionStatus as S, Submission
from ..exceptions import VotingClosed
from ..models import Round1Assignment, SubmissionGroup
from .locks import competition_lock

logger = logging.getLogger(__name__)

NON_VOTER_FEEDBACK = "Descalificada por no votar en la Ronda 1."


def disqualify_non_voters(competition_id: int, now=None) -> int:
    """
    Vencido el plazo de Ronda 1, descalifica la mezcla propia de cada votante
    asignado que no votó. Idempotente: las ya descalificadas se saltan.
    Antes del plazo no hay a quién descalificar → 0.
    """
    now = now or timezone.now()
    competition = Competition.objects.get(pk=competition_id)
    if competition.status not in (S.ROUND1_OPEN, S.ROUND1_TALLYING):
        raise VotingClosed(f"No se puede descalificar por no votar en estado {competition.status}.")
    if not competition.round1_deadline_passed(now):
        logger.info("Competencia #%s: la Ronda 1 sigue abierta; no se descalifica a nadie", competition.pk)
        return 0

    with competition_lock(competition.pk, "disqualify"):
        non_voters = Round1Assignment.objects.filter(competition=competition, has_voted=False).values_list(
            "voter_id", flat=True
        )
        targets = Submission.objects.filter(
            competition=competition, user_id__in=list(non_voters), is_disqualified=False
        )
        target_ids = list(targets.values_list("pk", flat=True))
        if not target_ids:
            return 0

        with transaction.atomic():
            count = Submission.objects.filter(pk__in=target_ids).update(
                is_disqualified=True,
                advanced_to_round2=False,
                is_eligible_for_round2_voting=False,
                feedback=NON_VOTER_FEEDBACK,
            )
            SubmissionGroup.objects.filter(competition=competition, submission_id__in=target_ids).update(
                rank_in_group=None
            )

    logger.info("Competencia #%s: %s mezclas descalificadas por no votar", competition.pk, count)
    return count

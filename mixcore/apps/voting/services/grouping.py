# mixcore/apps/voting/services/grouping.py
from __future__ import annotations

import logging
import math
import random
from typing import Dict, List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction

from mixcore.apps.competitions.models import Competition, CompetitionStatus, Submission
from ..exceptions import GroupingExists, VotingClosed, VotingConflict
from ..models import Round1Assignment, SubmissionGroup, SubmissionVote
from .locks import competition_lock

logger = logging.getLogger(__name__)

MIN_SUBMISSIONS = 4
MIN_GROUP_SIZE = 3


# ------------------------------
# Cálculo puro (sin BD)
# ------------------------------
def group_count_for(total: int, target_group_size: int) -> int:
    """
    G = ceil(N / target). Caso degenerado: si N < 2 × target, un solo grupo
    (dos grupos quedarían por debajo del tamaño objetivo).
    """
    if total <= 0:
        return 0
    if total < 2 * target_group_size:
        return 1
    return math.ceil(total / target_group_size)


def partition_round_robin(ids: List[int], group_count: int) -> Dict[int, int]:
    """
    Reparte en orden (ya barajado) como en una mesa de cartas: i % G.
    Los tamaños de grupo difieren a lo sumo en 1. Devuelve {submission_id: grupo(1..G)}.
    """
    return {sid: (i % group_count) + 1 for i, sid in enumerate(ids)}


def assigned_group_for(own_group: int, group_count: int) -> int:
    """Rota al siguiente grupo; con G=1 el votante revisa su propio grupo (sin su mezcla)."""
    if group_count <= 1:
        return 1
    return (own_group % group_count) + 1


def _eligible_submissions(competition: Competition) -> List[Submission]:
    return list(
        Submission.objects.filter(
            competition=competition, is_disqualified=False, is_eligible_for_round1_voting=True
        ).order_by("id")
    )


def _resolve_target(target_group_size: Optional[int]) -> int:
    target = target_group_size or getattr(settings, "VOTING_DEFAULT_GROUP_SIZE", 20)
    if target < MIN_GROUP_SIZE:
        raise ValidationError(f"El tamaño objetivo de grupo debe ser ≥ {MIN_GROUP_SIZE}.")
    return target


def _check_setup_phase(competition: Competition) -> None:
    if competition.status != CompetitionStatus.ROUND1_SETUP:
        raise VotingClosed(f"Solo se agrupa en ROUND1_SETUP (estado actual: {competition.status}).")


# ------------------------------
# Operaciones bajo candado
# ------------------------------
def _create_groups_locked(competition: Competition, target: int, rng: random.Random) -> int:
    if Round1Assignment.objects.filter(competition=competition).exists() or \
            SubmissionGroup.objects.filter(competition=competition).exists():
        raise GroupingExists(
            f"La competencia #{competition.pk} ya tiene grupos. Usa clear_groups() o regroup() primero."
        )

    submissions = _eligible_submissions(competition)
    total = len(submissions)
    if total < MIN_SUBMISSIONS:
        raise ValidationError(f"Se necesitan al menos {MIN_SUBMISSIONS} mezclas elegibles (hay {total}).")

    ids = [s.pk for s in submissions]
    rng.shuffle(ids)
    group_count = group_count_for(total, target)
    group_by_submission = partition_round_robin(ids, group_count)

    groups = [
        SubmissionGroup(competition=competition, submission_id=sid, group_number=g)
        for sid, g in group_by_submission.items()
    ]
    assignments = []
    for s in submissions:
        own = group_by_submission[s.pk]
        assignments.append(
            Round1Assignment(
                competition=competition,
                voter_id=s.user_id,
                voter_group_number=own,
                assigned_group_number=assigned_group_for(own, group_count),
            )
        )

    batch_size = getattr(settings, "VOTING_BULK_BATCH_SIZE", 500)
    with transaction.atomic():
        SubmissionGroup.objects.bulk_create(groups, batch_size=batch_size)
        Round1Assignment.objects.bulk_create(assignments, batch_size=batch_size)

    logger.info(
        "Competencia #%s: %s mezclas en %s grupos (objetivo %s); %s asignaciones",
        competition.pk, total, group_count, target, len(assignments),
    )
    return group_count


def _clear_groups_locked(competition: Competition) -> int:
    from mixcore.apps.judging.models import SubmissionJudgment  # import local para evitar ciclos

    if SubmissionVote.objects.filter(competition=competition, voting_round=1).exists() or \
            SubmissionJudgment.objects.filter(competition=competition, voting_round=1).exists():
        raise VotingConflict("Ya existen votos o juicios de Ronda 1; no se pueden borrar los grupos.")

    with transaction.atomic():
        deleted_assignments, _ = Round1Assignment.objects.filter(competition=competition).delete()
        SubmissionGroup.objects.filter(competition=competition).delete()
    logger.info("Competencia #%s: grupos borrados (%s asignaciones)", competition.pk, deleted_assignments)
    return deleted_assignments


# ------------------------------
# API pública
# ------------------------------
def create_groups_and_assign_voters(
    competition_id: int,
    target_group_size: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> int:
    """
    Baraja las mezclas elegibles, arma grupos balanceados y asigna a cada
    participante un grupo a revisar. Devuelve el número de grupos.
    Si ya hay grupos → GroupingExists (no se sobrescribe nada).
    """
    competition = Competition.objects.get(pk=competition_id)
    target = _resolve_target(target_group_size)
    _check_setup_phase(competition)

    with competition_lock(competition.pk, "grouping"):
        return _create_groups_locked(competition, target, rng or random.Random())


def clear_groups(competition_id: int) -> int:
    """
    Borra grupos y asignaciones de Ronda 1. Se rechaza si ya hay votos o
    juicios de Ronda 1, para no dejar boletas huérfanas.
    """
    competition = Competition.objects.get(pk=competition_id)
    if competition.status not in (CompetitionStatus.ROUND1_SETUP, CompetitionStatus.ROUND1_OPEN):
        raise VotingClosed(f"No se pueden borrar grupos en estado {competition.status}.")
    with competition_lock(competition.pk, "clear_groups"):
        return _clear_groups_locked(competition)


def regroup(
    competition_id: int,
    target_group_size: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> int:
    """Camino explícito de re-agrupación: borrar + crear en una sola transacción."""
    competition = Competition.objects.get(pk=competition_id)
    target = _resolve_target(target_group_size)
    _check_setup_phase(competition)

    with competition_lock(competition.pk, "regroup"):
        with transaction.atomic():
            _clear_groups_locked(competition)
            return _create_groups_locked(competition, target, rng or random.Random())


def get_assigned_submissions_for_voter(competition_id: int, voter_id: int) -> List[Submission]:
    """
    Mezclas del grupo asignado al votante, sin la propia ni las descalificadas,
    ordenadas por id. Lectura sin candado.
    """
    assignment = Round1Assignment.objects.get(competition_id=competition_id, voter_id=voter_id)
    return list(
        Submission.objects.filter(
            competition_id=competition_id,
            group_memberships__group_number=assignment.assigned_group_number,
            is_disqualified=False,
        )
        .exclude(user_id=voter_id)
        .order_by("id")
    )

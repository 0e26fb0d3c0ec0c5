# mixcore/apps/competitions/services/lifecycle.py
from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List, Optional

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.utils import timezone

from mixcore.apps.voting.exceptions import InvalidTransition, VotingConflict
from ..models import Competition, CompetitionStatus as S, Submission

logger = logging.getLogger(__name__)


# ------------------------------
# Tabla de transiciones
# ------------------------------
TRANSITIONS: Dict[str, FrozenSet[str]] = {
    S.UPCOMING: frozenset({S.OPEN_FOR_SUBMISSIONS, S.CANCELLED}),
    S.OPEN_FOR_SUBMISSIONS: frozenset({S.ROUND1_SETUP, S.CANCELLED}),
    S.ROUND1_SETUP: frozenset({S.ROUND1_OPEN, S.CANCELLED}),
    S.ROUND1_OPEN: frozenset({S.ROUND1_TALLYING, S.CANCELLED}),
    S.ROUND1_TALLYING: frozenset({S.ROUND2_SETUP, S.CANCELLED}),
    S.ROUND2_SETUP: frozenset({S.ROUND2_OPEN, S.CANCELLED}),
    S.ROUND2_OPEN: frozenset({S.ROUND2_TALLYING, S.CANCELLED}),
    S.ROUND2_TALLYING: frozenset({S.COMPLETED, S.REQUIRES_MANUAL_WINNER, S.CANCELLED}),
    S.REQUIRES_MANUAL_WINNER: frozenset({S.COMPLETED, S.CANCELLED}),
    S.COMPLETED: frozenset({S.ARCHIVED}),
    S.ARCHIVED: frozenset(),
    S.CANCELLED: frozenset(),
}

FINAL_STATES = frozenset({S.COMPLETED, S.ARCHIVED, S.CANCELLED})

# Orden lineal para comparaciones "a partir de X"
_PHASE_ORDER: List[str] = [
    S.UPCOMING,
    S.OPEN_FOR_SUBMISSIONS,
    S.ROUND1_SETUP,
    S.ROUND1_OPEN,
    S.ROUND1_TALLYING,
    S.ROUND2_SETUP,
    S.ROUND2_OPEN,
    S.ROUND2_TALLYING,
    S.REQUIRES_MANUAL_WINNER,
    S.COMPLETED,
    S.ARCHIVED,
]


def status_at_least(competition: Competition, status: str) -> bool:
    """True si la competencia ya alcanzó (o pasó) la fase `status`. CANCELLED nunca cuenta."""
    if competition.status not in _PHASE_ORDER:
        return False
    return _PHASE_ORDER.index(competition.status) >= _PHASE_ORDER.index(status)


# ------------------------------
# Guards
# ------------------------------
def _guard(competition: Competition, target: str, now, force: bool) -> None:
    current = competition.status

    if target == S.OPEN_FOR_SUBMISSIONS:
        if competition.start_date and now < competition.start_date and not force:
            raise InvalidTransition("La competencia todavía no inicia.")

    elif target == S.ROUND1_SETUP:
        deadline = competition.submission_deadline
        if deadline and now <= deadline and not force:
            raise InvalidTransition("El plazo de envío de mezclas no ha vencido.")

    elif target == S.ROUND1_OPEN:
        from mixcore.apps.voting.models import Round1Assignment

        if not Round1Assignment.objects.filter(competition=competition).exists():
            raise InvalidTransition("No hay grupos creados para la Ronda 1.")
        if competition.uses_judge_rubric:
            from mixcore.apps.judging.services.rubric import validate_criteria_weights

            validate_criteria_weights(competition)

    elif target == S.ROUND1_TALLYING:
        if not competition.round1_deadline_passed(now) and not force:
            raise InvalidTransition("La votación de Ronda 1 sigue abierta.")

    elif target in (S.ROUND2_SETUP, S.ROUND2_OPEN):
        finalists = Submission.objects.filter(
            competition=competition, advanced_to_round2=True, is_disqualified=False
        ).count()
        if finalists < 2:
            raise InvalidTransition(f"Se necesitan al menos 2 finalistas (hay {finalists}).")

    elif target == S.ROUND2_TALLYING:
        if not competition.round2_deadline_passed(now) and not force:
            raise InvalidTransition("La votación de Ronda 2 sigue abierta.")

    elif target == S.COMPLETED and current != S.COMPLETED:
        # Solo vía resolución de ganador
        if not Submission.objects.filter(competition=competition, is_winner=True).exists():
            raise InvalidTransition("No se puede finalizar sin ganador definido.")


# ------------------------------
# API pública
# ------------------------------
def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def transition(competition: Competition, target: str, *, force: bool = False, now=None) -> Competition:
    """
    Mueve la competencia a `target` si la arista existe y su guard se cumple.
    El UPDATE es condicional al estado leído: si otro proceso ya la movió,
    se levanta InvalidTransition en vez de pisar el cambio.
    """
    now = now or timezone.now()
    current = competition.status
    if not can_transition(current, target):
        raise InvalidTransition(f"Transición no permitida: {current} → {target}.")

    _guard(competition, target, now, force)

    fields = {"status": target}
    if target == S.COMPLETED:
        fields["completed_date"] = now

    updated = Competition.objects.filter(pk=competition.pk, status=current).update(**fields)
    if updated != 1:
        raise InvalidTransition(f"La competencia #{competition.pk} cambió de estado durante la operación.")

    for k, v in fields.items():
        setattr(competition, k, v)
    logger.info("Competencia #%s: %s → %s%s", competition.pk, current, target, " (forzado)" if force else "")
    return competition


def cancel_competition(competition_id: int) -> Competition:
    competition = Competition.objects.get(pk=competition_id)
    return transition(competition, S.CANCELLED, force=True)


def archive_competition(competition_id: int) -> Competition:
    competition = Competition.objects.get(pk=competition_id)
    return transition(competition, S.ARCHIVED)


# ------------------------------
# Avance por plazos (cron / comando)
# ------------------------------
def _advance_one(competition: Competition, now) -> Optional[str]:
    """Ejecuta a lo sumo una fase para la competencia. Devuelve el estado nuevo o None."""
    from mixcore.apps.voting.models import Round1Assignment
    from mixcore.apps.voting.services.disqualification import disqualify_non_voters
    from mixcore.apps.voting.services.grouping import create_groups_and_assign_voters
    from mixcore.apps.voting.services.round2 import setup_round2_voting
    from mixcore.apps.voting.services.tally import tally_round2_votes, tally_votes_and_determine_advancement

    status = competition.status

    if status == S.UPCOMING:
        if competition.start_date and now >= competition.start_date:
            transition(competition, S.OPEN_FOR_SUBMISSIONS, now=now)
            return competition.status
        return None

    if status == S.OPEN_FOR_SUBMISSIONS:
        if competition.submission_deadline and now > competition.submission_deadline:
            transition(competition, S.ROUND1_SETUP, now=now)
            return competition.status
        return None

    if status == S.ROUND1_SETUP:
        if not Round1Assignment.objects.filter(competition=competition).exists():
            create_groups_and_assign_voters(competition.pk)
            competition.refresh_from_db()
        transition(competition, S.ROUND1_OPEN, now=now)
        return competition.status

    if status == S.ROUND1_OPEN:
        if competition.round1_deadline_passed(now):
            disqualify_non_voters(competition.pk, now=now)
            tally_votes_and_determine_advancement(competition.pk, now=now)
            competition.refresh_from_db()
            return competition.status
        return None

    if status == S.ROUND1_TALLYING:
        # Tally anticipado: se espera al plazo para descalificar y re-contar
        if competition.round1_voting_end_date and not competition.round1_deadline_passed(now):
            return None
        if disqualify_non_voters(competition.pk, now=now):
            tally_votes_and_determine_advancement(competition.pk, override=True, now=now)
        setup_round2_voting(competition.pk)
        competition.refresh_from_db()
        return competition.status

    if status == S.ROUND2_OPEN:
        if competition.round2_deadline_passed(now):
            tally_round2_votes(competition.pk, now=now)
            competition.refresh_from_db()
            return competition.status
        return None

    return None


def advance_due_competitions(now=None) -> List[Dict[str, object]]:
    """
    Recorre las competencias activas y avanza una fase a las que ya vencieron.
    Un error en una competencia se registra y no detiene a las demás.
    """
    now = now or timezone.now()
    report: List[Dict[str, object]] = []

    for competition in Competition.objects.exclude(status__in=FINAL_STATES).order_by("id"):
        before = competition.status
        try:
            after = _advance_one(competition, now)
        except (ValidationError, VotingConflict, ObjectDoesNotExist) as exc:
            logger.warning("Competencia #%s no avanzó desde %s: %s", competition.pk, before, exc)
            report.append({"competition_id": competition.pk, "from": before, "to": None, "error": str(exc)})
            continue
        if after and after != before:
            report.append({"competition_id": competition.pk, "from": before, "to": after, "error": None})

    return report

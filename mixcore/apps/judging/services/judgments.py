# mixcore/apps/judging/services/judgments.py
from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from mixcore.apps.competitions.models import Competition, CompetitionStatus, Submission
from mixcore.apps.voting.exceptions import AlreadyVoted, VotingClosed
from mixcore.apps.voting.models import Round1Assignment
from mixcore.apps.voting.services.grouping import get_assigned_submissions_for_voter
from ..models import CriteriaScore, JudgingCriteria, SubmissionJudgment
from .rubric import compute_overall_score

logger = logging.getLogger(__name__)

_OPEN_STATUS_BY_ROUND = {
    1: CompetitionStatus.ROUND1_OPEN,
    2: CompetitionStatus.ROUND2_OPEN,
}


def _check_judging_open(competition: Competition, voting_round: int, now) -> None:
    expected = _OPEN_STATUS_BY_ROUND.get(voting_round)
    if expected is None:
        raise ValidationError(f"Ronda inválida: {voting_round}.")
    if competition.status != expected:
        raise VotingClosed(f"El jueceo de Ronda {voting_round} no está abierto (estado: {competition.status}).")
    passed = competition.round1_deadline_passed(now) if voting_round == 1 else competition.round2_deadline_passed(now)
    if passed:
        raise VotingClosed(f"El plazo de Ronda {voting_round} ya venció.")


def _check_judge_may_score(competition: Competition, submission: Submission, judge_id: int, voting_round: int) -> None:
    if submission.user_id == judge_id:
        raise ValidationError("Un juez no puede calificar su propia mezcla.")
    if submission.is_disqualified:
        raise ValidationError(f"La mezcla #{submission.pk} está descalificada.")
    if voting_round == 1:
        allowed = {s.pk for s in get_assigned_submissions_for_voter(competition.pk, judge_id)}
        if submission.pk not in allowed:
            raise ValidationError(f"La mezcla #{submission.pk} no pertenece a tu grupo asignado.")
    elif not submission.is_eligible_for_round2_voting:
        raise ValidationError(f"La mezcla #{submission.pk} no es finalista.")


def _build_scores(
    criteria: List[JudgingCriteria],
    scores: Mapping[int, int],
    comments: Mapping[int, str],
    now,
) -> List[CriteriaScore]:
    by_id = {c.pk: c for c in criteria}
    unknown = set(scores) - set(by_id)
    if unknown:
        raise ValidationError(f"Criterios que no pertenecen a la competencia: {sorted(unknown)}.")

    built: List[CriteriaScore] = []
    errors: Dict[str, List[str]] = {}
    for cid, value in scores.items():
        cs = CriteriaScore(criteria=by_id[cid], score=value, comments=comments.get(cid, "") or "", score_time=now)
        try:
            cs.full_clean(exclude=["judgment"])
        except ValidationError as exc:
            errors.setdefault(by_id[cid].name, []).extend(exc.messages)
        built.append(cs)
    if errors:
        raise ValidationError(errors)
    return built


def record_judgment(
    competition_id: int,
    submission_id: int,
    judge_id: int,
    scores: Mapping[int, int],
    comments: Optional[Mapping[int, str]] = None,
    overall_comments: str = "",
    voting_round: int = 1,
    now=None,
) -> SubmissionJudgment:
    """
    Guarda (o completa) el juicio de un juez sobre una mezcla.
    - Todo se valida antes de escribir: rango, comentario requerido, criterio de la competencia.
    - Un juicio completo es inmutable.
    - Se completa cuando todos los criterios tienen puntaje; ahí se calcula overall_score.
    - En modo rúbrica, completar todo el grupo asignado marca has_voted en la asignación.
    """
    now = now or timezone.now()
    competition = Competition.objects.get(pk=competition_id)
    submission = Submission.objects.get(pk=submission_id, competition=competition)
    _check_judging_open(competition, voting_round, now)
    _check_judge_may_score(competition, submission, judge_id, voting_round)

    existing = SubmissionJudgment.objects.filter(
        submission=submission, judge_id=judge_id, voting_round=voting_round
    ).first()
    if existing and existing.is_completed:
        raise AlreadyVoted("Este juicio ya fue completado y no se puede modificar.")

    criteria = list(JudgingCriteria.objects.filter(competition=competition).order_by("display_order", "id"))
    if not criteria:
        raise ValidationError("La competencia no tiene rúbrica definida.")
    built = _build_scores(criteria, scores, comments or {}, now)

    cleaned = {cs.criteria_id: cs.score for cs in built}
    is_completed = {c.pk for c in criteria} == set(cleaned)
    overall = (
        compute_overall_score(cleaned, criteria, competition.judging_score_max) if is_completed else None
    )

    with transaction.atomic():
        judgment, _ = SubmissionJudgment.objects.select_for_update().get_or_create(
            submission=submission,
            judge_id=judge_id,
            voting_round=voting_round,
            defaults={"competition": competition, "judgment_time": now},
        )
        if judgment.is_completed:
            raise AlreadyVoted("Este juicio ya fue completado y no se puede modificar.")
        judgment.criteria_scores.all().delete()
        for cs in built:
            cs.judgment = judgment
        CriteriaScore.objects.bulk_create(built)

        judgment.overall_score = overall
        judgment.overall_comments = overall_comments or ""
        judgment.is_completed = is_completed
        judgment.save(update_fields=["overall_score", "overall_comments", "is_completed", "last_updated"])

        if is_completed and voting_round == 1 and competition.uses_judge_rubric:
            _mark_assignment_if_cohort_done(competition, judge_id, now)

    logger.info(
        "Competencia #%s: juez %s → #%s (%s/%s criterios, overall=%s)",
        competition.pk, judge_id, submission.pk, len(scores), len(criteria), overall,
    )
    return judgment


def _mark_assignment_if_cohort_done(competition: Competition, judge_id: int, now) -> bool:
    pending = get_judging_progress(competition.pk, judge_id)["pending"]
    if pending:
        return False
    flipped = Round1Assignment.objects.filter(
        competition=competition, voter_id=judge_id, has_voted=False
    ).update(has_voted=True, voting_completed_date=now)
    if flipped:
        logger.info("Competencia #%s: juez %s completó su grupo asignado", competition.pk, judge_id)
    return bool(flipped)


def get_judging_progress(competition_id: int, judge_id: int) -> Dict[str, List[int]]:
    """{'assigned': [...], 'completed': [...], 'pending': [...]} para el grupo asignado (Ronda 1)."""
    assigned = [s.pk for s in get_assigned_submissions_for_voter(competition_id, judge_id)]
    completed = set(
        SubmissionJudgment.objects.filter(
            competition_id=competition_id,
            judge_id=judge_id,
            voting_round=1,
            is_completed=True,
            submission_id__in=assigned,
        ).values_list("submission_id", flat=True)
    )
    return {
        "assigned": assigned,
        "completed": [sid for sid in assigned if sid in completed],
        "pending": [sid for sid in assigned if sid not in completed],
    }

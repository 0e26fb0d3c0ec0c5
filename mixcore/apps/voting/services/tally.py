# mixcore/apps/voting/services/tally.py
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from mixcore.apps.competitions.models import Competition, CompetitionStatus as S, ScoringSource, Submission
from mixcore.apps.competitions.services.lifecycle import transition
from ..exceptions import OverrideRequired, VotingClosed
from ..models import ROUND1_POINTS, Round1Assignment, SongCreatorPick, SubmissionGroup, SubmissionVote
from .locks import competition_lock

logger = logging.getLogger(__name__)


# ------------------------------
# Tipos
# ------------------------------
@dataclass
class CohortScore:
    total_points: int = 0
    first_place_votes: int = 0
    second_place_votes: int = 0
    third_place_votes: int = 0

    def add_place(self, place: int) -> None:
        self.total_points += ROUND1_POINTS[place]
        if place == 1:
            self.first_place_votes += 1
        elif place == 2:
            self.second_place_votes += 1
        elif place == 3:
            self.third_place_votes += 1


@dataclass(frozen=True)
class RankedSubmission:
    submission_id: int
    score: CohortScore
    rank_in_group: Optional[int]


@dataclass(frozen=True)
class Round2TallyResult:
    winner_id: Optional[int]
    is_tie: bool
    tied_submission_ids: Tuple[int, ...] = ()
    vote_counts: Dict[int, int] = field(default_factory=dict)
    resolved_by: str = "votes"  # votes | song_creator_pick | manual_required


# ------------------------------
# Fuentes de puntaje (una por ScoringSource)
# ------------------------------
def _peer_ballot_scores(competition: Competition, group_number: int, cohort_ids: List[int]) -> Dict[int, CohortScore]:
    """Suma directa de SubmissionVote.points de Ronda 1."""
    scores = {sid: CohortScore() for sid in cohort_ids}
    votes = SubmissionVote.objects.filter(
        competition=competition, voting_round=1, submission_id__in=cohort_ids
    ).values_list("submission_id", "rank", "points")
    for sid, rank, points in votes:
        s = scores[sid]
        s.total_points += points
        if rank == 1:
            s.first_place_votes += 1
        elif rank == 2:
            s.second_place_votes += 1
        elif rank == 3:
            s.third_place_votes += 1
    return scores


def _judge_rubric_scores(competition: Competition, group_number: int, cohort_ids: List[int]) -> Dict[int, CohortScore]:
    """
    Cada juez que completó TODO su grupo asignado aporta un ranking:
    overall_score desc, id asc; su top 3 recibe 3/2/1 y voto de 1º/2º/3º.
    Jueces incompletos no cuentan.
    """
    from mixcore.apps.judging.models import SubmissionJudgment  # import local para evitar ciclos

    scores = {sid: CohortScore() for sid in cohort_ids}
    eligible = set(
        Submission.objects.filter(pk__in=cohort_ids, is_disqualified=False).values_list("pk", flat=True)
    )
    owners = dict(Submission.objects.filter(pk__in=cohort_ids).values_list("pk", "user_id"))

    judges = Round1Assignment.objects.filter(
        competition=competition, assigned_group_number=group_number
    ).values_list("voter_id", flat=True)

    judgments = SubmissionJudgment.objects.filter(
        competition=competition,
        voting_round=1,
        is_completed=True,
        submission_id__in=cohort_ids,
        judge_id__in=list(judges),
    ).values_list("judge_id", "submission_id", "overall_score")

    by_judge: Dict[int, List[Tuple[int, Decimal]]] = defaultdict(list)
    for judge_id, sid, overall in judgments:
        by_judge[judge_id].append((sid, overall or Decimal("0")))

    complete_judges = 0
    for judge_id, rows in sorted(by_judge.items()):
        required = {sid for sid in eligible if owners.get(sid) != judge_id}
        if not required.issubset({sid for sid, _ in rows}):
            continue
        complete_judges += 1
        # las descalificadas no ocupan lugares en el top 3 del juez
        ordered = sorted((r for r in rows if r[0] in eligible), key=lambda r: (-r[1], r[0]))
        for place, (sid, _overall) in enumerate(ordered[:3], start=1):
            scores[sid].add_place(place)

    logger.debug(
        "Competencia #%s G%s: %s jueces completos de %s",
        competition.pk, group_number, complete_judges, len(by_judge),
    )
    return scores


SCORERS: Dict[str, Callable[[Competition, int, List[int]], Dict[int, CohortScore]]] = {
    ScoringSource.PEER_BALLOT: _peer_ballot_scores,
    ScoringSource.JUDGE_RUBRIC: _judge_rubric_scores,
}


def _standing_key(item: Tuple[int, CohortScore]):
    sid, s = item
    return (-s.total_points, -s.first_place_votes, -s.second_place_votes, -s.third_place_votes, sid)


def rank_cohort(
    competition: Competition,
    group_number: int,
    cohort_ids: Iterable[int],
    disqualified_ids: Set[int],
) -> List[RankedSubmission]:
    """
    Rankea un grupo con la fuente configurada en la competencia.
    Orden: puntos, votos 1º, 2º, 3º (desc) y id (asc); nunca quedan empates.
    Descalificadas: agregados sí, rank_in_group = None.
    """
    cohort_ids = list(cohort_ids)
    scorer = SCORERS[competition.scoring_source]
    scores = scorer(competition, group_number, cohort_ids)

    ranked: List[RankedSubmission] = []
    eligible = sorted(((sid, scores[sid]) for sid in cohort_ids if sid not in disqualified_ids), key=_standing_key)
    for rank, (sid, s) in enumerate(eligible, start=1):
        ranked.append(RankedSubmission(sid, s, rank))
    for sid in sorted(sid for sid in cohort_ids if sid in disqualified_ids):
        ranked.append(RankedSubmission(sid, scores[sid], None))
    return ranked


# ------------------------------
# Ronda 1
# ------------------------------
def tally_votes_and_determine_advancement(competition_id: int, override: bool = False, now=None) -> int:
    """
    Recalcula agregados y ranking de todos los grupos y marca a los que avanzan.
    Re-ejecutable: sobrescribe columnas, no inserta filas. Devuelve cuántas avanzan.
    """
    now = now or timezone.now()
    competition = Competition.objects.get(pk=competition_id)
    if competition.status not in (S.ROUND1_OPEN, S.ROUND1_TALLYING):
        raise VotingClosed(f"No se puede contar la Ronda 1 en estado {competition.status}.")

    with competition_lock(competition.pk, "tally_round1"):
        competition.refresh_from_db()
        already_advanced = Submission.objects.filter(competition=competition, advanced_to_round2=True).exists()
        if competition.round1_deadline_passed(now) and already_advanced and not override:
            raise OverrideRequired(
                "La Ronda 1 ya venció y hay mezclas avanzadas; re-contar requiere override=True."
            )

        with transaction.atomic():
            if competition.status == S.ROUND1_OPEN:
                transition(competition, S.ROUND1_TALLYING, force=True, now=now)
            advanced = _tally_round1_locked(competition)

    logger.info(
        "Competencia #%s: tally Ronda 1 (%s) → %s avanzan%s",
        competition.pk, competition.scoring_source, advanced, " [override]" if override else "",
    )
    return advanced


def _tally_round1_locked(competition: Competition) -> int:
    memberships = list(SubmissionGroup.objects.filter(competition=competition).order_by("group_number", "submission_id"))
    if not memberships:
        raise ValidationError("La competencia no tiene grupos de Ronda 1.")

    submissions = {s.pk: s for s in Submission.objects.filter(competition=competition)}
    disqualified = {sid for sid, s in submissions.items() if s.is_disqualified}

    by_group: Dict[int, List[SubmissionGroup]] = defaultdict(list)
    for m in memberships:
        by_group[m.group_number].append(m)

    limit = competition.round1_advancement_count
    standings: Dict[int, RankedSubmission] = {}
    for group_number, rows in sorted(by_group.items()):
        for r in rank_cohort(competition, group_number, [m.submission_id for m in rows], disqualified):
            standings[r.submission_id] = r

    for m in memberships:
        r = standings[m.submission_id]
        m.total_points = r.score.total_points
        m.first_place_votes = r.score.first_place_votes
        m.second_place_votes = r.score.second_place_votes
        m.third_place_votes = r.score.third_place_votes
        m.rank_in_group = r.rank_in_group
    SubmissionGroup.objects.bulk_update(
        memberships,
        ["total_points", "first_place_votes", "second_place_votes", "third_place_votes", "rank_in_group"],
        batch_size=500,
    )

    # Reset + recálculo: nada queda "avanzado" de una corrida anterior
    advanced = 0
    for sid, sub in submissions.items():
        r = standings.get(sid)
        sub.advanced_to_round2 = bool(
            r and r.rank_in_group is not None and r.rank_in_group <= limit and not sub.is_disqualified
        )
        sub.round1_score = Decimal(r.score.total_points) if (r and r.rank_in_group is not None) else None
        advanced += int(sub.advanced_to_round2)
    Submission.objects.bulk_update(list(submissions.values()), ["advanced_to_round2", "round1_score"], batch_size=500)
    return advanced


# ------------------------------
# Ronda 2
# ------------------------------
def count_round2_votes(competition: Competition, submission_ids: Iterable[int]) -> Dict[int, int]:
    ids = list(submission_ids)
    counts = {sid: 0 for sid in ids}
    rows = (
        SubmissionVote.objects.filter(competition=competition, voting_round=2, submission_id__in=ids)
        .values("submission_id")
        .annotate(n=Count("id"))
    )
    for row in rows:
        counts[row["submission_id"]] = row["n"]
    return counts


def tally_round2_votes(competition_id: int, now=None) -> Round2TallyResult:
    """
    Pluralidad entre finalistas. Máximo único → ganador. Empate en el máximo:
    decide el pick #1 del autor solo si song_creator_tiebreak está activo y ese
    pick está entre los empatados; si no, REQUIRES_MANUAL_WINNER sin ganador.
    """
    from .winner import _set_winner_locked  # import local para evitar ciclos

    now = now or timezone.now()
    competition = Competition.objects.get(pk=competition_id)
    if competition.status not in (S.ROUND2_OPEN, S.ROUND2_TALLYING):
        raise VotingClosed(f"No se puede contar la Ronda 2 en estado {competition.status}.")

    with competition_lock(competition.pk, "tally_round2"):
        competition.refresh_from_db()
        with transaction.atomic():
            if competition.status == S.ROUND2_OPEN:
                transition(competition, S.ROUND2_TALLYING, force=True, now=now)

            finalists = list(
                Submission.objects.filter(
                    competition=competition, is_eligible_for_round2_voting=True, is_disqualified=False
                ).order_by("id")
            )
            if not finalists:
                raise ValidationError("No hay finalistas para la Ronda 2.")

            counts = count_round2_votes(competition, [s.pk for s in finalists])
            for s in finalists:
                s.round2_score = Decimal(counts[s.pk])
                s.final_score = (s.round1_score or Decimal("0")) + s.round2_score
            Submission.objects.bulk_update(finalists, ["round2_score", "final_score"])

            top = max(counts.values())
            tied = tuple(sorted(sid for sid, n in counts.items() if n == top))

            winner_id: Optional[int] = None
            resolved_by = "votes"
            if len(tied) == 1:
                winner_id = tied[0]
            elif competition.song_creator_tiebreak:
                pick = SongCreatorPick.objects.filter(competition=competition, rank=1).first()
                if pick and pick.submission_id in tied:
                    winner_id = pick.submission_id
                    resolved_by = "song_creator_pick"

            if winner_id is not None:
                _set_winner_locked(competition, winner_id, now)
                result = Round2TallyResult(winner_id, False, tied if len(tied) > 1 else (), counts, resolved_by)
            else:
                transition(competition, S.REQUIRES_MANUAL_WINNER, now=now)
                result = Round2TallyResult(None, True, tied, counts, "manual_required")

    if result.is_tie:
        logger.warning(
            "Competencia #%s: empate en Ronda 2 entre %s con %s votos; requiere selección manual",
            competition.pk, list(tied), top,
        )
    else:
        logger.info("Competencia #%s: ganador #%s (%s)", competition.pk, result.winner_id, result.resolved_by)
    return result

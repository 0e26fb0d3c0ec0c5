# mixcore/apps/voting/services/results.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from mixcore.apps.competitions.models import Competition, CompetitionStatus as S, Submission
from mixcore.apps.competitions.services.lifecycle import status_at_least
from ..exceptions import VotingClosed
from ..models import Round1Assignment, SongCreatorPick
from .tally import count_round2_votes


@dataclass(frozen=True)
class FinalistResult:
    submission_id: int
    user_id: int
    mix_title: str
    round1_score: Optional[Decimal]
    round2_votes: int
    final_score: Optional[Decimal]
    final_rank: Optional[int]
    is_winner: bool


@dataclass(frozen=True)
class PickResult:
    rank: int
    submission_id: int
    mix_title: str
    comment: str


@dataclass(frozen=True)
class CompetitionResults:
    competition_id: int
    title: str
    status: str
    winner_submission_id: Optional[int]
    winner_user_id: Optional[int]
    winner_mix_title: Optional[str]
    finalists: Tuple[FinalistResult, ...]
    song_creator_picks: Tuple[PickResult, ...]
    total_round2_votes: int
    total_submissions: int
    total_disqualified: int
    round1_voters: int
    completed_date: Optional[datetime]

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def get_competition_results(competition_id: int) -> CompetitionResults:
    """
    Proyección de solo lectura: ganador, votos por finalista, picks del autor y totales.
    Disponible desde ROUND2_TALLYING; no escribe nada ni toma candados.
    """
    competition = Competition.objects.get(pk=competition_id)
    if competition.status == S.CANCELLED or not status_at_least(competition, S.ROUND2_TALLYING):
        raise VotingClosed(f"Los resultados aún no están disponibles (estado: {competition.status}).")

    submissions = list(Submission.objects.filter(competition=competition).order_by("id"))
    finalists = [s for s in submissions if s.is_eligible_for_round2_voting and not s.is_disqualified]
    counts = count_round2_votes(competition, [s.pk for s in finalists])
    winner = next((s for s in submissions if s.is_winner), None)

    finalists.sort(key=lambda s: (s.final_rank or 10**9, -counts[s.pk], s.pk))
    titles = {s.pk: s.mix_title for s in submissions}

    picks = tuple(
        PickResult(p.rank, p.submission_id, titles.get(p.submission_id, ""), p.comment)
        for p in SongCreatorPick.objects.filter(competition=competition).order_by("rank")
    )

    return CompetitionResults(
        competition_id=competition.pk,
        title=competition.title,
        status=competition.status,
        winner_submission_id=winner.pk if winner else None,
        winner_user_id=winner.user_id if winner else None,
        winner_mix_title=winner.mix_title if winner else None,
        finalists=tuple(
            FinalistResult(
                submission_id=s.pk,
                user_id=s.user_id,
                mix_title=s.mix_title,
                round1_score=s.round1_score,
                round2_votes=counts[s.pk],
                final_score=s.final_score,
                final_rank=s.final_rank,
                is_winner=s.is_winner,
            )
            for s in finalists
        ),
        song_creator_picks=picks,
        total_round2_votes=sum(counts.values()),
        total_submissions=len(submissions),
        total_disqualified=sum(1 for s in submissions if s.is_disqualified),
        round1_voters=Round1Assignment.objects.filter(competition=competition, has_voted=True).count(),
        completed_date=competition.completed_date,
    )

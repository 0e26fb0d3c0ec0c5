from __future__ import annotations

import random
from datetime import timedelta
from typing import List, Tuple

from django.contrib.auth import get_user_model
from django.utils import timezone

from mixcore.apps.competitions.models import Competition, CompetitionStatus, Submission
from mixcore.apps.competitions.services.lifecycle import transition
from mixcore.apps.voting.services.grouping import create_groups_and_assign_voters

User = get_user_model()


def make_competition(
    n_submissions: int = 4,
    status: str = CompetitionStatus.ROUND1_SETUP,
    title: str = "Test Contest",
    **fields,
) -> Tuple[Competition, List[Submission]]:
    """Competencia con `n_submissions` mezclas (un usuario por mezcla) y plazos a futuro."""
    now = timezone.now()
    data = {
        "title": title,
        "status": status,
        "start_date": now - timedelta(days=10),
        "submission_deadline": now - timedelta(days=1),
        "round1_voting_end_date": now + timedelta(days=7),
        "round2_voting_end_date": now + timedelta(days=14),
    }
    data.update(fields)
    competition = Competition.objects.create(**data)
    submissions = []
    for i in range(n_submissions):
        user = User.objects.create_user(username=f"{competition.slug}-u{i:03d}", password="Pass1234!")
        submissions.append(
            Submission.objects.create(competition=competition, user=user, mix_title=f"Mix {i:03d}")
        )
    return competition, submissions


def open_round1(competition: Competition, target_group_size: int = 20, seed: int = 7) -> int:
    """Agrupa y abre la Ronda 1. Devuelve el número de grupos."""
    groups = create_groups_and_assign_voters(
        competition.pk, target_group_size=target_group_size, rng=random.Random(seed)
    )
    competition.refresh_from_db()
    transition(competition, CompetitionStatus.ROUND1_OPEN)
    return groups


def after_round1(competition: Competition, hours: int = 1):
    return competition.round1_voting_end_date + timedelta(hours=hours)


def after_round2(competition: Competition, hours: int = 1):
    return competition.round2_voting_end_date + timedelta(hours=hours)

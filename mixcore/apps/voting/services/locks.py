# mixcore/apps/voting/services/locks.py
from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import timedelta

from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from mixcore.apps.competitions.models import Competition
from ..exceptions import CompetitionLocked

logger = logging.getLogger(__name__)


def _ttl() -> timedelta:
    return timedelta(seconds=getattr(settings, "VOTING_LOCK_TTL_SECONDS", 600))


@contextmanager
def competition_lock(competition_id: int, operation: str):
    """
    Candado por competencia (compare-and-set sobre la fila Competition).
    - Si otro proceso lo tiene y no está vencido → CompetitionLocked (falla rápido).
    - Un candado más viejo que VOTING_LOCK_TTL_SECONDS se puede tomar.
    - Se libera siempre en finally, solo si seguimos siendo dueños.
    """
    now = timezone.now()
    token = f"{operation}:{uuid.uuid4().hex[:12]}"

    if not Competition.objects.filter(pk=competition_id).exists():
        raise Competition.DoesNotExist(f"Competencia #{competition_id} no existe.")

    acquired = (
        Competition.objects.filter(pk=competition_id)
        .filter(Q(locked_at__isnull=True) | Q(locked_at__lt=now - _ttl()))
        .update(lock_owner=token, locked_at=now)
    )
    if acquired != 1:
        holder = Competition.objects.filter(pk=competition_id).values_list("lock_owner", flat=True).first()
        logger.warning("Competencia #%s bloqueada por %s; se rechaza %s", competition_id, holder, operation)
        raise CompetitionLocked(f"La competencia #{competition_id} está ocupada ({holder}). Reintenta más tarde.")

    logger.debug("Candado tomado %s (competencia #%s)", token, competition_id)
    try:
        yield token
    finally:
        Competition.objects.filter(pk=competition_id, lock_owner=token).update(lock_owner="", locked_at=None)
        logger.debug("Candado liberado %s (competencia #%s)", token, competition_id)

# mixcore/apps/voting/exceptions.py
from __future__ import annotations

from django.core.exceptions import ValidationError


# ------------------------------
# Validación (HTTP 400)
# ------------------------------
class AlreadyVoted(ValidationError):
    """El votante ya emitió su boleta para esta ronda."""


class VotingClosed(ValidationError):
    """La competencia no está en la fase correcta o el plazo ya venció."""


class InvalidTransition(ValidationError):
    """Transición de estado no permitida por la máquina de estados."""


class OverrideRequired(ValidationError):
    """Re-conteo después del plazo con mezclas ya avanzadas: requiere override=True."""


# ------------------------------
# Conflictos (HTTP 409)
# ------------------------------
class VotingConflict(Exception):
    """Base de conflictos de concurrencia o de estado ya existente."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CompetitionLocked(VotingConflict):
    """Otra operación tiene tomado el candado de la competencia."""


class GroupingExists(VotingConflict):
    """Ya existen grupos/asignaciones; hay que limpiar explícitamente antes de re-agrupar."""

# mixcore/apps/judging/services/rubric.py
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping

from django.core.exceptions import ValidationError
from django.db import transaction

from mixcore.apps.competitions.models import Competition
from ..models import JudgingCriteria, ScoringType, SubmissionJudgment

logger = logging.getLogger(__name__)

WEIGHT_EPSILON = Decimal("0.000001")

# Rúbrica de ejemplo para mezclas (usada por seed_demo_competition)
DEFAULT_MIX_RUBRIC: List[Dict[str, Any]] = [
    {
        "name": "Technical Clarity",
        "description": "Claridad técnica, balance de frecuencias, ausencia de artefactos.",
        "scoring_type": ScoringType.SLIDER, "min_score": 1, "max_score": 10,
        "weight": Decimal("0.30"), "display_order": 1,
    },
    {
        "name": "Creative Balance",
        "description": "Balance creativo entre los elementos de la mezcla.",
        "scoring_type": ScoringType.SLIDER, "min_score": 1, "max_score": 10,
        "weight": Decimal("0.25"), "display_order": 2,
    },
    {
        "name": "Dynamic Range",
        "description": "Uso de la dinámica y la compresión.",
        "scoring_type": ScoringType.STARS, "min_score": 1, "max_score": 5,
        "weight": Decimal("0.20"), "display_order": 3,
    },
    {
        "name": "Stereo Imaging",
        "description": "Imagen estéreo y espacialidad.",
        "scoring_type": ScoringType.RADIO_BUTTONS, "min_score": 1, "max_score": 4,
        "weight": Decimal("0.25"), "display_order": 4, "is_comment_required": True,
        "scoring_options": ["Poor", "Fair", "Good", "Excellent"],
    },
]


# ------------------------------
# Pesos
# ------------------------------
def validate_criteria_weights(competition: Competition) -> Decimal:
    """Los pesos de la rúbrica deben sumar 1.0 ± 1e-6. Devuelve la suma."""
    weights = list(JudgingCriteria.objects.filter(competition=competition).values_list("weight", flat=True))
    if not weights:
        raise ValidationError("La competencia no tiene criterios de jueceo definidos.")
    total = sum(weights, Decimal("0"))
    if abs(total - Decimal("1")) > WEIGHT_EPSILON:
        raise ValidationError(f"Los pesos de los criterios suman {total}, deben sumar 1.0.")
    return total


def define_judging_criteria(competition_id: int, criteria: Iterable[Mapping[str, Any]]) -> List[JudgingCriteria]:
    """
    Reemplaza la rúbrica completa. Se congela en cuanto existe un juicio.
    Cada fila se valida con full_clean() y la suma de pesos con validate_criteria_weights().
    """
    competition = Competition.objects.get(pk=competition_id)
    if SubmissionJudgment.objects.filter(competition=competition).exists():
        raise ValidationError("La rúbrica no se puede cambiar: ya hay juicios registrados.")

    rows: List[JudgingCriteria] = []
    for i, data in enumerate(criteria, start=1):
        data = dict(data)
        data.setdefault("display_order", i)
        data["weight"] = Decimal(str(data["weight"]))
        obj = JudgingCriteria(competition=competition, **data)
        obj.full_clean(exclude=["competition"])
        rows.append(obj)

    with transaction.atomic():
        JudgingCriteria.objects.filter(competition=competition).delete()
        for r in rows:
            r.save()
        created = rows
        validate_criteria_weights(competition)  # si falla, se revierte todo

    logger.info("Competencia #%s: rúbrica definida con %s criterios", competition.pk, len(created))
    return created


# ------------------------------
# Puntaje general
# ------------------------------
def compute_overall_score(
    scores: Mapping[int, int],
    criteria: Iterable[JudgingCriteria],
    scale: Decimal,
) -> Decimal:
    """
    Σ ((score − min) / (max − min)) × weight, escalado a [0, scale].
    `scores` es {criteria_id: score}; se asume ya validado contra rangos.
    """
    total = Decimal("0")
    for c in criteria:
        span = Decimal(c.max_score - c.min_score)
        normalized = (Decimal(scores[c.pk]) - Decimal(c.min_score)) / span
        total += normalized * Decimal(c.weight)
    return (total * Decimal(scale)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

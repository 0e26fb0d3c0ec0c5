# mixcore/apps/judging/views.py
from __future__ import annotations

from typing import Any, Dict

from django.contrib.auth.views import redirect_to_login
from django.core.exceptions import ValidationError
from django.http import HttpRequest, HttpResponseForbidden, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from mixcore.apps.competitions.models import Competition
from mixcore.apps.voting.views import _int_field, _payload, json_service_errors
from .models import JudgingCriteria
from .services.judgments import get_judging_progress, record_judgment


# -------------------------------
# Utilidades
# -------------------------------
def _user_is_judge(request: HttpRequest, competition: Competition) -> bool:
    """Staff, grupo "judges" o participante con grupo asignado en la competencia."""
    u = request.user
    if not u.is_authenticated:
        return False
    if u.is_staff or u.is_superuser or u.groups.filter(name="judges").exists():
        return True
    return competition.round1_assignments.filter(voter=u).exists()


def judge_required(view_func):
    def _wrapped(request: HttpRequest, slug: str, *args, **kwargs):
        if not request.user.is_authenticated:
            return redirect_to_login(request.get_full_path())
        competition = get_object_or_404(Competition, slug=slug)
        if not _user_is_judge(request, competition):
            return HttpResponseForbidden("Solo jueces.")
        return view_func(request, competition, *args, **kwargs)
    return _wrapped


def _criteria_json(c: JudgingCriteria) -> Dict[str, Any]:
    return {
        "id": c.pk,
        "name": c.name,
        "scoring_type": c.scoring_type,
        "min_score": c.min_score,
        "max_score": c.max_score,
        "weight": str(c.weight),
        "is_comment_required": c.is_comment_required,
        "scoring_options": c.scoring_options,
    }


# -------------------------------
# Vistas
# -------------------------------
@judge_required
@require_GET
@json_service_errors
def rubric(request: HttpRequest, competition: Competition) -> JsonResponse:
    criteria = JudgingCriteria.objects.filter(competition=competition).order_by("display_order", "id")
    data: Dict[str, Any] = {"ok": True, "criteria": [_criteria_json(c) for c in criteria]}
    if competition.round1_assignments.filter(voter=request.user).exists():
        data["progress"] = get_judging_progress(competition.pk, request.user.pk)
    return JsonResponse(data)


@judge_required
@require_POST
@json_service_errors
def submit_judgment(request: HttpRequest, competition: Competition, submission_id: int) -> JsonResponse:
    """
    Body JSON: {"scores": {"<criteria_id>": n, ...}, "comments": {"<criteria_id>": "..."},
                "overall_comments": "...", "round": 1}
    """
    data = _payload(request)
    raw_scores = data.get("scores") or {}
    if not isinstance(raw_scores, dict):
        raise ValidationError({"scores": ["Debe ser un objeto {criterio: puntaje}."]})
    try:
        scores = {int(k): int(v) for k, v in raw_scores.items()}
        comments = {int(k): str(v) for k, v in (data.get("comments") or {}).items()}
    except (TypeError, ValueError, AttributeError):
        raise ValidationError({"scores": ["Criterios y puntajes deben ser enteros."]})

    voting_round = _int_field(data, "round") if "round" in data else 1
    judgment = record_judgment(
        competition.pk,
        submission_id,
        request.user.pk,
        scores,
        comments=comments,
        overall_comments=str(data.get("overall_comments") or ""),
        voting_round=voting_round,
    )
    return JsonResponse({
        "ok": True,
        "judgment": {
            "id": judgment.pk,
            "is_completed": judgment.is_completed,
            "overall_score": str(judgment.overall_score) if judgment.overall_score is not None else None,
        },
    })

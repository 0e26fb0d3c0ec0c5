# mixcore/apps/voting/views.py
from __future__ import annotations

import json
from functools import wraps
from typing import Any, Dict

from django.contrib.auth.decorators import login_required
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.http import HttpRequest, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from mixcore.apps.competitions.models import Competition
from .exceptions import VotingConflict
from .services.ballots import process_voter_submission
from .services.grouping import get_assigned_submissions_for_voter
from .services.results import get_competition_results
from .services.round2 import (
    get_round2_submissions,
    is_user_eligible_for_round2_voting,
    record_round2_vote,
    update_round2_vote,
)


# -------------------------------
# Utilidades
# -------------------------------
def _error_messages(exc: ValidationError):
    return exc.message_dict if hasattr(exc, "error_dict") else exc.messages


def json_service_errors(view_func):
    """ValidationError → 400, DoesNotExist → 404, VotingConflict → 409."""
    @wraps(view_func)
    def _wrapped(request: HttpRequest, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except ValidationError as exc:
            return JsonResponse({"ok": False, "errors": _error_messages(exc)}, status=400)
        except ObjectDoesNotExist as exc:
            return JsonResponse({"ok": False, "errors": [str(exc) or "No encontrado."]}, status=404)
        except VotingConflict as exc:
            return JsonResponse({"ok": False, "errors": [exc.message]}, status=409)
    return _wrapped


def _payload(request: HttpRequest) -> Dict[str, Any]:
    if request.content_type == "application/json":
        try:
            return json.loads(request.body or b"{}")
        except ValueError:
            raise ValidationError("JSON inválido.")
    return request.POST.dict()


def _int_field(data: Dict[str, Any], name: str) -> int:
    try:
        return int(data[name])
    except (KeyError, TypeError, ValueError):
        raise ValidationError({name: ["Campo requerido (entero)."]})


def _submission_json(s) -> Dict[str, Any]:
    return {"id": s.pk, "mix_title": s.mix_title, "mix_description": s.mix_description}


# -------------------------------
# Ronda 1
# -------------------------------
@login_required
@require_GET
@json_service_errors
def assigned_submissions(request: HttpRequest, slug: str) -> JsonResponse:
    competition = get_object_or_404(Competition, slug=slug)
    items = get_assigned_submissions_for_voter(competition.pk, request.user.pk)
    return JsonResponse({"ok": True, "competition": competition.slug, "submissions": [_submission_json(s) for s in items]})


@login_required
@require_POST
@json_service_errors
def cast_round1_ballot(request: HttpRequest, slug: str) -> JsonResponse:
    competition = get_object_or_404(Competition, slug=slug)
    data = _payload(request)
    votes = process_voter_submission(
        competition.pk,
        request.user.pk,
        _int_field(data, "first"),
        _int_field(data, "second"),
        _int_field(data, "third"),
    )
    return JsonResponse({"ok": True, "votes": [{"submission": v.submission_id, "rank": v.rank, "points": v.points} for v in votes]}, status=201)


# -------------------------------
# Ronda 2
# -------------------------------
@login_required
@require_GET
@json_service_errors
def round2_ballot(request: HttpRequest, slug: str) -> JsonResponse:
    competition = get_object_or_404(Competition, slug=slug)
    return JsonResponse({
        "ok": True,
        "eligible": is_user_eligible_for_round2_voting(competition.pk, request.user.pk),
        "finalists": [_submission_json(s) for s in get_round2_submissions(competition.pk)],
    })


@login_required
@require_POST
@json_service_errors
def cast_round2_vote(request: HttpRequest, slug: str) -> JsonResponse:
    competition = get_object_or_404(Competition, slug=slug)
    data = _payload(request)
    submission_id = _int_field(data, "submission")
    comment = str(data.get("comment") or "")
    if str(data.get("change", "")).lower() in ("1", "true", "yes"):
        vote = update_round2_vote(competition.pk, request.user.pk, submission_id, comment=comment)
        status = 200
    else:
        vote = record_round2_vote(competition.pk, request.user.pk, submission_id, comment=comment)
        status = 201
    return JsonResponse({"ok": True, "vote": {"submission": vote.submission_id}}, status=status)


# -------------------------------
# Resultados públicos
# -------------------------------
@require_GET
@json_service_errors
def competition_results(request: HttpRequest, slug: str) -> JsonResponse:
    competition = get_object_or_404(Competition, slug=slug)
    results = get_competition_results(competition.pk)
    return JsonResponse({"ok": True, "results": results.as_dict()}, encoder=DjangoJSONEncoder)

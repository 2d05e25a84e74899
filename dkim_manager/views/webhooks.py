"""
Webhook views

Admission and conversion endpoints called by the Kubernetes API server.
Each view decodes the review, applies the pure rule from services and
encodes the answer; no view touches the cluster.
"""
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

import json
import logging

from dkim_manager.conf import get_controller_username
from dkim_manager.services.admission import (
    AdmissionDecision,
    Requester,
    validate_dkimkey,
    validate_dnsendpoint,
    validate_secret,
)
from dkim_manager.services.conversion import convert_review

logger = logging.getLogger(__name__)

ADMISSION_REVIEW_API_VERSION = "admission.k8s.io/v1"


class ReviewDecodeError(Exception):
    """The request body is not a usable review object."""
    pass


def _decode_review(request) -> dict:
    try:
        review = json.loads(request.body)
    except (ValueError, UnicodeDecodeError) as e:
        raise ReviewDecodeError(f"invalid JSON body: {e}")
    if not isinstance(review, dict):
        raise ReviewDecodeError("review must be a JSON object")
    return review


def _admission_response(uid: str, decision: AdmissionDecision, code: int = 403) -> JsonResponse:
    response = {"uid": uid, "allowed": decision.allowed}
    if decision.allowed:
        if decision.reason:
            response["status"] = {"code": 200, "message": decision.reason}
    else:
        response["status"] = {"code": code, "message": decision.reason}
    return JsonResponse({
        "apiVersion": ADMISSION_REVIEW_API_VERSION,
        "kind": "AdmissionReview",
        "response": response,
    })


def _admission_request(request) -> dict:
    review = _decode_review(request)
    admission_request = review.get("request")
    if not isinstance(admission_request, dict):
        raise ReviewDecodeError("admission review has no request")
    for key in ("kind", "userInfo"):
        value = admission_request.get(key)
        if value is not None and not isinstance(value, dict):
            raise ReviewDecodeError(f"{key} must be a JSON object")
    for key in ("object", "oldObject"):
        value = admission_request.get(key)
        if value is None:
            continue
        if not isinstance(value, dict):
            raise ReviewDecodeError(f"{key} must be a JSON object")
        for field in ("metadata", "spec"):
            if field in value and not isinstance(value[field], dict):
                raise ReviewDecodeError(f"{key}.{field} must be a JSON object")
    return admission_request


def _handle_admission(request, check) -> JsonResponse:
    """Decode an AdmissionReview, run ``check`` on its request, and answer."""
    try:
        admission_request = _admission_request(request)
    except ReviewDecodeError as e:
        logger.warning(f"Rejecting malformed admission review: {e}")
        return _admission_response("", AdmissionDecision.deny(str(e)), code=400)

    uid = admission_request.get("uid", "")
    decision = check(admission_request)
    if not decision.allowed:
        logger.info(
            f"Denied {admission_request.get('operation')} of "
            f"{(admission_request.get('kind') or {}).get('kind', 'object')} "
            f"'{admission_request.get('namespace', '')}/{admission_request.get('name', '')}' "
            f"by {(admission_request.get('userInfo') or {}).get('username', '')}: {decision.reason}"
        )
    return _admission_response(uid, decision)


@csrf_exempt
@require_POST
def validate_dkimkey_view(request):
    """Reject name and spec changes to DKIMKeys (ttl excepted)."""
    return _handle_admission(request, lambda req: validate_dkimkey(
        req.get("operation", ""),
        req.get("oldObject"),
        req.get("object"),
    ))


@csrf_exempt
@require_POST
def validate_secret_view(request):
    """Protect generated private key Secrets."""
    return _handle_admission(request, lambda req: validate_secret(
        req.get("operation", ""),
        req.get("oldObject"),
        req.get("object"),
        Requester.from_user_info(req.get("userInfo")),
        get_controller_username(),
    ))


@csrf_exempt
@require_POST
def validate_dnsendpoint_view(request):
    """Protect generated DNSEndpoints."""
    return _handle_admission(request, lambda req: validate_dnsendpoint(
        req.get("operation", ""),
        req.get("oldObject"),
        req.get("object"),
        Requester.from_user_info(req.get("userInfo")),
        get_controller_username(),
    ))


@csrf_exempt
@require_POST
def convert_view(request):
    """Convert DKIMKeys between v1 and v2."""
    try:
        review = _decode_review(request)
    except ReviewDecodeError as e:
        logger.warning(f"Rejecting malformed conversion review: {e}")
        return JsonResponse({'status': 'error', 'message': str(e)}, status=400)
    return JsonResponse(convert_review(review))


@require_GET
def healthz(request):
    return JsonResponse({'status': 'ok'})


@require_GET
def readyz(request):
    return JsonResponse({'status': 'ok'})

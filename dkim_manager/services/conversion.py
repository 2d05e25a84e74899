"""
DKIMKey Version Conversion

Converts DKIMKey objects between the v1 schema (status is a single string)
and the v2 schema (status carries observedGeneration and conditions).
v2 is the storage version; the API server calls the conversion webhook
whenever a client asks for the other one.

The mapping is lossless for the three v1 states ('', 'ok', 'invalid').
Any v2 state that is not Ready=True but has conditions becomes 'invalid'.
"""

import copy
import logging

from ..k8s.dkimkey import (
    CONDITION_FALSE,
    CONDITION_READY,
    CONDITION_TRUE,
    DKIMKEY_GROUP,
    DKIMKEY_KIND,
    DKIMKEY_LEGACY_VERSION,
    DKIMKEY_VERSION,
    REASON_INVALID,
    REASON_SUCCEEDED,
    DKIMKeyStatus,
    now_rfc3339,
)

logger = logging.getLogger(__name__)

V1_API_VERSION = f"{DKIMKEY_GROUP}/{DKIMKEY_LEGACY_VERSION}"
V2_API_VERSION = f"{DKIMKEY_GROUP}/{DKIMKEY_VERSION}"

LEGACY_STATUS_OK = "ok"
LEGACY_STATUS_INVALID = "invalid"

CONVERSION_REVIEW_API_VERSION = "apiextensions.k8s.io/v1"


class ConversionError(Exception):
    """An object cannot be converted to the requested version."""
    pass


def _ready_condition(status: str, reason: str, message: str, generation: int) -> dict:
    return {
        "type": CONDITION_READY,
        "status": status,
        "reason": reason,
        "message": message,
        "observedGeneration": generation,
        "lastTransitionTime": now_rfc3339(),
    }


def upgrade(obj: dict) -> dict:
    """
    Convert a v1 DKIMKey to v2.

    Args:
        obj: v1 DKIMKey dict

    Returns:
        v2 DKIMKey dict
    """
    metadata = copy.deepcopy(obj.get("metadata", {}))
    generation = metadata.get("generation", 0)
    legacy_status = obj.get("status") or ""

    if legacy_status == LEGACY_STATUS_OK:
        status = {
            "observedGeneration": generation,
            "conditions": [_ready_condition(
                CONDITION_TRUE, REASON_SUCCEEDED, "DKIM key created successfully", generation,
            )],
        }
    elif legacy_status == LEGACY_STATUS_INVALID:
        status = {
            "observedGeneration": generation,
            "conditions": [_ready_condition(
                CONDITION_FALSE, REASON_INVALID, "DKIMKey is invalid", generation,
            )],
        }
    else:
        status = {}

    return {
        "apiVersion": V2_API_VERSION,
        "kind": obj.get("kind", DKIMKEY_KIND),
        "metadata": metadata,
        "spec": copy.deepcopy(obj.get("spec", {})),
        "status": status,
    }


def downgrade(obj: dict) -> dict:
    """
    Convert a v2 DKIMKey to v1.

    Args:
        obj: v2 DKIMKey dict

    Returns:
        v1 DKIMKey dict; 'status' is omitted when empty
    """
    status = DKIMKeyStatus(copy.deepcopy(obj.get("status") or {}))
    if status.is_ready:
        legacy_status = LEGACY_STATUS_OK
    elif status.conditions:
        legacy_status = LEGACY_STATUS_INVALID
    else:
        legacy_status = ""

    converted = {
        "apiVersion": V1_API_VERSION,
        "kind": obj.get("kind", DKIMKEY_KIND),
        "metadata": copy.deepcopy(obj.get("metadata", {})),
        "spec": copy.deepcopy(obj.get("spec", {})),
    }
    if legacy_status:
        converted["status"] = legacy_status
    return converted


def convert(obj: dict, desired_api_version: str) -> dict:
    """
    Convert a DKIMKey to the desired apiVersion.

    Raises:
        ConversionError: If either version is not served
    """
    source = obj.get("apiVersion", "")
    if source == desired_api_version:
        return copy.deepcopy(obj)
    if source == V1_API_VERSION and desired_api_version == V2_API_VERSION:
        return upgrade(obj)
    if source == V2_API_VERSION and desired_api_version == V1_API_VERSION:
        return downgrade(obj)
    raise ConversionError(f"cannot convert DKIMKey from {source!r} to {desired_api_version!r}")


def convert_review(review: dict) -> dict:
    """
    Handle a ConversionReview request.

    Args:
        review: ConversionReview dict with a 'request'

    Returns:
        ConversionReview dict with a 'response'
    """
    request = review.get("request") or {}
    uid = request.get("uid", "")
    desired = request.get("desiredAPIVersion", "")
    objects = request.get("objects") or []

    try:
        converted = [convert(obj, desired) for obj in objects]
        result = {"status": "Success"}
    except ConversionError as e:
        logger.warning(f"Conversion {uid} failed: {e}")
        converted = []
        result = {"status": "Failure", "message": str(e)}

    return {
        "apiVersion": review.get("apiVersion", CONVERSION_REVIEW_API_VERSION),
        "kind": "ConversionReview",
        "response": {
            "uid": uid,
            "convertedObjects": converted,
            "result": result,
        },
    }

"""
Admission Guards

Pure validation rules for writes intercepted by the admission webhooks:

- DKIMKey updates may not change the name or any spec field except ttl.
- Secrets and DNSEndpoints generated for a DKIMKey may only be deleted
  (or, for Secrets, updated) by the controller itself.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..k8s.dkimkey import DKIMKeySpec, is_owned_by_dkimkey

OPERATION_CREATE = "CREATE"
OPERATION_UPDATE = "UPDATE"
OPERATION_DELETE = "DELETE"

SERVICE_ACCOUNTS_GROUP = "system:serviceaccounts"


@dataclass(frozen=True)
class Requester:
    """Identity of the user issuing the request."""
    username: str = ""
    groups: tuple = field(default_factory=tuple)

    @classmethod
    def from_user_info(cls, user_info: Optional[dict]) -> 'Requester':
        user_info = user_info or {}
        return cls(
            username=user_info.get("username", ""),
            groups=tuple(user_info.get("groups") or ()),
        )


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of an admission check."""
    allowed: bool
    reason: str = ""

    @classmethod
    def allow(cls, reason: str = "") -> 'AdmissionDecision':
        return cls(allowed=True, reason=reason)

    @classmethod
    def deny(cls, reason: str) -> 'AdmissionDecision':
        return cls(allowed=False, reason=reason)


def is_controller(requester: Requester, controller_username: str) -> bool:
    """Whether the requester is the controller (or any service account)."""
    if controller_username and requester.username == controller_username:
        return True
    return SERVICE_ACCOUNTS_GROUP in requester.groups


def validate_dkimkey(operation: str, old: Optional[dict], new: Optional[dict]) -> AdmissionDecision:
    """
    Validate a write to a DKIMKey.

    Only updates are checked: the name and every spec field except ttl
    are immutable. Labels, annotations and status may change freely.
    """
    if operation != OPERATION_UPDATE:
        return AdmissionDecision.allow()

    old = old or {}
    new = new or {}
    if (old.get("metadata") or {}).get("name") != (new.get("metadata") or {}).get("name"):
        return AdmissionDecision.deny("changing dkimkey name is not allowed")

    old_spec = DKIMKeySpec.from_dict(old.get("spec"))
    new_spec = DKIMKeySpec.from_dict(new.get("spec"))
    if old_spec.immutable_fields() != new_spec.immutable_fields():
        return AdmissionDecision.deny("changing dkimkey spec is not allowed")

    return AdmissionDecision.allow()


def validate_secret(
    operation: str,
    old: Optional[dict],
    new: Optional[dict],
    requester: Requester,
    controller_username: str,
) -> AdmissionDecision:
    """
    Validate a write to a Secret.

    Deleting or updating a Secret owned by a DKIMKey is reserved for the
    controller. Other Secrets are not restricted.
    """
    if operation == OPERATION_DELETE:
        if not is_owned_by_dkimkey(old or {}):
            return AdmissionDecision.allow()
        if is_controller(requester, controller_username):
            return AdmissionDecision.allow("deletion by service account allowed")
        return AdmissionDecision.deny("directly deleting DKIM private keys is not allowed")

    if operation == OPERATION_UPDATE:
        if not (is_owned_by_dkimkey(old or {}) or is_owned_by_dkimkey(new or {})):
            return AdmissionDecision.allow()
        if is_controller(requester, controller_username):
            return AdmissionDecision.allow("update by service account allowed")
        return AdmissionDecision.deny("directly updating DKIM private keys is not allowed")

    return AdmissionDecision.allow()


def validate_dnsendpoint(
    operation: str,
    old: Optional[dict],
    new: Optional[dict],
    requester: Requester,
    controller_username: str,
) -> AdmissionDecision:
    """
    Validate a write to a DNSEndpoint.

    Deleting a DNSEndpoint owned by a DKIMKey is reserved for the controller.
    """
    if operation != OPERATION_DELETE:
        return AdmissionDecision.allow()
    if not is_owned_by_dkimkey(old or {}):
        return AdmissionDecision.allow()
    if is_controller(requester, controller_username):
        return AdmissionDecision.allow("deletion by service account allowed")
    return AdmissionDecision.deny("directly deleting DKIM record is not allowed")

"""
DKIMKey CR Operations

Wrapper and CRUD operations for DKIMKey custom resources.
DKIMKey CRs declare a DKIM key pair: the controller stores the private key
in a Secret and publishes the public key through a DNSEndpoint.
"""

from kubernetes.client.rest import ApiException
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional
import copy
import logging

from .client import handle_api_exception
from ..services.dkim import (
    DEFAULT_KEY_LENGTH,
    KEY_TYPE_RSA,
    KeyAlgorithm,
    key_algorithm,
)

logger = logging.getLogger(__name__)

# DKIMKey CRD constants
DKIMKEY_GROUP = "dkim-manager.atelierhsn.com"
DKIMKEY_VERSION = "v2"
DKIMKEY_LEGACY_VERSION = "v1"
DKIMKEY_PLURAL = "dkimkeys"
DKIMKEY_KIND = "DKIMKey"
DKIMKEY_API_VERSION = f"{DKIMKEY_GROUP}/{DKIMKEY_VERSION}"

FINALIZER_NAME = "dkim-manager.atelierhsn.com/finalizer"

DEFAULT_TTL = 86400

# Conditions
CONDITION_READY = "Ready"
CONDITION_TRUE = "True"
CONDITION_FALSE = "False"

REASON_SUCCEEDED = "Succeeded"
REASON_FAILED = "Failed"
REASON_INVALID = "Invalid"


def now_rfc3339() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def api_group(api_version: str) -> str:
    """
    Extract the API group from an apiVersion.

    e.g., 'dkim-manager.atelierhsn.com/v1' -> 'dkim-manager.atelierhsn.com'
    e.g., 'v1' -> '' (core group)
    """
    if "/" not in api_version:
        return ""
    return api_version.split("/", 1)[0]


def owner_ref_matches(owner_ref: dict, group: str, kind: str, name: Optional[str] = None) -> bool:
    """
    Check whether an ownerReference points at an object of the given group/kind.

    The version part of apiVersion is ignored, so references written under any
    served version of the owner's API match.
    """
    if owner_ref.get("kind") != kind:
        return False
    if api_group(owner_ref.get("apiVersion", "")) != group:
        return False
    return name is None or owner_ref.get("name") == name


def is_owned_by_dkimkey(obj: dict, name: Optional[str] = None) -> bool:
    """Check whether a raw object carries an ownerReference to a DKIMKey."""
    owner_refs = (obj.get("metadata") or {}).get("ownerReferences") or []
    if not isinstance(owner_refs, list):
        return False
    return any(
        isinstance(ref, dict) and owner_ref_matches(ref, DKIMKEY_GROUP, DKIMKEY_KIND, name)
        for ref in owner_refs
    )


@dataclass(frozen=True)
class DKIMKeySpec:
    """DKIMKey spec with CRD defaults applied."""
    secret_name: str
    selector: str
    domain: str
    ttl: int = DEFAULT_TTL
    key_length: int = DEFAULT_KEY_LENGTH
    key_type: str = KEY_TYPE_RSA

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'DKIMKeySpec':
        """Create DKIMKeySpec from K8s spec dict."""
        data = data or {}
        return cls(
            secret_name=data.get("secretName", ""),
            selector=data.get("selector", ""),
            domain=data.get("domain", ""),
            ttl=data.get("ttl") or DEFAULT_TTL,
            key_length=data.get("keyLength") or DEFAULT_KEY_LENGTH,
            key_type=data.get("keyType") or KEY_TYPE_RSA,
        )

    def to_dict(self) -> dict:
        return {
            "secretName": self.secret_name,
            "selector": self.selector,
            "domain": self.domain,
            "ttl": self.ttl,
            "keyLength": self.key_length,
            "keyType": self.key_type,
        }

    @property
    def secret_key(self) -> str:
        """Data key of the private key inside the generated Secret."""
        return f"{self.domain}.{self.selector}.key"

    def algorithm(self) -> KeyAlgorithm:
        return key_algorithm(self.key_type, self.key_length)

    def immutable_fields(self) -> 'DKIMKeySpec':
        """Copy with the mutable ttl field blanked out, for comparisons."""
        return replace(self, ttl=0)


class DKIMKeyStatus:
    """
    Parsed DKIMKey CR status.

    Wraps the status dict of the owning DKIMKey, so condition updates
    are reflected in the raw object.
    """

    def __init__(self, status_dict: dict):
        self._raw = status_dict

    @property
    def observed_generation(self) -> int:
        return self._raw.get("observedGeneration", 0)

    @property
    def conditions(self) -> list[dict]:
        return self._raw.get("conditions") or []

    def get_condition(self, condition_type: str) -> Optional[dict]:
        """Get a specific condition by type."""
        for cond in self.conditions:
            if cond.get("type") == condition_type:
                return cond
        return None

    def has_condition(self, condition_type: str, status: str, reason: str) -> bool:
        cond = self.get_condition(condition_type)
        return (
            cond is not None
            and cond.get("status") == status
            and cond.get("reason") == reason
        )

    @property
    def is_ready(self) -> bool:
        cond = self.get_condition(CONDITION_READY)
        return cond is not None and cond.get("status") == CONDITION_TRUE

    def set_condition(
        self,
        condition_type: str,
        status: str,
        reason: str,
        message: str,
        generation: int,
    ) -> bool:
        """
        Set a condition and the observed generation.

        lastTransitionTime only moves when the condition status changes.
        Re-setting an identical condition leaves the status untouched.

        Returns:
            True if the status changed and needs to be written
        """
        changed = self._raw.get("observedGeneration") != generation
        self._raw["observedGeneration"] = generation

        cond = self.get_condition(condition_type)
        if cond is None:
            self._raw.setdefault("conditions", []).append({
                "type": condition_type,
                "status": status,
                "reason": reason,
                "message": message,
                "observedGeneration": generation,
                "lastTransitionTime": now_rfc3339(),
            })
            return True

        desired = {
            "status": status,
            "reason": reason,
            "message": message,
            "observedGeneration": generation,
        }
        if all(cond.get(k) == v for k, v in desired.items()):
            return changed

        if cond.get("status") != status:
            cond["lastTransitionTime"] = now_rfc3339()
        cond.update(desired)
        return True

    def to_dict(self) -> dict:
        return self._raw


class DKIMKey:
    """
    DKIMKey CR wrapper.

    Represents a DKIMKey custom resource with easy access to spec and status.
    """

    def __init__(self, cr_dict: dict):
        self._raw = cr_dict
        self._raw.setdefault("metadata", {})
        if not isinstance(self._raw.get("status"), dict):
            self._raw["status"] = {}

    @property
    def metadata(self) -> dict:
        return self._raw["metadata"]

    @property
    def name(self) -> str:
        return self.metadata.get("name", "")

    @property
    def namespace(self) -> str:
        return self.metadata.get("namespace", "")

    @property
    def uid(self) -> str:
        return self.metadata.get("uid", "")

    @property
    def generation(self) -> int:
        return self.metadata.get("generation", 0)

    @property
    def finalizers(self) -> list[str]:
        return self.metadata.get("finalizers") or []

    @property
    def is_being_deleted(self) -> bool:
        return bool(self.metadata.get("deletionTimestamp"))

    @property
    def spec(self) -> DKIMKeySpec:
        return DKIMKeySpec.from_dict(self._raw.get("spec"))

    @property
    def status(self) -> DKIMKeyStatus:
        return DKIMKeyStatus(self._raw["status"])

    @property
    def is_ready(self) -> bool:
        return self.status.is_ready

    def has_finalizer(self, finalizer: str = FINALIZER_NAME) -> bool:
        return finalizer in self.finalizers

    def add_finalizer(self, finalizer: str = FINALIZER_NAME) -> None:
        if not self.has_finalizer(finalizer):
            self.metadata["finalizers"] = self.finalizers + [finalizer]

    def remove_finalizer(self, finalizer: str = FINALIZER_NAME) -> None:
        self.metadata["finalizers"] = [f for f in self.finalizers if f != finalizer]

    def owner_reference(self) -> dict:
        """Controller ownerReference to stamp on generated objects."""
        return {
            "apiVersion": DKIMKEY_API_VERSION,
            "kind": DKIMKEY_KIND,
            "name": self.name,
            "uid": self.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }

    def owns(self, obj: dict) -> bool:
        """Check whether a raw object is owned by this DKIMKey."""
        return is_owned_by_dkimkey(obj, self.name)

    def to_dict(self) -> dict:
        """Return raw CR dict."""
        return self._raw

    def copy(self) -> 'DKIMKey':
        return DKIMKey(copy.deepcopy(self._raw))


# =============================================================================
# CRUD Operations
# =============================================================================

def get_dkimkey(custom_api, namespace: str, name: str) -> DKIMKey:
    """
    Get a DKIMKey CR.

    Raises:
        K8sNotFoundError: If the DKIMKey does not exist
        K8sClientError: For other K8s errors
    """
    try:
        result = custom_api.get_namespaced_custom_object(
            group=DKIMKEY_GROUP,
            version=DKIMKEY_VERSION,
            namespace=namespace,
            plural=DKIMKEY_PLURAL,
            name=name,
        )
        return DKIMKey(result)
    except ApiException as e:
        handle_api_exception(e, f"DKIMKey '{namespace}/{name}'")


def list_dkimkeys(custom_api, namespace: Optional[str] = None) -> list[DKIMKey]:
    """
    List DKIMKey CRs in a namespace, or across the cluster.

    Raises:
        K8sClientError: For K8s errors
    """
    try:
        if namespace:
            result = custom_api.list_namespaced_custom_object(
                group=DKIMKEY_GROUP,
                version=DKIMKEY_VERSION,
                namespace=namespace,
                plural=DKIMKEY_PLURAL,
            )
        else:
            result = custom_api.list_cluster_custom_object(
                group=DKIMKEY_GROUP,
                version=DKIMKEY_VERSION,
                plural=DKIMKEY_PLURAL,
            )
        return [DKIMKey(item) for item in result.get("items", [])]
    except ApiException as e:
        handle_api_exception(e, "DKIMKey list")


def update_dkimkey(custom_api, dkimkey: DKIMKey) -> DKIMKey:
    """
    Replace a DKIMKey CR (metadata and spec; status is ignored by the API).

    Raises:
        K8sConflictError: If the object changed since it was read
        K8sClientError: For other K8s errors
    """
    logger.debug(f"Updating DKIMKey '{dkimkey.namespace}/{dkimkey.name}'")
    try:
        result = custom_api.replace_namespaced_custom_object(
            group=DKIMKEY_GROUP,
            version=DKIMKEY_VERSION,
            namespace=dkimkey.namespace,
            plural=DKIMKEY_PLURAL,
            name=dkimkey.name,
            body=dkimkey.to_dict(),
        )
        return DKIMKey(result)
    except ApiException as e:
        handle_api_exception(e, f"DKIMKey '{dkimkey.namespace}/{dkimkey.name}'")


def update_dkimkey_status(custom_api, dkimkey: DKIMKey) -> DKIMKey:
    """
    Replace the status subresource of a DKIMKey CR.

    Raises:
        K8sConflictError: If the object changed since it was read
        K8sClientError: For other K8s errors
    """
    logger.debug(f"Updating status of DKIMKey '{dkimkey.namespace}/{dkimkey.name}'")
    try:
        result = custom_api.replace_namespaced_custom_object_status(
            group=DKIMKEY_GROUP,
            version=DKIMKEY_VERSION,
            namespace=dkimkey.namespace,
            plural=DKIMKEY_PLURAL,
            name=dkimkey.name,
            body=dkimkey.to_dict(),
        )
        return DKIMKey(result)
    except ApiException as e:
        handle_api_exception(e, f"DKIMKey '{dkimkey.namespace}/{dkimkey.name}' status")

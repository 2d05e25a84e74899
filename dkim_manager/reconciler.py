"""
DKIMKey Reconciler

Drives a DKIMKey from "declared" to "ready":

1. add the finalizer;
2. recover the key pair from an existing Secret, or generate a new one and
   store it in an immutable Secret;
3. publish the public key through a DNSEndpoint (server-side apply);
4. record the outcome as the Ready condition.

Each step is a separate write. A pass interrupted between two of them is
resumed by the next one: an existing Secret is always re-read and its public
key re-derived, never regenerated.

The reconciler does not retry. ``reconcile`` returns whether another pass
is worthwhile and the caller decides when to run it.
"""

from dataclasses import dataclass
from typing import Optional
import logging

from .k8s.client import K8sClientError, K8sNotFoundError
from .k8s.dkimkey import (
    CONDITION_FALSE,
    CONDITION_READY,
    CONDITION_TRUE,
    FINALIZER_NAME,
    REASON_FAILED,
    REASON_INVALID,
    REASON_SUCCEEDED,
    DKIMKey,
)
from .k8s.dnsendpoint import build_dnsendpoint
from .k8s.secrets import build_dkim_secret, get_secret_value
from .services.dkim import (
    KeyGenerationError,
    KeyValidationError,
    derive_public_key,
    generate_keypair,
)
from .services.dns import DNSRecord, build_dns_record

logger = logging.getLogger(__name__)

DEFAULT_FIELD_MANAGER = "dkim-manager"


class ResourceConflictError(Exception):
    """A target name is taken by an object this DKIMKey does not own."""
    pass


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one reconcile pass."""
    requeue: bool = False


class DKIMKeyReconciler:
    """
    Reconciles DKIMKey objects against a resource store.

    Args:
        store: Resource store (see ``k8s.store.KubernetesStore``)
        namespace: If set, only DKIMKeys in this namespace are managed;
            others are marked Invalid
        field_manager: Field manager name for server-side apply
    """

    def __init__(self, store, namespace: str = "", field_manager: str = DEFAULT_FIELD_MANAGER):
        self.store = store
        self.namespace = namespace
        self.field_manager = field_manager

    def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """
        Run one reconcile pass for a DKIMKey.

        Never raises for store or key errors; they are logged and folded
        into the returned result.
        """
        try:
            dkimkey = self.store.get_dkimkey(namespace, name)
        except K8sNotFoundError:
            logger.debug(f"DKIMKey '{namespace}/{name}' not found, nothing to do")
            return ReconcileResult()
        except K8sClientError as e:
            logger.error(f"Failed to get DKIMKey '{namespace}/{name}': {e}")
            return ReconcileResult(requeue=True)

        try:
            return self._reconcile(dkimkey)
        except K8sClientError as e:
            logger.error(f"Failed to persist DKIMKey '{namespace}/{name}': {e}")
            return ReconcileResult(requeue=True)

    def _reconcile(self, dkimkey: DKIMKey) -> ReconcileResult:
        key = f"{dkimkey.namespace}/{dkimkey.name}"

        if self.namespace and dkimkey.namespace != self.namespace:
            if dkimkey.status.has_condition(CONDITION_READY, CONDITION_FALSE, REASON_INVALID):
                return ReconcileResult()
            logger.info(f"DKIMKey '{key}' is in an invalid namespace, ignoring")
            return self._set_not_ready(dkimkey, REASON_INVALID, "DKIMKey is in an invalid namespace")

        if dkimkey.is_being_deleted:
            logger.info(f"Finalizing DKIMKey '{key}'")
            return self._finalize(dkimkey)

        if not dkimkey.has_finalizer(FINALIZER_NAME):
            dkimkey.add_finalizer(FINALIZER_NAME)
            self.store.update_dkimkey(dkimkey)
            return ReconcileResult()

        if dkimkey.is_ready and dkimkey.status.observed_generation == dkimkey.generation:
            return ReconcileResult()

        return self._converge(dkimkey)

    # -------------------------------------------------------------------------
    # Convergence
    # -------------------------------------------------------------------------

    def _converge(self, dkimkey: DKIMKey) -> ReconcileResult:
        key = f"{dkimkey.namespace}/{dkimkey.name}"
        try:
            record = self._recover_record(dkimkey)
            self._check_dnsendpoint_available(dkimkey)
            if record is None:
                record = self._generate_record(dkimkey)
            self._publish_record(dkimkey, record)
        except (KeyValidationError, ResourceConflictError) as e:
            logger.error(f"DKIMKey '{key}' is invalid: {e}")
            return self._set_not_ready(dkimkey, REASON_INVALID, str(e))
        except (KeyGenerationError, K8sClientError) as e:
            logger.error(f"Failed to reconcile DKIMKey '{key}': {e}")
            return self._set_not_ready(dkimkey, REASON_FAILED, str(e))

        changed = dkimkey.status.set_condition(
            CONDITION_READY,
            CONDITION_TRUE,
            REASON_SUCCEEDED,
            "DKIM key created successfully",
            dkimkey.generation,
        )
        if changed:
            self.store.update_dkimkey_status(dkimkey)
        logger.info(f"DKIMKey '{key}' is ready")
        return ReconcileResult()

    def _build_record(self, dkimkey: DKIMKey, public_key: str) -> DNSRecord:
        spec = dkimkey.spec
        return build_dns_record(spec.selector, spec.domain, spec.ttl, spec.key_type, public_key)

    def _recover_record(self, dkimkey: DKIMKey) -> Optional[DNSRecord]:
        """
        Rebuild the DNS record from an existing Secret.

        Returns:
            The record, or None if the Secret does not exist yet

        Raises:
            ResourceConflictError: If the Secret belongs to something else
            KeyValidationError: If the stored key is missing or unusable
        """
        spec = dkimkey.spec
        try:
            secret = self.store.get_secret(dkimkey.namespace, spec.secret_name)
        except K8sNotFoundError:
            return None
        except K8sClientError as e:
            raise K8sClientError(f"Failed to read Secret: {e}") from e

        if not dkimkey.owns(secret):
            raise ResourceConflictError("a secret key with the same name already exists")

        private_pem = get_secret_value(secret, spec.secret_key)
        if private_pem is None:
            raise KeyValidationError("private key not found in secret")

        public_key = derive_public_key(spec.algorithm(), private_pem)
        logger.info(f"Recovered public key for DKIMKey '{dkimkey.namespace}/{dkimkey.name}' from existing Secret")
        return self._build_record(dkimkey, public_key)

    def _generate_record(self, dkimkey: DKIMKey) -> DNSRecord:
        """
        Generate a key pair, store the private key and return the DNS record.

        Raises:
            KeyValidationError: If the declared key type/length is invalid
            KeyGenerationError: If key generation fails
            K8sClientError: If the Secret cannot be created
        """
        spec = dkimkey.spec
        algorithm = spec.algorithm()

        try:
            material = generate_keypair(algorithm)
        except KeyGenerationError as e:
            raise KeyGenerationError(f"Failed to generate key: {e}") from e

        secret = build_dkim_secret(
            name=spec.secret_name,
            namespace=dkimkey.namespace,
            data_key=spec.secret_key,
            private_pem=material.private_pem,
            owner_reference=dkimkey.owner_reference(),
        )
        try:
            self.store.create_secret(secret)
        except K8sClientError as e:
            raise K8sClientError(f"Failed to reconcile Secret: {e}") from e

        return self._build_record(dkimkey, material.public_key)

    def _check_dnsendpoint_available(self, dkimkey: DKIMKey) -> None:
        """Raise ResourceConflictError if a foreign DNSEndpoint holds the name."""
        try:
            existing = self.store.get_dnsendpoint(dkimkey.namespace, dkimkey.name)
        except K8sNotFoundError:
            return
        except K8sClientError as e:
            raise K8sClientError(f"Failed to read DNSEndpoint: {e}") from e
        if not dkimkey.owns(existing):
            raise ResourceConflictError("a DKIM record with the same name already exists")

    def _publish_record(self, dkimkey: DKIMKey, record: DNSRecord) -> None:
        body = build_dnsendpoint(
            name=dkimkey.name,
            namespace=dkimkey.namespace,
            endpoint=record.to_endpoint(),
            owner_reference=dkimkey.owner_reference(),
        )
        try:
            self.store.apply_dnsendpoint(body, self.field_manager)
        except K8sClientError as e:
            raise K8sClientError(f"Failed to reconcile DNSEndpoint: {e}") from e
        logger.info(f"Published {record.dns_name} for DKIMKey '{dkimkey.namespace}/{dkimkey.name}'")

    # -------------------------------------------------------------------------
    # Finalization
    # -------------------------------------------------------------------------

    def _finalize(self, dkimkey: DKIMKey) -> ReconcileResult:
        """Delete owned DNSEndpoints and Secrets, then release the finalizer."""
        if not dkimkey.has_finalizer(FINALIZER_NAME):
            return ReconcileResult()

        key = f"{dkimkey.namespace}/{dkimkey.name}"
        try:
            for endpoint in self.store.list_dnsendpoints(dkimkey.namespace):
                if dkimkey.owns(endpoint):
                    self.store.delete_dnsendpoint(dkimkey.namespace, endpoint["metadata"]["name"])
            for secret in self.store.list_secrets(dkimkey.namespace):
                if dkimkey.owns(secret):
                    self.store.delete_secret(dkimkey.namespace, secret["metadata"]["name"])
        except K8sClientError as e:
            logger.error(f"Failed to finalize DKIMKey '{key}': {e}")
            self._set_not_ready(dkimkey, REASON_FAILED, f"Failed to finalize: {e}")
            return ReconcileResult(requeue=True)

        dkimkey.remove_finalizer(FINALIZER_NAME)
        self.store.update_dkimkey(dkimkey)
        logger.info(f"Done finalizing DKIMKey '{key}'")
        return ReconcileResult()

    def _set_not_ready(self, dkimkey: DKIMKey, reason: str, message: str) -> ReconcileResult:
        changed = dkimkey.status.set_condition(
            CONDITION_READY,
            CONDITION_FALSE,
            reason,
            message,
            dkimkey.generation,
        )
        if changed:
            self.store.update_dkimkey_status(dkimkey)
        return ReconcileResult(requeue=reason == REASON_FAILED)

"""
DNSEndpoint CR Operations

Operations on external-dns DNSEndpoint custom resources.
Each DKIMKey publishes its public key through one DNSEndpoint
with a single TXT endpoint.
"""

from kubernetes.client.rest import ApiException
import logging

from .client import handle_api_exception

logger = logging.getLogger(__name__)

# DNSEndpoint CRD constants
DNSENDPOINT_GROUP = "externaldns.k8s.io"
DNSENDPOINT_VERSION = "v1alpha1"
DNSENDPOINT_PLURAL = "dnsendpoints"
DNSENDPOINT_KIND = "DNSEndpoint"

APPLY_PATCH_CONTENT_TYPE = "application/apply-patch+yaml"


def build_dnsendpoint(name: str, namespace: str, endpoint: dict, owner_reference: dict) -> dict:
    """
    Build a DNSEndpoint manifest with a single endpoint.

    Args:
        name: DNSEndpoint name (same as the DKIMKey)
        namespace: Namespace
        endpoint: Endpoint dict (dnsName, recordTTL, recordType, targets)
        owner_reference: ownerReference of the DKIMKey

    Returns:
        DNSEndpoint manifest dict
    """
    return {
        "apiVersion": f"{DNSENDPOINT_GROUP}/{DNSENDPOINT_VERSION}",
        "kind": DNSENDPOINT_KIND,
        "metadata": {
            "name": name,
            "namespace": namespace,
            "ownerReferences": [owner_reference],
        },
        "spec": {
            "endpoints": [endpoint],
        },
    }


def get_dnsendpoint(custom_api, namespace: str, name: str) -> dict:
    """
    Get a DNSEndpoint CR.

    Raises:
        K8sNotFoundError: If the DNSEndpoint does not exist
        K8sClientError: For other K8s errors
    """
    try:
        return custom_api.get_namespaced_custom_object(
            group=DNSENDPOINT_GROUP,
            version=DNSENDPOINT_VERSION,
            namespace=namespace,
            plural=DNSENDPOINT_PLURAL,
            name=name,
        )
    except ApiException as e:
        handle_api_exception(e, f"DNSEndpoint '{namespace}/{name}'")


def list_dnsendpoints(custom_api, namespace: str) -> list[dict]:
    """
    List DNSEndpoint CRs in a namespace.

    Raises:
        K8sClientError: For K8s errors
    """
    try:
        result = custom_api.list_namespaced_custom_object(
            group=DNSENDPOINT_GROUP,
            version=DNSENDPOINT_VERSION,
            namespace=namespace,
            plural=DNSENDPOINT_PLURAL,
        )
        return result.get("items", [])
    except ApiException as e:
        if e.status == 404:
            return []
        handle_api_exception(e, f"DNSEndpoint list in '{namespace}'")


def apply_dnsendpoint(custom_api, body: dict, field_manager: str) -> dict:
    """
    Server-side apply a DNSEndpoint, forcing ownership of conflicting fields.

    Raises:
        K8sClientError: For K8s errors
    """
    metadata = body["metadata"]
    logger.info(f"Applying DNSEndpoint '{metadata['namespace']}/{metadata['name']}'")
    try:
        return custom_api.patch_namespaced_custom_object(
            group=DNSENDPOINT_GROUP,
            version=DNSENDPOINT_VERSION,
            namespace=metadata["namespace"],
            plural=DNSENDPOINT_PLURAL,
            name=metadata["name"],
            body=body,
            field_manager=field_manager,
            force=True,
            _content_type=APPLY_PATCH_CONTENT_TYPE,
        )
    except ApiException as e:
        handle_api_exception(e, f"DNSEndpoint '{metadata['namespace']}/{metadata['name']}'")


def delete_dnsendpoint(custom_api, namespace: str, name: str) -> None:
    """
    Delete a DNSEndpoint CR. One that is already gone is not an error.

    Raises:
        K8sClientError: For K8s errors
    """
    logger.info(f"Deleting DNSEndpoint '{namespace}/{name}'")
    try:
        custom_api.delete_namespaced_custom_object(
            group=DNSENDPOINT_GROUP,
            version=DNSENDPOINT_VERSION,
            namespace=namespace,
            plural=DNSENDPOINT_PLURAL,
            name=name,
        )
    except ApiException as e:
        if e.status == 404:
            return
        handle_api_exception(e, f"DNSEndpoint '{namespace}/{name}'")

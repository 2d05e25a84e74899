"""
Secret Operations

Operations on the Secrets holding DKIM private keys.
Objects are handled as plain dicts in API (camelCase) form.
"""

from kubernetes.client.rest import ApiException
from typing import Optional
import base64
import logging

from .client import handle_api_exception

logger = logging.getLogger(__name__)

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "dkim-manager"


def build_dkim_secret(
    name: str,
    namespace: str,
    data_key: str,
    private_pem: bytes,
    owner_reference: dict,
) -> dict:
    """
    Build the immutable Secret holding a DKIM private key.

    Args:
        name: Secret name
        namespace: Secret namespace
        data_key: Data key, e.g. 'example.com.s1.key'
        private_pem: PEM-encoded private key
        owner_reference: ownerReference of the DKIMKey

    Returns:
        Secret manifest dict
    """
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": {MANAGED_BY_LABEL: MANAGED_BY_VALUE},
            "ownerReferences": [owner_reference],
        },
        "type": "Opaque",
        "immutable": True,
        "data": {
            data_key: base64.b64encode(private_pem).decode('ascii'),
        },
    }


def get_secret_value(secret: dict, key: str) -> Optional[bytes]:
    """
    Get a decoded value from a Secret dict.

    Returns:
        The decoded bytes, or None if the key is missing
    """
    encoded = (secret.get("data") or {}).get(key)
    if encoded is None:
        return None
    return base64.b64decode(encoded)


def get_secret(core_api, namespace: str, name: str) -> dict:
    """
    Get a Secret as a dict.

    Raises:
        K8sNotFoundError: If the Secret does not exist
        K8sClientError: For other K8s errors
    """
    try:
        secret = core_api.read_namespaced_secret(name=name, namespace=namespace)
        return core_api.api_client.sanitize_for_serialization(secret)
    except ApiException as e:
        handle_api_exception(e, f"Secret '{namespace}/{name}'")


def list_secrets(core_api, namespace: str) -> list[dict]:
    """
    List Secrets in a namespace.

    Raises:
        K8sClientError: For K8s errors
    """
    try:
        result = core_api.list_namespaced_secret(namespace=namespace)
        return [core_api.api_client.sanitize_for_serialization(s) for s in result.items]
    except ApiException as e:
        if e.status == 404:
            return []
        handle_api_exception(e, f"Secret list in '{namespace}'")


def create_dkim_secret(core_api, body: dict) -> dict:
    """
    Create a DKIM private key Secret.

    Raises:
        K8sConflictError: If a Secret with the same name already exists
        K8sClientError: For other K8s errors
    """
    metadata = body["metadata"]
    logger.info(f"Creating Secret '{metadata['namespace']}/{metadata['name']}'")
    try:
        result = core_api.create_namespaced_secret(namespace=metadata["namespace"], body=body)
        return core_api.api_client.sanitize_for_serialization(result)
    except ApiException as e:
        handle_api_exception(e, f"Secret '{metadata['namespace']}/{metadata['name']}'")


def delete_secret(core_api, namespace: str, name: str) -> None:
    """
    Delete a Secret. A Secret that is already gone is not an error.

    Raises:
        K8sClientError: For K8s errors
    """
    logger.info(f"Deleting Secret '{namespace}/{name}'")
    try:
        core_api.delete_namespaced_secret(name=name, namespace=namespace)
    except ApiException as e:
        if e.status == 404:
            return
        handle_api_exception(e, f"Secret '{namespace}/{name}'")

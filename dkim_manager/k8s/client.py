"""
Kubernetes API access for dkim-manager.

Builds the API clients used by the controller and translates API server
errors into the exceptions the reconciler classifies.
"""

from kubernetes import client, config
from kubernetes.client.rest import ApiException
import logging
import os
from functools import lru_cache

logger = logging.getLogger(__name__)


class K8sClientError(Exception):
    """An API server call for a DKIMKey, Secret or DNSEndpoint failed."""
    pass


class K8sConnectionError(K8sClientError):
    """No usable cluster credentials were found."""
    pass


class K8sNotFoundError(K8sClientError):
    """The object does not exist."""
    pass


class K8sConflictError(K8sClientError):
    """The name is taken, or the object changed since it was read."""
    pass


@lru_cache(maxsize=1)
def get_k8s_clients() -> tuple[client.CoreV1Api, client.CustomObjectsApi]:
    """
    Build the Secret and custom object API clients, once per process.

    In a pod the service account is used; elsewhere KUBECONFIG
    (default ~/.kube/config). Both clients share one connection pool.

    Raises:
        K8sConnectionError: If neither source yields a configuration
    """
    try:
        config.load_incluster_config()
        logger.info("Using in-cluster service account credentials")
    except config.ConfigException:
        kubeconfig_path = os.path.expanduser(os.environ.get('KUBECONFIG', '~/.kube/config'))
        try:
            config.load_kube_config(config_file=kubeconfig_path)
        except config.ConfigException as e:
            raise K8sConnectionError(f"No Kubernetes credentials available: {e}")
        logger.info(f"Using kubeconfig {kubeconfig_path}")

    api_client = client.ApiClient()
    return client.CoreV1Api(api_client), client.CustomObjectsApi(api_client)


def handle_api_exception(e: ApiException, resource_name: str = "resource") -> None:
    """
    Re-raise an ApiException as a K8sClientError subclass.

    404 and 409 get their own types because the reconciler branches on
    them (absent Secret, duplicate create). Everything else, including
    admission denials, is a plain K8sClientError carrying the status code.

    Raises:
        K8sNotFoundError: On 404
        K8sConflictError: On 409
        K8sClientError: On any other status
    """
    if e.status == 404:
        raise K8sNotFoundError(f"{resource_name} not found")
    if e.status == 409:
        raise K8sConflictError(f"{resource_name} conflicts with an existing object")
    raise K8sClientError(f"{resource_name}: API server returned {e.status} {e.reason}")

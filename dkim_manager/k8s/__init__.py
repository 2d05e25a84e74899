"""
dkim-manager Kubernetes Integration

Wrappers and operations for DKIMKey, Secret and DNSEndpoint resources.
"""

from .client import (
    K8sClientError,
    K8sConnectionError,
    K8sNotFoundError,
    K8sConflictError,
    get_k8s_clients,
)

from .dkimkey import (
    DKIMKEY_GROUP,
    DKIMKEY_KIND,
    FINALIZER_NAME,
    DKIMKey,
    DKIMKeySpec,
    DKIMKeyStatus,
    is_owned_by_dkimkey,
    owner_ref_matches,
)

from .dnsendpoint import (
    DNSENDPOINT_GROUP,
    DNSENDPOINT_KIND,
    build_dnsendpoint,
)

from .secrets import (
    build_dkim_secret,
    get_secret_value,
)

from .store import KubernetesStore

__all__ = [
    # Exceptions
    'K8sClientError',
    'K8sConnectionError',
    'K8sNotFoundError',
    'K8sConflictError',
    'get_k8s_clients',

    # DKIMKey
    'DKIMKEY_GROUP',
    'DKIMKEY_KIND',
    'FINALIZER_NAME',
    'DKIMKey',
    'DKIMKeySpec',
    'DKIMKeyStatus',
    'is_owned_by_dkimkey',
    'owner_ref_matches',

    # DNSEndpoint
    'DNSENDPOINT_GROUP',
    'DNSENDPOINT_KIND',
    'build_dnsendpoint',

    # Secret
    'build_dkim_secret',
    'get_secret_value',

    # Store
    'KubernetesStore',
]

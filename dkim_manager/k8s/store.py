"""
Resource Store

Groups the DKIMKey, Secret and DNSEndpoint operations behind one object
bound to a pair of API clients. The reconciler receives a store instead of
reaching for module-level clients.
"""

from . import dkimkey as dkimkey_ops
from . import dnsendpoint as dnsendpoint_ops
from . import secrets as secret_ops
from .client import get_k8s_clients
from .dkimkey import DKIMKey


class KubernetesStore:
    """Resource store backed by the Kubernetes API."""

    def __init__(self, core_api, custom_api):
        self.core_api = core_api
        self.custom_api = custom_api

    @classmethod
    def from_config(cls) -> 'KubernetesStore':
        """Build a store from in-cluster config or kubeconfig."""
        core_api, custom_api = get_k8s_clients()
        return cls(core_api, custom_api)

    # DKIMKeys

    def get_dkimkey(self, namespace: str, name: str) -> DKIMKey:
        return dkimkey_ops.get_dkimkey(self.custom_api, namespace, name)

    def list_dkimkeys(self, namespace: str = "") -> list[DKIMKey]:
        return dkimkey_ops.list_dkimkeys(self.custom_api, namespace or None)

    def update_dkimkey(self, dkimkey: DKIMKey) -> DKIMKey:
        return dkimkey_ops.update_dkimkey(self.custom_api, dkimkey)

    def update_dkimkey_status(self, dkimkey: DKIMKey) -> DKIMKey:
        return dkimkey_ops.update_dkimkey_status(self.custom_api, dkimkey)

    # Secrets

    def get_secret(self, namespace: str, name: str) -> dict:
        return secret_ops.get_secret(self.core_api, namespace, name)

    def list_secrets(self, namespace: str) -> list[dict]:
        return secret_ops.list_secrets(self.core_api, namespace)

    def create_secret(self, body: dict) -> dict:
        return secret_ops.create_dkim_secret(self.core_api, body)

    def delete_secret(self, namespace: str, name: str) -> None:
        secret_ops.delete_secret(self.core_api, namespace, name)

    # DNSEndpoints

    def get_dnsendpoint(self, namespace: str, name: str) -> dict:
        return dnsendpoint_ops.get_dnsendpoint(self.custom_api, namespace, name)

    def list_dnsendpoints(self, namespace: str) -> list[dict]:
        return dnsendpoint_ops.list_dnsendpoints(self.custom_api, namespace)

    def apply_dnsendpoint(self, body: dict, field_manager: str) -> dict:
        return dnsendpoint_ops.apply_dnsendpoint(self.custom_api, body, field_manager)

    def delete_dnsendpoint(self, namespace: str, name: str) -> None:
        dnsendpoint_ops.delete_dnsendpoint(self.custom_api, namespace, name)

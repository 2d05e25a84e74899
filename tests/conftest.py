"""Shared fixtures: Django settings and an in-memory resource store."""

import copy
import os
import uuid

import django
import pytest

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "dkim_manager_site.settings")
django.setup()

from dkim_manager.k8s.client import K8sConflictError, K8sNotFoundError  # noqa: E402
from dkim_manager.k8s.dkimkey import DKIMKEY_API_VERSION, DKIMKey  # noqa: E402
from dkim_manager.reconciler import DKIMKeyReconciler  # noqa: E402


class FakeStore:
    """
    In-memory stand-in for KubernetesStore.

    Mimics the API server behaviours the reconciler relies on: status
    and main resource are written separately, a deleting object
    disappears once its finalizers are gone, and create fails on an
    existing name.
    """

    def __init__(self):
        self.dkimkeys = {}
        self.secrets = {}
        self.dnsendpoints = {}
        self.writes = []
        self.field_managers = []
        self.failures = {}

    def _maybe_fail(self, operation):
        exc = self.failures.get(operation)
        if exc is not None:
            raise exc

    # DKIMKeys

    def add_dkimkey(self, name, namespace="default", generation=1, **spec):
        spec.setdefault("secretName", name)
        spec.setdefault("selector", "s1")
        spec.setdefault("domain", "example.com")
        raw = {
            "apiVersion": DKIMKEY_API_VERSION,
            "kind": "DKIMKey",
            "metadata": {
                "name": name,
                "namespace": namespace,
                "uid": str(uuid.uuid4()),
                "generation": generation,
            },
            "spec": spec,
        }
        self.dkimkeys[(namespace, name)] = raw
        return raw

    def raw_dkimkey(self, namespace, name):
        return self.dkimkeys[(namespace, name)]

    def get_dkimkey(self, namespace, name):
        self._maybe_fail("get_dkimkey")
        try:
            return DKIMKey(copy.deepcopy(self.dkimkeys[(namespace, name)]))
        except KeyError:
            raise K8sNotFoundError(f"DKIMKey '{namespace}/{name}' not found")

    def list_dkimkeys(self, namespace=""):
        return [
            DKIMKey(copy.deepcopy(raw))
            for (ns, _), raw in self.dkimkeys.items()
            if not namespace or ns == namespace
        ]

    def update_dkimkey(self, dkimkey):
        self._maybe_fail("update_dkimkey")
        key = (dkimkey.namespace, dkimkey.name)
        stored = self.dkimkeys[key]
        self.writes.append(("update_dkimkey", key))
        stored["metadata"] = copy.deepcopy(dkimkey.metadata)
        stored["spec"] = copy.deepcopy(dkimkey.to_dict().get("spec"))
        if stored["metadata"].get("deletionTimestamp") and not stored["metadata"].get("finalizers"):
            del self.dkimkeys[key]
        return DKIMKey(copy.deepcopy(stored))

    def update_dkimkey_status(self, dkimkey):
        self._maybe_fail("update_dkimkey_status")
        key = (dkimkey.namespace, dkimkey.name)
        self.writes.append(("update_dkimkey_status", key))
        self.dkimkeys[key]["status"] = copy.deepcopy(dkimkey.status.to_dict())
        return DKIMKey(copy.deepcopy(self.dkimkeys[key]))

    def mark_deleted(self, namespace, name):
        self.dkimkeys[(namespace, name)]["metadata"]["deletionTimestamp"] = "2026-10-18T00:00:00Z"

    # Secrets

    def get_secret(self, namespace, name):
        self._maybe_fail("get_secret")
        try:
            return copy.deepcopy(self.secrets[(namespace, name)])
        except KeyError:
            raise K8sNotFoundError(f"Secret '{namespace}/{name}' not found")

    def list_secrets(self, namespace):
        self._maybe_fail("list_secrets")
        return [copy.deepcopy(s) for (ns, _), s in self.secrets.items() if ns == namespace]

    def create_secret(self, body):
        self._maybe_fail("create_secret")
        key = (body["metadata"]["namespace"], body["metadata"]["name"])
        if key in self.secrets:
            raise K8sConflictError(f"Secret '{key[0]}/{key[1]}' already exists")
        self.writes.append(("create_secret", key))
        self.secrets[key] = copy.deepcopy(body)
        return copy.deepcopy(body)

    def delete_secret(self, namespace, name):
        self._maybe_fail("delete_secret")
        self.writes.append(("delete_secret", (namespace, name)))
        self.secrets.pop((namespace, name), None)

    # DNSEndpoints

    def get_dnsendpoint(self, namespace, name):
        self._maybe_fail("get_dnsendpoint")
        try:
            return copy.deepcopy(self.dnsendpoints[(namespace, name)])
        except KeyError:
            raise K8sNotFoundError(f"DNSEndpoint '{namespace}/{name}' not found")

    def list_dnsendpoints(self, namespace):
        self._maybe_fail("list_dnsendpoints")
        return [copy.deepcopy(d) for (ns, _), d in self.dnsendpoints.items() if ns == namespace]

    def apply_dnsendpoint(self, body, field_manager):
        self._maybe_fail("apply_dnsendpoint")
        key = (body["metadata"]["namespace"], body["metadata"]["name"])
        self.writes.append(("apply_dnsendpoint", key))
        self.field_managers.append(field_manager)
        self.dnsendpoints[key] = copy.deepcopy(body)
        return copy.deepcopy(body)

    def delete_dnsendpoint(self, namespace, name):
        self._maybe_fail("delete_dnsendpoint")
        self.writes.append(("delete_dnsendpoint", (namespace, name)))
        self.dnsendpoints.pop((namespace, name), None)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def reconciler(store):
    return DKIMKeyReconciler(store)


@pytest.fixture
def converge(store, reconciler):
    """Reconcile a DKIMKey until a pass makes no further writes."""

    def _converge(namespace, name, max_passes=5):
        result = None
        for _ in range(max_passes):
            before = len(store.writes)
            result = reconciler.reconcile(namespace, name)
            if len(store.writes) == before:
                break
        return result

    return _converge

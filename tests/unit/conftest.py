"""Shared fixtures: in-memory stand-ins for the Kubernetes API clients."""

from __future__ import annotations

import base64
from typing import Any
from unittest.mock import patch

import pytest
from kubernetes import client

from derived_secret_operator.config import OPERATOR_NAMESPACE
from derived_secret_operator.constants import MASTER_PASSWORD_KEY


def _not_found() -> client.exceptions.ApiException:
    return client.exceptions.ApiException(status=404, reason="Not Found")


def _conflict() -> client.exceptions.ApiException:
    return client.exceptions.ApiException(status=409, reason="Conflict")


class FakeCoreApi:
    """Stores secrets in a dict and enforces resourceVersion on replace."""

    def __init__(self):
        self.secrets: dict[tuple[str, str], dict[str, Any]] = {}
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _to_model(self, stored: dict[str, Any]) -> client.V1Secret:
        return client.V1Secret(
            metadata=client.V1ObjectMeta(
                name=stored["name"],
                namespace=stored["namespace"],
                labels=dict(stored["labels"]) or None,
                annotations=dict(stored["annotations"]) or None,
                owner_references=list(stored["owner_references"]) or None,
                resource_version=stored["resource_version"],
            ),
            type=stored["type"],
            data=dict(stored["data"]),
        )

    def _store(self, body: client.V1Secret, namespace: str) -> dict[str, Any]:
        meta = body.metadata
        stored = {
            "name": meta.name,
            "namespace": namespace,
            "labels": dict(meta.labels or {}),
            "annotations": dict(meta.annotations or {}),
            "owner_references": list(meta.owner_references or []),
            "resource_version": self._next_version(),
            "type": body.type or "Opaque",
            "data": dict(body.data or {}),
        }
        self.secrets[(namespace, meta.name)] = stored
        return stored

    def put(self, namespace: str, name: str, data: dict[str, str], **kwargs: Any) -> None:
        """Seed a secret with plain-text data."""
        encoded = {k: base64.b64encode(v.encode("utf-8")).decode("utf-8") for k, v in data.items()}
        body = client.V1Secret(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace, **kwargs),
            data=encoded,
        )
        self._store(body, namespace)

    def plain_data(self, namespace: str, name: str) -> dict[str, str]:
        stored = self.secrets[(namespace, name)]
        return {k: base64.b64decode(v).decode("utf-8") for k, v in stored["data"].items()}

    def read_namespaced_secret(self, name: str, namespace: str) -> client.V1Secret:
        stored = self.secrets.get((namespace, name))
        if stored is None:
            raise _not_found()
        return self._to_model(stored)

    def create_namespaced_secret(self, namespace: str, body: client.V1Secret, **kwargs: Any) -> client.V1Secret:
        if (namespace, body.metadata.name) in self.secrets:
            raise _conflict()
        return self._to_model(self._store(body, namespace))

    def replace_namespaced_secret(
        self, name: str, namespace: str, body: client.V1Secret, **kwargs: Any
    ) -> client.V1Secret:
        stored = self.secrets.get((namespace, name))
        if stored is None:
            raise _not_found()
        if body.metadata.resource_version != stored["resource_version"]:
            raise _conflict()
        return self._to_model(self._store(body, namespace))

    def delete_namespaced_secret(self, name: str, namespace: str, **kwargs: Any) -> None:
        if self.secrets.pop((namespace, name), None) is None:
            raise _not_found()


class FakeCustomObjectsApi:
    """Stores custom objects and records reconcile-trigger patches."""

    def __init__(self):
        self.objects: dict[tuple[str, str | None, str], dict[str, Any]] = {}
        self.patches: list[tuple[str, str | None, str, dict[str, Any]]] = []

    def add(self, plural: str, name: str, spec: dict[str, Any], namespace: str | None = None) -> dict[str, Any]:
        metadata = {"name": name}
        if namespace is not None:
            metadata["namespace"] = namespace
        obj = {"metadata": metadata, "spec": spec}
        self.objects[(plural, namespace, name)] = obj
        return obj

    def get_cluster_custom_object(self, group: str, version: str, plural: str, name: str) -> dict[str, Any]:
        obj = self.objects.get((plural, None, name))
        if obj is None:
            raise _not_found()
        return obj

    def list_cluster_custom_object(self, group: str, version: str, plural: str, **kwargs: Any) -> dict[str, Any]:
        return {"items": [obj for (p, _, _), obj in self.objects.items() if p == plural]}

    def _patch(self, plural: str, namespace: str | None, name: str, body: dict[str, Any]) -> dict[str, Any]:
        obj = self.objects.get((plural, namespace, name))
        if obj is None:
            raise _not_found()
        annotations = obj["metadata"].setdefault("annotations", {})
        annotations.update(body.get("metadata", {}).get("annotations", {}))
        self.patches.append((plural, namespace, name, body))
        return obj

    def patch_cluster_custom_object(self, group: str, version: str, plural: str, name: str, body: dict[str, Any]):
        return self._patch(plural, None, name, body)

    def patch_namespaced_custom_object(
        self, group: str, version: str, namespace: str, plural: str, name: str, body: dict[str, Any]
    ):
        return self._patch(plural, namespace, name, body)


@pytest.fixture
def core_api() -> FakeCoreApi:
    return FakeCoreApi()


@pytest.fixture
def custom_api() -> FakeCustomObjectsApi:
    return FakeCustomObjectsApi()


@pytest.fixture
def k8s(core_api, custom_api):
    """Route every handler module's client getters to the fakes."""
    targets = [
        "derived_secret_operator.handlers.master_password",
        "derived_secret_operator.handlers.derived_secret",
        "derived_secret_operator.handlers.secret_watch",
    ]
    patchers = []
    for target in targets:
        patchers.append(patch(f"{target}.get_k8s_client", return_value=custom_api))
        if target != "derived_secret_operator.handlers.secret_watch":
            patchers.append(patch(f"{target}.get_core_client", return_value=core_api))
    patchers.append(patch("derived_secret_operator.utils.events.kopf.event"))

    for p in patchers:
        p.start()
    yield core_api, custom_api
    for p in reversed(patchers):
        p.stop()


@pytest.fixture
def default_master(core_api, custom_api) -> str:
    """A MasterPassword named "default" with an existing backing secret."""
    value = "master-password-for-tests-0123456789abcdefghij"
    custom_api.add("masterpasswords", "default", {})
    core_api.put(OPERATOR_NAMESPACE, "default-mp", {MASTER_PASSWORD_KEY: value})
    return value

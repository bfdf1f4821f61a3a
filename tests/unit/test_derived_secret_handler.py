"""Tests for the DerivedSecret handler."""

from __future__ import annotations

from typing import Any

import kopf
import pytest

from derived_secret_operator.config import OPERATOR_NAMESPACE
from derived_secret_operator.constants import (
    FINALIZER,
    KIND_DERIVED_SECRET,
    MASTER_PASSWORD_KEY,
    REASON_INVALID_SPEC,
    REASON_RECONCILIATION_FAILED,
)
from derived_secret_operator.exceptions import InvalidSpecError, MasterSecretUnavailableError
from derived_secret_operator.handlers.base import to_kopf_error
from derived_secret_operator.handlers.derived_secret import DerivedSecretHandler, build_owner_reference
from derived_secret_operator.services.derivation import BASE62_ALPHABET, derive_secret, key_hash


def make_meta(finalizers: list[str] | None = None, **extra: Any) -> dict[str, Any]:
    return {
        "name": "app-secrets",
        "namespace": "default",
        "uid": "uid-1234",
        "generation": 1,
        "finalizers": finalizers if finalizers is not None else [FINALIZER],
        **extra,
    }


def make_body(meta: dict[str, Any], spec: dict[str, Any]) -> dict[str, Any]:
    return {
        "apiVersion": "secrets.oleksiyp.dev/v1alpha1",
        "kind": KIND_DERIVED_SECRET,
        "metadata": meta,
        "spec": spec,
    }


PASSWORD_SPEC = {"keys": {"db-password": {"type": "password"}}}


def run(handler: DerivedSecretHandler, spec: dict[str, Any], meta: dict[str, Any], status: dict[str, Any]) -> kopf.Patch:
    patch = kopf.Patch()
    handler.reconcile(spec, meta, status, patch, make_body(meta, spec))
    return patch


class TestLifecycle:
    """Test cases for lifecycle dispatch."""

    def test_first_pass_adds_finalizer_and_requeues(self, k8s, default_master):
        """Test that the first pass only adds the finalizer."""
        core_api, _ = k8s
        handler = DerivedSecretHandler()
        meta = make_meta(finalizers=[])
        patch = kopf.Patch()

        with pytest.raises(kopf.TemporaryError):
            handler.reconcile(PASSWORD_SPEC, meta, {}, patch, make_body(meta, PASSWORD_SPEC))

        assert FINALIZER in patch.metadata["finalizers"]
        assert ("default", "app-secrets") not in core_api.secrets

    def test_second_pass_materializes_secret(self, k8s, default_master):
        """Test that the pass after the finalizer was added creates the secret."""
        core_api, _ = k8s
        handler = DerivedSecretHandler()

        with pytest.raises(kopf.TemporaryError):
            run(handler, PASSWORD_SPEC, make_meta(finalizers=[]), {})
        patch = run(handler, PASSWORD_SPEC, make_meta(), {})

        value = core_api.plain_data("default", "app-secrets")["db-password"]
        assert len(value) == 26
        assert all(c in BASE62_ALPHABET for c in value)
        assert value == derive_secret(default_master, "default/app-secrets/db-password", 26)

        assert patch.status["ready"] is True
        assert patch.status["secretName"] == "app-secrets"
        assert patch.status["keyHashes"] == {"db-password": key_hash(value)}
        assert patch.status["lastUpdated"]
        assert patch.status["conditions"][0]["status"] == "True"

    def test_terminating_deletes_secret_and_removes_finalizer(self, k8s, default_master):
        """Test that deletion removes the secret before releasing the finalizer."""
        core_api, _ = k8s
        handler = DerivedSecretHandler()
        run(handler, PASSWORD_SPEC, make_meta(), {})
        assert ("default", "app-secrets") in core_api.secrets

        patch = run(
            handler,
            PASSWORD_SPEC,
            make_meta(deletionTimestamp="2024-01-01T00:00:00Z"),
            {},
        )

        assert ("default", "app-secrets") not in core_api.secrets
        assert patch.metadata["finalizers"] is None

    def test_terminating_tolerates_missing_secret(self, k8s):
        """Test that an already deleted secret does not block finalization."""
        handler = DerivedSecretHandler()
        meta = make_meta(finalizers=[FINALIZER, "other"], deletionTimestamp="2024-01-01T00:00:00Z")
        patch = kopf.Patch()

        handler.delete(meta, patch, make_body(meta, PASSWORD_SPEC))

        assert patch.metadata["finalizers"] == ["other"]

    def test_delete_without_finalizer_is_noop(self, k8s):
        """Test that deletion does nothing when the finalizer is absent."""
        core_api, _ = k8s
        core_api.put("default", "app-secrets", {"db-password": "keep"})
        handler = DerivedSecretHandler()
        meta = make_meta(finalizers=[], deletionTimestamp="2024-01-01T00:00:00Z")
        patch = kopf.Patch()

        handler.delete(meta, patch, make_body(meta, PASSWORD_SPEC))

        assert ("default", "app-secrets") in core_api.secrets
        assert "finalizers" not in patch.metadata


class TestMaterialize:
    """Test cases for deriving and writing the secret."""

    def test_secret_carries_owner_reference_labels_and_type(self, k8s, default_master):
        """Test the shape of the materialized secret."""
        core_api, _ = k8s
        spec = {
            "keys": {"token": {"type": "encryption-key"}},
            "type": "kubernetes.io/basic-auth",
            "labels": {"app": "demo"},
            "annotations": {"team": "platform"},
        }
        run(DerivedSecretHandler(), spec, make_meta(), {})

        stored = core_api.secrets[("default", "app-secrets")]
        assert stored["type"] == "kubernetes.io/basic-auth"
        assert stored["labels"] == {"app": "demo"}
        assert stored["annotations"] == {"team": "platform"}
        assert stored["owner_references"] == [build_owner_reference(make_meta())]
        assert len(core_api.plain_data("default", "app-secrets")["token"]) == 48

    def test_custom_length(self, k8s, default_master):
        """Test that custom keys honour their declared length."""
        core_api, _ = k8s
        spec = {"keys": {"api-key": {"type": "custom", "length": 64}}}

        run(DerivedSecretHandler(), spec, make_meta(), {})

        assert len(core_api.plain_data("default", "app-secrets")["api-key"]) == 64

    def test_recreated_secret_is_identical(self, k8s, default_master):
        """Test that deleting the materialized secret reproduces the same data."""
        core_api, _ = k8s
        handler = DerivedSecretHandler()

        first = run(handler, PASSWORD_SPEC, make_meta(), {})
        original = core_api.plain_data("default", "app-secrets")
        del core_api.secrets[("default", "app-secrets")]
        second = run(handler, PASSWORD_SPEC, make_meta(), dict(first.status))

        assert core_api.plain_data("default", "app-secrets") == original
        assert second.status["keyHashes"] == first.status["keyHashes"]

    def test_unchanged_secret_is_not_rewritten(self, k8s, default_master):
        """Test that a reconcile with nothing to do leaves the secret alone."""
        core_api, _ = k8s
        handler = DerivedSecretHandler()

        first = run(handler, PASSWORD_SPEC, make_meta(), {})
        version = core_api.secrets[("default", "app-secrets")]["resource_version"]
        second = run(handler, PASSWORD_SPEC, make_meta(), dict(first.status))

        assert core_api.secrets[("default", "app-secrets")]["resource_version"] == version
        assert second.status["lastUpdated"] == first.status["lastUpdated"]

    def test_drifted_secret_is_repaired(self, k8s, default_master):
        """Test that edited data is overwritten with the derived value."""
        core_api, _ = k8s
        handler = DerivedSecretHandler()
        run(handler, PASSWORD_SPEC, make_meta(), {})
        expected = core_api.plain_data("default", "app-secrets")

        stored = core_api.secrets[("default", "app-secrets")]
        core_api.put("default", "app-secrets", {"db-password": "tampered"}, owner_references=stored["owner_references"])
        run(handler, PASSWORD_SPEC, make_meta(), {})

        assert core_api.plain_data("default", "app-secrets") == expected

    def test_type_change_recreates_secret(self, k8s, default_master):
        """Test that a new secret type replaces the immutable secret."""
        core_api, _ = k8s
        handler = DerivedSecretHandler()
        run(handler, PASSWORD_SPEC, make_meta(), {})

        spec = {**PASSWORD_SPEC, "type": "example.com/custom"}
        run(handler, spec, make_meta(), {})

        assert core_api.secrets[("default", "app-secrets")]["type"] == "example.com/custom"
        assert core_api.secrets[("default", "app-secrets")]["owner_references"] == [build_owner_reference(make_meta())]

    def test_master_change_changes_derived_value(self, k8s, default_master):
        """Test that a new master value yields a new derived value."""
        core_api, _ = k8s
        handler = DerivedSecretHandler()
        run(handler, PASSWORD_SPEC, make_meta(), {})
        before = core_api.plain_data("default", "app-secrets")["db-password"]

        core_api.put(OPERATOR_NAMESPACE, "default-mp", {MASTER_PASSWORD_KEY: "a-completely-different-master-value"})
        patch = run(handler, PASSWORD_SPEC, make_meta(), {})

        after = core_api.plain_data("default", "app-secrets")["db-password"]
        assert after != before
        assert patch.status["keyHashes"] == {"db-password": key_hash(after)}

    def test_keys_use_their_own_master_password(self, k8s, default_master):
        """Test that each key is derived from the MasterPassword it names."""
        core_api, custom_api = k8s
        custom_api.add("masterpasswords", "other", {"secret": {"name": "other-store"}})
        core_api.put(OPERATOR_NAMESPACE, "other-store", {MASTER_PASSWORD_KEY: "other-master-value-0123456789"})
        spec = {
            "keys": {
                "a": {"type": "password"},
                "b": {"type": "password", "masterPassword": "other"},
            }
        }

        run(DerivedSecretHandler(), spec, make_meta(), {})

        data = core_api.plain_data("default", "app-secrets")
        assert data["a"] == derive_secret(default_master, "default/app-secrets/a", 26)
        assert data["b"] == derive_secret("other-master-value-0123456789", "default/app-secrets/b", 26)


class TestFailures:
    """Test cases for failed reconciles."""

    def test_missing_master_leaves_secret_untouched(self, k8s, default_master):
        """Test that an unavailable master sets Ready=False and keeps the old secret."""
        core_api, _ = k8s
        handler = DerivedSecretHandler()
        run(handler, PASSWORD_SPEC, make_meta(), {})
        before = dict(core_api.secrets[("default", "app-secrets")])

        del core_api.secrets[(OPERATOR_NAMESPACE, "default-mp")]
        patch = kopf.Patch()
        with pytest.raises(MasterSecretUnavailableError):
            handler.reconcile(PASSWORD_SPEC, make_meta(), {}, patch, make_body(make_meta(), PASSWORD_SPEC))

        assert core_api.secrets[("default", "app-secrets")] == before
        assert patch.status["ready"] is False
        assert patch.status["conditions"][0]["reason"] == REASON_RECONCILIATION_FAILED

    def test_unknown_master_password(self, k8s):
        """Test that a reference to a missing MasterPassword fails without writing."""
        core_api, _ = k8s
        spec = {"keys": {"k": {"type": "password", "masterPassword": "nope"}}}
        patch = kopf.Patch()

        with pytest.raises(MasterSecretUnavailableError, match="nope"):
            DerivedSecretHandler().reconcile(spec, make_meta(), {}, patch, make_body(make_meta(), spec))

        assert ("default", "app-secrets") not in core_api.secrets
        assert patch.status["ready"] is False

    def test_empty_keys_is_invalid_spec(self, k8s, default_master):
        """Test that a declaration without keys is reported as InvalidSpec."""
        patch = kopf.Patch()

        with pytest.raises(InvalidSpecError):
            DerivedSecretHandler().reconcile({"keys": {}}, make_meta(), {}, patch, make_body(make_meta(), {}))

        assert patch.status["conditions"][0]["reason"] == REASON_INVALID_SPEC

    def test_short_context_fails_permanently(self, k8s, default_master):
        """Test that a context too short for Argon2 is not retried."""
        core_api, _ = k8s
        spec = {"keys": {"c": {"type": "password"}}}
        meta = {"name": "b", "namespace": "a", "uid": "uid-1", "generation": 1, "finalizers": [FINALIZER]}
        patch = kopf.Patch()

        with pytest.raises(InvalidSpecError, match="at least 8 bytes") as exc_info:
            DerivedSecretHandler().reconcile(spec, meta, {}, patch, make_body(meta, spec))

        assert isinstance(to_kopf_error(exc_info.value), kopf.PermanentError)
        assert ("a", "b") not in core_api.secrets
        assert patch.status["conditions"][0]["reason"] == REASON_INVALID_SPEC

"""Tests for loading, bootstrapping, and writing the rotator secret."""

import json

import pytest
from structlog.testing import capture_logs

from jwks_rotator.crypto.types import (
    JWKSDocument,
    KeyAlgorithm,
    PrivateKeyManifest,
    PublicKeyEntry,
)
from jwks_rotator.rotation.errors import MalformedStateError
from jwks_rotator.rotation.state import initial_secret_data, load_jwks, write_state
from jwks_rotator.store.base import (
    JWKS_FIELD,
    MANIFEST_FIELD,
    SecretRecord,
    SecretStoreHTTPError,
)
from jwks_rotator.store.memory import InMemorySecretStore

NS = "auth"
NAME = "jwt-keys"


def _entry(kid: str) -> PublicKeyEntry:
    return PublicKeyEntry(kty="OKP", kid=kid, alg="EdDSA", crv="Ed448", x="AA")


def _manifest(kid: str) -> str:
    return PrivateKeyManifest(
        algorithm=KeyAlgorithm.ED448, key_id=kid, content="PEM"
    ).to_json()


class _RacingStore(InMemorySecretStore):
    """Another rotator creates the secret between our get and create."""

    async def get(self, namespace: str, name: str) -> SecretRecord | None:
        record = await super().get(namespace, name)
        if record is None and self.get_calls == 1:
            self.records[(namespace, name)] = initial_secret_data()
        return record


class _UndecodableJwksStore(InMemorySecretStore):
    """Returns a secret whose jwks.json could not be decoded as text."""

    async def get(self, namespace: str, name: str) -> SecretRecord | None:
        return SecretRecord(namespace=namespace, name=name, undecodable=[JWKS_FIELD])


class _ForbiddenStore(InMemorySecretStore):
    async def get(self, namespace: str, name: str) -> SecretRecord | None:
        raise SecretStoreHTTPError(403, "forbidden", '{"reason": "Forbidden"}')


class TestLoadJwks:
    """Tests for load_jwks."""

    async def test_bootstraps_missing_secret(self, store: InMemorySecretStore) -> None:
        jwks = await load_jwks(store, NS, NAME)
        assert jwks.keys == []
        assert store.create_calls == 1
        data = store.records[(NS, NAME)]
        assert json.loads(data[JWKS_FIELD]) == {"keys": []}
        assert json.loads(data[MANIFEST_FIELD]) == {}

    async def test_bootstrap_is_idempotent(self, store: InMemorySecretStore) -> None:
        first = await load_jwks(store, NS, NAME)
        second = await load_jwks(store, NS, NAME)
        assert first == second == JWKSDocument()
        assert store.create_calls == 1

    async def test_returns_existing_keys(self, store: InMemorySecretStore) -> None:
        doc = JWKSDocument(keys=[_entry("k2"), _entry("k1")])
        store.records[(NS, NAME)] = {
            JWKS_FIELD: doc.to_json(),
            MANIFEST_FIELD: _manifest("k2"),
        }
        jwks = await load_jwks(store, NS, NAME)
        assert jwks.kids() == ["k2", "k1"]
        assert store.create_calls == 0

    async def test_create_conflict_rereads_secret(self) -> None:
        store = _RacingStore()
        jwks = await load_jwks(store, NS, NAME)
        assert jwks.keys == []
        assert store.create_calls == 1
        assert store.get_calls == 2

    async def test_missing_field_is_malformed(self, store: InMemorySecretStore) -> None:
        store.records[(NS, NAME)] = {"other": "x"}
        with pytest.raises(MalformedStateError, match="no jwks.json"):
            await load_jwks(store, NS, NAME)

    @pytest.mark.parametrize("raw", ["not json", '{"keys": 3}', "[]"])
    async def test_unparsable_field_is_malformed(
        self, store: InMemorySecretStore, raw: str
    ) -> None:
        store.records[(NS, NAME)] = {JWKS_FIELD: raw}
        with pytest.raises(MalformedStateError, match="invalid jwks.json"):
            await load_jwks(store, NS, NAME)

    async def test_non_text_jwks_is_malformed(self) -> None:
        store = _UndecodableJwksStore()
        with pytest.raises(MalformedStateError, match="non-text"):
            await load_jwks(store, NS, NAME)
        assert store.create_calls == 0

    async def test_private_material_in_jwks_is_malformed(
        self, store: InMemorySecretStore
    ) -> None:
        leaked = {"kty": "OKP", "kid": "a", "alg": "EdDSA", "x": "AA", "d": "AA"}
        store.records[(NS, NAME)] = {JWKS_FIELD: json.dumps({"keys": [leaked]})}
        with pytest.raises(MalformedStateError):
            await load_jwks(store, NS, NAME)

    async def test_transport_failure_propagates(self) -> None:
        store = _ForbiddenStore()
        with pytest.raises(SecretStoreHTTPError) as info:
            await load_jwks(store, NS, NAME)
        assert info.value.status_code == 403
        assert store.create_calls == 0

    async def test_warns_when_manifest_out_of_sync(
        self, store: InMemorySecretStore
    ) -> None:
        store.records[(NS, NAME)] = {
            JWKS_FIELD: JWKSDocument(keys=[_entry("k2")]).to_json(),
            MANIFEST_FIELD: _manifest("k1"),
        }
        with capture_logs() as logs:
            await load_jwks(store, NS, NAME)
        warnings = [e for e in logs if e["log_level"] == "warning"]
        assert warnings[0]["manifest_kid"] == "k1"
        assert warnings[0]["newest_kid"] == "k2"

    async def test_no_warning_when_in_sync(self, store: InMemorySecretStore) -> None:
        store.records[(NS, NAME)] = {
            JWKS_FIELD: JWKSDocument(keys=[_entry("k2")]).to_json(),
            MANIFEST_FIELD: _manifest("k2"),
        }
        with capture_logs() as logs:
            await load_jwks(store, NS, NAME)
        assert all(e["log_level"] != "warning" for e in logs)


class TestWriteState:
    """Tests for write_state."""

    async def test_patches_both_fields_once(self, store: InMemorySecretStore) -> None:
        store.records[(NS, NAME)] = initial_secret_data() | {"keep": "me"}
        manifest = PrivateKeyManifest(
            algorithm=KeyAlgorithm.ED448, key_id="k1", content="PEM"
        )
        await write_state(store, NS, NAME, manifest, JWKSDocument(keys=[_entry("k1")]))

        assert store.patch_calls == 1
        data = store.records[(NS, NAME)]
        assert json.loads(data[MANIFEST_FIELD])["keyId"] == "k1"
        assert json.loads(data[JWKS_FIELD])["keys"][0]["kid"] == "k1"
        assert data["keep"] == "me"

    async def test_missing_secret_raises(self, store: InMemorySecretStore) -> None:
        manifest = PrivateKeyManifest(
            algorithm=KeyAlgorithm.ED448, key_id="k1", content="PEM"
        )
        with pytest.raises(SecretStoreHTTPError) as info:
            await write_state(store, NS, NAME, manifest, JWKSDocument())
        assert info.value.status_code == 404

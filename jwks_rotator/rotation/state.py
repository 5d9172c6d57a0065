"""Read and write the rotator's secret, bootstrapping it when absent."""

import structlog
from pydantic import ValidationError

from jwks_rotator.crypto.types import JWKSDocument, PrivateKeyManifest
from jwks_rotator.rotation.errors import MalformedStateError
from jwks_rotator.store.base import (
    JWKS_FIELD,
    MANIFEST_FIELD,
    SecretRecord,
    SecretStore,
    SecretStoreHTTPError,
)

HTTP_CONFLICT = 409
EMPTY_MANIFEST = "{}"

logger = structlog.get_logger(__name__)


def initial_secret_data() -> dict[str, str]:
    """Fields of a freshly bootstrapped secret: no keys, no private key."""
    return {
        JWKS_FIELD: JWKSDocument().to_json(),
        MANIFEST_FIELD: EMPTY_MANIFEST,
    }


async def _bootstrap(store: SecretStore, namespace: str, name: str) -> SecretRecord:
    try:
        record = await store.create(namespace, name, initial_secret_data())
    except SecretStoreHTTPError as exc:
        if exc.status_code != HTTP_CONFLICT:
            raise
        # Created concurrently by someone else; use theirs.
        existing = await store.get(namespace, name)
        if existing is None:
            raise
        return existing
    logger.info("Secret bootstrapped", namespace=namespace, secret=name)
    return record


def _parse_jwks(record: SecretRecord) -> JWKSDocument:
    if JWKS_FIELD in record.undecodable:
        msg = f"secret {record.namespace}/{record.name} holds a non-text {JWKS_FIELD}"
        raise MalformedStateError(msg)
    raw = record.data.get(JWKS_FIELD)
    if raw is None:
        msg = f"secret {record.namespace}/{record.name} has no {JWKS_FIELD} field"
        raise MalformedStateError(msg)
    try:
        return JWKSDocument.model_validate_json(raw)
    except ValidationError as exc:
        msg = f"secret {record.namespace}/{record.name} holds an invalid {JWKS_FIELD}"
        raise MalformedStateError(msg) from exc


def _warn_on_manifest_mismatch(record: SecretRecord, jwks: JWKSDocument) -> None:
    """Log when the stored private key does not match the newest public key."""
    raw = record.data.get(MANIFEST_FIELD)
    if not raw or raw == EMPTY_MANIFEST:
        if jwks.keys:
            logger.warning("Private key manifest missing", newest_kid=jwks.keys[0].kid)
        return
    try:
        manifest = PrivateKeyManifest.model_validate_json(raw)
    except ValidationError:
        logger.warning("Private key manifest unreadable", field=MANIFEST_FIELD)
        return
    newest = jwks.keys[0].kid if jwks.keys else None
    if manifest.key_id != newest:
        logger.warning(
            "Private key manifest out of sync with JWKS",
            manifest_kid=manifest.key_id,
            newest_kid=newest,
        )


async def load_jwks(store: SecretStore, namespace: str, name: str) -> JWKSDocument:
    """Load the current JWKS, creating an empty secret when none exists.

    Raises MalformedStateError when the secret exists without a readable
    JWKS. Store failures propagate unchanged.
    """
    record = await store.get(namespace, name)
    if record is None:
        record = await _bootstrap(store, namespace, name)
    jwks = _parse_jwks(record)
    _warn_on_manifest_mismatch(record, jwks)
    logger.info("Loaded current JWKS", key_count=len(jwks.keys), kids=jwks.kids())
    return jwks


async def write_state(
    store: SecretStore,
    namespace: str,
    name: str,
    manifest: PrivateKeyManifest,
    jwks: JWKSDocument,
) -> None:
    """Patch the private key manifest and the JWKS in one request."""
    await store.patch(
        namespace,
        name,
        {
            MANIFEST_FIELD: manifest.to_json(),
            JWKS_FIELD: jwks.to_json(),
        },
    )

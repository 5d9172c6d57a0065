"""One rotation cycle: load, generate, merge, write."""

import secrets
import time
from collections.abc import Callable
from enum import StrEnum

import structlog
from pydantic import BaseModel, Field

from jwks_rotator.core.settings import RotationSettings
from jwks_rotator.crypto.keys import (
    generate_key_id,
    generate_keypair,
    jwk_alg,
    pem_to_jwk_entry,
)
from jwks_rotator.crypto.types import JWKSDocument, PrivateKeyManifest
from jwks_rotator.rotation.merge import merge_jwks
from jwks_rotator.rotation.state import load_jwks, write_state
from jwks_rotator.store.base import SecretStore, SecretStoreHTTPError

logger = structlog.get_logger(__name__)


class RotationState(StrEnum):
    """Stages of a rotation cycle."""

    LOADING = "loading"
    GENERATING = "generating"
    MERGING = "merging"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


class RotationResult(BaseModel):
    """Summary of a finished rotation cycle."""

    state: RotationState
    key_id: str
    retained: list[str] = Field(default_factory=list)
    evicted: list[str] = Field(default_factory=list)
    error: str | None = None


class Rotator:
    """Rotates the signing keys held in one secret."""

    def __init__(
        self,
        settings: RotationSettings,
        store: SecretStore,
        clock: Callable[[], float] = time.time,
        token_bytes: Callable[[int], bytes] = secrets.token_bytes,
    ) -> None:
        self._settings = settings
        self._store = store
        self._clock = clock
        self._token_bytes = token_bytes
        self.state: RotationState | None = None

    def _enter(self, state: RotationState) -> None:
        self.state = state
        logger.debug("Rotation state changed", state=state.value)

    async def rotate(self) -> RotationResult:
        """Run one cycle.

        Loading and key generation failures are raised after moving to
        ``failed``; nothing has been written at that point. Write failures
        are logged and reported in the returned result.
        """
        settings = self._settings
        try:
            self._enter(RotationState.LOADING)
            existing = await load_jwks(
                self._store, settings.namespace, settings.secret_name
            )

            self._enter(RotationState.GENERATING)
            kid = generate_key_id(self._clock, self._token_bytes)
            logger.info("Generated new key ID", kid=kid)
            keypair = generate_keypair(settings.key_algorithm, kid=kid)
            logger.info(
                "Generated new key pair", algorithm=settings.key_algorithm.value
            )
            jwk = pem_to_jwk_entry(
                keypair.public_key_pem, kid, jwk_alg(settings.key_algorithm)
            )
            logger.info("New JWK generated", jwk=jwk.model_dump(exclude_none=True))
        except Exception:
            self._enter(RotationState.FAILED)
            raise

        self._enter(RotationState.MERGING)
        merged = merge_jwks(existing, jwk, settings.max_keys)
        retained = merged.jwks.kids()
        evicted = JWKSDocument(keys=merged.evicted).kids()
        logger.info("JWKS merged", retained=retained, evicted=evicted)

        self._enter(RotationState.WRITING)
        manifest = PrivateKeyManifest(
            algorithm=keypair.algorithm,
            key_id=kid,
            content=keypair.private_key_pem,
        )
        try:
            await write_state(
                self._store,
                settings.namespace,
                settings.secret_name,
                manifest,
                merged.jwks,
            )
        except SecretStoreHTTPError as exc:
            logger.error(
                "Error while patching secret",
                status=exc.status_code,
                message=exc.message,
                body=exc.body,
            )
            return self._failed(kid, retained, evicted, str(exc))
        except Exception as exc:
            logger.error("Unknown error while patching secret", exc_info=True)
            return self._failed(kid, retained, evicted, repr(exc))

        logger.info("Secret patched", kid=kid)
        self._enter(RotationState.DONE)
        return RotationResult(
            state=RotationState.DONE, key_id=kid, retained=retained, evicted=evicted
        )

    def _failed(
        self, kid: str, retained: list[str], evicted: list[str], error: str
    ) -> RotationResult:
        self._enter(RotationState.FAILED)
        return RotationResult(
            state=RotationState.FAILED,
            key_id=kid,
            retained=retained,
            evicted=evicted,
            error=error,
        )

"""Shared test fixtures for the JWKS rotator."""

import logging
from collections.abc import Iterator

import pytest
import structlog

from jwks_rotator.core.settings import RotationSettings
from jwks_rotator.crypto.types import KeyAlgorithm
from jwks_rotator.store.memory import InMemorySecretStore

NAMESPACE = "auth"
SECRET_NAME = "jwt-keys"


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host environment variables out of settings under test."""
    for var in (
        "ROTATOR_NAMESPACE",
        "ROTATOR_SECRET_NAME",
        "ROTATOR_MAX_KEYS",
        "ROTATOR_KEY_ALGORITHM",
        "LOG_LEVEL",
        "LOG_JSON_FORMAT",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Undo any structlog/stdlib configuration a test installs."""
    root_handlers = list(logging.root.handlers)
    yield
    structlog.reset_defaults()
    logging.root.handlers[:] = root_handlers


@pytest.fixture
def store() -> InMemorySecretStore:
    """An empty in-memory secret store."""
    return InMemorySecretStore()


@pytest.fixture
def settings() -> RotationSettings:
    """Ed25519 rotation keeping two keys."""
    return RotationSettings(
        namespace=NAMESPACE,
        secret_name=SECRET_NAME,
        max_keys=2,
        key_algorithm=KeyAlgorithm.ED25519,
    )

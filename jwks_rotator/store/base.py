"""Secret store capability consumed by the rotation engine."""

from typing import Protocol

from pydantic import BaseModel, Field

JWKS_FIELD = "jwks.json"
MANIFEST_FIELD = "private-key-manifest.json"


class SecretStoreError(Exception):
    """Base class for secret store adapter failures."""


class SecretStoreHTTPError(SecretStoreError):
    """A store failure that carries a status code, message, and raw body."""

    def __init__(self, status_code: int, message: str, body: str = "") -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.body = body


class SecretRecord(BaseModel):
    """A named secret with its fields decoded to text.

    Fields that are not UTF-8 text are listed in ``undecodable`` instead.
    """

    namespace: str
    name: str
    data: dict[str, str] = Field(default_factory=dict)
    undecodable: list[str] = Field(default_factory=list)


class SecretStore(Protocol):
    """Read, create, and merge-patch named secrets."""

    async def get(self, namespace: str, name: str) -> SecretRecord | None:
        """Return the secret, or None when it does not exist."""
        ...

    async def create(
        self, namespace: str, name: str, data: dict[str, str]
    ) -> SecretRecord:
        """Create a secret holding ``data``."""
        ...

    async def patch(self, namespace: str, name: str, data: dict[str, str]) -> None:
        """Update only the fields named in ``data``."""
        ...

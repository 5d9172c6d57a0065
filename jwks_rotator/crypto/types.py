"""Type definitions for signing keys, JWKS documents, and private-key manifests."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

PRIVATE_JWK_MEMBERS = frozenset({"d", "p", "q", "dp", "dq", "qi", "oth", "k"})


class KeyAlgorithm(StrEnum):
    """Supported signing key algorithms."""

    RSA_2048 = "rsa-2048"
    RSA_4096 = "rsa-4096"
    ED25519 = "ed25519"
    ED448 = "ed448"


class SigningKeyData(BaseModel):
    """A freshly generated keypair for JWT signing."""

    kid: str
    algorithm: KeyAlgorithm
    private_key_pem: str
    public_key_pem: str


class PublicKeyEntry(BaseModel):
    """Single public JWK entry in a JWKS document."""

    model_config = ConfigDict(extra="allow", frozen=True)

    kty: str
    kid: str
    alg: str
    use: str | None = None
    n: str | None = None
    e: str | None = None
    crv: str | None = None
    x: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _reject_private_members(cls, data: Any) -> Any:
        if isinstance(data, dict):
            leaked = PRIVATE_JWK_MEMBERS.intersection(data)
            if leaked:
                msg = f"private JWK members not allowed: {sorted(leaked)}"
                raise ValueError(msg)
        return data


class JWKSDocument(BaseModel):
    """JSON Web Key Set, newest key first."""

    keys: list[PublicKeyEntry] = Field(default_factory=list)

    def kids(self) -> list[str]:
        """Return the key ids in document order."""
        return [k.kid for k in self.keys]

    def to_json(self) -> str:
        """Serialize for storage, omitting unset optional members."""
        return self.model_dump_json(exclude_none=True)


class PrivateKeyManifest(BaseModel):
    """Private half of the most recently generated key."""

    model_config = ConfigDict(populate_by_name=True)

    algorithm: KeyAlgorithm
    key_id: str = Field(alias="keyId")
    content: str

    def to_json(self) -> str:
        """Serialize with the stored field names."""
        return self.model_dump_json(by_alias=True)

"""Signing key generation, key id assignment, and JWK conversion."""

import base64
import secrets
import time
from collections.abc import Callable
from typing import Literal

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed448, ed25519, rsa
from cryptography.hazmat.primitives.asymmetric.ed448 import Ed448PublicKey
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from pydantic import BaseModel, ConfigDict

from jwks_rotator.crypto.types import KeyAlgorithm, PublicKeyEntry, SigningKeyData
from jwks_rotator.rotation.errors import CryptoUnavailableError

RSA_PUBLIC_EXPONENT = 65537
KEY_ID_RANDOM_BYTES = 8


class AlgorithmSpec(BaseModel):
    """Fixed parameters of one supported key algorithm."""

    model_config = ConfigDict(frozen=True)

    family: Literal["RSA", "OKP"]
    jwk_alg: str
    key_size: int | None = None
    curve: Literal["Ed25519", "Ed448"] | None = None


ALGORITHM_SPECS: dict[KeyAlgorithm, AlgorithmSpec] = {
    KeyAlgorithm.RSA_2048: AlgorithmSpec(family="RSA", jwk_alg="RS256", key_size=2048),
    KeyAlgorithm.RSA_4096: AlgorithmSpec(family="RSA", jwk_alg="RS512", key_size=4096),
    KeyAlgorithm.ED25519: AlgorithmSpec(family="OKP", jwk_alg="EdDSA", curve="Ed25519"),
    KeyAlgorithm.ED448: AlgorithmSpec(family="OKP", jwk_alg="EdDSA", curve="Ed448"),
}

_PrivateKey = rsa.RSAPrivateKey | ed25519.Ed25519PrivateKey | ed448.Ed448PrivateKey
_PublicKey = RSAPublicKey | Ed25519PublicKey | Ed448PublicKey


def jwk_alg(algorithm: KeyAlgorithm) -> str:
    """Return the JWK ``alg`` label for a key algorithm."""
    return ALGORITHM_SPECS[algorithm].jwk_alg


def generate_key_id(
    clock: Callable[[], float] = time.time,
    token_bytes: Callable[[int], bytes] = secrets.token_bytes,
) -> str:
    """Build a key id from random hex followed by epoch milliseconds in hex.

    The random prefix keeps ids unguessable; the time suffix keeps them unique
    and roughly sortable by creation time.
    """
    random_part = token_bytes(KEY_ID_RANDOM_BYTES).hex()
    time_part = format(int(clock() * 1000), "x")
    return f"{random_part}{time_part}"


def _new_private_key(spec: AlgorithmSpec) -> _PrivateKey:
    if spec.family == "RSA":
        assert spec.key_size is not None
        return rsa.generate_private_key(
            public_exponent=RSA_PUBLIC_EXPONENT,
            key_size=spec.key_size,
        )
    if spec.curve == "Ed25519":
        return ed25519.Ed25519PrivateKey.generate()
    return ed448.Ed448PrivateKey.generate()


def generate_keypair(
    algorithm: KeyAlgorithm, kid: str | None = None
) -> SigningKeyData:
    """Generate a new keypair for JWT signing.

    Raises CryptoUnavailableError when the crypto backend cannot produce
    keys of this algorithm.
    """
    spec = ALGORITHM_SPECS[algorithm]
    try:
        private_key = _new_private_key(spec)
    except UnsupportedAlgorithm as exc:
        msg = f"{algorithm} key generation is not supported by the crypto backend"
        raise CryptoUnavailableError(msg) from exc

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )
    return SigningKeyData(
        kid=kid or generate_key_id(),
        algorithm=algorithm,
        private_key_pem=private_pem,
        public_key_pem=public_pem,
    )


def _bytes_to_base64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _int_to_base64url(value: int) -> str:
    """Encode an integer as base64url without padding."""
    byte_length = (value.bit_length() + 7) // 8
    return _bytes_to_base64url(value.to_bytes(byte_length, byteorder="big"))


def _public_params(public_key: _PublicKey) -> dict[str, str]:
    if isinstance(public_key, RSAPublicKey):
        numbers = public_key.public_numbers()
        return {
            "kty": "RSA",
            "n": _int_to_base64url(numbers.n),
            "e": _int_to_base64url(numbers.e),
        }
    raw = public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    curve = "Ed25519" if isinstance(public_key, Ed25519PublicKey) else "Ed448"
    return {"kty": "OKP", "crv": curve, "x": _bytes_to_base64url(raw)}


def pem_to_jwk_entry(public_key_pem: str, kid: str, alg: str) -> PublicKeyEntry:
    """Convert a PEM public key to a public JWK entry.

    Only the public-key loader is used, so a private PEM fails to parse
    instead of leaking private members into the JWK.
    """
    loaded = serialization.load_pem_public_key(public_key_pem.encode())
    if not isinstance(loaded, _PublicKey):
        msg = f"unsupported public key type: {type(loaded).__name__}"
        raise TypeError(msg)
    return PublicKeyEntry(use="sig", alg=alg, kid=kid, **_public_params(loaded))

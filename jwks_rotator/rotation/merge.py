"""Bounded, newest-first JWKS merge."""

from pydantic import BaseModel

from jwks_rotator.crypto.types import JWKSDocument, PublicKeyEntry


class MergeResult(BaseModel):
    """Outcome of inserting one key into a JWKS."""

    jwks: JWKSDocument
    evicted: list[PublicKeyEntry]


def merge_jwks(
    existing: JWKSDocument, new_key: PublicKeyEntry, max_keys: int
) -> MergeResult:
    """Prepend ``new_key`` and keep only the ``max_keys`` newest entries.

    Key ids are not deduplicated; the key id generator guarantees uniqueness.
    """
    updated = [new_key, *existing.keys]
    return MergeResult(
        jwks=JWKSDocument(keys=updated[:max_keys]),
        evicted=updated[max_keys:],
    )

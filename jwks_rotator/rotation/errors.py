"""Fatal conditions that abort a rotation cycle."""


class RotationError(Exception):
    """Base class for rotation cycle failures."""


class MalformedStateError(RotationError):
    """The secret exists but does not hold a readable JWKS."""


class CryptoUnavailableError(RotationError):
    """The crypto backend cannot generate keys of the configured algorithm."""

"""Rotator settings loaded from environment variables."""

from typing import Literal

from pydantic import Field, PositiveInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from jwks_rotator.crypto.types import KeyAlgorithm

MAX_KEYS_DEFAULT = 2
KUBERNETES_PORT_DEFAULT = 443
REQUEST_TIMEOUT_DEFAULT = 10.0
SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"


class RotationSettings(BaseSettings):
    """What to rotate and how many keys to keep."""

    model_config = SettingsConfigDict(env_prefix="ROTATOR_", frozen=True)

    namespace: str = Field(min_length=1)
    secret_name: str = Field(default="jwt-keys", min_length=1)
    max_keys: PositiveInt = MAX_KEYS_DEFAULT
    key_algorithm: KeyAlgorithm = KeyAlgorithm.ED448


class KubernetesSettings(BaseSettings):
    """In-cluster API server connection settings."""

    model_config = SettingsConfigDict(env_prefix="KUBERNETES_", frozen=True)

    service_host: str = "kubernetes.default.svc"
    service_port: int = KUBERNETES_PORT_DEFAULT
    token_path: str = f"{SERVICE_ACCOUNT_DIR}/token"
    ca_cert_path: str = f"{SERVICE_ACCOUNT_DIR}/ca.crt"
    request_timeout: float = REQUEST_TIMEOUT_DEFAULT

    @property
    def base_url(self) -> str:
        """Build the API server base URL."""
        host = self.service_host
        if ":" in host:
            host = f"[{host}]"
        return f"https://{host}:{self.service_port}"


class LoggingSettings(BaseSettings):
    """Log output settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_", frozen=True)

    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    json_format: bool = True

    @field_validator("level", mode="before")
    @classmethod
    def _lowercase_level(cls, value: object) -> object:
        return value.lower() if isinstance(value, str) else value

"""Command-line entry point: run one rotation cycle against the cluster."""

import argparse
import asyncio
import sys
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from jwks_rotator.core.logging import configure_logging
from jwks_rotator.core.settings import (
    KubernetesSettings,
    LoggingSettings,
    RotationSettings,
)
from jwks_rotator.crypto.types import KeyAlgorithm
from jwks_rotator.rotation.errors import RotationError
from jwks_rotator.rotation.rotator import RotationResult, Rotator
from jwks_rotator.store.base import SecretStore, SecretStoreError
from jwks_rotator.store.kubernetes import KubernetesSecretStore
from jwks_rotator.store.memory import InMemorySecretStore

EXIT_OK = 0
EXIT_CYCLE_ABORTED = 1
EXIT_INVALID_CONFIG = 2

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser; every option overrides its ROTATOR_* variable."""
    parser = argparse.ArgumentParser(
        prog="jwks-rotator",
        description="Rotate the JWKS signing keys stored in a Kubernetes secret.",
    )
    parser.add_argument("--namespace", help="Namespace of the secret")
    parser.add_argument("--secret-name", help="Name of the secret")
    parser.add_argument("--max-keys", type=int, help="Public keys to retain")
    parser.add_argument(
        "--key-algorithm",
        choices=[a.value for a in KeyAlgorithm],
        help="Algorithm of the new key",
    )
    parser.add_argument("--log-level", help="Log level (debug, info, ...)")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Rotate a local copy of the secret and leave the cluster unchanged",
    )
    return parser


def _overrides(args: argparse.Namespace, names: list[str]) -> dict[str, Any]:
    return {n: getattr(args, n) for n in names if getattr(args, n) is not None}


async def run(settings: RotationSettings, store: SecretStore) -> RotationResult:
    """Run one rotation cycle with an already constructed store."""
    rotator = Rotator(settings, store)
    return await rotator.rotate()


async def _run_in_cluster(
    settings: RotationSettings, kube: KubernetesSettings
) -> RotationResult:
    async with KubernetesSecretStore.from_settings(kube) as store:
        return await run(settings, store)


async def _dry_run_in_cluster(
    settings: RotationSettings, kube: KubernetesSettings
) -> RotationResult:
    async with KubernetesSecretStore.from_settings(kube) as cluster:
        current = await cluster.get(settings.namespace, settings.secret_name)
    scratch = InMemorySecretStore()
    if current is not None:
        scratch.seed(current)
    result = await run(settings, scratch)
    logger.info("Dry run, cluster secret left unchanged", existed=current is not None)
    return result


def main(argv: list[str] | None = None) -> int:
    """Parse options, load settings, and rotate once."""
    args = build_parser().parse_args(argv)
    try:
        log_overrides = {"level": args.log_level} if args.log_level else {}
        log_settings = LoggingSettings(**log_overrides)
    except ValidationError as exc:
        print(f"Invalid logging configuration: {exc}", file=sys.stderr)
        return EXIT_INVALID_CONFIG
    configure_logging(log_settings)

    try:
        settings = RotationSettings(
            **_overrides(
                args, ["namespace", "secret_name", "max_keys", "key_algorithm"]
            )
        )
        kube = KubernetesSettings()
    except ValidationError as exc:
        logger.error("Invalid configuration", errors=exc.errors(include_url=False))
        return EXIT_INVALID_CONFIG
    logger.info("Loaded config", **settings.model_dump(mode="json"))

    try:
        runner = _dry_run_in_cluster if args.dry_run else _run_in_cluster
        result = asyncio.run(runner(settings, kube))
    except (RotationError, SecretStoreError, httpx.HTTPError, OSError):
        logger.error("Rotation aborted", exc_info=True)
        return EXIT_CYCLE_ABORTED

    logger.info("Rotation finished", **result.model_dump(mode="json"))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

"""Dict-backed secret store for tests and local runs."""

from jwks_rotator.store.base import SecretRecord, SecretStoreHTTPError

HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409


class InMemorySecretStore:
    """Keeps secrets in a dict keyed by (namespace, name)."""

    def __init__(self) -> None:
        self.records: dict[tuple[str, str], dict[str, str]] = {}
        self.get_calls = 0
        self.create_calls = 0
        self.patch_calls = 0

    def seed(self, record: SecretRecord) -> None:
        """Store a copy of an existing record, e.g. one read from a cluster."""
        self.records[(record.namespace, record.name)] = dict(record.data)

    async def get(self, namespace: str, name: str) -> SecretRecord | None:
        """Return a copy of the stored secret, or None."""
        self.get_calls += 1
        data = self.records.get((namespace, name))
        if data is None:
            return None
        return SecretRecord(namespace=namespace, name=name, data=dict(data))

    async def create(
        self, namespace: str, name: str, data: dict[str, str]
    ) -> SecretRecord:
        """Create a secret; fails with 409 when it already exists."""
        self.create_calls += 1
        if (namespace, name) in self.records:
            raise SecretStoreHTTPError(
                HTTP_CONFLICT, f'secrets "{name}" already exists'
            )
        self.records[(namespace, name)] = dict(data)
        return SecretRecord(namespace=namespace, name=name, data=dict(data))

    async def patch(self, namespace: str, name: str, data: dict[str, str]) -> None:
        """Merge ``data`` into an existing secret; fails with 404 when missing."""
        self.patch_calls += 1
        record = self.records.get((namespace, name))
        if record is None:
            raise SecretStoreHTTPError(HTTP_NOT_FOUND, f'secrets "{name}" not found')
        record.update(data)

"""In-memory access token store for development and testing.

Holds tokens in a dict owned by the event loop. Check-and-set in mark_used
has no await between the check and the write, which gives it the same
compare-and-swap guarantee as the conditional UPDATE in the database store.
Not shared across processes: never use it behind more than one worker.
"""

from dataclasses import replace
from datetime import datetime

from storefront.integrations.interfaces.base import (
    AccessTokenRecord,
    AccessTokenStore,
    TokenStoreError,
)


class InMemoryTokenStore(AccessTokenStore):
    """Dict-backed access token store."""

    def __init__(self):
        self._tokens: dict[str, AccessTokenRecord] = {}

    def __len__(self) -> int:
        return len(self._tokens)

    async def insert(self, record: AccessTokenRecord) -> None:
        if record.token in self._tokens:
            raise TokenStoreError("insert failed: duplicate token")
        self._tokens[record.token] = replace(record, metadata=dict(record.metadata))

    async def get(self, token: str) -> AccessTokenRecord | None:
        record = self._tokens.get(token)
        # Hand out copies so callers cannot mutate stored rows
        return replace(record, metadata=dict(record.metadata)) if record else None

    async def mark_used(self, token: str, used_at: datetime) -> bool:
        record = self._tokens.get(token)
        if record is None or record.used_at is not None:
            return False
        self._tokens[token] = replace(record, used_at=used_at)
        return True

    async def delete(self, token: str) -> int:
        return 1 if self._tokens.pop(token, None) is not None else 0

    async def delete_for_resource(self, resource_type: str, resource_id: str) -> int:
        matches = [
            t
            for t, r in self._tokens.items()
            if r.resource_type == resource_type and r.resource_id == resource_id
        ]
        for t in matches:
            del self._tokens[t]
        return len(matches)

    async def delete_expired_used(self, now: datetime) -> int:
        matches = [t for t, r in self._tokens.items() if self._is_expired_used(r, now)]
        for t in matches:
            del self._tokens[t]
        return len(matches)

    async def count_expired_used(self, now: datetime) -> int:
        return sum(1 for r in self._tokens.values() if self._is_expired_used(r, now))

    @staticmethod
    def _is_expired_used(record: AccessTokenRecord, now: datetime) -> bool:
        return record.expires_at < now and record.used_at is not None

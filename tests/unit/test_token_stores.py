"""Unit tests for the in-memory and SQLAlchemy token stores.

The database store runs against SQLite (aiosqlite) here; the conditional
UPDATE it relies on behaves the same on Postgres.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from storefront.integrations.adapters.factory import TokenStoreFactory, get_token_store
from storefront.integrations.adapters.database import DatabaseTokenStore
from storefront.integrations.adapters.memory import InMemoryTokenStore
from storefront.integrations.interfaces.base import AccessTokenRecord, TokenStoreError
from storefront.services.public_access_tokens import PublicAccessTokenService, generate_token

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


def make_record(
    resource_type: str = "order",
    resource_id: str = "123",
    expires_in: timedelta = timedelta(hours=1),
    one_time_use: bool = False,
    used_at: datetime | None = None,
) -> AccessTokenRecord:
    return AccessTokenRecord(
        token=generate_token(),
        resource_type=resource_type,
        resource_id=resource_id,
        expires_at=NOW + expires_in,
        one_time_use=one_time_use,
        used_at=used_at,
        created_by="tests",
        metadata={"createdAt": NOW.isoformat()},
        created_at=NOW,
    )


class GatedDatabaseStore(DatabaseTokenStore):
    """Database store that holds every reader until all of them have read.

    Forces concurrent validations to reach the conditional UPDATE together.
    """

    def __init__(self, session_factory, readers: int):
        super().__init__(session_factory)
        self._readers = readers
        self._arrived = 0
        self._all_read = asyncio.Event()

    async def get(self, token):
        record = await super().get(token)
        self._arrived += 1
        if self._arrived >= self._readers:
            self._all_read.set()
        await self._all_read.wait()
        return record


@pytest.fixture(params=["memory", "database"])
def store(request, db_store):
    """Run each contract test against both store implementations."""
    if request.param == "memory":
        return InMemoryTokenStore()
    return db_store


class TestTokenStoreContract:
    """Behavior every AccessTokenStore must share."""

    async def test_insert_and_get(self, store):
        record = make_record(one_time_use=True)
        await store.insert(record)

        loaded = await store.get(record.token)

        assert loaded.token == record.token
        assert loaded.resource_type == "order"
        assert loaded.resource_id == "123"
        assert loaded.expires_at == record.expires_at
        assert loaded.expires_at.tzinfo is not None
        assert loaded.one_time_use is True
        assert loaded.used_at is None
        assert loaded.created_by == "tests"
        assert loaded.metadata == {"createdAt": NOW.isoformat()}

    async def test_get_unknown_returns_none(self, store):
        assert await store.get(generate_token()) is None

    async def test_duplicate_insert_raises(self, store):
        record = make_record()
        await store.insert(record)

        with pytest.raises(TokenStoreError):
            await store.insert(record)

    async def test_mark_used_is_compare_and_swap(self, store):
        """Only the first conditional write succeeds."""
        record = make_record(one_time_use=True)
        await store.insert(record)

        assert await store.mark_used(record.token, NOW) is True
        assert await store.mark_used(record.token, NOW + timedelta(seconds=1)) is False

        loaded = await store.get(record.token)
        assert loaded.used_at == NOW

    async def test_mark_used_unknown_token(self, store):
        assert await store.mark_used(generate_token(), NOW) is False

    async def test_delete_returns_count(self, store):
        record = make_record()
        await store.insert(record)

        assert await store.delete(record.token) == 1
        assert await store.delete(record.token) == 0
        assert await store.get(record.token) is None

    async def test_delete_for_resource(self, store):
        keep = make_record(resource_id="B")
        other_type = make_record(resource_type="invoice", resource_id="A")
        targets = [make_record(resource_id="A"), make_record(resource_id="A")]
        for record in [keep, other_type, *targets]:
            await store.insert(record)

        assert await store.delete_for_resource("order", "A") == 2

        assert await store.get(keep.token) is not None
        assert await store.get(other_type.token) is not None
        for record in targets:
            assert await store.get(record.token) is None

    async def test_delete_expired_used_is_selective(self, store):
        expired_used = make_record(expires_in=timedelta(hours=-1), used_at=NOW - timedelta(hours=2))
        expired_unused = make_record(expires_in=timedelta(hours=-1))
        live_used = make_record(expires_in=timedelta(hours=1), used_at=NOW)
        for record in [expired_used, expired_unused, live_used]:
            await store.insert(record)

        assert await store.count_expired_used(NOW) == 1
        assert await store.delete_expired_used(NOW) == 1
        assert await store.count_expired_used(NOW) == 0

        assert await store.get(expired_used.token) is None
        assert await store.get(expired_unused.token) is not None
        assert await store.get(live_used.token) is not None


class TestInMemoryTokenStore:
    """Behavior specific to the in-memory store."""

    async def test_returned_records_are_copies(self):
        store = InMemoryTokenStore()
        record = make_record()
        await store.insert(record)

        loaded = await store.get(record.token)
        loaded.metadata["createdAt"] = "tampered"
        loaded.used_at = NOW

        fresh = await store.get(record.token)
        assert fresh.metadata["createdAt"] == NOW.isoformat()
        assert fresh.used_at is None

    async def test_len(self):
        store = InMemoryTokenStore()
        await store.insert(make_record())
        await store.insert(make_record())
        assert len(store) == 2


class TestDatabaseStoreWithService:
    """The service over the SQLAlchemy store."""

    async def test_one_time_token_consumed_once(self, db_store, clock, events):
        service = PublicAccessTokenService(db_store, clock=clock, events=events)
        created = await service.create_token("proof", "p-1", one_time_use=True)

        first = await service.validate_token(created.token, "proof")
        second = await service.validate_token(created.token, "proof")

        assert first.success is True
        assert second.success is False

    async def test_concurrent_validations_consume_once(self, file_session_factory, clock, events):
        """Separate connections racing on the conditional UPDATE: one winner."""
        readers = 8
        store = GatedDatabaseStore(file_session_factory, readers)
        service = PublicAccessTokenService(store, clock=clock, events=events)
        created = await service.create_token("proof", "p-1", one_time_use=True)

        results = await asyncio.gather(
            *(service.validate_token(created.token, "proof") for _ in range(readers))
        )

        assert sum(r.success for r in results) == 1
        reasons = {c.kwargs["reason"] for c in events.log_token_rejected.call_args_list}
        assert reasons == {"consume_race_lost"}
        assert (await store.get(created.token)).used_at == clock()

    async def test_expiry_and_cleanup(self, db_store, clock, events):
        service = PublicAccessTokenService(db_store, clock=clock, events=events)
        used = await service.create_token("proof", "p-1", 1, one_time_use=True)
        await service.validate_token(used.token, "proof")
        unused = await service.create_token("order", "o-1", 1)

        clock.advance(hours=2)

        assert (await service.validate_token(unused.token, "order")).success is False
        assert await service.cleanup_expired_tokens() == 1
        assert await db_store.get(unused.token) is not None


class TestTokenStoreFactory:
    """Tests for store selection."""

    def test_memory_store_from_settings(self, monkeypatch):
        from storefront.core.config import settings

        monkeypatch.setattr(settings, "TOKEN_STORE", "memory")
        TokenStoreFactory.reset()
        try:
            store = get_token_store()
            assert isinstance(store, InMemoryTokenStore)
            assert get_token_store() is store
        finally:
            TokenStoreFactory.reset()

    def test_database_store_from_settings(self, monkeypatch):
        from storefront.core.config import settings
        from storefront.integrations.adapters.database import DatabaseTokenStore

        monkeypatch.setattr(settings, "TOKEN_STORE", "database")
        TokenStoreFactory.reset()
        try:
            assert isinstance(get_token_store(), DatabaseTokenStore)
        finally:
            TokenStoreFactory.reset()

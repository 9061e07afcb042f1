"""SQLAlchemy-backed access token store (Postgres in production).

Each method opens its own session and commits before returning, so every
store call is one unit of work regardless of the caller's request session.
"""

from datetime import datetime, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.integrations.interfaces.base import (
    AccessTokenRecord,
    AccessTokenStore,
    TokenStoreError,
)
from storefront.models.public_access_token import PublicAccessToken


def _as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round trip)."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(row: PublicAccessToken) -> AccessTokenRecord:
    return AccessTokenRecord(
        token=row.token,
        resource_type=row.resource_type,
        resource_id=row.resource_id,
        expires_at=_as_utc(row.expires_at),
        one_time_use=row.one_time_use,
        used_at=_as_utc(row.used_at),
        created_by=row.created_by,
        metadata=dict(row.token_metadata or {}),
        created_at=_as_utc(row.created_at),
    )


class DatabaseTokenStore(AccessTokenStore):
    """Access token store on the public_access_tokens table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def insert(self, record: AccessTokenRecord) -> None:
        row = PublicAccessToken(
            token=record.token,
            resource_type=record.resource_type,
            resource_id=record.resource_id,
            expires_at=record.expires_at,
            one_time_use=record.one_time_use,
            used_at=record.used_at,
            created_by=record.created_by,
            token_metadata=record.metadata,
        )
        if record.created_at is not None:
            row.created_at = record.created_at

        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
        except SQLAlchemyError as e:
            raise TokenStoreError(f"insert failed: {e.__class__.__name__}") from e

    async def get(self, token: str) -> AccessTokenRecord | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(PublicAccessToken).where(PublicAccessToken.token == token)
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise TokenStoreError(f"lookup failed: {e.__class__.__name__}") from e

        return _to_record(row) if row else None

    async def mark_used(self, token: str, used_at: datetime) -> bool:
        # The used_at IS NULL predicate makes this a compare-and-swap:
        # concurrent consumers race on the row lock and only one sees rowcount 1.
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(PublicAccessToken)
                    .where(
                        PublicAccessToken.token == token,
                        PublicAccessToken.used_at.is_(None),
                    )
                    .values(used_at=used_at)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
                changed = result.rowcount == 1
        except SQLAlchemyError as e:
            raise TokenStoreError(f"conditional update failed: {e.__class__.__name__}") from e

        return changed

    async def delete(self, token: str) -> int:
        return await self._delete_where(PublicAccessToken.token == token)

    async def delete_for_resource(self, resource_type: str, resource_id: str) -> int:
        return await self._delete_where(
            PublicAccessToken.resource_type == resource_type,
            PublicAccessToken.resource_id == resource_id,
        )

    async def delete_expired_used(self, now: datetime) -> int:
        return await self._delete_where(
            PublicAccessToken.expires_at < now,
            PublicAccessToken.used_at.isnot(None),
        )

    async def count_expired_used(self, now: datetime) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(func.count(PublicAccessToken.token)).where(
                        PublicAccessToken.expires_at < now,
                        PublicAccessToken.used_at.isnot(None),
                    )
                )
                return result.scalar() or 0
        except SQLAlchemyError as e:
            raise TokenStoreError(f"count failed: {e.__class__.__name__}") from e

    async def _delete_where(self, *criteria) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(PublicAccessToken)
                    .where(*criteria)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
                deleted = result.rowcount or 0
        except SQLAlchemyError as e:
            raise TokenStoreError(f"delete failed: {e.__class__.__name__}") from e

        return deleted

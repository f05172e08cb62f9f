from __future__ import annotations

"""Access-link record store.

Provides the interface used by the issuance service, an async SQLAlchemy
implementation, and an in-memory implementation (tests / `STORE_BACKEND=memory`).

Both implementations guarantee that `set_token_if_absent` is a single atomic
conditional write: the token is only assigned while `access_token` is still
empty, so concurrent issuance for the same email succeeds at most once.
"""

from typing import Dict, Iterable, Optional

from fastapi import Request
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from onetimelink.db.models.access_link import AccessLink
from onetimelink.schemas.access_link import AccessLinkRecord


class RecordStoreError(RuntimeError):
    """Raised when the record store cannot be reached or the query fails."""


class AccessLinkRepositoryProtocol:
    async def find_by_email(self, email: str) -> Optional[AccessLinkRecord]:
        raise NotImplementedError

    async def set_token_if_absent(self, email: str, token: str) -> Optional[AccessLinkRecord]:
        """Assign `token` only if the record exists and has no token yet.

        Returns the updated record, or None when nothing matched.
        """
        raise NotImplementedError


# ─────────────────────────────────────────────────────────────
# SQL (PostgreSQL via asyncpg)
# ─────────────────────────────────────────────────────────────
class SqlAccessLinkRepository(AccessLinkRepositoryProtocol):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_email(self, email: str) -> Optional[AccessLinkRecord]:
        try:
            row = (
                await self._session.execute(select(AccessLink).where(AccessLink.email == email))
            ).scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise RecordStoreError(f"Lookup failed: {e.__class__.__name__}") from e
        return AccessLinkRecord.model_validate(row) if row is not None else None

    async def set_token_if_absent(self, email: str, token: str) -> Optional[AccessLinkRecord]:
        stmt = (
            update(AccessLink)
            .where(AccessLink.email == email, AccessLink.access_token.is_(None))
            .values(access_token=token)
            .returning(AccessLink.email, AccessLink.access_token, AccessLink.click_count)
        )
        try:
            row = (await self._session.execute(stmt)).one_or_none()
            await self._session.commit()
        except (SQLAlchemyError, OSError) as e:
            await self._session.rollback()
            raise RecordStoreError(f"Conditional update failed: {e.__class__.__name__}") from e
        if row is None:
            return None
        return AccessLinkRecord(email=row.email, access_token=row.access_token, click_count=row.click_count)


# ─────────────────────────────────────────────────────────────
# In-memory
# ─────────────────────────────────────────────────────────────
class MemoryAccessLinkRepository(AccessLinkRepositoryProtocol):
    """Dict-backed store keyed by email. Seed with `add()` or the constructor."""

    def __init__(self, emails: Iterable[str] = ()) -> None:
        self._records: Dict[str, AccessLinkRecord] = {}
        for email in emails:
            self.add(email)

    def add(self, email: str, *, access_token: Optional[str] = None) -> AccessLinkRecord:
        if email in self._records:
            raise ValueError(f"Duplicate email: {email}")
        rec = AccessLinkRecord(email=email, access_token=access_token)
        self._records[email] = rec
        return rec

    def get(self, email: str) -> Optional[AccessLinkRecord]:
        return self._records.get(email)

    def __len__(self) -> int:
        return len(self._records)

    async def find_by_email(self, email: str) -> Optional[AccessLinkRecord]:
        rec = self._records.get(email)
        return rec.model_copy() if rec is not None else None

    async def set_token_if_absent(self, email: str, token: str) -> Optional[AccessLinkRecord]:
        # No await between the check and the write, so this is atomic on the event loop.
        rec = self._records.get(email)
        if rec is None or rec.access_token:
            return None
        updated = rec.model_copy(update={"access_token": token})
        self._records[email] = updated
        return updated.model_copy()


# ─────────────────────────────────────────────────────────────
# Dependencies
# ─────────────────────────────────────────────────────────────
async def get_access_link_repository(request: Request) -> AccessLinkRepositoryProtocol:
    """
    Resolve the repository configured at startup.

    A repository injected through `create_app` or the shared
    `MemoryAccessLinkRepository` (`STORE_BACKEND=memory`) lives on
    `app.state.repository`; otherwise each operation runs in its own short-lived
    SQL session, so rejected requests never open one.
    """
    memory_repo = getattr(request.app.state, "repository", None)
    if memory_repo is not None:
        return memory_repo
    return _SessionScopedRepository(request.app.state.session_maker)


class _SessionScopedRepository(AccessLinkRepositoryProtocol):
    """SQL repository that opens one short-lived session per operation."""

    def __init__(self, session_maker) -> None:
        self._session_maker = session_maker

    async def find_by_email(self, email: str) -> Optional[AccessLinkRecord]:
        async with self._session_maker() as session:
            return await SqlAccessLinkRepository(session).find_by_email(email)

    async def set_token_if_absent(self, email: str, token: str) -> Optional[AccessLinkRecord]:
        async with self._session_maker() as session:
            return await SqlAccessLinkRepository(session).set_token_if_absent(email, token)


__all__ = [
    "RecordStoreError",
    "AccessLinkRepositoryProtocol",
    "SqlAccessLinkRepository",
    "MemoryAccessLinkRepository",
    "get_access_link_repository",
]

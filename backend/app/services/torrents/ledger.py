"""Snatch bookkeeping: per-torrent counters and the per-user activity log.

The snatched counter counts every download of the .torrent file, repeats
included. torrent_activities holds at most one row per (torrent, user), so it
counts distinct users. The two numbers are expected to differ.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy import func, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.torrent import Torrent, TorrentActivity
from app.services.torrents.errors import InvalidIdentifierOrRecord, RecordNotFound

logger = logging.getLogger(__name__)


class LedgerOutcome(str, Enum):
    RECORDED = "recorded"
    ALREADY_RECORDED = "already_recorded"


@dataclass(frozen=True)
class SnatchedTorrent:
    """Columns read back by the same statement that bumped the counter."""
    info_dict: bytes
    created_at: datetime
    release_name: str
    snatched: int


def _dialect_insert(session: AsyncSession):
    """INSERT construct with ON CONFLICT support for the session's database."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Unsupported database dialect: {dialect}")


async def increment_snatched(session: AsyncSession, torrent_id: int) -> SnatchedTorrent:
    """Bump snatched and read the stored info dict in one UPDATE ... RETURNING."""
    torrents = Torrent.__table__
    result = await session.execute(
        update(torrents)
        .where(torrents.c.id == torrent_id)
        .values(snatched=torrents.c.snatched + 1)
        .returning(
            torrents.c.info_dict,
            torrents.c.created_at,
            torrents.c.release_name,
            torrents.c.snatched,
        )
    )
    row = result.one_or_none()
    if row is None:
        raise RecordNotFound("torrent", torrent_id)
    return SnatchedTorrent(
        info_dict=row.info_dict,
        created_at=row.created_at,
        release_name=row.release_name,
        snatched=row.snatched,
    )


async def record_snatch(session: AsyncSession, torrent_id: int, user_id: int) -> LedgerOutcome:
    """Insert the (torrent, user) activity row unless it already exists.

    A duplicate is the expected outcome for repeat downloads and is reported
    as ALREADY_RECORDED. Any other integrity failure means the pair does not
    exist; it is logged and raised so the caller's transaction rolls back.
    """
    activities = TorrentActivity.__table__
    stmt = (
        _dialect_insert(session)(activities)
        .values(torrent_id=torrent_id, user_id=user_id, snatched_at=func.now())
        .on_conflict_do_nothing(index_elements=["torrent_id", "user_id"])
        .returning(activities.c.torrent_id)
    )
    try:
        result = await session.execute(stmt)
        inserted = result.first()
    except IntegrityError as e:
        logger.error(
            f"Activity insert failed for torrent {torrent_id}, user {user_id}; "
            f"rolling back snatch: {e}"
        )
        raise InvalidIdentifierOrRecord(torrent_id, user_id) from e

    if inserted is None:
        return LedgerOutcome.ALREADY_RECORDED
    return LedgerOutcome.RECORDED


async def increment_completed(session: AsyncSession, torrent_id: int) -> int:
    """Bump the completed counter. Returns the new value."""
    torrents = Torrent.__table__
    result = await session.execute(
        update(torrents)
        .where(torrents.c.id == torrent_id)
        .values(completed=torrents.c.completed + 1)
        .returning(torrents.c.completed)
    )
    completed = result.scalar_one_or_none()
    if completed is None:
        raise RecordNotFound("torrent", torrent_id)
    return completed

"""Batch recomputation of per-torrent peer counts from the live peer registry."""
import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.torrent import Peer, Torrent

logger = logging.getLogger(__name__)


def _peer_count(status: str):
    torrents = Torrent.__table__
    peers = Peer.__table__
    return (
        select(func.count())
        .select_from(peers)
        .where(peers.c.torrent_id == torrents.c.id, peers.c.status == status)
        .scalar_subquery()
    )


async def reconcile_peer_counts(session: AsyncSession) -> int:
    """Overwrite seeders/leechers of every torrent with the current peer counts.

    Torrents with no connected peers get 0. The update replaces the stored
    values rather than applying deltas, so running it twice against the same
    peer snapshot leaves the same result. Returns the number of torrents updated.
    """
    torrents = Torrent.__table__
    result = await session.execute(
        update(torrents).values(
            seeders=_peer_count("seeding"),
            leechers=_peer_count("leeching"),
        )
    )
    logger.info(f"Reconciled peer counts for {result.rowcount} torrent(s)")
    return result.rowcount

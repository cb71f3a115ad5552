"""Torrent models - live torrents, their archive, snatch activity and live peers.

The torrents table is the single source of truth for a release's canonical
info dict. deleted_torrents mirrors every column of torrents so a removal can
archive a row with a single INSERT ... SELECT.
"""
from datetime import datetime
from sqlalchemy import (
    BigInteger, Boolean, DateTime, ForeignKey, Index, Integer, JSON,
    LargeBinary, String, Text, func,
)
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base, BigIntId, TimestampMixin


class TorrentColumnsMixin(TimestampMixin):
    """Columns shared by live and archived torrents."""

    edition_group_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_by_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Release metadata (from the upload form)
    release_name: Mapped[str] = mapped_column(String(500), nullable=False)
    release_group: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    uploaded_as_anonymous: Mapped[bool] = mapped_column(Boolean, default=False)
    mediainfo: Mapped[str] = mapped_column(Text, default="")
    trumpable: Mapped[str] = mapped_column(String(500), default="")
    staff_checked: Mapped[bool] = mapped_column(Boolean, default=False)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    audio_codec: Mapped[str | None] = mapped_column(String(20), nullable=True)
    audio_bitrate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    audio_bitrate_sampling: Mapped[str | None] = mapped_column(String(20), nullable=True)
    audio_channels: Mapped[str | None] = mapped_column(String(10), nullable=True)
    video_codec: Mapped[str | None] = mapped_column(String(20), nullable=True)
    video_resolution: Mapped[str | None] = mapped_column(String(20), nullable=True)
    container: Mapped[str] = mapped_column(String(20), default="")
    features: Mapped[list] = mapped_column(JSON, default=list)
    subtitle_languages: Mapped[list] = mapped_column(JSON, default=list)
    languages: Mapped[list] = mapped_column(JSON, default=list)

    # Extracted from the .torrent file ({"parent_folder": str, "files": [{name, size}]})
    file_list: Mapped[dict] = mapped_column(JSON, nullable=False)
    file_amount_per_type: Mapped[dict] = mapped_column(JSON, nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # SHA-1 of info_dict, raw bytes
    info_hash: Mapped[bytes] = mapped_column(LargeBinary(20), nullable=False)
    # Canonical bencoded info dict (private flag forced on)
    info_dict: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    # Counters
    seeders: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0")
    leechers: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0")
    completed: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0")
    snatched: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0")


class Torrent(Base, TorrentColumnsMixin):
    __tablename__ = "torrents"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    edition_group_id: Mapped[int] = mapped_column(
        ForeignKey("edition_groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_by_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False
    )
    info_hash: Mapped[bytes] = mapped_column(LargeBinary(20), nullable=False, unique=True)


class DeletedTorrent(Base, TorrentColumnsMixin):
    __tablename__ = "deleted_torrents"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    deleted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deleted_by_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)


class TorrentActivity(Base):
    """One row per (torrent, user) that ever downloaded the .torrent file."""
    __tablename__ = "torrent_activities"

    torrent_id: Mapped[int] = mapped_column(
        ForeignKey("torrents.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    snatched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Peer(Base):
    """Live peer registry, written by the tracker and read by count reconciliation."""
    __tablename__ = "peers"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    torrent_id: Mapped[int] = mapped_column(
        ForeignKey("torrents.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    peer_id: Mapped[bytes] = mapped_column(LargeBinary(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # 'seeding' | 'leeching'
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("idx_peers_torrent_status", "torrent_id", "status"),
    )

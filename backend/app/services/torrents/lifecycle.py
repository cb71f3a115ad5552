"""Torrent workflows: upload, personalized download and removal.

Each workflow runs as one database transaction opened with
``session_factory.begin()``: any exception (including task cancellation)
leaves the block and rolls everything back. The session factory is handed in
by the process bootstrap; this module never creates its own engine.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy import BigInteger, Text, delete, func, insert, literal, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.catalog import EditionGroup, TitleGroup
from app.models.torrent import DeletedTorrent, Torrent
from app.models.user import User
from app.schemas.torrent import TorrentToDelete, UploadedTorrentForm
from app.services.notifications import NotificationError, NotificationResult, Notifier
from app.services.torrents.aggregates import reconcile_peer_counts
from app.services.torrents.distributor import DistributionConfig, build_personalized_torrent
from app.services.torrents.errors import RecordNotFound, StorageFailure
from app.services.torrents.ledger import (
    LedgerOutcome,
    increment_completed,
    increment_snatched,
    record_snatch,
)
from app.services.torrents.metainfo import decode_info, normalize_metainfo

logger = logging.getLogger(__name__)


@dataclass
class CreatedTorrent:
    torrent: Torrent
    notification: NotificationResult


@dataclass
class DistributedTorrent:
    title: str
    file_contents: bytes
    snatched: int
    ledger: LedgerOutcome


async def _find_title_group(session: AsyncSession, edition_group_id: int) -> tuple[int, str]:
    result = await session.execute(
        select(TitleGroup.id, TitleGroup.name)
        .join(EditionGroup, EditionGroup.title_group_id == TitleGroup.id)
        .where(EditionGroup.id == edition_group_id)
    )
    row = result.one_or_none()
    if row is None:
        raise RecordNotFound("edition group", edition_group_id)
    return row.id, row.name


async def _find_torrent_title_group_id(session: AsyncSession, torrent_id: int) -> int:
    result = await session.execute(
        select(EditionGroup.title_group_id)
        .join(Torrent, Torrent.edition_group_id == EditionGroup.id)
        .where(Torrent.id == torrent_id)
    )
    title_group_id = result.scalar_one_or_none()
    if title_group_id is None:
        raise RecordNotFound("torrent", torrent_id)
    return title_group_id


def _archive_statement(torrent_id: int, deleted_by_id: int, reason: str):
    """INSERT INTO deleted_torrents SELECT *, now(), :user, :reason FROM torrents WHERE id = :id"""
    torrents = Torrent.__table__
    columns = [column.name for column in torrents.columns]
    return insert(DeletedTorrent.__table__).from_select(
        columns + ["deleted_at", "deleted_by_id", "reason"],
        select(
            *torrents.columns,
            func.now(),
            literal(deleted_by_id, BigInteger),
            literal(reason, Text),
        ).where(torrents.c.id == torrent_id),
    )


class TorrentLifecycle:
    """Coordinates the multi-step torrent workflows."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Notifier,
        config: DistributionConfig,
    ):
        self._session_factory = session_factory
        self._notifier = notifier
        self._config = config

    @asynccontextmanager
    async def _unit_of_work(self, operation: str):
        """One transaction; database errors surface as StorageFailure."""
        try:
            async with self._session_factory.begin() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Torrent {operation} rolled back: {e}")
            raise StorageFailure(operation, str(e)) from e

    async def _notify_best_effort(
        self, session: AsyncSession, event: str, title_group_id: int, title: str, message: str
    ) -> NotificationResult:
        """Notify inside a savepoint so a failed fan-out leaves the outer transaction usable."""
        try:
            async with session.begin_nested():
                return await self._notifier.notify(session, event, title_group_id, title, message)
        except NotificationError as e:
            logger.warning(f"Skipped '{event}' notification for title group {title_group_id}: {e}")
            return NotificationResult.skipped(str(e))

    async def create_torrent(
        self, torrent_file: bytes, form: UploadedTorrentForm, user: User
    ) -> CreatedTorrent:
        """Normalize an uploaded .torrent file and store it with its release metadata."""
        descriptor = normalize_metainfo(torrent_file)
        manifest = descriptor.manifest

        async with self._unit_of_work("create") as session:
            title_group_id, title_group_name = await _find_title_group(session, form.edition_group_id)

            torrent = Torrent(
                edition_group_id=form.edition_group_id,
                created_by_id=user.id,
                release_name=form.release_name,
                release_group=form.release_group,
                description=form.description,
                file_amount_per_type=manifest.extension_counts,
                uploaded_as_anonymous=form.uploaded_as_anonymous,
                file_list=manifest.file_list_json(),
                mediainfo=form.mediainfo,
                # TODO: decide trumpability once a release-comparison service exists
                trumpable="",
                staff_checked=False,
                size=manifest.total_size,
                duration=form.duration,
                audio_codec=form.audio_codec,
                audio_bitrate=form.audio_bitrate,
                audio_bitrate_sampling=form.audio_bitrate_sampling,
                audio_channels=form.audio_channels,
                video_codec=form.video_codec,
                features=[feature.value for feature in form.features],
                subtitle_languages=form.subtitle_languages,
                video_resolution=form.video_resolution,
                container=form.container,
                languages=form.languages,
                info_hash=descriptor.info_hash,
                info_dict=descriptor.info_bytes,
            )
            session.add(torrent)
            await session.flush()
            await session.refresh(torrent)

            notification = await self._notify_best_effort(
                session,
                "torrent_uploaded",
                title_group_id,
                "New torrent uploaded subscribed title group",
                f'New torrent uploaded in title group "{title_group_name}"',
            )

        logger.info(
            f"Created torrent {torrent.id} ({descriptor.info_hash_hex}) "
            f"in edition group {form.edition_group_id} by user {user.id}"
        )
        return CreatedTorrent(torrent=torrent, notification=notification)

    async def get_torrent(self, torrent_id: int, user: User) -> DistributedTorrent:
        """Build the requesting user's .torrent file and record the snatch."""
        async with self._unit_of_work("fetch") as session:
            snatch = await increment_snatched(session, torrent_id)
            ledger = await record_snatch(session, torrent_id, user.id)
            info = decode_info(snatch.info_dict)
            file_contents = build_personalized_torrent(
                info,
                torrent_id,
                snatch.created_at,
                self._config,
                user.passkey_upper,
                user.passkey_lower,
            )

        logger.debug(f"User {user.id} fetched torrent {torrent_id} (snatched={snatch.snatched}, {ledger.value})")
        return DistributedTorrent(
            title=snatch.release_name,
            file_contents=file_contents,
            snatched=snatch.snatched,
            ledger=ledger,
        )

    async def remove_torrent(self, torrent_to_delete: TorrentToDelete, user: User) -> None:
        """Archive a torrent into deleted_torrents and delete it.

        Unlike uploads, a failed notification aborts the removal: nothing is
        archived or deleted unless subscribers were told about it.
        """
        torrent_id = torrent_to_delete.id
        async with self._unit_of_work("delete") as session:
            title_group_id = await _find_torrent_title_group_id(session, torrent_id)
            await self._notifier.notify(
                session,
                "torrent_deleted",
                title_group_id,
                "Torrent deleted",
                torrent_to_delete.displayed_reason or torrent_to_delete.reason,
            )

            await session.execute(_archive_statement(torrent_id, user.id, torrent_to_delete.reason))
            result = await session.execute(
                delete(Torrent.__table__).where(Torrent.__table__.c.id == torrent_id)
            )
            if result.rowcount == 0:
                raise RecordNotFound("torrent", torrent_id)

        logger.info(f"Torrent {torrent_id} deleted by user {user.id}: {torrent_to_delete.reason}")

    async def mark_completed(self, torrent_id: int) -> int:
        """Count one more completed download. Returns the new total."""
        async with self._unit_of_work("complete") as session:
            return await increment_completed(session, torrent_id)

    async def refresh_peer_counts(self) -> int:
        """Recompute seeders/leechers for every torrent from the peers table."""
        async with self._unit_of_work("reconcile") as session:
            return await reconcile_peer_counts(session)

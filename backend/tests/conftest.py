"""Shared pytest fixtures for all tests."""
from datetime import datetime, timezone

import bencodepy
import pytest
from sqlalchemy import event

from app.database import create_engine, create_session_factory
from app.models import Base, EditionGroup, TitleGroup, TitleGroupSubscription, Torrent, User
from app.schemas.torrent import UploadedTorrentForm
from app.services.notifications import NotificationError, Notifier, SubscriptionNotifier
from app.services.torrents import DistributionConfig, TorrentLifecycle
from app.services.torrents.metainfo import normalize_metainfo

UPLOADER_ID = 7
OTHER_USER_ID = 8
SUBSCRIBER_ID = 9
TITLE_GROUP_ID = 1
EDITION_GROUP_ID = 1

DISTRIBUTION_CONFIG = DistributionConfig(
    tracker_url="https://tracker.example/",
    frontend_url="https://site.example/",
    tracker_name="Example Tracker",
)


def build_torrent_file(
    name: bytes = b"movie.mkv",
    length: int = 1000,
    piece_length: int = 16384,
    private=None,
    files=None,
    announce: bytes = b"http://public.example/announce",
    extra_info=None,
) -> bytes:
    """Bencode a .torrent file. files is a list of ("dir/name.ext", size)."""
    info = {b"name": name, b"piece length": piece_length, b"pieces": b"\x11" * 20}
    if files is None:
        info[b"length"] = length
    else:
        info[b"files"] = [
            {b"length": size, b"path": [part.encode() for part in path.split("/")]}
            for path, size in files
        ]
    if private is not None:
        info[b"private"] = private
    if extra_info:
        info.update(extra_info)
    return bencodepy.encode({b"announce": announce, b"creation date": 1234, b"info": info})


class FailingNotifier(Notifier):
    """Notifier whose delivery always fails."""

    def __init__(self):
        self.calls = 0

    async def notify(self, session, event, title_group_id, title, message):
        self.calls += 1
        raise NotificationError("delivery backend unavailable")


@pytest.fixture
def make_torrent_file():
    return build_torrent_file


@pytest.fixture
async def engine(tmp_path):
    """
    File-backed SQLite database per test.

    Foreign keys are enforced, and every transaction starts with BEGIN
    IMMEDIATE so concurrent writers queue on the lock instead of failing.
    """
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Stop the driver from issuing its own BEGIN; needed for SAVEPOINT
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def users(session_factory):
    """Uploader, a second downloader and a subscriber of the title group."""
    async with session_factory.begin() as session:
        uploader = User(
            id=UPLOADER_ID, username="uploader",
            passkey_upper=0x0123456789ABCDEF, passkey_lower=0x0FEDCBA987654321,
        )
        other = User(id=OTHER_USER_ID, username="other", passkey_upper=-1, passkey_lower=5)
        subscriber = User(id=SUBSCRIBER_ID, username="subscriber", passkey_upper=0, passkey_lower=1)
        session.add_all([uploader, other, subscriber])
    return {"uploader": uploader, "other": other, "subscriber": subscriber}


@pytest.fixture
async def catalog(session_factory, users):
    async with session_factory.begin() as session:
        session.add(TitleGroup(id=TITLE_GROUP_ID, name="Some Movie"))
        await session.flush()
        session.add(EditionGroup(id=EDITION_GROUP_ID, title_group_id=TITLE_GROUP_ID, name="Blu-ray"))
    return {"title_group_id": TITLE_GROUP_ID, "edition_group_id": EDITION_GROUP_ID}


@pytest.fixture
async def subscription(session_factory, catalog):
    async with session_factory.begin() as session:
        session.add(TitleGroupSubscription(user_id=SUBSCRIBER_ID, title_group_id=TITLE_GROUP_ID))


@pytest.fixture
def upload_form():
    return UploadedTorrentForm(
        edition_group_id=EDITION_GROUP_ID,
        release_name="Some.Movie.2020.1080p.BluRay",
        release_group="GRP",
        container="mkv",
        features="HDR, Remux",
        languages="English, French",
    )


@pytest.fixture
def lifecycle(session_factory):
    return TorrentLifecycle(session_factory, SubscriptionNotifier(), DISTRIBUTION_CONFIG)


@pytest.fixture
def insert_torrent(session_factory, catalog):
    """Store a torrent row with a chosen id, bypassing the upload workflow."""

    async def _insert(torrent_id: int, torrent_file: bytes = None, **overrides) -> Torrent:
        descriptor = normalize_metainfo(torrent_file or build_torrent_file())
        values = dict(
            id=torrent_id,
            edition_group_id=EDITION_GROUP_ID,
            created_by_id=UPLOADER_ID,
            release_name=f"Release {torrent_id}",
            file_list=descriptor.manifest.file_list_json(),
            file_amount_per_type=descriptor.manifest.extension_counts,
            size=descriptor.manifest.total_size,
            info_hash=descriptor.info_hash,
            info_dict=descriptor.info_bytes,
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        values.update(overrides)
        async with session_factory.begin() as session:
            torrent = Torrent(**values)
            session.add(torrent)
        return torrent

    return _insert

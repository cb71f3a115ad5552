"""Torrent ingestion, personalized distribution and snatch bookkeeping."""
from app.services.torrents.distributor import DistributionConfig, build_personalized_torrent
from app.services.torrents.errors import (
    InvalidIdentifierOrRecord,
    InvalidMetainfo,
    RecordNotFound,
    StorageFailure,
    TorrentServiceError,
)
from app.services.torrents.ledger import LedgerOutcome
from app.services.torrents.lifecycle import CreatedTorrent, DistributedTorrent, TorrentLifecycle
from app.services.torrents.metainfo import CanonicalDescriptor, normalize_metainfo

__all__ = [
    "DistributionConfig",
    "build_personalized_torrent",
    "TorrentServiceError",
    "InvalidMetainfo",
    "RecordNotFound",
    "StorageFailure",
    "InvalidIdentifierOrRecord",
    "LedgerOutcome",
    "TorrentLifecycle",
    "CreatedTorrent",
    "DistributedTorrent",
    "CanonicalDescriptor",
    "normalize_metainfo",
]

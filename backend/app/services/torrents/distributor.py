"""Personalized .torrent generation.

Every user gets the same info dict wrapped in a metainfo dict whose announce
URL carries their passkey. Nothing else varies between users, so the info hash
(and therefore the swarm) is shared.
"""
from dataclasses import dataclass
from datetime import datetime, timezone

from app.services.torrents.errors import InvalidMetainfo
from app.services.torrents.metainfo import canonicalize, encode_bencoded

_U64_MASK = (1 << 64) - 1


@dataclass(frozen=True)
class DistributionConfig:
    tracker_url: str   # e.g. "https://tracker.example/"
    frontend_url: str  # e.g. "https://site.example/"
    tracker_name: str


def passkey_token(passkey_upper: int, passkey_lower: int) -> str:
    """Combine the stored passkey halves into the 32-char hex announce token.

    The halves are stored as signed 64-bit integers; their two's-complement
    bit patterns are what make up the 128-bit key.
    """
    passkey = ((passkey_upper & _U64_MASK) << 64) | (passkey_lower & _U64_MASK)
    return f"{passkey:032x}"


def announce_url(tracker_url: str, passkey_upper: int, passkey_lower: int) -> str:
    return f"{tracker_url}announce/{passkey_token(passkey_upper, passkey_lower)}"


def epoch_seconds(created_at: datetime) -> int:
    """Seconds since epoch; naive timestamps are stored in UTC."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return int(created_at.timestamp())


def build_personalized_torrent(
    info: dict,
    torrent_id: int,
    created_at: datetime,
    config: DistributionConfig,
    passkey_upper: int,
    passkey_lower: int,
) -> bytes:
    """Wrap a stored info dict into a .torrent file for one user."""
    piece_length = info.get(b"piece length")
    if not isinstance(piece_length, int) or piece_length <= 0:
        raise InvalidMetainfo("stored info dict has no piece length")

    personalized_info = dict(info)
    personalized_info[b"private"] = 1
    personalized_info[b"piece length"] = piece_length

    metainfo = {
        b"announce": announce_url(config.tracker_url, passkey_upper, passkey_lower).encode(),
        b"comment": f"{config.frontend_url}torrent/{torrent_id}".encode(),
        b"created by": config.tracker_name.encode(),
        b"creation date": epoch_seconds(created_at),
        b"info": personalized_info,
    }
    return encode_bencoded(canonicalize(metainfo))

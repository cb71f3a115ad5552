"""Metainfo normalization for uploaded .torrent files.

Uploaded files are untrusted: the client may have left the private flag off,
or computed its info hash over a dict we would never serve. The info dict is
therefore rebuilt from its content keys with the private flag forced on,
re-encoded in canonical bencode form (keys sorted bytewise) and the info hash
is computed over those bytes, never over what the uploader sent.
"""
import hashlib
import logging
from dataclasses import dataclass

import bencodepy

from app.services.torrents.errors import InvalidMetainfo
from app.services.torrents.manifest import FileEntry, FileManifest

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class CanonicalDescriptor:
    """A normalized info dict, its canonical bytes and their SHA-1."""
    info: dict
    info_bytes: bytes
    info_hash: bytes
    manifest: FileManifest

    @property
    def piece_length(self) -> int:
        return self.info[b"piece length"]

    @property
    def info_hash_hex(self) -> str:
        return self.info_hash.hex()


def decode_bencoded(data: bytes):
    """Decode bencoded bytes, mapping every decoder failure to InvalidMetainfo."""
    if not data:
        raise InvalidMetainfo("empty torrent file")
    try:
        return bencodepy.decode(data)
    except Exception as e:
        # Truncated input surfaces as IndexError/ValueError as well as the
        # library's own decoding error
        raise InvalidMetainfo(f"could not decode torrent file: {e}") from e


def encode_bencoded(value) -> bytes:
    try:
        return bencodepy.encode(value)
    except Exception as e:
        raise InvalidMetainfo(f"could not encode torrent structure: {e}") from e


def canonicalize(value):
    """Return a copy with every dict rebuilt in bytewise-sorted key order."""
    if isinstance(value, dict):
        return {key: canonicalize(value[key]) for key in sorted(value)}
    if isinstance(value, list):
        return [canonicalize(item) for item in value]
    return value


def _require(condition: bool, detail: str) -> None:
    if not condition:
        raise InvalidMetainfo(detail)


def _text(raw, field_name: str) -> str:
    _require(isinstance(raw, bytes), f"{field_name} must be a byte string")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidMetainfo(f"{field_name} is not valid UTF-8") from e


def _length(raw, field_name: str) -> int:
    _require(isinstance(raw, int) and raw >= 0, f"{field_name} must be a non-negative integer")
    return raw


def extract_manifest(info: dict) -> FileManifest:
    """Build the catalog file manifest from an info dict."""
    name = _text(info.get(b"name"), "name")

    if b"files" not in info:
        length = _length(info.get(b"length"), "length")
        return FileManifest.from_entries("", [FileEntry(name=name, size=length)])

    files = info[b"files"]
    _require(isinstance(files, list) and len(files) > 0, "files must be a non-empty list")
    entries = []
    for index, item in enumerate(files):
        _require(isinstance(item, dict), f"files[{index}] must be a dictionary")
        size = _length(item.get(b"length"), f"files[{index}].length")
        path = item.get(b"path")
        _require(isinstance(path, list) and len(path) > 0, f"files[{index}].path must be a non-empty list")
        entries.append(FileEntry(
            name="/".join(_text(part, f"files[{index}].path") for part in path),
            size=size,
        ))
    return FileManifest.from_entries(name, entries)


def _content_keys(info: dict) -> dict:
    """Copy only the keys that describe the content. Shapes are checked by extract_manifest."""
    pieces = info.get(b"pieces")
    _require(isinstance(pieces, bytes) and len(pieces) > 0, "pieces must be a non-empty byte string")
    content = {b"name": info.get(b"name"), b"pieces": pieces}

    if b"files" not in info:
        content[b"length"] = info.get(b"length")
        return content

    files = info[b"files"]
    _require(isinstance(files, list), "files must be a non-empty list")
    for index, item in enumerate(files):
        _require(isinstance(item, dict), f"files[{index}] must be a dictionary")
    content[b"files"] = [{b"length": item.get(b"length"), b"path": item.get(b"path")} for item in files]
    return content


def normalize_info(info) -> CanonicalDescriptor:
    """Rebuild an info dict from its content keys, with private=1 and the piece length kept as-is.

    Keys an uploader's client adds on top (source tags, per-file checksums,
    tool extensions) are dropped, so the info hash depends only on the files,
    their sizes, the piece layout and the forced private flag.
    """
    _require(isinstance(info, dict), "info must be a dictionary")
    piece_length = info.get(b"piece length")
    _require(
        isinstance(piece_length, int) and piece_length > 0,
        "piece length must be a positive integer",
    )

    rebuilt = _content_keys(info)
    rebuilt[b"private"] = 1
    rebuilt[b"piece length"] = piece_length
    canonical = canonicalize(rebuilt)

    manifest = extract_manifest(canonical)
    info_bytes = encode_bencoded(canonical)
    return CanonicalDescriptor(
        info=canonical,
        info_bytes=info_bytes,
        info_hash=hashlib.sha1(info_bytes).digest(),
        manifest=manifest,
    )


def normalize_metainfo(data: bytes) -> CanonicalDescriptor:
    """Parse an uploaded .torrent file into its canonical descriptor.

    Raises InvalidMetainfo for anything that is not a well-formed metainfo
    dict with a usable info dict; nothing is returned partially.
    """
    metainfo = decode_bencoded(data)
    _require(isinstance(metainfo, dict), "torrent file must contain a dictionary")
    _require(b"info" in metainfo, "torrent file has no info dictionary")

    descriptor = normalize_info(metainfo[b"info"])
    declared_private = metainfo[b"info"].get(b"private")
    if declared_private != 1:
        logger.debug(f"Forced private flag on upload (declared={declared_private!r})")
    return descriptor


def decode_info(info_bytes: bytes) -> dict:
    """Decode a stored canonical info dict."""
    info = decode_bencoded(info_bytes)
    _require(isinstance(info, dict), "stored info dict is not a dictionary")
    return canonicalize(info)

"""Errors raised by the torrent workflows.

Each failed workflow surfaces exactly one of these to its caller; the
transaction it ran in has already been rolled back by the time it propagates.
"""


class TorrentServiceError(Exception):
    """Base class for torrent workflow errors."""
    pass


class InvalidMetainfo(TorrentServiceError):
    """Raised when an uploaded or stored .torrent structure cannot be decoded or rebuilt."""

    def __init__(self, detail: str = "invalid torrent file"):
        self.detail = detail
        super().__init__(detail)


class RecordNotFound(TorrentServiceError):
    """Raised when a referenced torrent or catalog entry does not exist."""

    def __init__(self, kind: str, key):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} not found")


class StorageFailure(TorrentServiceError):
    """Wraps a database error, tagged with the workflow it interrupted."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"storage failure during {operation}: {detail}")


class InvalidIdentifierOrRecord(TorrentServiceError):
    """Raised when an activity row references a user or torrent that does not exist."""

    def __init__(self, torrent_id: int, user_id: int):
        self.torrent_id = torrent_id
        self.user_id = user_id
        super().__init__(f"invalid user id {user_id} or torrent id {torrent_id}")

"""Import all models so SQLAlchemy metadata knows about them."""
from app.models.base import Base
from app.models.user import User
from app.models.catalog import TitleGroup, EditionGroup
from app.models.torrent import Torrent, DeletedTorrent, TorrentActivity, Peer
from app.models.notification import TitleGroupSubscription, Notification

__all__ = [
    "Base",
    "User", "TitleGroup", "EditionGroup",
    "Torrent", "DeletedTorrent", "TorrentActivity", "Peer",
    "TitleGroupSubscription", "Notification",
]

"""Catalog models - title groups and their edition groups.

Only the columns needed to resolve a torrent's title group live here; the
rest of the catalog is managed elsewhere.
"""
from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base, BigIntId, TimestampMixin


class TitleGroup(Base, TimestampMixin):
    __tablename__ = "title_groups"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)


class EditionGroup(Base, TimestampMixin):
    __tablename__ = "edition_groups"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    title_group_id: Mapped[int] = mapped_column(
        ForeignKey("title_groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(500), default="")

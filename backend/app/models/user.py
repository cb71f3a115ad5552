"""User model - the requesting identity and its tracker passkey."""
from datetime import datetime
from sqlalchemy import BigInteger, String, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base, BigIntId


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    # 128-bit passkey stored as two signed 64-bit halves, upper half first
    passkey_upper: Mapped[int] = mapped_column(BigInteger, nullable=False)
    passkey_lower: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

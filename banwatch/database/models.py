from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .session import Base
from banwatch.utils import utc_now


class Profile(Base):
    __tablename__ = "profiles"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identity_key: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    community_banned: Mapped[bool] = mapped_column(Boolean, default=False)
    vac_banned: Mapped[bool] = mapped_column(Boolean, default=False)
    vac_ban_count: Mapped[int] = mapped_column(Integer, default=0)
    game_ban_count: Mapped[int] = mapped_column(Integer, default=0)
    # False once a stop-tracking event has been recorded
    tracked: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    subscribers: Mapped[list["ProfileSubscriber"]] = relationship(
        back_populates="profile", lazy="selectin", cascade="all, delete-orphan"
    )


class ProfileSubscriber(Base):
    """One row per (profile, chat) pair; the unique constraint gives set semantics."""
    __tablename__ = "profile_subscribers"
    __table_args__ = (
        UniqueConstraint("identity_key", "chat_id", name="uq_profile_subscriber"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identity_key: Mapped[str] = mapped_column(ForeignKey("profiles.identity_key"), index=True)
    chat_id: Mapped[int] = mapped_column(BigInteger, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    profile: Mapped[Profile] = relationship(back_populates="subscribers")


class Subscriber(Base):
    __tablename__ = "subscribers"
    # Autoincrement id doubles as the stored order used for pagination
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chat_id: Mapped[int] = mapped_column(BigInteger, unique=True, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

"""SQLAlchemy models for the spot map.

Three tables:
- locations: crowd-submitted distribution spots with up/down counters
- votes: one row per (location, user), the ledger the counters must match
- comments: append-only notes on a spot

Trust state (NORMAL/FLAGGED/SUPPRESSED/DELETE) is derived from the counters
on read and is never stored. See spotmap/moderation.py.
"""

import datetime as dt
import secrets
import string

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base
from .schemas import VoteDirection

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_id(length: int = 9) -> str:
    """Short opaque id in the same shape clients generate."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


class Location(Base):
    """A distribution spot on the map."""

    __tablename__ = "locations"
    __table_args__ = (
        CheckConstraint("upvotes >= 0", name="ck_locations_upvotes_nonnegative"),
        CheckConstraint("downvotes >= 0", name="ck_locations_downvotes_nonnegative"),
        Index("ix_locations_visibility", "date", "expiry_date"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    area: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="biryani")
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)
    date: Mapped[dt.date] = mapped_column(
        Date, nullable=False,
        doc="Calendar day the spot was created for (not a timestamp)"
    )
    expiry_date: Mapped[dt.date | None] = mapped_column(
        Date,
        doc="Last calendar day the spot is shown. NULL means open-ended."
    )
    packets: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[str | None] = mapped_column(Text)
    contact_name: Mapped[str | None] = mapped_column(String(200))
    contact_number: Mapped[str | None] = mapped_column(String(50))
    upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, index=True)

    # Relationships
    votes: Mapped[list["Vote"]] = relationship(
        "Vote", back_populates="location", cascade="all, delete-orphan"
    )
    comments: Mapped[list["Comment"]] = relationship(
        "Comment", back_populates="location", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Location {self.id}: {self.name} (+{self.upvotes}/-{self.downvotes})>"


class Vote(Base):
    """One user's vote on one spot. At most one per (location, user)."""

    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("location_id", "user_id", name="uq_votes_location_user"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    location_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    vote_type: Mapped[VoteDirection] = mapped_column(
        SQLEnum(VoteDirection, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False,
    )

    location: Mapped["Location"] = relationship("Location", back_populates="votes")

    def __repr__(self) -> str:
        return f"<Vote {self.user_id} {self.vote_type.value} on {self.location_id}>"


class Comment(Base):
    """A note left on a spot. Never edited or deleted on its own."""

    __tablename__ = "comments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    location_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow)

    location: Mapped["Location"] = relationship("Location", back_populates="comments")

    def __repr__(self) -> str:
        return f"<Comment {self.id} on {self.location_id}>"

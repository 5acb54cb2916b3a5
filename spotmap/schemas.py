"""Pydantic schemas for the spot map.

These are the contract between the HTTP surface and the engine. Drafts are
deliberately permissive (empty names, missing coordinates) so the store can
reject them with a domain ValidationError before anything is written.
"""

import datetime as dt
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENUMS
# =============================================================================


class VoteDirection(str, Enum):
    """Which way a user voted on a spot."""

    UP = "up"
    """The spot is real: food is being handed out here."""

    DOWN = "down"
    """The spot is fake, stale, or wrong."""

    @property
    def counter(self) -> str:
        """Name of the locations column this direction counts into."""
        return "upvotes" if self is VoteDirection.UP else "downvotes"

    def opposite(self) -> "VoteDirection":
        return VoteDirection.DOWN if self is VoteDirection.UP else VoteDirection.UP


class VoteOutcome(str, Enum):
    RECORDED = "recorded"
    RETRACTED = "retracted"
    CHANGED = "changed"


class TrustState(str, Enum):
    """Display classification derived from a spot's vote counters.

    Never stored. Recomputed from upvotes/downvotes on every read.
    """

    NORMAL = "NORMAL"

    FLAGGED = "FLAGGED"
    """Shown with a distrust marker; still visible and votable."""

    SUPPRESSED = "SUPPRESSED"
    """Blurred in listings; still votable so upvotes can rehabilitate it."""

    DELETE = "DELETE"
    """Terminal. Purged on the next read."""


# =============================================================================
# SPOTS
# =============================================================================


class SpotDraft(BaseModel):
    """A user submission for a new distribution spot."""

    id: str | None = Field(default=None, description="Client-generated id; generated server-side when omitted")
    name: str = Field(default="", description="What is being handed out / who is handing it out")
    area: str | None = Field(default=None, description="Neighbourhood label; reverse geocoded when omitted")
    category: str | None = Field(default=None, description="Category id or emoji, e.g. 'biryani' or '🍛'")
    lat: float | None = None
    lng: float | None = None
    date: dt.date | None = Field(default=None, description="Calendar day the spot is for; defaults to today")
    expiry_date: dt.date | None = Field(default=None, description="Last day the spot is shown; open-ended when omitted")
    packets: int | None = Field(default=None, ge=0, description="Rough number of packets available")
    notes: str | None = None
    contact_name: str | None = None
    contact_number: str | None = None

    @field_validator("expiry_date", mode="before")
    @classmethod
    def blank_expiry_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class SpotOut(BaseModel):
    """A spot as returned to clients, annotated with its trust state."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    area: str
    category: str
    lat: float
    lng: float
    date: dt.date
    expiry_date: dt.date | None = None
    packets: int = 0
    notes: str | None = None
    contact_name: str | None = None
    contact_number: str | None = None
    upvotes: int = 0
    downvotes: int = 0
    created_at: dt.datetime | None = None

    trust: TrustState = TrustState.NORMAL
    distance_km: float | None = Field(default=None, description="Distance from the caller's position")
    walk_minutes: int | None = None
    drive_minutes: int | None = None


# =============================================================================
# VOTES
# =============================================================================


class VoteRequest(BaseModel):
    user_id: str = Field(min_length=1, description="Opaque, locally generated user token")
    direction: VoteDirection


class VoteResult(BaseModel):
    outcome: VoteOutcome
    direction: VoteDirection | None = Field(
        default=None, description="The user's vote after the operation; None when retracted"
    )
    spot: SpotOut


# =============================================================================
# COMMENTS
# =============================================================================


class CommentIn(BaseModel):
    text: str = ""


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    location_id: str
    text: str
    created_at: dt.datetime


# =============================================================================
# LANDMARKS
# =============================================================================


class LandmarkCandidate(BaseModel):
    """A point of interest from the external feed, not yet confirmed as a spot."""

    id: str
    lat: float
    lng: float
    name: str
    area: str | None = None


class ReconcileRequest(BaseModel):
    candidates: list[LandmarkCandidate] = Field(default_factory=list)
    epsilon_m: float | None = Field(default=None, gt=0)


class LandmarkSuggestions(BaseModel):
    suggestions: list[LandmarkCandidate]
    total_candidates: int


# =============================================================================
# STATS
# =============================================================================


class SpotStats(BaseModel):
    visible: int
    normal: int
    flagged: int
    suppressed: int
    votes: int
    comments: int

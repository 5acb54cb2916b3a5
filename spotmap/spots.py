"""Spot persistence and lifecycle.

SpotStore owns the `locations` table. Every listing first runs the
LifecycleReaper, which lazily deletes spots that have expired or that the
moderation policy has classified as DELETE, so a fresh reader never sees them.
"""

import datetime as dt
import logging
from dataclasses import dataclass

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.orm import Session

from .config import EngineConfig, get_config
from .errors import NotFoundError, ValidationError
from .geo import BoundingBox, LatLng, distance_km, travel_minutes
from .models import Comment, Location, Vote
from .moderation import ModerationPolicy
from .schemas import SpotDraft, SpotOut, SpotStats, TrustState

logger = logging.getLogger(__name__)

COUNTER_FIELDS = ("upvotes", "downvotes")


def utc_today() -> dt.date:
    return dt.datetime.now(dt.timezone.utc).date()


@dataclass
class ReapStats:
    expired: int = 0
    deleted: int = 0

    @property
    def total(self) -> int:
        return self.expired + self.deleted


class LifecycleReaper:
    """Lazy eviction of expired and hard-flagged spots."""

    def __init__(self, db: Session, policy: ModerationPolicy):
        self.db = db
        self.policy = policy

    def reap(self, today: dt.date | None = None) -> ReapStats:
        """Delete spots expired before `today` or classified DELETE.

        Votes and comments go with them through the relationship cascade.
        """
        today = today or utc_today()
        stats = ReapStats()

        candidates = self.db.scalars(
            select(Location).where(
                or_(
                    Location.expiry_date < today,
                    Location.downvotes >= self.policy.thresholds.delete_downvotes,
                )
            )
        ).all()

        for location in candidates:
            if location.expiry_date is not None and location.expiry_date < today:
                stats.expired += 1
            elif self.policy.is_terminal(location.upvotes, location.downvotes):
                stats.deleted += 1
            else:
                continue
            self.db.delete(location)

        if stats.total:
            self.db.commit()
            logger.info(f"Reaped {stats.expired} expired and {stats.deleted} moderated spots")
        return stats


class SpotStore:
    """Create, list and remove spots; keep counters non-negative."""

    def __init__(
        self,
        db: Session,
        config: EngineConfig | None = None,
        policy: ModerationPolicy | None = None,
    ):
        self.db = db
        self.config = config or get_config()
        self.policy = policy or ModerationPolicy(self.config.thresholds)
        self.reaper = LifecycleReaper(db, self.policy)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(self, draft: SpotDraft, today: dt.date | None = None) -> Location:
        """Insert a new spot with zeroed counters.

        Raises ValidationError (and writes nothing) when the name is blank or
        the coordinates are missing or out of range.
        """
        name = (draft.name or "").strip()
        if not name:
            raise ValidationError("Spot name is required")
        if draft.lat is None or draft.lng is None:
            raise ValidationError("Spot coordinates are required")
        if not (-90 <= draft.lat <= 90 and -180 <= draft.lng <= 180):
            raise ValidationError(f"Coordinates out of range: {draft.lat}, {draft.lng}")

        day = draft.date or today or utc_today()
        if draft.expiry_date is not None and draft.expiry_date < day:
            raise ValidationError("Expiry date cannot be before the spot's date")
        if draft.id and self.db.get(Location, draft.id) is not None:
            raise ValidationError(f"Spot id already in use: {draft.id}")

        location = Location(
            name=name,
            area=(draft.area or "").strip() or self.config.fallback_area_label,
            category=self.config.normalize_category(draft.category),
            lat=draft.lat,
            lng=draft.lng,
            date=day,
            expiry_date=draft.expiry_date,
            packets=draft.packets or 0,
            notes=draft.notes,
            contact_name=draft.contact_name,
            contact_number=draft.contact_number,
            upvotes=0,
            downvotes=0,
        )
        if draft.id:
            location.id = draft.id

        self.db.add(location)
        self.db.commit()
        self.db.refresh(location)
        logger.info(f"Created spot {location.id} '{location.name}' in {location.area}")
        return location

    def remove(self, spot_id: str) -> None:
        """Delete a spot together with its votes and comments."""
        location = self.get(spot_id, live_only=False)
        self.db.delete(location)
        self.db.commit()
        logger.info(f"Removed spot {spot_id}")

    def apply_counter_delta(self, spot_id: str, field: str, delta: int, commit: bool = True) -> None:
        """Atomically add `delta` to a counter in SQL, never going below zero."""
        if field not in COUNTER_FIELDS:
            raise ValidationError(f"Unknown counter: {field}")
        column = getattr(Location, field)
        clamped = case((column + delta < 0, 0), else_=column + delta)
        result = self.db.execute(
            update(Location)
            .where(Location.id == spot_id)
            .values({field: clamped})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Spot not found: {spot_id}")
        if commit:
            self.db.commit()

    def set_area(self, spot_id: str, label: str) -> Location:
        location = self.get(spot_id, live_only=False)
        location.area = label
        self.db.commit()
        return location

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def is_live(self, location: Location, today: dt.date | None = None) -> bool:
        """False once a spot has expired or been voted down to DELETE, even before the reaper runs."""
        today = today or utc_today()
        if location.expiry_date is not None and location.expiry_date < today:
            return False
        return not self.policy.is_terminal(location.upvotes, location.downvotes)

    def get(self, spot_id: str, today: dt.date | None = None, live_only: bool = True) -> Location:
        """Fetch a spot. Expired or DELETE-classified spots count as missing unless `live_only` is False."""
        location = self.db.get(Location, spot_id)
        if location is None or (live_only and not self.is_live(location, today)):
            raise NotFoundError(f"Spot not found: {spot_id}")
        return location

    def list_visible(
        self,
        reference_date: dt.date,
        query: str | None = None,
        today: dt.date | None = None,
    ) -> list[Location]:
        """Spots live on `reference_date`, most recently created first.

        Runs the reaper before reading.
        """
        self.reaper.reap(today)

        stmt = select(Location).where(
            Location.date <= reference_date,
            or_(Location.expiry_date.is_(None), Location.expiry_date >= reference_date),
        )
        if query and query.strip():
            pattern = f"%{query.strip()}%"
            stmt = stmt.where(
                or_(
                    Location.name.ilike(pattern),
                    Location.area.ilike(pattern),
                    Location.category.ilike(pattern),
                )
            )
        stmt = stmt.order_by(Location.created_at.desc(), Location.date.desc())
        return list(self.db.scalars(stmt).all())

    def within_bbox(self, bbox: BoundingBox, today: dt.date | None = None) -> list[Location]:
        """Live spots inside `bbox`, whatever their start date."""
        today = today or utc_today()
        stmt = select(Location).where(
            Location.lat.between(bbox.south, bbox.north),
            Location.lng.between(bbox.west, bbox.east),
            or_(Location.expiry_date.is_(None), Location.expiry_date >= today),
            Location.downvotes < self.policy.thresholds.delete_downvotes,
        )
        return list(self.db.scalars(stmt).all())

    def to_out(self, location: Location, origin: LatLng | None = None) -> SpotOut:
        """Serialize a spot with its trust state and, given a position, travel estimates."""
        out = SpotOut.model_validate(location)
        out.trust = self.policy.classify(location.upvotes, location.downvotes)
        if origin is not None:
            km = distance_km(origin, (location.lat, location.lng))
            out.distance_km = round(km, 3)
            out.walk_minutes = travel_minutes(km, self.config.walking_speed_kmh)
            out.drive_minutes = travel_minutes(km, self.config.driving_speed_kmh)
        return out

    def stats(self, reference_date: dt.date) -> SpotStats:
        visible = self.list_visible(reference_date)
        states = [self.policy.classify(s.upvotes, s.downvotes) for s in visible]
        return SpotStats(
            visible=len(visible),
            normal=states.count(TrustState.NORMAL),
            flagged=states.count(TrustState.FLAGGED),
            suppressed=states.count(TrustState.SUPPRESSED),
            votes=self.db.scalar(select(func.count(Vote.id))) or 0,
            comments=self.db.scalar(select(func.count(Comment.id))) or 0,
        )

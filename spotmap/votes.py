"""One-vote-per-user ledger for spot truth scoring.

Casting a vote toggles it: the same direction twice retracts, the opposite
direction flips. The ledger row and the spot's counters change in one
transaction. Concurrent casts on the same spot serialize on the spot's row
lock (or, on SQLite, on the unique (location, user) constraint) and the
loser retries a bounded number of times.
"""

import datetime as dt
import logging
import time

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from .config import EngineConfig, get_config
from .errors import AlreadyVotedError, ConflictError, NotFoundError, ValidationError
from .models import Location, Vote
from .schemas import VoteDirection, VoteOutcome, VoteResult
from .spots import SpotStore

logger = logging.getLogger(__name__)


class VoteLedger:
    def __init__(self, db: Session, config: EngineConfig | None = None, store: SpotStore | None = None):
        self.db = db
        self.config = config or get_config()
        self.store = store or SpotStore(db, self.config)

    def cast_vote(
        self,
        spot_id: str,
        user_id: str,
        direction: VoteDirection | str,
        today: dt.date | None = None,
    ) -> VoteResult:
        """Record, retract or flip `user_id`'s vote on `spot_id`.

        Raises NotFoundError for unknown, expired or purged spots,
        AlreadyVotedError when vote changes are disabled and the user already
        voted, and ConflictError when the write kept colliding after
        `vote_max_retries` retries.
        """
        direction = VoteDirection(direction)
        if not user_id or not user_id.strip():
            raise ValidationError("user_id is required to vote")

        attempt = 0
        while True:
            try:
                outcome, current = self._cast_once(spot_id, user_id, direction, today)
                self.db.commit()
                break
            except (IntegrityError, OperationalError) as e:
                self.db.rollback()
                if attempt >= self.config.vote_max_retries:
                    logger.warning(f"Vote on {spot_id} by {user_id} still conflicting after {attempt} retries")
                    raise ConflictError(f"Concurrent vote on spot {spot_id}, try again") from e
                attempt += 1
                logger.debug(f"Vote conflict on {spot_id} (attempt {attempt}): {e}")
                time.sleep(self.config.vote_retry_delay_s * attempt)
            except Exception:
                self.db.rollback()
                raise

        logger.info(f"Vote {outcome.value} on {spot_id} by {user_id}: {direction.value}")
        location = self.store.get(spot_id, live_only=False)
        return VoteResult(outcome=outcome, direction=current, spot=self.store.to_out(location))

    def _cast_once(
        self, spot_id: str, user_id: str, direction: VoteDirection, today: dt.date | None = None
    ) -> tuple[VoteOutcome, VoteDirection | None]:
        location = self.db.scalars(
            select(Location)
            .where(Location.id == spot_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if location is None or not self.store.is_live(location, today):
            raise NotFoundError(f"Spot not found: {spot_id}")

        existing = self.db.scalars(
            select(Vote).where(Vote.location_id == spot_id, Vote.user_id == user_id)
        ).first()

        if existing is None:
            self.db.add(Vote(location_id=spot_id, user_id=user_id, vote_type=direction))
            self.db.flush()
            self.store.apply_counter_delta(spot_id, direction.counter, 1, commit=False)
            return VoteOutcome.RECORDED, direction

        if not self.config.allow_vote_changes:
            raise AlreadyVotedError(f"User {user_id} already voted on spot {spot_id}")

        if existing.vote_type is direction:
            self.db.delete(existing)
            self.db.flush()
            self.store.apply_counter_delta(spot_id, direction.counter, -1, commit=False)
            return VoteOutcome.RETRACTED, None

        previous = existing.vote_type
        existing.vote_type = direction
        self.db.flush()
        self.store.apply_counter_delta(spot_id, previous.counter, -1, commit=False)
        self.store.apply_counter_delta(spot_id, direction.counter, 1, commit=False)
        return VoteOutcome.CHANGED, direction

    # -------------------------------------------------------------------------
    # Ledger reads
    # -------------------------------------------------------------------------

    def votes_for_user(self, user_id: str) -> dict[str, VoteDirection]:
        """Map of spot id -> direction for everything `user_id` has voted on."""
        rows = self.db.execute(
            select(Vote.location_id, Vote.vote_type).where(Vote.user_id == user_id)
        ).all()
        return {row.location_id: row.vote_type for row in rows}

    def tally(self, spot_id: str) -> dict[VoteDirection, int]:
        rows = self.db.execute(
            select(Vote.vote_type, func.count(Vote.id))
            .where(Vote.location_id == spot_id)
            .group_by(Vote.vote_type)
        ).all()
        counts = {VoteDirection.UP: 0, VoteDirection.DOWN: 0}
        for vote_type, count in rows:
            counts[vote_type] = count
        return counts

    def recount(self, spot_id: str) -> Location:
        """Reset a spot's counters from the ledger."""
        counts = self.tally(spot_id)
        result = self.db.execute(
            update(Location)
            .where(Location.id == spot_id)
            .values(upvotes=counts[VoteDirection.UP], downvotes=counts[VoteDirection.DOWN])
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Spot not found: {spot_id}")
        self.db.commit()
        return self.store.get(spot_id, live_only=False)

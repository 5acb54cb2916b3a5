"""Append-only comment threads on spots."""

import datetime as dt
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import EngineConfig
from .errors import ValidationError
from .models import Comment
from .spots import SpotStore

logger = logging.getLogger(__name__)


class CommentThread:
    def __init__(self, db: Session, config: EngineConfig | None = None, store: SpotStore | None = None):
        self.db = db
        self.store = store or SpotStore(db, config)

    def add(self, spot_id: str, text: str, today: dt.date | None = None) -> Comment:
        """Append a comment. Expired or purged spots take no new comments (NotFoundError)."""
        body = (text or "").strip()
        if not body:
            raise ValidationError("Comment text is required")
        self.store.get(spot_id, today)

        comment = Comment(location_id=spot_id, text=body)
        self.db.add(comment)
        self.db.commit()
        self.db.refresh(comment)
        logger.debug(f"Comment {comment.id} added to {spot_id}")
        return comment

    def list(self, spot_id: str) -> list[Comment]:
        """Comments on a spot, newest first."""
        stmt = (
            select(Comment)
            .where(Comment.location_id == spot_id)
            .order_by(Comment.created_at.desc())
        )
        return list(self.db.scalars(stmt).all())

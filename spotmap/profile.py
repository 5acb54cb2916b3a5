"""Per-user session profile: bookmarks, recent searches and a cached vote map.

This is client-side state. The engine never reads it; callers load a
profile, mutate it, and save it back explicitly.
"""

import logging
import re
import secrets
import string
from pathlib import Path

from pydantic import BaseModel, Field

from .schemas import VoteDirection

logger = logging.getLogger(__name__)

MAX_RECENT_SEARCHES = 10

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits
_SAFE_USER_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def new_user_id() -> str:
    """Opaque, locally generated user token (not authenticated)."""
    return "u-" + "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(9))


def new_display_name() -> str:
    return "Hunter-" + "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(4))


class UserProfile(BaseModel):
    user_id: str
    display_name: str = Field(default_factory=new_display_name)
    bookmarks: list[str] = Field(default_factory=list, description="Saved spot ids, oldest first")
    recent_searches: list[str] = Field(default_factory=list, description="Most recent first")
    added: list[str] = Field(default_factory=list, description="Ids of spots this user submitted, oldest first")
    votes: dict[str, VoteDirection] = Field(default_factory=dict, description="Cached copy of the ledger")

    def toggle_bookmark(self, spot_id: str) -> bool:
        """Add or remove a bookmark. Returns True when the spot is now saved."""
        if spot_id in self.bookmarks:
            self.bookmarks.remove(spot_id)
            return False
        self.bookmarks.append(spot_id)
        return True

    def record_added(self, spot_id: str) -> None:
        if spot_id not in self.added:
            self.added.append(spot_id)

    def remember_search(self, query: str) -> None:
        query = query.strip()
        if not query:
            return
        if query in self.recent_searches:
            self.recent_searches.remove(query)
        self.recent_searches.insert(0, query)
        del self.recent_searches[MAX_RECENT_SEARCHES:]

    def sync_votes(self, ledger_votes: dict[str, VoteDirection]) -> None:
        """Replace the cached vote map with what the ledger says."""
        self.votes = dict(ledger_votes)


class ProfileStore:
    """JSON-file backed profiles, one file per user id."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, user_id: str) -> Path:
        if not _SAFE_USER_ID.match(user_id):
            raise ValueError(f"Invalid user id: {user_id!r}")
        return self.directory / f"{user_id}.json"

    def load(self, user_id: str) -> UserProfile:
        """Stored profile for `user_id`, or a fresh one when missing or unreadable."""
        path = self._path(user_id)
        if not path.exists():
            return UserProfile(user_id=user_id)
        try:
            return UserProfile.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Discarding unreadable profile {path}: {e}")
            return UserProfile(user_id=user_id)

    def save(self, profile: UserProfile) -> None:
        path = self._path(profile.user_id)
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(profile.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(path)

"""Engine configuration.

Thresholds, categories and collaborator endpoints live here instead of being
scattered across call sites. Values come from the environment (and `.env`),
falling back to the defaults the map has always used.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class ModerationThresholds(BaseModel):
    """Downvote boundaries that change how a spot is shown."""

    flag_margin: int = Field(default=5, description="downvotes - upvotes at which a spot is FLAGGED")
    suppress_downvotes: int = Field(default=10, description="Downvotes at which a spot is blurred (SUPPRESSED)")
    delete_downvotes: int = Field(default=20, description="Downvotes at which a spot is purged (DELETE)")


class Category(BaseModel):
    id: str
    label: str
    emoji: str


DEFAULT_CATEGORIES = [
    Category(id="biryani", label="Biryani", emoji="🍛"),
    Category(id="mosque", label="Mosque", emoji="🕌"),
    Category(id="khichuri", label="Khichuri", emoji="🥘"),
    Category(id="iftar", label="Iftar", emoji="🌙"),
    Category(id="water", label="Water / sherbet", emoji="🥤"),
    Category(id="other", label="Other", emoji="🎁"),
]


class EngineConfig(BaseModel):
    """Everything the lifecycle engine needs to know at construction time."""

    thresholds: ModerationThresholds = Field(default_factory=ModerationThresholds)
    categories: list[Category] = Field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    default_category: str = "biryani"
    landmark_category: str = "mosque"

    dedupe_epsilon_m: float = Field(default=10.0, gt=0, description="Same-place tolerance in metres")
    walking_speed_kmh: float = 5.0
    driving_speed_kmh: float = 30.0

    fallback_area_label: str = "Dhaka"

    vote_max_retries: int = Field(default=3, ge=0)
    vote_retry_delay_s: float = Field(default=0.05, ge=0)
    allow_vote_changes: bool = True

    geocoder_url: str = "https://nominatim.openstreetmap.org/reverse"
    geocoder_timeout_s: float = 5.0
    landmark_feed_url: str = "https://overpass-api.de/api/interpreter"
    landmark_feed_timeout_s: float = 25.0
    landmark_feed_filter: str = '["amenity"="place_of_worship"]["religion"="muslim"]'
    http_user_agent: str = "spotmap/0.1 (community aid map)"

    profile_dir: str = ".profiles"

    def category_ids(self) -> set[str]:
        return {c.id for c in self.categories}

    def normalize_category(self, raw: str | None) -> str:
        """Map a category id or emoji onto a known id; unknown values become 'other'."""
        if not raw:
            return self.default_category
        value = raw.strip()
        for category in self.categories:
            if value in (category.id, category.emoji):
                return category.id
        return "other"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def load_config() -> EngineConfig:
    """Build an EngineConfig from environment variables."""
    defaults = EngineConfig()
    return EngineConfig(
        thresholds=ModerationThresholds(
            flag_margin=_env_int("SPOTMAP_FLAG_MARGIN", defaults.thresholds.flag_margin),
            suppress_downvotes=_env_int("SPOTMAP_SUPPRESS_DOWNVOTES", defaults.thresholds.suppress_downvotes),
            delete_downvotes=_env_int("SPOTMAP_DELETE_DOWNVOTES", defaults.thresholds.delete_downvotes),
        ),
        dedupe_epsilon_m=_env_float("SPOTMAP_DEDUPE_EPSILON_M", defaults.dedupe_epsilon_m),
        fallback_area_label=os.getenv("SPOTMAP_FALLBACK_AREA", defaults.fallback_area_label),
        vote_max_retries=_env_int("SPOTMAP_VOTE_MAX_RETRIES", defaults.vote_max_retries),
        allow_vote_changes=os.getenv("SPOTMAP_ALLOW_VOTE_CHANGES", "true").lower() != "false",
        geocoder_url=os.getenv("GEOCODER_URL", defaults.geocoder_url),
        geocoder_timeout_s=_env_float("GEOCODER_TIMEOUT", defaults.geocoder_timeout_s),
        landmark_feed_url=os.getenv("LANDMARK_FEED_URL", defaults.landmark_feed_url),
        landmark_feed_timeout_s=_env_float("LANDMARK_FEED_TIMEOUT", defaults.landmark_feed_timeout_s),
        profile_dir=os.getenv("SPOTMAP_PROFILE_DIR", defaults.profile_dir),
    )


@lru_cache
def get_config() -> EngineConfig:
    return load_config()

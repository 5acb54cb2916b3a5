"""Landmark suggestions: fetch nearby points of interest and drop the ones already on the map.

The feed is an Overpass-compatible endpoint queried by bounding box. It is a
best-effort collaborator: a slow or failing feed yields no suggestions, never
an error.
"""

import asyncio
import datetime as dt
import logging
import math
from collections.abc import Iterable
from typing import Protocol

import httpx

from .config import EngineConfig, get_config
from .geo import BoundingBox, distance_m
from .schemas import LandmarkCandidate, SpotDraft

logger = logging.getLogger(__name__)

# Roughly one degree of latitude in metres
METRES_PER_DEGREE = 111_320.0
# Floor for cos(lat) near the poles
MIN_LNG_SCALE = 0.01


class HasCoordinates(Protocol):
    lat: float
    lng: float


class LandmarkDeduper:
    """Reconcile feed candidates against spots that already exist."""

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or get_config()

    def reconcile(
        self,
        candidates: Iterable[LandmarkCandidate],
        existing_spots: Iterable[HasCoordinates],
        epsilon_m: float | None = None,
    ) -> list[LandmarkCandidate]:
        """Candidates with no existing spot within `epsilon_m` metres, in input order."""
        epsilon = self.config.dedupe_epsilon_m if epsilon_m is None else epsilon_m
        known = [(spot.lat, spot.lng) for spot in existing_spots]

        novel = []
        for candidate in candidates:
            here = (candidate.lat, candidate.lng)
            if any(distance_m(here, point) <= epsilon for point in known):
                continue
            novel.append(candidate)
        return novel

    def search_area(self, candidates: list[LandmarkCandidate], epsilon_m: float | None = None) -> BoundingBox | None:
        """Bounding box covering the candidates plus the dedupe tolerance, for scoping the spot query."""
        if not candidates:
            return None
        epsilon = self.config.dedupe_epsilon_m if epsilon_m is None else epsilon_m
        box = BoundingBox.around([(c.lat, c.lng) for c in candidates])
        lat_pad = epsilon / METRES_PER_DEGREE * 2
        # A degree of longitude is cos(lat) times shorter; size for the most poleward edge
        poleward = min(max(abs(box.south), abs(box.north)) + lat_pad, 90.0)
        lng_pad = lat_pad / max(math.cos(math.radians(poleward)), MIN_LNG_SCALE)
        return box.padded(lat_pad, lng_pad)

    def to_draft(self, candidate: LandmarkCandidate, day: dt.date | None = None) -> SpotDraft:
        """Pre-filled submission for a one-tap "confirm this as a spot"."""
        return SpotDraft(
            name=candidate.name,
            area=candidate.area,
            category=self.config.landmark_category,
            lat=candidate.lat,
            lng=candidate.lng,
            date=day,
        )


# =============================================================================
# Feed client
# =============================================================================


def build_overpass_query(bbox: BoundingBox, node_filter: str, timeout_s: float) -> str:
    return (
        f"[out:json][timeout:{int(timeout_s)}];"
        f"(node{node_filter}({bbox.south},{bbox.west},{bbox.north},{bbox.east}););"
        "out body center;"
    )


def parse_overpass_elements(payload: dict) -> list[LandmarkCandidate]:
    candidates = []
    for element in payload.get("elements", []):
        center = element.get("center") or {}
        lat = element.get("lat", center.get("lat"))
        lng = element.get("lon", center.get("lon"))
        if lat is None or lng is None:
            continue
        tags = element.get("tags") or {}
        candidates.append(LandmarkCandidate(
            id=f"landmark-{element['id']}",
            lat=float(lat),
            lng=float(lng),
            name=tags.get("name") or tags.get("name:bn") or tags.get("name:en") or "Mosque",
            area=tags.get("addr:suburb") or tags.get("addr:street"),
        ))
    return candidates


async def fetch_landmarks(
    bbox: BoundingBox,
    config: EngineConfig | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[LandmarkCandidate]:
    """Candidates inside `bbox` from the landmark feed; [] on any failure or timeout."""
    config = config or get_config()
    if client is None:
        async with httpx.AsyncClient(
            timeout=config.landmark_feed_timeout_s,
            headers={"User-Agent": config.http_user_agent},
        ) as owned:
            return await fetch_landmarks(bbox, config, owned)

    query = build_overpass_query(bbox, config.landmark_feed_filter, config.landmark_feed_timeout_s)
    try:
        response = await asyncio.wait_for(
            client.post(config.landmark_feed_url, data={"data": query}),
            timeout=config.landmark_feed_timeout_s,
        )
        response.raise_for_status()
        candidates = parse_overpass_elements(response.json())
    except asyncio.TimeoutError:
        logger.warning(f"Landmark feed timed out after {config.landmark_feed_timeout_s}s")
        return []
    except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning(f"Landmark feed failed: {e}")
        return []

    logger.info(f"Landmark feed returned {len(candidates)} candidates")
    return candidates

"""FastAPI application for the community aid spot map."""

import datetime as dt
import logging
import os
from contextlib import asynccontextmanager

import logfire
from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .comments import CommentThread
from .config import EngineConfig, get_config
from .database import SessionLocal, get_db, init_db
from .errors import NotFoundError, SpotError, ValidationError
from .geo import BoundingBox
from .geocoding import reverse_geocode
from .landmarks import LandmarkDeduper, fetch_landmarks
from .profile import ProfileStore, UserProfile
from .schemas import (
    CommentIn,
    CommentOut,
    LandmarkCandidate,
    LandmarkSuggestions,
    ReconcileRequest,
    SpotDraft,
    SpotOut,
    SpotStats,
    VoteDirection,
    VoteRequest,
    VoteResult,
)
from .spots import SpotStore, utc_today
from .votes import VoteLedger

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield


app = FastAPI(
    title="Spot Map API",
    description="Crowd-sourced aid and food distribution spots with community moderation",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure Logfire for observability (after app creation)
if os.getenv("LOGFIRE_TOKEN"):
    logfire.configure()
    logfire.instrument_fastapi(app)
    logfire.instrument_httpx()

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SpotError)
async def spot_error_handler(request: Request, exc: SpotError):
    """Translate engine errors into JSON responses."""
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


def get_profile_store(config: EngineConfig = Depends(get_config)) -> ProfileStore:
    return ProfileStore(config.profile_dir)


def load_profile(profiles: ProfileStore, user_id: str) -> UserProfile:
    try:
        return profiles.load(user_id)
    except ValueError as e:
        raise ValidationError(str(e)) from e


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Spot Map API"}


# =============================================================================
# Spots
# =============================================================================


async def refresh_area(spot_id: str, lat: float, lng: float, config: EngineConfig) -> None:
    """Fill in a spot's area label after creation. Failures keep the fallback label."""
    label = await reverse_geocode(lat, lng, config)
    db = SessionLocal()
    try:
        SpotStore(db, config).set_area(spot_id, label)
        logger.debug(f"Area for {spot_id} resolved to {label}")
    except NotFoundError:
        logger.info(f"Spot {spot_id} was removed before its area resolved")
    finally:
        db.close()


@app.get("/api/spots", response_model=list[SpotOut])
async def list_spots(
    on: dt.date | None = Query(default=None, alias="date", description="Reference day; defaults to today"),
    q: str | None = Query(default=None, description="Search name, area or category"),
    lat: float | None = Query(default=None, ge=-90, le=90, description="Caller latitude"),
    lng: float | None = Query(default=None, ge=-180, le=180, description="Caller longitude"),
    user_id: str | None = Query(default=None, description="Remember the search in this user's profile"),
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_config),
    profiles: ProfileStore = Depends(get_profile_store),
):
    """Spots visible on a day, newest first, with trust state.

    Expired and hard-flagged spots are purged before the listing is read.
    When the caller's position is given each spot also carries distance and
    walking/driving minutes.
    """
    store = SpotStore(db, config)
    origin = (lat, lng) if lat is not None and lng is not None else None
    spots = store.list_visible(on or utc_today(), query=q)
    if q and user_id:
        profile = load_profile(profiles, user_id)
        profile.remember_search(q)
        profiles.save(profile)
    return [store.to_out(s, origin) for s in spots]


@app.get("/api/spots/{spot_id}", response_model=SpotOut)
async def get_spot(
    spot_id: str,
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_config),
):
    store = SpotStore(db, config)
    return store.to_out(store.get(spot_id))


@app.post("/api/spots", response_model=SpotOut, status_code=201)
async def create_spot(
    draft: SpotDraft,
    background_tasks: BackgroundTasks,
    user_id: str | None = Query(default=None, description="Credit the spot to this user's profile"),
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_config),
    profiles: ProfileStore = Depends(get_profile_store),
):
    """Submit a new spot.

    When no area is given the spot is stored with the fallback label and the
    real one is looked up in the background, so a slow geocoder never delays
    the submission.
    """
    profile = load_profile(profiles, user_id) if user_id else None
    store = SpotStore(db, config)
    location = store.create(draft)
    if profile is not None:
        profile.record_added(location.id)
        profiles.save(profile)
    if not (draft.area or "").strip():
        background_tasks.add_task(refresh_area, location.id, location.lat, location.lng, config)
    return store.to_out(location)


@app.delete("/api/spots/{spot_id}", status_code=204)
async def delete_spot(
    spot_id: str,
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_config),
):
    SpotStore(db, config).remove(spot_id)
    return Response(status_code=204)


# =============================================================================
# Votes
# =============================================================================


@app.post("/api/spots/{spot_id}/votes", response_model=VoteResult)
def cast_vote(
    spot_id: str,
    vote: VoteRequest,
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_config),
):
    """Vote a spot real (up) or fake (down).

    Repeating a vote retracts it; voting the other way changes it. Sync
    route: conflict retries sleep, so this runs in the threadpool.
    """
    return VoteLedger(db, config).cast_vote(spot_id, vote.user_id, vote.direction)


@app.get("/api/users/{user_id}/votes", response_model=dict[str, VoteDirection])
async def get_user_votes(
    user_id: str,
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_config),
):
    """Every vote a user has cast, keyed by spot id."""
    return VoteLedger(db, config).votes_for_user(user_id)


# =============================================================================
# Comments
# =============================================================================


@app.get("/api/spots/{spot_id}/comments", response_model=list[CommentOut])
async def list_comments(spot_id: str, db: Session = Depends(get_db)):
    return CommentThread(db).list(spot_id)


@app.post("/api/spots/{spot_id}/comments", response_model=CommentOut, status_code=201)
async def add_comment(
    spot_id: str,
    comment: CommentIn,
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_config),
):
    return CommentThread(db, config).add(spot_id, comment.text)


# =============================================================================
# Landmark suggestions
# =============================================================================


@app.post("/api/landmarks/reconcile", response_model=LandmarkSuggestions)
async def reconcile_landmarks(
    request: ReconcileRequest,
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_config),
):
    """Filter client-supplied candidates down to those not already on the map."""
    deduper = LandmarkDeduper(config)
    area = deduper.search_area(request.candidates, request.epsilon_m)
    existing = SpotStore(db, config).within_bbox(area) if area else []
    suggestions = deduper.reconcile(request.candidates, existing, request.epsilon_m)
    return LandmarkSuggestions(suggestions=suggestions, total_candidates=len(request.candidates))


@app.get("/api/landmarks/suggestions", response_model=LandmarkSuggestions)
async def landmark_suggestions(
    south: float = Query(ge=-90, le=90),
    west: float = Query(ge=-180, le=180),
    north: float = Query(ge=-90, le=90),
    east: float = Query(ge=-180, le=180),
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_config),
):
    """Fetch landmarks in the viewport and return the ones not yet added as spots.

    A failing or slow landmark feed returns an empty suggestion list.
    """
    if south > north or west > east:
        raise ValidationError("Bounding box corners are inverted")
    bbox = BoundingBox(south=south, west=west, north=north, east=east)
    candidates = await fetch_landmarks(bbox, config)
    deduper = LandmarkDeduper(config)
    area = deduper.search_area(candidates)
    existing = SpotStore(db, config).within_bbox(area) if area else []
    suggestions = deduper.reconcile(candidates, existing)
    return LandmarkSuggestions(suggestions=suggestions, total_candidates=len(candidates))


@app.post("/api/landmarks/accept", response_model=SpotOut, status_code=201)
async def accept_landmark(
    candidate: LandmarkCandidate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_config),
):
    """Turn a suggested landmark into a spot."""
    deduper = LandmarkDeduper(config)
    store = SpotStore(db, config)
    nearby = store.within_bbox(deduper.search_area([candidate]))
    if not deduper.reconcile([candidate], nearby):
        raise ValidationError(f"'{candidate.name}' is already on the map")
    location = store.create(deduper.to_draft(candidate))
    if not candidate.area:
        background_tasks.add_task(refresh_area, location.id, location.lat, location.lng, config)
    return store.to_out(location)


# =============================================================================
# User profile (client-side state, kept out of the engine)
# =============================================================================


@app.get("/api/users/{user_id}/profile", response_model=UserProfile)
async def get_profile(
    user_id: str,
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_config),
    profiles: ProfileStore = Depends(get_profile_store),
):
    """Load a user's profile with its vote cache refreshed from the ledger."""
    profile = load_profile(profiles, user_id)
    profile.sync_votes(VoteLedger(db, config).votes_for_user(user_id))
    profiles.save(profile)
    return profile


@app.post("/api/users/{user_id}/bookmarks/{spot_id}", response_model=UserProfile)
async def toggle_bookmark(
    user_id: str,
    spot_id: str,
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_config),
    profiles: ProfileStore = Depends(get_profile_store),
):
    SpotStore(db, config).get(spot_id)
    profile = load_profile(profiles, user_id)
    profile.toggle_bookmark(spot_id)
    profiles.save(profile)
    return profile


# =============================================================================
# Dashboard
# =============================================================================


@app.get("/api/stats", response_model=SpotStats)
async def get_stats(
    on: dt.date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_config),
):
    """Counts of visible spots by trust state, plus ledger and comment totals."""
    return SpotStore(db, config).stats(on or utc_today())

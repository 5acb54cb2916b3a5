"""Preview landmark suggestions for an area.

Fetches candidates from the landmark feed for a bounding box, drops the ones
already represented by a spot, and prints what would be suggested to users.

Usage:
    uv run python scripts/fetch_landmarks.py --bbox 23.80 90.40 23.82 90.42
    uv run python scripts/fetch_landmarks.py --around 23.8103 90.4125 --radius-km 1
    uv run python scripts/fetch_landmarks.py --around 23.8103 90.4125 --epsilon-m 25
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from spotmap.config import get_config
from spotmap.database import SessionLocal, init_db
from spotmap.geo import BoundingBox
from spotmap.landmarks import METRES_PER_DEGREE, LandmarkDeduper, fetch_landmarks
from spotmap.spots import SpotStore


def bbox_around(lat: float, lng: float, radius_km: float) -> BoundingBox:
    half = radius_km * 1000 / METRES_PER_DEGREE
    return BoundingBox(south=lat - half, west=lng - half, north=lat + half, east=lng + half)


def main():
    parser = argparse.ArgumentParser(description="Preview landmark suggestions")
    parser.add_argument("--bbox", nargs=4, type=float, metavar=("SOUTH", "WEST", "NORTH", "EAST"))
    parser.add_argument("--around", nargs=2, type=float, metavar=("LAT", "LNG"))
    parser.add_argument("--radius-km", type=float, default=1.0)
    parser.add_argument("--epsilon-m", type=float, default=None, help="Dedupe tolerance in metres")

    args = parser.parse_args()

    if args.bbox:
        bbox = BoundingBox(*args.bbox)
    elif args.around:
        bbox = bbox_around(args.around[0], args.around[1], args.radius_km)
    else:
        parser.print_help()
        return

    config = get_config()
    init_db()

    print(f"Fetching landmarks in {bbox}...")
    candidates = asyncio.run(fetch_landmarks(bbox, config))

    deduper = LandmarkDeduper(config)
    db = SessionLocal()
    try:
        area = deduper.search_area(candidates, args.epsilon_m)
        existing = SpotStore(db, config).within_bbox(area) if area else []
        suggestions = deduper.reconcile(candidates, existing, args.epsilon_m)
    finally:
        db.close()

    print(f"  Candidates:  {len(candidates)}")
    print(f"  Already on map: {len(candidates) - len(suggestions)}")
    print(f"  Suggestions: {len(suggestions)}")
    for s in suggestions:
        print(f"    {s.id:<24} {s.lat:.6f},{s.lng:.6f}  {s.name}")


if __name__ == "__main__":
    main()

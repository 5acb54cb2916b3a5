"""Great-circle distance and travel-time helpers."""

import math
from dataclasses import dataclass

EARTH_RADIUS_KM = 6371.0

LatLng = tuple[float, float]


def distance_km(a: LatLng, b: LatLng) -> float:
    """Haversine distance between two (lat, lng) pairs on a spherical earth."""
    lat1, lng1 = a
    lat2, lng2 = b
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def distance_m(a: LatLng, b: LatLng) -> float:
    return distance_km(a, b) * 1000.0


def travel_minutes(distance: float | None, speed_kmh: float) -> int | None:
    """Minutes to cover `distance` km at `speed_kmh`, or None if the distance is unknown."""
    if distance is None or math.isnan(distance):
        return None
    return round(distance / speed_kmh * 60)


@dataclass(frozen=True)
class BoundingBox:
    south: float
    west: float
    north: float
    east: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east

    def padded(self, degrees: float, lng_degrees: float | None = None) -> "BoundingBox":
        """Grow the box by `degrees` of latitude and `lng_degrees` (default: the same) of longitude."""
        lng_degrees = degrees if lng_degrees is None else lng_degrees
        return BoundingBox(
            south=self.south - degrees,
            west=self.west - lng_degrees,
            north=self.north + degrees,
            east=self.east + lng_degrees,
        )

    @classmethod
    def around(cls, points: list[LatLng]) -> "BoundingBox":
        lats = [p[0] for p in points]
        lngs = [p[1] for p in points]
        return cls(south=min(lats), west=min(lngs), north=max(lats), east=max(lngs))

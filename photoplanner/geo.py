import math
from typing import Iterable, Optional, Tuple

EARTH_RADIUS_KM = 6371.0

LatLng = Tuple[float, float]


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def parse_lat_lng(value: Optional[str]) -> Optional[LatLng]:
    """Parse ``"lat,lng"`` text; anything else (place names included) gives None."""
    if not value:
        return None
    parts = [part.strip() for part in value.split(',')]
    if len(parts) != 2:
        return None
    try:
        lat, lng = float(parts[0]), float(parts[1])
    except ValueError:
        return None
    if math.isnan(lat) or math.isnan(lng):
        return None
    if not -90 <= lat <= 90 or not -180 <= lng <= 180:
        return None
    return lat, lng


def nearest(point: LatLng, candidates: Iterable[LatLng]) -> Optional[Tuple[LatLng, float]]:
    """Closest candidate to ``point`` and its distance in km."""
    best = None
    for candidate in candidates:
        distance = haversine_km(point[0], point[1], candidate[0], candidate[1])
        if best is None or distance < best[1]:
            best = (candidate, distance)
    return best

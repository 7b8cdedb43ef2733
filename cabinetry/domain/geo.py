from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

EARTH_RADIUS_KM = 6371.0

_POSTCODE_RE = re.compile(r"^\d{4}$")


class State(StrEnum):
    NSW = "NSW"
    VIC = "VIC"
    QLD = "QLD"
    SA = "SA"
    WA = "WA"
    TAS = "TAS"
    NT = "NT"
    ACT = "ACT"


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


# Melbourne CBD, default center for new assembly zones
DEFAULT_CENTER = GeoPoint(-37.8136, 144.9631)


def is_valid_postcode(postcode: Optional[str]) -> bool:
    """Australian postcodes are exactly four digits."""
    return bool(postcode) and bool(_POSTCODE_RE.match(postcode.strip()))


def is_valid_coordinate(latitude: Optional[float], longitude: Optional[float]) -> bool:
    if latitude is None or longitude is None:
        return False
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance rounded to 0.1 km."""
    return round(haversine_km(a, b), 1)

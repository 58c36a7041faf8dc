"""Great-circle distance helpers."""

from dataclasses import dataclass

from geopy.distance import great_circle

from .errors import ValidationError


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float

    def __post_init__(self):
        if not -90 <= self.lat <= 90:
            raise ValidationError("Latitude must be between -90 and 90", {"lat": self.lat})
        if not -180 <= self.lng <= 180:
            raise ValidationError("Longitude must be between -180 and 180", {"lng": self.lng})


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Distance along the earth's surface in kilometers (spherical model)."""
    return great_circle((a.lat, a.lng), (b.lat, b.lng)).km

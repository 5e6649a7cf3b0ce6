"""Geographic value objects shared by resources and user context."""

import math
from dataclasses import dataclass

_EARTH_RADIUS_MILES = 3958.8


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 coordinate."""

    lat: float
    lon: float

    def distance_miles(self, other: "GeoPoint") -> float:
        """Great-circle (haversine) distance to another point, in miles."""
        phi1 = math.radians(self.lat)
        phi2 = math.radians(other.lat)
        d_phi = math.radians(other.lat - self.lat)
        d_lambda = math.radians(other.lon - self.lon)
        a = (
            math.sin(d_phi / 2) ** 2
            + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
        )
        return 2 * _EARTH_RADIUS_MILES * math.asin(min(1.0, math.sqrt(a)))


@dataclass(frozen=True)
class ServiceArea:
    """Circular service area around a center point."""

    center: GeoPoint
    radius_miles: float

    def covers(self, point: GeoPoint) -> bool:
        return self.center.distance_miles(point) <= self.radius_miles

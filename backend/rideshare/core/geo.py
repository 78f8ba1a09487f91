"""
Geographic utility functions.

Distances for routes and the bounding boxes used by area search.
"""
from dataclasses import dataclass
from math import radians, cos, sin, asin, sqrt

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0  # Approximate length of one degree of latitude


def calculate_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in kilometers using Haversine formula.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in kilometers
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(sqrt(a))
    return c * EARTH_RADIUS_KM


def estimate_duration_minutes(distance_km: float) -> int:
    """Rough drive time: 1.5 minutes per km (40 km/h) plus 5 minutes for start/stop."""
    return int(distance_km * 1.5 + 5)


def is_valid_coordinate(lat: float, lng: float) -> bool:
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned lat/lng box."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @classmethod
    def around(cls, lat: float, lng: float, radius_km: float) -> "BoundingBox":
        """
        Box of +/- radius around a point.

        The longitude delta is widened by 1/cos(latitude) so the box stays
        roughly square on an equirectangular projection.
        """
        lat_range = radius_km / KM_PER_DEGREE
        cos_lat = abs(cos(radians(lat)))
        # Poles: the box spans every longitude
        lng_range = 180.0 if cos_lat < 1e-9 else radius_km / (KM_PER_DEGREE * cos_lat)
        return cls(
            min_lat=lat - lat_range,
            max_lat=lat + lat_range,
            min_lng=lng - lng_range,
            max_lng=lng + lng_range,
        )

    def contains(self, lat: float, lng: float) -> bool:
        """
        Point-in-box test.

        A box built around a point near the antimeridian can reach past
        +/-180; longitudes are compared modulo 360 so points just across
        the line still match.
        """
        if not self.min_lat <= lat <= self.max_lat:
            return False
        if self.max_lng - self.min_lng >= 360.0:
            return True
        # Shift lng into [min_lng, min_lng + 360)
        shifted = (lng - self.min_lng) % 360.0 + self.min_lng
        return shifted <= self.max_lng

"""
Route model: origin, destination and geometry a trip follows.
"""
from sqlalchemy import Column, String, Float, Integer, Text
from rideshare.db.base import BaseModel


class Route(BaseModel):
    """Immutable once created."""
    __tablename__ = "routes"

    start_location = Column(String(200), nullable=False, index=True)  # Short name, e.g. "Downtown"
    start_address = Column(String(250), nullable=False)
    start_lat = Column(Float, nullable=False)
    start_lng = Column(Float, nullable=False)
    end_location = Column(String(200), nullable=False, index=True)
    end_address = Column(String(250), nullable=False)
    end_lat = Column(Float, nullable=False)
    end_lng = Column(Float, nullable=False)
    distance = Column(Float, nullable=False)  # km
    duration = Column(Integer, nullable=False)  # minutes
    polyline = Column(Text, nullable=True)  # Encoded polyline from the geocoding provider

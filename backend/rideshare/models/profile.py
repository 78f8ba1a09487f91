"""
Profile and Car models.

Both are owned by external services; the core keeps a copy for foreign keys
and search joins.
"""
from sqlalchemy import Column, String, Float, Integer, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from rideshare.db.base import Base, BaseModel, TimestampMixin


class Profile(Base, TimestampMixin):
    """Public profile of a user (driver or passenger)."""
    __tablename__ = "profiles"

    user_id = Column(String(36), primary_key=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")
    rating = Column(Float, nullable=False, default=0.0)
    trips_count = Column(Integer, nullable=False, default=0)

    cars = relationship("Car", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Car(BaseModel):
    """Vehicle a driver offers trips with."""
    __tablename__ = "cars"

    owner_id = Column(String(36), ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False, index=True)
    make = Column(String(50), nullable=False)
    model = Column(String(50), nullable=False)
    seats = Column(Integer, nullable=False)
    amenities = Column(String(250), nullable=True)  # Comma-separated values
    is_active = Column(Boolean, default=True, nullable=False)

    owner = relationship("Profile", back_populates="cars")

    @property
    def amenity_list(self):
        if not self.amenities:
            return []
        return [item.strip() for item in self.amenities.split(",") if item.strip()]

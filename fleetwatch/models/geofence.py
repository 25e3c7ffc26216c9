"""
Geofence model for circular and polygonal alert zones
"""
import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, String, DateTime, Float, Integer, Boolean, ForeignKey, Enum as SQLEnum, JSON
)
from fleetwatch.models.database import Base


class GeometryKind(str, Enum):
    CIRCLE = "circle"
    POLYGON = "polygon"


class CreationMode(str, Enum):
    ADDRESS = "address"
    COORDINATES = "coordinates"
    PIN = "pin"

    @property
    def geometry_kind(self) -> GeometryKind:
        if self is CreationMode.COORDINATES:
            return GeometryKind.POLYGON
        return GeometryKind.CIRCLE


class AlertType(str, Enum):
    ENTRY = "entry"
    EXIT = "exit"
    BOTH = "both"
    SPEED_LIMIT = "speed_limit"


class Visibility(str, Enum):
    ALL = "all"
    OWNER_ONLY = "owner_only"
    ASSIGNED = "assigned"


class Geofence(Base):
    __tablename__ = "geofences"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    color = Column(String(32), nullable=False, default="#3BA2E8")

    geometry_kind = Column(SQLEnum(GeometryKind), nullable=False)
    creation_mode = Column(SQLEnum(CreationMode), nullable=False)

    # Circle center, or reference centroid for polygons
    center_latitude = Column(Float, nullable=False)
    center_longitude = Column(Float, nullable=False)
    radius_meters = Column(Float, nullable=True)

    # Polygon ring in exchange order: [[lng, lat], ...], not explicitly closed
    polygon_coordinates = Column(JSON, nullable=True)

    alert_type = Column(SQLEnum(AlertType), nullable=False, default=AlertType.BOTH)
    speed_limit_kph = Column(Integer, nullable=True)

    # Assignment: global, or scoped to one client organisation
    is_global = Column(Boolean, default=False)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=True, index=True)

    # Visibility within the client organisation
    visibility = Column(SQLEnum(Visibility), nullable=False, default=Visibility.ALL)
    assigned_user_ids = Column(JSON, nullable=False, default=list)

    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    created_by = Column(String(36), nullable=True)
    created_by_role = Column(String(50), nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Geofence {self.name}>"

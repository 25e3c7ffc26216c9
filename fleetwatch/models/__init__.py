"""
Database models package
"""
from fleetwatch.models.database import Base, get_db, init_db
from fleetwatch.models.user import User, UserRole, Client
from fleetwatch.models.geofence import (
    Geofence, GeometryKind, CreationMode, AlertType, Visibility
)
from fleetwatch.models.audit import AuditLog, AuditAction

__all__ = [
    "Base",
    "get_db",
    "init_db",
    "User",
    "UserRole",
    "Client",
    "Geofence",
    "GeometryKind",
    "CreationMode",
    "AlertType",
    "Visibility",
    "AuditLog",
    "AuditAction",
]

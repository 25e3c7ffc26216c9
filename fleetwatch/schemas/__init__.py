"""
Pydantic schemas package
"""
from fleetwatch.schemas.user import (
    Actor, UserSummary, UserListResponse, LoginRequest, TokenResponse
)
from fleetwatch.schemas.visibility import VisibilityScope
from fleetwatch.schemas.geofence import (
    GeometrySource, GeofenceFormFields, GeofenceDraft, GlobalAssignment, ClientAssignment,
    GeofencePayload, GeofenceResponse, GeofenceListResponse,
    GeofenceCheckRequest, GeofenceCheckResponse
)

__all__ = [
    # User
    "Actor", "UserSummary", "UserListResponse", "LoginRequest", "TokenResponse",
    # Visibility
    "VisibilityScope",
    # Geofence
    "GeometrySource", "GeofenceFormFields", "GeofenceDraft", "GlobalAssignment",
    "ClientAssignment", "GeofencePayload", "GeofenceResponse", "GeofenceListResponse",
    "GeofenceCheckRequest", "GeofenceCheckResponse",
]

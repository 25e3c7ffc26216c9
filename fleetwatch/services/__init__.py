"""
Services package
"""
from fleetwatch.services.geofence_service import geofence_service, GeofenceService
from fleetwatch.services.audit_service import audit_service, AuditService

__all__ = [
    "geofence_service",
    "GeofenceService",
    "audit_service",
    "AuditService",
]

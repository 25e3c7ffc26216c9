"""
Geofence persistence and containment checks
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetwatch.core.exceptions import ValidationError
from fleetwatch.models import Client, Geofence, GeometryKind, Visibility
from fleetwatch.schemas.geofence import ClientAssignment, GeofencePayload
from fleetwatch.schemas.user import Actor
from fleetwatch.services.geometry import (
    from_exchange_order, haversine_distance, open_ring, point_in_polygon
)
from fleetwatch.services.user_directory import SqlUserDirectory, resolve_eligible_users
from fleetwatch.services.visibility_scope import ListingFilter, ensure_assignable, matches_filter

logger = logging.getLogger(__name__)


class GeofenceService:
    """Stores assembled geofence payloads and evaluates points against them"""

    @staticmethod
    def ring_of(geofence: Geofence) -> List[Tuple[float, float]]:
        """Stored exchange-order coordinates as an interactive (lat, lng) ring"""
        return open_ring(from_exchange_order(geofence.polygon_coordinates or []))

    async def check_point_in_geofence(
        self,
        geofence: Geofence,
        latitude: float,
        longitude: float
    ) -> Tuple[bool, Optional[float]]:
        """
        Check if a point is within a geofence.
        Returns (is_inside, distance_from_center)
        """
        if geofence.geometry_kind == GeometryKind.CIRCLE:
            distance = haversine_distance(
                latitude, longitude,
                geofence.center_latitude, geofence.center_longitude
            )
            return distance <= geofence.radius_meters, distance

        ring = self.ring_of(geofence)
        if len(ring) < 3:
            return False, None
        return point_in_polygon(latitude, longitude, ring), None

    async def validate_references(self, db: AsyncSession, actor: Actor, payload: GeofencePayload) -> None:
        """Checks that need the database: the client exists and assignees belong to it"""
        assignment = payload.assignment
        if isinstance(assignment, ClientAssignment):
            client = await db.get(Client, assignment.client_id)
            if client is None:
                raise ValidationError("client_id", "Unknown client")

        scope = payload.visibility
        if scope.visibility != Visibility.ASSIGNED:
            return
        if not isinstance(assignment, ClientAssignment):
            raise ValidationError("visibility", "Only client geofences can be assigned to users")
        eligible = await resolve_eligible_users(actor, assignment.client_id, SqlUserDirectory(db))
        ensure_assignable(scope.assigned_user_ids, eligible)

    @staticmethod
    def apply_payload(geofence: Geofence, payload: GeofencePayload) -> None:
        geofence.name = payload.name
        geofence.color = payload.color
        geofence.geometry_kind = payload.geometry_kind
        geofence.creation_mode = payload.creation_mode
        geofence.center_latitude, geofence.center_longitude = payload.center
        geofence.radius_meters = payload.radius
        geofence.polygon_coordinates = (
            [list(pair) for pair in payload.polygon_coordinates]
            if payload.polygon_coordinates is not None else None
        )
        geofence.alert_type = payload.alert_type
        geofence.speed_limit_kph = payload.speed_limit_kph

        if isinstance(payload.assignment, ClientAssignment):
            geofence.client_id = payload.assignment.client_id
            geofence.is_global = False
        else:
            geofence.client_id = None
            geofence.is_global = True

        geofence.visibility = payload.visibility.visibility
        geofence.assigned_user_ids = list(payload.visibility.assigned_user_ids)

    async def create(self, db: AsyncSession, actor: Actor, payload: GeofencePayload) -> Geofence:
        await self.validate_references(db, actor, payload)
        geofence = Geofence(created_by=actor.id, created_by_role=actor.role.value)
        self.apply_payload(geofence, payload)
        db.add(geofence)
        await db.flush()
        logger.info(
            f"Created geofence '{geofence.name}' by {actor.role.value} {actor.id} "
            f"(global: {geofence.is_global}, client: {geofence.client_id or 'none'})"
        )
        return geofence

    async def update(self, db: AsyncSession, actor: Actor, geofence: Geofence,
                     payload: GeofencePayload) -> dict:
        """Apply a payload and return the changed fields as {field: {old, new}}"""
        await self.validate_references(db, actor, payload)
        tracked = (
            "name", "color", "geometry_kind", "creation_mode", "center_latitude",
            "center_longitude", "radius_meters", "polygon_coordinates", "alert_type",
            "speed_limit_kph", "client_id", "is_global", "visibility", "assigned_user_ids",
        )
        before = {field: getattr(geofence, field) for field in tracked}
        self.apply_payload(geofence, payload)
        changes = {
            field: {"old": str(before[field]), "new": str(getattr(geofence, field))}
            for field in tracked
            if before[field] != getattr(geofence, field)
        }
        await db.flush()
        return changes

    async def soft_delete(self, db: AsyncSession, geofence: Geofence) -> None:
        geofence.deleted_at = datetime.utcnow()
        await db.flush()

    async def get_visible(self, db: AsyncSession, actor: Actor, geofence_id: str) -> Optional[Geofence]:
        result = await db.execute(
            select(Geofence).where(Geofence.id == geofence_id, Geofence.deleted_at == None)
        )
        geofence = result.scalar_one_or_none()
        if geofence is None or not matches_filter(actor, geofence, ListingFilter.ALL):
            return None
        return geofence

    async def list_visible(
        self,
        db: AsyncSession,
        actor: Actor,
        listing: ListingFilter = ListingFilter.ALL,
        client_id: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> List[Geofence]:
        query = select(Geofence).where(Geofence.deleted_at == None)

        if not actor.is_superuser:
            query = query.where(
                (Geofence.is_global == True) | (Geofence.client_id == actor.client_id)
            )
        elif client_id:
            query = query.where(
                (Geofence.is_global == True) | (Geofence.client_id == client_id)
            )
        if is_active is not None:
            query = query.where(Geofence.is_active == is_active)

        query = query.order_by(Geofence.created_at.desc())
        result = await db.execute(query)
        return [g for g in result.scalars().all() if matches_filter(actor, g, listing)]


geofence_service = GeofenceService()

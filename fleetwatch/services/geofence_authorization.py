"""
Geofence payload assembly and assignment authorization.

assemble_geofence() turns editor output, form fields and the current
actor into a GeofencePayload or raises a ValidationError naming the
offending field. It has no side effects and never submits anything.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from fleetwatch.core.config import settings
from fleetwatch.core.exceptions import ValidationError
from fleetwatch.models.geofence import AlertType, CreationMode
from fleetwatch.schemas.geofence import (
    ClientAssignment, GeofenceFormFields, GeofencePayload, GeometrySource, GlobalAssignment
)
from fleetwatch.schemas.user import Actor
from fleetwatch.schemas.visibility import VisibilityScope
from fleetwatch.services.circle_editor import parse_number, validate_circle
from fleetwatch.services.geometry import open_ring, polygon_centroid, to_exchange_order

logger = logging.getLogger(__name__)

MIN_RING_POINTS = 3
MAX_NAME_LENGTH = 255


@dataclass(frozen=True)
class AssignmentOptions:
    """What the assignment part of the form may offer to the actor"""
    show_assignment_ui: bool
    offer_global: bool
    offer_client_choice: bool
    forced_client_id: Optional[str] = None


@dataclass(frozen=True)
class AlertConfiguration:
    alert_types: Tuple[AlertType, ...]
    speed_limit_range: Tuple[int, int]


def resolve_assignment_options(actor: Actor, explicit_client_id: Optional[str] = None) -> AssignmentOptions:
    if explicit_client_id:
        return AssignmentOptions(
            show_assignment_ui=False, offer_global=False, offer_client_choice=False,
            forced_client_id=explicit_client_id,
        )
    if actor.is_superuser:
        return AssignmentOptions(show_assignment_ui=True, offer_global=True, offer_client_choice=True)
    return AssignmentOptions(
        show_assignment_ui=False, offer_global=False, offer_client_choice=False,
        forced_client_id=actor.client_id,
    )


def allowed_alert_types(actor: Actor) -> AlertConfiguration:
    # Every role that may edit geofences may configure any alert type
    return AlertConfiguration(
        alert_types=tuple(AlertType),
        speed_limit_range=(0, settings.MAX_SPEED_LIMIT_KPH),
    )


def resolve_assignment(
    actor: Actor,
    fields: GeofenceFormFields,
    explicit_client_id: Optional[str] = None,
) -> Union[GlobalAssignment, ClientAssignment]:
    if explicit_client_id:
        if not actor.is_superuser and actor.client_id != explicit_client_id:
            raise ValidationError("client_id", "Geofences can only be assigned to your own client")
        return ClientAssignment(client_id=explicit_client_id)

    if actor.is_superuser:
        if fields.assignment_kind == "global":
            return GlobalAssignment()
        client_id = (fields.client_id or "").strip()
        if not client_id:
            raise ValidationError("client_id", "Select the client for this geofence")
        return ClientAssignment(client_id=client_id)

    if not actor.client_id:
        raise ValidationError("assignment", "Your account is not bound to a client")
    return ClientAssignment(client_id=actor.client_id)


def parse_speed_limit(value) -> int:
    number = parse_number(value)
    if number is None:
        raise ValidationError("speed_limit_kph", "Speed limit is required for speed limit alerts")
    if not number.is_integer():
        raise ValidationError("speed_limit_kph", "Speed limit must be a whole number of km/h")
    limit = int(number)
    if not 0 <= limit <= settings.MAX_SPEED_LIMIT_KPH:
        raise ValidationError(
            "speed_limit_kph", f"Speed limit must be between 0 and {settings.MAX_SPEED_LIMIT_KPH} km/h"
        )
    return limit


def assemble_geofence(
    geometry: GeometrySource,
    fields: GeofenceFormFields,
    actor: Actor,
    explicit_client_id: Optional[str] = None,
    visibility: Optional[VisibilityScope] = None,
    geofence_id: Optional[str] = None,
) -> GeofencePayload:
    # 1. name
    name = (fields.name or "").strip()
    if not name:
        raise ValidationError("name", "Name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError("name", f"Name must be at most {MAX_NAME_LENGTH} characters")

    # 2. speed limit, dropped entirely for other alert types
    speed_limit_kph = None
    if fields.alert_type == AlertType.SPEED_LIMIT:
        speed_limit_kph = parse_speed_limit(fields.speed_limit_kph)

    # 3. geometry
    if geometry.creation_mode == CreationMode.COORDINATES:
        ring = open_ring(geometry.ring or [])
        if len(ring) < MIN_RING_POINTS:
            raise ValidationError("ring", f"Draw a polygon with at least {MIN_RING_POINTS} points")
        for lat, lng in ring:
            if not (-90 <= lat <= 90 and -180 <= lng <= 180):
                raise ValidationError("ring", "Polygon points must be valid coordinates")
        center = polygon_centroid(ring)
        radius = None
        polygon_coordinates = to_exchange_order(ring)
    else:
        circle = validate_circle(geometry.latitude, geometry.longitude, geometry.radius)
        center = circle.center
        radius = circle.radius
        polygon_coordinates = None

    # 4. assignment
    assignment = resolve_assignment(actor, fields, explicit_client_id)

    logger.debug(f"Assembled {geometry.creation_mode.value} geofence '{name}' for {actor.role.value}")
    return GeofencePayload(
        id=geofence_id,
        name=name,
        color=fields.color or settings.DEFAULT_GEOFENCE_COLOR,
        geometry_kind=geometry.creation_mode.geometry_kind,
        creation_mode=geometry.creation_mode,
        center=center,
        radius=radius,
        polygon_coordinates=polygon_coordinates,
        alert_type=fields.alert_type,
        speed_limit_kph=speed_limit_kph,
        assignment=assignment,
        visibility=(visibility or VisibilityScope()).normalized(),
    )

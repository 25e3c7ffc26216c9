"""
Pydantic schemas for Geofence API
"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Tuple, Union
from pydantic import BaseModel, Field, model_validator
from fleetwatch.models.geofence import AlertType, CreationMode, GeometryKind, Visibility
from fleetwatch.schemas.visibility import VisibilityScope

# Raw form input: numbers may still be the text typed by the operator
FormNumber = Optional[Union[float, str]]


class GeometrySource(BaseModel):
    """Geometry produced by one of the editors, in interactive (lat, lng) order"""
    creation_mode: CreationMode
    ring: Optional[List[Tuple[float, float]]] = None
    latitude: FormNumber = None
    longitude: FormNumber = None
    radius: FormNumber = None


class GeofenceFormFields(BaseModel):
    name: str = ""
    color: Optional[str] = None
    alert_type: AlertType = AlertType.BOTH
    speed_limit_kph: Optional[Union[int, float, str]] = None
    assignment_kind: Literal["global", "client"] = "global"
    client_id: Optional[str] = None


class GeofenceDraft(BaseModel):
    geometry: GeometrySource
    fields: GeofenceFormFields
    visibility: VisibilityScope = Field(default_factory=VisibilityScope)


class GlobalAssignment(BaseModel):
    kind: Literal["global"] = "global"


class ClientAssignment(BaseModel):
    kind: Literal["client"] = "client"
    client_id: str = Field(..., min_length=1)


Assignment = Annotated[Union[GlobalAssignment, ClientAssignment], Field(discriminator="kind")]


class GeofencePayload(BaseModel):
    """The assembled geofence handed to persistence"""
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=255)
    color: str
    geometry_kind: GeometryKind
    creation_mode: CreationMode
    # (lat, lng); for polygons this is the reference centroid only
    center: Tuple[float, float]
    radius: Optional[float] = None
    # Exchange order: [(lng, lat), ...]
    polygon_coordinates: Optional[List[Tuple[float, float]]] = None
    alert_type: AlertType
    speed_limit_kph: Optional[int] = Field(None, ge=0, le=300)
    assignment: Assignment
    visibility: VisibilityScope = Field(default_factory=VisibilityScope)

    @model_validator(mode='after')
    def validate_geofence_data(self):
        if self.creation_mode.geometry_kind != self.geometry_kind:
            raise ValueError('creation_mode does not match geometry_kind')
        if self.geometry_kind == GeometryKind.CIRCLE:
            if self.radius is None or self.radius <= 0 or self.polygon_coordinates is not None:
                raise ValueError('Circle geofence requires a positive radius and no polygon')
        else:
            if not self.polygon_coordinates or len(self.polygon_coordinates) < 3:
                raise ValueError('Polygon geofence requires at least 3 coordinates')
            if self.radius is not None:
                raise ValueError('Polygon geofence has no radius')
        if (self.alert_type == AlertType.SPEED_LIMIT) != (self.speed_limit_kph is not None):
            raise ValueError('speed_limit_kph is required for speed_limit alerts only')
        return self

    def as_payload(self) -> dict:
        """JSON-ready payload; the speed limit key is absent unless it applies"""
        data = self.model_dump(mode="json")
        if self.speed_limit_kph is None:
            data.pop("speed_limit_kph")
        if self.id is None:
            data.pop("id")
        return data


class GeofenceResponse(BaseModel):
    id: str
    name: str
    color: str
    geometry_kind: GeometryKind
    creation_mode: CreationMode
    center_latitude: float
    center_longitude: float
    radius_meters: Optional[float] = None
    polygon_coordinates: Optional[List[List[float]]] = None
    alert_type: AlertType
    speed_limit_kph: Optional[int] = None
    is_global: bool
    client_id: Optional[str] = None
    visibility: Visibility
    assigned_user_ids: List[str] = Field(default_factory=list)
    is_active: bool
    created_at: datetime
    updated_at: datetime
    created_by: Optional[str] = None
    created_by_role: Optional[str] = None
    permission: Literal["editable", "readonly"] = "readonly"

    class Config:
        from_attributes = True


class GeofenceListResponse(BaseModel):
    geofences: list[GeofenceResponse]
    total: int


class GeofenceCheckRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class GeofenceCheckResponse(BaseModel):
    inside: bool
    geofence_id: str
    geofence_name: str
    distance_from_center: Optional[float] = None  # For circle type

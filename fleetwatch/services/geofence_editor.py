"""
Editor session for one open geofence form.

The session owns the map surface while the form is open. It hosts the
polygon engine in coordinates mode or the circle editor in the address
and pin modes, never both, and merges the finished geometry with the
form fields and the visibility selection into a GeofencePayload.
Only one session is open per map surface: opening another one closes
the previous session and releases its shapes and click subscription.
"""
import logging
import weakref
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from fleetwatch.core.exceptions import ValidationError
from fleetwatch.models.geofence import CreationMode, Visibility
from fleetwatch.schemas.geofence import GeofenceFormFields, GeofencePayload, GeometrySource
from fleetwatch.schemas.user import Actor, UserSummary
from fleetwatch.services.circle_editor import CircleRegionEditor
from fleetwatch.services.geocoding import Geocoder
from fleetwatch.services.geofence_authorization import assemble_geofence, resolve_assignment_options
from fleetwatch.services.geometry import LatLng, from_exchange_order, open_ring
from fleetwatch.services.map_surface import MapSurface
from fleetwatch.services.polygon_drawing import PolygonDrawingEngine
from fleetwatch.services.user_directory import UserDirectory
from fleetwatch.services.visibility_scope import VisibilityScopeModel

logger = logging.getLogger(__name__)

RegionEditor = Union[PolygonDrawingEngine, CircleRegionEditor]

# Open sessions keyed by the identity of their map surface
_open_sessions: "weakref.WeakValueDictionary[int, GeofenceEditorSession]" = weakref.WeakValueDictionary()


class GeofenceEditorSession:
    """
    Create or edit one geofence on a map surface.

    Changing between coordinates mode and a circle mode discards the
    geometry drawn so far. Changing between address and pin keeps the
    entered center and radius. A failed submit keeps every entered value.
    """

    def __init__(
        self,
        surface: MapSurface,
        actor: Actor,
        geocoder: Optional[Geocoder] = None,
        directory: Optional[UserDirectory] = None,
        explicit_client_id: Optional[str] = None,
        creation_mode: CreationMode = CreationMode.ADDRESS,
        fields: Optional[GeofenceFormFields] = None,
        visibility: Visibility = Visibility.ALL,
        assigned_user_ids: Iterable[str] = (),
        initial_ring: Optional[Sequence[LatLng]] = None,
        center: Optional[LatLng] = None,
        radius: Any = None,
        geofence_id: Optional[str] = None,
        on_geometry_ready: Optional[Callable[[List[LatLng]], None]] = None,
    ):
        previous = _open_sessions.get(id(surface))
        if previous is not None and previous.surface is surface:
            logger.info("Closing the geofence editor already open on this map")
            previous.close()
        _open_sessions[id(surface)] = self

        self.surface = surface
        self.actor = actor
        self.explicit_client_id = explicit_client_id
        self.geofence_id = geofence_id
        self.assignment_options = resolve_assignment_options(actor, explicit_client_id)
        self.fields = fields or GeofenceFormFields()
        self.errors: Dict[str, str] = {}
        self.ring: Optional[List[LatLng]] = None
        self._geocoder = geocoder
        self._on_geometry_ready = on_geometry_ready
        self._closed = False

        self.visibility = VisibilityScopeModel(
            actor, directory,
            client_id=self._scope_client_id(),
            visibility=visibility,
            assigned_user_ids=assigned_user_ids,
        )
        self.creation_mode = creation_mode
        self.editor: RegionEditor = self._open_editor(
            creation_mode, initial_ring=initial_ring, center=center, radius=radius
        )

    @classmethod
    def for_geofence(
        cls,
        surface: MapSurface,
        actor: Actor,
        geofence,
        geocoder: Optional[Geocoder] = None,
        directory: Optional[UserDirectory] = None,
    ) -> "GeofenceEditorSession":
        """Open a session seeded from a stored geofence"""
        fields = GeofenceFormFields(
            name=geofence.name,
            color=geofence.color,
            alert_type=geofence.alert_type,
            speed_limit_kph=geofence.speed_limit_kph,
            assignment_kind="global" if geofence.is_global else "client",
            client_id=geofence.client_id,
        )
        initial_ring = center = None
        if geofence.creation_mode == CreationMode.COORDINATES:
            initial_ring = open_ring(from_exchange_order(geofence.polygon_coordinates or []))
        else:
            center = (geofence.center_latitude, geofence.center_longitude)

        return cls(
            surface, actor,
            geocoder=geocoder,
            directory=directory,
            # Client-bound editors keep the geofence in its current organisation
            explicit_client_id=None if actor.is_superuser else geofence.client_id,
            creation_mode=geofence.creation_mode,
            fields=fields,
            visibility=geofence.visibility,
            assigned_user_ids=geofence.assigned_user_ids or [],
            initial_ring=initial_ring,
            center=center,
            radius=geofence.radius_meters,
            geofence_id=geofence.id,
        )

    @property
    def is_closed(self) -> bool:
        return self._closed

    def set_creation_mode(self, mode: CreationMode) -> None:
        if self._closed or mode == self.creation_mode:
            return
        if CreationMode.COORDINATES not in (mode, self.creation_mode):
            self.editor.set_creation_mode(mode)
        else:
            self._release_editor()
            self.editor = self._open_editor(mode)
        self.creation_mode = mode
        self.errors = {}

    def update_fields(self, **changes) -> None:
        self.fields = GeofenceFormFields(**{**self.fields.model_dump(), **changes})
        for field in changes:
            self.errors.pop(field, None)

        if changes.get("color"):
            self.editor.set_color(self.fields.color)
        if "name" in changes and isinstance(self.editor, CircleRegionEditor):
            self.editor.set_name(self.fields.name)
        if "client_id" in changes or "assignment_kind" in changes:
            client_id = self._scope_client_id() or self.actor.client_id
            if client_id != self.visibility.client_id:
                self.visibility.client_id = client_id
                self.visibility.deselect_all()
                self.visibility.eligible_users = []

    async def load_eligible_users(self) -> List[UserSummary]:
        return await self.visibility.load_eligible_users()

    def geometry_source(self) -> GeometrySource:
        return self.editor.geometry_source()

    def submit(self) -> GeofencePayload:
        """
        Assemble the payload and close the session.
        A ValidationError leaves the session open with errors[field] set.
        """
        if self._closed:
            raise RuntimeError("The geofence editor is closed")
        try:
            payload = assemble_geofence(
                self.geometry_source(),
                self.fields,
                self.actor,
                explicit_client_id=self.explicit_client_id,
                visibility=self.visibility.validate(),
                geofence_id=self.geofence_id,
            )
        except ValidationError as e:
            self.errors = {e.field: e.message}
            raise
        self.close()
        return payload

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._release_editor()
        if _open_sessions.get(id(self.surface)) is self:
            del _open_sessions[id(self.surface)]

    def _scope_client_id(self) -> Optional[str]:
        if self.assignment_options.forced_client_id:
            return self.assignment_options.forced_client_id
        if self.fields.assignment_kind == "client":
            return self.fields.client_id
        return None

    def _ring_closed(self, ring: List[LatLng]) -> None:
        self.ring = list(ring)
        self.errors.pop("ring", None)
        if self._on_geometry_ready is not None:
            self._on_geometry_ready(self.ring)

    def _open_editor(
        self,
        mode: CreationMode,
        initial_ring: Optional[Sequence[LatLng]] = None,
        center: Optional[LatLng] = None,
        radius: Any = None,
    ) -> RegionEditor:
        self.ring = None
        if mode == CreationMode.COORDINATES:
            engine = PolygonDrawingEngine(
                self.surface, self._ring_closed, color=self.fields.color, initial_ring=initial_ring
            )
            if engine.geometry_source().ring is not None:
                self.ring = list(engine.points)
            return engine

        latitude, longitude = center if center is not None else (None, None)
        return CircleRegionEditor(
            geocoder=self._geocoder,
            surface=self.surface,
            creation_mode=mode,
            color=self.fields.color,
            name=self.fields.name,
            latitude=latitude,
            longitude=longitude,
            radius=radius,
        )

    def _release_editor(self) -> None:
        if isinstance(self.editor, PolygonDrawingEngine):
            self.editor.teardown()
        else:
            self.editor.close()

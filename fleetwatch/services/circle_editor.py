"""
Circular region capture: a single center plus a radius in meters.

The center comes from an address lookup, from manually typed
coordinates, or from a click on the map (pin mode). Unlike the polygon
engine a new pick replaces the previous center.
"""
import logging
import math
from typing import Any, Dict, NamedTuple, Optional

from fleetwatch.core.config import settings
from fleetwatch.core.exceptions import GeocodeNotFound, GeocodeTransportError, ValidationError
from fleetwatch.models.geofence import CreationMode
from fleetwatch.schemas.geofence import GeometrySource
from fleetwatch.services.geocoding import Geocoder
from fleetwatch.services.geometry import LatLng
from fleetwatch.services.map_surface import MapSurface, ShapeStyle, ShapeTable

logger = logging.getLogger(__name__)

CIRCLE_MODES = (CreationMode.ADDRESS, CreationMode.PIN)


class CircleGeometry(NamedTuple):
    center: LatLng
    radius: float


def parse_number(value: Any) -> Optional[float]:
    """Form value -> finite float, or None when missing or not numeric"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def validate_circle(latitude: Any, longitude: Any, radius: Any) -> CircleGeometry:
    """Raise ValidationError for the first invalid field, else return the geometry"""
    errors = circle_errors(latitude, longitude, radius)
    if errors:
        field, message = next(iter(errors.items()))
        raise ValidationError(field, message)
    return CircleGeometry(
        center=(parse_number(latitude), parse_number(longitude)),
        radius=parse_number(radius),
    )


def circle_errors(latitude: Any, longitude: Any, radius: Any) -> Dict[str, str]:
    errors = {}
    lat = parse_number(latitude)
    lng = parse_number(longitude)
    rad = parse_number(radius)
    if lat is None:
        errors["latitude"] = "Latitude must be a number"
    elif not -90 <= lat <= 90:
        errors["latitude"] = "Latitude must be between -90 and 90"
    if lng is None:
        errors["longitude"] = "Longitude must be a number"
    elif not -180 <= lng <= 180:
        errors["longitude"] = "Longitude must be between -180 and 180"
    if rad is None:
        errors["radius"] = "Radius must be a number"
    elif rad <= 0:
        errors["radius"] = "Radius must be greater than 0"
    return errors


class CircleRegionEditor:
    """Form state and live preview for a circular geofence"""

    def __init__(
        self,
        geocoder: Optional[Geocoder] = None,
        surface: Optional[MapSurface] = None,
        creation_mode: CreationMode = CreationMode.ADDRESS,
        color: Optional[str] = None,
        name: str = "",
        latitude: Any = None,
        longitude: Any = None,
        radius: Any = None,
    ):
        self._check_mode(creation_mode)
        self.creation_mode = creation_mode
        self.color = color or settings.DEFAULT_GEOFENCE_COLOR
        self.name = name
        self.latitude = latitude
        self.longitude = longitude
        self.radius = settings.DEFAULT_GEOFENCE_RADIUS_METERS if radius is None else radius
        self.address = ""
        self.errors: Dict[str, str] = {}
        self.is_searching = False

        self._geocoder = geocoder
        self._surface = surface
        self._shapes = ShapeTable(surface) if surface is not None else None
        self._search_generation = 0
        self._closed = False

        if surface is not None:
            surface.on_click(self.pick)
        self._render()

    @staticmethod
    def _check_mode(mode: CreationMode) -> None:
        if mode not in CIRCLE_MODES:
            raise ValueError(f"{mode.value} does not produce a circular geofence")

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def center(self) -> Optional[LatLng]:
        lat = parse_number(self.latitude)
        lng = parse_number(self.longitude)
        if lat is None or lng is None:
            return None
        return lat, lng

    def set_creation_mode(self, mode: CreationMode) -> None:
        self._check_mode(mode)
        self.creation_mode = mode

    def set_coordinates(self, latitude: Any = None, longitude: Any = None) -> None:
        """Manual entry of the center; each field is validated on its own"""
        if latitude is not None:
            self.latitude = latitude
            self.errors.pop("latitude", None)
        if longitude is not None:
            self.longitude = longitude
            self.errors.pop("longitude", None)
        self._render()

    def set_radius(self, radius: Any) -> None:
        self.radius = radius
        self.errors.pop("radius", None)
        self._render()

    def set_color(self, color: str) -> None:
        self.color = color
        self._render()

    def set_name(self, name: str) -> None:
        self.name = name
        self._render()

    def pick(self, lat: float, lng: float) -> None:
        """Map click in pin mode: the click replaces the current center"""
        if self._closed or self.creation_mode != CreationMode.PIN:
            return
        self.set_coordinates(latitude=lat, longitude=lng)

    async def search_address(self, text: str) -> bool:
        """
        Resolve an address and populate the center.
        Returns True when coordinates were applied. Failures are recorded
        in errors["address"] and leave the coordinates untouched.
        """
        self.address = text
        if not text.strip():
            self.errors["address"] = "Enter an address"
            return False
        if self._geocoder is None:
            self.errors["address"] = "Address search is not available"
            return False

        self._search_generation += 1
        generation = self._search_generation
        self.is_searching = True
        self.errors.pop("address", None)
        try:
            lat, lng = await self._geocoder.search(text)
        except GeocodeNotFound:
            if self._is_current(generation):
                self.errors["address"] = "Address not found. Try being more specific."
            return False
        except GeocodeTransportError:
            if self._is_current(generation):
                self.errors["address"] = "Address search failed. Try again."
            return False
        finally:
            if self._is_current(generation):
                self.is_searching = False

        if not self._is_current(generation):
            logger.debug("Discarding stale geocoding result for '%s'", text)
            return False

        self.set_coordinates(latitude=lat, longitude=lng)
        return True

    def validate(self) -> CircleGeometry:
        self.errors.update(circle_errors(self.latitude, self.longitude, self.radius))
        return validate_circle(self.latitude, self.longitude, self.radius)

    def geometry_source(self) -> GeometrySource:
        return GeometrySource(
            creation_mode=self.creation_mode,
            latitude=self.latitude,
            longitude=self.longitude,
            radius=self.radius,
        )

    def close(self) -> None:
        """Release the preview and ignore any late events or lookups"""
        self._closed = True
        self._search_generation += 1
        if self._surface is not None:
            self._shapes.release_all()
            self._surface.off_click(self.pick)
        self._surface = None

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._search_generation

    def _render(self) -> None:
        if self._surface is None:
            return
        self._shapes.release_all()
        center = self.center
        if center is None:
            return
        radius = parse_number(self.radius)
        if radius is None or radius <= 0:
            radius = float(settings.DEFAULT_GEOFENCE_RADIUS_METERS)
        popup = f"{self.name or 'New geofence'} - radius {radius:g} m"
        self._shapes.track(self._surface.add_circle(
            center, radius,
            ShapeStyle(color=self.color, fill_color=self.color, fill_opacity=0.2),
            popup=popup,
        ))

"""
Map surface collaborator.

The tile-rendering map is consumed as a capability: it emits clicks with
geographic coordinates, projects coordinates to container pixels and
hands out opaque handles for the shapes placed on it. Handles are not
reclaimed by the garbage collector, so every editor keeps them in a
ShapeTable and releases them explicitly.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple

from fleetwatch.services.geometry import LatLng, ScreenPoint

logger = logging.getLogger(__name__)

ClickHandler = Callable[[float, float], None]
ShapeHandle = Any


@dataclass(frozen=True)
class ShapeStyle:
    color: str
    fill_color: Optional[str] = None
    fill_opacity: float = 0.0
    opacity: float = 1.0
    weight: int = 2
    radius: Optional[float] = None  # marker radius, pixels
    dash_array: Optional[str] = None


class MapSurface(Protocol):
    def on_click(self, handler: ClickHandler) -> None: ...

    def off_click(self, handler: ClickHandler) -> None: ...

    def project_to_screen(self, lat: float, lng: float) -> ScreenPoint: ...

    def add_marker(self, point: LatLng, style: ShapeStyle,
                   tooltip: Optional[str] = None) -> ShapeHandle: ...

    def add_polyline(self, points: Sequence[LatLng], style: ShapeStyle) -> ShapeHandle: ...

    def add_polygon(self, points: Sequence[LatLng], style: ShapeStyle) -> ShapeHandle: ...

    def add_circle(self, center: LatLng, radius_meters: float, style: ShapeStyle,
                   popup: Optional[str] = None) -> ShapeHandle: ...

    def remove_shape(self, handle: ShapeHandle) -> None: ...

    def fit_bounds(self, bounds: Tuple[LatLng, LatLng], padding: int) -> None: ...

    def set_cursor(self, cursor: str) -> None: ...


class ShapeTable:
    """Rendering handles owned exclusively by one editor instance"""

    def __init__(self, surface: MapSurface):
        self._surface = surface
        self._handles: List[ShapeHandle] = []

    def __len__(self) -> int:
        return len(self._handles)

    def track(self, handle: ShapeHandle) -> ShapeHandle:
        self._handles.append(handle)
        return handle

    def release_all(self) -> None:
        handles, self._handles = self._handles, []
        for handle in handles:
            self._surface.remove_shape(handle)
        if handles:
            logger.debug("Released %d map shapes", len(handles))

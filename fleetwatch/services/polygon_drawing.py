"""
Point-and-click polygon capture on a map surface.

The session moves through EMPTY -> COLLECTING -> CLOSED. Once at least
three vertices exist, a click within the closure threshold of the first
vertex (measured in container pixels at click time, because pan and zoom
move the vertex on screen) closes the ring instead of adding a vertex.
The finished ring is reported to the host exactly once, on closing.
"""
import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from fleetwatch.core.config import settings
from fleetwatch.models.geofence import CreationMode
from fleetwatch.schemas.geofence import GeometrySource
from fleetwatch.services.geometry import LatLng, pixel_distance, ring_bounds
from fleetwatch.services.map_surface import MapSurface, ShapeStyle, ShapeTable

logger = logging.getLogger(__name__)

MIN_RING_POINTS = 3
FIRST_POINT_COLOR = "#ff0000"
VERTEX_OUTLINE_COLOR = "#ffffff"
CLOSE_HINT = "Click here to close the polygon"

CURSOR_DRAWING = "crosshair"
CURSOR_CLOSED = "default"


class DrawingStatus(str, Enum):
    EMPTY = "empty"
    COLLECTING = "collecting"
    CLOSED = "closed"


class PolygonDrawingEngine:
    """
    Stateful controller for one polygon drawing session.

    The engine owns its shape handles and subscribes to the surface's
    click events on construction. Call teardown() before the hosting form
    closes; events delivered afterwards are ignored.
    """

    def __init__(
        self,
        surface: MapSurface,
        on_complete: Callable[[List[LatLng]], None],
        color: Optional[str] = None,
        initial_ring: Optional[Sequence[LatLng]] = None,
        close_threshold_px: Optional[float] = None,
        fit_padding_px: Optional[int] = None,
    ):
        self._surface: Optional[MapSurface] = surface
        self._on_complete = on_complete
        self._color = color or settings.DEFAULT_GEOFENCE_COLOR
        self._close_threshold = (
            settings.POLYGON_CLOSE_THRESHOLD_PX if close_threshold_px is None else close_threshold_px
        )
        self._fit_padding = settings.POLYGON_FIT_PADDING_PX if fit_padding_px is None else fit_padding_px
        self._shapes = ShapeTable(surface)
        self._points: List[LatLng] = [(float(lat), float(lng)) for lat, lng in (initial_ring or [])]

        if len(self._points) >= MIN_RING_POINTS:
            self._status = DrawingStatus.CLOSED
        elif self._points:
            self._status = DrawingStatus.COLLECTING
        else:
            self._status = DrawingStatus.EMPTY

        surface.on_click(self.click)
        self._render()

    @property
    def status(self) -> DrawingStatus:
        return self._status

    @property
    def points(self) -> Tuple[LatLng, ...]:
        return tuple(self._points)

    @property
    def color(self) -> str:
        return self._color

    @property
    def is_attached(self) -> bool:
        return self._surface is not None

    def click(self, lat: float, lng: float) -> None:
        if self._surface is None or self._status == DrawingStatus.CLOSED:
            return

        if len(self._points) >= MIN_RING_POINTS and self._is_closing_click(lat, lng):
            self._status = DrawingStatus.CLOSED
            logger.info("Polygon closed with %d points", len(self._points))
            self._render()
            self._on_complete(list(self._points))
            return

        self._points.append((lat, lng))
        self._status = DrawingStatus.COLLECTING
        self._render()

    def undo(self) -> None:
        if self._surface is None or self._status != DrawingStatus.COLLECTING:
            return
        self._points.pop()
        if not self._points:
            self._status = DrawingStatus.EMPTY
        self._render()

    def reset(self) -> None:
        if self._surface is None:
            return
        self._points = []
        self._status = DrawingStatus.EMPTY
        self._render()

    def set_color(self, color: str) -> None:
        self._color = color
        if self._surface is not None:
            self._render()

    def geometry_source(self) -> GeometrySource:
        """The ring is only handed out once the polygon is closed"""
        ring = list(self._points) if self._status == DrawingStatus.CLOSED else None
        return GeometrySource(creation_mode=CreationMode.COORDINATES, ring=ring)

    def teardown(self) -> None:
        """Release every shape and detach from the surface"""
        if self._surface is None:
            return
        self._shapes.release_all()
        self._surface.off_click(self.click)
        self._surface = None

    def _is_closing_click(self, lat: float, lng: float) -> bool:
        # Project both points now; a cached pixel position goes stale on pan/zoom
        first_lat, first_lng = self._points[0]
        first_px = self._surface.project_to_screen(first_lat, first_lng)
        click_px = self._surface.project_to_screen(lat, lng)
        return pixel_distance(first_px, click_px) <= self._close_threshold

    def _render(self) -> None:
        surface = self._surface
        self._shapes.release_all()

        if self._status == DrawingStatus.CLOSED:
            surface.set_cursor(CURSOR_CLOSED)
            self._shapes.track(surface.add_polygon(
                list(self._points),
                ShapeStyle(color=self._color, fill_color=self._color, fill_opacity=0.3, weight=3),
            ))
            surface.fit_bounds(ring_bounds(self._points), self._fit_padding)
            return

        surface.set_cursor(CURSOR_DRAWING)
        can_close = len(self._points) >= MIN_RING_POINTS

        for index, point in enumerate(self._points):
            if index == 0:
                style = ShapeStyle(
                    color=VERTEX_OUTLINE_COLOR, fill_color=FIRST_POINT_COLOR,
                    fill_opacity=0.9, radius=8,
                )
                tooltip = CLOSE_HINT if can_close else None
            else:
                style = ShapeStyle(
                    color=VERTEX_OUTLINE_COLOR, fill_color=self._color,
                    fill_opacity=0.7, radius=6,
                )
                tooltip = None
            self._shapes.track(surface.add_marker(point, style, tooltip=tooltip))

        edge_style = ShapeStyle(color=self._color, opacity=0.7, dash_array="5, 5")
        for start, end in zip(self._points, self._points[1:]):
            self._shapes.track(surface.add_polyline([start, end], edge_style))

        if can_close:
            self._shapes.track(surface.add_polyline(
                [self._points[-1], self._points[0]],
                ShapeStyle(color=self._color, opacity=0.4, dash_array="5, 10"),
            ))

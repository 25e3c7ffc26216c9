import asyncio

import pytest

from fleetwatch.core.exceptions import GeocodeTransportError, ValidationError
from fleetwatch.models.geofence import CreationMode
from fleetwatch.services.circle_editor import CircleRegionEditor, parse_number, validate_circle

from fakes import FakeGeocoder


class TestValidateCircle:
    def test_accepts_boundaries(self):
        circle = validate_circle(90, -180, 0.5)
        assert circle.center == (90.0, -180.0)
        assert circle.radius == 0.5

    @pytest.mark.parametrize("latitude", [90.0001, -90.0001, "north", None, ""])
    def test_rejects_bad_latitude(self, latitude):
        with pytest.raises(ValidationError) as exc:
            validate_circle(latitude, 0, 100)
        assert exc.value.field == "latitude"

    @pytest.mark.parametrize("longitude", [180.5, -181, "nan"])
    def test_rejects_bad_longitude(self, longitude):
        with pytest.raises(ValidationError) as exc:
            validate_circle(0, longitude, 100)
        assert exc.value.field == "longitude"

    @pytest.mark.parametrize("radius", [0, -5, "wide"])
    def test_rejects_non_positive_radius(self, radius):
        with pytest.raises(ValidationError) as exc:
            validate_circle(0, 0, radius)
        assert exc.value.field == "radius"

    def test_typed_text_is_parsed(self):
        assert validate_circle(" -33.45 ", "-70.66", "250").radius == 250.0

    def test_first_invalid_field_is_reported(self):
        with pytest.raises(ValidationError) as exc:
            validate_circle(100, 200, 0)
        assert exc.value.field == "latitude"


def test_parse_number():
    assert parse_number("12.5") == 12.5
    assert parse_number(True) is None
    assert parse_number("inf") is None
    assert parse_number("  ") is None


def test_defaults():
    editor = CircleRegionEditor()
    assert editor.radius == 500
    assert editor.color == "#3BA2E8"
    assert editor.center is None


def test_polygon_mode_is_rejected():
    with pytest.raises(ValueError):
        CircleRegionEditor(creation_mode=CreationMode.COORDINATES)
    editor = CircleRegionEditor()
    with pytest.raises(ValueError):
        editor.set_creation_mode(CreationMode.COORDINATES)


def test_validate_records_every_field_error():
    editor = CircleRegionEditor(latitude="x", longitude=500, radius=0)
    with pytest.raises(ValidationError):
        editor.validate()
    assert set(editor.errors) == {"latitude", "longitude", "radius"}

    editor.set_coordinates(latitude=1)
    assert "latitude" not in editor.errors
    assert editor.latitude == 1


def test_manual_coordinates_produce_geometry_source():
    editor = CircleRegionEditor(creation_mode=CreationMode.PIN)
    editor.set_coordinates(latitude="-33.45", longitude="-70.66")
    editor.set_radius("750")
    assert editor.validate().center == (-33.45, -70.66)
    source = editor.geometry_source()
    assert source.creation_mode == CreationMode.PIN
    assert source.radius == "750"


def test_pin_click_replaces_center(surface):
    editor = CircleRegionEditor(surface=surface, creation_mode=CreationMode.PIN)
    surface.click(-33.4, -70.6)
    surface.click(-33.5, -70.7)
    assert editor.center == (-33.5, -70.7)
    circles = surface.of_kind("circle")
    assert len(circles) == 1
    assert circles[0][1] == (-33.5, -70.7)


def test_clicks_outside_pin_mode_are_ignored(surface):
    editor = CircleRegionEditor(surface=surface)
    surface.click(-33.4, -70.6)
    assert editor.center is None
    assert surface.shapes == {}


def test_preview_follows_radius_color_and_name(surface):
    editor = CircleRegionEditor(surface=surface, latitude=1, longitude=2)
    assert surface.of_kind("circle")[0][4] == "New geofence - radius 500 m"

    editor.set_radius(1200)
    editor.set_color("#ff8800")
    editor.set_name("Depot")
    circle = surface.of_kind("circle")[0]
    assert len(surface.shapes) == 1
    assert circle[2] == 1200
    assert circle[3].color == "#ff8800"
    assert circle[4] == "Depot - radius 1200 m"


def test_close_releases_preview(surface):
    editor = CircleRegionEditor(surface=surface, creation_mode=CreationMode.PIN, latitude=1, longitude=2)
    editor.close()
    assert editor.is_closed
    assert surface.shapes == {}
    surface.click(5, 5)
    assert editor.center == (1, 2)


async def test_address_search_populates_center():
    geocoder = FakeGeocoder({"Av. Providencia 1234": (-33.43, -70.61)})
    editor = CircleRegionEditor(geocoder=geocoder)
    assert await editor.search_address("Av. Providencia 1234")
    assert editor.center == (-33.43, -70.61)
    assert "address" not in editor.errors
    assert not editor.is_searching


async def test_address_not_found_keeps_coordinates():
    editor = CircleRegionEditor(geocoder=FakeGeocoder(), latitude=1, longitude=2)
    assert not await editor.search_address("nowhere")
    assert editor.errors["address"] == "Address not found. Try being more specific."
    assert editor.center == (1, 2)


async def test_address_transport_failure():
    editor = CircleRegionEditor(geocoder=FakeGeocoder(error=GeocodeTransportError("timeout")))
    assert not await editor.search_address("Santiago")
    assert editor.errors["address"] == "Address search failed. Try again."
    assert not editor.is_searching


async def test_empty_address_and_missing_geocoder():
    editor = CircleRegionEditor(geocoder=FakeGeocoder())
    assert not await editor.search_address("   ")
    assert editor.errors["address"] == "Enter an address"

    editor = CircleRegionEditor()
    assert not await editor.search_address("Santiago")
    assert editor.errors["address"] == "Address search is not available"


class SlowGeocoder:
    """Answers "slow" only after release is set; anything else immediately"""

    def __init__(self):
        self.release = asyncio.Event()

    async def search(self, text):
        if text == "slow":
            await self.release.wait()
            return (10.0, 20.0)
        return (1.0, 2.0)


async def test_result_arriving_after_close_is_discarded():
    geocoder = SlowGeocoder()
    editor = CircleRegionEditor(geocoder=geocoder)
    task = asyncio.create_task(editor.search_address("slow"))
    await asyncio.sleep(0)
    assert editor.is_searching

    editor.close()
    geocoder.release.set()
    assert await task is False
    assert editor.center is None


async def test_superseded_search_is_discarded():
    geocoder = SlowGeocoder()
    editor = CircleRegionEditor(geocoder=geocoder)
    first = asyncio.create_task(editor.search_address("slow"))
    await asyncio.sleep(0)

    assert await editor.search_address("fast")
    geocoder.release.set()
    assert await first is False
    assert editor.center == (1.0, 2.0)
    assert not editor.is_searching


def test_close_unsubscribes_from_clicks(surface):
    editor = CircleRegionEditor(surface=surface, creation_mode=CreationMode.PIN)
    assert surface.handlers == [editor.pick]
    editor.close()
    editor.close()
    assert surface.handlers == []

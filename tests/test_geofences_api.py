import pytest


def circle_draft(name="Depot", visibility="all", assigned=(), **field_overrides):
    fields = {"name": name, "alert_type": "both"}
    fields.update(field_overrides)
    return {
        "geometry": {"creation_mode": "address", "latitude": -33.45, "longitude": -70.66, "radius": 300},
        "fields": fields,
        "visibility": {"visibility": visibility, "assigned_user_ids": list(assigned)},
    }


def polygon_draft(name="Yard"):
    return {
        "geometry": {"creation_mode": "coordinates", "ring": [[10, 10], [10, 20], [20, 20]]},
        "fields": {"name": name, "alert_type": "entry", "color": "#ff8800"},
    }


async def create(api, auth, user_id, draft, path="/api/v1/geofences"):
    response = await api.post(path, json=draft, headers=auth(user_id))
    assert response.status_code == 201, response.text
    return response.json()


async def listed_ids(api, auth, user_id, **params):
    response = await api.get("/api/v1/geofences", params=params, headers=auth(user_id))
    assert response.status_code == 200
    return {g["id"] for g in response.json()["geofences"]}


async def test_client_user_creates_circle(api, auth):
    body = await create(api, auth, "u-ana", circle_draft())
    assert body["geometry_kind"] == "circle"
    assert body["creation_mode"] == "address"
    assert body["radius_meters"] == 300
    assert body["client_id"] == "c1"
    assert body["is_global"] is False
    assert body["created_by"] == "u-ana"
    assert body["speed_limit_kph"] is None
    assert body["permission"] == "editable"


async def test_polygon_is_stored_longitude_first(api, auth):
    body = await create(api, auth, "u-admin", polygon_draft())
    assert body["polygon_coordinates"] == [[10, 10], [20, 10], [20, 20]]
    assert body["center_latitude"] == pytest.approx(13.3333, abs=1e-4)
    assert body["center_longitude"] == pytest.approx(16.6667, abs=1e-4)
    assert body["radius_meters"] is None
    assert body["color"] == "#ff8800"


async def test_admin_is_bound_to_own_client(api, auth):
    body = await create(api, auth, "u-admin", circle_draft(assignment_kind="client", client_id="c2"))
    assert body["client_id"] == "c1"
    assert body["is_global"] is False


async def test_global_geofence_is_read_only_for_client_roles(api, auth):
    body = await create(api, auth, "u-root", circle_draft(assignment_kind="global"))
    assert body["is_global"] is True
    assert body["client_id"] is None

    response = await api.get(f"/api/v1/geofences/{body['id']}", headers=auth("u-admin"))
    assert response.json()["permission"] == "readonly"
    assert body["id"] in await listed_ids(api, auth, "u-carla")

    response = await api.put(f"/api/v1/geofences/{body['id']}", json=circle_draft(), headers=auth("u-admin"))
    assert response.status_code == 403


async def test_client_screen_assigns_to_that_client(api, auth):
    body = await create(api, auth, "u-root", circle_draft(), path="/api/v1/clients/c2/geofences")
    assert body["client_id"] == "c2"

    response = await api.post("/api/v1/clients/c2/geofences", json=circle_draft(), headers=auth("u-admin"))
    assert response.status_code == 422
    assert response.json()["field"] == "client_id"


async def test_unknown_client_is_rejected(api, auth):
    response = await api.post(
        "/api/v1/geofences",
        json=circle_draft(assignment_kind="client", client_id="c-missing"),
        headers=auth("u-root"),
    )
    assert response.status_code == 422
    assert response.json() == {"detail": "Unknown client", "field": "client_id"}


async def test_speed_limit_validation(api, auth):
    response = await api.post(
        "/api/v1/geofences",
        json=circle_draft(alert_type="speed_limit", speed_limit_kph=300.1),
        headers=auth("u-ana"),
    )
    assert response.status_code == 422
    assert response.json()["field"] == "speed_limit_kph"

    body = await create(api, auth, "u-ana", circle_draft(alert_type="speed_limit", speed_limit_kph=80))
    assert body["speed_limit_kph"] == 80

    body = await create(api, auth, "u-ana", circle_draft(alert_type="exit", speed_limit_kph=80))
    assert body["speed_limit_kph"] is None


async def test_missing_name_is_field_error(api, auth):
    response = await api.post("/api/v1/geofences", json=circle_draft(name="  "), headers=auth("u-ana"))
    assert response.status_code == 422
    assert response.json()["field"] == "name"


async def test_unauthenticated_requests_redirect_to_login(api):
    response = await api.get("/api/v1/geofences")
    assert response.status_code == 401
    assert response.json()["redirect_to"] == "/login"
    assert response.headers["www-authenticate"] == "Bearer"


async def test_monitor_cannot_open_the_editor(api, auth):
    response = await api.post("/api/v1/geofences", json=circle_draft(), headers=auth("u-monitor"))
    assert response.status_code == 403
    assert response.json()["redirect_to"] == "/"

    response = await api.get("/api/v1/geofences", headers=auth("u-monitor"))
    assert response.status_code == 200


async def test_owner_only_visibility(api, auth):
    body = await create(api, auth, "u-ana", circle_draft(visibility="owner_only"))

    response = await api.get(f"/api/v1/geofences/{body['id']}", headers=auth("u-luis"))
    assert response.status_code == 404
    assert body["id"] not in await listed_ids(api, auth, "u-luis")
    assert body["id"] in await listed_ids(api, auth, "u-admin")
    assert body["id"] not in await listed_ids(api, auth, "u-carla")


async def test_assigned_visibility(api, auth):
    body = await create(api, auth, "u-ana", circle_draft(visibility="assigned", assigned=["u-luis"]))
    assert body["visibility"] == "assigned"
    assert body["assigned_user_ids"] == ["u-luis"]

    assert body["id"] in await listed_ids(api, auth, "u-luis")
    assert body["id"] not in await listed_ids(api, auth, "u-monitor")


async def test_assigning_users_of_another_client_fails(api, auth):
    response = await api.post(
        "/api/v1/geofences",
        json=circle_draft(visibility="assigned", assigned=["u-carla"]),
        headers=auth("u-ana"),
    )
    assert response.status_code == 422
    assert response.json()["field"] == "assigned_user_ids"


async def test_global_geofence_cannot_be_assigned_to_users(api, auth):
    response = await api.post(
        "/api/v1/geofences",
        json=circle_draft(visibility="assigned", assigned=["u-ana"], assignment_kind="global"),
        headers=auth("u-root"),
    )
    assert response.status_code == 422
    assert response.json()["field"] == "visibility"


async def test_listing_filters(api, auth):
    mine = await create(api, auth, "u-ana", circle_draft(name="Mine"))
    shared = await create(api, auth, "u-luis", circle_draft(name="Shared"))

    assert await listed_ids(api, auth, "u-ana", filter="own") == {mine["id"]}
    assert await listed_ids(api, auth, "u-ana", filter="assigned") == {shared["id"]}
    assert await listed_ids(api, auth, "u-ana") == {mine["id"], shared["id"]}


async def test_superuser_can_narrow_listing_to_a_client(api, auth):
    c1 = await create(api, auth, "u-ana", circle_draft())
    c2 = await create(api, auth, "u-carla", circle_draft())
    assert await listed_ids(api, auth, "u-root", client_id="c2") == {c2["id"]}
    assert await listed_ids(api, auth, "u-root") == {c1["id"], c2["id"]}


async def test_update_rights(api, auth):
    body = await create(api, auth, "u-ana", circle_draft())
    url = f"/api/v1/geofences/{body['id']}"

    response = await api.put(url, json=circle_draft(name="Not mine"), headers=auth("u-luis"))
    assert response.status_code == 403

    response = await api.put(url, json=polygon_draft(name="Reshaped"), headers=auth("u-ana"))
    assert response.status_code == 200
    updated = response.json()
    assert updated["name"] == "Reshaped"
    assert updated["geometry_kind"] == "polygon"
    assert updated["radius_meters"] is None
    assert updated["client_id"] == "c1"

    response = await api.put(url, json=circle_draft(name="Admin edit"), headers=auth("u-opadmin"))
    assert response.status_code == 200


async def test_soft_delete(api, auth):
    body = await create(api, auth, "u-ana", circle_draft())
    url = f"/api/v1/geofences/{body['id']}"

    response = await api.delete(url, headers=auth("u-luis"))
    assert response.status_code == 403

    response = await api.delete(url, headers=auth("u-ana"))
    assert response.status_code == 204

    response = await api.get(url, headers=auth("u-ana"))
    assert response.status_code == 404


async def test_point_checks(api, auth):
    circle = await create(api, auth, "u-ana", circle_draft())
    response = await api.post(
        f"/api/v1/geofences/{circle['id']}/check",
        json={"latitude": -33.45, "longitude": -70.66},
        headers=auth("u-ana"),
    )
    assert response.json()["inside"] is True
    assert response.json()["distance_from_center"] == pytest.approx(0)

    polygon = await create(api, auth, "u-ana", polygon_draft())
    url = f"/api/v1/geofences/{polygon['id']}/check"
    inside = await api.post(url, json={"latitude": 15, "longitude": 17}, headers=auth("u-ana"))
    outside = await api.post(url, json={"latitude": 17, "longitude": 12}, headers=auth("u-ana"))
    assert inside.json()["inside"] is True
    assert outside.json()["inside"] is False
    assert inside.json()["distance_from_center"] is None

import pytest

from fleetwatch.models import UserRole
from fleetwatch.schemas import Actor
from fleetwatch.services.user_directory import SqlUserDirectory, resolve_eligible_users

C1_NAMES = ["Ada Admin", "Ana", "Beto", "Luis", "Omar"]


async def test_login_and_me(api):
    response = await api.post("/api/v1/auth/login", json={"email": "root@example.com", "password": "root-pass"})
    assert response.status_code == 200
    token = response.json()["access_token"]
    assert response.json()["token_type"] == "bearer"

    response = await api.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.json() == {"id": "u-root", "role": "superuser", "client_id": None, "name": "Root"}


async def test_login_with_wrong_password(api):
    response = await api.post("/api/v1/auth/login", json={"email": "root@example.com", "password": "nope"})
    assert response.status_code == 401


async def test_invalid_token_is_unauthenticated(api):
    response = await api.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["redirect_to"] == "/login"


async def test_user_listing_requires_admin(api, auth):
    response = await api.get("/api/v1/users", headers=auth("u-admin"))
    assert response.status_code == 200
    assert response.json()["total"] == 7

    response = await api.get("/api/v1/users", params={"client_id": "c2"}, headers=auth("u-root"))
    assert [u["name"] for u in response.json()["users"]] == ["Carla"]

    response = await api.get("/api/v1/users", headers=auth("u-ana"))
    assert response.status_code == 403
    assert response.json()["redirect_to"] == "/"


async def test_eligible_users_default_to_own_client(api, auth):
    response = await api.get("/api/v1/users/eligible", headers=auth("u-monitor"))
    assert response.status_code == 200
    assert [u["name"] for u in response.json()["users"]] == C1_NAMES


async def test_eligible_users_of_other_clients_are_forbidden(api, auth):
    response = await api.get("/api/v1/users/eligible", params={"client_id": "c2"}, headers=auth("u-ana"))
    assert response.status_code == 403

    response = await api.get("/api/v1/users/eligible", params={"client_id": "c2"}, headers=auth("u-root"))
    assert [u["id"] for u in response.json()["users"]] == ["u-carla"]


async def test_superuser_without_client_gets_no_eligible_users(api, auth):
    response = await api.get("/api/v1/users/eligible", headers=auth("u-root"))
    assert response.json() == {"users": [], "total": 0}


@pytest.mark.parametrize("role", list(UserRole))
async def test_directory_paths_agree(seeded, role):
    actor = Actor(id="u-x", role=role, client_id="c1")
    async with seeded() as session:
        users = await resolve_eligible_users(actor, "c1", SqlUserDirectory(session))
    assert [user.name for user in users] == C1_NAMES

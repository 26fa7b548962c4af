import pytest
from httpx import AsyncClient

from formdesk.core.config import settings

API = settings.API_PREFIX
PASSWORD = "secret123"

pytestmark = pytest.mark.integration


@pytest.mark.anyio
async def test_register_admin_waits_for_approval(client: AsyncClient):
    """Admin registrations get no token until a super-admin approves them"""
    response = await client.post(
        f"{API}/auth/register",
        json={"email": "new@example.com", "password": PASSWORD, "name": "New Admin"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["access_token"] is None
    assert data["user"]["is_admin"] is True
    assert data["user"]["is_approved"] is False

    response = await client.post(f"{API}/auth/login", json={"email": "new@example.com", "password": PASSWORD})
    assert response.status_code == 403


@pytest.mark.anyio
async def test_register_non_admin_gets_token(client: AsyncClient):
    response = await client.post(
        f"{API}/auth/register",
        json={"email": "member@example.com", "password": PASSWORD, "name": "Member", "is_admin": False},
    )
    assert response.status_code == 201
    assert response.json()["access_token"]


@pytest.mark.anyio
async def test_register_duplicate_email(client: AsyncClient, make_user):
    await make_user("dup@example.com")
    response = await client.post(
        f"{API}/auth/register",
        json={"email": "dup@example.com", "password": PASSWORD, "name": "Dup"},
    )
    assert response.status_code == 400


@pytest.mark.anyio
async def test_login_bad_credentials(client: AsyncClient, admin):
    response = await client.post(f"{API}/auth/login", json={"email": admin.email, "password": "wrong"})
    assert response.status_code == 401


@pytest.mark.anyio
async def test_me_requires_token(client: AsyncClient, admin_headers):
    assert (await client.get(f"{API}/auth/me")).status_code == 401
    assert (await client.get(f"{API}/auth/me", headers={"Authorization": "Bearer junk"})).status_code == 401

    response = await client.get(f"{API}/auth/me", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["email"] == "admin@example.com"


@pytest.mark.anyio
async def test_super_admin_approval_enables_login(client: AsyncClient, make_user, login):
    await make_user("root@example.com", is_super_admin=True)
    pending = await make_user("pending@example.com", is_approved=False)
    root_headers = await login("root@example.com")

    response = await client.get(f"{API}/super-admin/unapproved-admins", headers=root_headers)
    assert response.status_code == 200
    assert [a["email"] for a in response.json()["admins"]] == ["pending@example.com"]

    response = await client.post(f"{API}/super-admin/admins/{pending.id}/approve", headers=root_headers)
    assert response.status_code == 200
    assert response.json()["user"]["is_approved"] is True

    await login("pending@example.com")

    response = await client.get(f"{API}/super-admin/unapproved-admins", headers=root_headers)
    assert response.json()["admins"] == []


@pytest.mark.anyio
async def test_reject_deletes_pending_admin(client: AsyncClient, make_user, login):
    await make_user("root@example.com", is_super_admin=True)
    pending = await make_user("pending@example.com", is_approved=False)
    root_headers = await login("root@example.com")

    response = await client.post(f"{API}/super-admin/admins/{pending.id}/reject", headers=root_headers)
    assert response.json() == {"success": True}

    response = await client.post(f"{API}/auth/login", json={"email": "pending@example.com", "password": PASSWORD})
    assert response.status_code == 401


@pytest.mark.anyio
async def test_super_admin_routes_need_super_admin(client: AsyncClient, admin_headers):
    response = await client.get(f"{API}/super-admin/unapproved-admins", headers=admin_headers)
    assert response.status_code == 403


@pytest.mark.anyio
async def test_change_password(client: AsyncClient, admin, admin_headers, login):
    response = await client.post(
        f"{API}/auth/change-password",
        json={"old_password": "nope", "new_password": "another123"},
        headers=admin_headers,
    )
    assert response.status_code == 400

    response = await client.post(
        f"{API}/auth/change-password",
        json={"old_password": PASSWORD, "new_password": "another123"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    await login(admin.email, "another123")

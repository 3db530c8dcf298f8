# tests/modules/users/test_users_api.py
from pathlib import Path

import pytest
from fastapi import status
from httpx import AsyncClient

from bizhub.core.config import settings

pytestmark = pytest.mark.asyncio

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


async def test_get_me(client: AsyncClient, owner, owner_headers):
    response = await client.get("/api/v1/users/me", headers=owner_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["email"] == owner.email


async def test_update_profile(client: AsyncClient, owner_headers):
    response = await client.put(
        "/api/v1/users/me", json={"name": " Olivia O. ", "gender": "female"}, headers=owner_headers
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["name"] == "Olivia O."
    assert data["gender"] == "female"


async def test_change_password_requires_current(client: AsyncClient, owner, owner_headers):
    bad = await client.put(
        "/api/v1/users/me/password",
        json={"current_password": "wrong", "new_password": "newpass123"},
        headers=owner_headers,
    )
    assert bad.status_code == status.HTTP_400_BAD_REQUEST
    assert bad.json()["detail"] == "Current password is incorrect"

    good = await client.put(
        "/api/v1/users/me/password",
        json={"current_password": "secret123", "new_password": "newpass123"},
        headers=owner_headers,
    )
    assert good.status_code == status.HTTP_200_OK
    login = await client.post("/api/v1/auth/login", json={"email": owner.email, "password": "newpass123"})
    assert login.status_code == status.HTTP_200_OK


async def test_upload_avatar_replaces_previous_file(client: AsyncClient, owner_headers):
    first = await client.post(
        "/api/v1/users/me/avatar", files={"file": ("me.png", PNG_BYTES, "image/png")}, headers=owner_headers
    )
    assert first.status_code == status.HTTP_200_OK
    first_url = first.json()["avatar"]
    assert first_url.startswith("/uploads/avatars/avatar-")
    first_path = Path(settings.UPLOAD_DIR) / "avatars" / Path(first_url).name
    assert first_path.exists()

    second = await client.post(
        "/api/v1/users/me/avatar", files={"file": ("me2.png", PNG_BYTES, "image/png")}, headers=owner_headers
    )
    assert second.status_code == status.HTTP_200_OK
    assert second.json()["avatar"] != first_url
    assert not first_path.exists()


async def test_upload_avatar_rejects_non_images(client: AsyncClient, owner_headers):
    response = await client.post(
        "/api/v1/users/me/avatar", files={"file": ("notes.txt", b"hello", "text/plain")}, headers=owner_headers
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


async def test_upload_avatar_rejects_large_files(client: AsyncClient, owner_headers):
    too_big = b"\x00" * (settings.MAX_AVATAR_SIZE_MB * 1024 * 1024 + 1)
    response = await client.post(
        "/api/v1/users/me/avatar", files={"file": ("big.jpg", too_big, "image/jpeg")}, headers=owner_headers
    )
    assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


async def test_list_users_is_admin_only(client: AsyncClient, owner_headers, admin_headers):
    forbidden = await client.get("/api/v1/users/", headers=owner_headers)
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    allowed = await client.get("/api/v1/users/", headers=admin_headers)
    assert allowed.status_code == status.HTTP_200_OK
    assert {u["email"] for u in allowed.json()} == {"olivia@example.com", "ada@example.com"}


async def test_admin_can_deactivate_user(client: AsyncClient, owner, admin_headers):
    response = await client.put(f"/api/v1/users/{owner.id}", json={"is_active": False}, headers=admin_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["is_active"] is False

    login = await client.post("/api/v1/auth/login", json={"email": owner.email, "password": "secret123"})
    assert login.status_code == status.HTTP_401_UNAUTHORIZED


async def test_admin_update_unknown_user(client: AsyncClient, admin_headers):
    response = await client.put("/api/v1/users/64b7f0c2a1b2c3d4e5f60718", json={"role": "employee"}, headers=admin_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND

from __future__ import annotations

import pytest
from httpx import AsyncClient

from conftest import PASSWORD, auth, register


@pytest.mark.anyio
async def test_register_returns_tokens_and_profile(client: AsyncClient) -> None:
  res = await client.post(
    "/auth/register",
    json={"email": "ada@example.com", "userName": "ada", "password": PASSWORD, "firstName": "Ada", "lastName": "Lovelace"},
  )
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["accessToken"] and body["refreshToken"]
  assert body["user"]["fullName"] == "Ada Lovelace"
  assert body["user"]["role"] == "user"
  assert "kanban_session=" in res.headers.get("set-cookie", "")


@pytest.mark.anyio
async def test_duplicate_username_conflicts(client: AsyncClient) -> None:
  await register(client, "ada")
  res = await client.post("/auth/register", json={"email": "other@example.com", "userName": "ADA", "password": PASSWORD})
  assert res.status_code == 409, res.text
  body = res.json()
  assert body["success"] is False
  assert body["statusCode"] == 409


@pytest.mark.anyio
async def test_short_password_is_a_validation_error(client: AsyncClient) -> None:
  res = await client.post("/auth/register", json={"email": "x@example.com", "userName": "xavier", "password": "short"})
  assert res.status_code == 400, res.text
  body = res.json()
  assert body["message"] == "One or more validation errors occurred."
  assert "password" in body["errors"]


@pytest.mark.anyio
async def test_login_by_username_or_email(client: AsyncClient) -> None:
  await register(client, "ada")
  by_name = await client.post("/auth/login", json={"userName": "ada", "password": PASSWORD})
  assert by_name.status_code == 200, by_name.text
  by_email = await client.post("/auth/login", json={"email": "ADA@example.com", "password": PASSWORD})
  assert by_email.status_code == 200, by_email.text
  assert by_email.json()["user"]["lastLoginAt"]


@pytest.mark.anyio
async def test_bad_credentials_are_unauthorized(client: AsyncClient) -> None:
  await register(client, "ada")
  res = await client.post("/auth/login", json={"userName": "ada", "password": "wrong-password"})
  assert res.status_code == 401, res.text
  assert res.json()["message"] == "Invalid credentials"


@pytest.mark.anyio
async def test_me_requires_a_token(client: AsyncClient) -> None:
  res = await client.get("/auth/me")
  assert res.status_code == 401, res.text

  ada = await register(client, "ada")
  me = await client.get("/auth/me", headers=auth(ada))
  assert me.status_code == 200, me.text
  assert me.json()["userName"] == "ada"


@pytest.mark.anyio
async def test_cookie_session_is_accepted(client: AsyncClient) -> None:
  await register(client, "ada")
  res = await client.post("/auth/login", json={"userName": "ada", "password": PASSWORD})
  assert res.status_code == 200, res.text
  me = await client.get("/auth/me")
  assert me.status_code == 200, me.text


@pytest.mark.anyio
async def test_refresh_rotates_the_session(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  res = await client.post("/auth/refresh-token", json={"refreshToken": ada["refresh"]})
  assert res.status_code == 200, res.text
  client.cookies.clear()
  fresh = res.json()

  assert (await client.get("/auth/me", headers=auth(ada))).status_code == 401
  assert (await client.get("/auth/me", headers={"Authorization": f"Bearer {fresh['accessToken']}"})).status_code == 200
  again = await client.post("/auth/refresh-token", json={"refreshToken": ada["refresh"]})
  assert again.status_code == 401, again.text


@pytest.mark.anyio
async def test_logout_revokes_tokens(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  res = await client.post("/auth/logout", headers=auth(ada))
  assert res.status_code == 200, res.text
  assert (await client.get("/auth/me", headers=auth(ada))).status_code == 401


@pytest.mark.anyio
async def test_profile_update_and_email_collision(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  await register(client, "bob")
  res = await client.put("/auth/profile", json={"firstName": "Ada", "lastName": "King"}, headers=auth(ada))
  assert res.status_code == 200, res.text
  assert res.json()["fullName"] == "Ada King"

  clash = await client.put("/auth/profile", json={"email": "bob@example.com"}, headers=auth(ada))
  assert clash.status_code == 409, clash.text

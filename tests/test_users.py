from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from conftest import PASSWORD, auth, register
from kanban.db import SessionLocal
from kanban.models import User


async def _make_superuser(user: dict) -> None:
  async with SessionLocal() as db:
    await db.execute(update(User).where(User.id == user["id"]).values(role="superuser"))
    await db.commit()


@pytest.mark.anyio
async def test_search_matches_names_and_caps_results(client: AsyncClient) -> None:
  ada = await register(client, "ada", first_name="Ada", last_name="Lovelace")
  await register(client, "grace", first_name="Grace", last_name="Hopper")

  res = await client.get("/users/search", params={"q": "hopp"}, headers=auth(ada))
  assert res.status_code == 200, res.text
  assert [u["userName"] for u in res.json()] == ["grace"]

  everyone = await client.get("/users/search", headers=auth(ada))
  assert [u["userName"] for u in everyone.json()] == ["ada", "grace"]


@pytest.mark.anyio
async def test_admin_routes_require_superuser(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  res = await client.get("/users", headers=auth(ada))
  assert res.status_code == 403, res.text
  assert res.json()["message"] == "Only superusers can manage users"


@pytest.mark.anyio
async def test_superuser_lists_creates_and_updates_users(client: AsyncClient) -> None:
  root = await register(client, "root")
  await _make_superuser(root)

  created = await client.post(
    "/users",
    json={"email": "new@example.com", "userName": "newbie", "password": PASSWORD, "firstName": "New"},
    headers=auth(root),
  )
  assert created.status_code == 200, created.text
  uid = created.json()["id"]

  dup = await client.post(
    "/users", json={"email": "new@example.com", "userName": "another", "password": PASSWORD}, headers=auth(root)
  )
  assert dup.status_code == 409, dup.text

  page = await client.get("/users", params={"pageSize": 1}, headers=auth(root))
  assert page.status_code == 200, page.text
  body = page.json()
  assert body["totalCount"] == 2
  assert body["totalPages"] == 2
  assert len(body["items"]) == 1

  upd = await client.put(f"/users/{uid}", json={"lastName": "Person", "role": "superuser"}, headers=auth(root))
  assert upd.status_code == 200, upd.text
  assert upd.json()["role"] == "superuser"
  assert upd.json()["fullName"] == "New Person"


@pytest.mark.anyio
async def test_disable_blocks_login_and_enable_restores_it(client: AsyncClient) -> None:
  root = await register(client, "root")
  await _make_superuser(root)
  ada = await register(client, "ada")

  assert (await client.post(f"/users/{root['id']}/disable", headers=auth(root))).status_code == 400

  res = await client.post(f"/users/{ada['id']}/disable", headers=auth(root))
  assert res.status_code == 200, res.text
  assert (await client.post(f"/users/{ada['id']}/disable", headers=auth(root))).status_code == 400
  assert (await client.get("/auth/me", headers=auth(ada))).status_code == 401

  login = await client.post("/auth/login", json={"userName": "ada", "password": PASSWORD})
  assert login.status_code == 403, login.text

  listed = await client.get("/users", params={"includeDeleted": "true"}, headers=auth(root))
  assert any(u["userName"] == "ada" and u["isDisabled"] for u in listed.json()["items"])

  assert (await client.post(f"/users/{ada['id']}/enable", headers=auth(root))).status_code == 200
  assert (await client.post(f"/users/{ada['id']}/enable", headers=auth(root))).status_code == 400
  login = await client.post("/auth/login", json={"userName": "ada", "password": PASSWORD})
  assert login.status_code == 200, login.text

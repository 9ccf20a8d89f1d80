from __future__ import annotations

import pytest
from httpx import AsyncClient

from conftest import add_member, auth, make_board, register


@pytest.mark.anyio
async def test_add_member_by_username_and_duplicate_conflicts(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  bob = await register(client, "bob")
  board = await make_board(client, ada)

  res = await client.post(f"/boards/{board['id']}/members", json={"userName": "bob"}, headers=auth(ada))
  assert res.status_code == 200, res.text
  assert res.json()["role"] == "member"
  assert res.json()["userId"] == bob["id"]

  dup = await client.post(f"/boards/{board['id']}/members", json={"userId": bob["id"]}, headers=auth(ada))
  assert dup.status_code == 409, dup.text


@pytest.mark.anyio
async def test_unknown_user_is_not_found(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  board = await make_board(client, ada)
  res = await client.post(f"/boards/{board['id']}/members", json={"email": "ghost@example.com"}, headers=auth(ada))
  assert res.status_code == 404, res.text


@pytest.mark.anyio
async def test_only_admins_add_members(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  bob = await register(client, "bob")
  cy = await register(client, "cy")
  board = await make_board(client, ada)
  await add_member(client, board, ada, bob, "member")

  res = await client.post(f"/boards/{board['id']}/members", json={"userId": cy["id"]}, headers=auth(bob))
  assert res.status_code == 403, res.text


@pytest.mark.anyio
async def test_last_admin_cannot_be_demoted_or_removed(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  bob = await register(client, "bob")
  board = await make_board(client, ada)
  await add_member(client, board, ada, bob, "member")

  demote = await client.put(f"/boards/{board['id']}/members/{ada['id']}", json={"role": "member"}, headers=auth(ada))
  assert demote.status_code == 400, demote.text
  leave = await client.delete(f"/boards/{board['id']}/members/{ada['id']}", headers=auth(ada))
  assert leave.status_code == 400, leave.text

  promote = await client.put(f"/boards/{board['id']}/members/{bob['id']}", json={"role": "admin"}, headers=auth(ada))
  assert promote.status_code == 200, promote.text
  demote = await client.put(f"/boards/{board['id']}/members/{ada['id']}", json={"role": "viewer"}, headers=auth(ada))
  assert demote.status_code == 200, demote.text
  assert demote.json()["role"] == "viewer"


@pytest.mark.anyio
async def test_member_may_leave_but_not_remove_others(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  bob = await register(client, "bob")
  cy = await register(client, "cy")
  board = await make_board(client, ada)
  await add_member(client, board, ada, bob, "member")
  await add_member(client, board, ada, cy, "member")

  other = await client.delete(f"/boards/{board['id']}/members/{cy['id']}", headers=auth(bob))
  assert other.status_code == 403, other.text

  self_leave = await client.delete(f"/boards/{board['id']}/members/{bob['id']}", headers=auth(bob))
  assert self_leave.status_code == 200, self_leave.text
  after = await client.get(f"/boards/{board['id']}", headers=auth(bob))
  assert after.status_code == 403, after.text
  assert after.json()["message"] == "You do not have access to this board"


@pytest.mark.anyio
async def test_removed_member_can_be_added_again(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  bob = await register(client, "bob")
  board = await make_board(client, ada)
  await add_member(client, board, ada, bob, "viewer")

  res = await client.delete(f"/boards/{board['id']}/members/{bob['id']}", headers=auth(ada))
  assert res.status_code == 200, res.text
  again = await client.post(
    f"/boards/{board['id']}/members", json={"userId": bob["id"], "role": "admin"}, headers=auth(ada)
  )
  assert again.status_code == 200, again.text
  assert again.json()["role"] == "admin"

  members = await client.get(f"/boards/{board['id']}/members", headers=auth(bob))
  assert sorted(m["userName"] for m in members.json()) == ["ada", "bob"]

from __future__ import annotations

import pytest
from httpx import AsyncClient

from conftest import add_member, auth, make_board, make_task, register


async def _make_label(client: AsyncClient, board: dict, user: dict, name: str = "urgent") -> dict:
  res = await client.post(f"/boards/{board['id']}/labels", json={"name": name, "color": "#FF0000"}, headers=auth(user))
  assert res.status_code == 200, res.text
  return res.json()


@pytest.mark.anyio
async def test_label_crud_is_admin_only(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  vic = await register(client, "vic")
  board = await make_board(client, ada)
  await add_member(client, board, ada, vic, "viewer")
  label = await _make_label(client, board, ada)

  denied = await client.delete(f"/labels/{label['id']}", headers=auth(vic))
  assert denied.status_code == 403, denied.text

  upd = await client.put(f"/labels/{label['id']}", json={"name": "blocker", "color": "#000000"}, headers=auth(ada))
  assert upd.status_code == 200, upd.text
  assert upd.json()["name"] == "blocker"

  bad = await client.post(f"/boards/{board['id']}/labels", json={"name": "x", "color": "red"}, headers=auth(ada))
  assert bad.status_code == 400, bad.text


@pytest.mark.anyio
async def test_attach_and_detach(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  board = await make_board(client, ada)
  label = await _make_label(client, board, ada)
  task = await make_task(client, board, ada)

  res = await client.post(f"/tasks/{task['id']}/labels/{label['id']}", headers=auth(ada))
  assert res.status_code == 200, res.text
  assert [lb["name"] for lb in res.json()["labels"]] == ["urgent"]
  twice = await client.post(f"/tasks/{task['id']}/labels/{label['id']}", headers=auth(ada))
  assert twice.status_code == 400, twice.text

  filtered = await client.get(f"/boards/{board['id']}/tasks/search", params={"labelId": label["id"]}, headers=auth(ada))
  assert [t["id"] for t in filtered.json()] == [task["id"]]

  res = await client.delete(f"/tasks/{task['id']}/labels/{label['id']}", headers=auth(ada))
  assert res.status_code == 200, res.text
  assert res.json()["labels"] == []
  missing = await client.delete(f"/tasks/{task['id']}/labels/{label['id']}", headers=auth(ada))
  assert missing.status_code == 404, missing.text


@pytest.mark.anyio
async def test_label_from_another_board_is_rejected(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  board = await make_board(client, ada)
  other = await make_board(client, ada, "Other")
  label = await _make_label(client, other, ada)
  task = await make_task(client, board, ada)

  res = await client.post(f"/tasks/{task['id']}/labels/{label['id']}", headers=auth(ada))
  assert res.status_code == 400, res.text


@pytest.mark.anyio
async def test_deleting_label_removes_links(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  board = await make_board(client, ada)
  label = await _make_label(client, board, ada)
  task = await make_task(client, board, ada)
  await client.post(f"/tasks/{task['id']}/labels/{label['id']}", headers=auth(ada))

  res = await client.delete(f"/labels/{label['id']}", headers=auth(ada))
  assert res.status_code == 200, res.text
  after = await client.get(f"/tasks/{task['id']}", headers=auth(ada))
  assert after.json()["labels"] == []
  assert (await client.get(f"/boards/{board['id']}/labels", headers=auth(ada))).json() == []

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from conftest import auth, make_board, make_task, register
from kanban.db import SessionLocal
from kanban.models import Board, TaskItem
from kanban.stamper import INCLUDE_DELETED, SYSTEM_ACTOR, set_actor


@pytest.mark.anyio
async def test_deleted_rows_stay_in_the_table_as_tombstones(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  board = await make_board(client, ada)
  task = await make_task(client, board, ada)
  assert (await client.delete(f"/tasks/{task['id']}", headers=auth(ada))).status_code == 200

  async with SessionLocal() as db:
    hidden = await db.execute(select(TaskItem).where(TaskItem.id == task["id"]))
    assert hidden.scalar_one_or_none() is None

    res = await db.execute(
      select(TaskItem).where(TaskItem.id == task["id"]).execution_options(**{INCLUDE_DELETED: True})
    )
    row = res.scalar_one()
    assert row.deleted_at is not None
    assert row.updated_by == ada["id"]


@pytest.mark.anyio
async def test_created_stamp_is_immutable(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  board = await make_board(client, ada)

  async with SessionLocal() as db:
    set_actor(db, "someone-else")
    b = (await db.execute(select(Board).where(Board.id == board["id"]))).scalar_one()
    original_created_at = b.created_at
    b.created_by = "forged"
    b.name = "Renamed elsewhere"
    await db.commit()

  async with SessionLocal() as db:
    b = (await db.execute(select(Board).where(Board.id == board["id"]))).scalar_one()
    assert b.created_by == ada["id"]
    assert b.created_at == original_created_at
    assert b.updated_by == "someone-else"
    assert b.updated_at is not None


@pytest.mark.anyio
async def test_writes_without_an_actor_are_stamped_as_system(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  board = await make_board(client, ada)

  async with SessionLocal() as db:
    b = (await db.execute(select(Board).where(Board.id == board["id"]))).scalar_one()
    b.description = "touched by a job"
    await db.commit()
    assert b.updated_by == SYSTEM_ACTOR


@pytest.mark.anyio
async def test_children_of_a_deleted_board_are_unreachable(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  board = await make_board(client, ada)
  task = await make_task(client, board, ada)
  assert (await client.delete(f"/boards/{board['id']}", headers=auth(ada))).status_code == 200

  assert (await client.get(f"/tasks/{task['id']}", headers=auth(ada))).status_code == 404
  assert (await client.get(f"/columns/{board['columns'][0]['id']}/tasks", headers=auth(ada))).status_code == 404

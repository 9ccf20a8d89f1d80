from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

_DB_PATH = Path(tempfile.gettempdir()) / f"kanban_test_{os.getpid()}.db"
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_DB_PATH}")
os.environ.setdefault("TRUSTED_HOSTS", "localhost,127.0.0.1,0.0.0.0,api,test,testserver")

from kanban.config import settings
from kanban.db import engine
from kanban.main import app
from kanban.models import Base
from kanban.notifier import hub
from kanban.rate_limit import limiter

PASSWORD = "correct-horse-9"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


async def reset_db() -> None:
  limiter.reset_prefix("auth:")
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
    await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
async def fresh_db(tmp_path) -> None:
  if not settings.is_test_db():
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. kanban_test)."
    )
  orig_upload_dir = settings.upload_dir
  settings.upload_dir = str(tmp_path / "uploads")
  await reset_db()
  yield
  await hub.drain()
  settings.upload_dir = orig_upload_dir
  await engine.dispose()


@pytest.fixture
async def client(fresh_db) -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


async def register(client: AsyncClient, user_name: str, *, first_name: str = "", last_name: str = "") -> dict:
  res = await client.post(
    "/auth/register",
    json={
      "email": f"{user_name}@example.com",
      "userName": user_name,
      "password": PASSWORD,
      "firstName": first_name,
      "lastName": last_name,
    },
  )
  assert res.status_code == 200, res.text
  # Every call in the tests authenticates explicitly with a bearer token.
  client.cookies.clear()
  body = res.json()
  return {"id": body["user"]["id"], "token": body["accessToken"], "refresh": body["refreshToken"], "userName": user_name}


def auth(user: dict) -> dict[str, str]:
  return {"Authorization": f"Bearer {user['token']}"}


async def make_board(client: AsyncClient, owner: dict, name: str = "Roadmap") -> dict:
  res = await client.post("/boards", json={"name": name}, headers=auth(owner))
  assert res.status_code == 200, res.text
  board = res.json()
  detail = await client.get(f"/boards/{board['id']}", headers=auth(owner))
  assert detail.status_code == 200, detail.text
  return detail.json()


async def add_member(client: AsyncClient, board: dict, admin: dict, user: dict, role: str = "member") -> None:
  res = await client.post(
    f"/boards/{board['id']}/members", json={"userId": user["id"], "role": role}, headers=auth(admin)
  )
  assert res.status_code == 200, res.text


async def make_task(client: AsyncClient, board: dict, user: dict, title: str = "Write docs", column: int = 0, **extra) -> dict:
  payload = {"columnId": board["columns"][column]["id"], "title": title, **extra}
  res = await client.post(f"/boards/{board['id']}/tasks", json=payload, headers=auth(user))
  assert res.status_code == 200, res.text
  return res.json()

from __future__ import annotations

import os
from urllib.parse import quote

import pytest
from httpx import AsyncClient

from conftest import add_member, auth, make_board, make_task, register
from kanban.config import settings


async def _upload(client: AsyncClient, task: dict, user: dict, name: str = "notes.txt", body: bytes = b"hello world"):
  return await client.post(
    f"/tasks/{task['id']}/attachments",
    files={"file": (name, body, "application/octet-stream")},
    headers=auth(user),
  )


@pytest.mark.anyio
async def test_upload_list_and_download(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  vic = await register(client, "vic")
  board = await make_board(client, ada)
  await add_member(client, board, ada, vic, "viewer")
  task = await make_task(client, board, ada)

  res = await _upload(client, task, ada)
  assert res.status_code == 200, res.text
  att = res.json()
  assert att["fileName"] == "notes.txt"
  assert att["contentType"] == "text/plain"
  assert att["fileSize"] == 11
  assert att["uploadedBy"] == ada["id"]

  listed = await client.get(f"/tasks/{task['id']}/attachments", headers=auth(vic))
  assert [a["id"] for a in listed.json()] == [att["id"]]

  dl = await client.get(f"/attachments/{att['id']}/download", headers=auth(vic))
  assert dl.status_code == 200, dl.text
  assert dl.content == b"hello world"
  assert dl.headers["content-type"].startswith("text/plain")
  assert 'filename="notes.txt"' in dl.headers["content-disposition"]

  detail = await client.get(f"/tasks/{task['id']}", headers=auth(ada))
  assert detail.json()["attachmentCount"] == 1


@pytest.mark.anyio
async def test_download_keeps_non_ascii_file_name(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  board = await make_board(client, ada)
  task = await make_task(client, board, ada)

  name = "报告.pdf"
  att = (await _upload(client, task, ada, name=name, body=b"%PDF-1.4 hi")).json()
  assert att["fileName"] == name

  dl = await client.get(f"/attachments/{att['id']}/download", headers=auth(ada))
  assert dl.status_code == 200, dl.text
  assert dl.content == b"%PDF-1.4 hi"
  assert dl.headers["content-type"] == "application/pdf"
  assert f"filename*=utf-8''{quote(name)}" in dl.headers["content-disposition"]


@pytest.mark.anyio
async def test_disallowed_extension_is_rejected(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  board = await make_board(client, ada)
  task = await make_task(client, board, ada)

  res = await _upload(client, task, ada, name="run.exe")
  assert res.status_code == 400, res.text
  assert res.json()["message"].startswith("File type '.exe' is not allowed")


@pytest.mark.anyio
async def test_oversized_file_is_rejected(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  board = await make_board(client, ada)
  task = await make_task(client, board, ada)

  orig = settings.max_attachment_bytes
  settings.max_attachment_bytes = 1024 * 1024
  try:
    res = await _upload(client, task, ada, body=b"x" * (1024 * 1024 + 1))
  finally:
    settings.max_attachment_bytes = orig
  assert res.status_code == 400, res.text
  assert res.json()["message"] == "File size exceeds maximum allowed size of 1MB"


@pytest.mark.anyio
async def test_viewers_cannot_upload(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  vic = await register(client, "vic")
  board = await make_board(client, ada)
  await add_member(client, board, ada, vic, "viewer")
  task = await make_task(client, board, ada)

  res = await _upload(client, task, vic)
  assert res.status_code == 403, res.text


@pytest.mark.anyio
async def test_delete_by_uploader_or_admin(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  bob = await register(client, "bob")
  cy = await register(client, "cy")
  board = await make_board(client, ada)
  await add_member(client, board, ada, bob)
  await add_member(client, board, ada, cy)
  task = await make_task(client, board, ada)

  mine = (await _upload(client, task, bob, name="a.txt")).json()
  other = (await _upload(client, task, bob, name="b.txt")).json()
  stored = sorted(os.listdir(settings.upload_dir))
  assert len(stored) == 2

  assert (await client.delete(f"/attachments/{mine['id']}", headers=auth(cy))).status_code == 403
  assert (await client.delete(f"/attachments/{mine['id']}", headers=auth(bob))).status_code == 200
  assert (await client.delete(f"/attachments/{other['id']}", headers=auth(ada))).status_code == 200
  assert os.listdir(settings.upload_dir) == []
  assert (await client.get(f"/attachments/{mine['id']}/download", headers=auth(bob))).status_code == 404


@pytest.mark.anyio
async def test_missing_stored_file_does_not_block_delete(client: AsyncClient) -> None:
  ada = await register(client, "ada")
  board = await make_board(client, ada)
  task = await make_task(client, board, ada)
  att = (await _upload(client, task, ada)).json()
  for name in os.listdir(settings.upload_dir):
    os.remove(os.path.join(settings.upload_dir, name))

  assert (await client.get(f"/attachments/{att['id']}/download", headers=auth(ada))).status_code == 404
  assert (await client.delete(f"/attachments/{att['id']}", headers=auth(ada))).status_code == 200

from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.access import authorize
from kanban.config import settings
from kanban.deps import get_current_user, get_db
from kanban.errors import BadRequestError, NotFoundError
from kanban.models import Attachment, User
from kanban.schemas import AttachmentOut
from kanban.storage import LocalFileStorage, content_type_for, get_storage

router = APIRouter(tags=["attachments"])
logger = logging.getLogger("kanban.attachments")


def attachment_out(a: Attachment) -> AttachmentOut:
  return AttachmentOut(
    id=a.id,
    taskId=a.task_id,
    fileName=a.file_name,
    contentType=a.content_type,
    fileSize=a.file_size,
    uploadedBy=a.created_by,
    url=f"/attachments/{a.id}/download",
    createdAt=a.created_at,
  )


def _size_label(n: int) -> str:
  mb = n / (1024 * 1024)
  return f"{mb:g}MB"


@router.get("/tasks/{task_id}/attachments", response_model=list[AttachmentOut])
async def list_attachments(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[AttachmentOut]:
  await authorize(db, user, "task", task_id, "task.read")
  res = await db.execute(select(Attachment).where(Attachment.task_id == task_id).order_by(Attachment.created_at.asc()))
  return [attachment_out(a) for a in res.scalars().all()]


@router.post("/tasks/{task_id}/attachments", response_model=AttachmentOut)
async def upload_attachment(
  task_id: str,
  file: UploadFile = File(...),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  storage: LocalFileStorage = Depends(get_storage),
) -> AttachmentOut:
  await authorize(db, user, "task", task_id, "attachment.upload")

  file_name = os.path.basename(file.filename or "")
  if not file_name:
    raise BadRequestError("No file uploaded")
  ext = os.path.splitext(file_name)[1].lower()
  if ext not in settings.attachment_extension_list():
    allowed = ", ".join(settings.attachment_extension_list())
    raise BadRequestError(f"File type '{ext or file_name}' is not allowed. Allowed types: {allowed}")

  limit = int(settings.max_attachment_bytes)
  data = await file.read(limit + 1)
  if len(data) > limit:
    raise BadRequestError(f"File size exceeds maximum allowed size of {_size_label(limit)}")
  if not data:
    raise BadRequestError("File is empty")

  path = storage.save(data, file_name)
  a = Attachment(
    task_id=task_id,
    file_name=file_name,
    file_path=path,
    content_type=content_type_for(file_name),
    file_size=len(data),
  )
  db.add(a)
  await db.commit()
  logger.info("User %s uploaded %s (%s bytes) to task %s", user.id, file_name, len(data), task_id)
  return attachment_out(a)


@router.get("/attachments/{attachment_id}/download")
async def download_attachment(
  attachment_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  storage: LocalFileStorage = Depends(get_storage),
) -> FileResponse:
  access = await authorize(db, user, "attachment", attachment_id, "attachment.download")
  a: Attachment = access.resource
  try:
    path = storage.resolve(a.file_path)
  except FileNotFoundError:
    logger.warning("Attachment %s is missing its stored file", a.id)
    raise NotFoundError("File", a.file_name) from None
  return FileResponse(path=path, media_type=a.content_type, filename=a.file_name)


@router.delete("/attachments/{attachment_id}")
async def delete_attachment(
  attachment_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  storage: LocalFileStorage = Depends(get_storage),
) -> dict:
  access = await authorize(db, user, "attachment", attachment_id, "attachment.delete")
  a: Attachment = access.resource
  path = a.file_path
  await db.delete(a)
  await db.commit()
  # The row is already gone; a leftover file is only logged.
  storage.delete(path)
  logger.info("User %s deleted attachment %s", user.id, attachment_id)
  return {"ok": True}

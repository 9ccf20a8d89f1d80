from __future__ import annotations

import logging
import mimetypes
import os
import uuid

from kanban.config import settings

logger = logging.getLogger("kanban.storage")

_CONTENT_TYPES = {
  ".pdf": "application/pdf",
  ".doc": "application/msword",
  ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
  ".xls": "application/vnd.ms-excel",
  ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
  ".txt": "text/plain",
  ".png": "image/png",
  ".jpg": "image/jpeg",
  ".jpeg": "image/jpeg",
  ".gif": "image/gif",
  ".zip": "application/zip",
  ".rar": "application/vnd.rar",
}


def content_type_for(file_name: str) -> str:
  ext = os.path.splitext(file_name or "")[1].lower()
  return _CONTENT_TYPES.get(ext) or mimetypes.guess_type(file_name or "")[0] or "application/octet-stream"


class LocalFileStorage:
  """Stores attachment bodies on local disk under ``root``."""

  def __init__(self, root: str) -> None:
    self.root = root

  def save(self, data: bytes, file_name: str) -> str:
    os.makedirs(self.root, exist_ok=True)
    ext = os.path.splitext(file_name or "")[1].lower()
    path = os.path.join(self.root, f"{uuid.uuid4().hex}{ext}")
    with open(path, "wb") as f:
      f.write(data)
    return path

  def resolve(self, path: str) -> str:
    if not os.path.isfile(path):
      raise FileNotFoundError(path)
    return path

  def delete(self, path: str) -> bool:
    try:
      os.remove(path)
      return True
    except OSError:
      logger.warning("Could not remove stored file %s", path, exc_info=True)
      return False


def get_storage() -> LocalFileStorage:
  return LocalFileStorage(settings.upload_dir)

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from kanban.models import utcnow

logger = logging.getLogger("kanban.errors")


class ApiError(Exception):
  status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
  default_message = "An unexpected error occurred"

  def __init__(self, message: str | None = None) -> None:
    self.message = message or self.default_message
    super().__init__(self.message)


class BadRequestError(ApiError):
  status_code = status.HTTP_400_BAD_REQUEST
  default_message = "Bad request"


class UnauthorizedError(ApiError):
  status_code = status.HTTP_401_UNAUTHORIZED
  default_message = "Unauthorized"


class ForbiddenError(ApiError):
  status_code = status.HTTP_403_FORBIDDEN
  default_message = "Forbidden"


class NotFoundError(ApiError):
  status_code = status.HTTP_404_NOT_FOUND
  default_message = "Not found"

  def __init__(self, resource: str, key: Any) -> None:
    self.resource = resource
    self.key = key
    super().__init__(f"{resource} with identifier '{key}' was not found.")


class ConflictError(ApiError):
  status_code = status.HTTP_409_CONFLICT
  default_message = "Conflict"


def error_body(message: str, status_code: int, errors: dict[str, list[str]] | None = None) -> dict:
  body: dict[str, Any] = {
    "success": False,
    "message": message,
    "statusCode": status_code,
    "timestamp": utcnow().isoformat(),
  }
  if errors:
    body["errors"] = errors
  return body


def _log(request: Request, status_code: int, message: str) -> None:
  if status_code >= 500:
    logger.error("%s %s failed with %s: %s", request.method, request.url.path, status_code, message)
  else:
    logger.warning("%s %s rejected with %s: %s", request.method, request.url.path, status_code, message)


def _validation_errors(exc: RequestValidationError) -> dict[str, list[str]]:
  out: dict[str, list[str]] = {}
  for err in exc.errors():
    loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
    field = ".".join(loc) or "request"
    out.setdefault(field, []).append(str(err.get("msg", "Invalid value")))
  return out


def install_error_handlers(app: FastAPI) -> None:
  @app.exception_handler(ApiError)
  async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    _log(request, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.status_code))

  @app.exception_handler(RequestValidationError)
  async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = _validation_errors(exc)
    _log(request, status.HTTP_400_BAD_REQUEST, "validation failed")
    return JSONResponse(
      status_code=status.HTTP_400_BAD_REQUEST,
      content=jsonable_encoder(error_body("One or more validation errors occurred.", status.HTTP_400_BAD_REQUEST, errors)),
    )

  @app.exception_handler(StarletteHTTPException)
  async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    _log(request, exc.status_code, message)
    return JSONResponse(
      status_code=exc.status_code,
      content=error_body(message, exc.status_code),
      headers=getattr(exc, "headers", None),
    )

  @app.exception_handler(Exception)
  async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
      status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
      content=error_body("An unexpected error occurred", status.HTTP_500_INTERNAL_SERVER_ERROR),
    )

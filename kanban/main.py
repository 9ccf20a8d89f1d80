from __future__ import annotations

import logging
from time import monotonic

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from kanban.config import settings
from kanban.db import SessionLocal
from kanban.errors import install_error_handlers
from kanban.notifier import hub
from kanban.reference import ensure_reference_data
from kanban.routers.activity import router as activity_router
from kanban.routers.attachments import router as attachments_router
from kanban.routers.auth import router as auth_router
from kanban.routers.boards import router as boards_router
from kanban.routers.columns import router as columns_router
from kanban.routers.comments import router as comments_router
from kanban.routers.labels import router as labels_router
from kanban.routers.members import router as members_router
from kanban.routers.realtime import router as realtime_router
from kanban.routers.reference import router as reference_router
from kanban.routers.sprints import router as sprints_router
from kanban.routers.subtasks import router as subtasks_router
from kanban.routers.tasks import router as tasks_router
from kanban.routers.users import router as users_router
from kanban.routers.watchers import router as watchers_router

logging.basicConfig(
  level=settings.log_level.upper(),
  format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("kanban.main")

app = FastAPI(
  title="Kanban API",
  version="0.1.0",
  docs_url="/docs" if settings.api_docs_enabled else None,
  redoc_url="/redoc" if settings.api_docs_enabled else None,
  openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)

install_error_handlers(app)

app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_origin_regex=settings.cors_origin_regex,
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list())

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(reference_router)
app.include_router(boards_router)
app.include_router(members_router)
app.include_router(columns_router)
app.include_router(tasks_router)
app.include_router(activity_router)
app.include_router(sprints_router)
app.include_router(labels_router)
app.include_router(comments_router)
app.include_router(watchers_router)
app.include_router(subtasks_router)
app.include_router(attachments_router)
app.include_router(realtime_router)


@app.middleware("http")
async def _timing_and_headers_middleware(request, call_next):
  start = monotonic()
  response = await call_next(request)
  elapsed_ms = (monotonic() - start) * 1000.0
  if elapsed_ms > 500:
    logger.warning("Slow request %s %s took %.0fms", request.method, request.url.path, elapsed_ms)
  response.headers.setdefault("X-Response-Time-Ms", f"{elapsed_ms:.1f}")
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


@app.get("/realtime/stats")
async def realtime_stats() -> dict:
  return hub.stats()


@app.on_event("startup")
async def _startup() -> None:
  if settings.is_test_db():
    return
  if not settings.app_secret or settings.app_secret.strip().lower() in {"dev-secret-change-me", "replace_with_strong_random_secret"}:
    raise RuntimeError("APP_SECRET is required and must not be a placeholder")
  async with SessionLocal() as db:
    await ensure_reference_data(db)
    await db.commit()
  logger.info("Kanban API %s (%s) started", settings.app_version, settings.build_sha)


@app.on_event("shutdown")
async def _shutdown() -> None:
  await hub.drain()

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://kanban:kanban@db:5432/kanban"
  sql_echo: bool = False
  app_secret: str = "dev-secret-change-me"
  app_version: str = "v2026-10-18"
  build_sha: str = "dev"
  log_level: str = "INFO"
  api_docs_enabled: bool = True

  cookie_secure: bool = False
  cookie_domain: str | None = None
  access_token_ttl_minutes: int = 60
  refresh_token_ttl_days: int = 7

  rate_limit_login_ip_per_minute: int = 60
  rate_limit_login_email_per_minute: int = 20
  rate_limit_register_ip_per_minute: int = 10
  redis_url: str | None = None

  cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000"
  cors_origin_regex: str = r"^http://(localhost|127\.0\.0\.1):(3000|5173)$"
  trusted_hosts: str = "localhost,127.0.0.1,0.0.0.0,api,test"

  upload_dir: str = "data/uploads"
  max_attachment_bytes: int = 10 * 1024 * 1024
  allowed_attachment_extensions: str = ".pdf,.doc,.docx,.xls,.xlsx,.txt,.png,.jpg,.jpeg,.gif,.zip,.rar"

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def trusted_host_list(self) -> list[str]:
    return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]

  def attachment_extension_list(self) -> list[str]:
    return [e.strip().lower() for e in self.allowed_attachment_extensions.split(",") if e.strip()]

  def is_test_db(self) -> bool:
    return "test" in self.database_url.rsplit("/", 1)[-1]


settings = Settings()

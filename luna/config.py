"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database (MySQL / TiDB) ────────────────────────────────────────────
    db_host: str = "mysql"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "luna"
    # Full SQLAlchemy URL; takes precedence over the db_* fields when set
    # (tests point this at sqlite+aiosqlite).
    database_url: Optional[str] = None

    @property
    def db_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"mysql+aiomysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Auth ───────────────────────────────────────────────────────────────
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 60
    otp_ttl_minutes: int = 10

    # ── SMTP (OTP delivery) ────────────────────────────────────────────────
    smtp_host: str = "smtp.zoho.com"
    smtp_port: int = 587
    smtp_user: str = "luna_app@zohomail.in"
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_from_name: str = "Luna"
    smtp_timeout: float = 15.0
    smtp_retries: int = 3
    email_enabled: bool = True

    # ── MinIO (S3-compatible) ──────────────────────────────────────────────
    minio_endpoint: str = "minio:9000"
    minio_access_key: str = "minioadmin"
    minio_secret_key: str = "minioadmin"
    minio_bucket: str = "luna-media"
    minio_use_ssl: bool = False
    max_image_bytes: int = 5 * 1024 * 1024   # 5 MB

    # ── Content limits ─────────────────────────────────────────────────────
    notification_list_limit: int = 50

    # ── Observability ──────────────────────────────────────────────────────
    tracing_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "luna-api"
    environment: str = "development"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

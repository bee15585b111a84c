import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    app_base_url: str

    storage_backend: str
    storage_root: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str

    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    smtp_from: str
    alert_to: str

    sla_alert_within_min: int
    sla_alert_cooldown_min: int

    webhooks_enabled: bool
    webhook_timeout_seconds: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///boaz.db"),
        app_base_url=_getenv("APP_BASE_URL", "http://localhost:5000").rstrip("/"),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        storage_root=_getenv("STORAGE_ROOT", ""),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "nyc3"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
        smtp_host=_getenv("SMTP_HOST", ""),
        smtp_port=_getenv_int("SMTP_PORT", 587),
        smtp_user=_getenv("SMTP_USER", ""),
        smtp_password=_getenv("SMTP_PASSWORD", ""),
        smtp_from=_getenv("SMTP_FROM", "no-reply@boaz.local"),
        alert_to=_getenv("ALERT_TO", ""),
        sla_alert_within_min=_getenv_int("SLA_ALERT_WITHIN_MIN", 60),
        sla_alert_cooldown_min=_getenv_int("SLA_ALERT_COOLDOWN_MIN", 360),
        webhooks_enabled=_getenv("WEBHOOKS_ENABLED", "1") not in ("0", "false", "no"),
        webhook_timeout_seconds=_getenv_int("WEBHOOK_TIMEOUT_SECONDS", 10),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "APP_BASE_URL": s.app_base_url,
        "STORAGE_BACKEND": s.storage_backend,
        "STORAGE_ROOT": s.storage_root,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        "SMTP_HOST": s.smtp_host,
        "SMTP_PORT": s.smtp_port,
        "SMTP_USER": s.smtp_user,
        "SMTP_PASSWORD": s.smtp_password,
        "SMTP_FROM": s.smtp_from,
        "ALERT_TO": s.alert_to,
        "SLA_ALERT_WITHIN_MIN": s.sla_alert_within_min,
        "SLA_ALERT_COOLDOWN_MIN": s.sla_alert_cooldown_min,
        "WEBHOOKS_ENABLED": s.webhooks_enabled,
        "WEBHOOK_TIMEOUT_SECONDS": s.webhook_timeout_seconds,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,
        # file upload limits (25MB)
        "MAX_CONTENT_LENGTH": 25 * 1024 * 1024,
    }

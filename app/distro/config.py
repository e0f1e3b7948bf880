import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    storage_backend: str
    local_storage_root: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str
    upload_url_expiry_seconds: int
    download_url_expiry_seconds: int

    emailjs_service_id: str
    emailjs_template_id: str
    emailjs_public_key: str
    emailjs_private_key: str

    default_label_name: str
    cors_origins: str


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
        database_url=_getenv("DATABASE_URL", "sqlite:///distro.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        local_storage_root=_getenv("LOCAL_STORAGE_ROOT", ""),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "us-east-1"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
        upload_url_expiry_seconds=_getenv_int("UPLOAD_URL_EXPIRY_SECONDS", 3600),
        download_url_expiry_seconds=_getenv_int("DOWNLOAD_URL_EXPIRY_SECONDS", 3600),
        emailjs_service_id=_getenv("EMAILJS_SERVICE_ID", ""),
        emailjs_template_id=_getenv("EMAILJS_TEMPLATE_ID", ""),
        emailjs_public_key=_getenv("EMAILJS_PUBLIC_KEY", ""),
        emailjs_private_key=_getenv("EMAILJS_PRIVATE_KEY", ""),
        default_label_name=_getenv("DEFAULT_LABEL_NAME", "Internet Records"),
        cors_origins=_getenv("CORS_ORIGINS", ""),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "STORAGE_BACKEND": s.storage_backend,
        "LOCAL_STORAGE_ROOT": s.local_storage_root,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        "UPLOAD_URL_EXPIRY_SECONDS": s.upload_url_expiry_seconds,
        "DOWNLOAD_URL_EXPIRY_SECONDS": s.download_url_expiry_seconds,
        "EMAILJS_SERVICE_ID": s.emailjs_service_id,
        "EMAILJS_TEMPLATE_ID": s.emailjs_template_id,
        "EMAILJS_PUBLIC_KEY": s.emailjs_public_key,
        "EMAILJS_PRIVATE_KEY": s.emailjs_private_key,
        "DEFAULT_LABEL_NAME": s.default_label_name,
        "CORS_ORIGINS": [o.strip() for o in s.cors_origins.split(",") if o.strip()],
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # S3 presigned uploads bypass the app; this caps JSON, multipart and local-storage PUTs
        "MAX_CONTENT_LENGTH": 25 * 1024 * 1024,
    }

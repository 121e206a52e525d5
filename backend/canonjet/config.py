# backend/canonjet/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/canonjet.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///canonjet.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bounded wait on storage locks (seconds). Applied as the SQLite busy timeout.
    DB_LOCK_TIMEOUT_SECONDS = float(os.environ.get("DB_LOCK_TIMEOUT_SECONDS", "5"))

    # Whole-transaction retries on lock / optimistic-concurrency failures
    TX_RETRY_ATTEMPTS = int(os.environ.get("TX_RETRY_ATTEMPTS", "3"))
    TX_RETRY_BACKOFF_SECONDS = float(os.environ.get("TX_RETRY_BACKOFF_SECONDS", "0.1"))

    # Stock policy. Negative stock is accepted by default (orders are never
    # refused for lack of stock); delivering more than was requested is not.
    ALLOW_NEGATIVE_STOCK = _env_bool("ALLOW_NEGATIVE_STOCK", True)
    ALLOW_OVER_DELIVERY = _env_bool("ALLOW_OVER_DELIVERY", False)

    # Product images. None -> <instance_path>/images
    IMAGES_DIR = os.environ.get("IMAGES_DIR")
    ALLOWED_IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
    MAX_CONTENT_LENGTH = 8 * 1024 * 1024

    # Push notifications (Expo push service)
    PUSH_ENABLED = _env_bool("PUSH_ENABLED", True)
    PUSH_API_URL = os.environ.get("PUSH_API_URL", "https://exp.host/--/api/v2/push/send")
    PUSH_TIMEOUT_SECONDS = float(os.environ.get("PUSH_TIMEOUT_SECONDS", "10"))
    PUSH_SYNC = _env_bool("PUSH_SYNC", False)

    CORS_ALLOWED_ORIGINS = os.environ.get("CORS_ALLOWED_ORIGINS", "*")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # bcrypt cost factor for stored passwords
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

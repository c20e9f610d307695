import logging
import os
from functools import lru_cache

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", name, raw, default)
        return default


class Settings(BaseModel):

    mongo_url: str = "mongodb://localhost:27017"
    mongo_db: str = "chat"

    message_max_length: int = Field(default=2000, ge=1)
    page_size: int = Field(default=50, ge=1, le=200)
    outbound_queue_size: int = Field(default=256, ge=1)

    session_cookie: str = "session"
    session_ttl_days: int = Field(default=7, ge=1)
    # seconds between expired-session sweeps, 0 disables the janitor
    session_cleanup_interval: int = Field(default=3600, ge=0)

    log_level: str = "info"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            mongo_url=os.getenv("MONGO_URL", cls.model_fields["mongo_url"].default),
            mongo_db=os.getenv("MONGO_DB", cls.model_fields["mongo_db"].default),
            message_max_length=_env_int("MESSAGE_MAX_LENGTH", 2000),
            page_size=_env_int("PAGE_SIZE", 50),
            outbound_queue_size=_env_int("OUTBOUND_QUEUE_SIZE", 256),
            session_cookie=os.getenv("SESSION_COOKIE", "session"),
            session_ttl_days=_env_int("SESSION_TTL_DAYS", 7),
            session_cleanup_interval=_env_int("SESSION_CLEANUP_INTERVAL", 3600),
            log_level=os.getenv("LOG_LEVEL", "info"),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()

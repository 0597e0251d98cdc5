import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        session_secret: str,
        session_max_age_hours: int,
        log_level: str,
        strict_aggregation: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.session_secret = session_secret
        self.session_max_age_hours = session_max_age_hours
        self.log_level = log_level
        self.strict_aggregation = strict_aggregation


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("TRACKER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "tracker.db"
    database_url = os.getenv("TRACKER_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("TRACKER_TIMEZONE", "Asia/Ho_Chi_Minh")
    session_secret = os.getenv(
        "TRACKER_SESSION_SECRET",
        "3f9c1d0b7a52e64e8c0f2b71d94a6e15c8b3a07f2d6e91c4b58a0e3f7d216c9a",
    )
    session_max_age_hours = int(os.getenv("TRACKER_SESSION_MAX_AGE_HOURS", "168"))
    log_level = os.getenv("TRACKER_LOG_LEVEL", "INFO").upper()
    strict_aggregation = _env_flag("TRACKER_STRICT_AGGREGATION")
    return Settings(
        database_url=database_url,
        timezone=timezone,
        session_secret=session_secret,
        session_max_age_hours=session_max_age_hours,
        log_level=log_level,
        strict_aggregation=strict_aggregation,
    )

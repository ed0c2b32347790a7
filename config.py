import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        csrf_secret: str,
        cash_page_size: int,
        actor_email: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.csrf_secret = csrf_secret
        self.cash_page_size = cash_page_size
        self.actor_email = actor_email


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("TOUROPS_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "tourops.db"
    database_url = os.getenv("TOUROPS_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("TOUROPS_TIMEZONE", "America/Los_Angeles")
    csrf_secret = os.getenv(
        "TOUROPS_CSRF_SECRET",
        "5d0c6f1e2b7a48c39e14a7d2f06b8c3e91a5f4d7c2e8b1a06f3d9c5e7b2a4f18",
    )
    cash_page_size = int(os.getenv("TOUROPS_CASH_PAGE_SIZE", "50"))
    actor_email = os.getenv("TOUROPS_ACTOR_EMAIL", "")
    return Settings(
        database_url=database_url,
        timezone=timezone,
        csrf_secret=csrf_secret,
        cash_page_size=cash_page_size,
        actor_email=actor_email,
    )

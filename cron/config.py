"""Cron config from environment."""

import os


def _int(val: str | None, default: int) -> int:
    if val is None or val.strip() == "":
        return default
    try:
        return int(val.strip())
    except ValueError:
        return default


def _list(val: str | None) -> list[str]:
    if val is None or val.strip() == "":
        return []
    return [s.strip() for s in val.split(",") if s.strip()]


class Config:
    """Cron configuration from env vars. Read at instantiation."""

    def __init__(self) -> None:
        self.TENANTS: list[str] = _list(os.getenv("TENANTS"))
        # Messages per ingestion page (capped at 100 by the service)
        self.EMBED_BATCH_SIZE: int = _int(os.getenv("EMBED_BATCH_SIZE"), 100)
        # Pages per tenant per run; bounds one run's API spend
        self.EMBED_MAX_PAGES: int = _int(os.getenv("EMBED_MAX_PAGES"), 20)
        self.LOG_DIR: str = os.getenv("CRON_LOG_DIR", "logs").strip()
        self.LOG_LEVEL: str = (os.getenv("CRON_LOG_LEVEL") or "INFO").strip().upper()


config = Config()

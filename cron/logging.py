"""Cron logging: one logger per job, to stdout and <CRON_LOG_DIR>/cron_<job>.log."""

import logging
from pathlib import Path

from cron.config import config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def get_logger(job_name: str) -> logging.Logger:
    """Logger for one cron job. Handlers are attached once. CRON_LOG_DIR empty => stdout only."""
    logger = logging.getLogger(f"cron.{job_name}")
    if logger.handlers:
        return logger
    logger.setLevel(config.LOG_LEVEL)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.LOG_DIR:
        log_dir = Path(config.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_dir / f"cron_{job_name}.log", encoding="utf-8"))

    fmt = logging.Formatter(LOG_FORMAT)
    for h in handlers:
        h.setFormatter(fmt)
        logger.addHandler(h)
    return logger

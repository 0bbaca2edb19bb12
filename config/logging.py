# coding: utf-8
"""
Logging configuration with loguru for the Zenith settlement worker

Every record carries a ``job`` field. The scheduler sets it for the
duration of a job run (``logger.contextualize(job=...)``), so one grep
over the worker log shows a complete run of e.g. ``wallet_revaluation``.
"""
import logging
import sys
from pathlib import Path

import sentry_sdk
from loguru import logger

from config.config import LOG_DIR, LOG_LEVEL, ENVIRONMENT, SENTRY_DSN


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[job]: <18}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[job]} | {name}:{function}:{line} | {message}"

# Stdlib loggers of the libraries the worker drives
QUIET_LOGGERS = {
    "aiohttp": logging.WARNING,
    "apscheduler": logging.WARNING,
    "asyncio": logging.WARNING,
    "sqlalchemy.engine": logging.ERROR,
}


def _add_file_sink(path: Path, level: str, retention: str) -> None:
    logger.add(
        path,
        format=FILE_FORMAT,
        level=level,
        rotation="00:00",
        retention=retention,
        compression="zip",
        encoding="utf-8",
        enqueue=True,  # APScheduler may log from its own threads
    )


def setup_logging() -> None:
    """
    Setup loguru logging configuration
    """
    logger.remove()
    logger.configure(extra={"job": "worker"})

    logs_dir = Path(LOG_DIR)
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger.add(sys.stdout, format=CONSOLE_FORMAT, level=LOG_LEVEL, colorize=True)
    _add_file_sink(logs_dir / "worker_{time:YYYY-MM-DD}.log", "DEBUG", "7 days")
    # Failed settlements must be reconcilable long after the fact
    _add_file_sink(logs_dir / "error_{time:YYYY-MM-DD}.log", "ERROR", "90 days")

    if SENTRY_DSN:
        logger.add(sentry_sink, level="ERROR", format="{message}")

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    logger.info(f"Zenith worker logging ready | Environment: {ENVIRONMENT} | Level: {LOG_LEVEL} | Dir: {logs_dir}")


def sentry_sink(message):
    """
    Forward ERROR/CRITICAL records to Sentry, tagged with the job that logged them
    """
    record = message.record

    with sentry_sdk.new_scope() as scope:
        scope.set_tag("job", record["extra"].get("job", "worker"))
        scope.set_extra("location", f'{record["file"].path}:{record["line"]}')

        if record["exception"]:
            sentry_sdk.capture_exception(record["exception"].value)
        else:
            level = "fatal" if record["level"].name == "CRITICAL" else "error"
            sentry_sdk.capture_message(record["message"], level=level)

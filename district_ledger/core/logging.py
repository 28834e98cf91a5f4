"""Centralized logging setup using loguru."""
import sys
from loguru import logger
from district_ledger.core.config import settings

LEDGER_MODULES = ("district_ledger.engine.lifecycle", "district_ledger.engine.wallet")


def _ledger_only(record) -> bool:
    return record["name"] in LEDGER_MODULES


def setup_logging() -> None:
    """
    Configure loguru sinks.

    stderr always; LOG_FILE for everything; LEDGER_LOG_FILE for lifecycle
    and wallet events only, so money movements can be read on their own.
    An empty path disables that file sink.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.LOG_LEVEL,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        colorize=True,
    )
    if settings.LOG_FILE:
        logger.add(
            settings.LOG_FILE,
            level=settings.LOG_LEVEL,
            rotation="10 MB",
            retention="30 days",
            compression="zip",
        )
    if settings.LEDGER_LOG_FILE:
        logger.add(
            settings.LEDGER_LOG_FILE,
            level="INFO",
            filter=_ledger_only,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {message}",
            rotation="1 month",
            retention="2 years",
            enqueue=True,
        )
    logger.debug(f"Logging ready (level={settings.LOG_LEVEL}, db={settings.DATABASE_URL})")

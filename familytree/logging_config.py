import sys

from loguru import logger

from familytree.config import settings


def configure_logging(level: str | None = None) -> None:
    """Replace loguru's default sink with one at the configured level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.LOG_LEVEL).upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    )

"""
Logging setup for the API process.
Application loggers live under "xenostore" (xenostore.coupon, xenostore.finance, ...);
uvicorn follows the same level, SQL echo stays off unless asked for.
"""
import logging
import sys

APP_LOGGER = "xenostore"
DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
    sql_echo: bool = False,
) -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(
        level=level,
        format=format_string or DEFAULT_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", APP_LOGGER):
        logging.getLogger(name).setLevel(level)
    # Statement logging is noisy; only with LOG_SQL=true
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if sql_echo else logging.WARNING)

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_LEVEL_ENV_VAR = "LOG_LEVEL"
LOG_DIR_ENV_VAR = "SENSORLINK_LOG_DIR"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024  # 5 MiB
BACKUP_COUNT = 3


def _resolve_log_directory() -> Path | None:
    """Return the directory for rolling log files, or ``None`` to log to the console only."""

    log_dir = os.getenv(LOG_DIR_ENV_VAR)
    if not log_dir:
        return None
    path = Path(log_dir).expanduser()
    path.mkdir(parents=True, exist_ok=True)
    return path


def _log_filename(name: str) -> str:
    sanitized = name.replace(os.sep, "_").replace("/", "_").strip(".")
    return f"{sanitized.replace('.', '_') or 'root'}.log"


def _configure_logger(logger: logging.Logger, log_level: str) -> None:
    level = getattr(logging, log_level, logging.INFO)
    logger.setLevel(level)

    if logger.handlers:
        # Already configured by an earlier get_logger call.
        return

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    log_dir = _resolve_log_directory()
    if log_dir is not None:
        handlers.append(
            RotatingFileHandler(
                log_dir / _log_filename(logger.name),
                maxBytes=MAX_LOG_BYTES,
                backupCount=BACKUP_COUNT,
            )
        )

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        logger.addHandler(handler)
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Return a logger with a console handler and, when configured, a rolling file."""

    log_level = os.getenv(LOG_LEVEL_ENV_VAR, "INFO").upper()
    logger = logging.getLogger(name)
    _configure_logger(logger, log_level)
    return logger

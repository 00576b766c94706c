"""Logging for the modtoggler process: rotating log file, console, per-logger levels."""

import logging
import logging.handlers
from pathlib import Path
from typing import Any

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level(name: Any, default: int = logging.INFO) -> int:
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else default


def _rotating_handler(log_path: Path, cfg: dict[str, Any]) -> logging.Handler:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=int(cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(cfg.get("backup_count", 3)),
        encoding="utf-8",
    )


def setup_logging(project_root: Path, settings: dict[str, Any]) -> Path:
    """Replace the root logger's handlers per settings["logging"]. Returns the log file path.

    logging.loggers maps logger names to levels, e.g. {"uvicorn.access": "WARNING"}.
    Unknown level names fall back to INFO.
    """
    cfg = settings.get("logging", {})
    level = _level(cfg.get("level", "INFO"))
    log_path = project_root / cfg.get("file", "sandbox/logs/modtoggler.log")
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = [_rotating_handler(log_path, cfg)]
    if cfg.get("log_to_console", True):
        handlers.append(logging.StreamHandler())

    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers[:]:
        root.removeHandler(h)
    for h in handlers:
        h.setLevel(level)
        h.setFormatter(formatter)
        root.addHandler(h)

    for name, logger_level in (cfg.get("loggers") or {}).items():
        logging.getLogger(name).setLevel(_level(logger_level))
    return log_path

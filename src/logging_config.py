"""Configure logging for the cart application.

``configure_logging`` installs a JSON formatter on the root logger with
a console handler and a rotating file handler.  Each record carries a
timestamp, level, module and message, plus ``user_id``/``order_id`` and
the keys of an ``extra`` dict when the caller supplies them.
"""

import json
import logging
import logging.handlers
import os
from datetime import datetime, UTC


class JsonFormatter(logging.Formatter):
    """Format log records as JSON strings."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "module": record.module,
            "message": record.getMessage(),
        }
        for field in ("user_id", "order_id"):
            if hasattr(record, field):
                log_record[field] = getattr(record, field)
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            # flatten into the top level
            log_record.update(extra)
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)


def _level_from_env(default: int) -> int:
    name = os.environ.get("CART_LOG_LEVEL")
    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default


def configure_logging(log_dir: str | None = None, level: int = logging.INFO) -> None:
    """Configure the root logger with JSON output to stdout and a log file.

    Args:
        log_dir: Directory for ``cart_app.log``.  Defaults to
            ``CART_LOG_DIR`` or ``logs``; created if missing.
        level: Root log level, overridden by ``CART_LOG_LEVEL``.
    """
    log_dir = log_dir or os.environ.get("CART_LOG_DIR", "logs")
    level = _level_from_env(level)
    os.makedirs(log_dir, exist_ok=True)
    logger = logging.getLogger()
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    formatter = JsonFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    file_handler = logging.handlers.RotatingFileHandler(
        filename=os.path.join(log_dir, "cart_app.log"),
        maxBytes=5 * 1024 * 1024,  # 5 MB
        backupCount=3,
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(level)
    logger.addHandler(file_handler)

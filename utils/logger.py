"""Rotating file and console logging for request and complaint audit trails."""
import logging
import os
from logging.handlers import RotatingFileHandler

_RECORD_FIELDS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class StructuredFormatter(logging.Formatter):
    """Appends the ``extra=`` fields of a record as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = {k: v for k, v in vars(record).items() if k not in _RECORD_FIELDS and not k.startswith("_")}
        if not fields:
            return line
        return line + " | " + " ".join(f"{key}={value!r}" for key, value in sorted(fields.items()))


def _attach(logger: logging.Logger, handlers, level: int) -> None:
    # Repeated app factory calls (tests, reloader) must not stack handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def init_logging(app) -> logging.Logger:
    log_dir = app.config.get("LOG_DIR") or os.path.join(app.instance_path, "logs")
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "crm.log")

    level = getattr(logging, (app.config.get("LOG_LEVEL") or "INFO").upper(), logging.INFO)
    formatter = StructuredFormatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(module)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
    stream_handler = logging.StreamHandler()
    handlers = [file_handler, stream_handler]
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logger = logging.getLogger(app.name)
    _attach(logger, handlers, level)
    # Engine and store modules log under ``utils.*`` when no app logger is injected.
    _attach(logging.getLogger("utils"), handlers, level)

    logger.info("Logging initialized", extra={"path": log_path})
    return logger

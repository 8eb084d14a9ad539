import json
import logging
from logging.config import dictConfig

PLAIN_FORMAT = "%(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO", *, json_output: bool = True) -> None:
    """Route ``swiftstore`` logs to stderr.

    Operation events go out as one JSON object per line unless
    ``json_output`` is False. Container setup messages on
    ``swiftstore.startup`` always use the plain format.
    """
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": JsonFormatter},
                "plain": {"format": PLAIN_FORMAT},
            },
            "handlers": {
                "operations": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_output else "plain",
                },
                "startup": {
                    "class": "logging.StreamHandler",
                    "formatter": "plain",
                },
            },
            "root": {"level": level, "handlers": ["operations"]},
            "loggers": {
                "swiftstore": {"level": level},
                "swiftstore.startup": {
                    "handlers": ["startup"],
                    "level": level,
                    "propagate": False,
                },
            },
        }
    )


class JsonFormatter(logging.Formatter):
    """Serialize a record, merging the ``extra={"extra": {...}}`` payload."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(payload, ensure_ascii=False, default=str)

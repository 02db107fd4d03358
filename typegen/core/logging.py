import logging
import sys

# record attributes the format string expects; callers pass them via ``extra``
CONTEXT_DEFAULTS = {"target": "-", "stage": "-"}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [target=%(target)s stage=%(stage)s] - %(message)s"

# per-request INFO lines from the HTTP stack drown out the per-target log
NOISY_LOGGERS = ("httpx", "httpcore")


class ContextFormatter(logging.Formatter):
    """Formatter that tolerates records logged without target/stage context."""
    def format(self, record):
        for key, default in CONTEXT_DEFAULTS.items():
            if not hasattr(record, key):
                setattr(record, key, default)
        return super().format(record)


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ContextFormatter(LOG_FORMAT))
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, handlers=[handler], force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric, logging.WARNING))

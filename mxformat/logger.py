import logging
import os

logger = logging.getLogger("mxformat")
trace_logger = logging.getLogger("mxformat.trace")

DEFAULT_LOG_LEVEL = "WARNING"

# -- between DEBUG and INFO --
DETAIL = 15
logging.addLevelName(DETAIL, "DETAIL")


# -- `Logger.detail()`, used by the trace logger for pass timings --
def detail(self, message, *args, **kws):
    if self.isEnabledFor(DETAIL):
        self._log(DETAIL, message, args, **kws)


logging.Logger.detail = detail  # type: ignore


def get_logger() -> logging.Logger:
    """The package logger, with its level taken from the `LOG_LEVEL` environment variable.

    An unset, empty, or unknown level name falls back to `DEFAULT_LOG_LEVEL`.
    """
    level_name = os.getenv("LOG_LEVEL", "").strip().upper() or DEFAULT_LOG_LEVEL
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = getattr(logging, DEFAULT_LOG_LEVEL)
    logger.setLevel(level)
    return logger

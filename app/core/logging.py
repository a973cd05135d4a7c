# app/core/logging.py

import logging
import os
import re
from logging.handlers import TimedRotatingFileHandler

# -------------- CONFIGURATION -------------------

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_FILENAME = "forge_control_plane.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# HTTP client internals log full request lines; keep them quiet unless debugging
NOISY_LOGGERS = ("httpx", "httpcore", "hpack")

SECRET_PATTERNS = (
    re.compile(r"fapi_[a-z0-9]+_[a-f0-9]{8,}"),
    re.compile(r"(?i)(bearer|apikey)\s+[A-Za-z0-9._\-]+"),
)

# -------------- FILTERS & FORMATTERS -------------

class RedactSecretsFilter(logging.Filter):
    """Masks API keys and Authorization header values before a record is emitted."""

    def filter(self, record):
        message = record.getMessage()
        redacted = message
        for pattern in SECRET_PATTERNS:
            redacted = pattern.sub(self._mask, redacted)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True

    @staticmethod
    def _mask(match):
        text = match.group(0)
        if " " in text:
            return text.split()[0] + " [REDACTED]"
        return text[:5] + "[REDACTED]"


class ConsoleFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[41m\033[97m",
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelname, "")
        return f"{color}{super().format(record)}{self.RESET}"

# -------------- LOGGER INITIALIZATION ------------

def init_logging(log_dir: str = LOG_DIR, level: str = LOG_LEVEL):
    """
    Configures the root logger once per process:
    rotating file under `log_dir` (daily, 7 kept) + colored console, both redacted.
    Calling it again replaces the handlers instead of stacking them.
    """
    os.makedirs(log_dir, exist_ok=True)
    redact = RedactSecretsFilter()

    file_handler = TimedRotatingFileHandler(
        os.path.join(log_dir, LOG_FILENAME), when="midnight", backupCount=7, encoding="utf-8"
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(ConsoleFormatter(LOG_FORMAT, DATE_FORMAT))

    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in (file_handler, console_handler):
        handler.setLevel(level)
        handler.addFilter(redact)
        root.addHandler(handler)

    # Uvicorn access/error logs go through the same handlers
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers = []
        uv_logger.propagate = True

    if level != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

# Modules only ever do:
#   logger = logging.getLogger(__name__)

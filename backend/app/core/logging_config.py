"""
Logging configuration for IQX Stock Express backend.

Provides two loggers:
- main_logger: General logging to console (INFO level) and backend.log
- upstream_logger: Outbound provider calls, file only (DEBUG level),
  warnings and above are mirrored to the console
"""
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Log files (relative to backend folder)
LOG_DIR = Path(__file__).parent.parent.parent / "logs"
UPSTREAM_LOG_FILE = LOG_DIR / "upstream.log"
MAIN_LOG_FILE = LOG_DIR / "backend.log"

# Log formats
CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Module-level logger references
_main_logger = None
_upstream_logger = None


def _rotating_handler(path: Path) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,  # 10 MB per file
        backupCount=5,
        encoding="utf-8"
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
    return handler


def setup_logging():
    """Initialize logging configuration. Should be called once at startup."""
    global _main_logger, _upstream_logger

    LOG_DIR.mkdir(exist_ok=True)

    # === Main Logger (console output + file) ===
    _main_logger = logging.getLogger("iqx_stock")
    _main_logger.setLevel(logging.DEBUG)  # Allow file to capture DEBUG
    _main_logger.propagate = False

    # Clear existing handlers to avoid duplicates on reload
    _main_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
    _main_logger.addHandler(console_handler)
    _main_logger.addHandler(_rotating_handler(MAIN_LOG_FILE))

    # === Upstream Logger (file only + warnings to console) ===
    _upstream_logger = logging.getLogger("iqx_stock.upstream")
    _upstream_logger.setLevel(logging.DEBUG)
    _upstream_logger.propagate = False
    _upstream_logger.handlers.clear()
    _upstream_logger.addHandler(_rotating_handler(UPSTREAM_LOG_FILE))

    console_error_handler = logging.StreamHandler()
    console_error_handler.setLevel(logging.WARNING)
    console_error_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
    _upstream_logger.addHandler(console_error_handler)

    return _main_logger, _upstream_logger


def get_main_logger() -> logging.Logger:
    """Get the main logger for general operations."""
    global _main_logger
    if _main_logger is None:
        setup_logging()
    return _main_logger


def get_upstream_logger() -> logging.Logger:
    """Get the logger that records calls to third-party providers."""
    global _upstream_logger
    if _upstream_logger is None:
        setup_logging()
    return _upstream_logger


def log_upstream_call(method: str, url: str, status: int, elapsed: float):
    """Record a completed provider call in the upstream log file."""
    get_upstream_logger().debug(f"{method} {url} -> {status} ({elapsed * 1000:.0f} ms)")


def log_upstream_error(method: str, url: str, error: str):
    """
    Log a failed provider call.
    Shows a warning on console + error entry in the upstream log file.
    """
    get_main_logger().warning(f"[UPSTREAM] {method} {url} failed: {error}")
    get_upstream_logger().error(f"=== {method} {url} FAILED === {error}")

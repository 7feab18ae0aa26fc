import logging
from logging.handlers import RotatingFileHandler
import sys

from attendance_app.config import LOG_DIR

# --- 1. CREATE LOG DIRECTORY ---

try:
    LOG_DIR.mkdir(exist_ok=True, parents=True)
except OSError as e:
    # Logging isn't set up yet, so report straight to stderr.
    print(f"ERROR: Could not create log directory at {LOG_DIR}: {e}", file=sys.stderr)

LOG_FILE = LOG_DIR / "attendance.log"


# --- 2. CONFIGURE ROOT APPLICATION LOGGER ---

logger = logging.getLogger("attendance_system")
logger.setLevel(logging.INFO)

formatter = logging.Formatter(
    "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
)

# Re-imports (uvicorn --reload, test collection) must not stack handlers.
if not logger.handlers:
    # File Handler (rotates when 5MB)
    if LOG_DIR.exists():
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)


def get_logger(name: str) -> logging.Logger:
    """Child of the application logger, so it shares the handlers above."""
    if name.startswith("attendance_app."):
        name = name[len("attendance_app."):]
    return logger.getChild(name)

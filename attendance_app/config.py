import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# -----------------------------
# Project paths
# -----------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
LOG_DIR = Path(os.getenv("LOG_DIR", str(Path(os.getcwd()) / "logs")))
SETTINGS_PATH = DATA_DIR / "settings.json"

# -----------------------------
# Storage
# -----------------------------
USE_SUPABASE = os.getenv("USE_SUPABASE", "false").lower() == "true"
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'attendance.db'}")

# -----------------------------
# Security
# -----------------------------
ADMIN_SECRET = os.getenv("ADMIN_SECRET", "")

# -----------------------------
# Recognition / capture
# -----------------------------
AUTO_TRIGGER_INTERVAL = float(os.getenv("AUTO_TRIGGER_INTERVAL", "3.0"))
AUTO_TRIGGER_PROBABILITY = float(os.getenv("AUTO_TRIGGER_PROBABILITY", "0.3"))
DEFAULT_LOCATION = os.getenv("DEFAULT_LOCATION", "Main Campus")

PORT = int(os.getenv("PORT", "8000"))

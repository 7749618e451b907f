import os
from pathlib import Path

from dotenv import load_dotenv


BASE_DIR = Path(__file__).resolve().parents[2]

load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_PATH = Path(os.getenv("EDU_HUB_DB", str(BASE_DIR / "eduhub.db")))

BREAK_MINUTES = int(os.getenv("BREAK_MINUTES", "15"))

# Profile rows are provisioned right after sign-up; the first read can miss them.
ROLE_RETRY_ATTEMPTS = int(os.getenv("ROLE_RETRY_ATTEMPTS", "4"))
ROLE_RETRY_WAIT = float(os.getenv("ROLE_RETRY_WAIT", "0.1"))
ROLE_RETRY_MAX_WAIT = float(os.getenv("ROLE_RETRY_MAX_WAIT", "1.0"))
ROLE_CACHE_SIZE = int(os.getenv("ROLE_CACHE_SIZE", "1024"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "0").strip().lower() in {"1", "true", "yes"}

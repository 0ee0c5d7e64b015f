# owntracks_recorder/config.py
import os
from dotenv import load_dotenv

from . import __version__

load_dotenv()  # loads .env from project root


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


MONGO_URI = os.getenv("MONGO_URI")
MONGO_DBNAME = os.getenv("MONGO_DBNAME", "owntracks_recorder")

# "mongo" or "memory"; without MONGO_URI there is nothing to connect to
STORAGE_BACKEND = (os.getenv("STORAGE_BACKEND") or ("mongo" if MONGO_URI else "memory")).strip().lower()

BASIC_AUTH_USER = os.getenv("BASIC_AUTH_USER")
BASIC_AUTH_PASS = os.getenv("BASIC_AUTH_PASS")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]

INDEX_MAX_ATTEMPTS = _env_int("INDEX_MAX_ATTEMPTS", 5)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

API_VERSION = __version__

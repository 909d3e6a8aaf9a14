import os
from pathlib import Path
from functools import lru_cache

from dotenv import load_dotenv
from sqlalchemy import create_engine

ROOT = Path(__file__).resolve().parents[1]
DATA_DIR = ROOT / "app" / "data"
SQLITE_PATH = DATA_DIR / "plans.sqlite"

load_dotenv(ROOT / ".env")

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{SQLITE_PATH}")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Tried in order; a rate-limited model falls through to the next one
AI_SEARCH_MODELS = [
    m.strip()
    for m in os.getenv(
        "AI_SEARCH_MODELS", "gemini-2.0-flash,gemini-2.0-flash-lite,gemini-2.5-flash"
    ).split(",")
    if m.strip()
]
AI_SEARCH_TIMEOUT = float(os.getenv("AI_SEARCH_TIMEOUT", "60"))
AI_SEARCH_RETRY_DELAY = float(os.getenv("AI_SEARCH_RETRY_DELAY", "3"))


@lru_cache(maxsize=1)
def get_engine():
    if DATABASE_URL == f"sqlite:///{SQLITE_PATH}" and not SQLITE_PATH.exists():
        # Placeholder; the seeding script will create this
        raise FileNotFoundError("plans.sqlite not found. Run data_pipeline/seed_catalog.py")
    return create_engine(DATABASE_URL, pool_pre_ping=True)

"""Settings read from environment variables (and an optional .env file)."""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

ENV_PREFIX = "JACKIESLIST"


def _k(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [part.strip() for part in raw.split(",") if part.strip()]


DATABASE_PATH: str = os.getenv(_k("DATABASE_PATH"), "jackieslist.db")
LOG_LEVEL: str = os.getenv(_k("LOG_LEVEL"), "INFO").upper()
LOG_DIR: Optional[Path] = Path(os.environ[_k("LOG_DIR")]).expanduser() if os.getenv(_k("LOG_DIR")) else None
CORS_ORIGINS: list[str] = _env_list(_k("CORS_ORIGINS"), ["http://localhost:5173"])

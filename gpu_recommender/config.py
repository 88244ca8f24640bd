"""Environment variable loading and configuration."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")


def get_env(key: str, default: str | None = None) -> str:
    """Get an environment variable or raise if missing and no default."""
    value = os.getenv(key, default)
    if value is None:
        raise ValueError(f"Missing required environment variable: {key}")
    return value


def get_float_env(key: str, default: float) -> float:
    """Get a float environment variable, raising on unparseable values."""
    raw = get_env(key, str(default))
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be a number, got {raw!r}") from None


# Advisory service (all optional; advisory path disabled when key or endpoint is missing)
ADVISORY_API_KEY = os.getenv("OPENROUTER_API_KEY")
ADVISORY_ENDPOINT = get_env(
    "ADVISORY_ENDPOINT", "https://openrouter.ai/api/v1/chat/completions"
)
ADVISORY_MODEL = get_env("ADVISORY_MODEL", "deepseek/deepseek-chat:free")
ADVISORY_TIMEOUT_SECONDS = get_float_env("ADVISORY_TIMEOUT_SECONDS", 20.0)

# Attribution headers sent with every advisory request
ADVISORY_REFERER = get_env("ADVISORY_REFERER", "https://gpu-recommender.vercel.app")
ADVISORY_TITLE = get_env("ADVISORY_TITLE", "GPU Recommender")

"""
Runtime configuration loaded from the environment (and a local .env file).
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
PLACEHOLDER_IMAGE_URL = "https://placehold.co/400x300/D4A373/F9F7F4?text="


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    model: str = os.getenv("FAMILY_MENU_MODEL", DEFAULT_MODEL)
    max_tokens: int = int(os.getenv("FAMILY_MENU_MAX_TOKENS", "4096"))

    data_dir: str = os.getenv("FAMILY_MENU_DATA_DIR", "data")

    # Seconds awaited before each generation step
    step_delay: float = float(os.getenv("FAMILY_MENU_STEP_DELAY", "1.5"))

    image_base_url: str = os.getenv("FAMILY_MENU_IMAGE_URL", PLACEHOLDER_IMAGE_URL)

    use_null_llm: bool = _env_bool("USE_NULL_LLM")
    log_level: str = os.getenv("FAMILY_MENU_LOG_LEVEL", "INFO")

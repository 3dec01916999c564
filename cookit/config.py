"""
Runtime configuration.

Settings come from environment variables, with a .env file loaded first when
present. Domain constants that are not meant to be tuned per deployment live
here as module-level values.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Domain constants
HISTORY_CAPACITY = 6  # Recipes remembered for anti-repetition
MIN_FRESH_POOL = 6  # Below this, previously recommended recipes stay eligible
RECOMMENDATION_COUNT = 3  # Recipes returned per request
TASTE_THRESHOLD = 15  # Axis sum at or above this picks the first letter

DEFAULT_RECOMMENDER_MODEL = "claude-sonnet-4-5-20250929"


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class Settings:
    """Deployment settings, read once at startup."""

    db_dir: str = "data"
    environment: str = "production"
    anthropic_api_key: Optional[str] = None
    use_null_llm: bool = False
    recommender_model: str = DEFAULT_RECOMMENDER_MODEL
    recommender_max_tokens: int = 500
    detector_url: str = "http://localhost:8000"
    detector_timeout: float = 30.0
    ingredient_map_csv: Optional[str] = None
    similarity_alpha: float = 0.5
    shortlist_size: int = 50
    debug: bool = False
    port: int = 5000

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def __post_init__(self):
        if not 0.0 <= self.similarity_alpha <= 1.0:
            raise ValueError(f"similarity_alpha must be within [0, 1], got {self.similarity_alpha}")
        if self.shortlist_size < 1:
            raise ValueError(f"shortlist_size must be positive, got {self.shortlist_size}")
        if self.detector_timeout <= 0:
            raise ValueError(f"detector_timeout must be positive, got {self.detector_timeout}")


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env_file: Optional path to a .env file (defaults to ./.env lookup)

    Returns:
        Settings instance
    """
    load_dotenv(env_file)

    settings = Settings(
        db_dir=os.getenv("COOKIT_DB_DIR", "data"),
        environment=os.getenv("COOKIT_ENV", "production").lower(),
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
        use_null_llm=_env_bool("USE_NULL_LLM"),
        recommender_model=os.getenv("COOKIT_RECOMMENDER_MODEL", DEFAULT_RECOMMENDER_MODEL),
        recommender_max_tokens=int(os.getenv("COOKIT_RECOMMENDER_MAX_TOKENS", "500")),
        detector_url=os.getenv("COOKIT_DETECTOR_URL", "http://localhost:8000").rstrip("/"),
        detector_timeout=float(os.getenv("COOKIT_DETECTOR_TIMEOUT", "30")),
        ingredient_map_csv=os.getenv("COOKIT_INGREDIENT_MAP_CSV") or None,
        similarity_alpha=float(os.getenv("COOKIT_SIMILARITY_ALPHA", "0.5")),
        shortlist_size=int(os.getenv("COOKIT_SHORTLIST_SIZE", "50")),
        debug=_env_bool("DEBUG"),
        port=int(os.getenv("PORT", "5000")),
    )
    logger.debug(f"Loaded settings: env={settings.environment}, db_dir={settings.db_dir}")
    return settings

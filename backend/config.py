from pydantic_settings import BaseSettings
from pathlib import Path

# Get the project root directory (parent of backend folder)
PROJECT_ROOT = Path(__file__).parent.parent

class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""
    database_url: str = f"sqlite:///{PROJECT_ROOT / 'smart_review.db'}"
    log_level: str = "INFO"

    # Selection policy: "coverage", "weighted" or "ordered"
    selection_strategy: str = "coverage"

    # Chapter 1 always counts as unlocked when enabled
    always_unlock_first_module: bool = False

    # Client-side request timeout for review calls (seconds)
    request_timeout_seconds: float = 10.0

    # Probability weight assigned by each difficulty rating
    easy_weight: float = 0.5
    medium_weight: float = 1.0
    hard_weight: float = 1.3

    class Config:
        env_file = str(PROJECT_ROOT / ".env")
        extra = "ignore"

settings = Settings()

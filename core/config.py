"""
PT GRADER Configuration

Environment variables and application settings.
"""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "PT GRADER"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173", "http://10.0.2.2:8000"]

    # Pose analysis
    MIN_VISIBILITY: float = 0.5   # landmark confidence needed for a joint to count
    DEBOUNCE_FRAMES: int = 3      # consecutive frames to confirm an UP/DOWN change (~0.1s at 30fps)

    # Sessions
    MAX_ACTIVE_SESSIONS: int = 100
    SESSION_RETENTION_SECONDS: int = 600  # completed or idle sessions are dropped after this

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

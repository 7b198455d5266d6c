"""Configuration management for Lendtrack."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Application configuration."""

    # Application
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")
    PORT: int = int(os.getenv("PORT", "7675"))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str | None = os.getenv("LOG_LEVEL") or None

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./lendtrack.db")

    # Runtime state (migration lock, local databases)
    DATA_ROOT: Path = Path(os.getenv("DATA_ROOT", "./data"))

    # Bootstrap administrator, created only when the user table is empty
    INITIAL_ADMIN_EMAIL: str | None = os.getenv("INITIAL_ADMIN_EMAIL") or None
    INITIAL_ADMIN_NAME: str = os.getenv("INITIAL_ADMIN_NAME", "Administrator")

    # Auth
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
        os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24))
    )
    ALGORITHM: str = "HS256"
    SESSION_COOKIE_SECURE: bool = (
        os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"
    )

    @classmethod
    def ensure_data_dirs(cls) -> None:
        """Ensure the runtime data directory exists."""
        cls.DATA_ROOT.mkdir(parents=True, exist_ok=True)


config = Config()

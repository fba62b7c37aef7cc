"""
Configuration module for HearthChat application.
Stores all application settings, read from the environment once at import.
"""

import os
from typing import Dict, Any


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration class."""

    # Server Configuration
    DEFAULT_HOST = os.environ.get("HEARTHCHAT_HOST", "localhost")
    DEFAULT_SERVER_PORT = int(os.environ.get("HEARTHCHAT_PORT", "8765"))

    # SQLite database (users and message log)
    SQLITE_DB_FILE = os.environ.get("HEARTHCHAT_DB", "hearthchat.db")

    # Frames queued per connection before a client that stopped reading is dropped
    OUTBOX_MAX_FRAMES = int(os.environ.get("HEARTHCHAT_OUTBOX_SIZE", "1000"))

    # Signed session tokens, accepted in place of the username/password cookies
    SESSION_TOKENS = _env_flag("HEARTHCHAT_SESSION_TOKENS")
    JWT_SECRET = os.environ.get("JWT_SECRET", "default-secret-key-change-in-production")
    JWT_ALGORITHM = "HS256"
    JWT_EXPIRE_MINUTES = 60 * 24

    # Logging environment preset (development / production / testing)
    ENVIRONMENT = os.environ.get("HEARTHCHAT_ENV", "development")

    # Static assets and login page served by the HTTP surface
    STATIC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "web", "static")

    @classmethod
    def get_config(cls) -> Dict[str, Any]:
        """Get all configuration values as a dictionary."""
        return {
            "DEFAULT_HOST": cls.DEFAULT_HOST,
            "DEFAULT_SERVER_PORT": cls.DEFAULT_SERVER_PORT,
            "SQLITE_DB_FILE": cls.SQLITE_DB_FILE,
            "OUTBOX_MAX_FRAMES": cls.OUTBOX_MAX_FRAMES,
            "SESSION_TOKENS": cls.SESSION_TOKENS,
            "JWT_ALGORITHM": cls.JWT_ALGORITHM,
            "JWT_EXPIRE_MINUTES": cls.JWT_EXPIRE_MINUTES,
            "ENVIRONMENT": cls.ENVIRONMENT,
            "STATIC_DIR": cls.STATIC_DIR,
        }


# Create config instance
config = Config()

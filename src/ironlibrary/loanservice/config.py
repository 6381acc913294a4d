"""Configuration management for the loan service.

Loads configuration from environment variables and provides defaults.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


DEFAULT_DB_PATH = Path.home() / ".ironlibrary" / "loans.db"


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: str

    # Remote directories
    user_service_url: str
    book_service_url: str
    http_timeout: float  # seconds

    # Logging
    log_level: str

    # Defaults for queries
    due_soon_days: int

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path = os.environ.get("LOANSERVICE_DB_PATH", str(DEFAULT_DB_PATH))
        if db_path != ":memory:":
            db_path = str(Path(db_path).expanduser())

        return cls(
            db_path=db_path,
            user_service_url=os.environ.get(
                "LOANSERVICE_USER_SERVICE_URL", "http://localhost:8081"
            ).rstrip("/"),
            book_service_url=os.environ.get(
                "LOANSERVICE_BOOK_SERVICE_URL", "http://localhost:8082"
            ).rstrip("/"),
            http_timeout=float(os.environ.get("LOANSERVICE_HTTP_TIMEOUT", "5")),
            log_level=os.environ.get("LOANSERVICE_LOG_LEVEL", "INFO").upper(),
            due_soon_days=int(os.environ.get("LOANSERVICE_DUE_SOON_DAYS", "3")),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.db_path != ":memory:":
            parent = Path(self.db_path).parent
            if not parent.exists():
                try:
                    parent.mkdir(parents=True, exist_ok=True)
                except PermissionError:
                    errors.append(f"Cannot create database directory: {parent}")

        for name, url in (
            ("LOANSERVICE_USER_SERVICE_URL", self.user_service_url),
            ("LOANSERVICE_BOOK_SERVICE_URL", self.book_service_url),
        ):
            if not url.startswith(("http://", "https://")):
                errors.append(f"{name} must be an http(s) URL, got: {url}")

        if self.http_timeout <= 0:
            errors.append("LOANSERVICE_HTTP_TIMEOUT must be positive")

        if self.due_soon_days < 0:
            errors.append("LOANSERVICE_DUE_SOON_DAYS must not be negative")

        if not isinstance(logging.getLevelName(self.log_level), int):
            errors.append(f"Unknown log level: {self.log_level}")

        return errors


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None

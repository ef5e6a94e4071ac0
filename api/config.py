"""
API configuration and settings management.
"""
import os

from shopscraper.config import config as scraper_config


class Config:
    """Application configuration."""

    # Database, shared with the scraper
    DB_PATH: str = scraper_config.DB_PATH

    # API settings
    API_TITLE: str = "Reddit Shop API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "REST API for the catalog scraped from community posts"

    # CORS settings
    CORS_ORIGINS: list = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["*"]
    CORS_ALLOW_HEADERS: list = ["*"]

    # Pagination defaults
    DEFAULT_API_LIMIT: int = 24
    MAX_API_LIMIT: int = 100

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str = os.getenv("API_LOG_FILE", "")

    def validate(self) -> None:
        """Validate configuration on startup."""
        if not self.DB_PATH:
            raise ValueError("Database path not configured")
        if self.DEFAULT_API_LIMIT > self.MAX_API_LIMIT:
            raise ValueError("DEFAULT_API_LIMIT exceeds MAX_API_LIMIT")


# Global config instance
config = Config()

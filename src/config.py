"""
Configuration settings for the application.
"""

import json
import logging
import os

from dotenv import load_dotenv

load_dotenv()

_UNSPLASH_URL = "https://images.unsplash.com/{}?auto=format&fit=crop&w=800&q=80"

_DEFAULT_CATEGORY_PLACEHOLDERS = {
    1: _UNSPLASH_URL.format("photo-1498049794561-7780e7231661"),
    2: _UNSPLASH_URL.format("photo-1556909114-f6e7ad7d3136"),
    3: _UNSPLASH_URL.format("photo-1445205170230-053b83016050"),
    4: _UNSPLASH_URL.format("photo-1489824904134-891ab64532f1"),
}


def _category_placeholders(raw: str | None) -> dict[int, str]:
    if not raw:
        return dict(_DEFAULT_CATEGORY_PLACEHOLDERS)
    return {int(key): str(url) for key, url in json.loads(raw).items()}


class Settings:
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # API gateway settings
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:8000/api")
    API_TIMEOUT_SECONDS: float = float(os.getenv("API_TIMEOUT_SECONDS", "10"))
    API_TOKEN: str | None = os.getenv("API_TOKEN")

    # Redis settings (client-persisted pending order marker)
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    PENDING_ORDER_KEY_PREFIX: str = os.getenv(
        "PENDING_ORDER_KEY_PREFIX",
        "checkout:pending-order:",
    )

    # Catalog settings
    CATALOG_PAGE_SIZE: int = int(os.getenv("CATALOG_PAGE_SIZE", "12"))
    CATALOG_PAGE_WINDOW: int = int(os.getenv("CATALOG_PAGE_WINDOW", "5"))
    CATALOG_PLACEHOLDER_IMAGE: str = os.getenv(
        "CATALOG_PLACEHOLDER_IMAGE",
        _UNSPLASH_URL.format("photo-1556656793-08538906a9f8"),
    )
    # JSON object mapping category id to image URL
    CATALOG_CATEGORY_PLACEHOLDER_IMAGES: dict[int, str] = _category_placeholders(
        os.getenv("CATALOG_CATEGORY_PLACEHOLDER_IMAGES")
    )

    # Payment polling settings
    PAYMENT_POLL_INTERVAL_SECONDS: float = float(
        os.getenv("PAYMENT_POLL_INTERVAL_SECONDS", "3")
    )
    PAYMENT_POLL_MAX_ATTEMPTS: int = int(os.getenv("PAYMENT_POLL_MAX_ATTEMPTS", "20"))
    PAYMENT_SUCCESS_REDIRECT_DELAY_SECONDS: float = float(
        os.getenv("PAYMENT_SUCCESS_REDIRECT_DELAY_SECONDS", "2")
    )
    PAYMENT_MISSING_ORDER_REDIRECT_DELAY_SECONDS: float = float(
        os.getenv("PAYMENT_MISSING_ORDER_REDIRECT_DELAY_SECONDS", "3")
    )
    PAYMENT_POLL_RETENTION_SECONDS: float = float(
        os.getenv("PAYMENT_POLL_RETENTION_SECONDS", "300")
    )

    @property
    def is_production(self) -> bool:
        """
        Check if running in production environment.
        """
        return self.ENVIRONMENT.lower() == "production"

    def __init__(self):
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        logging.basicConfig(level=self.log_level)
        self.logger = logging.getLogger(__name__)

        self.logger.debug(
            f"Config initialized with environment={self.ENVIRONMENT}, "
            f"log_level={self.log_level}"
        )


# Create a global settings instance for import
settings = Settings()

"""
API configuration settings.
"""

from typing import Dict, List

from pydantic_settings import BaseSettings, SettingsConfigDict


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Bookstore Inventory API"
    api_version: str = "1.0.0"
    api_description: str = "Book catalog with reservation-aware inventory management"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # API Key Settings
    admin_api_keys: str = ""  # Comma-separated list of admin keys
    user_api_keys: str = ""  # Comma-separated list of user keys

    # Pagination
    max_page_size: int = 100

    # CORS Settings
    cors_origins: list = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list = ["*"]
    cors_allow_headers: list = ["*"]

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    def role_by_key(self) -> Dict[str, str]:
        """Map every configured API key to its role. Admin wins on overlap."""
        roles: Dict[str, str] = {}
        for key in _split_keys(self.user_api_keys):
            roles[key] = "user"
        for key in _split_keys(self.admin_api_keys):
            roles[key] = "admin"
        return roles


def _split_keys(raw: str) -> List[str]:
    return [key.strip() for key in raw.split(",") if key.strip()]


# Global config instance
config = APIConfig()

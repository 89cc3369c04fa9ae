"""
Application settings loaded from environment variables.

Every setting can be overridden with an ``SHEET_MAPPER_`` prefixed variable,
e.g. ``SHEET_MAPPER_OUTPUT_PATH=/tmp/output.json``, or from a ``.env`` file.
"""
import os
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_prefix="SHEET_MAPPER_", env_file=".env", extra="ignore")

    # Directories and files
    upload_dir: str = os.path.join(BASE_DIR, "uploads")
    output_path: str = os.path.join(BASE_DIR, "output.json")
    log_dir: str = os.path.join(BASE_DIR, "logs")
    static_dir: str = os.path.join(BASE_DIR, "static")

    # Server
    host: str = "0.0.0.0"
    port: int = 3000

    # Processing defaults
    default_header_row_index: int = 0
    default_document_type: str = "price_list"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

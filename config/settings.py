import json
import os
from typing import Any, Dict

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve project root and absolute path to .env regardless of CWD
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
ENV_FILE = os.path.join(PROJECT_ROOT, ".env")


class Settings(BaseSettings):
    """
    Central configuration for filebrowse.

    Values are loaded from environment variables and optionally from a local .env file
    (not committed). Provider credentials come either from PROVIDERS_CONFIG_FILE, a JSON
    object keyed by provider key, or from the BOX_* variables for the common single-Box setup.
    """

    # Provider configuration
    PROVIDERS_CONFIG_FILE: str | None = None

    # Box OAuth (override via .env in real usage)
    BOX_CLIENT_ID: str | None = None
    BOX_CLIENT_SECRET: str | None = None
    BOX_REDIRECT_URI: str = "http://localhost:8000/browse/connect"

    # Retriever
    RETRIEVER_CHUNK_SIZE: int = 64 * 1024
    RETRIEVER_DOWNLOAD_DIR: str | None = None
    RETRIEVER_ENFORCE_EXPIRY: bool = False

    LOG_LEVEL: str = "INFO"

    # ignore unknown env keys so they don't raise ValidationError
    model_config = SettingsConfigDict(env_file=ENV_FILE, env_file_encoding="utf-8", extra="ignore")

    def providers_config(self) -> Dict[str, Dict[str, Any]]:
        if self.PROVIDERS_CONFIG_FILE:
            with open(self.PROVIDERS_CONFIG_FILE, "r", encoding="utf-8") as f:
                return json.load(f)
        if self.BOX_CLIENT_ID or self.BOX_CLIENT_SECRET:
            return {
                "box": {
                    "client_id": self.BOX_CLIENT_ID,
                    "client_secret": self.BOX_CLIENT_SECRET,
                    "redirect_uri": self.BOX_REDIRECT_URI,
                }
            }
        return {}


settings = Settings()

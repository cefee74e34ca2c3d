"""Configuration management for Raintree sync."""

import os
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from ..exceptions import ConfigurationError

DEFAULT_STORE_PATH = ".raintree_sync/mappings.json"


def setup_logging(level: str = "INFO") -> None:
    """Set up logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def load_environment(env_file: Optional[str] = None) -> None:
    """Load environment variables from .env file.

    Args:
        env_file: Path to .env file. If None, looks for .env in current directory.
    """
    env_path = Path(env_file) if env_file else Path('.env')

    if env_path.exists():
        load_dotenv(env_path)
        logging.info(f"Loaded environment from {env_path}")
    else:
        logging.warning(f"No .env file found at {env_path}")


def get_required_env(key: str) -> str:
    """Get a required environment variable.

    Raises:
        ConfigurationError: If the environment variable is not set
    """
    value = os.getenv(key)
    if not value:
        raise ConfigurationError(f"Required environment variable {key} is not set")
    return value


def get_optional_env(key: str, default: str = "") -> str:
    """Get an optional environment variable."""
    return os.getenv(key, default)


def _get_number_env(key: str, default, cast):
    raw = get_optional_env(key)
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"Environment variable {key} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"Environment variable {key} must be positive, got {raw!r}")
    return value


class SideCredentials(BaseModel):
    """Instance URL and access token for one Salesforce org."""
    instance_url: str
    access_token: str


class SyncSettings(BaseModel):
    """Runtime settings, normally read from the environment."""
    api_version: str = "v58.0"
    max_workers: int = Field(8, gt=0)
    request_timeout: float = Field(30.0, gt=0)
    mapping_store: str = "file"
    mapping_store_path: str = DEFAULT_STORE_PATH
    google_cloud_project: Optional[str] = None

    @classmethod
    def from_env(cls) -> "SyncSettings":
        """Build settings from environment variables.

        Raises:
            ConfigurationError: If a numeric setting is not a positive number
        """
        store = get_optional_env("MAPPING_STORE", "file").lower()
        if store not in ("file", "firestore"):
            raise ConfigurationError(f"MAPPING_STORE must be 'file' or 'firestore', got {store!r}")

        return cls(
            api_version=get_optional_env("SALESFORCE_API_VERSION", "v58.0"),
            max_workers=_get_number_env("SYNC_MAX_WORKERS", 8, int),
            request_timeout=_get_number_env("SYNC_REQUEST_TIMEOUT", 30.0, float),
            mapping_store=store,
            mapping_store_path=get_optional_env("MAPPING_STORE_PATH", DEFAULT_STORE_PATH),
            google_cloud_project=get_optional_env("GOOGLE_CLOUD_PROJECT") or None,
        )

    @staticmethod
    def credentials_for(side: str) -> SideCredentials:
        """Read the org credentials for "partner" or "raintree".

        Raises:
            ConfigurationError: If the instance URL or access token is missing
        """
        prefix = side.upper()
        return SideCredentials(
            instance_url=get_required_env(f"{prefix}_SALESFORCE_INSTANCE_URL"),
            access_token=get_required_env(f"{prefix}_SALESFORCE_ACCESS_TOKEN"),
        )

import json
from pathlib import Path
from typing import Dict, Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from gifguard.const import (
    CONFIG_FILE_NAME,
    DECISION_CACHE_MAX_SIZE,
    DEFAULT_LOG_LEVEL,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    DEFAULT_STORE_PATH,
    FINGERPRINT_CACHE_MAX_SIZE,
    LIBRARY_LOG_LEVELS,
    MATCH_THRESHOLD,
    PERSIST_DEBOUNCE,
    REQUEST_TIMEOUT,
    RESOURCE_IDLE_TIMEOUT,
    RESOURCE_INIT_GRACE,
    THUMBNAIL_DOWNLOAD_TIMEOUT,
    THUMBNAIL_MAX_BYTES,
)
from .exceptions import ConfigurationError


class Config(BaseSettings):
    """Global configuration settings for gifguard."""

    server_host: str = DEFAULT_SERVER_HOST
    server_port: int = DEFAULT_SERVER_PORT
    store_path: Path = Path(DEFAULT_STORE_PATH)
    log_level: str = DEFAULT_LOG_LEVEL
    library_log_levels: Dict[str, str] = dict(LIBRARY_LOG_LEVELS)

    fingerprint_cache_max_size: int = Field(default=FINGERPRINT_CACHE_MAX_SIZE, ge=1)
    decision_cache_max_size: int = Field(default=DECISION_CACHE_MAX_SIZE, ge=1)
    match_threshold: int = Field(default=MATCH_THRESHOLD, ge=0)

    resource_idle_timeout: float = Field(default=RESOURCE_IDLE_TIMEOUT, gt=0)
    request_timeout: float = Field(default=REQUEST_TIMEOUT, gt=0)
    resource_init_grace: float = Field(default=RESOURCE_INIT_GRACE, ge=0)
    persist_debounce: float = Field(default=PERSIST_DEBOUNCE, ge=0)

    thumbnail_download_timeout: float = Field(default=THUMBNAIL_DOWNLOAD_TIMEOUT, gt=0)
    thumbnail_max_bytes: int = Field(default=THUMBNAIL_MAX_BYTES, ge=1)

    model_config = SettingsConfigDict(
        env_prefix='GIFGUARD_',
    )

    @classmethod
    def load_config_from_json(cls) -> Dict[str, Any]:
        """Load configuration from config.json file."""
        config_path = Path(CONFIG_FILE_NAME)
        if config_path.exists():
            with open(config_path, 'r') as f:
                try:
                    config = json.load(f)
                except json.JSONDecodeError as e:
                    raise ConfigurationError(
                        f"Invalid JSON in {CONFIG_FILE_NAME}: {e}", config_key=CONFIG_FILE_NAME, cause=e
                    ) from e
                if not isinstance(config, dict):
                    raise ConfigurationError(
                        f"{CONFIG_FILE_NAME} must contain a JSON object", config_key=CONFIG_FILE_NAME
                    )
                if "store_path" in config:
                    config["store_path"] = Path(config["store_path"])
                return config
        return {}

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """
        Customise the sources for settings.

        Order of precedence (highest to lowest):
        1. Environment variables
        2. Init settings (kwargs passed to constructor)
        3. JSON config file
        4. Default values
        """
        def json_source():
            return cls.load_config_from_json()

        return (
            env_settings,
            init_settings,
            json_source,
        )

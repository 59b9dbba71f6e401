"""Configuration management with YAML and environment variable support"""

import os
from typing import Any, Dict, List, Optional, Tuple, Type

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class BaseConfigSection(BaseSettings):
    """Base class for all config sections with correct environment variable precedence.

    This class customizes the settings source priority to ensure that:
    1. Environment variables have highest priority
    2. Init kwargs (YAML data) have second priority
    3. Default values have lowest priority
    """

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings source priority: env vars > init kwargs > defaults."""
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)


class ServerConfig(BaseConfigSection):
    """Server configuration"""

    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: List[str] = ["*"]
    job_ttl_hours: int = 24

    model_config = SettingsConfigDict(env_prefix="CLIPPER_SERVER_")


class ToolsConfig(BaseConfigSection):
    """External tool locations.

    When a path is not set the tool is looked up on PATH at startup.
    """

    ffmpeg_path: Optional[str] = None
    ytdlp_path: Optional[str] = None

    model_config = SettingsConfigDict(env_prefix="CLIPPER_TOOLS_")


class TimeoutsConfig(BaseConfigSection):
    """Operation timeout configuration"""

    metadata: int = 30  # seconds

    model_config = SettingsConfigDict(env_prefix="CLIPPER_TIMEOUTS_")


class StorageConfig(BaseConfigSection):
    """Session temp directory configuration"""

    temp_root: Optional[str] = None  # system temp dir when unset
    temp_prefix: str = "clipper-"

    model_config = SettingsConfigDict(env_prefix="CLIPPER_STORAGE_")


class FetchConfig(BaseConfigSection):
    """Stream fetch configuration"""

    chunk_size: int = 256 * 1024
    connect_timeout: float = 15.0
    read_timeout: float = 60.0

    model_config = SettingsConfigDict(env_prefix="CLIPPER_FETCH_")

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("chunk_size must be positive")
        return v


class ExportConfig(BaseConfigSection):
    """Clip export configuration"""

    default_quality: str = "original"

    model_config = SettingsConfigDict(env_prefix="CLIPPER_EXPORT_")


class LoggingConfig(BaseConfigSection):
    """Logging configuration"""

    level: str = "INFO"
    format: str = "json"

    model_config = SettingsConfigDict(env_prefix="CLIPPER_LOGGING_")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}")
        return v_upper


class MonitoringConfig(BaseConfigSection):
    """Monitoring configuration"""

    metrics_enabled: bool = True

    model_config = SettingsConfigDict(env_prefix="CLIPPER_MONITORING_")


class Config(BaseSettings):
    """Main application configuration"""

    server: ServerConfig = Field(default_factory=ServerConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="CLIPPER_")


class ConfigService:
    """Service for loading and managing configuration"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or os.environ.get("CLIPPER_CONFIG", "config.yaml")
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Load configuration from YAML file with environment variable overrides."""
        config_data: Dict[str, Any] = {}

        if os.path.exists(self.config_path):
            with open(self.config_path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f)
                if yaml_data:
                    config_data = yaml_data

        self._config = Config(
            server=ServerConfig(**config_data.get("server", {})),
            tools=ToolsConfig(**config_data.get("tools", {})),
            timeouts=TimeoutsConfig(**config_data.get("timeouts", {})),
            storage=StorageConfig(**config_data.get("storage", {})),
            fetch=FetchConfig(**config_data.get("fetch", {})),
            export=ExportConfig(**config_data.get("export", {})),
            logging=LoggingConfig(**config_data.get("logging", {})),
            monitoring=MonitoringConfig(**config_data.get("monitoring", {})),
        )

        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration"""
        if self._config is None:
            raise ValueError("Configuration not loaded. Call load() first.")
        return self._config

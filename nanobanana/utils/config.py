import os
import sys
from typing import Literal

from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

CONFIG_PATH = "config/config.yaml"
DEFAULT_API_BASE_URL = "https://newapi.aicohere.org/v1/chat/completions"
DEFAULT_MODEL = "gemini-2.5-flash-image-preview"

SizeHintChannel = Literal["image_options", "parameters", "prompt"]


class HTTPSConfig(BaseModel):
    """HTTPS configuration"""

    enabled: bool = Field(default=False, description="Enable HTTPS")
    key_file: str = Field(default="certs/privkey.pem", description="SSL private key file path")
    cert_file: str = Field(default="certs/fullchain.pem", description="SSL certificate file path")


class ServerConfig(BaseModel):
    """Server configuration"""

    host: str = Field(default="0.0.0.0", description="Server host address")
    port: int = Field(default=3000, ge=1, le=65535, description="Server port number")
    https: HTTPSConfig = Field(default=HTTPSConfig(), description="HTTPS configuration")


class BackendConfig(BaseModel):
    """Upstream chat-completion backend configuration"""

    api_base_url: str | None = Field(
        default=None,
        description="Chat completions endpoint, falls back to API_BASE_URL then the default",
    )
    api_key: str | None = Field(
        default=None,
        description="Default API key for web UI routes, falls back to OPENROUTER_API_KEY",
    )
    default_model: str = Field(default=DEFAULT_MODEL, description="Model used when none is given")
    timeout: float = Field(default=60.0, gt=0, description="Outbound request timeout in seconds")
    temperature: float = Field(default=0.3, ge=0, le=2)
    max_tokens: int = Field(default=1024, ge=1)
    top_p: float = Field(default=0.8, ge=0, le=1)
    referer: str = Field(default="http://localhost:3000", description="HTTP-Referer header")
    title: str = Field(default="Nano Banana", description="X-Title header")
    size_hint_channels: list[SizeHintChannel] = Field(
        default=["image_options", "parameters", "prompt"],
        description="Where an output size hint is embedded in the backend request",
    )

    @field_validator("api_base_url", "api_key", mode="before")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        return stripped or None

    def resolve_base_url(self, override: str | None = None) -> str:
        """Pick the request override, then the configured URL, then the default."""
        if override and override.strip():
            return override.strip()
        return self.api_base_url or DEFAULT_API_BASE_URL


class CacheConfig(BaseModel):
    """Result cache configuration"""

    enabled: bool = Field(
        default=True,
        description="Replay identical requests from memory; disable to always hit the backend",
    )
    ttl: float = Field(default=600, gt=0, description="Entry lifetime in seconds")
    sweep_interval: float = Field(
        default=60, gt=0, description="Seconds between expired-entry sweeps"
    )
    max_entries: int = Field(default=100, ge=1, description="Maximum number of cached results")
    key_includes_size: bool = Field(
        default=True, description="Include the output size hint in the cache key"
    )


class ResizeConfig(BaseModel):
    """Best-effort resize configuration"""

    download_timeout: float = Field(default=30.0, gt=0)
    user_agent: str = Field(
        default="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    )


class StreamConfig(BaseModel):
    """Streaming response configuration"""

    char_delay: float = Field(
        default=0.002, ge=0, description="Pause between streamed characters in seconds"
    )


class StaticConfig(BaseModel):
    """Static web UI configuration"""

    root: str = Field(default="static", description="Directory holding the web UI files")


class CORSConfig(BaseModel):
    """CORS configuration"""

    enabled: bool = Field(default=True, description="Enable CORS support")
    allow_origins: list[str] = Field(
        default=["*"], description="List of allowed origins for CORS requests"
    )
    allow_credentials: bool = Field(default=False, description="Allow credentials in CORS requests")
    allow_methods: list[str] = Field(
        default=["POST", "GET", "OPTIONS"],
        description="List of allowed HTTP methods for CORS requests",
    )
    allow_headers: list[str] = Field(
        default=["Content-Type", "Authorization", "x-goog-api-key"],
        description="List of allowed headers for CORS requests",
    )


class LoggingConfig(BaseModel):
    """Logging configuration"""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )


class Config(BaseSettings):
    """Application configuration"""

    # Server configuration
    server: ServerConfig = Field(
        default=ServerConfig(),
        description="Server configuration, including host and port",
    )

    # CORS configuration
    cors: CORSConfig = Field(
        default=CORSConfig(),
        description="CORS configuration, allows cross-origin requests",
    )

    backend: BackendConfig = Field(
        default=BackendConfig(),
        description="Upstream backend configuration",
    )

    cache: CacheConfig = Field(default=CacheConfig(), description="Result cache configuration")

    resize: ResizeConfig = Field(default=ResizeConfig(), description="Resize configuration")

    stream: StreamConfig = Field(default=StreamConfig(), description="Streaming configuration")

    static: StaticConfig = Field(default=StaticConfig(), description="Static files configuration")

    # Logging configuration
    logging: LoggingConfig = Field(
        default=LoggingConfig(),
        description="Logging configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="CONFIG_",
        env_nested_delimiter="__",
        nested_model_default_partial_update=True,
        yaml_file=os.getenv("CONFIG_PATH", CONFIG_PATH),
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Read settings: init -> env -> yaml -> default"""
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls),
        )


def _apply_legacy_env(config: Config) -> Config:
    """Fill backend URL and key from the plain API_BASE_URL / OPENROUTER_API_KEY variables."""
    updates: dict[str, str] = {}
    if not config.backend.api_base_url:
        env_url = os.getenv("API_BASE_URL", "").strip()
        if env_url:
            updates["api_base_url"] = env_url
    if not config.backend.api_key:
        env_key = os.getenv("OPENROUTER_API_KEY", "").strip()
        if env_key:
            updates["api_key"] = env_key

    if updates:
        logger.debug(f"Applied legacy environment overrides: {', '.join(sorted(updates))}")
        config.backend = config.backend.model_copy(update=updates)
    return config


def initialize_config() -> Config:
    """
    Initialize the configuration.

    Returns:
        Config: Configuration object
    """
    try:
        config = Config()  # type: ignore
        return _apply_legacy_env(config)
    except ValidationError as e:
        logger.error(f"Configuration validation failed: {e!s}")
        sys.exit(1)

"""
Configuration management.

Uses Pydantic Settings for environment variable handling and validation.
An optional config.yaml provides defaults; environment variables win.
"""

import os
import yaml
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


def load_config_file(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if config_path is None:
        possible_paths = [
            "config.yaml",  # Current directory
            "../../config.yaml",  # Project root from src/alerthook
        ]

        for path in possible_paths:
            if os.path.exists(path):
                config_path = path
                break
        else:
            return {}

    if os.path.exists(config_path):
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
            return config_data
    return {}


def parse_allow_list(raw: str) -> Tuple[str, ...]:
    """Split a comma-separated allow-list, dropping blanks."""
    return tuple(item.strip() for item in raw.split(",") if item.strip())


class SecuritySettings(BaseSettings):
    """Admission control configuration."""

    rate_limit: int = Field(default=60, gt=0, description="Requests per client per window")
    rate_limit_window_seconds: int = Field(default=60, gt=0, description="Fixed rate-limit window length")
    rate_limit_warn_ratio: float = Field(default=0.8, gt=0, le=1, description="Usage ratio that triggers a warning")
    allowed_ips: str = Field(default="", description="Comma-separated IP allow-list (empty allows all)")
    auth_token: str = Field(default="", description="Expected bearer token (empty disables auth)")
    trust_proxy_headers: bool = Field(default=False, description="Resolve client from X-Forwarded-For")

    @field_validator("allowed_ips", mode="before")
    def join_allowed_ips(cls, v: Any) -> str:
        """Accept a YAML list as well as the comma-separated form."""
        if isinstance(v, (list, tuple)):
            return ",".join(str(item) for item in v)
        return v

    @property
    def allow_list(self) -> Tuple[str, ...]:
        """Parsed allow-list entries."""
        return parse_allow_list(self.allowed_ips)

    class Config:
        env_prefix = "ALERTHOOK_SECURITY_"


class ValidationSettings(BaseSettings):
    """Request validation configuration."""

    max_body_bytes: int = Field(default=102400, gt=0, description="Maximum request body size (100KB)")

    class Config:
        env_prefix = "ALERTHOOK_VALIDATION_"


class SoundSettings(BaseSettings):
    """Sound playback on firing alerts."""

    enabled: bool = Field(default=True, description="Play a sound when a firing alert arrives")
    name: str = Field(default="Glass", description="Sound file name without extension")
    volume: float = Field(default=1.0, ge=0, le=2, description="Playback volume")
    command: str = Field(default="afplay", description="Player executable")
    directory: str = Field(default="/System/Library/Sounds", description="Directory holding sound files")
    extension: str = Field(default="aiff", description="Sound file extension")
    max_concurrent: int = Field(default=2, gt=0, description="Maximum plays in flight")

    @property
    def sound_path(self) -> str:
        """Full path of the configured sound file."""
        return os.path.join(self.directory, f"{self.name}.{self.extension}")

    def build_command(self) -> List[str]:
        """Argument vector for the player process."""
        return [self.command, "-v", str(self.volume), self.sound_path]

    class Config:
        env_prefix = "ALERTHOOK_SOUND_"


class Settings(BaseSettings):
    """Main application settings."""

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=9999, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Log level")

    # Component settings
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    sound: SoundSettings = Field(default_factory=SoundSettings)

    class Config:
        env_prefix = "ALERTHOOK_"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance with config file and env support."""
    config_data = load_config_file()

    # Config file provides defaults, env vars override
    if config_data:
        _set_env_from_config(config_data)

    return Settings()


def _set_env_from_config(config_data: Dict[str, Any]) -> None:
    """Set environment variables from config file if not already set."""
    mappings = {
        ("server", "host"): "ALERTHOOK_HOST",
        ("server", "port"): "ALERTHOOK_PORT",
        ("server", "debug"): "ALERTHOOK_DEBUG",
        ("server", "log_level"): "ALERTHOOK_LOG_LEVEL",
        ("security", "rate_limit"): "ALERTHOOK_SECURITY_RATE_LIMIT",
        ("security", "rate_limit_window_seconds"): "ALERTHOOK_SECURITY_RATE_LIMIT_WINDOW_SECONDS",
        ("security", "rate_limit_warn_ratio"): "ALERTHOOK_SECURITY_RATE_LIMIT_WARN_RATIO",
        ("security", "auth_token"): "ALERTHOOK_SECURITY_AUTH_TOKEN",
        ("security", "trust_proxy_headers"): "ALERTHOOK_SECURITY_TRUST_PROXY_HEADERS",
        ("validation", "max_body_bytes"): "ALERTHOOK_VALIDATION_MAX_BODY_BYTES",
        ("sound", "enabled"): "ALERTHOOK_SOUND_ENABLED",
        ("sound", "name"): "ALERTHOOK_SOUND_NAME",
        ("sound", "volume"): "ALERTHOOK_SOUND_VOLUME",
        ("sound", "command"): "ALERTHOOK_SOUND_COMMAND",
        ("sound", "directory"): "ALERTHOOK_SOUND_DIRECTORY",
        ("sound", "extension"): "ALERTHOOK_SOUND_EXTENSION",
        ("sound", "max_concurrent"): "ALERTHOOK_SOUND_MAX_CONCURRENT",
    }

    for (section, key), env_var in mappings.items():
        if env_var not in os.environ:
            value = (config_data.get(section) or {}).get(key)
            if value is not None:
                os.environ[env_var] = str(value)

    # Allow-list may be written as a YAML list
    if "ALERTHOOK_SECURITY_ALLOWED_IPS" not in os.environ:
        allowed_ips = (config_data.get("security") or {}).get("allowed_ips")
        if allowed_ips:
            if isinstance(allowed_ips, list):
                allowed_ips = ",".join(str(ip) for ip in allowed_ips)
            os.environ["ALERTHOOK_SECURITY_ALLOWED_IPS"] = str(allowed_ips)


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()

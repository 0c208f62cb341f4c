"""
Configuration loader for Womptron.

This module provides Pydantic models for strong validation of settings
and a loader function that merges an optional YAML configuration file with
environment variables.

Design Principles:
- Strict Schema: All settings are defined in Pydantic models to ensure type
  safety and validate constraints (e.g., positive intervals, URL shapes).
- Environment Overrides: Any setting can be overridden by an environment
  variable following the nested structure, e.g. `publisher.consumer_key`
  can be overridden by `WOMPTRON_PUBLISHER__CONSUMER_KEY`. The flat names
  used by earlier deployments (`TWITTER_CONSUMER_KEY`,
  `WOMPTRON_INTERVAL`, `DEBUG`, `LOG_LEVEL`, ...) are still honoured.
- Fail Fast: Missing publisher credentials abort startup with a
  `ConfigError` before any loop is started.
"""

import os
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

DEFAULT_SETTINGS_PATH = "settings.yaml"
ENV_PREFIX = "WOMPTRON"

# Flat environment names from earlier deployments -> nested setting paths.
LEGACY_ENV_KEYS: Dict[str, List[tuple]] = {
    "TWITTER_CONSUMER_KEY": [("publisher", "consumer_key")],
    "TWITTER_CONSUMER_SECRET": [("publisher", "consumer_secret")],
    "TWITTER_ACCESS_TOKEN": [("publisher", "access_token")],
    "TWITTER_ACCESS_TOKEN_SECRET": [("publisher", "access_token_secret")],
    "WOMPTRON_INTERVAL": [("poll", "interval_seconds"), ("poll", "recency_window_seconds")],
    "DEBUG": [("feed", "debug")],
    "LOG_LEVEL": [("logging", "level")],
}

# Flat names that are on whenever set, unless set to 0/false.
_TRUTHY_KEYS = {"DEBUG"}

# Values that must never be JSON-decoded (tokens may look like numbers).
_STRING_KEYS = {"consumer_key", "consumer_secret", "access_token", "access_token_secret", "url"}

# --- Custom Exceptions ---

class ConfigError(Exception):
    """Custom exception for configuration-related errors."""
    pass

# --- Pydantic Models for Configuration Sections ---

class FeedSettings(BaseModel):
    """Where and how the womp feed is fetched."""
    url: str = "https://voxels.com/api/womps.json"
    timeout_seconds: float = Field(10.0, gt=0)
    debug: bool = False
    cache_bust: bool = True

    @field_validator("url")
    def url_must_be_http(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"feed url must be an http(s) URL, got '{v}'")
        return v

class PollSettings(BaseModel):
    """Poll Loop cadence and the recency window applied to each batch."""
    interval_seconds: float = Field(60.0, gt=0)
    recency_window_seconds: float = Field(60.0, gt=0)

class DrainSettings(BaseModel):
    """Drain Loop pacing."""
    delay_ms: int = Field(2000, ge=0)
    shutdown_grace_seconds: float = Field(10.0, ge=0)

class NormalizeSettings(BaseModel):
    """Feed record -> Womp transformation parameters."""
    max_content_length: int = Field(140, gt=1)
    ellipsis: str = "…"
    permalink_template: str = "https://voxels.com/play?coords={coords}"
    banned_authors: List[str] = Field(default_factory=list)

    @field_validator("permalink_template")
    def template_needs_coords(cls, v):
        if "{coords}" not in v:
            raise ValueError("permalink_template must contain a '{coords}' placeholder")
        try:
            v.format(coords="x")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"permalink_template may only use the '{{coords}}' placeholder: {e!r}") from e
        return v

    @model_validator(mode="after")
    def length_fits_ellipsis(self):
        if self.max_content_length <= len(self.ellipsis):
            raise ValueError(
                f"max_content_length ({self.max_content_length}) must exceed "
                f"the ellipsis length ({len(self.ellipsis)})"
            )
        return self

class PublisherSettings(BaseModel):
    """Credentials for the social-media API."""
    consumer_key: Optional[str] = None
    consumer_secret: Optional[str] = None
    access_token: Optional[str] = None
    access_token_secret: Optional[str] = None
    dry_run: bool = False

    @model_validator(mode="after")
    def credentials_required(self):
        if self.dry_run:
            return self
        missing = [
            name for name in ("consumer_key", "consumer_secret", "access_token", "access_token_secret")
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(
                "missing publisher credentials: " + ", ".join(missing)
                + " (set TWITTER_* or WOMPTRON_PUBLISHER__* environment variables)"
            )
        return self

class LoggingSettings(BaseModel):
    """Settings for logging configuration."""
    level: str = Field("INFO", description="The logging level, e.g., DEBUG, INFO, WARNING.")

    @field_validator("level")
    def level_upper(cls, v):
        v = str(v).upper()
        if v not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "WARN", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level '{v}'")
        return "WARNING" if v == "WARN" else v


class Settings(BaseModel):
    """The root Pydantic model for the entire configuration."""
    feed: FeedSettings = FeedSettings()
    poll: PollSettings = PollSettings()
    drain: DrainSettings = DrainSettings()
    normalize: NormalizeSettings = NormalizeSettings()
    publisher: PublisherSettings
    logging: LoggingSettings = LoggingSettings()

# --- Helper Functions ---

def _load_config_from_yaml(path: Path) -> Dict[str, Any]:
    """Loads the YAML configuration file."""
    if not path.is_file():
        raise ConfigError(f"Configuration file not found at: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML file at {path}: {e}") from e

def _parse_env_value(key: str, value: str) -> Any:
    if key in _STRING_KEYS:
        return value
    # lists, dicts, booleans, numbers
    if (value.startswith('[') and value.endswith(']')) or \
       (value.startswith('{') and value.endswith('}')) or \
       value.lower() in ['true', 'false', 'null'] or \
       value.replace('.', '', 1).isdigit():
        try:
            return json.loads(value.lower() if value.lower() in ['true', 'false', 'null'] else value)
        except (json.JSONDecodeError, AttributeError):
            return value
    return value

def _set_path(d: Dict[str, Any], parts, value: Any) -> None:
    for part in parts[:-1]:
        d = d.setdefault(part, {})
    d[parts[-1]] = value

def _get_env_overrides(prefix: str = ENV_PREFIX, environ=None) -> Dict[str, Any]:
    """
    Parses environment variables and converts them into a nested dict.
    e.g., WOMPTRON_PUBLISHER__CONSUMER_KEY becomes
    {'publisher': {'consumer_key': '...'}}

    Legacy flat names are applied first so the prefixed form wins when both
    are set.
    """
    environ = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}
    for key, paths in LEGACY_ENV_KEYS.items():
        value = environ.get(key)
        if value is None or value == "":
            continue
        for path in paths:
            if key in _TRUTHY_KEYS:
                parsed = value.strip().lower() not in ("0", "false")
            else:
                parsed = _parse_env_value(path[-1], value)
            _set_path(overrides, path, parsed)

    for key, value in environ.items():
        if not key.startswith(prefix + "_") or key in LEGACY_ENV_KEYS:
            continue
        parts = key.removeprefix(prefix).strip("_").lower().split("__")
        if len(parts) < 2:
            continue
        _set_path(overrides, parts, _parse_env_value(parts[-1], value))
    return overrides

def _merge_configs(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merges the override dict into the base dict.
    Overwrites values, dictionaries, and lists.
    """
    for key, value in overrides.items():
        if isinstance(value, dict) and key in base and isinstance(base[key], dict):
            base[key] = _merge_configs(base[key], value)
        else:
            base[key] = value
    return base

# --- Public API ---

def load_settings(path: Optional[str] = None, environ=None,
                  overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """
    Loads, validates, and returns the application settings.

    1. Loads the base configuration from the YAML file. Without an explicit
       `path`, `settings.yaml` is used when present and the environment alone
       otherwise.
    2. Scans environment variables for overrides.
    3. Merges the environment overrides (then `overrides`, e.g. CLI flags)
       into the base configuration.
    4. Validates the final configuration against the `Settings` model.

    Raises:
        ConfigError: If an explicit file is missing or unparsable, or if
                     validation fails (including missing credentials).
    """
    if path is not None:
        logger.info(f"Loading settings from '{path}'...")
        yaml_config = _load_config_from_yaml(Path(path))
    elif Path(DEFAULT_SETTINGS_PATH).is_file():
        logger.info(f"Loading settings from '{DEFAULT_SETTINGS_PATH}'...")
        yaml_config = _load_config_from_yaml(Path(DEFAULT_SETTINGS_PATH))
    else:
        logger.info("No settings file found; configuring from environment only.")
        yaml_config = {}

    if not isinstance(yaml_config, dict):
        raise ConfigError(f"Settings file must contain a mapping, got {type(yaml_config).__name__}")

    final_config = _merge_configs(yaml_config, _get_env_overrides(environ=environ))
    if overrides:
        final_config = _merge_configs(final_config, overrides)
    final_config.setdefault("publisher", {})

    try:
        settings = Settings.model_validate(final_config)
        logger.success("Settings loaded and validated successfully.")
        return settings
    except ValidationError as e:
        error_details = e.errors()
        error_msg = f"Configuration validation failed with {len(error_details)} error(s):\n"
        for error in error_details:
            loc = " -> ".join(map(str, error['loc'])) if error['loc'] else "root"
            error_msg += f"  - Location: {loc}\n    Message: {error['msg']}\n"

        logger.error(error_msg)
        raise ConfigError(error_msg.strip()) from e

"""Configuration management for streamtranslate."""

import os
from typing import Any

import httpx
import yaml
from dotenv import load_dotenv

from streamtranslate import __version__

CONFIG_ENV_VAR = "STREAMTRANSLATE_CONFIG"

HTTP_PROFILES = ("streaming", "translation", "recognition")
TIMEOUT_KEYS = ("connect_timeout", "read_timeout", "write_timeout", "pool_timeout")

# Environment variables that override the stored custom AI settings
AI_OVERRIDE_ENV = {
    "base_url": "STREAMTRANSLATE_BASE_URL",
    "api_key": "STREAMTRANSLATE_API_KEY",
    "model": "STREAMTRANSLATE_MODEL",
    "multi_modal_model": "STREAMTRANSLATE_MULTIMODAL_MODEL",
}


class Configuration:
    """Manages configuration and environment variables for streamtranslate."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables.

        Args:
            config_path: YAML file to read. Falls back to the
                ``STREAMTRANSLATE_CONFIG`` environment variable, then to the
                ``config.yaml`` shipped with the package.
        """
        self.load_env()
        self.config_path = (
            config_path
            or os.getenv(CONFIG_ENV_VAR)
            or os.path.join(os.path.dirname(__file__), "config.yaml")
        )
        self._config = self._load_yaml_config(self.config_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    @staticmethod
    def _load_yaml_config(config_path: str) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(config_path, encoding="utf-8") as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary."""
        return self._config

    def get_builtin_config(self) -> dict[str, str]:
        """Get built-in endpoint URLs.

        Returns:
            Dictionary with ``translation_url``, ``ocr_url`` and ``asr_url``.

        Raises:
            ValueError: If a URL is missing or blank.
        """
        builtin_config = self._config.get("builtin", {})

        required_keys = ["translation_url", "ocr_url", "asr_url"]
        for key in required_keys:
            value = builtin_config.get(key)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(
                    f"builtin.{key} must be explicitly configured in config.yaml"
                )

        return {key: builtin_config[key].strip() for key in required_keys}

    def get_http_config(self, profile: str) -> dict[str, float]:
        """Get timeout settings for one HTTP profile.

        Args:
            profile: One of ``streaming``, ``translation``, ``recognition``.

        Returns:
            Timeout values in seconds keyed by ``TIMEOUT_KEYS``.

        Raises:
            ValueError: If the profile is unknown or a timeout is missing or
                not positive.
        """
        if profile not in HTTP_PROFILES:
            raise ValueError(
                f"Unknown HTTP profile '{profile}', expected one of {HTTP_PROFILES}"
            )

        profile_config = self._config.get("http", {}).get(profile, {})
        for key in TIMEOUT_KEYS:
            if key not in profile_config:
                raise ValueError(
                    f"http.{profile}.{key} must be explicitly configured "
                    "in config.yaml"
                )
            value = profile_config[key]
            if isinstance(value, bool) or not isinstance(value, int | float):
                raise ValueError(f"http.{profile}.{key} must be a number")
            if value <= 0:
                raise ValueError(f"http.{profile}.{key} must be positive")

        return {key: float(profile_config[key]) for key in TIMEOUT_KEYS}

    def get_timeout(self, profile: str) -> httpx.Timeout:
        """Build an httpx.Timeout for one HTTP profile."""
        values = self.get_http_config(profile)
        return httpx.Timeout(
            connect=values["connect_timeout"],
            read=values["read_timeout"],
            write=values["write_timeout"],
            pool=values["pool_timeout"],
        )

    def get_user_agent(self) -> str:
        """User-Agent sent with streaming requests, with the package version."""
        name = self._config.get("http", {}).get("user_agent") or "streamtranslate"
        return f"{name}/{__version__}"

    def get_store_config(self) -> dict[str, Any]:
        """Get document store configuration.

        Returns:
            Dictionary with an expanded ``path``, ``lock_timeout`` and ``fsync``.

        Raises:
            ValueError: If required store parameters are missing or invalid.
        """
        store_config = self._config.get("store", {})

        required_keys = ["path", "lock_timeout", "fsync"]
        for key in required_keys:
            if key not in store_config:
                raise ValueError(
                    f"store.{key} must be explicitly configured in config.yaml"
                )

        if store_config["lock_timeout"] <= 0:
            raise ValueError("store.lock_timeout must be positive")

        return {
            "path": os.path.expanduser(str(store_config["path"])),
            "lock_timeout": float(store_config["lock_timeout"]),
            "fsync": bool(store_config["fsync"]),
        }

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML.

        Returns:
            Dictionary with ``level`` and ``json``.
        """
        logging_config = self._config.get("logging", {})
        return {
            "level": str(logging_config.get("level", "WARNING")),
            "json": bool(logging_config.get("json", False)),
        }

    @staticmethod
    def get_ai_overrides() -> dict[str, str]:
        """Custom AI settings supplied through the environment.

        Returns:
            Only the fields whose environment variable is set and non-blank.
        """
        overrides = {}
        for field, env_key in AI_OVERRIDE_ENV.items():
            value = os.getenv(env_key)
            if value and value.strip():
                overrides[field] = value.strip()
        return overrides

"""
Configuration loader for BNS section search.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from ..core.exceptions import ConfigError


logger = logging.getLogger(__name__)

SUPPORTED_BACKENDS = ("sqlite", "sqlserver")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge `override` into a copy of `base`."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class SearchConfig:
    """
    Configuration for the search service.

    Loads an optional YAML file over built-in defaults, then applies
    environment variable overrides (a local `.env` is read first).
    """

    def __init__(self, config_path: Optional[Path] = None, load_env_file: bool = True):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (optional)
            load_env_file: Whether to read a `.env` file into the environment
        """
        if load_env_file:
            load_dotenv()

        self.config_path = Path(config_path) if config_path else None
        self.config = _deep_merge(self._default_config(), self._load_config())
        self._apply_env_overrides()
        self._validate()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if self.config_path is None:
            return {}

        if not self.config_path.exists():
            raise ConfigError(f"Config file not found: {self.config_path}")

        logger.info(f"Loading config from: {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self.config_path}: {e}")

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigError(f"Config file must contain a mapping: {self.config_path}")
        return config

    def _default_config(self) -> Dict[str, Any]:
        """Return default configuration."""
        return {
            "encoder": {
                "vocab_path": None,
                "pretrained": "bert-base-uncased",
                "revision": None,
                "lowercase": True,
                "max_length": 128,
            },
            "storage": {
                "backend": "sqlite",
                "sqlite": {
                    "path": "local/bns.db",
                    "timeout_seconds": 5.0,
                },
                "sqlserver": {
                    "connection_string": None,
                    "host": "localhost",
                    "port": 1433,
                    "database": "Bns",
                    "username": "sa",
                    "password": None,
                    "driver": "ODBC Driver 18 for SQL Server",
                    "schema": "bns",
                    "login_timeout_seconds": 10,
                    "query_timeout_seconds": 30,
                },
            },
            "corpus": {
                "path": None,
            },
            "search": {
                "top_k": 4,
                "backfill_timeout_seconds": None,
            },
            "logging": {
                "level": "INFO",
                "structured": False,
            },
            "api": {
                "host": "0.0.0.0",
                "port": 8080,
                "cors_origins": ["*"],
            },
        }

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        env = os.environ

        encoder = self.config["encoder"]
        if env.get("BNS_TOKENIZER_VOCAB"):
            encoder["vocab_path"] = env["BNS_TOKENIZER_VOCAB"]
        if env.get("BNS_TOKENIZER_PRETRAINED"):
            encoder["pretrained"] = env["BNS_TOKENIZER_PRETRAINED"]
        if env.get("BNS_MAX_LENGTH"):
            encoder["max_length"] = self._parse_int("BNS_MAX_LENGTH", env["BNS_MAX_LENGTH"])

        storage = self.config["storage"]
        if env.get("BNS_DB_BACKEND"):
            storage["backend"] = env["BNS_DB_BACKEND"].lower()
        if env.get("BNS_SQLITE_PATH"):
            storage["sqlite"]["path"] = env["BNS_SQLITE_PATH"]
        if env.get("BNS_SQLSERVER_CONN_STR"):
            storage["sqlserver"]["connection_string"] = env["BNS_SQLSERVER_CONN_STR"]
        if env.get("BNS_SQLSERVER_PASSWORD"):
            storage["sqlserver"]["password"] = env["BNS_SQLSERVER_PASSWORD"]

        if env.get("BNS_CORPUS_PATH"):
            self.config["corpus"]["path"] = env["BNS_CORPUS_PATH"]
        if env.get("BNS_TOP_K"):
            self.config["search"]["top_k"] = self._parse_int("BNS_TOP_K", env["BNS_TOP_K"])
        if env.get("BNS_LOG_LEVEL"):
            self.config["logging"]["level"] = env["BNS_LOG_LEVEL"]

    @staticmethod
    def _parse_int(name: str, value: str) -> int:
        try:
            return int(value)
        except ValueError:
            raise ConfigError(f"{name} must be an integer, got {value!r}")

    def _validate(self) -> None:
        """Reject values the service cannot run with."""
        max_length = self.config["encoder"].get("max_length")
        if not isinstance(max_length, int) or max_length <= 0:
            raise ConfigError(f"encoder.max_length must be a positive integer, got {max_length!r}")

        top_k = self.config["search"].get("top_k")
        if not isinstance(top_k, int) or top_k <= 0:
            raise ConfigError(f"search.top_k must be a positive integer, got {top_k!r}")

        backend = self.config["storage"].get("backend")
        if backend not in SUPPORTED_BACKENDS:
            raise ConfigError(
                f"Unknown storage backend: {backend}. "
                f"Supported backends: {', '.join(SUPPORTED_BACKENDS)}"
            )

    def get_encoder_config(self) -> Dict[str, Any]:
        """Get encoder configuration."""
        return self.config.get("encoder", {})

    def get_storage_config(self) -> Dict[str, Any]:
        """Get storage configuration."""
        return self.config.get("storage", {})

    def get_corpus_path(self) -> Optional[str]:
        """Get the corpus spreadsheet path, if configured."""
        return self.config.get("corpus", {}).get("path")

    def get_search_config(self) -> Dict[str, Any]:
        """Get search configuration."""
        return self.config.get("search", {})

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.config.get("logging", {})

    def get_api_config(self) -> Dict[str, Any]:
        """Get HTTP API configuration."""
        return self.config.get("api", {})

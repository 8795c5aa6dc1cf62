"""Configuration loader for DocChat.

This module provides the ConfigLoader class for loading, parsing, and
validating DocChat configuration from YAML files.

Configuration priority (highest to lowest):
1. Values in the YAML file (after ``${VAR}`` substitution)
2. Environment variables (DOCCHAT_* vars, ``.env`` files included)
3. Built-in defaults
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from docchat.config.env_loader import load_env_file, substitute_env_vars
from docchat.config.validator import flatten_pydantic_errors
from docchat.lib.errors import ConfigError
from docchat.models.config import DocChatConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAMES = ("docchat.yml", "docchat.yaml")

# Environment variable to dotted config field mapping
ENV_VAR_MAP = {
    "vectorstore.connection_string": "DOCCHAT_CHROMA_URL",
    "vectorstore.persist_directory": "DOCCHAT_CHROMA_PATH",
    "vectorstore.query_timeout": "DOCCHAT_CHROMA_TIMEOUT",
    "embedding.provider": "DOCCHAT_EMBEDDING_PROVIDER",
    "embedding.model": "DOCCHAT_EMBEDDING_MODEL",
    "embedding.api_key": "DOCCHAT_EMBEDDING_API_KEY",
    "embedding.endpoint": "DOCCHAT_EMBEDDING_ENDPOINT",
    "llm.provider": "DOCCHAT_LLM_PROVIDER",
    "llm.model": "DOCCHAT_LLM_MODEL",
    "llm.api_key": "DOCCHAT_LLM_API_KEY",
    "llm.endpoint": "DOCCHAT_LLM_ENDPOINT",
}

_FLOAT_FIELDS = {"vectorstore.query_timeout"}


def _parse_env_value(field_path: str, value: str) -> Any:
    """Parse environment variable value to the field's type.

    Raises:
        ValueError: If value cannot be parsed
    """
    if field_path in _FLOAT_FIELDS:
        return float(value)
    return value


def _get_env_overrides(env_vars: os._Environ[str] | dict[str, str]) -> dict[str, Any]:
    """Collect nested config values from DOCCHAT_* environment variables.

    Unparseable values are skipped with a warning.
    """
    overrides: dict[str, Any] = {}
    for field_path, env_var_name in ENV_VAR_MAP.items():
        if env_var_name not in env_vars:
            continue
        try:
            value = _parse_env_value(field_path, env_vars[env_var_name])
        except ValueError:
            logger.warning(f"Ignoring invalid value for {env_var_name}")
            continue
        section, key = field_path.split(".", 1)
        overrides.setdefault(section, {})[key] = value
    return overrides


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Deep merge override dict into base dict (in-place).

    For nested dicts, merging is recursive.
    For other types, override completely replaces base.
    """
    for key, override_value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(override_value, dict)
        ):
            _deep_merge(base[key], override_value)
        else:
            base[key] = override_value


class ConfigLoader:
    """Loads and validates DocChat configuration.

    This class handles:
    - Parsing YAML files with ``${VAR}`` substitution
    - Loading ``.env`` files
    - Applying DOCCHAT_* environment variables
    - Converting validation errors into human-readable messages
    """

    def parse_yaml(self, file_path: str | Path) -> dict[str, Any]:
        """Parse a YAML file with environment variable substitution.

        Args:
            file_path: Path to the YAML file to parse

        Returns:
            Dictionary with the parsed content ({} for an empty file)

        Raises:
            ConfigError: If the file cannot be read, a referenced environment
                variable is missing, or YAML parsing fails
        """
        path = Path(file_path)
        try:
            raw_text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(
                "config_file",
                f"Configuration file not found at {file_path}. "
                "Please ensure the file exists at this path.",
            ) from e

        try:
            content = yaml.safe_load(substitute_env_vars(raw_text))
        except yaml.YAMLError as e:
            raise ConfigError(
                "yaml_parse", f"Failed to parse YAML file {file_path}: {e}"
            ) from e

        if content is None:
            return {}
        if not isinstance(content, dict):
            raise ConfigError(
                "yaml_parse", f"Top level of {file_path} must be a mapping"
            )
        return content

    def find_config_file(self, directory: str | Path | None = None) -> Path | None:
        """Find ``docchat.yml`` or ``docchat.yaml`` (.yml preferred)."""
        base = Path(directory) if directory else Path.cwd()
        for name in DEFAULT_CONFIG_FILENAMES:
            candidate = base / name
            if candidate.is_file():
                return candidate
        return None

    def load(
        self,
        file_path: str | Path | None = None,
        env_file: str | Path | None = None,
    ) -> DocChatConfig:
        """Load the DocChat configuration.

        Args:
            file_path: Configuration file. When omitted, ``docchat.yml`` or
                ``docchat.yaml`` in the current directory is used if present,
                otherwise only environment variables and defaults apply.
            env_file: ``.env`` file to load before reading the environment.

        Returns:
            Validated DocChatConfig

        Raises:
            ConfigError: If the file is missing or the configuration is invalid
        """
        load_env_file(env_file)

        data: dict[str, Any] = _get_env_overrides(os.environ)

        path = Path(file_path) if file_path else self.find_config_file()
        if path is not None:
            logger.debug(f"Loading configuration from {path}")
            _deep_merge(data, self.parse_yaml(path))
        else:
            logger.debug("No configuration file found, using defaults")

        try:
            return DocChatConfig.model_validate(data)
        except PydanticValidationError as e:
            messages = flatten_pydantic_errors(e)
            raise ConfigError(
                str(path) if path else "environment",
                "\n".join(messages),
            ) from e

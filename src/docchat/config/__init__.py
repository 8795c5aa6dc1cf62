"""Configuration loading, validation, and defaults for DocChat.

Main components:
- ConfigLoader: Load and validate docchat.yaml files
- Environment variable substitution (${VAR_NAME} pattern) and .env loading
- Validation utilities for configuration data
- Default configuration values
"""

from docchat.config.env_loader import get_env_var, load_env_file, substitute_env_vars
from docchat.config.loader import ConfigLoader

__all__ = [
    "ConfigLoader",
    "substitute_env_vars",
    "get_env_var",
    "load_env_file",
]

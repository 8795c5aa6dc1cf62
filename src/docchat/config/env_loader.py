"""Environment variable handling for DocChat configuration.

Supports ``${VAR_NAME}`` references inside YAML configuration files and
loading ``.env`` files through python-dotenv.
"""

import os
import re
from pathlib import Path

from dotenv import load_dotenv

from docchat.lib.errors import ConfigError

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def get_env_var(name: str, default: str | None = None) -> str | None:
    """Return an environment variable, or ``default`` when unset."""
    return os.environ.get(name, default)


def substitute_env_vars(text: str) -> str:
    """Replace ``${VAR_NAME}`` references with environment values.

    Args:
        text: Raw text, typically the contents of a YAML file.

    Returns:
        Text with every reference substituted.

    Raises:
        ConfigError: If a referenced variable is not set.

    Example:
        >>> os.environ["OPENAI_API_KEY"] = "sk-test"
        >>> substitute_env_vars("api_key: ${OPENAI_API_KEY}")
        'api_key: sk-test'
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        value = os.environ.get(name)
        if value is None:
            raise ConfigError(
                name,
                f"Environment variable '{name}' is referenced but not set",
            )
        return value

    return ENV_VAR_PATTERN.sub(_replace, text)


def load_env_file(path: str | Path | None = None, override: bool = False) -> bool:
    """Load variables from a ``.env`` file into the environment.

    Args:
        path: Path of the env file. When omitted, python-dotenv searches the
            current directory and its parents for ``.env``.
        override: Overwrite variables that are already set.

    Returns:
        True if at least one variable was loaded.
    """
    if path is not None and not Path(path).exists():
        return False
    return load_dotenv(dotenv_path=path, override=override)

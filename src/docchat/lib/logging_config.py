"""Logging configuration for DocChat.

All modules obtain their logger through ``get_logger(__name__)`` so that the
whole ``docchat`` hierarchy can be reconfigured in one place by
``setup_logging``.
"""

import logging
import os
import sys

LOGGER_NAME = "docchat"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL_ENV_VAR = "DOCCHAT_LOG_LEVEL"

# Chatty third-party loggers kept at WARNING unless verbose
NOISY_LOGGERS = ("httpx", "httpcore", "chromadb", "semantic_kernel", "pdfminer")


def get_logger(name: str) -> logging.Logger:
    """Return a logger, nested under the ``docchat`` hierarchy.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        Logger instance.
    """
    if name != LOGGER_NAME and not name.startswith(f"{LOGGER_NAME}."):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def _resolve_level(verbose: bool, quiet: bool, level: str | None) -> int:
    explicit = level or os.environ.get(LOG_LEVEL_ENV_VAR)
    if explicit:
        resolved = logging.getLevelName(explicit.upper())
        if isinstance(resolved, int):
            return resolved
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def setup_logging(
    verbose: bool = False,
    quiet: bool = False,
    level: str | None = None,
) -> None:
    """Configure logging for the ``docchat`` logger hierarchy.

    Safe to call more than once: the handler installed by a previous call is
    replaced rather than duplicated.

    Args:
        verbose: Enable DEBUG output.
        quiet: Only show warnings and errors. Ignored when verbose is set.
        level: Explicit level name; overrides verbose/quiet. The
            ``DOCCHAT_LOG_LEVEL`` environment variable is used when omitted.
    """
    resolved = _resolve_level(verbose, quiet, level)

    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(resolved)
    root.propagate = False

    for handler in list(root.handlers):
        if getattr(handler, "_docchat_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._docchat_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    third_party_level = logging.DEBUG if verbose else logging.WARNING
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(third_party_level)

"""Validation utilities for DocChat configuration."""

from typing import Any

from pydantic import ValidationError as PydanticValidationError


def _location(error: dict[str, Any]) -> str:
    loc = error.get("loc", ())
    return ".".join(str(part) for part in loc) if loc else "unknown"


def flatten_pydantic_errors(exc: PydanticValidationError) -> list[str]:
    """Turn a Pydantic ValidationError into one readable line per problem.

    Unknown keys (usually typos in ``docchat.yaml``) are reported as such;
    failed custom validators include the rejected input.

    Example:
        >>> from docchat.models.config import ChunkingConfig
        >>> try:
        ...     ChunkingConfig(chunk_size=-1)
        ... except PydanticValidationError as e:
        ...     flatten_pydantic_errors(e)
        ["Field 'chunk_size': Input should be greater than 0"]
    """
    messages: list[str] = []

    for error in exc.errors():
        field_path = _location(error)  # type: ignore[arg-type]
        kind = error.get("type", "")

        if kind == "extra_forbidden":
            messages.append(f"Unknown field '{field_path}' (check for typos)")
        elif kind == "value_error":
            messages.append(
                f"Field '{field_path}': {error.get('msg', 'invalid value')} "
                f"(received: {error.get('input')!r})"
            )
        else:
            messages.append(f"Field '{field_path}': {error.get('msg', 'invalid')}")

    return messages or ["Validation failed with unknown error"]

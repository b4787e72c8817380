"""
Correlation ids for publish generations.

Each connection generation and each publish-loop generation runs inside its
own correlation context. The id lives in a contextvar, so tasks spawned inside
a generation inherit it and every log line they emit can be traced back to the
settings value that started them.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager

__all__ = [
    "correlation_context",
    "ensure_correlation_id",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)


def generate_correlation_id(prefix: str | None = None) -> str:
    """
    Generate a new correlation id.

    Args:
        prefix: Optional short label, e.g. ``"conn"`` or ``"pub"``

    Returns:
        UUID4 hex, prefixed with ``"{prefix}-"`` when a prefix is given
    """
    corr_id = uuid.uuid4().hex
    return f"{prefix}-{corr_id}" if prefix else corr_id


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id.set(correlation_id)


@contextmanager
def correlation_context(
    correlation_id: str | None = None,
    prefix: str | None = None,
) -> Generator[str]:
    """
    Scope a correlation id, restoring the previous one on exit.

    Example:
        with correlation_context(prefix="pub") as generation_id:
            logger.info("Starting publish loops")  # tagged with generation_id
    """
    previous_id = get_correlation_id()
    if correlation_id is None:
        correlation_id = generate_correlation_id(prefix)
    set_correlation_id(correlation_id)
    try:
        yield correlation_id
    finally:
        set_correlation_id(previous_id)


def ensure_correlation_id() -> str:
    """Return the current correlation id, generating one if none is set."""
    current_id = get_correlation_id()
    if current_id is None:
        current_id = generate_correlation_id()
        set_correlation_id(current_id)
    return current_id

"""Helpers for correlation identifiers in logs."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from uuid import uuid4

from src.config.logging_config import bind_context, unbind_context

CORRELATION_ID_KEY = "correlation_id"
SOURCE_ITEM_ID_KEY = "source_item_id"


@contextmanager
def correlation_scope(
    existing_id: str | None = None, *, source_item_id: str | None = None
) -> Iterator[str]:
    """Bind a correlation identifier (and optional feed item id) for the context."""

    correlation_id = existing_id or str(uuid4())
    context: dict[str, str] = {CORRELATION_ID_KEY: correlation_id}
    if source_item_id is not None:
        context[SOURCE_ITEM_ID_KEY] = source_item_id
    bind_context(**context)
    try:
        yield correlation_id
    finally:
        unbind_context(*context)


__all__ = ["CORRELATION_ID_KEY", "SOURCE_ITEM_ID_KEY", "correlation_scope"]

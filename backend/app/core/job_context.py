"""Sync job context for logging.

Every log record emitted while a sync job runs carries the job id, the entity
type, the owner and the parent job (for continuation jobs).
"""

import contextvars
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

_sync_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    "sync_context", default={}
)


class SyncContextFilter(logging.Filter):
    """Logging filter that adds sync job context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _sync_context.get()

        record.sync_id = context.get("sync_id", "")  # type: ignore[attr-defined]
        record.sync_type = context.get("sync_type", "")  # type: ignore[attr-defined]
        record.owner_id = context.get("owner_id", "")  # type: ignore[attr-defined]
        record.parent_id = context.get("parent_id", "")  # type: ignore[attr-defined]

        parts = [
            f"{key}={context[key]}"
            for key in ("sync_type", "sync_id", "parent_id")
            if context.get(key)
        ]
        record.sync_context = f" [{', '.join(parts)}]" if parts else ""  # type: ignore[attr-defined]

        return True


@contextmanager
def sync_logging_context(
    sync_id: int,
    sync_type: str,
    owner_id: str,
    parent_id: Optional[int] = None,
    **extra_context: Any,
) -> Iterator[None]:
    """Set the sync job logging context for the enclosed block.

    Args:
        sync_id: The id of the running sync job
        sync_type: Entity type being synchronized
        owner_id: Owner the job runs for
        parent_id: Root job id when this is a continuation job
        **extra_context: Additional context to include

    Example:
        with sync_logging_context(sync_id=12, sync_type="employee", owner_id="u1"):
            logger.info("Fetching records")
    """
    new_context = {
        **_sync_context.get(),
        "sync_id": sync_id,
        "sync_type": sync_type,
        "owner_id": owner_id,
        **extra_context,
    }
    if parent_id:
        new_context["parent_id"] = parent_id

    token = _sync_context.set(new_context)
    try:
        yield
    finally:
        _sync_context.reset(token)


def get_current_sync_context() -> Dict[str, Any]:
    """Get a copy of the current sync job context."""
    return _sync_context.get().copy()


def setup_sync_logging() -> None:
    """Attach the sync context filter to every root handler.

    Call after logging has been configured. Plain-text handlers get
    ``%(sync_context)s`` inserted before the message.
    """
    root_logger = logging.getLogger()
    app_logger = logging.getLogger("app")

    for handler in {*root_logger.handlers, *app_logger.handlers}:
        if any(isinstance(f, SyncContextFilter) for f in handler.filters):
            continue
        handler.addFilter(SyncContextFilter())

        formatter = handler.formatter
        current_format = getattr(formatter, "_fmt", None)
        if (
            formatter is None
            or type(formatter) is not logging.Formatter
            or not isinstance(current_format, str)
            or "%(sync_context)s" in current_format
        ):
            continue

        if " - %(message)s" in current_format:
            new_format = current_format.replace(
                " - %(message)s", "%(sync_context)s - %(message)s"
            )
        else:
            new_format = current_format.replace(
                "%(message)s", "%(sync_context)s %(message)s"
            )
        handler.setFormatter(logging.Formatter(new_format, datefmt=formatter.datefmt))

from __future__ import annotations
import inspect
import logging
from typing import Any, Optional

_logger = logging.getLogger("crudservice")


async def maybe_await(value: Any) -> Any:
    """Await ``value`` when a hook returned an awaitable; hooks may be sync or async."""
    if inspect.isawaitable(value):
        return await value
    return value


def log_error(error: BaseException | Any, context: Optional[str] = None, *, level: int = logging.WARNING) -> None:
    message = []
    if context:
        message.append(f"[{context}]")
    message.append(str(error))
    _logger.log(level, " ".join(message))

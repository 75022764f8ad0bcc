"""Two kinds of remote call.

Advisory calls enrich an answer but never block it: failures are logged and
replaced by a fallback. Critical calls sit on the answer path: failures abort
the request as a specific pipeline error.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional, Type, TypeVar, Union

from analytics_backend.errors import AnalyticsError
from analytics_backend.utils.logger import logger

T = TypeVar("T")


def describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


async def advisory(
    call: Awaitable[T],
    fallback: Union[T, Callable[[Exception], T]],
    what: str,
) -> T:
    try:
        return await call
    except Exception as exc:  # noqa: BLE001
        logger.warning("Could not %s, continuing without it: %s", what, describe(exc))
        return fallback(exc) if callable(fallback) else fallback


async def critical(
    call: Awaitable[T],
    error: Type[AnalyticsError],
    generated_query: Optional[str] = None,
) -> T:
    try:
        return await call
    except AnalyticsError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.error("%s: %s", error.default_message, describe(exc))
        raise error(details=describe(exc), generated_query=generated_query) from exc

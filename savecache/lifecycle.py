"""
Host lifecycle hooks.

The host calls these at its own trigger points: losing foreground focus,
quitting, and once after start-up when preloaded data must be consistent.
"""

from __future__ import annotations

import contextlib
import logging
from typing import AsyncIterator, Iterable

from .manager import DataManager, KeyLike

logger = logging.getLogger(__name__)


async def on_focus_changed(manager: DataManager, focused: bool) -> int:
    """Flush every dirty record when the host loses focus."""
    if focused:
        return 0
    return await manager.flush_all()


async def on_quitting(manager: DataManager) -> None:
    await manager.shutdown()


@contextlib.asynccontextmanager
async def lifespan(manager: DataManager, *, preload: Iterable[KeyLike] = ()) -> AsyncIterator[DataManager]:
    """
    Start preloading `preload`, wait for every pending load, yield, then drain on exit.

    Works as the body of a FastAPI/Starlette lifespan.
    """
    for key in preload:
        manager.load_async(key)
    loaded = await manager.await_pending_loads()
    logger.debug("startup: %d pending load(s) settled", loaded)
    try:
        yield manager
    finally:
        await on_quitting(manager)

"""
Path revalidation: tells open pages that what they show has changed.

Writers call ``revalidate_path("/polls/<token>")`` after committing. Anything
rendering that path (the poll WebSocket feed, a cache) registers a callback
with ``subscribe`` and refetches when notified.
"""

import logging
from typing import Awaitable, Callable, Dict, List

logger = logging.getLogger(__name__)

Callback = Callable[[str], Awaitable[None]]


class Revalidator:
    def __init__(self):
        # Maps a path to the callbacks watching it
        self.subscribers: Dict[str, List[Callback]] = {}

    def subscribe(self, path: str, callback: Callback) -> None:
        self.subscribers.setdefault(path, []).append(callback)

    def unsubscribe(self, path: str, callback: Callback) -> None:
        callbacks = self.subscribers.get(path)
        if not callbacks:
            return
        if callback in callbacks:
            callbacks.remove(callback)
        if not callbacks:
            del self.subscribers[path]

    async def revalidate_path(self, path: str) -> int:
        """Notify every subscriber of ``path``; returns how many were reached."""
        callbacks = list(self.subscribers.get(path, []))
        logger.info(f"Revalidating {path} ({len(callbacks)} subscriber(s))")
        reached = 0
        for callback in callbacks:
            try:
                await callback(path)
                reached += 1
            except Exception:
                # Listener is gone; forget it
                logger.warning(f"Dropping revalidation subscriber for {path}", exc_info=True)
                self.unsubscribe(path, callback)
        return reached


revalidator = Revalidator()


async def revalidate_path(path: str) -> int:
    return await revalidator.revalidate_path(path)


def poll_path(share_token: str) -> str:
    return f"/polls/{share_token}"


DASHBOARD_PATH = "/dashboard"

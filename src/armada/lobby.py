from __future__ import annotations

import logging
import threading
from typing import Any

from . import messages
from .registry import SessionRegistry

logger = logging.getLogger(__name__)


class LobbyBroadcaster:
    """Track online players and push full lobby snapshots to all of them."""

    def __init__(self, registry: SessionRegistry):
        self._lock = threading.Lock()
        self._online: dict[str, Any] = {}
        self._registry = registry

    def login(self, identity: str, channel: Any) -> Any | None:
        """Map *identity* to *channel*, returning any channel it replaced."""
        with self._lock:
            previous = self._online.get(identity)
            self._online[identity] = channel
        if previous is not None and previous is not channel:
            logger.warning("Identity %r logged in again; previous connection no longer receives lobby updates", identity)
        return previous

    def logout(self, identity: str, channel: Any) -> bool:
        """Forget *identity* unless it has since been claimed by another channel."""
        with self._lock:
            if self._online.get(identity) is not channel:
                return False
            del self._online[identity]
            return True

    def users(self) -> list[str]:
        with self._lock:
            return list(self._online)

    def is_online(self, identity: str) -> bool:
        with self._lock:
            return identity in self._online

    def snapshot(self) -> dict[str, Any]:
        """Recompute the lobby view from the online map and the session registry."""
        return messages.lobby_update(self.users(), self._registry.summaries())

    def broadcast(self) -> int:
        """Send the current snapshot to every online channel; returns how many accepted it."""
        payload = self.snapshot()
        with self._lock:
            targets = list(self._online.items())
        delivered = 0
        for identity, channel in targets:
            try:
                if channel.send(payload):
                    delivered += 1
            except Exception:
                logger.exception("Lobby update to %r failed", identity)
        logger.debug("Lobby snapshot: %d users, %d games, delivered=%d", len(payload["users"]), len(payload["games"]), delivered)
        return delivered

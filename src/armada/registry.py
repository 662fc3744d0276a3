"""Session registry: the single owner of every live :class:`GameSession`."""

from __future__ import annotations

import logging
from typing import Any, Iterator

from .session import GameSession, Seat

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Map session ids to sessions; at most one session exists per id."""

    def __init__(
        self,
        *,
        ships=None,
        authoritative_fire: bool | None = None,
        lock_placement: bool | None = None,
    ) -> None:
        self._sessions: dict[str, GameSession] = {}
        self._ships = ships
        self._authoritative_fire = authoritative_fire
        self._lock_placement = lock_placement

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[GameSession]:
        return iter(list(self._sessions.values()))

    def get(self, session_id: str | None) -> GameSession | None:
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    def create(self, session_id: str, identity: str, channel: Any) -> GameSession:
        """Register a fresh session with *identity* in the player1 seat."""
        if session_id in self._sessions:
            raise KeyError(f"Session {session_id!r} already exists")
        session = GameSession(
            session_id,
            Seat(identity, channel),
            ships=self._ships,
            authoritative_fire=self._authoritative_fire,
            lock_placement=self._lock_placement,
        )
        self._sessions[session_id] = session
        logger.debug("Registry: added %s (size=%d)", session_id, len(self._sessions))
        return session

    def remove(self, session_id: str) -> GameSession | None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.debug("Registry: removed %s (size=%d)", session_id, len(self._sessions))
        return session

    def sessions_for(self, channel: Any) -> list[GameSession]:
        """Every session in which *channel* holds a seat."""
        return [s for s in self._sessions.values() if s.role_of(channel=channel) is not None]

    def summaries(self) -> list[dict[str, Any]]:
        return [s.summary() for s in self._sessions.values()]

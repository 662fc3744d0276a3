"""Route inbound commands to sessions and session events back to players.

``ConnectionRouter`` is the only entry point the transport talks to: it
decodes each inbound object, resolves the caller's session, invokes the
matching transition and refreshes the lobby.  ``EventRouter`` lives
*outside* GameSession so that translation rules from events to wire
messages are declared in a single place and can be unit-tested by feeding
synthetic Event objects.

All state (session registry and online map) is injected at construction;
two routers never share anything.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

from . import messages
from .commands import (
    CommandParseError,
    JoinGameCommand,
    LoginCommand,
    MakeMoveCommand,
    PlaceShipCommand,
    RestartGameCommand,
    parse_command,
)
from .events import Category, Event
from .lobby import LobbyBroadcaster
from .registry import SessionRegistry
from .session import PLAYER1, PLAYER2, GameSession, other

logger = logging.getLogger(__name__)


def _send(channel: Any, obj: dict[str, Any]) -> bool:
    logger.debug("send %s → %r", obj.get("type"), channel)
    try:
        return bool(channel.send(obj))
    except Exception:
        logger.exception("Sending %s failed", obj.get("type"))
        return False


class EventRouter:
    """Session-scoped helper that converts `Event` → channel sends."""

    def __init__(self, session: GameSession) -> None:
        self._s = session

    # ------------------------------------------------------------------
    # Public dispatch entry
    # ------------------------------------------------------------------
    def __call__(self, ev: Event) -> None:  # GameSession calls router(event)
        try:
            self.dispatch(ev)
        except Exception:  # noqa: BLE001
            logger.exception("Event routing failed for %s", ev)

    def dispatch(self, ev: Event) -> None:
        cat = ev.category
        if cat is Category.SEAT:
            self._handle_seat(ev)
        elif cat is Category.TURN:
            self._handle_turn(ev)
        elif cat is Category.SYSTEM:
            self._handle_system(ev)
        else:  # pragma: no cover – unknown category
            logger.debug("Ignoring event %s", ev)

    # ------------------------------------------------------------------
    # Category handlers
    # ------------------------------------------------------------------
    def _handle_seat(self, ev: Event) -> None:
        s = self._s
        t = ev.type
        if t == "created":
            _send(s.player1.channel, messages.joined(PLAYER1, s.id, s.state_payload()))
        elif t == "joined":
            state = s.state_payload()
            _send(s.player1.channel, messages.player_joined(s.player2.identity, state))
            _send(s.player2.channel, messages.joined(PLAYER2, s.id, state, opponent=s.player1.identity))
        elif t == "full":
            _send(ev.payload["channel"], messages.error(messages.GAME_FULL))
        else:
            logger.debug("Unhandled SEAT event: %s", ev)

    def _handle_turn(self, ev: Event) -> None:
        t = ev.type
        if t == "update":
            self._broadcast(messages.game_update(self._s.state_payload(), ev.payload.get("newly_sunk")))
        elif t == "ended":
            self._broadcast(messages.game_ended(ev.payload["winner"]))
        elif t == "restarted":
            self._broadcast(messages.game_update(self._s.state_payload()))
            self._broadcast(messages.game_restarted())
        else:
            logger.debug("Unhandled TURN event: %s", ev)

    def _handle_system(self, ev: Event) -> None:
        if ev.type == "disconnected":
            survivor = self._s.seat(other(ev.payload["role"]))
            if survivor is not None:
                _send(survivor.channel, messages.opponent_disconnected())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _broadcast(self, obj: dict[str, Any]) -> None:
        # player2 may not have joined yet
        for _, seat in self._s.seats():
            _send(seat.channel, obj)


@dataclass
class Connection:
    """One live client: its channel, login name and the session it last joined."""

    channel: Any
    username: str | None = None
    game_id: str | None = None


class ConnectionRouter:
    """Dispatch decoded client commands; one command is handled at a time."""

    def __init__(self, registry: SessionRegistry | None = None, lobby: LobbyBroadcaster | None = None) -> None:
        self.registry = registry if registry is not None else SessionRegistry()
        self.lobby = lobby if lobby is not None else LobbyBroadcaster(self.registry)
        self._lock = threading.RLock()

    def connect(self, channel: Any) -> Connection:
        logger.debug("Connection opened: %r", channel)
        return Connection(channel)

    # ------------------------------------------------------------------
    # Inbound commands
    # ------------------------------------------------------------------
    def handle(self, conn: Connection, obj: Any) -> None:
        """Apply one inbound object. Malformed or illegal commands are dropped silently."""
        try:
            cmd = parse_command(obj)
        except CommandParseError as e:
            logger.warning("Dropping command from %s: %s", conn.username or "<anonymous>", e)
            return
        logger.debug("Dispatch %s from %s", type(cmd).__name__, conn.username)

        with self._lock:
            if isinstance(cmd, LoginCommand):
                self._login(conn, cmd)
            elif isinstance(cmd, JoinGameCommand):
                self._join(conn, cmd)
            elif isinstance(cmd, PlaceShipCommand):
                session = self._session_for(conn)
                if session and session.place_board(conn.username, cmd.board, channel=conn.channel):
                    self.lobby.broadcast()
            elif isinstance(cmd, MakeMoveCommand):
                session = self._session_for(conn)
                if session and session.fire(
                    conn.username, cmd.board, row=cmd.row, col=cmd.col, channel=conn.channel
                ):
                    self.lobby.broadcast()
            elif isinstance(cmd, RestartGameCommand):
                session = self._session_for(conn)
                if session and session.restart():
                    self.lobby.broadcast()

    def _login(self, conn: Connection, cmd: LoginCommand) -> None:
        if conn.username and conn.username != cmd.username:
            self.lobby.logout(conn.username, conn.channel)
        conn.username = cmd.username
        self.lobby.login(cmd.username, conn.channel)
        logger.info("%s logged in", cmd.username)
        _send(conn.channel, messages.login_success(cmd.username))
        self.lobby.broadcast()

    def _join(self, conn: Connection, cmd: JoinGameCommand) -> None:
        identity = cmd.username or conn.username
        if not identity:
            logger.warning("Dropping join_game for %s without a username", cmd.game_id)
            return
        session = self.registry.get(cmd.game_id)
        if session is None:
            session = self.registry.create(cmd.game_id, identity, conn.channel)
            session.subscribe(EventRouter(session))
            conn.game_id = cmd.game_id
            session.open()
        elif session.role_of(channel=conn.channel) is not None:
            logger.debug("%s is already seated in %s", identity, cmd.game_id)
            return
        elif session.join(identity, conn.channel) is not None:
            conn.game_id = cmd.game_id
        self.lobby.broadcast()

    def _session_for(self, conn: Connection) -> GameSession | None:
        session = self.registry.get(conn.game_id)
        if session is None or session.role_of(channel=conn.channel) is None:
            return None
        return session

    # ------------------------------------------------------------------
    # Channel close
    # ------------------------------------------------------------------
    def disconnect(self, conn: Connection) -> None:
        """Forget the connection: leave the lobby and tear down every session it sits in."""
        with self._lock:
            if conn.username:
                self.lobby.logout(conn.username, conn.channel)
            for session in self.registry.sessions_for(conn.channel):
                session.teardown(conn.username, channel=conn.channel)
                self.registry.remove(session.id)
            conn.game_id = None
            logger.info("%s disconnected", conn.username or "<anonymous>")
            self.lobby.broadcast()

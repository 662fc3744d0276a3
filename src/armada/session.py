"""Two-player game session state machine for the Armada server.

A :class:`GameSession` owns everything about one match: both seats, both
boards, the phase, whose turn it is and the winner.  It performs no I/O.
Every accepted transition mutates state and then emits an :class:`Event`;
subscribers (normally :class:`armada.router.EventRouter`) turn those events
into messages for the seated players.  Illegal transitions return ``False``
without mutating or emitting anything.

Phases
------
placing   both players submit fleet boards; when both carry the full roster
          the session moves to battle with player1 to move.
battle    the player to move fires; a hit keeps the turn, a miss passes it.
ended     one fleet is fully sunk; only ``restart`` leaves this phase.

Shots
-----
By default the firing client pre-computes the opponent board and the
session stores it verbatim, locating the shot by diffing hit flags.  When
``authoritative_fire`` is set, only coordinate shots are accepted and the
session applies them to its own copy of the opponent board.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, List

from . import config as _cfg
from .board import (
    Board,
    all_ships_sunk,
    count_distinct_ships,
    create_empty_board,
    lost_hits,
    newly_sunk_ships,
    shot_cells,
    was_hit,
)
from .events import Category, Event

logger = logging.getLogger(__name__)

PLAYER1 = "player1"
PLAYER2 = "player2"


class Phase(str, enum.Enum):
    PLACING = "placing"
    BATTLE = "battle"
    ENDED = "ended"


def other(role: str) -> str:
    return PLAYER2 if role == PLAYER1 else PLAYER1


@dataclass(slots=True)
class Seat:
    """A player's place in a session: display name plus the channel to reach them."""

    identity: str
    channel: Any


class GameSession:
    """State machine for a single two-player match."""

    def __init__(
        self,
        session_id: str,
        player1: Seat,
        *,
        ships=None,
        authoritative_fire: bool | None = None,
        lock_placement: bool | None = None,
    ):
        self.id = session_id
        self.player1: Seat = player1
        self.player2: Seat | None = None
        self.ships = ships if ships is not None else _cfg.SHIPS
        self.authoritative_fire = _cfg.AUTHORITATIVE_FIRE if authoritative_fire is None else authoritative_fire
        self.lock_placement = _cfg.LOCK_PLACEMENT if lock_placement is None else lock_placement

        self.phase = Phase.PLACING
        self.boards: dict[str, Board] = {PLAYER1: create_empty_board(), PLAYER2: create_empty_board()}
        self.current_turn = PLAYER1
        self.winner: str | None = None

        self._subs: List[Callable[[Event], None]] = []

    # -------------------- event bus --------------------
    def subscribe(self, cb: Callable[[Event], None]) -> None:
        """Allow external components (router/logger) to receive session events."""
        self._subs.append(cb)

    def _emit(self, ev: Event) -> None:
        for cb in tuple(self._subs):
            try:
                cb(ev)
            except Exception:
                # A misbehaving subscriber must not abort the transition
                logger.exception("Subscriber failed on %s", ev)

    # -------------------- lookups --------------------
    def seat(self, role: str) -> Seat | None:
        return self.player1 if role == PLAYER1 else self.player2

    def seats(self) -> list[tuple[str, Seat]]:
        out = [(PLAYER1, self.player1)]
        if self.player2 is not None:
            out.append((PLAYER2, self.player2))
        return out

    def role_of(self, identity: str | None = None, channel: Any = None) -> str | None:
        """Resolve a caller's role, by channel when given, otherwise by display name."""
        if channel is not None:
            for role, seat in self.seats():
                if seat.channel is channel:
                    return role
            return None
        for role, seat in self.seats():
            if seat.identity == identity:
                return role
        return None

    @property
    def is_full(self) -> bool:
        return self.player2 is not None

    def status(self) -> str:
        return "waiting" if self.phase is Phase.PLACING else "in_progress"

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "player1": self.player1.identity,
            "player2": self.player2.identity if self.player2 else None,
            "status": self.status(),
        }

    def state_payload(self) -> dict[str, Any]:
        """Full wire view of the game state sent to both players."""
        return {
            "player1Board": self.boards[PLAYER1].to_wire(),
            "player2Board": self.boards[PLAYER2].to_wire(),
            "currentTurn": self.current_turn,
            "phase": self.phase.value,
            "isPlacingShips": self.phase is Phase.PLACING,
            "gameStarted": self.phase is not Phase.PLACING,
            "gameEnded": self.phase is Phase.ENDED,
            "winner": self.winner,
        }

    # -------------------- transitions --------------------
    def open(self) -> None:
        """Announce the session to its creator (player1)."""
        logger.info("Session %s created by %s", self.id, self.player1.identity)
        self._emit(Event(Category.SEAT, "created", {"role": PLAYER1}))

    def join(self, identity: str, channel: Any) -> str | None:
        """Seat *identity* as player2; returns the role, or None if the session is full."""
        if self.is_full:
            logger.info("Session %s is full; refusing %s", self.id, identity)
            self._emit(Event(Category.SEAT, "full", {"identity": identity, "channel": channel}))
            return None
        self.player2 = Seat(identity, channel)
        logger.info("Session %s: %s joined %s", self.id, identity, self.player1.identity)
        self._emit(Event(Category.SEAT, "joined", {"role": PLAYER2}))
        return PLAYER2

    def place_board(self, identity: str | None, board: Board, *, channel: Any = None) -> bool:
        """Store the caller's fleet board; start the battle once both fleets are complete.

        With ``lock_placement`` off the board is overwritten in any phase, but
        only a placing session can move to battle.
        """
        role = self.role_of(identity, channel)
        if role is None or (self.lock_placement and self.phase is not Phase.PLACING):
            logger.debug("Session %s: ignoring placement from %s in %s", self.id, identity, self.phase.value)
            return False
        self.boards[role] = board

        roster = len(self.ships)
        if self.phase is Phase.PLACING and all(count_distinct_ships(b) == roster for b in self.boards.values()):
            self.phase = Phase.BATTLE
            self.current_turn = PLAYER1
            logger.info("Session %s: both fleets placed – battle begins", self.id)
        self._emit(Event(Category.TURN, "update", {"role": role}))
        return True

    def fire(
        self,
        identity: str | None,
        board: Board | None = None,
        *,
        row: int | None = None,
        col: int | None = None,
        channel: Any = None,
    ) -> bool:
        """Apply the caller's shot at the opponent; returns False if it was not accepted."""
        role = self.role_of(identity, channel)
        if self.phase is not Phase.BATTLE or role is None or role != self.current_turn:
            logger.debug("Session %s: ignoring out-of-turn or out-of-phase shot from %s", self.id, identity)
            return False

        target = other(role)
        old = self.boards[target]
        if board is not None:
            if self.authoritative_fire:
                logger.warning("Session %s: board submission from %s refused in authoritative mode", self.id, identity)
                return False
            if lost_hits(board, old):
                logger.warning("Session %s: %s submitted a board that clears earlier hits", self.id, identity)
            new = board
        elif row is not None and col is not None:
            new = old.copy()
            result, _ = new.fire_at(row, col)
            if result == "already_shot":
                logger.debug("Session %s: %s re-fired at (%d,%d)", self.id, identity, row, col)
                return False
        else:
            return False

        self.boards[target] = new
        sunk = newly_sunk_ships(new, old)

        if all_ships_sunk(self.boards[PLAYER2]):
            self.winner = PLAYER1
        elif all_ships_sunk(self.boards[PLAYER1]):
            self.winner = PLAYER2
        if self.winner is not None:
            self.phase = Phase.ENDED
        elif not any(was_hit(new, old, r, c) for r, c in shot_cells(new, old)):
            self.current_turn = target

        self._emit(Event(Category.TURN, "update", {"role": role, "newly_sunk": sunk}))
        if self.winner is not None:
            winner_name = self.seat(self.winner).identity
            logger.info("Session %s: %s (%s) wins", self.id, winner_name, self.winner)
            self._emit(Event(Category.TURN, "ended", {"winner": winner_name}))
        return True

    def restart(self) -> bool:
        """Reset to placing with fresh boards; player1 moves first."""
        self.phase = Phase.PLACING
        self.boards = {PLAYER1: create_empty_board(), PLAYER2: create_empty_board()}
        self.current_turn = PLAYER1
        self.winner = None
        logger.info("Session %s restarted", self.id)
        self._emit(Event(Category.TURN, "restarted"))
        return True

    def teardown(self, identity: str | None = None, *, channel: Any = None) -> bool:
        """Notify the remaining player that the caller left; the registry then drops the session."""
        role = self.role_of(identity, channel)
        if role is None:
            return False
        logger.info("Session %s: %s disconnected – tearing down", self.id, self.seat(role).identity)
        self._emit(Event(Category.SYSTEM, "disconnected", {"role": role}))
        return True

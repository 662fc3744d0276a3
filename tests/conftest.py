import json
import logging
import socket
import threading

import pytest

import armada.encryption as _aead
from armada.board import Board, HORIZONTAL
from armada.channel import SocketChannel
from armada.config import SHIPS
from armada.registry import SessionRegistry
from armada.router import ConnectionRouter
from armada.server import ArmadaServer

# Suppress INFO & DEBUG logs from server threads during tests
logging.basicConfig(level=logging.WARNING)


class RecordingChannel:
    """In-memory channel that records every payload it is asked to send."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.sent: list[dict] = []
        self.alive = True

    def __repr__(self) -> str:
        return f"<RecordingChannel {self.name}>"

    def send(self, obj) -> bool:
        if not self.alive:
            return False
        # Round-trip through JSON so tests see exactly what would hit the wire
        self.sent.append(json.loads(json.dumps(obj)))
        return True

    def types(self) -> list[str]:
        return [m["type"] for m in self.sent]

    def of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.sent if m["type"] == msg_type]

    def last(self, msg_type: str) -> dict:
        found = self.of_type(msg_type)
        assert found, f"{self.name} never received {msg_type!r}; got {self.types()}"
        return found[-1]

    def game_types(self) -> list[str]:
        """Message types excluding lobby snapshots."""
        return [t for t in self.types() if t != "lobby_update"]

    def clear(self) -> None:
        self.sent.clear()


def fleet_board() -> Board:
    """Deterministic full roster: ship *i* lies horizontally on row 2*i from column 0."""
    board = Board()
    for i, ship in enumerate(SHIPS):
        board.place_ship(ship, 2 * i, 0, HORIZONTAL)
    return board


@pytest.fixture(autouse=True)
def _plain_framing():
    """Every test starts and ends with encryption disabled."""
    _aead.disable_encryption()
    yield
    _aead.disable_encryption()


@pytest.fixture
def router() -> ConnectionRouter:
    return ConnectionRouter(SessionRegistry(authoritative_fire=False, lock_placement=True))


@pytest.fixture
def player(router):
    """Factory: open a connection on *router* and log it in under *name*."""

    def _player(name: str):
        channel = RecordingChannel(name)
        conn = router.connect(channel)
        router.handle(conn, {"type": "login", "username": name})
        return conn, channel

    return _player


@pytest.fixture
def battle(router, player):
    """alice (player1) and bob (player2) in room1 with both fleets placed."""
    alice, a_ch = player("alice")
    bob, b_ch = player("bob")
    router.handle(alice, {"type": "join_game", "gameId": "room1", "username": "alice"})
    router.handle(bob, {"type": "join_game", "gameId": "room1", "username": "bob"})
    router.handle(alice, {"type": "place_ship", "board": fleet_board().to_wire()})
    router.handle(bob, {"type": "place_ship", "board": fleet_board().to_wire()})
    a_ch.clear()
    b_ch.clear()
    return alice, a_ch, bob, b_ch


@pytest.fixture
def channel_pair():
    """Two SocketChannels joined by a socketpair, closed after the test."""
    a, b = socket.socketpair()
    left, right = SocketChannel(a, "left"), SocketChannel(b, "right")
    yield left, right
    left.close()
    right.close()


@pytest.fixture
def live_server():
    """Run an ArmadaServer on an ephemeral port in a background thread."""
    server = ArmadaServer("127.0.0.1", 0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    thread.join(timeout=2.0)

"""Headless client plus a small console front-end.

``GameClient`` speaks the framed JSON protocol and keeps enough local state
(role, game state) to pre-compute opponent boards before firing, the way
the browser front-end does.  ``main()`` wraps it in a line-based console:

    join <room>     create or join a session
    auto            place the full roster at random and submit it
    fire <coord>    shoot at the opponent, e.g. ``fire B7``
    restart         reset the current session
    quit            disconnect
"""

from __future__ import annotations

import argparse
import logging
import socket
import threading
from typing import Any

from . import config as _cfg
from .board import Board, format_coord, parse_coordinate
from .common import DEFAULT_KEY, PacketType, enable_encryption, recv_pkt, send_pkt
from .session import PLAYER1, PLAYER2, other

logger = logging.getLogger(__name__)


class GameClient:
    """Blocking client for one connection to an Armada server."""

    def __init__(self, host: str = _cfg.DEFAULT_HOST, port: int = _cfg.DEFAULT_PORT, *, timeout: float | None = 5.0):
        self.sock = socket.create_connection((host, port), timeout=timeout)
        self._reader = self.sock.makefile("rb")
        self._writer = self.sock.makefile("wb")
        self._seq = 0
        self._send_lock = threading.Lock()
        self.username: str | None = None
        self.player_id: str | None = None
        self.game_id: str | None = None
        self.opponent: str | None = None
        self.game_state: dict[str, Any] | None = None
        self.lobby: dict[str, Any] = {"users": [], "games": []}

    # -------------------- outbound --------------------
    def send(self, obj: dict[str, Any]) -> None:
        with self._send_lock:
            send_pkt(self._writer, PacketType.GAME, self._seq, obj)
            self._seq += 1

    def login(self, username: str) -> None:
        self.username = username
        self.send({"type": "login", "username": username})

    def join(self, game_id: str) -> None:
        self.send({"type": "join_game", "gameId": game_id, "username": self.username})

    def place(self, board: Board) -> None:
        self.send({"type": "place_ship", "board": board.to_wire()})

    def place_random(self) -> Board:
        board = Board()
        board.place_ships_randomly()
        self.place(board)
        return board

    def fire(self, row: int, col: int) -> tuple[str, int | None]:
        """Apply the shot to the last known opponent board and submit the result."""
        target = self.opponent_board()
        if target is None:
            raise RuntimeError("No game in progress")
        result = target.fire_at(row, col)
        if result[0] != "already_shot":
            self.send({"type": "make_move", "board": target.to_wire()})
        return result

    def fire_at(self, row: int, col: int) -> None:
        """Submit a bare coordinate and let the server resolve the shot."""
        self.send({"type": "make_move", "row": row, "col": col})

    def restart(self) -> None:
        self.send({"type": "restart_game"})

    # -------------------- inbound --------------------
    def recv(self) -> dict[str, Any]:
        """Block for the next server message and fold it into local state."""
        _, _, obj = recv_pkt(self._reader)
        self._apply(obj)
        return obj

    def recv_until(self, msg_type: str, limit: int = 50) -> dict[str, Any]:
        """Read messages until one of *msg_type* arrives."""
        for _ in range(limit):
            obj = self.recv()
            if obj.get("type") == msg_type:
                return obj
        raise TimeoutError(f"No {msg_type!r} within {limit} messages")

    def _apply(self, obj: dict[str, Any]) -> None:
        t = obj.get("type")
        if t == "lobby_update":
            self.lobby = {"users": obj.get("users", []), "games": obj.get("games", [])}
        elif t == "joined":
            self.player_id = obj.get("playerId")
            self.game_id = obj.get("gameId")
            self.opponent = obj.get("opponent")
            self.game_state = obj.get("gameState")
        elif t == "player_joined":
            self.opponent = obj.get("opponent")
            self.game_state = obj.get("gameState")
        elif t == "game_update":
            self.game_state = obj.get("gameState")
        elif t == "opponent_disconnected":
            self.player_id = self.game_id = self.opponent = self.game_state = None

    # -------------------- views --------------------
    def own_board(self) -> Board | None:
        if not self.game_state or self.player_id not in (PLAYER1, PLAYER2):
            return None
        return Board.from_wire(self.game_state[f"{self.player_id}Board"])

    def opponent_board(self) -> Board | None:
        if not self.game_state or self.player_id not in (PLAYER1, PLAYER2):
            return None
        return Board.from_wire(self.game_state[f"{other(self.player_id)}Board"])

    def my_turn(self) -> bool:
        return bool(self.game_state) and self.game_state.get("phase") == "battle" and self.game_state.get("currentTurn") == self.player_id

    def close(self) -> None:
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        for stream in (self._reader, self._writer):
            try:
                stream.close()
            except OSError:
                pass
        self.sock.close()


# ---------------------------------------------------------------------------
# Console front-end
# ---------------------------------------------------------------------------


def _render(client: GameClient, obj: dict[str, Any]) -> None:  # pragma: no cover – console output
    t = obj.get("type")
    if t == "lobby_update":
        games = ", ".join(f"{g['id']}({g['status']})" for g in obj.get("games", [])) or "none"
        print(f"[LOBBY] online: {', '.join(obj.get('users', []))} | games: {games}")
    elif t in ("joined", "player_joined"):
        print(f"[GAME] you are {client.player_id} in {client.game_id}; opponent: {client.opponent or 'waiting'}")
    elif t == "game_update":
        state = obj["gameState"]
        sunk = obj.get("newlySunkShips")
        if sunk:
            print(f"[GAME] sunk ship(s): {sunk}")
        opp, own = client.opponent_board(), client.own_board()
        if opp and own:
            print("\n[Opponent Fleet]")
            opp.print_grid(reveal=False)
            print("\n[Your Fleet]")
            own.print_grid(reveal=True)
        print(f"[GAME] phase={state['phase']} turn={'you' if client.my_turn() else 'opponent'}")
    elif t == "game_ended":
        print(f"[GAME] winner: {obj['winner']}")
    elif t == "error":
        print(f"[ERROR] {obj['message']}")
    else:
        print(f"[{str(t).upper()}]")


def _recv_loop(client: GameClient, stop_evt: threading.Event) -> None:  # pragma: no cover
    while not stop_evt.is_set():
        try:
            obj = client.recv()
        except Exception:
            if not stop_evt.is_set():
                print("[INFO] Connection closed by server")
            stop_evt.set()
            return
        _render(client, obj)


def main() -> None:  # pragma: no cover – interactive
    parser = argparse.ArgumentParser(description="Armada console client")
    parser.add_argument("--host", default=_cfg.DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=_cfg.DEFAULT_PORT)
    parser.add_argument("--name", required=True, help="Display name shown in the lobby.")
    parser.add_argument("--secure", nargs="?", const="", default=None, metavar="HEX")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if _cfg.DEBUG else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    if args.secure is not None:
        enable_encryption(bytes.fromhex(args.secure) if args.secure else DEFAULT_KEY)

    client = GameClient(args.host, args.port, timeout=None)
    client.login(args.name)
    stop_evt = threading.Event()
    threading.Thread(target=_recv_loop, args=(client, stop_evt), daemon=True).start()

    try:
        while not stop_evt.is_set():
            line = input(">> ").strip()
            if not line:
                continue
            verb, _, rest = line.partition(" ")
            verb = verb.lower()
            if verb == "quit":
                break
            elif verb == "join" and rest:
                client.join(rest.strip())
            elif verb == "auto":
                client.place_random()
            elif verb == "fire" and rest:
                try:
                    row, col = parse_coordinate(rest)
                except ValueError as e:
                    print(f"[!] {e}")
                    continue
                if not client.my_turn():
                    print("[!] Not your turn")
                    continue
                result, sunk = client.fire(row, col)
                print(f"[SHOT] {format_coord(row, col)}: {result}" + (f" – sunk ship {sunk}" if sunk else ""))
            elif verb == "restart":
                client.restart()
            else:
                print("Commands: join <room> | auto | fire <coord> | restart | quit")
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        stop_evt.set()
        client.close()


if __name__ == "__main__":  # pragma: no cover
    main()

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from .board import Board, BoardFormatError
from .config import BOARD_SIZE


class CommandParseError(Exception):
    """Raised when an inbound object cannot be decoded into a valid command."""


@dataclass(frozen=True)
class LoginCommand:
    username: str


@dataclass(frozen=True)
class JoinGameCommand:
    game_id: str
    username: str | None = None


@dataclass(frozen=True)
class PlaceShipCommand:
    board: Board


@dataclass(frozen=True)
class MakeMoveCommand:
    board: Board | None = None
    row: int | None = None
    col: int | None = None


@dataclass(frozen=True)
class RestartGameCommand:
    pass


Command = Union[LoginCommand, JoinGameCommand, PlaceShipCommand, MakeMoveCommand, RestartGameCommand]


def _name(obj: dict, key: str, *, required: bool = True) -> str | None:
    value = obj.get(key)
    if value is None and not required:
        return None
    if not isinstance(value, str) or not value.strip():
        raise CommandParseError(f"{key} must be a non-empty string")
    return value


def _board(obj: dict) -> Board:
    if "board" not in obj:
        raise CommandParseError("board is required")
    try:
        return Board.from_wire(obj["board"])
    except BoardFormatError as e:
        raise CommandParseError(f"Invalid board: {e}") from e


def _index(obj: dict, key: str) -> int:
    value = obj.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < BOARD_SIZE:
        raise CommandParseError(f"{key} must be an integer in 0..{BOARD_SIZE - 1}")
    return value


def parse_command(obj: Any) -> Command:
    if not isinstance(obj, dict):
        raise CommandParseError("Command must be a JSON object")
    verb = obj.get("type")
    if verb == "login":
        return LoginCommand(username=_name(obj, "username"))
    elif verb == "join_game":
        game_id = obj.get("gameId")
        if isinstance(game_id, int) and not isinstance(game_id, bool):
            game_id = str(game_id)
        if not isinstance(game_id, str) or not game_id.strip():
            raise CommandParseError("gameId must be a non-empty string")
        return JoinGameCommand(game_id=game_id, username=_name(obj, "username", required=False))
    elif verb == "place_ship":
        return PlaceShipCommand(board=_board(obj))
    elif verb == "make_move":
        if obj.get("board") is not None:
            return MakeMoveCommand(board=_board(obj))
        if "row" in obj or "col" in obj:
            return MakeMoveCommand(row=_index(obj, "row"), col=_index(obj, "col"))
        raise CommandParseError("make_move requires a board or a row/col pair")
    elif verb == "restart_game":
        return RestartGameCommand()
    else:
        raise CommandParseError(f"Unknown command: {verb!r}")

"""Builders for every server → client payload.

Each helper returns a plain JSON-serialisable ``dict``; framing and
encoding are left to the channel that sends it.
"""

from __future__ import annotations

from typing import Any, Iterable

GAME_FULL = "Game is full"


def login_success(username: str) -> dict[str, Any]:
    return {"type": "login_success", "username": username}


def lobby_update(users: list[str], games: list[dict[str, Any]]) -> dict[str, Any]:
    return {"type": "lobby_update", "users": users, "games": games}


def joined(player_id: str, game_id: str, game_state: dict[str, Any], opponent: str | None = None) -> dict[str, Any]:
    msg = {"type": "joined", "playerId": player_id, "gameId": game_id, "gameState": game_state}
    if opponent is not None:
        msg["opponent"] = opponent
    return msg


def player_joined(opponent: str, game_state: dict[str, Any]) -> dict[str, Any]:
    return {"type": "player_joined", "opponent": opponent, "gameState": game_state}


def error(message: str) -> dict[str, Any]:
    return {"type": "error", "message": message}


def game_update(game_state: dict[str, Any], newly_sunk: Iterable[int] | None = None) -> dict[str, Any]:
    msg: dict[str, Any] = {"type": "game_update", "gameState": game_state}
    if newly_sunk is not None:
        msg["newlySunkShips"] = sorted(newly_sunk)
    return msg


def game_ended(winner: str) -> dict[str, Any]:
    return {"type": "game_ended", "winner": winner}


def opponent_disconnected() -> dict[str, Any]:
    return {"type": "opponent_disconnected"}


def game_restarted() -> dict[str, Any]:
    return {"type": "game_restarted"}

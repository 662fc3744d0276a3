"""Lightweight event model used by GameSession to decouple game logic from transport.

Sessions emit strongly-typed events; the router translates them into
wire-protocol messages for the seated players, and other subscribers
(e.g. logging or tests) can consume them without touching channels.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict


class Category(Enum):
    """High-level event categories."""

    SEAT = auto()  # players taking a seat or being refused one
    TURN = auto()  # placement, shots, game end, restart
    SYSTEM = auto()  # disconnect / teardown


@dataclass(slots=True)
class Event:
    """Event emitted by GameSession after a state transition."""

    category: Category
    type: str  # finer-grained identifier, e.g. "joined", "update", "ended"
    payload: Dict[str, Any] = field(default_factory=dict)

"""
board.py

Contains the data structures and pure helpers for a single Battleship board:
 - Cell / Board classes holding ship positions and hits
 - query helpers used by the session (ship count, sunk detection, shot diffing)
 - wire (de)serialisation to the ``[[{isShip, isHit, shipId}, ...], ...]`` JSON shape
 - placement and shot helpers used by clients that pre-compute boards

A board is a fixed 10x10 row-major matrix addressed as ``cells[row][col]``.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Iterator

from .config import BOARD_SIZE, SHIPS, ShipSpec

HORIZONTAL = 0
VERTICAL = 1


class BoardFormatError(ValueError):
    """Raised when a wire board is not a 10x10 matrix of cell objects."""


@dataclass(slots=True)
class Cell:
    is_ship: bool = False
    is_hit: bool = False
    ship_id: int | None = None

    def to_wire(self) -> dict[str, Any]:
        return {"isShip": self.is_ship, "isHit": self.is_hit, "shipId": self.ship_id}

    @classmethod
    def from_wire(cls, obj: Any) -> "Cell":
        if not isinstance(obj, dict):
            raise BoardFormatError(f"cell must be an object, got {type(obj).__name__}")
        ship_id = obj.get("shipId")
        if ship_id is not None and (isinstance(ship_id, bool) or not isinstance(ship_id, int)):
            raise BoardFormatError(f"shipId must be an integer or null, got {ship_id!r}")
        flags = {}
        for key in ("isShip", "isHit"):
            value = obj.get(key, False)
            if not isinstance(value, bool):
                raise BoardFormatError(f"{key} must be a boolean, got {value!r}")
            flags[key] = value
        return cls(is_ship=flags["isShip"], is_hit=flags["isHit"], ship_id=ship_id)


class Board:
    """
    Represents one player's fleet board.

    Unlike a classic hidden/display grid pair, every cell carries its full
    truth (ship membership and hit flag). Clients decide what to reveal; the
    server only ever stores, compares and forwards whole boards.
    """

    def __init__(self, size: int = BOARD_SIZE, cells: list[list[Cell]] | None = None):
        """Initialise an empty *size*x*size* board, or wrap pre-built *cells*."""
        self.size = size
        self.cells = cells if cells is not None else [[Cell() for _ in range(size)] for _ in range(size)]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Board):
            return NotImplemented
        return self.cells == other.cells

    def __iter__(self) -> Iterator[Cell]:
        for row in self.cells:
            yield from row

    def cell(self, row: int, col: int) -> Cell:
        return self.cells[row][col]

    def copy(self) -> "Board":
        return Board(self.size, [[Cell(c.is_ship, c.is_hit, c.ship_id) for c in row] for row in self.cells])

    # -------------------- queries --------------------

    def ship_ids(self) -> set[int]:
        """Distinct non-null ship ids present on the board."""
        return {c.ship_id for c in self if c.ship_id is not None}

    def count_distinct_ships(self) -> int:
        return len(self.ship_ids())

    def all_ships_sunk(self) -> bool:
        """Return True if every ship cell has been hit (vacuously True with no ships)."""
        return all(c.is_hit for c in self if c.is_ship)

    def is_ship_sunk(self, ship_id: int) -> bool:
        """Return True if every cell bearing *ship_id* has been hit."""
        return all(c.is_hit for c in self if c.ship_id == ship_id)

    def sunk_ships(self) -> set[int]:
        return {sid for sid in self.ship_ids() if self.is_ship_sunk(sid)}

    def hit_cells(self) -> set[tuple[int, int]]:
        return {(r, c) for r in range(self.size) for c in range(self.size) if self.cells[r][c].is_hit}

    # -------------------- placement --------------------

    def can_place_ship(self, row: int, col: int, ship_size: int, orientation: int) -> bool:
        """Return `True` if a ship of *ship_size* fits at (*row*,*col*) without overlap."""
        for r, c in _span(row, col, ship_size, orientation):
            if not (0 <= r < self.size and 0 <= c < self.size):
                return False
            if self.cells[r][c].is_ship:
                return False
        return True

    def place_ship(self, ship: ShipSpec, row: int, col: int, orientation: int) -> set[tuple[int, int]]:
        """Mutating helper that writes *ship* into the grid and returns the occupied set."""
        if not self.can_place_ship(row, col, ship.size, orientation):
            raise ValueError(f"Cannot place {ship.name} at ({row}, {col})")
        occupied = set()
        for r, c in _span(row, col, ship.size, orientation):
            self.cells[r][c] = Cell(is_ship=True, is_hit=False, ship_id=ship.id)
            occupied.add((r, c))
        return occupied

    def place_ships_randomly(self, ships: list[ShipSpec] = SHIPS, rng: random.Random | None = None) -> None:
        """Randomly position *ships* on the board without collisions."""
        rng = rng or random.Random()
        for ship in ships:
            while True:
                orientation = rng.randint(0, 1)
                row = rng.randint(0, self.size - 1)
                col = rng.randint(0, self.size - 1)
                if self.can_place_ship(row, col, ship.size, orientation):
                    self.place_ship(ship, row, col, orientation)
                    break

    # -------------------- shots --------------------

    def fire_at(self, row: int, col: int) -> tuple[str, int | None]:
        """Process a shot at (*row*,*col*) and return (result, sunk_ship_id)."""
        cell = self.cells[row][col]
        if cell.is_hit:
            return ("already_shot", None)
        cell.is_hit = True
        if not cell.is_ship:
            return ("miss", None)
        if cell.ship_id is not None and self.is_ship_sunk(cell.ship_id):
            return ("hit", cell.ship_id)
        return ("hit", None)

    # -------------------- wire format --------------------

    def to_wire(self) -> list[list[dict[str, Any]]]:
        return [[c.to_wire() for c in row] for row in self.cells]

    @classmethod
    def from_wire(cls, rows: Any, size: int = BOARD_SIZE) -> "Board":
        if not isinstance(rows, list) or len(rows) != size:
            raise BoardFormatError(f"board must be a list of {size} rows")
        cells = []
        for row in rows:
            if not isinstance(row, list) or len(row) != size:
                raise BoardFormatError(f"each board row must hold {size} cells")
            cells.append([Cell.from_wire(c) for c in row])
        return cls(size, cells)

    def print_grid(self, reveal: bool = True) -> None:
        """Pretty-print the board (ships shown only if *reveal*)."""
        print("  " + "".join(str(i + 1).rjust(3) for i in range(self.size)))
        for r, row in enumerate(self.cells):
            marks = []
            for c in row:
                if c.is_hit:
                    marks.append("X" if c.is_ship else "o")
                elif c.is_ship and reveal:
                    marks.append(str(c.ship_id) if c.ship_id is not None else "S")
                else:
                    marks.append(".")
            print(f"{chr(ord('A') + r):2} " + "".join(m.rjust(3) for m in marks))


def _span(row: int, col: int, ship_size: int, orientation: int) -> list[tuple[int, int]]:
    if orientation == HORIZONTAL:
        return [(row, c) for c in range(col, col + ship_size)]
    return [(r, col) for r in range(row, row + ship_size)]


# ---------------------------------------------------------------------------
# Module-level helpers used by the session state machine
# ---------------------------------------------------------------------------


def create_empty_board() -> Board:
    return Board()


def count_distinct_ships(board: Board) -> int:
    return board.count_distinct_ships()


def all_ships_sunk(board: Board) -> bool:
    return board.all_ships_sunk()


def is_ship_sunk(board: Board, ship_id: int) -> bool:
    return board.is_ship_sunk(ship_id)


def newly_sunk_ships(new_board: Board, old_board: Board) -> set[int]:
    """Ship ids sunk on *new_board* that were not already sunk on *old_board*.

    A ship id absent from *old_board* counts as not previously sunk.
    """
    before = old_board.sunk_ships()
    return {sid for sid in new_board.sunk_ships() if sid not in before}


def was_hit(new_board: Board, old_board: Board, row: int, col: int) -> bool:
    """True iff (*row*,*col*) is a ship cell that went from not-hit to hit."""
    new = new_board.cells[row][col]
    return new.is_ship and new.is_hit and not old_board.cells[row][col].is_hit


def shot_cells(new_board: Board, old_board: Board) -> list[tuple[int, int]]:
    """Cells whose hit flag turned on between *old_board* and *new_board*."""
    return sorted(new_board.hit_cells() - old_board.hit_cells())


def lost_hits(new_board: Board, old_board: Board) -> list[tuple[int, int]]:
    """Cells hit on *old_board* that are no longer hit on *new_board*."""
    return sorted(old_board.hit_cells() - new_board.hit_cells())


def parse_coordinate(coord_str: str) -> tuple[int, int]:
    """Translate a coordinate like 'B7' into a zero-based (row, col) tuple."""
    coord_str = coord_str.strip().upper()
    if len(coord_str) < 2 or not coord_str[0].isalpha() or not coord_str[1:].isdigit():
        raise ValueError(f"Invalid coordinate: {coord_str!r}")
    row = ord(coord_str[0]) - ord("A")
    col = int(coord_str[1:]) - 1
    if not (0 <= row < BOARD_SIZE and 0 <= col < BOARD_SIZE):
        raise ValueError(f"Coordinate out of range: {coord_str!r}")
    return (row, col)


def format_coord(row: int, col: int) -> str:
    """Convert zero-based (row, col) to a coordinate string like 'A1'."""
    return f"{chr(ord('A') + row)}{col + 1}"

"""Unit tests for the board model and its query helpers."""

from __future__ import annotations

import random

import pytest

from armada.board import (
    HORIZONTAL,
    VERTICAL,
    Board,
    BoardFormatError,
    Cell,
    all_ships_sunk,
    count_distinct_ships,
    create_empty_board,
    format_coord,
    is_ship_sunk,
    newly_sunk_ships,
    parse_coordinate,
    shot_cells,
    was_hit,
)
from armada.config import SHIPS
from tests.conftest import fleet_board


def test_empty_board_shape_and_cells() -> None:
    board = create_empty_board()
    assert len(board.cells) == 10
    assert all(len(row) == 10 for row in board.cells)
    assert all(c == Cell(False, False, None) for c in board)


def test_count_distinct_ships_empty_and_full() -> None:
    assert count_distinct_ships(create_empty_board()) == 0
    assert count_distinct_ships(fleet_board()) == len(SHIPS) == 5


def test_all_ships_sunk_is_vacuously_true_on_empty_board() -> None:
    assert all_ships_sunk(create_empty_board())


def test_all_ships_sunk_requires_every_ship_cell_hit() -> None:
    board = fleet_board()
    assert not all_ships_sunk(board)
    ship_cells = [(r, c) for r in range(10) for c in range(10) if board.cell(r, c).is_ship]
    for r, c in ship_cells[:-1]:
        board.fire_at(r, c)
    assert not all_ships_sunk(board)
    board.fire_at(*ship_cells[-1])
    assert all_ships_sunk(board)


def test_misses_do_not_affect_sunk_state() -> None:
    board = fleet_board()
    board.fire_at(9, 9)
    assert board.cell(9, 9).is_hit
    assert not all_ships_sunk(board)


def test_is_ship_sunk_tracks_single_ship() -> None:
    board = fleet_board()
    # Destroyer (id 5, size 2) lies on row 8, columns 0-1
    board.fire_at(8, 0)
    assert not is_ship_sunk(board, 5)
    result = board.fire_at(8, 1)
    assert result == ("hit", 5)
    assert is_ship_sunk(board, 5)
    assert not is_ship_sunk(board, 1)


def test_fire_at_results() -> None:
    board = fleet_board()
    assert board.fire_at(0, 0) == ("hit", None)
    assert board.fire_at(1, 0) == ("miss", None)
    assert board.fire_at(1, 0) == ("already_shot", None)


def test_newly_sunk_ships_only_reports_transitions() -> None:
    old = fleet_board()
    old.fire_at(8, 0)
    new = old.copy()
    new.fire_at(8, 1)
    assert newly_sunk_ships(new, old) == {5}
    # Already sunk in both: not new
    assert newly_sunk_ships(new, new.copy()) == set()


def test_was_hit_and_shot_cells() -> None:
    old = fleet_board()
    new = old.copy()
    new.fire_at(0, 2)
    new.fire_at(1, 5)
    assert shot_cells(new, old) == [(0, 2), (1, 5)]
    assert was_hit(new, old, 0, 2)
    assert not was_hit(new, old, 1, 5)  # water
    assert not was_hit(new, new, 0, 2)  # no transition


def test_copy_is_independent() -> None:
    board = fleet_board()
    clone = board.copy()
    clone.fire_at(0, 0)
    assert not board.cell(0, 0).is_hit
    assert clone != board


def test_can_place_ship_bounds_and_overlap() -> None:
    board = Board()
    assert board.can_place_ship(0, 5, 5, HORIZONTAL)
    assert not board.can_place_ship(0, 6, 5, HORIZONTAL)
    assert not board.can_place_ship(7, 0, 4, VERTICAL)
    board.place_ship(SHIPS[0], 0, 0, HORIZONTAL)
    assert not board.can_place_ship(0, 4, 2, VERTICAL)
    with pytest.raises(ValueError):
        board.place_ship(SHIPS[4], 0, 3, HORIZONTAL)


def test_place_ships_randomly_places_full_roster() -> None:
    board = Board()
    board.place_ships_randomly(rng=random.Random(7))
    assert board.count_distinct_ships() == 5
    for ship in SHIPS:
        assert sum(1 for c in board if c.ship_id == ship.id) == ship.size


def test_wire_roundtrip_preserves_cells() -> None:
    board = fleet_board()
    board.fire_at(0, 0)
    wire = board.to_wire()
    assert wire[0][0] == {"isShip": True, "isHit": True, "shipId": 1}
    assert wire[9][9] == {"isShip": False, "isHit": False, "shipId": None}
    assert Board.from_wire(wire) == board


def test_from_wire_accepts_missing_ship_id() -> None:
    rows = [[{"isShip": False, "isHit": False} for _ in range(10)] for _ in range(10)]
    assert Board.from_wire(rows) == create_empty_board()


@pytest.mark.parametrize(
    "rows",
    [
        None,
        [],
        [[{}] * 10] * 9,
        [[{}] * 9] * 10,
        [["x"] * 10] * 10,
        [[{"shipId": "1"}] * 10] * 10,
        [[{"shipId": True}] * 10] * 10,
        [[{"isShip": "false"}] * 10] * 10,
        [[{"isHit": 1}] * 10] * 10,
        [[{"isShip": None}] * 10] * 10,
    ],
)
def test_from_wire_rejects_malformed(rows) -> None:
    with pytest.raises(BoardFormatError):
        Board.from_wire(rows)


def test_parse_and_format_coordinate() -> None:
    assert parse_coordinate("A1") == (0, 0)
    assert parse_coordinate(" c10 ") == (2, 9)
    assert format_coord(9, 9) == "J10"
    for bad in ("K1", "A11", "A0", "1A", ""):
        with pytest.raises(ValueError):
            parse_coordinate(bad)

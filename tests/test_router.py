"""End-to-end command routing against in-memory channels."""

from __future__ import annotations

from armada.board import Board
from armada.registry import SessionRegistry
from armada.router import ConnectionRouter
from tests.conftest import RecordingChannel, fleet_board


def _latest_state(channel):
    for msg in reversed(channel.sent):
        if "gameState" in msg:
            return msg["gameState"]
    raise AssertionError(f"{channel.name} has no game state")


def _fire(router, conn, channel, role, row, col):
    """Pre-compute the opponent board client-side and submit it, as the web client does."""
    target_key = "player2Board" if role == "player1" else "player1Board"
    target = Board.from_wire(_latest_state(channel)[target_key])
    target.fire_at(row, col)
    router.handle(conn, {"type": "make_move", "board": target.to_wire()})


def test_full_match_scenario(router, player):
    alice, a_ch = player("alice")
    bob, b_ch = player("bob")
    assert a_ch.last("login_success") == {"type": "login_success", "username": "alice"}

    router.handle(alice, {"type": "join_game", "gameId": "room1", "username": "alice"})
    joined = a_ch.last("joined")
    assert joined["playerId"] == "player1"
    assert joined["gameId"] == "room1"
    assert "opponent" not in joined
    assert joined["gameState"]["player1Board"] == Board().to_wire()
    assert joined["gameState"]["phase"] == "placing"

    router.handle(bob, {"type": "join_game", "gameId": "room1", "username": "bob"})
    assert b_ch.last("joined")["playerId"] == "player2"
    assert b_ch.last("joined")["opponent"] == "alice"
    assert a_ch.last("player_joined")["opponent"] == "bob"

    router.handle(alice, {"type": "place_ship", "board": fleet_board().to_wire()})
    assert a_ch.last("game_update")["gameState"]["phase"] == "placing"
    router.handle(bob, {"type": "place_ship", "board": fleet_board().to_wire()})
    for ch in (a_ch, b_ch):
        state = ch.last("game_update")["gameState"]
        assert state["phase"] == "battle"
        assert state["currentTurn"] == "player1"
        assert state["gameStarted"] is True

    # alice misses: (9, 9) is water on the deterministic fleet
    _fire(router, alice, a_ch, "player1", 9, 9)
    update = b_ch.last("game_update")
    assert update["gameState"]["currentTurn"] == "player2"
    assert update["newlySunkShips"] == []

    # bob hits every ship cell of alice's fleet; hits keep the turn
    ship_cells = [(r, c) for r in range(10) for c in range(10) if fleet_board().cell(r, c).is_ship]
    for r, c in ship_cells:
        _fire(router, bob, b_ch, "player2", r, c)
        if (r, c) != ship_cells[-1]:
            assert b_ch.last("game_update")["gameState"]["currentTurn"] == "player2"

    for ch in (a_ch, b_ch):
        final = ch.last("game_update")
        assert final["gameState"]["phase"] == "ended"
        assert final["gameState"]["winner"] == "player2"
        assert final["newlySunkShips"] == [5]
        assert ch.game_types()[-2:] == ["game_update", "game_ended"]
        assert ch.last("game_ended") == {"type": "game_ended", "winner": "bob"}


def test_join_full_session_reports_error(router, player, battle):
    carol, c_ch = player("carol")
    _, a_ch, _, b_ch = battle
    router.handle(carol, {"type": "join_game", "gameId": "room1", "username": "carol"})
    assert c_ch.last("error") == {"type": "error", "message": "Game is full"}
    assert "joined" not in c_ch.types()
    # seated players only see the lobby refresh
    assert a_ch.game_types() == [] and b_ch.game_types() == []
    assert router.registry.get("room1").player2.identity == "bob"


def test_out_of_turn_fire_produces_nothing(router, battle):
    alice, a_ch, bob, b_ch = battle
    target = fleet_board()
    target.fire_at(0, 0)
    router.handle(bob, {"type": "make_move", "board": target.to_wire()})
    assert a_ch.sent == [] and b_ch.sent == []
    assert not router.registry.get("room1").boards["player1"].cell(0, 0).is_hit


def test_commands_without_session_are_dropped(router, player):
    alice, a_ch = player("alice")
    a_ch.clear()
    router.handle(alice, {"type": "place_ship", "board": fleet_board().to_wire()})
    router.handle(alice, {"type": "make_move", "row": 0, "col": 0})
    router.handle(alice, {"type": "restart_game"})
    assert a_ch.sent == []
    assert len(router.registry) == 0


def test_malformed_commands_are_dropped(router, player, battle):
    alice, a_ch, _, b_ch = battle
    for bad in ({"type": "nope"}, {"type": "place_ship", "board": "x"}, "garbage", {"username": "x"}):
        router.handle(alice, bad)
    assert a_ch.sent == [] and b_ch.sent == []


def test_restart_broadcasts_reset_and_notice(router, battle):
    alice, a_ch, bob, b_ch = battle
    router.handle(bob, {"type": "restart_game"})
    for ch in (a_ch, b_ch):
        assert ch.game_types() == ["game_update", "game_restarted"]
        state = ch.last("game_update")["gameState"]
        assert state["phase"] == "placing"
        assert state["isPlacingShips"] is True
        assert state["currentTurn"] == "player1"
        assert state["winner"] is None
        assert state["player1Board"] == Board().to_wire()


def test_restart_with_only_player1(router, player):
    alice, a_ch = player("alice")
    router.handle(alice, {"type": "join_game", "gameId": "solo"})
    a_ch.clear()
    router.handle(alice, {"type": "restart_game"})
    assert a_ch.game_types() == ["game_update", "game_restarted"]


def test_disconnect_mid_battle_tears_down(router, battle):
    alice, a_ch, bob, b_ch = battle
    router.disconnect(alice)
    assert "room1" not in router.registry
    assert b_ch.game_types() == ["opponent_disconnected"]
    assert a_ch.sent == []
    assert b_ch.last("lobby_update") == {"type": "lobby_update", "users": ["bob"], "games": []}


def test_survivor_cannot_act_on_torn_down_session(router, player, battle):
    alice, a_ch, bob, b_ch = battle
    router.disconnect(alice)
    b_ch.clear()
    router.handle(bob, {"type": "restart_game"})
    assert b_ch.sent == []
    # the room code is free again and the survivor may start over
    router.handle(bob, {"type": "join_game", "gameId": "room1"})
    assert b_ch.last("joined")["playerId"] == "player1"


def test_disconnect_before_opponent_joins(router, player):
    alice, a_ch = player("alice")
    router.handle(alice, {"type": "join_game", "gameId": "room9"})
    router.disconnect(alice)
    assert len(router.registry) == 0


def test_disconnect_tears_down_every_session_the_channel_sits_in(router, player):
    alice, _ = player("alice")
    router.handle(alice, {"type": "join_game", "gameId": "a"})
    router.handle(alice, {"type": "join_game", "gameId": "b"})
    assert len(router.registry) == 2
    router.disconnect(alice)
    assert len(router.registry) == 0


def test_rejoining_own_session_is_ignored(router, player):
    alice, a_ch = player("alice")
    router.handle(alice, {"type": "join_game", "gameId": "room1"})
    a_ch.clear()
    router.handle(alice, {"type": "join_game", "gameId": "room1"})
    assert a_ch.sent == []
    assert router.registry.get("room1").player2 is None


def test_join_uses_login_name_when_command_omits_it(router, player):
    alice, a_ch = player("alice")
    router.handle(alice, {"type": "join_game", "gameId": "r"})
    assert router.registry.get("r").player1.identity == "alice"


def test_join_without_any_name_is_dropped(router):
    ch = RecordingChannel("anon")
    conn = router.connect(ch)
    router.handle(conn, {"type": "join_game", "gameId": "r"})
    assert ch.sent == []
    assert len(router.registry) == 0


def test_hardened_fire_through_router(router, battle):
    alice, a_ch, bob, b_ch = battle
    router.handle(alice, {"type": "make_move", "row": 0, "col": 0})
    state = b_ch.last("game_update")["gameState"]
    assert state["player2Board"][0][0]["isHit"] is True
    assert state["currentTurn"] == "player1"


def test_independent_routers_share_nothing():
    r1 = ConnectionRouter(SessionRegistry())
    r2 = ConnectionRouter(SessionRegistry())
    ch = RecordingChannel("alice")
    conn = r1.connect(ch)
    r1.handle(conn, {"type": "login", "username": "alice"})
    r1.handle(conn, {"type": "join_game", "gameId": "room1"})
    assert "room1" in r1.registry
    assert "room1" not in r2.registry
    assert r2.lobby.users() == []

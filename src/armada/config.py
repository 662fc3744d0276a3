"""Central configuration for runtime-tunable parameters.

All constants can be overridden via environment variables so that the
server runs with sensible defaults in production while the automated
test-suite can point it at an ephemeral port or switch on debug output.
"""

from __future__ import annotations

import os
from typing import NamedTuple


# ===========================================================================
# Network Defaults
# ===========================================================================
# ARMADA_HOST: Default host address for the server to bind to and clients to connect to.
#   Defaults to "127.0.0.1".
#   Example: export ARMADA_HOST=0.0.0.0
DEFAULT_HOST: str = os.getenv("ARMADA_HOST", "127.0.0.1")

# ARMADA_PORT: Default port for the server to listen on and clients to connect to.
#   Defaults to 61337.
#   Example: export ARMADA_PORT=5001
DEFAULT_PORT: int = int(os.getenv("ARMADA_PORT", "61337"))

# ARMADA_MAX_PAYLOAD: Largest accepted frame payload in bytes.
#   A full game_update carries two 10x10 boards, well under the 1 MiB default.
MAX_PAYLOAD: int = int(os.getenv("ARMADA_MAX_PAYLOAD", str(1024 * 1024)))

# ARMADA_SEND_QUEUE: Frames that may wait for one slow peer before the server
#   treats it as gone and closes its connection.
#   Defaults to 256.
SEND_QUEUE: int = int(os.getenv("ARMADA_SEND_QUEUE", "256"))


# ===========================================================================
# Game Rules
# ===========================================================================
# ARMADA_AUTHORITATIVE_FIRE: If "1", make_move must carry a coordinate and the
#   server applies the shot to its own copy of the opponent board. Boards
#   submitted by the firing client are then ignored.
#   Defaults to "0" (the client pre-computes the opponent board and the server
#   accepts it verbatim).
AUTHORITATIVE_FIRE: bool = os.getenv("ARMADA_AUTHORITATIVE_FIRE", "0") == "1"

# ARMADA_LOCK_PLACEMENT: If "1", place_ship is only honoured while the session
#   is still placing; later submissions are ignored. If "0", every submission
#   from a seated player overwrites that player's board in any phase.
#   Defaults to "1".
LOCK_PLACEMENT: bool = os.getenv("ARMADA_LOCK_PLACEMENT", "1") == "1"

# Width and height of every board. Fixed: clients lay out a 10x10 grid.
BOARD_SIZE: int = 10


class ShipSpec(NamedTuple):
    id: int
    name: str
    size: int


# Standard ship roster shared with clients. Not overridden by env vars.
SHIPS: list[ShipSpec] = [
    ShipSpec(1, "Carrier", 5),
    ShipSpec(2, "Battleship", 4),
    ShipSpec(3, "Cruiser", 3),
    ShipSpec(4, "Submarine", 3),
    ShipSpec(5, "Destroyer", 2),
]


# ===========================================================================
# Debugging and Logging
# ===========================================================================
# ARMADA_DEBUG: If "1", enables detailed debug logging across modules.
#   Defaults to "0" (disabled).
#   Example: export ARMADA_DEBUG=1
DEBUG: bool = os.getenv("ARMADA_DEBUG", "0") == "1"


# ===========================================================================
# Cryptography Defaults
# ===========================================================================
# ARMADA_KEY: AES key as a hex string, used when the server or client runs
#   with --secure and no explicit key.
#   Defaults to "00112233445566778899AABBCCDDEEFF".
DEFAULT_KEY_HEX: str = os.getenv("ARMADA_KEY", "00112233445566778899AABBCCDDEEFF")
DEFAULT_KEY: bytes = bytes.fromhex(DEFAULT_KEY_HEX)

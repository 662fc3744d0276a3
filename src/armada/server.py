"""Armada lobby/game server entry point.

Accepts TCP clients, gives each one a reader thread, and hands every decoded
message to a single :class:`ConnectionRouter`.  The router serialises all
command handling, so sessions never see two commands at once.
"""

from __future__ import annotations

import argparse
import contextlib
import logging
import signal
import socket
import sys
import threading

from . import config as _cfg
from .channel import SocketChannel
from .common import CrcError, FrameError, enable_encryption, DEFAULT_KEY
from .router import ConnectionRouter

logger = logging.getLogger(__name__)


class ArmadaServer:
    """Threaded TCP front-end for a ConnectionRouter."""

    def __init__(self, host: str = _cfg.DEFAULT_HOST, port: int = _cfg.DEFAULT_PORT, router: ConnectionRouter | None = None):
        self.router = router if router is not None else ConnectionRouter()
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind((host, port))
        self._sock.listen()
        self.address = self._sock.getsockname()
        self._stopping = threading.Event()
        self._channels: set[SocketChannel] = set()
        self._channels_lock = threading.Lock()

    def serve_forever(self) -> None:
        logger.info("Armada server listening on %s:%s", *self.address[:2])
        try:
            while not self._stopping.is_set():
                try:
                    conn, addr = self._sock.accept()
                except OSError:
                    if self._stopping.is_set():
                        break
                    raise
                logger.info("Connection from %s", addr)
                threading.Thread(target=self._serve_connection, args=(conn,), daemon=True).start()
        finally:
            self.close()

    def _serve_connection(self, sock: socket.socket) -> None:
        # Enable TCP keepalive to detect dead peers promptly
        with contextlib.suppress(OSError):
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        channel = SocketChannel(sock)
        with self._channels_lock:
            self._channels.add(channel)
        conn = self.router.connect(channel)
        try:
            while True:
                try:
                    obj = channel.receive()
                except CrcError as e:
                    logger.warning("Dropping corrupt frame from %s: %s", channel.name, e)
                    continue
                except (FrameError, OSError, ValueError) as e:
                    logger.debug("Reader for %s stopping: %s", channel.name, e)
                    break
                try:
                    self.router.handle(conn, obj)
                except Exception:
                    logger.exception("Unhandled error while processing message from %s", channel.name)
        finally:
            self.router.disconnect(conn)
            channel.close()
            with self._channels_lock:
                self._channels.discard(channel)
            logger.info("Connection %s closed", channel.name)

    def shutdown(self) -> None:
        """Stop accepting and unblock serve_forever()."""
        self._stopping.set()
        with contextlib.suppress(OSError):
            self._sock.shutdown(socket.SHUT_RDWR)
        self._sock.close()

    def close(self) -> None:
        self.shutdown()
        with self._channels_lock:
            channels = list(self._channels)
        for channel in channels:
            channel.close()


def main() -> None:  # pragma: no cover – side-effect entrypoint
    """Run the lobby server until interrupted."""
    parser = argparse.ArgumentParser(description="Armada Battleship server")
    parser.add_argument("--host", default=_cfg.DEFAULT_HOST, help="Address to bind.")
    parser.add_argument("--port", type=int, default=_cfg.DEFAULT_PORT, help="Port to listen on.")
    parser.add_argument(
        "--secure",
        nargs="?",
        const="",
        default=None,
        metavar="HEX",
        help="Encrypt frames with AES-GCM (optionally give the key as hex).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity.")
    parser.add_argument("-q", "--quiet", dest="quiet", action="store_true", help="Only log errors.")
    args = parser.parse_args()

    # Determine log level from CLI flags
    if args.quiet:
        level = logging.ERROR
    elif args.debug or _cfg.DEBUG:
        level = logging.DEBUG
    elif args.verbose >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.secure is not None:
        enable_encryption(bytes.fromhex(args.secure) if args.secure else DEFAULT_KEY)
        logger.info("AES-GCM encryption ENABLED")

    server = ArmadaServer(args.host, args.port)

    def _shutdown(signum, frame):
        # ensure the "^C" echo doesn't get stuck on our log line
        sys.stderr.write("\n")
        logger.info("Received signal %s, shutting down", signum)
        server.shutdown()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    server.serve_forever()


if __name__ == "__main__":  # pragma: no cover
    main()

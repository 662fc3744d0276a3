"""
Transport channel wrapping one accepted client socket
–––––––––––––––––––––––––––––––––––––––––––––––––––––
• send()    – frame one JSON message and queue it; False if the peer has gone
• receive() – block for the next decoded message (FrameError / EOF propagate)
• close()   – flush what is queued, then shut the socket down once

Writes happen on a per-channel writer thread fed by a bounded queue, so a
caller (usually the router, holding its global lock) never blocks on a slow
peer.  A peer that lets the queue fill up is treated as dead: the socket is
shut down, its reader sees EOF and the normal close path runs.
"""

from __future__ import annotations

import contextlib
import itertools
import logging
import queue
import socket
import threading
from typing import Any

from . import config as _cfg
from .common import FrameError, PacketType, pack, recv_pkt

logger = logging.getLogger(__name__)

_CLOSE = None  # sentinel: writer drains up to here, then shuts the socket


class SocketChannel:
    """Full-duplex framed JSON channel over a connected socket."""

    def __init__(self, sock: socket.socket, name: str | None = None, *, max_queue: int | None = None) -> None:
        self.sock = sock
        self.name = name or _peer_name(sock)
        self._reader = sock.makefile("rb")
        self._writer = sock.makefile("wb")
        self._seq = itertools.count()
        self._lock = threading.Lock()
        self._outbox: queue.Queue[bytes | None] = queue.Queue(maxsize=max_queue or _cfg.SEND_QUEUE)
        self._torn_down = False
        self.closed = False
        self._writer_thread = threading.Thread(target=self._drain, name=f"writer-{self.name}", daemon=True)
        self._writer_thread.start()

    def __repr__(self) -> str:
        return f"<SocketChannel {self.name}>"

    def send(self, obj: Any, ptype: PacketType = PacketType.GAME) -> bool:
        with self._lock:
            if self.closed:
                return False
            seq = next(self._seq)
            try:
                frame = pack(ptype, seq, obj)
            except (FrameError, TypeError, ValueError):
                logger.exception("send() failed – %s seq=%d", self.name, seq)
                return False
            try:
                self._outbox.put_nowait(frame)
            except queue.Full:
                logger.warning("send() – %s stopped reading (%d frames queued); dropping it", self.name, self._outbox.qsize())
                self.closed = True
                stalled = True
            else:
                stalled = False
                logger.debug("send() – %s ptype=%s seq=%d type=%s", self.name, ptype.name, seq, obj.get("type") if isinstance(obj, dict) else None)
        if stalled:
            self._abort()
            return False
        return True

    def receive(self) -> Any:
        """Return the next decoded JSON message from the peer."""
        ptype, seq, obj = recv_pkt(self._reader)
        logger.debug("receive() – %s ptype=%s seq=%d", self.name, ptype.name, seq)
        return obj

    def close(self) -> None:
        with self._lock:
            if self.closed:
                return
            self.closed = True
            try:
                self._outbox.put_nowait(_CLOSE)
            except queue.Full:
                drained = False
            else:
                drained = True
        if not drained:
            self._abort()

    # ------------------------------------------------------------------
    # Writer side
    # ------------------------------------------------------------------
    def _drain(self) -> None:
        try:
            while True:
                frame = self._outbox.get()
                if frame is _CLOSE:
                    break
                self._writer.write(frame)
                self._writer.flush()
        except (OSError, ValueError) as e:
            # peer closed or reset, or the socket was aborted under us
            logger.debug("writer for %s stopping: %s", self.name, e)
            with self._lock:
                self.closed = True
        finally:
            self._teardown()

    def _abort(self) -> None:
        """Shut the socket down without flushing; unblocks both reader and writer."""
        with contextlib.suppress(OSError):
            self.sock.shutdown(socket.SHUT_RDWR)
        # wake a writer idling on an empty queue
        with contextlib.suppress(queue.Full):
            self._outbox.put_nowait(_CLOSE)

    def _teardown(self) -> None:
        with self._lock:
            if self._torn_down:
                return
            self._torn_down = True
        with contextlib.suppress(OSError):
            self.sock.shutdown(socket.SHUT_RDWR)
        for f in (self._reader, self._writer):
            with contextlib.suppress(OSError, ValueError):
                f.close()
        self.sock.close()


def _peer_name(sock: socket.socket) -> str:
    try:
        peer = sock.getpeername()
    except OSError:
        return f"fd{sock.fileno()}"
    if isinstance(peer, tuple) and len(peer) >= 2:
        return f"{peer[0]}:{peer[1]}"
    return str(peer) or f"fd{sock.fileno()}"

# Copyright 2021-2025, Francis Clairicia-Rose-Claire-Josephine
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
#
"""Platform-neutral system call bindings.

Every per-platform difference (SIGPIPE suppression, ``timeval`` layout, non-blocking receive)
is resolved here, once.
"""

from __future__ import annotations

__all__ = [
    "SEND_FLAGS",
    "accept",
    "disable_sigpipe",
    "get_timeval_struct",
    "pack_timeout",
    "recv_into_nowait",
    "select",
]

import logging
import math
import os
import select as _select
import socket as _socket
import sys
from struct import Struct
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from _typeshed import WriteableBuffer

    from .fdset import FDSet

# Linux and most BSDs suppress SIGPIPE per call.
SEND_FLAGS: Final[int] = getattr(_socket, "MSG_NOSIGNAL", 0)

_RECV_DONTWAIT: Final[int] = getattr(_socket, "MSG_DONTWAIT", 0)

# macOS only has the socket option. The socket module does not export it.
_SO_NOSIGPIPE: Final[int | None] = getattr(_socket, "SO_NOSIGPIPE", 0x1022 if sys.platform == "darwin" else None)

if os.name == "nt":  # Windows
    # https://learn.microsoft.com/en-us/windows/win32/winsock/sol-socket-socket-options
    # SO_RCVTIMEO and SO_SNDTIMEO take a DWORD in milliseconds
    _timeval_struct = Struct("@I")
elif sys.platform == "darwin":
    # suseconds_t is a 32-bit integer, followed by padding
    _timeval_struct = Struct("@li4x")
else:  # Unix
    # https://manpages.debian.org/bookworm/manpages-dev/timeval.3type.en.html
    _timeval_struct = Struct("@ll")


def get_timeval_struct() -> Struct:
    """
    Returns a :class:`~struct.Struct` representation of the structure expected by ``SO_RCVTIMEO`` and ``SO_SNDTIMEO``.

    The format of the returned struct may vary depending on the operating system.
    """
    return _timeval_struct


def pack_timeout(milliseconds: int) -> bytes:
    """Converts a timeout in milliseconds to the native ``SO_RCVTIMEO``/``SO_SNDTIMEO`` value."""
    if milliseconds < 0:
        raise ValueError("Invalid timeout: negative value")
    timeval = get_timeval_struct()
    if os.name == "nt":
        return timeval.pack(milliseconds)
    seconds, milliseconds = divmod(milliseconds, 1000)
    return timeval.pack(seconds, milliseconds * 1000)


def disable_sigpipe(sock: _socket.socket) -> None:
    """Prevents `sock` from raising SIGPIPE where the platform does it with a socket option."""
    if _SO_NOSIGPIPE is None:
        return
    sock.setsockopt(_socket.SOL_SOCKET, _SO_NOSIGPIPE, 1)


def accept(sock: _socket.socket) -> tuple[_socket.socket, Any]:
    """
    Calls :meth:`socket.socket.accept`, retrying when the call is interrupted.
    """
    while True:
        try:
            return sock.accept()
        except InterruptedError:
            logger = logging.getLogger(__name__)
            logger.debug("accept() on fd=%d interrupted, retrying", sock.fileno())
            continue


def recv_into_nowait(sock: _socket.socket, buffer: WriteableBuffer) -> int:
    """
    Calls :meth:`socket.socket.recv_into` without blocking, regardless of the socket's blocking mode.

    Raises:
        BlockingIOError: No data is immediately available.
    """
    if _RECV_DONTWAIT:
        return sock.recv_into(buffer, 0, _RECV_DONTWAIT)
    # No MSG_DONTWAIT (Windows): poll the descriptor first.
    readable, _, _ = _select.select([sock], [], [], 0)
    if not readable:
        raise BlockingIOError
    return sock.recv_into(buffer)


def select(readers: FDSet | None, writers: FDSet | None, timeout: float | None) -> int:
    """
    Native ``select()`` over :class:`.FDSet` bitmaps.

    On return, the sets only contain the ready descriptors.

    Parameters:
        readers: descriptors to check for reading.
        writers: descriptors to check for writing.
        timeout: maximum seconds to wait. :data:`None` blocks until a descriptor is ready.

    Returns:
        the number of bits set, like the native call.
    """
    if timeout is not None:
        if math.isnan(timeout):
            raise ValueError("Invalid delay: NaN (not a number)")
        timeout = max(timeout, 0.0)

    rlist: list[int] = list(readers) if readers is not None else []
    wlist: list[int] = list(writers) if writers is not None else []

    ready_r, ready_w, _ = _select.select(rlist, wlist, [], timeout)

    if readers is not None:
        readers.zero()
        for fd in ready_r:
            readers.add(fd)
    if writers is not None:
        writers.zero()
        for fd in ready_w:
            writers.add(fd)
    return len(ready_r) + len(ready_w)

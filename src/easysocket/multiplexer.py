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
"""Readiness multiplexer module."""

from __future__ import annotations

__all__ = [
    "check_status",
    "poll",
    "wait",
]

from collections.abc import Sequence
from typing import TYPE_CHECKING

from . import _syscalls, _utils, constants
from .exceptions import ErrorCode, SocketError
from .fdset import FDSet

if TYPE_CHECKING:
    from .socket import Socket


def _select_timeout(timeout: int, wait_forever: bool) -> float | None:
    if wait_forever:
        return None
    return _utils.validate_timeout_milliseconds(timeout) / 1000


def _new_fdset(fds: Sequence[int]) -> FDSet:
    # Windows socket handles are not small integers.
    return FDSet(fds, size=max(constants.FD_SETSIZE, max(fds, default=-1) + 1))


def wait(sockets: Sequence[Socket], timeout: int, wait_forever: bool = False) -> list[Socket] | None:
    """
    Waits until at least one of `sockets` has data to read.

    A socket which still holds unread bytes in its read storage is reported as ready without waiting.

    Parameters:
        sockets: the sockets to monitor. Each one must be connected, listening or bound.
        timeout: maximum time to wait, in milliseconds. ``0`` returns immediately.
        wait_forever: if :data:`True`, `timeout` is ignored and the call blocks until a socket is ready.

    Raises:
        SocketError: a socket is closed (:attr:`.ErrorCode.BAD_DESCRIPTOR`), has no signature
                     (:attr:`.ErrorCode.MISSING_SIGNATURE`), or is not active (:attr:`.ErrorCode.NOT_ACTIVE`).
        SocketError: the native call failed (:attr:`.ErrorCode.SELECT_FAILED`).

    Returns:
        the ready sockets, in the order of `sockets`, or :data:`None` if the timeout expired.
    """
    for socket in sockets:
        if socket.socketfd == constants.INVALID_DESCRIPTOR:
            raise SocketError(ErrorCode.BAD_DESCRIPTOR)
        if socket.signature is None:
            raise SocketError(ErrorCode.MISSING_SIGNATURE)
        if not socket.is_active and not socket.signature.is_bound:
            raise SocketError(ErrorCode.NOT_ACTIVE)

    select_timeout = _select_timeout(timeout, wait_forever)
    if any(socket.buffered_bytes for socket in sockets):
        select_timeout = 0.0

    readers = _new_fdset([socket.socketfd for socket in sockets])
    try:
        _syscalls.select(readers, None, select_timeout)
    except (OSError, ValueError) as exc:
        raise SocketError(ErrorCode.SELECT_FAILED, _utils.error_reason(exc)) from exc

    ready = [socket for socket in sockets if socket.buffered_bytes or socket.socketfd in readers]
    if not ready:
        return None
    return ready


def poll(fd: int, wait_forever: bool = False, timeout: int = 0, *, read: bool = True, write: bool = True) -> tuple[bool, bool]:
    """
    Checks if the descriptor `fd` is readable and/or writable.

    Parameters:
        fd: the descriptor to check.
        wait_forever: if :data:`True`, blocks until the descriptor is ready for one of the watched operations.
        timeout: maximum time to wait, in milliseconds. ``0`` returns immediately.
        read: watch for readability. If :data:`False`, the returned readable flag is always :data:`False`.
        write: watch for writability. If :data:`False`, the returned writable flag is always :data:`False`.

    Raises:
        SocketError: the native call failed (:attr:`.ErrorCode.SELECT_FAILED`).

    Returns:
        a pair of (readable, writable).
    """
    select_timeout = _select_timeout(timeout, wait_forever)
    readers = _new_fdset([fd]) if read else None
    writers = _new_fdset([fd]) if write else None
    try:
        _syscalls.select(readers, writers, select_timeout)
    except (OSError, ValueError) as exc:
        # ValueError: descriptor out of range for select().
        raise SocketError(ErrorCode.SELECT_FAILED, _utils.error_reason(exc)) from exc
    return readers is not None and fd in readers, writers is not None and fd in writers


def check_status(sockets: Sequence[Socket]) -> tuple[list[Socket], list[Socket]]:
    """
    Checks, without waiting, which of `sockets` are readable and which are writable.

    Returns:
        a pair of lists (readables, writables).
    """
    readables: list[Socket] = []
    writables: list[Socket] = []
    for socket in sockets:
        readable, writable = socket.is_readable_or_writable()
        if readable:
            readables.append(socket)
        if writable:
            writables.append(socket)
    return readables, writables

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
from __future__ import annotations

__all__ = [
    "WarnCallback",
    "check_real_socket_state",
    "error_from_errno",
    "error_reason",
    "is_closed_socket_error",
    "validate_buffer_size",
    "validate_port",
    "validate_timeout_milliseconds",
]

import os
import socket as _socket
from abc import abstractmethod
from typing import Any, Protocol

from . import constants


def error_from_errno(errno: int, msg: str | None = None) -> OSError:
    if msg is None:
        msg = os.strerror(errno)
    return OSError(errno, msg)


def error_reason(exc: BaseException) -> str:
    """Returns the message to use as :attr:`.SocketError.reason` for `exc`."""
    match exc:
        case OSError(strerror=str(strerror)) if strerror:
            return strerror
        case OSError(errno=int(errno)) if errno:
            return os.strerror(errno)
        case _:
            return str(exc) or type(exc).__name__


def is_closed_socket_error(exc: OSError) -> bool:
    return exc.errno in constants.CLOSED_SOCKET_ERRNOS


def check_real_socket_state(socket: _socket.socket, error_msg: str | None = None) -> None:
    """Verify socket saved error and raise OSError if there is one

    There are some functions such as socket.connect_ex() which do not immediately fail and save the errno
    in SO_ERROR socket option because the error spawns after the action was sent to the kernel.
    """
    if socket.fileno() < 0:
        return
    errno = socket.getsockopt(_socket.SOL_SOCKET, _socket.SO_ERROR)
    if errno != 0:
        # The SO_ERROR is automatically reset to zero after getting the value
        raise error_from_errno(errno, error_msg)


def validate_port(port: int, *, allow_zero: bool) -> bool:
    if not isinstance(port, int):
        raise TypeError(f"Expected an integer, got {port!r}")
    if port == 0:
        return allow_zero
    return 0 < port <= 65535


def validate_timeout_milliseconds(timeout: int) -> int:
    if not isinstance(timeout, int):
        raise TypeError(f"Expected an integer number of milliseconds, got {timeout!r}")
    if timeout < 0:
        raise ValueError("Invalid timeout: negative value")
    return timeout


def validate_buffer_size(size: int) -> int:
    if not isinstance(size, int):
        raise TypeError(f"Expected an integer, got {size!r}")
    if size <= 0:
        raise ValueError("buffer size must be a positive integer")
    return size


class WarnCallback(Protocol):
    @abstractmethod
    def __call__(
        self,
        /,
        message: str,
        category: type[Warning] | None = None,
        stacklevel: int = 1,
        source: Any | None = None,
    ) -> None: ...

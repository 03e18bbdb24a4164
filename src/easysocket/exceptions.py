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
"""Exceptions definition module.

Here are all the exception classes defined and used by the library.
"""

from __future__ import annotations

__all__ = [
    "DelegateError",
    "DelegateRetryNeeded",
    "ErrorCode",
    "SocketError",
]

import enum
from typing import Self


@enum.unique
class ErrorCode(enum.IntEnum):
    """
    Error codes carried by :class:`SocketError`.

    The values form a dense negative range, from :attr:`UNABLE_TO_CREATE_SOCKET` (``-9999``)
    to :attr:`MISSING_SIGNATURE` (``-9965``).
    """

    UNABLE_TO_CREATE_SOCKET = -9999
    BAD_DESCRIPTOR = -9998
    ALREADY_CONNECTED = -9997
    NOT_CONNECTED = -9996
    NOT_LISTENING = -9995
    ACCEPT_FAILED = -9994
    SETSOCKOPT_FAILED = -9993
    BIND_FAILED = -9992
    INVALID_HOSTNAME = -9991
    INVALID_PORT = -9990
    GETADDRINFO_FAILED = -9989
    CONNECT_FAILED = -9988
    MISSING_CONNECTION_DATA = -9987
    SELECT_FAILED = -9986
    LISTEN_FAILED = -9985
    INVALID_BUFFER = -9984
    INVALID_BUFFER_SIZE = -9983
    RECV_FAILED = -9982
    RECV_BUFFER_TOO_SMALL = -9981
    WRITE_FAILED = -9980
    GET_FCNTL_FAILED = -9979
    SET_FCNTL_FAILED = -9978
    NOT_IMPLEMENTED = -9977
    NOT_SUPPORTED_YET = -9976
    BAD_SIGNATURE_PARAMETERS = -9975
    INTERNAL = -9974
    WRONG_PROTOCOL = -9973
    NOT_ACTIVE = -9972
    CONNECTION_RESET = -9971
    SET_RECV_TIMEOUT_FAILED = -9970
    SET_WRITE_TIMEOUT_FAILED = -9969
    CONNECT_TIMEOUT = -9968
    GETSOCKOPT_FAILED = -9967
    INVALID_DELEGATE_CALL = -9966
    MISSING_SIGNATURE = -9965


class SocketError(Exception):
    """
    Error raised by every :class:`~easysocket.socket.Socket` operation.

    When the failure comes from the operating system, the original :exc:`OSError` is available
    through ``__cause__`` and its message is used as :attr:`reason`.
    """

    def __init__(self, code: int, reason: str | None = None, *, buffer_size_needed: int = 0) -> None:
        """
        Parameters:
            code: The error code. See :class:`ErrorCode`.
            reason: The reason for the error, if available.
            buffer_size_needed: The buffer size needed to complete a read.
        """

        try:
            code = ErrorCode(code)
        except ValueError:
            # Codes forwarded by a delegate are kept as is.
            pass

        super().__init__(code, reason)

        self.code: int = code
        """The error code."""

        self.reason: str | None = reason
        """The reason for the error, if available."""

        self.buffer_size_needed: int = buffer_size_needed
        """The buffer size needed to complete the read. Only set for :attr:`ErrorCode.RECV_BUFFER_TOO_SMALL`."""

    def __str__(self) -> str:
        reason = self.reason if self.reason is not None else "Reason: Unavailable"
        return f"Error code: {int(self.code)}(0x{int(self.code):X}), {reason}"

    @classmethod
    def buffer_too_small(cls, buffer_size_needed: int) -> Self:
        """
        Builds the error raised when a caller's buffer cannot hold the bytes already read.

        Parameters:
            buffer_size_needed: The number of bytes waiting in the read storage.
        """
        return cls(ErrorCode.RECV_BUFFER_TOO_SMALL, None, buffer_size_needed=buffer_size_needed)

    @classmethod
    def from_delegate_error(cls, error: DelegateError) -> Self:
        """
        Maps an error reported by a :class:`~easysocket.delegate.SocketDelegate` into the socket error namespace.

        The delegate's code and reason are kept unchanged.
        """
        return cls(error.code, error.reason)


class DelegateError(Exception):
    """Error raised by a :class:`~easysocket.delegate.SocketDelegate` implementation."""

    def __init__(self, code: int, reason: str) -> None:
        """
        Parameters:
            code: A delegate-specific error code.
            reason: Error message.
        """

        super().__init__(code, reason)

        self.code: int = code
        """A delegate-specific error code."""

        self.reason: str = reason
        """Error message."""

    def __str__(self) -> str:
        return self.reason


class DelegateRetryNeeded(DelegateError):
    """
    Raised by :meth:`~easysocket.delegate.SocketDelegate.send` or :meth:`~easysocket.delegate.SocketDelegate.recv_into`
    when the underlying socket is not ready yet.

    The socket waits for the descriptor to become ready and calls the delegate again.
    """

    def __init__(self) -> None:
        super().__init__(-1, "Retry operation")

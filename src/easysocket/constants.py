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
"""EasySocket's constants module."""

from __future__ import annotations

__all__ = [
    "CLOSED_SOCKET_ERRNOS",
    "CONNECTION_RESET_ERRNOS",
    "DEFAULT_MAX_BACKLOG",
    "DEFAULT_READ_BUFFER_SIZE",
    "DEFAULT_SSL_READ_BUFFER_SIZE",
    "FD_SETSIZE",
    "INVALID_DESCRIPTOR",
    "INVALID_PORT",
    "MINIMUM_READ_BUFFER_SIZE",
    "NOT_CONNECTED_SOCKET_ERRNOS",
    "NO_HOSTNAME",
    "REUSEPORT_UNSUPPORTED_ERRNOS",
]

import errno as _errno
import sys
from typing import Final

# Descriptor value of a closed socket
INVALID_DESCRIPTOR: Final[int] = -1

# Port value of a socket which is not bound nor connected
INVALID_PORT: Final[int] = -1

# Hostname value of a socket which is not bound nor connected
NO_HOSTNAME: Final[str] = ""

# Size of the buffer given to recv(2)
DEFAULT_READ_BUFFER_SIZE: Final[int] = 4096

# The read buffer can't be smaller than this
MINIMUM_READ_BUFFER_SIZE: Final[int] = 1024

# Read buffer size used when a secure transport delegate is installed
DEFAULT_SSL_READ_BUFFER_SIZE: Final[int] = 32768

# Default listen(2) backlog
DEFAULT_MAX_BACKLOG: Final[int] = 50

# Number of descriptors an fd_set can hold
FD_SETSIZE: Final[int] = 1024 if sys.platform != "win32" else 64

# Errors that socket operations can return if the socket is closed
CLOSED_SOCKET_ERRNOS: Final[frozenset[int]] = frozenset(
    {
        # Unix
        _errno.EBADF,
        # Windows
        _errno.ENOTSOCK,
    }
)

# Errors that socket operations can return if the socket is not connected
NOT_CONNECTED_SOCKET_ERRNOS: Final[frozenset[int]] = frozenset(
    {
        # Most of the operating systems
        _errno.ENOTCONN,
        # macOS
        _errno.EINVAL,
    }
)

# Errors that recv(2) and send(2) return when the peer aborted the connection
CONNECTION_RESET_ERRNOS: Final[frozenset[int]] = frozenset(
    {
        _errno.ECONNRESET,
        _errno.EPIPE,
    }
)

# Errors that setsockopt(SO_REUSEPORT) returns when the kernel defines the option but does not implement it
REUSEPORT_UNSUPPORTED_ERRNOS: Final[frozenset[int]] = frozenset(
    {
        errno
        for name in (
            "ENOPROTOOPT",
            "EINVAL",
            "EOPNOTSUPP",
        )
        if (errno := getattr(_errno, name, None)) is not None
    }
)

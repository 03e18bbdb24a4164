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
"""Socket address module.

An :data:`Address` is one of :class:`IPv4SocketAddress`, :class:`IPv6SocketAddress` or :class:`UnixSocketAddress`.
Each variant knows the native ``sockaddr`` structure it stands for.
"""

from __future__ import annotations

__all__ = [
    "Address",
    "IPv4SocketAddress",
    "IPv6SocketAddress",
    "ProtocolFamily",
    "SocketProtocol",
    "SocketType",
    "UNIX_PATH_MAX",
    "UnixSocketAddress",
    "create_address",
    "decode_raw_address",
    "from_syscall",
    "hostname_and_port",
    "new_socket_address",
]

import enum
import os
import socket as _socket
import struct
import sys
from collections.abc import Callable
from typing import Any, Final, Literal, NamedTuple, Self, TypeAlias, TypeVar, overload

_T_Result = TypeVar("_T_Result")

# BSD-derived systems prefix every sockaddr with a one-byte length field.
_HAS_SA_LEN: Final[bool] = sys.platform.startswith(("darwin", "freebsd", "openbsd", "netbsd", "dragonfly"))

# Size of sockaddr_un.sun_path
UNIX_PATH_MAX: Final[int] = 104 if _HAS_SA_LEN else 108

if _HAS_SA_LEN:
    _SA_HEADER: Final[struct.Struct] = struct.Struct("=BB")
else:
    _SA_HEADER: Final[struct.Struct] = struct.Struct("=H")  # type: ignore[misc,no-redef]

# sin_port, sin_addr, sin_zero
_SOCKADDR_IN: Final[struct.Struct] = struct.Struct("!H4s8x")
# sin6_port, sin6_flowinfo, sin6_addr
_SOCKADDR_IN6: Final[struct.Struct] = struct.Struct("!HI16s")
# sin6_scope_id is in host byte order
_SCOPE_ID: Final[struct.Struct] = struct.Struct("=I")

_SOCKADDR_IN_SIZE: Final[int] = _SA_HEADER.size + _SOCKADDR_IN.size
_SOCKADDR_IN6_SIZE: Final[int] = _SA_HEADER.size + _SOCKADDR_IN6.size + _SCOPE_ID.size
_SOCKADDR_UN_SIZE: Final[int] = _SA_HEADER.size + UNIX_PATH_MAX


class ProtocolFamily(enum.IntEnum):
    """Supported address families."""

    INET = int(_socket.AF_INET)
    INET6 = int(_socket.AF_INET6)
    UNIX = int(getattr(_socket, "AF_UNIX", 1))

    @classmethod
    def from_value(cls, value: int) -> Self | None:
        """Returns the family matching the raw ``AF_*`` `value`, or :data:`None`."""
        try:
            return cls(value)
        except ValueError:
            return None


class SocketType(enum.IntEnum):
    """Supported socket types."""

    STREAM = int(_socket.SOCK_STREAM)
    DATAGRAM = int(_socket.SOCK_DGRAM)

    @classmethod
    def from_value(cls, value: int) -> Self | None:
        """Returns the type matching the raw ``SOCK_*`` `value`, or :data:`None`."""
        try:
            return cls(value)
        except ValueError:
            return None


class SocketProtocol(enum.IntEnum):
    """Supported socket protocols."""

    TCP = int(_socket.IPPROTO_TCP)
    UDP = int(_socket.IPPROTO_UDP)
    UNIX = 0

    @classmethod
    def from_value(cls, value: int) -> Self | None:
        """Returns the protocol matching the raw ``IPPROTO_*`` `value`, or :data:`None`."""
        try:
            return cls(value)
        except ValueError:
            return None


def _pack_header(family: int, length: int) -> bytes:
    if _HAS_SA_LEN:
        return _SA_HEADER.pack(length, family)
    return _SA_HEADER.pack(family)


class IPv4SocketAddress(NamedTuple):
    """An internet (IPv4) socket address. (``struct sockaddr_in``)"""

    host: str
    port: int

    def __str__(self) -> str:
        return f"({self.host!r}, {self.port:d})"

    @property
    def family(self) -> Literal[ProtocolFamily.INET]:
        return ProtocolFamily.INET

    @property
    def size(self) -> int:
        """Size of ``struct sockaddr_in``."""
        return _SOCKADDR_IN_SIZE

    def as_raw(self) -> tuple[bytes, int]:
        """
        Returns:
            The native structure and its length, as expected by the socket system calls.
        """
        raw = _pack_header(ProtocolFamily.INET, _SOCKADDR_IN_SIZE) + _SOCKADDR_IN.pack(
            self.port,
            _socket.inet_pton(_socket.AF_INET, self.host),
        )
        return raw, _SOCKADDR_IN_SIZE

    def for_connection(self) -> tuple[str, int]:
        """
        Returns:
            A pair of (host, port)
        """
        return self.host, self.port


class IPv6SocketAddress(NamedTuple):
    """An internet (IPv6) socket address. (``struct sockaddr_in6``)"""

    host: str
    port: int
    flowinfo: int = 0
    scope_id: int = 0

    def __str__(self) -> str:
        return f"({self.host!r}, {self.port:d})"

    @property
    def family(self) -> Literal[ProtocolFamily.INET6]:
        return ProtocolFamily.INET6

    @property
    def size(self) -> int:
        """Size of ``struct sockaddr_in6``."""
        return _SOCKADDR_IN6_SIZE

    def as_raw(self) -> tuple[bytes, int]:
        """
        Returns:
            The native structure and its length, as expected by the socket system calls.
        """
        host = self.host.partition("%")[0]
        raw = (
            _pack_header(ProtocolFamily.INET6, _SOCKADDR_IN6_SIZE)
            + _SOCKADDR_IN6.pack(self.port, self.flowinfo, _socket.inet_pton(_socket.AF_INET6, host))
            + _SCOPE_ID.pack(self.scope_id)
        )
        return raw, _SOCKADDR_IN6_SIZE

    def for_connection(self) -> tuple[str, int, int, int]:
        """
        Returns:
            A tuple of (host, port, flowinfo, scope_id)
        """
        return self.host, self.port, self.flowinfo, self.scope_id


class UnixSocketAddress(NamedTuple):
    """A Unix-domain socket address. (``struct sockaddr_un``)"""

    path: str

    def __str__(self) -> str:
        return self.path

    @property
    def family(self) -> Literal[ProtocolFamily.UNIX]:
        return ProtocolFamily.UNIX

    @property
    def size(self) -> int:
        """Size of ``struct sockaddr_un``."""
        return _SOCKADDR_UN_SIZE

    def as_raw(self) -> tuple[bytes, int]:
        """
        Returns:
            The native structure and its length, as expected by the socket system calls.

        Raises:
            ValueError: The path does not fit in ``sun_path``.
        """
        path = os.fsencode(self.path)
        if len(path) >= UNIX_PATH_MAX:
            raise ValueError("Pathname supplied is too long.")
        if _HAS_SA_LEN:
            # sun_len only counts the used part of sun_path, NUL byte included.
            length = _SA_HEADER.size + len(path) + 1
        else:
            length = _SOCKADDR_UN_SIZE
        raw = _pack_header(ProtocolFamily.UNIX, length) + path.ljust(UNIX_PATH_MAX, b"\0")
        return raw, length

    def for_connection(self) -> str:
        """
        Returns:
            The path of the socket node.
        """
        return self.path


Address: TypeAlias = IPv4SocketAddress | IPv6SocketAddress | UnixSocketAddress
"""A socket address, either IPv4, IPv6 or Unix-domain."""


@overload
def new_socket_address(addr: tuple[str, int], family: Literal[ProtocolFamily.INET]) -> IPv4SocketAddress: ...


@overload
def new_socket_address(
    addr: tuple[str, int] | tuple[str, int, int, int], family: Literal[ProtocolFamily.INET6]
) -> IPv6SocketAddress: ...


@overload
def new_socket_address(addr: str | bytes, family: Literal[ProtocolFamily.UNIX]) -> UnixSocketAddress: ...


@overload
def new_socket_address(addr: Any, family: int) -> Address: ...


def new_socket_address(addr: Any, family: int) -> Address:
    """
    Factory to create an :data:`Address` from `addr`.

    Example:
        >>> import socket
        >>> new_socket_address(("127.0.0.1", 12345), socket.AF_INET)
        IPv4SocketAddress(host='127.0.0.1', port=12345)
        >>> new_socket_address(("::1", 12345), socket.AF_INET6)
        IPv6SocketAddress(host='::1', port=12345, flowinfo=0, scope_id=0)
        >>> new_socket_address("/tmp/app.sock", socket.AF_UNIX)
        UnixSocketAddress(path='/tmp/app.sock')

    Parameters:
        addr: The address as returned by the :mod:`socket` module.
        family: The socket family.

    Raises:
        ValueError: Invalid `family`.
        TypeError: Invalid `addr`.

    Returns:
        an :data:`Address` named tuple.
    """
    match ProtocolFamily.from_value(family):
        case ProtocolFamily.INET:
            return IPv4SocketAddress(*addr[:2])
        case ProtocolFamily.INET6:
            return IPv6SocketAddress(*addr)
        case ProtocolFamily.UNIX:
            if not isinstance(addr, (str, bytes)):
                raise TypeError(f"Cannot convert {addr!r} to a UnixSocketAddress")
            return UnixSocketAddress(os.fsdecode(addr))
        case _:
            raise ValueError(f"Unsupported address family {family!r}")


def decode_raw_address(raw: bytes | bytearray | memoryview) -> Address | None:
    """
    Decodes a native ``sockaddr`` structure.

    Returns:
        the matching :data:`Address`, or :data:`None` if the family is unknown or the structure is truncated.
    """
    raw = bytes(raw)
    if len(raw) < _SA_HEADER.size:
        return None
    if _HAS_SA_LEN:
        _, raw_family = _SA_HEADER.unpack_from(raw)
    else:
        (raw_family,) = _SA_HEADER.unpack_from(raw)
    body = raw[_SA_HEADER.size :]
    match ProtocolFamily.from_value(raw_family):
        case ProtocolFamily.INET if len(body) >= _SOCKADDR_IN.size:
            port, packed_host = _SOCKADDR_IN.unpack_from(body)
            return IPv4SocketAddress(_socket.inet_ntop(_socket.AF_INET, packed_host), port)
        case ProtocolFamily.INET6 if len(body) >= _SOCKADDR_IN6.size + _SCOPE_ID.size:
            port, flowinfo, packed_host = _SOCKADDR_IN6.unpack_from(body)
            (scope_id,) = _SCOPE_ID.unpack_from(body, _SOCKADDR_IN6.size)
            return IPv6SocketAddress(_socket.inet_ntop(_socket.AF_INET6, packed_host), port, flowinfo, scope_id)
        case ProtocolFamily.UNIX:
            return UnixSocketAddress(os.fsdecode(body.partition(b"\0")[0]))
        case _:
            return None


def from_syscall(syscall: Callable[[], tuple[_T_Result, int, Any]]) -> tuple[_T_Result, Address | None]:
    """
    Runs `syscall` and builds the :data:`Address` it reported.

    `syscall` returns a tuple ``(result, family, address)`` where `address` is what the :mod:`socket`
    module returned. Internet addresses can also be given as a native ``sockaddr`` structure (:class:`bytes`).

    Example:
        >>> import socket
        >>> with socket.socket() as sock:
        ...     sock.bind(("127.0.0.1", 0))
        ...     _, address = from_syscall(lambda: (None, sock.family, sock.getsockname()))
        >>> address.host
        '127.0.0.1'

    Errors raised by `syscall` are propagated, there is no retry.

    Returns:
        a pair of (result, address). `address` is :data:`None` if the family is not supported.
    """
    result, family, raw_address = syscall()
    if ProtocolFamily.from_value(family) is None:
        return result, None
    if isinstance(raw_address, (bytes, bytearray, memoryview)) and family != ProtocolFamily.UNIX:
        return result, decode_raw_address(raw_address)
    return result, new_socket_address(raw_address, family)


def hostname_and_port(address: Address) -> tuple[str, int] | None:
    """
    Extracts the hostname and the port from `address`.

    Returns:
        a pair of (host, port), or :data:`None` for Unix-domain addresses.
    """
    match address:
        case IPv4SocketAddress(host, port) | IPv6SocketAddress(host, port):
            return host, port
        case _:
            return None


def create_address(host: str, port: int) -> Address | None:
    """
    Resolves `host` and `port` and returns the first result.

    Returns:
        an :data:`Address`, or :data:`None` if the host or the port are invalid.
    """
    try:
        infos = _socket.getaddrinfo(host, port)
    except (OSError, UnicodeError, OverflowError):
        return None
    for family, _, _, _, sockaddr in infos:
        if ProtocolFamily.from_value(family) is not None:
            return new_socket_address(sockaddr, family)
    return None

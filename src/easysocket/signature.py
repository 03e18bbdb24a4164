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
"""Socket signature module."""

from __future__ import annotations

__all__ = ["Signature"]

import os
from dataclasses import dataclass
from typing import Self

from . import constants
from .address import UNIX_PATH_MAX, Address, ProtocolFamily, SocketProtocol, SocketType, UnixSocketAddress
from .exceptions import ErrorCode, SocketError


def _check_type_and_protocol(socket_type: SocketType, proto: SocketProtocol) -> None:
    match socket_type:
        case SocketType.STREAM if proto not in {SocketProtocol.TCP, SocketProtocol.UNIX}:
            raise SocketError(
                ErrorCode.BAD_SIGNATURE_PARAMETERS,
                "Stream socket must use either .tcp or .unix for the protocol.",
            )
        case SocketType.DATAGRAM if proto not in {SocketProtocol.UDP, SocketProtocol.UNIX}:
            raise SocketError(
                ErrorCode.BAD_SIGNATURE_PARAMETERS,
                "Datagram socket must use .udp or .unix for the protocol.",
            )


@dataclass(kw_only=True, slots=True)
class Signature:
    """
    The characteristics of a socket: its family, type and protocol, and what is known about its endpoint.

    Use one of the constructors :meth:`from_values`, :meth:`for_host` or :meth:`for_path`.
    The owning :class:`~easysocket.socket.Socket` updates the endpoint fields as the connection progresses.
    """

    protocol_family: ProtocolFamily
    """Protocol family."""

    socket_type: SocketType
    """Socket type."""

    proto: SocketProtocol
    """Socket protocol."""

    hostname: str | None = None
    """Host name for connection."""

    port: int = constants.INVALID_PORT
    """Port for connection."""

    path: str | None = None
    """Path for Unix-domain sockets."""

    address: Address | None = None
    """Resolved address of the endpoint."""

    is_secure: bool = False
    """:data:`True` if the socket uses a secure transport delegate."""

    is_bound: bool = False
    """:data:`True` if the socket is bound."""

    @classmethod
    def from_values(cls, protocol_family: int, socket_type: int, proto: int, address: Address | None = None) -> Self:
        """
        Creates a signature from raw ``AF_*``, ``SOCK_*`` and ``IPPROTO_*`` values.

        Raises:
            SocketError: Unknown family, type or protocol, or incompatible type and protocol.
        """
        family = ProtocolFamily.from_value(protocol_family)
        type_ = SocketType.from_value(socket_type)
        protocol = SocketProtocol.from_value(proto)
        if family is None or type_ is None or protocol is None:
            raise SocketError(ErrorCode.BAD_SIGNATURE_PARAMETERS, "Bad family, type or protocol passed.")
        _check_type_and_protocol(type_, protocol)
        return cls(protocol_family=family, socket_type=type_, proto=protocol, address=address)

    @classmethod
    def for_host(
        cls,
        protocol_family: ProtocolFamily,
        socket_type: SocketType,
        proto: SocketProtocol,
        hostname: str | None,
        port: int | None,
    ) -> Self:
        """
        Creates a signature for a remote host. Only :attr:`ProtocolFamily.INET` and :attr:`ProtocolFamily.INET6`
        are allowed.

        Raises:
            SocketError: Missing `hostname` or `port`, invalid family, or incompatible type and protocol.
        """
        if hostname is None or port is None or protocol_family not in {ProtocolFamily.INET, ProtocolFamily.INET6}:
            raise SocketError(
                ErrorCode.BAD_SIGNATURE_PARAMETERS,
                "Missing hostname, port or both or invalid protocol family.",
            )
        _check_type_and_protocol(socket_type, proto)
        return cls(
            protocol_family=ProtocolFamily(protocol_family),
            socket_type=SocketType(socket_type),
            proto=SocketProtocol(proto),
            hostname=hostname,
            port=port,
        )

    @classmethod
    def for_path(cls, socket_type: SocketType, proto: SocketProtocol, path: str | os.PathLike[str] | None) -> Self:
        """
        Creates a signature for a Unix-domain socket node. The :class:`~easysocket.address.UnixSocketAddress`
        is built immediately.

        Raises:
            SocketError: Missing or too long `path`, or incompatible type and protocol.
        """
        if path is None or not (path := os.fspath(path)):
            raise SocketError(ErrorCode.BAD_SIGNATURE_PARAMETERS, "Missing pathname.")
        _check_type_and_protocol(socket_type, proto)
        # sun_path must keep room for the NUL byte.
        if len(os.fsencode(path)) >= UNIX_PATH_MAX:
            raise SocketError(ErrorCode.BAD_SIGNATURE_PARAMETERS, "Pathname supplied is too long.")
        return cls(
            protocol_family=ProtocolFamily.UNIX,
            socket_type=SocketType(socket_type),
            proto=SocketProtocol(proto),
            path=path,
            address=UnixSocketAddress(path),
        )

    @classmethod
    def _for_endpoint(
        cls,
        protocol_family: int,
        socket_type: int,
        proto: int,
        address: Address | None,
        hostname: str | None,
        port: int | None,
    ) -> Self:
        family = ProtocolFamily.from_value(protocol_family)
        type_ = SocketType.from_value(socket_type)
        protocol = SocketProtocol.from_value(proto)
        if family is None or type_ is None or protocol is None or hostname is None or port is None:
            raise SocketError(ErrorCode.BAD_SIGNATURE_PARAMETERS, "Incomplete parameters.")
        _check_type_and_protocol(type_, protocol)
        return cls(
            protocol_family=family,
            socket_type=type_,
            proto=protocol,
            address=address,
            hostname=hostname,
            port=port,
        )

    @property
    def description(self) -> str:
        """A human-readable rendering of every field."""
        return (
            f"Signature: family: {self.protocol_family.name.lower()}, "
            f"type: {self.socket_type.name.lower()}, "
            f"protocol: {self.proto.name.lower()}, "
            f"address: {self.address!r}, "
            f"hostname: {self.hostname!r}, "
            f"port: {self.port}, "
            f"path: {self.path!r}, "
            f"bound: {self.is_bound}, "
            f"secure: {self.is_secure}"
        )

    def __str__(self) -> str:
        return self.description

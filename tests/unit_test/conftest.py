from __future__ import annotations

import itertools
import socket
from collections.abc import Callable, Iterator
from socket import AF_INET, AF_INET6, IPPROTO_TCP, IPPROTO_UDP, SOCK_DGRAM, SOCK_STREAM
from typing import TYPE_CHECKING, Any

from easysocket.address import ProtocolFamily, SocketProtocol, SocketType
from easysocket.delegate import SocketDelegate
from easysocket.signature import Signature
from easysocket.socket import Socket

import pytest

if TYPE_CHECKING:
    from unittest.mock import MagicMock

    from pytest_mock import MockerFixture

AF_UNIX: int = getattr(socket, "AF_UNIX", 1)


@pytest.fixture
def mock_socket_factory(mocker: MockerFixture) -> Callable[..., MagicMock]:
    fileno_counter = itertools.count()

    def factory(family: int = AF_INET, type: int = SOCK_STREAM, proto: int = IPPROTO_TCP, fileno: int | None = None) -> MagicMock:
        if fileno is None:
            fileno = 123 + next(fileno_counter)
        mock_socket = mocker.NonCallableMagicMock(spec=socket.socket)
        mock_socket.family = family
        mock_socket.type = type
        mock_socket.proto = proto
        mock_socket.fileno.return_value = fileno
        mock_socket.getblocking.return_value = True

        def close_side_effect() -> None:
            mock_socket.fileno.return_value = -1

        mock_socket.close.side_effect = close_side_effect
        mock_socket.connect.return_value = None
        mock_socket.bind.return_value = None
        return mock_socket

    return factory


@pytest.fixture
def mock_tcp_socket(mock_socket_factory: Callable[..., MagicMock]) -> MagicMock:
    return mock_socket_factory(AF_INET, SOCK_STREAM, IPPROTO_TCP)


@pytest.fixture
def mock_tcp6_socket(mock_socket_factory: Callable[..., MagicMock]) -> MagicMock:
    return mock_socket_factory(AF_INET6, SOCK_STREAM, IPPROTO_TCP)


@pytest.fixture
def mock_udp_socket(mock_socket_factory: Callable[..., MagicMock]) -> MagicMock:
    return mock_socket_factory(AF_INET, SOCK_DGRAM, IPPROTO_UDP)


@pytest.fixture
def mock_unix_stream_socket(mock_socket_factory: Callable[..., MagicMock]) -> MagicMock:
    return mock_socket_factory(AF_UNIX, SOCK_STREAM, 0)


@pytest.fixture
def mock_delegate(mocker: MockerFixture) -> MagicMock:
    mock_delegate = mocker.NonCallableMagicMock(spec=SocketDelegate)
    mock_delegate.initialize.return_value = None
    mock_delegate.teardown.return_value = None
    mock_delegate.on_accept.return_value = None
    mock_delegate.on_connect.return_value = None
    return mock_delegate


@pytest.fixture
def socket_factory() -> Iterator[Callable[..., Socket]]:
    created: list[Socket] = []

    def factory(mock_socket: MagicMock, signature: Signature, **kwargs: Any) -> Socket:
        socket = Socket(mock_socket, signature, **kwargs)
        created.append(socket)
        return socket

    yield factory

    for socket in created:
        socket.close()


@pytest.fixture
def connected_tcp_socket(mock_tcp_socket: MagicMock, socket_factory: Callable[..., Socket]) -> Callable[..., Socket]:
    def factory(**kwargs: Any) -> Socket:
        signature = Signature.for_host(ProtocolFamily.INET, SocketType.STREAM, SocketProtocol.TCP, "127.0.0.1", 12345)
        return socket_factory(mock_tcp_socket, signature, connected=True, **kwargs)

    return factory


@pytest.fixture
def tcp_socket(mock_tcp_socket: MagicMock, socket_factory: Callable[..., Socket]) -> Callable[..., Socket]:
    def factory(**kwargs: Any) -> Socket:
        signature = Signature.from_values(ProtocolFamily.INET, SocketType.STREAM, SocketProtocol.TCP)
        return socket_factory(mock_tcp_socket, signature, **kwargs)

    return factory


@pytest.fixture
def udp_socket(mock_udp_socket: MagicMock, socket_factory: Callable[..., Socket]) -> Callable[..., Socket]:
    def factory(**kwargs: Any) -> Socket:
        signature = Signature.from_values(ProtocolFamily.INET, SocketType.DATAGRAM, SocketProtocol.UDP)
        return socket_factory(mock_udp_socket, signature, **kwargs)

    return factory

from __future__ import annotations

from collections.abc import Callable, Iterator

from easysocket.address import ProtocolFamily, SocketProtocol, SocketType
from easysocket.socket import Socket

import pytest

LOCALHOST = "127.0.0.1"


@pytest.fixture
def tcp_listener() -> Iterator[Socket]:
    with Socket.create() as listener:
        listener.listen(0)
        yield listener


@pytest.fixture
def tcp_client() -> Iterator[Socket]:
    with Socket.create() as client:
        yield client


@pytest.fixture
def tcp_connection(tcp_listener: Socket, tcp_client: Socket) -> Iterator[tuple[Socket, Socket]]:
    tcp_client.connect(LOCALHOST, tcp_listener.remote_port)
    with tcp_listener.accept_client_connection() as server_side:
        yield tcp_client, server_side


@pytest.fixture
def udp_socket_factory() -> Iterator[Callable[[], Socket]]:
    created: list[Socket] = []

    def factory() -> Socket:
        socket = Socket.create(ProtocolFamily.INET, SocketType.DATAGRAM, SocketProtocol.UDP)
        created.append(socket)
        return socket

    yield factory

    for socket in created:
        socket.close()

from __future__ import annotations

from collections.abc import Callable

from easysocket.address import IPv4SocketAddress
from easysocket.exceptions import ErrorCode, SocketError
from easysocket.socket import Socket

import pytest

LOCALHOST = "127.0.0.1"


class TestUDPSocket:
    @pytest.fixture
    @staticmethod
    def server(udp_socket_factory: Callable[[], Socket]) -> Socket:
        server = udp_socket_factory()
        server.listen(0)
        return server

    def test____listen____bind_only(self, server: Socket) -> None:
        # Arrange

        # Act & Assert
        assert server.is_bound
        assert server.remote_port > 0
        assert not server.is_listening
        assert not server.is_active

    def test____write_to____request_and_reply(self, server: Socket, udp_socket_factory: Callable[[], Socket]) -> None:
        # Arrange
        client = udp_socket_factory()
        server_address = IPv4SocketAddress(LOCALHOST, server.remote_port)
        buffer = bytearray(1024)

        # Act
        sent = client.write_to(b"ping", server_address)
        nbytes, sender = server.read_datagram_into(buffer)
        assert sender is not None
        server.write_to("pong", sender)
        reply = bytearray()
        reply_nbytes, reply_sender = client.read_datagram(reply)

        # Assert
        assert sent == 4
        assert nbytes == 4
        assert buffer[:nbytes] == b"ping"
        assert isinstance(sender, IPv4SocketAddress)
        assert sender.host == LOCALHOST
        assert reply_nbytes == 4
        assert reply == b"pong"
        assert reply_sender == server_address

    def test____read_datagram_into____discard_excess(self, server: Socket, udp_socket_factory: Callable[[], Socket]) -> None:
        # Arrange
        client = udp_socket_factory()
        server_address = IPv4SocketAddress(LOCALHOST, server.remote_port)
        client.write_to(b"0123456789", server_address)
        client.write_to(b"next", server_address)
        buffer = bytearray(4)

        # Act
        first, _ = server.read_datagram_into(buffer)
        first_data = bytes(buffer[:first])
        second, _ = server.read_datagram_into(buffer)

        # Assert
        assert first == 4
        assert first_data == b"0123"
        assert second == 4
        assert buffer == b"next"

    def test____read_datagram____non_blocking_without_data(self, server: Socket) -> None:
        # Arrange
        server.set_blocking(False)

        # Act
        nbytes, sender = server.read_datagram(bytearray())

        # Assert
        assert nbytes == 0
        assert sender is None

    def test____listen_for_message____bind_then_receive(self, udp_socket_factory: Callable[[], Socket]) -> None:
        # Arrange
        server = udp_socket_factory()
        client = udp_socket_factory()
        server.set_blocking(False)
        buffer = bytearray(1024)

        # Act
        nothing = server.listen_for_message(buffer, 0)
        client.write_to(b"hello", IPv4SocketAddress(LOCALHOST, server.remote_port))
        assert Socket.wait([server], 1000) == [server]
        nbytes, sender = server.listen_for_message(buffer, 0)

        # Assert
        assert nothing == (0, None)
        assert server.is_bound
        assert server.is_listening
        assert nbytes == 5
        assert buffer[:nbytes] == b"hello"
        assert sender is not None

    def test____udp_broadcast____enable(self, server: Socket) -> None:
        # Arrange

        # Act
        server.udp_broadcast(True)
        server.udp_broadcast(False)

        # Assert
        assert server.is_bound

    def test____write_to____not_a_datagram_socket(self, tcp_client: Socket) -> None:
        # Arrange

        # Act & Assert
        with pytest.raises(SocketError) as exc_info:
            tcp_client.write_to(b"data", IPv4SocketAddress(LOCALHOST, 12345))
        assert exc_info.value.code is ErrorCode.WRONG_PROTOCOL

from __future__ import annotations

import errno
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from easysocket import multiplexer
from easysocket.address import ProtocolFamily, SocketProtocol, SocketType
from easysocket.exceptions import ErrorCode, SocketError
from easysocket.fdset import FDSet
from easysocket.signature import Signature
from easysocket.socket import Socket

import pytest

if TYPE_CHECKING:
    from unittest.mock import MagicMock

    from pytest_mock import MockerFixture


@pytest.fixture
def mock_socket_wrapper_factory(mocker: MockerFixture) -> Callable[..., MagicMock]:
    def factory(fd: int, *, active: bool = True, bound: bool = False, buffered_bytes: int = 0) -> MagicMock:
        signature = Signature.from_values(ProtocolFamily.INET, SocketType.STREAM, SocketProtocol.TCP)
        signature.is_bound = bound
        mock_socket = mocker.NonCallableMagicMock(spec=Socket)
        mock_socket.socketfd = fd
        mock_socket.signature = signature
        mock_socket.is_active = active
        mock_socket.buffered_bytes = buffered_bytes
        return mock_socket

    return factory


@pytest.fixture
def mock_select(mocker: MockerFixture) -> MagicMock:
    return mocker.patch("easysocket._syscalls.select", autospec=True)


def _select_ready(readable: set[int], writable: set[int] = set()) -> Callable[..., int]:
    def side_effect(readers: FDSet | None, writers: FDSet | None, timeout: Any) -> int:
        count = 0
        for fds, ready in ((readers, readable), (writers, writable)):
            if fds is None:
                continue
            members = set(fds) & ready
            fds.zero()
            for fd in members:
                fds.add(fd)
            count += len(members)
        return count

    return side_effect


class TestWait:
    def test____wait____return_ready_sockets_in_order(
        self,
        mock_socket_wrapper_factory: Callable[..., MagicMock],
        mock_select: MagicMock,
    ) -> None:
        # Arrange
        sockets = [mock_socket_wrapper_factory(fd) for fd in (7, 3, 5)]
        mock_select.side_effect = _select_ready({5, 7})

        # Act
        ready = multiplexer.wait(sockets, 100)

        # Assert
        assert ready == [sockets[0], sockets[2]]
        readers, writers, timeout = mock_select.call_args.args
        assert writers is None
        assert timeout == pytest.approx(0.1)

    def test____wait____timeout_expired(
        self,
        mock_socket_wrapper_factory: Callable[..., MagicMock],
        mock_select: MagicMock,
    ) -> None:
        # Arrange
        sockets = [mock_socket_wrapper_factory(4)]
        mock_select.side_effect = _select_ready(set())

        # Act
        ready = multiplexer.wait(sockets, 0)

        # Assert
        assert ready is None
        assert mock_select.call_args.args[2] == 0

    def test____wait____wait_forever(
        self,
        mock_socket_wrapper_factory: Callable[..., MagicMock],
        mock_select: MagicMock,
    ) -> None:
        # Arrange
        sockets = [mock_socket_wrapper_factory(4)]
        mock_select.side_effect = _select_ready({4})

        # Act
        ready = multiplexer.wait(sockets, 100, wait_forever=True)

        # Assert
        assert ready == sockets
        assert mock_select.call_args.args[2] is None

    def test____wait____buffered_bytes_ready_without_waiting(
        self,
        mock_socket_wrapper_factory: Callable[..., MagicMock],
        mock_select: MagicMock,
    ) -> None:
        # Arrange
        sockets = [mock_socket_wrapper_factory(4), mock_socket_wrapper_factory(6, buffered_bytes=10)]
        mock_select.side_effect = _select_ready(set())

        # Act
        ready = multiplexer.wait(sockets, 0, wait_forever=True)

        # Assert
        assert ready == [sockets[1]]
        assert mock_select.call_args.args[2] == 0

    def test____wait____bound_datagram_socket_accepted(
        self,
        mock_socket_wrapper_factory: Callable[..., MagicMock],
        mock_select: MagicMock,
    ) -> None:
        # Arrange
        sockets = [mock_socket_wrapper_factory(4, active=False, bound=True)]
        mock_select.side_effect = _select_ready({4})

        # Act
        ready = multiplexer.wait(sockets, 10)

        # Assert
        assert ready == sockets

    def test____wait____large_descriptor(
        self,
        mock_socket_wrapper_factory: Callable[..., MagicMock],
        mock_select: MagicMock,
    ) -> None:
        # Arrange
        sockets = [mock_socket_wrapper_factory(5000)]
        mock_select.side_effect = _select_ready({5000})

        # Act
        ready = multiplexer.wait(sockets, 10)

        # Assert
        assert ready == sockets

    @pytest.mark.parametrize(
        ["kwargs", "expected_code"],
        [
            pytest.param({"fd": -1}, ErrorCode.BAD_DESCRIPTOR, id="closed"),
            pytest.param({"fd": 4, "active": False}, ErrorCode.NOT_ACTIVE, id="not-active"),
        ],
    )
    def test____wait____invalid_socket(
        self,
        mock_socket_wrapper_factory: Callable[..., MagicMock],
        mock_select: MagicMock,
        kwargs: dict[str, Any],
        expected_code: ErrorCode,
    ) -> None:
        # Arrange
        sockets = [mock_socket_wrapper_factory(3), mock_socket_wrapper_factory(**kwargs)]

        # Act & Assert
        with pytest.raises(SocketError) as exc_info:
            multiplexer.wait(sockets, 10)
        assert exc_info.value.code is expected_code
        mock_select.assert_not_called()

    def test____wait____missing_signature(
        self,
        mock_socket_wrapper_factory: Callable[..., MagicMock],
        mock_select: MagicMock,
    ) -> None:
        # Arrange
        socket = mock_socket_wrapper_factory(3)
        socket.signature = None

        # Act & Assert
        with pytest.raises(SocketError) as exc_info:
            multiplexer.wait([socket], 10)
        assert exc_info.value.code is ErrorCode.MISSING_SIGNATURE

    def test____wait____select_error(
        self,
        mock_socket_wrapper_factory: Callable[..., MagicMock],
        mock_select: MagicMock,
    ) -> None:
        # Arrange
        mock_select.side_effect = OSError(errno.EBADF, "Bad file descriptor")

        # Act & Assert
        with pytest.raises(SocketError) as exc_info:
            multiplexer.wait([mock_socket_wrapper_factory(3)], 10)
        assert exc_info.value.code is ErrorCode.SELECT_FAILED
        assert exc_info.value.reason == "Bad file descriptor"

    def test____wait____descriptor_out_of_range(
        self,
        mock_socket_wrapper_factory: Callable[..., MagicMock],
        mock_select: MagicMock,
    ) -> None:
        # Arrange
        mock_select.side_effect = ValueError("filedescriptor out of range in select()")

        # Act & Assert
        with pytest.raises(SocketError) as exc_info:
            multiplexer.wait([mock_socket_wrapper_factory(2000)], 0)
        assert exc_info.value.code is ErrorCode.SELECT_FAILED
        assert exc_info.value.reason == "filedescriptor out of range in select()"

    def test____wait____negative_timeout(self, mock_socket_wrapper_factory: Callable[..., MagicMock]) -> None:
        # Arrange

        # Act & Assert
        with pytest.raises(ValueError):
            multiplexer.wait([mock_socket_wrapper_factory(3)], -1)


class TestPoll:
    @pytest.mark.parametrize(
        ["readable", "writable"],
        [(set(), set()), ({9}, set()), (set(), {9}), ({9}, {9})],
    )
    def test____poll____readable_and_writable(
        self,
        mock_select: MagicMock,
        readable: set[int],
        writable: set[int],
    ) -> None:
        # Arrange
        mock_select.side_effect = _select_ready(readable, writable)

        # Act
        result = multiplexer.poll(9, timeout=50)

        # Assert
        assert result == (bool(readable), bool(writable))
        assert mock_select.call_args.args[2] == pytest.approx(0.05)

    @pytest.mark.parametrize(
        ["read", "write"],
        [pytest.param(True, False, id="read_only"), pytest.param(False, True, id="write_only")],
    )
    def test____poll____watch_one_set(
        self,
        mock_select: MagicMock,
        read: bool,
        write: bool,
    ) -> None:
        # Arrange
        mock_select.side_effect = _select_ready({9}, {9})

        # Act
        result = multiplexer.poll(9, True, read=read, write=write)

        # Assert
        assert result == (read, write)
        readers, writers, timeout = mock_select.call_args.args
        assert (readers is not None) is read
        assert (writers is not None) is write
        assert timeout is None

    @pytest.mark.parametrize(
        "error",
        [
            pytest.param(OSError(errno.EBADF, "Bad file descriptor"), id="OSError"),
            pytest.param(ValueError("filedescriptor out of range in select()"), id="ValueError"),
        ],
    )
    def test____poll____select_error(self, mock_select: MagicMock, error: Exception) -> None:
        # Arrange
        mock_select.side_effect = error

        # Act & Assert
        with pytest.raises(SocketError) as exc_info:
            multiplexer.poll(9)
        assert exc_info.value.code is ErrorCode.SELECT_FAILED


class TestCheckStatus:
    def test____check_status____split_readables_and_writables(
        self,
        mock_socket_wrapper_factory: Callable[..., MagicMock],
    ) -> None:
        # Arrange
        sockets = [mock_socket_wrapper_factory(fd) for fd in (3, 4, 5)]
        sockets[0].is_readable_or_writable.return_value = (True, True)
        sockets[1].is_readable_or_writable.return_value = (False, True)
        sockets[2].is_readable_or_writable.return_value = (False, False)

        # Act
        readables, writables = multiplexer.check_status(sockets)

        # Assert
        assert readables == [sockets[0]]
        assert writables == [sockets[0], sockets[1]]
        for socket in sockets:
            socket.is_readable_or_writable.assert_called_once_with()

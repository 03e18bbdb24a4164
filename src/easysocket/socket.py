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
"""Socket module.

The :class:`Socket` class wraps a native socket descriptor together with its :class:`.Signature`,
a read buffer and a read storage which keeps the bytes that did not fit in the caller's buffer.
"""

from __future__ import annotations

__all__ = ["Socket"]

import contextlib
import dataclasses
import logging
import os
import socket as _socket
import warnings
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, ParamSpec, Self, TypeVar

from . import _syscalls, _utils, constants, multiplexer
from .address import (
    Address,
    ProtocolFamily,
    SocketProtocol,
    SocketType,
    UnixSocketAddress,
    create_address,
    from_syscall,
    hostname_and_port,
    new_socket_address,
)
from .exceptions import DelegateError, DelegateRetryNeeded, ErrorCode, SocketError
from .signature import Signature

if TYPE_CHECKING:
    from types import TracebackType

    from _typeshed import ReadableBuffer, WriteableBuffer

    from .delegate import SocketDelegate

_P = ParamSpec("_P")
_T_Return = TypeVar("_T_Return")


class Socket:
    """
    A cross-platform BSD socket.

    Use :meth:`create`, :meth:`create_connected` or :meth:`create_from_native_handle` to get an instance.
    Every failure is reported as a :exc:`.SocketError`.
    """

    __slots__ = (
        "__socket",
        "__signature",
        "__delegate",
        "__delegate_initialized",
        "__needs_accept_delegate_call",
        "__is_connected",
        "__is_listening",
        "__is_blocking",
        "__remote_connection_closed",
        "__read_buffer",
        "__read_storage",
        "__max_backlog_size",
        "__owned_path",
        "__weakref__",
    )

    def __init__(
        self,
        sock: _socket.socket,
        signature: Signature,
        *,
        connected: bool = False,
        delegate: SocketDelegate | None = None,
    ) -> None:
        """
        Low-level constructor. Takes ownership of `sock`.

        Parameters:
            sock: the native socket.
            signature: the characteristics of `sock`.
            connected: :data:`True` if `sock` is already connected.
            delegate: a secure transport delegate.
        """
        self.__socket: _socket.socket | None = sock
        self.__owned_path: str | None = None
        self.__signature: Signature = signature
        self.__delegate: SocketDelegate | None = None
        self.__delegate_initialized: bool = False
        self.__needs_accept_delegate_call: bool = False
        self.__is_connected: bool = bool(connected)
        self.__is_listening: bool = False
        self.__is_blocking: bool = sock.getblocking()
        self.__remote_connection_closed: bool = False
        self.__read_buffer: bytearray = bytearray(constants.DEFAULT_READ_BUFFER_SIZE)
        self.__read_storage: bytearray = bytearray()
        self.__max_backlog_size: int = constants.DEFAULT_MAX_BACKLOG
        if delegate is not None:
            self.set_delegate(delegate)

    def __del__(self, *, _warn: _utils.WarnCallback = warnings.warn) -> None:
        try:
            sock = self.__socket
        except AttributeError:
            return
        if sock is not None and sock.fileno() >= 0:
            _warn(f"unclosed socket {self!r}", ResourceWarning, source=self)
            sock.close()
        if (path := self.__owned_path) is not None:
            self.__owned_path = None
            with contextlib.suppress(FileNotFoundError):
                os.unlink(path)

    def __repr__(self) -> str:
        signature = self.__signature
        return (
            f"<{type(self).__name__} fd={self.socketfd}, "
            f"family={signature.protocol_family.name.lower()}, "
            f"type={signature.socket_type.name.lower()}, "
            f"connected={self.__is_connected}, listening={self.__is_listening}>"
        )

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
        /,
    ) -> None:
        self.close()

    def __getstate__(self) -> Any:  # pragma: no cover
        raise TypeError(f"cannot pickle {self.__class__.__name__!r} object")

    def fileno(self) -> int:
        """
        Returns the socket's file descriptor, or ``-1`` if the socket is closed.
        """
        return self.socketfd

    # ------------------------------------------------------------------------------------------
    # Factories

    @classmethod
    def create(
        cls,
        family: ProtocolFamily = ProtocolFamily.INET,
        type: SocketType = SocketType.STREAM,
        proto: SocketProtocol = SocketProtocol.TCP,
        *,
        delegate: SocketDelegate | None = None,
    ) -> Self:
        """
        Creates an unconnected socket.

        The protocol of a Unix-domain socket is always :attr:`.SocketProtocol.UNIX`.

        Raises:
            SocketError: Invalid parameters (:attr:`.ErrorCode.BAD_SIGNATURE_PARAMETERS`).
            SocketError: The native call failed (:attr:`.ErrorCode.UNABLE_TO_CREATE_SOCKET`).
        """
        if family == ProtocolFamily.UNIX:
            proto = SocketProtocol.UNIX
        signature = Signature.from_values(family, type, proto)
        try:
            sock = _socket.socket(signature.protocol_family, signature.socket_type, signature.proto)
        except OSError as exc:
            raise SocketError(ErrorCode.UNABLE_TO_CREATE_SOCKET, _utils.error_reason(exc)) from exc
        cls.__disable_sigpipe(sock)
        return cls(sock, signature, delegate=delegate)

    @classmethod
    def create_connected(cls, signature: Signature, *, delegate: SocketDelegate | None = None) -> Self:
        """
        Creates a socket matching `signature` and connects it. See :meth:`connect_using`.
        """
        self = cls.create(signature.protocol_family, signature.socket_type, signature.proto, delegate=delegate)
        try:
            self.connect_using(signature)
        except BaseException:
            self.close()
            raise
        return self

    @classmethod
    def create_from_native_handle(
        cls,
        handle: int | _socket.socket,
        address: Address | None,
        *,
        delegate: SocketDelegate | None = None,
    ) -> Self:
        """
        Wraps an already connected native socket. Takes ownership of `handle`.

        Parameters:
            handle: a file descriptor or a :class:`socket.socket` instance.
            address: the remote address.

        Raises:
            SocketError: `address` is missing (:attr:`.ErrorCode.MISSING_CONNECTION_DATA`).
            SocketError: `handle` is not a valid socket descriptor (:attr:`.ErrorCode.BAD_DESCRIPTOR`).
        """
        if address is None:
            raise SocketError(ErrorCode.MISSING_CONNECTION_DATA, "Unable to access connection data.")
        if isinstance(handle, _socket.socket):
            sock = handle
        else:
            try:
                sock = _socket.socket(fileno=handle)
            except OSError as exc:
                raise SocketError(ErrorCode.BAD_DESCRIPTOR, _utils.error_reason(exc)) from exc
        return cls.__from_connected_socket(sock, address, None, delegate=delegate)

    @classmethod
    def __from_connected_socket(
        cls,
        sock: _socket.socket,
        address: Address,
        path: str | None,
        *,
        delegate: SocketDelegate | None,
    ) -> Self:
        cls.__disable_sigpipe(sock)
        try:
            socket_type = SocketType.from_value(sock.type) or SocketType.STREAM
            match address:
                case UnixSocketAddress(path=address_path):
                    path = path or address_path
                    if path:
                        signature = Signature.for_path(socket_type, SocketProtocol.UNIX, path)
                    else:
                        signature = Signature.from_values(ProtocolFamily.UNIX, socket_type, SocketProtocol.UNIX, address)
                case _:
                    proto = SocketProtocol.TCP if socket_type == SocketType.STREAM else SocketProtocol.UDP
                    hostname, port = hostname_and_port(address) or (None, None)
                    signature = Signature._for_endpoint(address.family, socket_type, proto, address, hostname, port)
        except BaseException:
            sock.close()
            raise
        return cls(sock, signature, connected=True, delegate=delegate)

    @staticmethod
    def __disable_sigpipe(sock: _socket.socket) -> None:
        try:
            _syscalls.disable_sigpipe(sock)
        except OSError as exc:
            sock.close()
            raise SocketError(ErrorCode.SETSOCKOPT_FAILED, _utils.error_reason(exc)) from exc

    # ------------------------------------------------------------------------------------------
    # Class helpers

    @staticmethod
    def hostname_and_port(address: Address) -> tuple[str, int] | None:
        """
        Extracts the hostname and the port from `address`. See :func:`.address.hostname_and_port`.
        """
        return hostname_and_port(address)

    @staticmethod
    def create_address(host: str, port: int) -> Address | None:
        """
        Resolves `host` and `port`. See :func:`.address.create_address`.
        """
        return create_address(host, port)

    @staticmethod
    def wait(sockets: Sequence[Socket], timeout: int, wait_forever: bool = False) -> list[Socket] | None:
        """
        Waits until at least one of `sockets` has data to read. See :func:`.multiplexer.wait`.
        """
        return multiplexer.wait(sockets, timeout, wait_forever)

    @staticmethod
    def check_status(sockets: Sequence[Socket]) -> tuple[list[Socket], list[Socket]]:
        """
        Checks which of `sockets` are readable and which are writable. See :func:`.multiplexer.check_status`.
        """
        return multiplexer.check_status(sockets)

    # ------------------------------------------------------------------------------------------
    # Delegate

    def set_delegate(self, delegate: SocketDelegate | None) -> None:
        """
        Installs (or removes) the secure transport delegate.

        Installing a delegate grows the read buffer to :data:`.constants.DEFAULT_SSL_READ_BUFFER_SIZE`.
        """
        self.__delegate = delegate
        self.__delegate_initialized = False
        if delegate is not None:
            self.resize_read_buffer(constants.DEFAULT_SSL_READ_BUFFER_SIZE)

    def resize_read_buffer(self, size: int) -> int:
        """
        Changes the size of the buffer given to the native receive calls.

        Values below :data:`.constants.MINIMUM_READ_BUFFER_SIZE` are raised to this minimum.

        Returns:
            the new size.
        """
        size = max(_utils.validate_buffer_size(size), constants.MINIMUM_READ_BUFFER_SIZE)
        if size != len(self.__read_buffer):
            self.__read_buffer = bytearray(size)
        return size

    def __call_delegate(self, func: Callable[_P, _T_Return], /, *args: _P.args, **kwargs: _P.kwargs) -> _T_Return:
        try:
            return func(*args, **kwargs)
        except DelegateError as exc:
            raise SocketError.from_delegate_error(exc) from exc

    def __initialize_delegate(self, as_server: bool) -> None:
        if (delegate := self.__delegate) is None:
            return
        self.__call_delegate(delegate.initialize, as_server)
        self.__delegate_initialized = True

    def __secure_with_delegate(self, callback: Callable[[SocketDelegate, Socket], None], socket: Socket) -> None:
        if (delegate := self.__delegate) is None:
            return
        self.__call_delegate(callback, delegate, socket)
        socket.__signature.is_secure = True

    # ------------------------------------------------------------------------------------------
    # Server side

    def listen(
        self,
        port: int,
        max_backlog_size: int | None = None,
        allow_port_reuse: bool = True,
        *,
        dual_stack: bool = False,
    ) -> None:
        """
        Binds the socket on all the interfaces at `port` and, for stream sockets, starts listening.

        A datagram socket is only bound.

        Parameters:
            port: the port to bind. ``0`` lets the system choose one, which is then available in :attr:`remote_port`.
            max_backlog_size: the maximum number of pending connections. Defaults to the previous value.
            allow_port_reuse: also set ``SO_REUSEPORT`` where available.
            dual_stack: for IPv6 sockets, also accept IPv4-mapped connections.

        Raises:
            SocketError: See :class:`.ErrorCode`.
        """
        sock = self.__check_descriptor()
        if self.__is_connected:
            raise SocketError(ErrorCode.ALREADY_CONNECTED)
        if not _utils.validate_port(port, allow_zero=True):
            raise SocketError(ErrorCode.INVALID_PORT, "The port specified is invalid. Must be in the range of 0-65535.")
        signature = self.__signature
        if signature.protocol_family == ProtocolFamily.UNIX:
            raise SocketError(ErrorCode.WRONG_PROTOCOL, "Use listen_unix() for Unix-domain sockets.")
        if max_backlog_size is not None:
            self.__max_backlog_size = max_backlog_size

        self.__set_socket_option(sock, _socket.SOL_SOCKET, _socket.SO_REUSEADDR, True)
        if allow_port_reuse and hasattr(_socket, "SO_REUSEPORT"):
            try:
                sock.setsockopt(_socket.SOL_SOCKET, getattr(_socket, "SO_REUSEPORT"), True)
            except OSError as exc:
                if exc.errno not in constants.REUSEPORT_UNSUPPORTED_ERRNOS:
                    raise SocketError(ErrorCode.SETSOCKOPT_FAILED, _utils.error_reason(exc)) from exc
        if signature.protocol_family == ProtocolFamily.INET6:
            self.__set_socket_option(sock, _socket.IPPROTO_IPV6, _socket.IPV6_V6ONLY, not dual_stack)

        if signature.socket_type != SocketType.DATAGRAM:
            self.__initialize_delegate(True)

        try:
            infos = _socket.getaddrinfo(
                None,
                port,
                family=signature.protocol_family,
                type=signature.socket_type,
                flags=_socket.AI_PASSIVE,
            )
        except OSError as exc:
            raise SocketError(ErrorCode.GETADDRINFO_FAILED, _utils.error_reason(exc)) from exc

        last_error: OSError | None = None
        for family, _, _, _, sockaddr in infos:
            try:
                sock.bind(sockaddr)
            except OSError as exc:
                last_error = exc
                continue
            break
        else:
            reason = _utils.error_reason(last_error) if last_error is not None else "No address to bind."
            raise SocketError(ErrorCode.BIND_FAILED, reason) from last_error

        if port == 0:
            try:
                _, address = from_syscall(lambda: (None, sock.family, sock.getsockname()))
            except OSError as exc:
                raise SocketError(ErrorCode.BIND_FAILED, _utils.error_reason(exc)) from exc
            if address is None:
                raise SocketError(ErrorCode.WRONG_PROTOCOL, "Unable to determine listening socket protocol family.")
        else:
            address = new_socket_address(sockaddr, family)

        logger = logging.getLogger(__name__)
        logger.debug("fd=%d bound on %s", sock.fileno(), address)

        hostname, port = hostname_and_port(address) or (None, constants.INVALID_PORT)
        signature.hostname = hostname
        signature.port = port
        signature.is_bound = True
        signature.address = address

        if signature.socket_type == SocketType.DATAGRAM:
            return

        try:
            sock.listen(self.__max_backlog_size)
        except OSError as exc:
            raise SocketError(ErrorCode.LISTEN_FAILED, _utils.error_reason(exc)) from exc

        self.__is_listening = True
        signature.is_secure = self.__delegate is not None

    def listen_unix(self, path: str | os.PathLike[str], max_backlog_size: int | None = None) -> None:
        """
        Binds the socket to the Unix-domain node at `path` and, for stream sockets, starts listening.

        A stale node at `path` is removed first. The node is removed again when the socket is closed.

        Raises:
            SocketError: See :class:`.ErrorCode`.
        """
        sock = self.__check_descriptor()
        signature = self.__signature
        if signature.protocol_family != ProtocolFamily.UNIX:
            raise SocketError(ErrorCode.WRONG_PROTOCOL)
        if self.__is_connected:
            raise SocketError(ErrorCode.ALREADY_CONNECTED)
        if max_backlog_size is not None:
            self.__max_backlog_size = max_backlog_size

        self.__set_socket_option(sock, _socket.SOL_SOCKET, _socket.SO_REUSEADDR, True)

        new_signature = Signature.for_path(signature.socket_type, SocketProtocol.UNIX, path)
        assert new_signature.path is not None and new_signature.address is not None
        path = new_signature.path

        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise SocketError(ErrorCode.BIND_FAILED, _utils.error_reason(exc)) from exc

        try:
            sock.bind(new_signature.address.for_connection())
        except OSError as exc:
            raise SocketError(ErrorCode.BIND_FAILED, _utils.error_reason(exc)) from exc
        self.__owned_path = path

        if signature.socket_type != SocketType.DATAGRAM:
            try:
                sock.listen(self.__max_backlog_size)
            except OSError as exc:
                raise SocketError(ErrorCode.LISTEN_FAILED, _utils.error_reason(exc)) from exc
            self.__is_listening = True

        signature.path = path
        signature.is_bound = True
        signature.is_secure = False
        signature.address = new_signature.address

    def accept_client_connection(self, invoke_delegate: bool = True) -> Socket:
        """
        Accepts a pending connection and returns it as a new connected :class:`Socket`.

        The new socket shares the listener's delegate. If `invoke_delegate` is :data:`False`, the delegate's
        :meth:`~.SocketDelegate.on_accept` hook must be run later with :meth:`invoke_delegate_on_accept`.

        Raises:
            SocketError: See :class:`.ErrorCode`.
        """
        sock = self.__check_descriptor()
        if self.__is_connected:
            raise SocketError(ErrorCode.ALREADY_CONNECTED)
        if not self.__is_listening:
            raise SocketError(ErrorCode.NOT_LISTENING)

        new_sock, address = self.__accept(sock)
        new_socket = type(self).__from_connected_socket(new_sock, address, self.__signature.path, delegate=self.__delegate)

        logger = logging.getLogger(__name__)
        logger.debug("fd=%d accepted a connection from %s (fd=%d)", sock.fileno(), address, new_socket.socketfd)

        if self.__delegate is not None:
            new_socket.__needs_accept_delegate_call = True
            if invoke_delegate:
                try:
                    self.invoke_delegate_on_accept(new_socket)
                except BaseException:
                    new_socket.close()
                    raise
        return new_socket

    def invoke_delegate_on_accept(self, new_socket: Socket) -> None:
        """
        Runs the delegate's :meth:`~.SocketDelegate.on_accept` hook on a socket accepted with
        ``accept_client_connection(invoke_delegate=False)``.

        Raises:
            SocketError: `new_socket` is not waiting for this call (:attr:`.ErrorCode.INVALID_DELEGATE_CALL`).
        """
        if not new_socket.__needs_accept_delegate_call:
            raise SocketError(ErrorCode.INVALID_DELEGATE_CALL)
        self.__secure_with_delegate(lambda delegate, socket: delegate.on_accept(socket), new_socket)
        new_socket.__needs_accept_delegate_call = False

    def accept_connection(self) -> None:
        """
        Accepts a pending connection and replaces the listening descriptor with it.

        The listener is closed, this instance becomes the connected socket.

        Raises:
            SocketError: See :class:`.ErrorCode`.
        """
        sock = self.__check_descriptor()
        if self.__is_connected:
            raise SocketError(ErrorCode.ALREADY_CONNECTED)
        if not self.__is_listening:
            raise SocketError(ErrorCode.NOT_LISTENING)

        new_sock, address = self.__accept(sock)
        path = self.__signature.path
        try:
            self.__close(teardown=False)
        finally:
            self.__socket = new_sock
        self.__disable_sigpipe(new_sock)
        self.__is_blocking = new_sock.getblocking()

        logger = logging.getLogger(__name__)
        logger.debug("fd=%d accepted a connection from %s", new_sock.fileno(), address)

        signature = self.__signature
        signature.address = address
        signature.path = path
        if (host_and_port := hostname_and_port(address)) is not None:
            signature.hostname, signature.port = host_and_port
        self.__is_connected = True
        self.__is_listening = False
        self.__remote_connection_closed = False
        self.__secure_with_delegate(lambda delegate, socket: delegate.on_accept(socket), self)

    def __accept(self, sock: _socket.socket) -> tuple[_socket.socket, Address]:
        def accept() -> tuple[_socket.socket, int, Any]:
            new_sock, raw_address = _syscalls.accept(sock)
            return new_sock, new_sock.family, raw_address

        try:
            new_sock, address = from_syscall(accept)
        except OSError as exc:
            raise SocketError(ErrorCode.ACCEPT_FAILED, _utils.error_reason(exc)) from exc
        if address is None:
            new_sock.close()
            raise SocketError(ErrorCode.WRONG_PROTOCOL, "Unable to determine incoming socket protocol family.")
        return new_sock, address

    # ------------------------------------------------------------------------------------------
    # Client side

    def connect(self, host: str, port: int, timeout: int = 0) -> None:
        """
        Connects to `host` at `port`, trying each resolved address in turn.

        Parameters:
            host: the host name or address.
            port: the port, in the range ``1-65535``.
            timeout: maximum time to wait for each attempt, in milliseconds. ``0`` follows the blocking mode.

        Raises:
            SocketError: See :class:`.ErrorCode`.
        """
        self.__check_descriptor()
        if self.__is_connected:
            raise SocketError(ErrorCode.ALREADY_CONNECTED)
        if not host:
            raise SocketError(ErrorCode.INVALID_HOSTNAME)
        if not _utils.validate_port(port, allow_zero=False):
            raise SocketError(ErrorCode.INVALID_PORT, "The port specified is invalid. Must be in the range of 1-65535.")
        timeout = _utils.validate_timeout_milliseconds(timeout)

        self.__initialize_delegate(False)

        socket_type = self.__signature.socket_type
        try:
            infos = _socket.getaddrinfo(host, port, type=socket_type)
        except (OSError, UnicodeError) as exc:
            raise SocketError(ErrorCode.GETADDRINFO_FAILED, _utils.error_reason(exc)) from exc

        logger = logging.getLogger(__name__)
        last_error: OSError | None = None
        for family, type_, proto, _, sockaddr in infos:
            if ProtocolFamily.from_value(family) is None:
                continue
            try:
                trial = _socket.socket(family, type_, proto)
            except OSError as exc:
                last_error = exc
                continue
            try:
                self.__connect_trial(trial, sockaddr, timeout)
            except OSError as exc:
                trial.close()
                logger.debug("connect(%r) failed: %s", sockaddr, exc)
                last_error = exc
                continue
            except BaseException:
                trial.close()
                raise
            break
        else:
            reason = _utils.error_reason(last_error) if last_error is not None else "No address found."
            raise SocketError(ErrorCode.CONNECT_FAILED, reason) from last_error

        address = new_socket_address(sockaddr, family)
        if not proto:
            proto = SocketProtocol.TCP if socket_type == SocketType.STREAM else SocketProtocol.UDP
        try:
            self.__close(teardown=False)
        finally:
            self.__socket = trial
        self.__disable_sigpipe(trial)
        self.__signature = Signature._for_endpoint(family, type_, proto, address, host, port)
        if self.__is_blocking and timeout > 0:
            trial.setblocking(True)

        self.__is_connected = True
        self.__remote_connection_closed = False
        self.__secure_with_delegate(lambda delegate, socket: delegate.on_connect(socket), self)

    def __connect_trial(self, trial: _socket.socket, sockaddr: Any, timeout: int) -> None:
        if not self.__is_blocking or timeout > 0:
            trial.setblocking(False)
        try:
            trial.connect(sockaddr)
        except BlockingIOError:
            if timeout <= 0:
                # Non-blocking socket: the connection completes in the background.
                return
            _, writable = multiplexer.poll(trial.fileno(), timeout=timeout, read=False)
            if not writable:
                raise SocketError(ErrorCode.CONNECT_TIMEOUT, "Connection timed out") from None
            _utils.check_real_socket_state(trial)

    def connect_unix(self, path: str | os.PathLike[str]) -> None:
        """
        Connects to the Unix-domain node at `path`.

        Raises:
            SocketError: See :class:`.ErrorCode`.
        """
        sock = self.__check_descriptor()
        if self.__signature.protocol_family != ProtocolFamily.UNIX:
            raise SocketError(ErrorCode.WRONG_PROTOCOL)
        if self.__is_connected:
            raise SocketError(ErrorCode.ALREADY_CONNECTED)

        signature = Signature.for_path(self.__signature.socket_type, SocketProtocol.UNIX, path)
        assert signature.address is not None
        try:
            sock.connect(signature.address.for_connection())
        except OSError as exc:
            raise SocketError(ErrorCode.CONNECT_FAILED, _utils.error_reason(exc)) from exc

        self.__signature = signature
        self.__is_connected = True
        self.__remote_connection_closed = False

    def connect_using(self, signature: Signature) -> None:
        """
        Connects to the endpoint described by `signature`.

        The path is used first, then the hostname and port, then the resolved address.

        Raises:
            SocketError: `signature` holds no usable endpoint (:attr:`.ErrorCode.MISSING_CONNECTION_DATA`).
            SocketError: See :class:`.ErrorCode`.
        """
        sock = self.__check_descriptor()
        if signature.path is not None:
            return self.connect_unix(signature.path)
        if signature.hostname is not None and signature.port != constants.INVALID_PORT:
            return self.connect(signature.hostname, signature.port)
        if (address := signature.address) is None:
            raise SocketError(ErrorCode.MISSING_CONNECTION_DATA, "Unable to access connection data.")
        if self.__is_connected:
            raise SocketError(ErrorCode.ALREADY_CONNECTED)

        self.__initialize_delegate(False)

        try:
            sock.connect(address.for_connection())
        except OSError as exc:
            raise SocketError(ErrorCode.CONNECT_FAILED, _utils.error_reason(exc)) from exc

        new_signature = dataclasses.replace(signature)
        if (host_and_port := hostname_and_port(address)) is not None:
            new_signature.hostname, new_signature.port = host_and_port
        self.__signature = new_signature
        self.__is_connected = True
        self.__remote_connection_closed = False
        self.__secure_with_delegate(lambda delegate, socket: delegate.on_connect(socket), self)

    # ------------------------------------------------------------------------------------------
    # Reading

    def read_into(self, buffer: WriteableBuffer, nbytes: int = 0, *, truncate: bool = False) -> int:
        """
        Reads into `buffer` everything that is available on the connection.

        The bytes which do not fit stay in the read storage and are returned by the next call.

        Parameters:
            buffer: where to write the received bytes.
            nbytes: the maximum number of bytes to write. ``0`` uses the whole buffer.
            truncate: if :data:`False` and the available bytes do not fit, nothing is copied and
                      :attr:`.ErrorCode.RECV_BUFFER_TOO_SMALL` is raised with the needed size.
                      If :data:`True`, the buffer is filled and the rest is kept for the next call.

        Raises:
            SocketError: See :class:`.ErrorCode`.

        Returns:
            the number of bytes written in `buffer`. ``0`` if the remote end closed the connection,
            or if the socket is non-blocking and no data is available.
        """
        with memoryview(buffer) as view, view.cast("B") as view:
            if nbytes < 0:
                raise ValueError("negative buffersize in read_into")
            if nbytes > len(view):
                raise ValueError("buffer too small for requested bytes")
            view = view[: nbytes or len(view)]
            if not view:
                raise SocketError(ErrorCode.INVALID_BUFFER)
            sock = self.__check_descriptor()
            if not self.__is_connected:
                raise SocketError(ErrorCode.NOT_CONNECTED)

            if not self.__read_storage:
                if self.__read_data_into_storage(sock) == 0:
                    return 0
            return self.__copy_from_storage(view, truncate)

    def read_data(self, data: bytearray) -> int:
        """
        Reads everything that is available on the connection and appends it to `data`.

        Raises:
            SocketError: See :class:`.ErrorCode`.

        Returns:
            the number of bytes appended. ``0`` if the remote end closed the connection,
            or if the socket is non-blocking and no data is available.
        """
        sock = self.__check_descriptor()
        if not self.__is_connected:
            raise SocketError(ErrorCode.NOT_CONNECTED)

        storage = self.__read_storage
        if not storage:
            if self.__read_data_into_storage(sock) == 0:
                return 0
        nbytes = len(storage)
        data += storage
        storage.clear()
        return nbytes

    def read_string(self, encoding: str = "utf-8") -> str | None:
        """
        Reads everything that is available on the connection and decodes it.

        Raises:
            SocketError: See :class:`.ErrorCode`.
            UnicodeDecodeError: The bytes are not valid for `encoding`.

        Returns:
            the decoded string, or :data:`None` if nothing was read.
        """
        data = bytearray()
        if self.read_data(data) == 0:
            return None
        return data.decode(encoding)

    def read_datagram_into(self, buffer: WriteableBuffer) -> tuple[int, Address | None]:
        """
        Receives one datagram into `buffer`. The part which does not fit is discarded.

        Raises:
            SocketError: See :class:`.ErrorCode`.

        Returns:
            a pair of (nbytes, sender address). ``(0, None)`` if the socket is non-blocking and no datagram is available.
        """
        with memoryview(buffer) as view, view.cast("B") as view:
            if not view:
                raise SocketError(ErrorCode.INVALID_BUFFER)
            nbytes, address = self.__recvfrom()
            nbytes = min(nbytes, len(view))
            view[:nbytes] = self.__read_buffer[:nbytes]
            return nbytes, address

    def read_datagram(self, data: bytearray) -> tuple[int, Address | None]:
        """
        Receives one datagram and appends it to `data`.

        Raises:
            SocketError: See :class:`.ErrorCode`.

        Returns:
            a pair of (nbytes, sender address). ``(0, None)`` if the socket is non-blocking and no datagram is available.
        """
        nbytes, address = self.__recvfrom()
        data += self.__read_buffer[:nbytes]
        return nbytes, address

    def listen_for_message(
        self,
        buffer: WriteableBuffer,
        port: int,
        max_backlog_size: int | None = None,
    ) -> tuple[int, Address | None]:
        """
        Binds the datagram socket at `port` if it is not bound yet, then receives one datagram into `buffer`.

        Raises:
            SocketError: See :class:`.ErrorCode`.

        Returns:
            a pair of (nbytes, sender address).
        """
        with memoryview(buffer) as view:
            if not view.nbytes:
                raise SocketError(ErrorCode.INVALID_BUFFER)
        self.__check_descriptor()
        signature = self.__signature
        if signature.socket_type != SocketType.DATAGRAM:
            raise SocketError(ErrorCode.WRONG_PROTOCOL, "This is not a UDP socket.")
        if not signature.is_bound:
            self.listen(port, max_backlog_size)
        if not signature.is_bound:
            raise SocketError(ErrorCode.LISTEN_FAILED, "Unable to bind the socket.")
        self.__is_listening = True
        return self.read_datagram_into(buffer)

    def __read_data_into_storage(self, sock: _socket.socket) -> int:
        read_buffer = self.__read_buffer
        read_buffer_size = len(read_buffer)
        storage = self.__read_storage
        with memoryview(read_buffer) as read_view:
            while True:
                try:
                    count = self.__recv_into(sock, read_view, first_call=not storage)
                except BlockingIOError:
                    break
                except OSError as exc:
                    raise self.__stream_error(exc, ErrorCode.RECV_FAILED) from exc
                if count == 0:
                    self.__remote_connection_closed = True
                    break
                storage += read_view[:count]
                if count < read_buffer_size:
                    break
        return len(storage)

    def __recv_into(self, sock: _socket.socket, buffer: memoryview, *, first_call: bool) -> int:
        if (delegate := self.__delegate) is not None:
            while True:
                try:
                    return delegate.recv_into(self, buffer)
                except DelegateRetryNeeded:
                    if not first_call:
                        raise BlockingIOError from None
                    self.__wait_until(readable=True)
                except DelegateError as exc:
                    raise SocketError.from_delegate_error(exc) from exc
        if first_call:
            return sock.recv_into(buffer)
        # Only the first call may block.
        return _syscalls.recv_into_nowait(sock, buffer)

    def __copy_from_storage(self, view: memoryview, truncate: bool) -> int:
        storage = self.__read_storage
        size = len(view)
        if size < len(storage):
            if not truncate:
                raise SocketError.buffer_too_small(len(storage))
            view[:] = storage[:size]
            del storage[:size]
            return size
        nbytes = len(storage)
        view[:nbytes] = storage
        storage.clear()
        return nbytes

    def __recvfrom(self) -> tuple[int, Address | None]:
        sock = self.__check_descriptor()
        if self.__signature.socket_type != SocketType.DATAGRAM:
            raise SocketError(ErrorCode.WRONG_PROTOCOL, "This is not a UDP socket.")
        read_buffer = self.__read_buffer

        def recvfrom() -> tuple[int, int, Any]:
            nbytes, raw_address = sock.recvfrom_into(read_buffer)
            # Unbound Unix-domain senders have no address.
            family = sock.family if raw_address is not None else -1
            return nbytes, family, raw_address

        try:
            return from_syscall(recvfrom)
        except BlockingIOError:
            return 0, None
        except OSError as exc:
            if exc.errno in constants.CONNECTION_RESET_ERRNOS:
                raise SocketError(ErrorCode.CONNECTION_RESET, _utils.error_reason(exc)) from exc
            raise SocketError(ErrorCode.RECV_FAILED, _utils.error_reason(exc)) from exc

    # ------------------------------------------------------------------------------------------
    # Writing

    def write(self, data: ReadableBuffer | str) -> int:
        """
        Sends all of `data` on the connection. :class:`str` objects are encoded in UTF-8.

        Raises:
            SocketError: See :class:`.ErrorCode`.

        Returns:
            the number of bytes sent. For a non-blocking socket, this may be less than ``len(data)``.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        with memoryview(data) as view, view.cast("B") as view:
            if not view:
                return 0
            sock = self.__check_descriptor()
            if not self.__is_connected:
                raise SocketError(ErrorCode.NOT_CONNECTED)

            total_sent = 0
            while total_sent < len(view):
                try:
                    sent = self.__send(sock, view[total_sent:])
                except BlockingIOError as exc:
                    # Send timeout expired after a partial write.
                    if not self.__is_blocking or total_sent > 0:
                        break
                    raise SocketError(ErrorCode.WRITE_FAILED, _utils.error_reason(exc)) from exc
                except OSError as exc:
                    raise self.__stream_error(exc, ErrorCode.WRITE_FAILED) from exc
                if sent <= 0:
                    raise SocketError(ErrorCode.WRITE_FAILED, "Transport shutdown")
                total_sent += sent
            return total_sent

    def write_to(self, data: ReadableBuffer | str, address: Address) -> int:
        """
        Sends `data` as one datagram to `address`. :class:`str` objects are encoded in UTF-8.

        Raises:
            SocketError: See :class:`.ErrorCode`.

        Returns:
            the number of bytes sent. ``0`` if the socket is non-blocking and the datagram could not be queued.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        sock = self.__check_descriptor()
        if self.__signature.socket_type != SocketType.DATAGRAM:
            raise SocketError(ErrorCode.WRONG_PROTOCOL, "This is not a UDP socket.")
        try:
            return sock.sendto(data, _syscalls.SEND_FLAGS, address.for_connection())
        except BlockingIOError as exc:
            if not self.__is_blocking:
                return 0
            raise SocketError(ErrorCode.WRITE_FAILED, _utils.error_reason(exc)) from exc
        except OSError as exc:
            if exc.errno in constants.CONNECTION_RESET_ERRNOS:
                raise SocketError(ErrorCode.CONNECTION_RESET, _utils.error_reason(exc)) from exc
            raise SocketError(ErrorCode.WRITE_FAILED, _utils.error_reason(exc)) from exc

    def __send(self, sock: _socket.socket, view: memoryview) -> int:
        if (delegate := self.__delegate) is not None:
            while True:
                try:
                    return delegate.send(self, view)
                except DelegateRetryNeeded:
                    self.__wait_until(writable=True)
                except DelegateError as exc:
                    raise SocketError.from_delegate_error(exc) from exc
        return sock.send(view, _syscalls.SEND_FLAGS)

    @staticmethod
    def __stream_error(exc: OSError, default_code: ErrorCode) -> SocketError:
        if exc.errno in constants.CONNECTION_RESET_ERRNOS:
            code = ErrorCode.CONNECTION_RESET
        elif _utils.is_closed_socket_error(exc):
            code = ErrorCode.BAD_DESCRIPTOR
        elif exc.errno in constants.NOT_CONNECTED_SOCKET_ERRNOS:
            code = ErrorCode.NOT_CONNECTED
        else:
            code = default_code
        return SocketError(code, _utils.error_reason(exc))

    def __wait_until(self, *, readable: bool = False, writable: bool = False) -> None:
        sock = self.__check_descriptor()
        multiplexer.poll(sock.fileno(), True, read=readable, write=writable)

    # ------------------------------------------------------------------------------------------
    # Options

    def set_blocking(self, should_block: bool) -> None:
        """
        Switches the socket between blocking and non-blocking mode.

        Raises:
            SocketError: See :class:`.ErrorCode`.
        """
        sock = self.__check_descriptor()
        try:
            sock.setblocking(should_block)
        except OSError as exc:
            raise SocketError(ErrorCode.SET_FCNTL_FAILED, _utils.error_reason(exc)) from exc
        self.__is_blocking = bool(should_block)

    def set_read_timeout(self, milliseconds: int = 0) -> None:
        """
        Sets the ``SO_RCVTIMEO`` option. ``0`` disables the timeout.

        A blocking read which times out returns ``0``, like a non-blocking read without data.

        Raises:
            SocketError: See :class:`.ErrorCode`.
        """
        milliseconds = _utils.validate_timeout_milliseconds(milliseconds)
        sock = self.__check_descriptor()
        try:
            sock.setsockopt(_socket.SOL_SOCKET, _socket.SO_RCVTIMEO, _syscalls.pack_timeout(milliseconds))
        except OSError as exc:
            raise SocketError(ErrorCode.SET_RECV_TIMEOUT_FAILED, _utils.error_reason(exc)) from exc

    def set_write_timeout(self, milliseconds: int = 0) -> None:
        """
        Sets the ``SO_SNDTIMEO`` option. ``0`` disables the timeout.

        Raises:
            SocketError: See :class:`.ErrorCode`.
        """
        milliseconds = _utils.validate_timeout_milliseconds(milliseconds)
        sock = self.__check_descriptor()
        try:
            sock.setsockopt(_socket.SOL_SOCKET, _socket.SO_SNDTIMEO, _syscalls.pack_timeout(milliseconds))
        except OSError as exc:
            raise SocketError(ErrorCode.SET_WRITE_TIMEOUT_FAILED, _utils.error_reason(exc)) from exc

    def udp_broadcast(self, enable: bool) -> None:
        """
        Enables or disables ``SO_BROADCAST`` on a datagram socket.

        Raises:
            SocketError: See :class:`.ErrorCode`.
        """
        sock = self.__check_descriptor()
        if self.__signature.socket_type != SocketType.DATAGRAM:
            raise SocketError(ErrorCode.WRONG_PROTOCOL, "This is not a UDP socket.")
        self.__set_socket_option(sock, _socket.SOL_SOCKET, _socket.SO_BROADCAST, enable)

    @staticmethod
    def __set_socket_option(sock: _socket.socket, level: int, option: int, value: bool) -> None:
        try:
            sock.setsockopt(level, option, value)
        except OSError as exc:
            raise SocketError(ErrorCode.SETSOCKOPT_FAILED, _utils.error_reason(exc)) from exc

    # ------------------------------------------------------------------------------------------
    # Readiness

    def is_readable_or_writable(self, wait_forever: bool = False, timeout: int = 0) -> tuple[bool, bool]:
        """
        Checks if the connection is readable and/or writable.

        Bytes waiting in the read storage make the socket readable.

        Parameters:
            wait_forever: if :data:`True`, blocks until the socket is either readable or writable.
            timeout: maximum time to wait, in milliseconds.

        Raises:
            SocketError: See :class:`.ErrorCode`.

        Returns:
            a pair of (readable, writable).
        """
        sock = self.__check_descriptor()
        if not self.__is_connected:
            raise SocketError(ErrorCode.NOT_CONNECTED)
        readable, writable = multiplexer.poll(sock.fileno(), wait_forever, timeout)
        return readable or bool(self.__read_storage), writable

    # ------------------------------------------------------------------------------------------
    # Closing

    def close(self) -> None:
        """
        Closes the socket.

        Runs the delegate's teardown if this socket initialized it, shuts a listener down and removes
        the Unix-domain node this socket listens on. Calling :meth:`close` again has no effect.

        Raises:
            SocketError: The delegate's teardown failed. The socket is closed anyway.
        """
        self.__close(teardown=True)

    def __close(self, *, teardown: bool) -> None:
        sock, self.__socket = self.__socket, None
        delegate = self.__delegate if teardown and self.__delegate_initialized else None
        try:
            if delegate is not None:
                self.__delegate_initialized = False
                self.__call_delegate(delegate.teardown)
        finally:
            try:
                if sock is not None:
                    try:
                        if self.__is_listening:
                            sock.shutdown(_socket.SHUT_RDWR)
                    except OSError:
                        pass
                    finally:
                        sock.close()
                if (path := self.__owned_path) is not None:
                    self.__owned_path = None
                    with contextlib.suppress(FileNotFoundError):
                        os.unlink(path)
            finally:
                self.__is_listening = False
                self.__is_connected = False
                self.__read_storage.clear()
                signature = self.__signature
                signature.hostname = None
                signature.port = constants.INVALID_PORT
                signature.path = None
                signature.is_secure = False

    # ------------------------------------------------------------------------------------------
    # Properties

    def __check_descriptor(self) -> _socket.socket:
        sock = self.__socket
        if sock is None or sock.fileno() < 0:
            raise SocketError(ErrorCode.BAD_DESCRIPTOR)
        return sock

    @property
    def socketfd(self) -> int:
        """The native descriptor, or ``-1`` if the socket is closed."""
        sock = self.__socket
        if sock is None:
            return constants.INVALID_DESCRIPTOR
        return sock.fileno()

    @property
    def native_socket(self) -> _socket.socket | None:
        """
        The underlying :class:`socket.socket`, or :data:`None` once closed.

        Meant for :class:`.SocketDelegate` implementations, which transfer the raw bytes themselves.
        It must not be closed directly.
        """
        return self.__socket

    @property
    def signature(self) -> Signature:
        """The characteristics of the socket."""
        return self.__signature

    @property
    def delegate(self) -> SocketDelegate | None:
        """The secure transport delegate, if any."""
        return self.__delegate

    @property
    def remote_hostname(self) -> str:
        """The remote host name, or an empty string if unknown."""
        return self.__signature.hostname or constants.NO_HOSTNAME

    @property
    def remote_port(self) -> int:
        """The remote port (the bound port for a listener), or ``-1`` if unknown."""
        return self.__signature.port

    @property
    def listening_port(self) -> int:
        """The port this socket listens on, or ``-1`` if it is not listening."""
        if not self.__is_listening:
            return constants.INVALID_PORT
        return self.__signature.port

    @property
    def remote_path(self) -> str | None:
        """The Unix-domain node path, if any."""
        return self.__signature.path

    @property
    def is_connected(self) -> bool:
        return self.__is_connected

    @property
    def is_listening(self) -> bool:
        return self.__is_listening

    @property
    def is_server(self) -> bool:
        return self.__is_listening

    @property
    def is_active(self) -> bool:
        """:data:`True` if the socket is connected or listening."""
        return self.__is_connected or self.__is_listening

    @property
    def is_blocking(self) -> bool:
        return self.__is_blocking

    @property
    def is_secure(self) -> bool:
        return self.__signature.is_secure

    @property
    def is_bound(self) -> bool:
        return self.__signature.is_bound

    @property
    def remote_connection_closed(self) -> bool:
        """:data:`True` once a read saw the end of the stream."""
        return self.__remote_connection_closed

    @property
    def needs_accept_delegate_call(self) -> bool:
        """:data:`True` if :meth:`invoke_delegate_on_accept` must still be called for this socket."""
        return self.__needs_accept_delegate_call

    @property
    def read_buffer_size(self) -> int:
        """The size of the buffer given to the native receive calls."""
        return len(self.__read_buffer)

    @property
    def buffered_bytes(self) -> int:
        """The number of bytes already read from the network and waiting in the read storage."""
        return len(self.__read_storage)

    @property
    def max_backlog_size(self) -> int:
        return self.__max_backlog_size

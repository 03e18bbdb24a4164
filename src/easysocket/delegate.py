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
"""Secure transport hook module."""

from __future__ import annotations

__all__ = ["SocketDelegate"]

from abc import ABCMeta, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from _typeshed import ReadableBuffer, WriteableBuffer

    from .socket import Socket


class SocketDelegate(metaclass=ABCMeta):
    """
    The interface a secure transport provider implements to intercept the raw byte transfer of a
    :class:`~easysocket.socket.Socket`.

    Every method may raise :exc:`~easysocket.exceptions.DelegateError`; the socket converts it
    with :meth:`.SocketError.from_delegate_error`. :meth:`send` and :meth:`recv_into` may raise
    :exc:`~easysocket.exceptions.DelegateRetryNeeded` to ask the socket to wait for the descriptor
    and call them again.
    """

    __slots__ = ("__weakref__",)

    @abstractmethod
    def initialize(self, as_server: bool) -> None:
        """
        Called before the socket connects or listens.

        Parameters:
            as_server: :data:`True` for a listening socket, :data:`False` for a client.
        """
        raise NotImplementedError

    @abstractmethod
    def teardown(self) -> None:
        """
        Called when the socket is closed.
        """
        raise NotImplementedError

    @abstractmethod
    def on_accept(self, socket: Socket) -> None:
        """
        Called with a newly accepted connection, once the raw accept succeeded.
        """
        raise NotImplementedError

    @abstractmethod
    def on_connect(self, socket: Socket) -> None:
        """
        Called once the raw connection to a server succeeded.
        """
        raise NotImplementedError

    @abstractmethod
    def send(self, socket: Socket, data: ReadableBuffer) -> int:
        """
        Low level writer.

        Parameters:
            socket: The socket which sends the data.
            data: The bytes to send.

        Returns:
            the number of bytes written. Zero indicates a transport shutdown.
        """
        raise NotImplementedError

    @abstractmethod
    def recv_into(self, socket: Socket, buffer: WriteableBuffer) -> int:
        """
        Low level reader.

        Parameters:
            socket: The socket which receives the data.
            buffer: Where to write the received bytes.

        Returns:
            the number of bytes read. Zero indicates a transport shutdown.
        """
        raise NotImplementedError

    def add_supported_alpn_protocol(self, proto: str) -> None:
        """
        Adds a protocol to the list of supported ALPN protocol names, e.g. ``"http/1.1"`` and ``"h2"``.

        The default implementation does not support ALPN and raises :exc:`NotImplementedError`.
        """
        raise NotImplementedError("ALPN is not supported by this delegate")

    @property
    def negotiated_alpn_protocol(self) -> str | None:
        """The protocol agreed upon during the handshake, if ALPN was used."""
        return None

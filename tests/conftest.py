from __future__ import annotations

import socket
from typing import TYPE_CHECKING

from easysocket import constants

import pytest


def pytest_report_header(config: pytest.Config) -> list[str]:
    return [
        f"AF_UNIX: {hasattr(socket, 'AF_UNIX')}, IPv6: {socket.has_ipv6}",
        f"FD_SETSIZE: {constants.FD_SETSIZE}, MSG_NOSIGNAL: {hasattr(socket, 'MSG_NOSIGNAL')}",
    ]


PYTEST_PLUGINS_PACKAGE = f"{__package__}.pytest_plugins"


pytest_plugins = [
    f"{PYTEST_PLUGINS_PACKAGE}.auto_markers",
    f"{PYTEST_PLUGINS_PACKAGE}.unix_sockets",
]

if TYPE_CHECKING:
    # Import pytest plugins so Pylance can suggest defined fixtures

    from .pytest_plugins import (  # noqa: F401
        auto_markers as auto_markers,
        unix_sockets as unix_sockets,
    )

from __future__ import annotations

import os
import socket
import sys
from typing import final

import pytest


def _make_skipif_platform(platform: str | tuple[str, ...], reason: str, *, skip_only_on_ci: bool) -> pytest.MarkDecorator:
    condition: bool = sys.platform.startswith(platform)
    if skip_only_on_ci:
        # skip if 'CI' is set to a non-empty value
        condition = condition and bool(os.environ.get("CI", ""))
    return pytest.mark.skipif(condition, reason=reason)


@final
class PlatformMarkers:
    ###### SKIP SOME PLATFORMS ######

    @staticmethod
    def skipif_platform_win32_because(reason: str, *, skip_only_on_ci: bool = False) -> pytest.MarkDecorator:
        return _make_skipif_platform("win32", reason, skip_only_on_ci=skip_only_on_ci)

    @staticmethod
    def skipif_platform_macOS_because(reason: str, *, skip_only_on_ci: bool = False) -> pytest.MarkDecorator:
        return _make_skipif_platform("darwin", reason, skip_only_on_ci=skip_only_on_ci)

    skipif_platform_win32 = skipif_platform_win32_because("cannot run on Windows")
    skipif_platform_macOS = skipif_platform_macOS_because("cannot run on MacOS")

    ###### RESTRICT TESTS FOR FEATURES ######

    requires_unix_sockets = pytest.mark.skipif(not hasattr(socket, "AF_UNIX"), reason="AF_UNIX is not defined")
    requires_ipv6 = pytest.mark.skipif(not socket.has_ipv6, reason="IPv6 is not supported")

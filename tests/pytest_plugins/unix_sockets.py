from __future__ import annotations

import contextlib
import dataclasses
import os
import pathlib
import secrets
from collections.abc import Iterator

import pytest


@dataclasses.dataclass(repr=False, eq=False, kw_only=True, slots=True)
class UnixSocketPathFactory:
    _tmp_dir: pathlib.Path
    _created: list[pathlib.Path] = dataclasses.field(default_factory=list)

    def __call__(self) -> str:
        # Always a fresh name: the tests check that the node is created and removed.
        while (unix_socket_path := self._tmp_dir / f"es-{secrets.token_hex(4)}.sock").exists():
            continue
        self._created.append(unix_socket_path)
        return os.fspath(unix_socket_path)

    def cleanup(self) -> None:
        for unix_socket_path in self._created:
            with contextlib.suppress(FileNotFoundError):
                os.remove(unix_socket_path)
        self._created.clear()


@pytest.fixture(scope="session")
def unix_socket_path_factory(tmp_path_factory: pytest.TempPathFactory) -> Iterator[UnixSocketPathFactory]:
    # NOTE: Do not use tmp_path fixture
    # sun_path is limited to 104 or 108 bytes, pytest's tmp folder could be too long for some test names.
    tmp_dir = tmp_path_factory.getbasetemp().absolute()

    # Try to reduce the path length by having a relative path.
    with contextlib.suppress(ValueError):
        tmp_dir = tmp_dir.relative_to(os.getcwd())

    factory = UnixSocketPathFactory(_tmp_dir=tmp_dir)
    yield factory
    factory.cleanup()


@pytest.fixture
def unix_socket_path(unix_socket_path_factory: UnixSocketPathFactory) -> str:
    return unix_socket_path_factory()

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
"""File descriptor set module."""

from __future__ import annotations

__all__ = ["FDSet"]

import array
import sys
from collections.abc import Iterable, Iterator
from typing import Final

from . import constants

# macOS declares fd_set as an array of int32_t, the others as an array of long.
_WORD_TYPECODE: Final[str] = "I" if sys.platform == "darwin" else "L"


class FDSet:
    """
    A fixed-capacity bitmap of file descriptors, laid out like the native ``fd_set`` structure.

    Example:
        >>> fds = FDSet()
        >>> fds.add(3)
        >>> 3 in fds
        True
        >>> fds.remove(3)
        >>> 3 in fds
        False
    """

    __slots__ = ("__words", "__weakref__")

    word_bits: Final[int] = array.array(_WORD_TYPECODE).itemsize * 8

    def __init__(self, fds: Iterable[int] = (), *, size: int = constants.FD_SETSIZE) -> None:
        """
        Parameters:
            fds: Initial set members.
            size: Capacity of the set, in bits.
        """
        if size <= 0:
            raise ValueError("size must be a positive integer")
        nb_words = -(-size // self.word_bits)
        self.__words: array.array[int] = array.array(_WORD_TYPECODE, bytes(nb_words * array.array(_WORD_TYPECODE).itemsize))
        for fd in fds:
            self.add(fd)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {list(self)!r}>"

    @property
    def capacity(self) -> int:
        """The number of descriptors the set can address."""
        return len(self.__words) * self.word_bits

    def __locate(self, fd: int) -> tuple[int, int]:
        if fd < 0 or fd >= self.capacity:
            raise ValueError(f"file descriptor out of range: {fd!r} (capacity is {self.capacity})")
        index, bit = divmod(fd, self.word_bits)
        return index, 1 << bit

    def zero(self) -> None:
        """Clears all the bits."""
        for index in range(len(self.__words)):
            self.__words[index] = 0

    def add(self, fd: int) -> None:
        """Sets the bit of `fd`. (``FD_SET``)"""
        index, mask = self.__locate(fd)
        self.__words[index] |= mask

    def remove(self, fd: int) -> None:
        """Clears the bit of `fd`. (``FD_CLR``)"""
        index, mask = self.__locate(fd)
        self.__words[index] &= ~mask

    def contains(self, fd: int) -> bool:
        """Tests the bit of `fd`. (``FD_ISSET``)"""
        index, mask = self.__locate(fd)
        return bool(self.__words[index] & mask)

    def __contains__(self, fd: object) -> bool:
        if not isinstance(fd, int) or fd < 0 or fd >= self.capacity:
            return False
        return self.contains(fd)

    def __iter__(self) -> Iterator[int]:
        word_bits = self.word_bits
        for index, word in enumerate(self.__words):
            if not word:
                continue
            base = index * word_bits
            while word:
                lowest = word & -word
                yield base + lowest.bit_length() - 1
                word ^= lowest

    def __len__(self) -> int:
        return sum(word.bit_count() for word in self.__words)

    def __bool__(self) -> bool:
        return any(self.__words)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FDSet):
            return NotImplemented
        return self.__words == other.__words

    __hash__ = None  # type: ignore[assignment]

    def highest(self) -> int:
        """Returns the greatest descriptor in the set, or ``-1`` if the set is empty."""
        highest = -1
        for fd in self:
            highest = fd
        return highest

    def as_bytes(self) -> bytes:
        """Returns the raw bitmap, in the native layout."""
        return self.__words.tobytes()

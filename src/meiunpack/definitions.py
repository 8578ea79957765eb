"""Definitions expressed concretely in core."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum, IntFlag
from functools import total_ordering
from typing import Any, Tuple, Iterable, Union, List, TypeVar, Optional

MAGIC_WORD = b"MEI\014\013\012\013\016"

SEARCH_CHUNK_SIZE = 8192
VERSION_PROBE_SIZE = 64
VERSION_PROBE_TOKEN = b"python"

# TOC entry: size(4) pos(4) compressed(4) uncompressed(4) flag(1) kind(1)
TOC_ENTRY_FIXED_SIZE = 18
TOC_ENTRY_SIZE_FIELD = 4

_T = TypeVar("_T")


def _has_get_attr(o: Any, name: str, default: _T) -> _T:
    if hasattr(o, name):
        return getattr(o, name)  # type: ignore
    return default


# Safe versions of existing flags
# will fail for (value & flag) == flag; but will not interfere with (value | flag) use-cases
class OSFlags(IntFlag):
    O_BINARY = _has_get_attr(os, "O_BINARY", 0)  # win only
    O_CREAT = _has_get_attr(os, "O_CREAT", 0)
    O_WRONLY = _has_get_attr(os, "O_WRONLY", 0)
    O_TRUNC = _has_get_attr(os, "O_TRUNC", 0)


@dataclass(frozen=True)
@total_ordering
class Version:
    """The Python version an archive was built for.

    Args:
        major (int): The Major Version (the 3 in 3.11).
        minor (int): The Minor Version (the 11 in 3.11).
    """

    major: int
    minor: int = 0

    @classmethod
    def from_code(cls, code: int) -> Version:
        """Decode the cookie's version number; 311 is 3.11, 27 is 2.7."""
        if code >= 100:
            return cls(code // 100, code % 100)
        return cls(code // 10, code % 10)

    def __str__(self) -> str:
        return f"Python {self.major}.{self.minor}"

    def __iter__(self) -> Iterable[int]:
        yield self.major
        yield self.minor

    def __len__(self) -> int:
        return 2

    def __getitem__(self, item: Union[int, slice]) -> Union[int, List[int]]:
        return self.as_tuple()[item]

    def as_tuple(self) -> Tuple[int, int]:
        return tuple(self)  # type: ignore

    def __eq__(self, other: object) -> bool:
        return self.as_tuple() == (
            other.as_tuple() if isinstance(other, Version) else other
        )

    def __lt__(self, other: Any) -> bool:
        cmp: bool = self.as_tuple() < (
            other.as_tuple() if isinstance(other, Version) else other
        )
        return cmp

    def __hash__(self) -> int:
        return self.as_tuple().__hash__()


class CookieLayout(int, Enum):
    """Cookie layouts; the value is the size of the cookie in bytes."""

    V0 = 24  # PyInstaller 2.0
    V1 = 24 + 64  # PyInstaller 2.1+; followed by the python library name

    @property
    def size(self) -> int:
        return int(self.value)


class EntryKind(int, Enum):
    """PyInstaller's single character type codes for TOC entries."""

    BINARY = ord("b")
    DEPENDENCY = ord("d")
    SPLASH = ord("l")
    DATA = ord("x")
    PYMODULE = ord("m")
    PYPACKAGE = ord("M")
    PYSOURCE = ord("s")
    PYZ = ord("z")
    ZIPFILE = ord("Z")
    RUNTIME_OPTION = ord("o")
    SYMLINK = ord("n")

    @classmethod
    def from_code(cls, code: int) -> Optional[EntryKind]:
        try:
            return cls(code)
        except ValueError:
            return None

    @property
    def is_script(self) -> bool:
        return self in (EntryKind.PYSOURCE, EntryKind.PYMODULE)


__all__ = [
    "MAGIC_WORD",
    "SEARCH_CHUNK_SIZE",
    "VERSION_PROBE_SIZE",
    "VERSION_PROBE_TOKEN",
    "TOC_ENTRY_FIXED_SIZE",
    "TOC_ENTRY_SIZE_FIELD",
    "OSFlags",
    "Version",
    "CookieLayout",
    "EntryKind",
]

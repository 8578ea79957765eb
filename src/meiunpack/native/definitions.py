from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Generic, List, Optional, Tuple, TypeVar

from relic.core.errors import MismatchError

from meiunpack.definitions import CookieLayout, EntryKind, Version


@dataclass(frozen=True, slots=True)
class TOCEntry:
    """File entry with absolute byte offset in the executable."""

    absolute_position: int
    compressed_size: int
    uncompressed_size: int
    is_compressed: bool
    kind_code: int
    name: str

    @property
    def kind(self) -> Optional[EntryKind]:
        return EntryKind.from_code(self.kind_code)

    @property
    def is_script(self) -> bool:
        kind = self.kind
        return kind is not None and kind.is_script


@dataclass(frozen=True, slots=True)
class CookieHeader:
    position: int
    layout: CookieLayout
    package_length: int
    toc_offset: int
    toc_length: int
    python_version_code: int
    python_library: str = ""

    @property
    def size(self) -> int:
        return self.layout.size

    @property
    def python_version(self) -> Version:
        return Version.from_code(self.python_version_code)


@dataclass(frozen=True, slots=True)
class ResolvedLayout:
    cookie_position: int
    overlay_position: int
    overlay_size: int
    toc_position: int
    toc_size: int
    used_fallback: bool = False


@dataclass(slots=True)
class ExtractionTimings:
    parsing_archive: float = 0
    creating_dirs: float = 0
    executing_tasks: float = 0

    @property
    def total_time(self) -> float:
        return sum(
            [
                self.parsing_archive,
                self.creating_dirs,
                self.executing_tasks,
            ]
        )


@dataclass(slots=True)
class ExtractionStats:
    """Statistics for extraction operation."""

    total_files: int = 0
    extracted_files: int = 0
    failed_files: int = 0
    total_bytes: int = 0
    extracted_bytes: int = 0
    timings: ExtractionTimings = field(default_factory=ExtractionTimings)


_T = TypeVar("_T")
_TIn = TypeVar("_TIn")
_TOut = TypeVar("_TOut")


@dataclass(slots=True)
class Result(Generic[_TIn, _TOut]):

    input: _TIn
    output: _TOut | None = None
    errors: List[str | Exception] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @classmethod
    def create_error(cls, input: _TIn, *errors: str | Exception) -> Result[_TIn, _TOut]:
        return cls(input=input, output=None, errors=list(errors))


@dataclass(slots=True)
class ExtractionReport:
    """Per-entry outcome of an extraction; never a single pass/fail verdict."""

    results: List[Result[TOCEntry, str]] = field(default_factory=list)
    warnings: List[str | Exception] = field(default_factory=list)
    stats: ExtractionStats = field(default_factory=ExtractionStats)

    @property
    def succeeded(self) -> List[TOCEntry]:
        return [r.input for r in self.results if not r.has_errors]

    @property
    def failed(self) -> List[Result[TOCEntry, str]]:
        return [r for r in self.results if r.has_errors]

    @property
    def ok(self) -> bool:
        return not any(r.has_errors for r in self.results)


@dataclass(slots=True)
class TocDecodeResult:
    entries: Tuple[TOCEntry, ...]
    parsed_length: int
    malformed: List[Exception] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class ArchiveHandle:
    """The archive file, opened once and shared by every reader.

    The file cursor is shared state; every seek+read pair happens inside
    ``_lock`` and nothing else does.
    """

    def __init__(self, path: str):
        self._path = path
        self._handle: Optional[BinaryIO] = None
        self._file_size = 0
        self._lock = threading.Lock()

    @property
    def path(self) -> str:
        return self._path

    @property
    def file_size(self) -> int:
        return self._file_size

    @property
    def closed(self) -> bool:
        return self._handle is None

    def open(self) -> None:
        if self._handle is None:
            self._handle = open(self._path, "rb")
            self._file_size = os.fstat(self._handle.fileno()).st_size

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> ArchiveHandle:
        self.open()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def read(self, offset: int, size: int) -> bytes:
        """Read up to ``size`` bytes at ``offset``; short near EOF."""
        if self._handle is None:
            raise ValueError(f"'{self._path}' is not open")
        with self._lock:
            self._handle.seek(offset)
            return self._handle.read(size)

    def read_exact(self, offset: int, size: int) -> bytes:
        buffer = self.read(offset, size)
        if len(buffer) != size:
            raise MismatchError("Read", len(buffer), size)
        return buffer

    def read_range(self, offset: int, terminal: int) -> bytes:
        return self.read(offset, terminal - offset)

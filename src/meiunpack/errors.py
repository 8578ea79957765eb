"""Errors raised (or collected) while reading a PyInstaller archive.

Fatal errors abort the whole session; recoverable errors are collected per
entry and reported once the remaining entries are done.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from relic.core.errors import MismatchError, RelicToolError


class ErrorKind(str, Enum):
    FILE_TOO_SHORT = "FileTooShort"
    SIGNATURE_NOT_FOUND = "SignatureNotFound"
    INCOMPLETE_HEADER_READ = "IncompleteHeaderRead"
    INVALID_MAGIC = "InvalidMagic"
    TOC_BOUNDS_INVALID = "TOCBoundsInvalid"
    MALFORMED_ENTRY = "MalformedEntry"
    PAYLOAD_TRUNCATED = "PayloadTruncated"
    DECOMPRESSION_FAILED = "DecompressionFailed"
    OUTPUT_WRITE_FAILED = "OutputWriteFailed"
    ENTRY_NOT_FOUND = "EntryNotFound"


class ArchiveError(RelicToolError):
    """Base class; ``kind`` lets callers branch without matching on type."""

    kind: ErrorKind
    fatal: bool = True


class FileTooShortError(ArchiveError):
    kind = ErrorKind.FILE_TOO_SHORT

    def __init__(self, file_size: int, required: int):
        super().__init__(file_size, required)
        self.file_size = file_size
        self.required = required

    def __str__(self) -> str:
        return f"File is too short ({self.file_size} bytes); at least {self.required} bytes are required"


class SignatureNotFoundError(ArchiveError):
    kind = ErrorKind.SIGNATURE_NOT_FOUND

    def __init__(self, path: Optional[str] = None):
        super().__init__(path)
        self.path = path

    def __str__(self) -> str:
        return (
            f"Missing cookie in '{self.path}'; "
            "unsupported PyInstaller version or not a PyInstaller archive"
        )


class IncompleteHeaderReadError(MismatchError, ArchiveError):  # type: ignore[misc]
    kind = ErrorKind.INCOMPLETE_HEADER_READ

    def __init__(self, received: Optional[int] = None, expected: Optional[int] = None):
        super().__init__("Cookie Size", received, expected)


class InvalidMagicError(MismatchError, ArchiveError):  # type: ignore[misc]
    kind = ErrorKind.INVALID_MAGIC

    def __init__(
        self, received: Optional[bytes] = None, expected: Optional[bytes] = None
    ):
        super().__init__("Magic Word", received, expected)


class TocBoundsInvalidError(ArchiveError):
    kind = ErrorKind.TOC_BOUNDS_INVALID

    def __init__(self, toc_position: int, toc_size: int, file_size: int):
        super().__init__(toc_position, toc_size, file_size)
        self.toc_position = toc_position
        self.toc_size = toc_size
        self.file_size = file_size

    def __str__(self) -> str:
        return (
            f"Table of Contents out of bounds; position={self.toc_position},"
            f" size={self.toc_size}, file size={self.file_size}"
        )


class MalformedEntryError(ArchiveError):
    kind = ErrorKind.MALFORMED_ENTRY
    fatal = False

    def __init__(self, offset: int, reason: str):
        super().__init__(offset, reason)
        self.offset = offset
        self.reason = reason

    def __str__(self) -> str:
        return f"Malformed TOC entry at offset {self.offset}: {self.reason}"


class PayloadTruncatedError(MismatchError, ArchiveError):  # type: ignore[misc]
    kind = ErrorKind.PAYLOAD_TRUNCATED
    fatal = False

    def __init__(self, received: Optional[int] = None, expected: Optional[int] = None):
        super().__init__("Payload Size", received, expected)


class DecompressionFailedError(ArchiveError):
    kind = ErrorKind.DECOMPRESSION_FAILED
    fatal = False

    def __init__(self, name: str, reason: str):
        super().__init__(name, reason)
        self.name = name
        self.reason = reason

    def __str__(self) -> str:
        return f"Decompression failed for '{self.name}': {self.reason}"


class OutputWriteFailedError(ArchiveError):
    kind = ErrorKind.OUTPUT_WRITE_FAILED
    fatal = False

    def __init__(self, path: str, cause: OSError):
        super().__init__(path, cause)
        self.path = path
        self.cause = cause

    def __str__(self) -> str:
        return f"Could not write '{self.path}': {self.cause}"


class EntryNotFoundError(ArchiveError):
    kind = ErrorKind.ENTRY_NOT_FOUND
    fatal = False

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"No entry named '{self.name}' in the archive"


__all__ = [
    "ErrorKind",
    "ArchiveError",
    "FileTooShortError",
    "SignatureNotFoundError",
    "IncompleteHeaderReadError",
    "InvalidMagicError",
    "TocBoundsInvalidError",
    "MalformedEntryError",
    "PayloadTruncatedError",
    "DecompressionFailedError",
    "OutputWriteFailedError",
    "EntryNotFoundError",
]

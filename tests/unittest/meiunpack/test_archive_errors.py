from typing import Optional

import pytest
from relic.core.errors import MismatchError, RelicToolError

from meiunpack.definitions import MAGIC_WORD
from meiunpack.errors import (
    ArchiveError,
    DecompressionFailedError,
    EntryNotFoundError,
    ErrorKind,
    FileTooShortError,
    IncompleteHeaderReadError,
    InvalidMagicError,
    MalformedEntryError,
    OutputWriteFailedError,
    PayloadTruncatedError,
    SignatureNotFoundError,
    TocBoundsInvalidError,
)

_ERRORS = [
    (FileTooShortError(3, 8), ErrorKind.FILE_TOO_SHORT, True),
    (SignatureNotFoundError("app.exe"), ErrorKind.SIGNATURE_NOT_FOUND, True),
    (IncompleteHeaderReadError(10, 24), ErrorKind.INCOMPLETE_HEADER_READ, True),
    (InvalidMagicError(b"MZ", MAGIC_WORD), ErrorKind.INVALID_MAGIC, True),
    (TocBoundsInvalidError(900, 5000, 1000), ErrorKind.TOC_BOUNDS_INVALID, True),
    (MalformedEntryError(32, "too small"), ErrorKind.MALFORMED_ENTRY, False),
    (PayloadTruncatedError(2, 10), ErrorKind.PAYLOAD_TRUNCATED, False),
    (DecompressionFailedError("a.py", "bad"), ErrorKind.DECOMPRESSION_FAILED, False),
    (
        OutputWriteFailedError("out/a.py", PermissionError("denied")),
        ErrorKind.OUTPUT_WRITE_FAILED,
        False,
    ),
    (EntryNotFoundError("a.py"), ErrorKind.ENTRY_NOT_FOUND, False),
]
_IDS = [type(e).__name__ for e, _, _ in _ERRORS]


@pytest.mark.parametrize(["error", "kind", "fatal"], _ERRORS, ids=_IDS)
def test_kind_and_fatal(error: ArchiveError, kind: ErrorKind, fatal: bool):
    assert isinstance(error, ArchiveError)
    assert isinstance(error, RelicToolError)
    assert error.kind is kind
    assert error.fatal is fatal


@pytest.mark.parametrize(["error", "kind", "fatal"], _ERRORS, ids=_IDS)
def test_str(error: ArchiveError, kind: ErrorKind, fatal: bool):
    result = str(error)
    assert isinstance(result, str)
    assert len(result) > 0


@pytest.mark.parametrize("received", [None, b"Good"])
@pytest.mark.parametrize("expected", [None, b"Bad"])
def test_invalid_magic_error(received: Optional[bytes], expected: Optional[bytes]):
    # Ensure init does not raise error
    err = InvalidMagicError(received, expected)
    assert isinstance(err, MismatchError)


@pytest.mark.parametrize("received", [None, 2])
@pytest.mark.parametrize("expected", [None, 10])
def test_size_mismatch_errors(received: Optional[int], expected: Optional[int]):
    _ = IncompleteHeaderReadError(received, expected)
    _ = PayloadTruncatedError(received, expected)


def test_messages_name_the_culprit():
    assert "app.exe" in str(SignatureNotFoundError("app.exe"))
    assert "a.py" in str(DecompressionFailedError("a.py", "bad"))
    assert "a.py" in str(EntryNotFoundError("a.py"))
    assert "32" in str(MalformedEntryError(32, "too small"))

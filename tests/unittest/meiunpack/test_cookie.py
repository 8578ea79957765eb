import pytest

from meiunpack.definitions import MAGIC_WORD, CookieLayout, Version
from meiunpack.errors import (
    ErrorKind,
    IncompleteHeaderReadError,
    InvalidMagicError,
)
from meiunpack.native.cookie import decode_header, detect_layout
from meiunpack.native.definitions import ArchiveHandle
from tests.dummy_archive import DEFAULT_PREFIX, cookie
from tests.util import TempFileHandle


def _decode(data: bytes, position: int, layout=None):
    with TempFileHandle(data) as h:
        with ArchiveHandle(h.path) as handle:
            return decode_header(handle, position, layout)


def _detect(data: bytes, position: int) -> CookieLayout:
    with TempFileHandle(data) as h:
        with ArchiveHandle(h.path) as handle:
            return detect_layout(handle, position)


@pytest.mark.parametrize(
    "library", [b"python311.dll", b"libpython3.11.so.1.0", b"PYTHON27.DLL", b"Python3"]
)
def test_detects_v1(library: bytes):
    data = DEFAULT_PREFIX + cookie(CookieLayout.V1, 100, 10, 20, 311, library)
    assert _detect(data, len(DEFAULT_PREFIX)) is CookieLayout.V1


@pytest.mark.parametrize("trailer", [b"", b"\0" * 200, b"signature block"])
def test_detects_v0(trailer: bytes):
    data = DEFAULT_PREFIX + cookie(CookieLayout.V0, 100, 10, 20, 27, b"") + trailer
    assert _detect(data, len(DEFAULT_PREFIX)) is CookieLayout.V0


def test_decode_v0():
    position = len(DEFAULT_PREFIX)
    data = DEFAULT_PREFIX + cookie(CookieLayout.V0, 0x01020304, 10, 20, 27, b"")
    header = _decode(data, position)
    assert header.position == position
    assert header.layout is CookieLayout.V0
    assert header.size == 24
    assert header.package_length == 0x01020304
    assert header.toc_offset == 10
    assert header.toc_length == 20
    assert header.python_version == Version(2, 7)
    assert header.python_library == ""


def test_decode_v1():
    position = len(DEFAULT_PREFIX)
    data = DEFAULT_PREFIX + cookie(
        CookieLayout.V1, 5000, 4000, 800, 312, b"python312.dll"
    )
    header = _decode(data, position)
    assert header.layout is CookieLayout.V1
    assert header.size == 88
    assert header.package_length == 5000
    assert header.toc_offset == 4000
    assert header.toc_length == 800
    assert header.python_version == Version(3, 12)
    assert header.python_library == "python312.dll"


def test_forced_layout_is_used():
    position = len(DEFAULT_PREFIX)
    data = DEFAULT_PREFIX + cookie(CookieLayout.V1, 5000, 4000, 800, 312, b"python312.dll")
    header = _decode(data, position, CookieLayout.V0)
    assert header.layout is CookieLayout.V0
    assert header.python_library == ""


@pytest.mark.parametrize("available", [len(MAGIC_WORD), 10, 23])
def test_incomplete_header(available: int):
    full = cookie(CookieLayout.V0, 100, 10, 20, 311, b"")
    data = DEFAULT_PREFIX + full[:available]
    with pytest.raises(IncompleteHeaderReadError) as info:
        _decode(data, len(DEFAULT_PREFIX))
    assert info.value.kind is ErrorKind.INCOMPLETE_HEADER_READ
    assert info.value.fatal


def test_invalid_magic():
    data = DEFAULT_PREFIX + cookie(CookieLayout.V0, 100, 10, 20, 311, b"")
    with pytest.raises(InvalidMagicError) as info:
        _decode(data, 0)
    assert info.value.kind is ErrorKind.INVALID_MAGIC

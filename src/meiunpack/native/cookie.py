"""Cookie (archive header) decoding.

Cookie layout, all integers big-endian::

    0   8s  magic
    8   I   package length
    12  I   TOC offset (relative to the start of the package)
    16  I   TOC length
    20  I   python version (e.g. 311, or 27 on old builds)
    24  64s python library name (V1 only, e.g. b'python311.dll')
"""

from __future__ import annotations

import logging
from typing import Optional

from relic.core.logmsg import BraceMessage

from meiunpack.definitions import (
    MAGIC_WORD,
    VERSION_PROBE_SIZE,
    VERSION_PROBE_TOKEN,
    CookieLayout,
)
from meiunpack.errors import IncompleteHeaderReadError, InvalidMagicError
from meiunpack.native.definitions import ArchiveHandle, CookieHeader
from meiunpack.native.fields import FieldReader

_PACKAGE_LENGTH = 8
_TOC_OFFSET = 12
_TOC_LENGTH = 16
_PYTHON_VERSION = 20
_PYTHON_LIBRARY = CookieLayout.V0.size


def detect_layout(handle: ArchiveHandle, position: int) -> CookieLayout:
    """Sniff the bytes after a V0 cookie for a python library name."""
    probe = handle.read(position + CookieLayout.V0.size, VERSION_PROBE_SIZE)
    if VERSION_PROBE_TOKEN in probe.lower():
        return CookieLayout.V1
    return CookieLayout.V0


def decode_header(
    handle: ArchiveHandle,
    position: int,
    layout: Optional[CookieLayout] = None,
    logger: Optional[logging.Logger] = None,
) -> CookieHeader:
    logger = logger or logging.getLogger(__name__)
    if layout is None:
        layout = detect_layout(handle, position)
    logger.debug(BraceMessage("Cookie layout: {0} ({1} bytes)", layout.name, layout.size))

    buffer = handle.read(position, layout.size)
    if len(buffer) < layout.size:
        raise IncompleteHeaderReadError(len(buffer), layout.size)

    magic = buffer[: len(MAGIC_WORD)]
    if magic != MAGIC_WORD:
        raise InvalidMagicError(magic, MAGIC_WORD)

    fields = FieldReader(buffer)
    python_library = ""
    if layout is CookieLayout.V1:
        raw = fields.raw(_PYTHON_LIBRARY, VERSION_PROBE_SIZE)
        python_library = raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")

    header = CookieHeader(
        position=position,
        layout=layout,
        package_length=fields.u32(_PACKAGE_LENGTH),
        toc_offset=fields.u32(_TOC_OFFSET),
        toc_length=fields.u32(_TOC_LENGTH),
        python_version_code=fields.u32(_PYTHON_VERSION),
        python_library=python_library,
    )
    logger.debug(
        BraceMessage(
            "Cookie data: package_length={0}, toc={1}, toc_length={2}, pyver={3}",
            header.package_length,
            header.toc_offset,
            header.toc_length,
            header.python_version_code,
        )
    )
    return header


__all__ = ["detect_layout", "decode_header"]

"""Table of Contents decoding.

Each TOC entry is variable length, all integers big-endian::

    0   I   entry size (including this field)
    4   I   entry position (relative to the start of the package)
    8   I   compressed size
    12  I   uncompressed size
    16  B   compression flag
    17  B   type code
    18  ... name, NUL padded to ``entry size``
"""

from __future__ import annotations

import logging
import unicodedata
from typing import List, Optional

from relic.core.logmsg import BraceMessage

from meiunpack.definitions import (
    TOC_ENTRY_FIXED_SIZE,
    TOC_ENTRY_SIZE_FIELD,
    EntryKind,
)
from meiunpack.errors import MalformedEntryError
from meiunpack.native.definitions import (
    ArchiveHandle,
    ResolvedLayout,
    TOCEntry,
    TocDecodeResult,
)
from meiunpack.native.fields import FieldReader

_ILLEGAL_NAME_CHARS = frozenset(':\\*?"<>|')
_PATH_SEPARATORS = ("/", "\\")


def sanitize_name(raw: bytes) -> Optional[str]:
    """Decode a TOC name; ``None`` when it is unusable as a relative path.

    UTF-8 is tried first, then Latin-1 (which never fails and keeps every
    byte). NUL and other control characters are dropped. Dots are kept as
    they are; a ``..`` path component makes the name invalid.
    """
    try:
        name = raw.decode("utf-8")
    except UnicodeDecodeError:
        name = raw.decode("latin-1")
    name = "".join(c for c in name if unicodedata.category(c) != "Cc")

    if not name.strip():
        return None
    if name.startswith(_PATH_SEPARATORS):
        return None
    if any(c in _ILLEGAL_NAME_CHARS for c in name):
        return None
    if ".." in name.split("/"):
        return None
    return name


class TocDecoder:
    """Walks one archive's TOC; one instance per decode."""

    def __init__(self, layout: ResolvedLayout, logger: Optional[logging.Logger] = None):
        self._layout = layout
        self.logger = logger or logging.getLogger(__name__)
        self._unnamed_counter = 0

    def _fallback_name(self, offset: int) -> str:
        name = f"unnamed_{offset}_{self._unnamed_counter}"
        self._unnamed_counter += 1
        return name

    def _decode_entry(self, fields: FieldReader, entry_size: int, offset: int) -> TOCEntry:
        entry_pos = fields.u32(4)
        absolute_position = self._layout.overlay_position + entry_pos
        if absolute_position < 0:
            raise MalformedEntryError(
                offset, f"entry position {absolute_position} is before the start of the file"
            )
        compressed_size = fields.u32(8)
        uncompressed_size = fields.u32(12)
        compression_flag = fields.u8(16)
        kind_code = fields.u8(17)
        raw_name = fields.raw(TOC_ENTRY_FIXED_SIZE, entry_size - TOC_ENTRY_FIXED_SIZE)

        name = sanitize_name(raw_name)
        if name is None:
            name = self._fallback_name(offset)
            self.logger.warning(
                BraceMessage(
                    "Invalid or unreadable file name {0!r}, using fallback: {1}",
                    raw_name,
                    name,
                )
            )

        kind = EntryKind.from_code(kind_code)
        if kind is not None and kind.is_script and "." not in name:
            name += ".pyc"

        return TOCEntry(
            absolute_position=absolute_position,
            compressed_size=compressed_size,
            uncompressed_size=uncompressed_size,
            is_compressed=compression_flag != 0,
            kind_code=kind_code,
            name=name,
        )

    def decode(self, handle: ArchiveHandle) -> TocDecodeResult:
        toc_size = self._layout.toc_size
        self.logger.debug(
            BraceMessage(
                "Parsing TOC at position {0}, size {1}",
                self._layout.toc_position,
                toc_size,
            )
        )
        buffer = handle.read(self._layout.toc_position, toc_size)
        fields = FieldReader(buffer)

        entries: List[TOCEntry] = []
        malformed: List[Exception] = []
        warnings: List[str] = []
        parsed = 0
        while parsed < toc_size:
            remaining = len(buffer) - parsed
            if remaining < TOC_ENTRY_SIZE_FIELD:
                warnings.append(f"Failed to read TOC entry size at offset {parsed}")
                self.logger.warning(warnings[-1])
                break

            entry_size = fields.u32(parsed)
            if entry_size < TOC_ENTRY_FIXED_SIZE or entry_size > remaining:
                error = MalformedEntryError(
                    parsed,
                    f"entry size {entry_size} outside [{TOC_ENTRY_FIXED_SIZE}, {remaining}]",
                )
                malformed.append(error)
                self.logger.warning(str(error))
                if TOC_ENTRY_SIZE_FIELD <= entry_size <= remaining:
                    parsed += entry_size
                else:
                    parsed += TOC_ENTRY_SIZE_FIELD
                continue

            try:
                entry = self._decode_entry(fields.window(parsed), entry_size, parsed)
            except MalformedEntryError as error:
                malformed.append(error)
                self.logger.warning(str(error))
                parsed += entry_size
                continue
            self.logger.debug(
                BraceMessage(
                    "TOC entry: name={0}, pos={1}, comp={2}, decomp={3}, compressed={4}, type={5}",
                    entry.name,
                    entry.absolute_position,
                    entry.compressed_size,
                    entry.uncompressed_size,
                    entry.is_compressed,
                    entry.kind_code,
                )
            )
            entries.append(entry)
            parsed += entry_size

        if parsed != toc_size:
            warnings.append(f"Parsed {parsed} bytes, expected {toc_size}")
            self.logger.warning(warnings[-1])

        self.logger.info(BraceMessage("Found {0} files in CArchive", len(entries)))
        return TocDecodeResult(
            entries=tuple(entries),
            parsed_length=parsed,
            malformed=malformed,
            warnings=warnings,
        )


__all__ = ["sanitize_name", "TocDecoder"]

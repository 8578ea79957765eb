from __future__ import annotations

import logging
from typing import Optional

from relic.core.logmsg import BraceMessage

from meiunpack.definitions import MAGIC_WORD, SEARCH_CHUNK_SIZE
from meiunpack.errors import FileTooShortError, SignatureNotFoundError
from meiunpack.native.definitions import ArchiveHandle


def find_signature(
    handle: ArchiveHandle,
    magic: bytes = MAGIC_WORD,
    chunk_size: int = SEARCH_CHUNK_SIZE,
    logger: Optional[logging.Logger] = None,
) -> int:
    """Find the occurrence of ``magic`` closest to the end of the file.

    The bootloader carries its own copy of the magic word; the cookie is
    always the last one, so the file is scanned backwards in chunks. The
    first ``len(magic) - 1`` bytes of each chunk are carried into the
    previous chunk so a match split across a chunk boundary is still found.

    Raises:
        FileTooShortError: the file cannot hold the magic word at all.
        SignatureNotFoundError: the magic word does not occur.
    """
    logger = logger or logging.getLogger(__name__)
    file_size = handle.file_size
    if file_size < len(magic):
        raise FileTooShortError(file_size, len(magic))
    if chunk_size < len(magic):
        raise ValueError(f"chunk_size ({chunk_size}) is smaller than the magic word")

    overlap = len(magic) - 1
    carry = b""
    end = file_size
    while end > 0:
        start = max(0, end - chunk_size)
        window = handle.read(start, end - start) + carry
        index = window.rfind(magic)
        if index != -1:
            position = start + index
            logger.debug(BraceMessage("Found cookie at offset {0}", position))
            return position
        carry = window[:overlap]
        end = start

    raise SignatureNotFoundError(handle.path)


__all__ = ["find_signature"]

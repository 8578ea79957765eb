from __future__ import annotations

import logging
from typing import Optional

from relic.core.logmsg import BraceMessage

from meiunpack.errors import TocBoundsInvalidError
from meiunpack.native.definitions import CookieHeader, ResolvedLayout


def _toc_in_bounds(toc_position: int, toc_size: int, file_size: int) -> bool:
    return 0 <= toc_position < file_size and toc_position + toc_size <= file_size


def resolve_layout(
    header: CookieHeader, file_size: int, logger: Optional[logging.Logger] = None
) -> ResolvedLayout:
    """Turn the cookie's relative values into absolute file positions.

    The package ends at the end of the file (anything after the cookie
    counts as part of it). When that puts the TOC outside the file, the TOC
    offset is retried relative to the end of the cookie instead.

    Raises:
        TocBoundsInvalidError: neither formula gives a TOC inside the file.
    """
    logger = logger or logging.getLogger(__name__)
    tail_bytes = file_size - header.position - header.size
    overlay_size = header.package_length + tail_bytes
    overlay_position = file_size - overlay_size
    toc_position = overlay_position + header.toc_offset
    toc_size = header.toc_length

    used_fallback = False
    if not _toc_in_bounds(toc_position, toc_size, file_size):
        fallback = header.position + header.size + header.toc_offset
        logger.warning(
            BraceMessage(
                "TOC position {0} (size {1}) is outside the file ({2} bytes); trying {3}",
                toc_position,
                toc_size,
                file_size,
                fallback,
            )
        )
        if not _toc_in_bounds(fallback, toc_size, file_size):
            raise TocBoundsInvalidError(fallback, toc_size, file_size)
        toc_position = fallback
        used_fallback = True

    logger.debug(
        BraceMessage("Overlay: size={0}, pos={1}", overlay_size, overlay_position)
    )
    logger.debug(BraceMessage("TOC: pos={0}, size={1}", toc_position, toc_size))
    return ResolvedLayout(
        cookie_position=header.position,
        overlay_position=overlay_position,
        overlay_size=overlay_size,
        toc_position=toc_position,
        toc_size=toc_size,
        used_fallback=used_fallback,
    )


__all__ = ["resolve_layout"]

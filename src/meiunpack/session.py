"""An open PyInstaller archive and the operations offered on it."""

from __future__ import annotations

import logging
import time
from typing import Any, List, Optional, Tuple

from relic.core.logmsg import BraceMessage

from meiunpack.definitions import SEARCH_CHUNK_SIZE
from meiunpack.errors import ArchiveError, EntryNotFoundError
from meiunpack.native.cookie import decode_header
from meiunpack.native.definitions import (
    ArchiveHandle,
    CookieHeader,
    ExtractionReport,
    ResolvedLayout,
    Result,
    TOCEntry,
    TocDecodeResult,
)
from meiunpack.native.layout import resolve_layout
from meiunpack.native.locator import find_signature
from meiunpack.native.parallel import (
    ExtractionEngine,
    ProgressCallback,
    UnpackerConfig,
)
from meiunpack.native.toc import TocDecoder


class ArchiveSession:
    """Owns the archive handle and the decoded TOC for as long as it is open.

    Decoding (signature, cookie, offsets, TOC) happens once, sequentially,
    in :meth:`open`. Only extraction uses worker threads.
    """

    def __init__(
        self,
        handle: ArchiveHandle,
        header: CookieHeader,
        layout: ResolvedLayout,
        toc: TocDecodeResult,
        logger: Optional[logging.Logger] = None,
        parse_time: float = 0,
    ):
        self._handle = handle
        self.header = header
        self.layout = layout
        self._toc = toc
        self.logger = logger or logging.getLogger(__name__)
        self._parse_time = parse_time

    @classmethod
    def open(
        cls,
        path: str,
        logger: Optional[logging.Logger] = None,
        chunk_size: int = SEARCH_CHUNK_SIZE,
    ) -> ArchiveSession:
        """Open and decode an archive.

        Raises:
            ArchiveError: one of the fatal kinds; the file is closed again.
            OSError: the file could not be opened.
        """
        logger = logger or logging.getLogger(__name__)
        logger.info(BraceMessage("Processing {0}", path))
        t0 = time.perf_counter()
        handle = ArchiveHandle(path)
        handle.open()
        try:
            position = find_signature(handle, chunk_size=chunk_size, logger=logger)
            header = decode_header(handle, position, logger=logger)
            logger.info(
                BraceMessage(
                    "Cookie layout {0}, {1}", header.layout.name, header.python_version
                )
            )
            layout = resolve_layout(header, handle.file_size, logger=logger)
            toc = TocDecoder(layout, logger=logger).decode(handle)
        except BaseException:
            handle.close()
            raise
        return cls(
            handle, header, layout, toc, logger, parse_time=time.perf_counter() - t0
        )

    @property
    def path(self) -> str:
        return self._handle.path

    @property
    def file_size(self) -> int:
        return self._handle.file_size

    @property
    def entries(self) -> Tuple[TOCEntry, ...]:
        return self._toc.entries

    @property
    def warnings(self) -> List[str | Exception]:
        return [*self._toc.warnings, *self._toc.malformed]

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def list_entries(self) -> List[TOCEntry]:
        return list(self._toc.entries)

    def find_entry(self, name: str) -> Optional[TOCEntry]:
        for entry in self._toc.entries:
            if entry.name == name:
                return entry
        return None

    def _engine(self, workers: int, verbose: bool) -> ExtractionEngine:
        return ExtractionEngine(
            UnpackerConfig(num_workers=workers, logger=self.logger, verbose=verbose)
        )

    def _report(self) -> ExtractionReport:
        report = ExtractionReport(warnings=self.warnings)
        report.stats.timings.parsing_archive = self._parse_time
        return report

    def extract_all(
        self,
        output_dir: str,
        workers: int = 0,
        on_progress: Optional[ProgressCallback] = None,
        verbose: bool = False,
    ) -> ExtractionReport:
        engine = self._engine(workers, verbose)
        return engine.extract(
            self._handle, self._toc.entries, output_dir, on_progress, self._report()
        )

    def extract_one(
        self, output_dir: str, name: str, verbose: bool = False
    ) -> Result[str, TOCEntry]:
        """Extract the first entry called ``name``.

        Returns:
            A result whose output is the entry on success; on failure its
            errors hold an ``EntryNotFoundError`` or the entry's own error.
        """
        entry = self.find_entry(name)
        if entry is None:
            return Result.create_error(name, EntryNotFoundError(name))
        report = self._engine(1, verbose).extract(
            self._handle, [entry], output_dir, report=self._report()
        )
        failed = report.failed
        if failed:
            return Result.create_error(name, *failed[0].errors)
        return Result(name, entry)

    def close(self) -> None:
        self._handle.close()

    def __enter__(self) -> ArchiveSession:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def open_archive(path: str, logger: Optional[logging.Logger] = None) -> Result[str, ArchiveSession]:
    """Like :meth:`ArchiveSession.open`, but fatal errors are returned, not raised.

    Files that cannot be opened or read are returned the same way, as the
    ``OSError`` itself.
    """
    logger = logger or logging.getLogger(__name__)
    try:
        return Result(path, ArchiveSession.open(path, logger=logger))
    except ArchiveError as e:
        logger.error(BraceMessage("[{0}] {1}", e.kind.value, e))
        return Result.create_error(path, e)
    except OSError as e:
        logger.error(BraceMessage("Could not read '{0}': {1}", path, e))
        return Result.create_error(path, e)


def list_entries(session: ArchiveSession) -> List[TOCEntry]:
    return session.list_entries()


def extract_all(
    session: ArchiveSession,
    output_dir: str,
    workers: int = 0,
    on_progress: Optional[ProgressCallback] = None,
) -> ExtractionReport:
    return session.extract_all(output_dir, workers, on_progress)


def extract_one(
    session: ArchiveSession, output_dir: str, name: str
) -> Result[str, TOCEntry]:
    return session.extract_one(output_dir, name)


__all__ = [
    "ArchiveSession",
    "open_archive",
    "list_entries",
    "extract_all",
    "extract_one",
]

"""Parallel extraction of decoded TOC entries.

A fixed pool of worker threads shares the single archive handle. Only the
seek+read of each payload is serialized (inside ``ArchiveHandle``);
decompression and writing run fully in parallel.
"""

from __future__ import annotations

import logging
import multiprocessing
import os
import threading
import zlib
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import (
    Any,
    Callable,
    Dict,
    Generator,
    List,
    Optional,
    Sequence,
    Set,
    TypeAlias,
)

from relic.core.logmsg import BraceMessage

from meiunpack.definitions import OSFlags
from meiunpack.errors import (
    DecompressionFailedError,
    OutputWriteFailedError,
    PayloadTruncatedError,
)
from meiunpack.native.definitions import (
    ArchiveHandle,
    ExtractionReport,
    Result,
    TOCEntry,
)

ProgressCallback: TypeAlias = Callable[[int, int], None]

_CPUINFO = "/proc/cpuinfo"


# @no_type_check
class FakeLogger:
    def __getattr__(self, name: Any) -> Any:
        def faker(*args: Any, **kwargs: Any) -> Any:
            return self

        return faker


def physical_core_count() -> int:
    """Number of physical (not hyper-threaded) cores; logical count if unknown."""
    try:
        with open(_CPUINFO, "r", encoding="utf8") as cpuinfo:
            text = cpuinfo.read()
    except OSError:
        return multiprocessing.cpu_count()

    cores: Set[tuple[str, str]] = set()
    physical_id = core_id = None
    for line in text.splitlines() + [""]:
        key, _, value = line.partition(":")
        key = key.strip()
        if key == "physical id":
            physical_id = value.strip()
        elif key == "core id":
            core_id = value.strip()
        elif not key:
            if physical_id is not None and core_id is not None:
                cores.add((physical_id, core_id))
            physical_id = core_id = None
    return len(cores) or multiprocessing.cpu_count()


def resolve_worker_count(requested: int, available: Optional[int] = None) -> int:
    """0 (or less) means every physical core; more than that is clamped."""
    available = available if available is not None else physical_core_count()
    available = max(1, available)
    if requested <= 0 or requested > available:
        return available
    return requested


def inflate(name: str, data: bytes, uncompressed_size: int) -> bytes:
    """Decompress a zlib stream into exactly ``uncompressed_size`` bytes.

    Output is capped one byte past the declared size so an oversized stream
    is detected without inflating all of it.
    """
    decompressor = zlib.decompressobj()
    try:
        buffer = decompressor.decompress(data, uncompressed_size + 1)
    except zlib.error as e:
        raise DecompressionFailedError(name, str(e)) from e
    if not decompressor.eof:
        raise DecompressionFailedError(
            name, f"stream did not end within {uncompressed_size} bytes"
        )
    if decompressor.unused_data or decompressor.unconsumed_tail:
        leftover = len(decompressor.unused_data) + len(decompressor.unconsumed_tail)
        raise DecompressionFailedError(name, f"{leftover} bytes of input left over")
    if len(buffer) != uncompressed_size:
        raise DecompressionFailedError(
            name, f"produced {len(buffer)} bytes, expected {uncompressed_size}"
        )
    return buffer


def read_entry(handle: ArchiveHandle, entry: TOCEntry) -> bytes:
    """Read an entry's payload and inflate it if it is compressed."""
    try:
        raw = handle.read(entry.absolute_position, entry.compressed_size)
    except (OSError, ValueError) as e:
        raise PayloadTruncatedError(0, entry.compressed_size) from e
    if len(raw) != entry.compressed_size:
        raise PayloadTruncatedError(len(raw), entry.compressed_size)
    if not entry.is_compressed:
        return raw
    return inflate(entry.name, raw, entry.uncompressed_size)


class DirectoryCacher:
    # One instance is shared by every worker
    def __init__(self) -> None:
        # Thread-safe directory cache to avoid redundant mkdir calls
        self._dir_cache: Set[str] = set()
        self._dir_cache_lock = threading.Lock()

    def ensure_directory(self, dir_path: Path) -> bool:
        """Ensure directory exists with caching to avoid redundant mkdir calls.

        Args:
            dir_path: Directory path to create

        Returns:
            bool: True if directory was created, False otherwise
        """
        CREATED = True
        dir_str = str(dir_path)

        # Fast path: check if already created
        if dir_str in self._dir_cache:
            return not CREATED

        # Slow path: create and cache
        with self._dir_cache_lock:
            # Double-check after acquiring lock
            if dir_str not in self._dir_cache:
                dir_path.mkdir(parents=True, exist_ok=True)
                self._dir_cache.add(dir_str)
                for parent_path in dir_path.parents:
                    self._dir_cache.add(str(parent_path))
                return CREATED

        return not CREATED


@dataclass(slots=True)
class UnpackerConfig:

    num_workers: int = 0  # 0 uses every physical core
    logger: Optional[logging.Logger] = None
    precache_dirs: bool = True
    verbose: bool = False


class ExtractionEngine:
    def __init__(
        self, config: UnpackerConfig, cache: Optional[DirectoryCacher] = None
    ):
        self.directories = cache or DirectoryCacher()
        self.logger = config.logger or logging.getLogger(__name__)
        self.verbose_logger = self.logger if config.verbose else FakeLogger()
        self._precreate_dirs = config.precache_dirs
        self.num_workers = resolve_worker_count(config.num_workers)
        if config.num_workers > self.num_workers:
            self.logger.warning(
                BraceMessage(
                    "Specified number of cores ({0}) exceeds available physical cores ({1}); using {1}",
                    config.num_workers,
                    self.num_workers,
                )
            )

    @contextmanager
    def _timer(self) -> Generator[Callable[[], float], Any, None]:
        import time as time_module

        t0 = time_module.perf_counter()

        def delta() -> float:
            return time_module.perf_counter() - t0

        yield delta

    def _write(self, output_dir: str, entry: TOCEntry, file_data: bytes) -> str:
        dst_path = Path(output_dir) / entry.name
        try:
            self.directories.ensure_directory(dst_path.parent)
            fd = os.open(
                dst_path,
                OSFlags.O_CREAT | OSFlags.O_WRONLY | OSFlags.O_BINARY | OSFlags.O_TRUNC,
                0o666,
            )
            try:
                view = memoryview(file_data)
                while view:
                    written = os.write(fd, view)
                    view = view[written:]
            finally:
                os.close(fd)
        except OSError as e:
            raise OutputWriteFailedError(str(dst_path), e) from e
        return str(dst_path)

    def _create_dirs(self, entries: Sequence[TOCEntry], output_dir: str) -> int:
        if not self._precreate_dirs:
            return 0
        self.verbose_logger.info("Pre-creating directory structure...")
        created_dirs = 0
        for entry in entries:
            dst_path = Path(output_dir) / entry.name
            try:
                if self.directories.ensure_directory(dst_path.parent):
                    created_dirs += 1
            except OSError as e:
                # reported again (per entry) when the write fails
                self.logger.warning(
                    BraceMessage("Could not create {0}: {1}", dst_path.parent, e)
                )
        self.verbose_logger.info(f"Created {created_dirs} directories")
        return created_dirs

    def _extract_entry(
        self, handle: ArchiveHandle, entry: TOCEntry, output_dir: str
    ) -> Result[TOCEntry, str]:
        try:
            data = read_entry(handle, entry)
            path = self._write(output_dir, entry, data)
        except (
            PayloadTruncatedError,
            DecompressionFailedError,
            OutputWriteFailedError,
        ) as e:
            return Result.create_error(entry, e)
        self.verbose_logger.info(
            BraceMessage("Extracted: {0} ({1} bytes)", entry.name, len(data))
        )
        return Result(entry, path)

    def extract(
        self,
        handle: ArchiveHandle,
        entries: Sequence[TOCEntry],
        output_dir: str,
        on_progress: Optional[ProgressCallback] = None,
        report: Optional[ExtractionReport] = None,
    ) -> ExtractionReport:
        """Extract ``entries`` into ``output_dir``.

        Args:
            handle: The open archive; shared by all workers.
            entries: Entries to extract, usually the whole TOC.
            output_dir: Output directory, created when missing.
            on_progress: Optional callback (completed, total), called on
                this thread after every finished entry.
            report: Optional report to fill in; lets the caller attach
                warnings and timings gathered before extraction.

        Returns:
            A report listing every entry's result; failed entries are
            reported, never retried.
        """
        report = report if report is not None else ExtractionReport()
        report.stats.total_files = len(entries)
        report.stats.total_bytes = sum(e.uncompressed_size for e in entries)
        Path(output_dir).mkdir(parents=True, exist_ok=True)

        with self._timer() as timer:
            self._create_dirs(entries, output_dir)
            report.stats.timings.creating_dirs = timer()

        self.logger.info(BraceMessage("Using {0} workers", self.num_workers))
        with self._timer() as timer:
            completed = 0
            with ThreadPoolExecutor(max_workers=self.num_workers) as executor:
                futures: List[Future[Result[TOCEntry, str]]] = [
                    executor.submit(self._extract_entry, handle, entry, output_dir)
                    for entry in entries
                ]
                order: Dict[Future[Result[TOCEntry, str]], int] = {
                    future: index for index, future in enumerate(futures)
                }
                results: List[Optional[Result[TOCEntry, str]]] = [None] * len(futures)
                for future in as_completed(futures):
                    result = future.result()
                    results[order[future]] = result
                    completed += 1
                    if result.has_errors:
                        report.stats.failed_files += 1
                        for error in result.errors:
                            self.logger.error(
                                BraceMessage("Failed: {0}: {1}", result.input.name, error)
                            )
                    else:
                        report.stats.extracted_files += 1
                        report.stats.extracted_bytes += result.input.uncompressed_size
                    if on_progress:
                        on_progress(completed, report.stats.total_files)
            report.stats.timings.executing_tasks = timer()

        report.results = [r for r in results if r is not None]
        self._print_summary(report)
        return report

    def _print_summary(self, report: ExtractionReport) -> None:
        stats = report.stats
        self.logger.info("Extraction complete!")
        self.logger.info(f"  Total:      {stats.total_files}")
        self.logger.info(f"  Successful: {stats.extracted_files}")
        self.logger.info(f"  Failed:     {stats.failed_files}")
        self.logger.info(f"  Extracted:  {stats.extracted_bytes / 1024 / 1024:.1f} MB")
        self.logger.info("Timings")
        if stats.timings.parsing_archive > 0:
            self.logger.info(
                f"  Parsing archive:      {stats.timings.parsing_archive:.4f}"
            )
        if stats.timings.creating_dirs > 0:
            self.logger.info(
                f"  Creating directories: {stats.timings.creating_dirs:.4f}"
            )
        self.logger.info(f"  Running tasks:        {stats.timings.executing_tasks:.4f}")


__all__ = [
    "ProgressCallback",
    "physical_core_count",
    "resolve_worker_count",
    "inflate",
    "read_entry",
    "DirectoryCacher",
    "UnpackerConfig",
    "ExtractionEngine",
]

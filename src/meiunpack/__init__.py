"""
Reads the archive PyInstaller appends to a frozen executable and extracts its files.
"""
from meiunpack.definitions import Version, CookieLayout, EntryKind, MAGIC_WORD
from meiunpack.errors import ArchiveError, ErrorKind
from meiunpack.native.definitions import TOCEntry, ExtractionReport, Result
from meiunpack.session import (
    ArchiveSession,
    open_archive,
    list_entries,
    extract_all,
    extract_one,
)

__version__ = "1.0.0"

__all__ = [
    "Version",
    "CookieLayout",
    "EntryKind",
    "MAGIC_WORD",
    "ArchiveError",
    "ErrorKind",
    "TOCEntry",
    "ExtractionReport",
    "Result",
    "ArchiveSession",
    "open_archive",
    "list_entries",
    "extract_all",
    "extract_one",
]

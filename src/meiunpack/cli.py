from __future__ import annotations

import dataclasses
import json
import os.path
from argparse import ArgumentParser, Namespace
from enum import Enum
from json import JSONEncoder
from logging import Logger
from typing import Optional, Any, Dict

from relic.core.cli import CliPluginGroup, _SubParsersAction, CliPlugin, RelicArgParser
from relic.core.cli import (
    get_file_type_validator,
    get_dir_type_validator,
    get_path_validator,
)
from relic.core.logmsg import BraceMessage

from meiunpack.errors import ArchiveError
from meiunpack.session import ArchiveSession

_SUCCESS = 0
_FAILURE = 1


class RelicPyinstCli(CliPluginGroup):
    GROUP = "relic.cli.pyinst"

    def _create_parser(
        self, command_group: Optional[_SubParsersAction] = None
    ) -> ArgumentParser:
        name = "pyinst"
        if command_group is None:
            return RelicArgParser(name)
        return command_group.add_parser(name)


class RelicPyinstUnpackCli(CliPlugin):
    def _create_parser(
        self, command_group: Optional[_SubParsersAction] = None
    ) -> ArgumentParser:
        parser: ArgumentParser
        desc = """Unpack the archive embedded in a PyInstaller executable to the filesystem."""
        if command_group is None:
            parser = RelicArgParser("unpack", description=desc)
        else:
            parser = command_group.add_parser("unpack", description=desc)

        parser.add_argument(
            "src_exe",
            type=get_file_type_validator(exists=True),
            help="Source PyInstaller executable",
        )
        parser.add_argument(
            "out_dir",
            type=get_dir_type_validator(exists=False),
            help="Output Directory",
        )
        parser.add_argument(
            "--workers",
            type=int,
            help="Number of parallel workers (default: all physical cores)",
            default=0,
        )
        parser.add_argument(
            "--entry",
            help="Only extract the entry with this name",
            default=None,
        )
        parser.add_argument(
            "-v",
            "--verbose",
            help="Log every extracted file",
            action="store_true",
        )
        return parser

    def command(self, ns: Namespace, *, logger: Logger) -> Optional[int]:
        infile: str = ns.src_exe
        outdir: str = ns.out_dir
        num_workers: int = ns.workers
        entry_name: Optional[str] = ns.entry
        verbose: bool = ns.verbose

        logger.info(f"Unpacking `{infile}`")
        try:
            session = ArchiveSession.open(infile, logger=logger)
        except ArchiveError as e:
            logger.error(BraceMessage("[{0}] {1}", e.kind.value, e))
            return _FAILURE

        with session:
            if entry_name is not None:
                result = session.extract_one(outdir, entry_name, verbose=verbose)
                for error in result.errors:
                    logger.error(error)
                return _FAILURE if result.has_errors else _SUCCESS

            def _progress(current: int, total: int) -> None:
                if current % 500 == 0 or current == total:
                    logger.info(
                        f"  Progress: {current}/{total} files ({current*100//total}%)"
                    )

            report = session.extract_all(
                outdir, num_workers, on_progress=_progress, verbose=verbose
            )

        for warning in report.warnings:
            logger.warning(warning)
        logger.info(
            f"Extraction complete: {report.stats.extracted_files} files extracted"
        )
        if report.stats.failed_files > 0:
            logger.warning(f"Failed: {report.stats.failed_files} files")
            return _FAILURE
        return _SUCCESS


class ArchiveInfoEncoder(JSONEncoder):
    def default(self, o: Any) -> Any:
        if dataclasses.is_dataclass(o) and not isinstance(o, type):
            return dataclasses.asdict(o)
        if isinstance(o, Enum):
            return o.name
        try:
            return super().default(o)
        except TypeError:  # we want to log it, not round-trip it
            return str(o)


def archive_info(session: ArchiveSession) -> Dict[str, Any]:
    header = session.header
    return {
        "path": session.path,
        "file_size": session.file_size,
        "cookie": {
            "position": header.position,
            "layout": header.layout.name,
            "package_length": header.package_length,
            "toc_offset": header.toc_offset,
            "toc_length": header.toc_length,
            "python_version": f"{header.python_version.major}.{header.python_version.minor}",
            "python_library": header.python_library,
        },
        "layout": session.layout,
        "entries": [
            {
                "name": entry.name,
                "kind": chr(entry.kind_code),
                "compressed": entry.is_compressed,
                "compressed_size": entry.compressed_size,
                "uncompressed_size": entry.uncompressed_size,
                "position": entry.absolute_position,
            }
            for entry in session.entries
        ],
        "warnings": [str(w) for w in session.warnings],
    }


class RelicPyinstInfoCli(CliPlugin):
    _JSON_MINIFY_KWARGS: Dict[str, Any] = {"separators": (",", ":"), "indent": None}
    _JSON_MAXIFY_KWARGS: Dict[str, Any] = {"separators": (", ", ": "), "indent": 4}

    def _create_parser(
        self, command_group: Optional[_SubParsersAction] = None
    ) -> ArgumentParser:
        parser: ArgumentParser
        desc = """Reads a PyInstaller executable and lists the files in its archive.
            If out_json is given, the listing is written there as json; if out_json is a directory,
            the name of the file will be '[name of executable].json'
        """
        if command_group is None:
            parser = RelicArgParser("info", description=desc)
        else:
            parser = command_group.add_parser("info", description=desc)

        parser.add_argument(
            "src_exe",
            type=get_file_type_validator(exists=True),
            help="Source PyInstaller executable",
        )
        parser.add_argument(
            "out_json",
            type=get_path_validator(exists=False),
            help="Output File or Directory",
            nargs="?",
            default=None,
        )
        parser.add_argument(
            "-m",
            "--minify",
            action="store_true",
            default=False,
            help="Minifies the resulting json by stripping whitespace, newlines, and indentations. Reduces filesize",
        )

        return parser

    def command(self, ns: Namespace, *, logger: Logger) -> Optional[int]:
        infile: str = ns.src_exe
        outjson: Optional[str] = ns.out_json
        minify: bool = ns.minify

        logger.info(f"Reading Info `{infile}`")
        try:
            session = ArchiveSession.open(infile, logger=logger)
        except ArchiveError as e:
            logger.error(BraceMessage("[{0}] {1}", e.kind.value, e))
            return _FAILURE

        with session:
            info = archive_info(session)

        if outjson is None:
            logger.info("Archive Info:")
            for entry in info["entries"]:
                logger.info(
                    BraceMessage(
                        "File: {0}, Size: {1} bytes",
                        entry["name"],
                        entry["compressed_size"],
                    )
                )
            return _SUCCESS

        outjson_dir, outjson_file = os.path.split(outjson)
        if len(outjson_file) == 0 or (
            os.path.exists(outjson) and os.path.isdir(outjson)
        ):  # Directory
            # Get name of executable without extension, then add .json extension
            outjson_dir = outjson
            outjson_file = os.path.splitext(os.path.split(infile)[1])[0] + ".json"

        if outjson_dir:
            os.makedirs(outjson_dir, exist_ok=True)
        outjson = os.path.join(outjson_dir, outjson_file)

        with open(outjson, "w", encoding="utf8") as info_h:
            json_kwargs: Dict[str, Any] = (
                self._JSON_MINIFY_KWARGS if minify else self._JSON_MAXIFY_KWARGS
            )
            json.dump(info, info_h, cls=ArchiveInfoEncoder, **json_kwargs)

        return _SUCCESS


__all__ = [
    "RelicPyinstCli",
    "RelicPyinstUnpackCli",
    "RelicPyinstInfoCli",
    "ArchiveInfoEncoder",
    "archive_info",
]

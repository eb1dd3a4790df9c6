#!/usr/bin/env python3
"""
Dos2Unix

A cross-platform Python script to convert Windows line endings (CRLF) into
Unix line endings (LF), preserving byte-order marks and every other byte.
"""

import argparse
import asyncio
import glob
import logging
import os
import shutil
import sys
import tempfile
import time
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    AsyncIterator,
    BinaryIO,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)

from tqdm import tqdm

import encoding_utils
from encoding_utils import Bom

# Define version
__version__ = "1.0.0"
__author__ = "tboy1337"


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
logger = logging.getLogger("Dos2Unix")

# Multiple of every control unit width, so windows never split a unit
CHUNK_SIZE: int = 64 * 1024
DEFAULT_CONCURRENCY: int = min((os.cpu_count() or 2) * 2, 32)
DEFAULT_GLOB_OPTIONS: Dict[str, Any] = {"recursive": True}
KNOWN_OPTIONS: Set[str] = {"glob", "concurrency"}


class Dos2UnixError(Exception):
    """Base class for all errors raised by dos2unix."""


class ValidationError(Dos2UnixError, ValueError):
    """Invalid glob patterns or options, raised before any I/O is attempted."""


class IOReadError(Dos2UnixError):
    """A file could not be opened or read."""


class IOWriteError(Dos2UnixError):
    """A converted file could not be written back."""


class IOCloseError(Dos2UnixError):
    """A file handle could not be closed."""


class ProcessingStatus(str, Enum):
    """Outcome of scanning a file for CRLF line endings."""

    GOOD = "good"
    BAD = "bad"
    BINARY = "binary"
    ERROR = "error"


@dataclass(frozen=True)
class FileInfo:
    """Classification result for a single file."""

    path: str
    status: ProcessingStatus
    message: str = ""


class EventType(str, Enum):
    """Names of the events emitted by Dos2UnixConverter."""

    SKIP = "convert.skip"
    START = "convert.start"
    END = "convert.end"
    ERROR = "convert.error"
    BATCH_END = "end"
    BATCH_ERROR = "error"


@dataclass(frozen=True)
class ConversionEvent:
    """A per-file or batch-level notification emitted by the converter."""

    type: EventType
    file: Optional[str] = None
    status: Optional[ProcessingStatus] = None
    message: str = ""
    error: Optional[BaseException] = None


_STATUS_EVENTS: Dict[ProcessingStatus, Tuple[EventType, str]] = {
    ProcessingStatus.ERROR: (EventType.ERROR, "Skipping file with errors during read"),
    ProcessingStatus.BINARY: (EventType.SKIP, "Skipping suspected binary file"),
    ProcessingStatus.GOOD: (EventType.SKIP, "Skipping file that does not need fixing"),
    ProcessingStatus.BAD: (EventType.START, "File needs fixing"),
}


def configure_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Set up console (and optionally file) logging for command line use."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a"))
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, handlers=handlers)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def validate_glob_patterns(glob_patterns: Any) -> List[str]:
    """Normalize glob patterns into a non-empty list of non-empty strings."""
    if isinstance(glob_patterns, str):
        patterns: List[Any] = [glob_patterns]
    elif isinstance(glob_patterns, (list, tuple)):
        patterns = list(glob_patterns)
    else:
        raise ValidationError(
            "Glob patterns must be a string or a list of strings, "
            f"got {type(glob_patterns).__name__}"
        )

    if not patterns:
        raise ValidationError("At least one glob pattern is required")

    for pattern in patterns:
        if not isinstance(pattern, str) or not pattern.strip():
            raise ValidationError(f"Invalid glob pattern: {pattern!r}")

    return patterns


def validate_options(options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Check the options mapping and fill in defaults."""
    if options is None:
        options = {}
    elif not isinstance(options, Mapping):
        raise ValidationError(
            f"Options must be a mapping, got {type(options).__name__}"
        )

    unknown = set(options) - KNOWN_OPTIONS
    if unknown:
        raise ValidationError(f"Unknown options: {', '.join(sorted(unknown))}")

    glob_options = options.get("glob")
    if glob_options is None:
        glob_options = {}
    elif not isinstance(glob_options, Mapping):
        raise ValidationError(
            f"The 'glob' option must be a mapping, got {type(glob_options).__name__}"
        )

    concurrency = options.get("concurrency", DEFAULT_CONCURRENCY)
    # bool is an int subclass
    if (
        not isinstance(concurrency, int)
        or isinstance(concurrency, bool)
        or concurrency <= 0
    ):
        raise ValidationError(
            f"The 'concurrency' option must be a positive integer, got {concurrency!r}"
        )

    return {"glob": dict(glob_options), "concurrency": concurrency}


def find_files(
    glob_patterns: Sequence[str],
    glob_options: Optional[Mapping[str, Any]] = None,
) -> List[str]:
    """Expand glob patterns into a sorted list of regular files without duplicates."""
    options: Dict[str, Any] = dict(DEFAULT_GLOB_OPTIONS)
    options.update(glob_options or {})
    root_dir = options.get("root_dir")

    found: Set[str] = set()
    for pattern in glob_patterns:
        for match in glob.glob(pattern, **options):
            file_path: str = (
                os.path.join(root_dir, match) if root_dir is not None else match
            )
            if os.path.isfile(file_path):
                found.add(os.path.normpath(file_path))

    return sorted(found)


def _error_info(file_path: str, message: str) -> FileInfo:
    logger.debug('Error while processing "%s": %s', file_path, message)
    return FileInfo(file_path, ProcessingStatus.ERROR, message)


def _close_reader(reader: BinaryIO, file_path: str) -> None:
    try:
        reader.close()
    except OSError as e:
        raise IOCloseError(f'Error while closing "{file_path}": {e}') from e


async def _scan_file(reader: BinaryIO, file_path: str, bom: Bom) -> FileInfo:
    bytes_per_bom: int = encoding_utils.get_bytes_per_bom(bom)
    bytes_per_control_char: int = encoding_utils.get_bytes_per_control_char(bom)

    # Fast-forward past the BOM if present
    if bytes_per_bom > 0:
        try:
            head: bytes = await asyncio.to_thread(reader.read, bytes_per_bom)
        except OSError as e:
            return _error_info(file_path, str(e))
        if len(head) < bytes_per_bom:
            return _error_info(file_path, "Unable to read past the expected BOM")

    position: int = bytes_per_bom
    needs_fixing = False
    last_unit_was_cr = False

    while True:
        try:
            window: bytes = await asyncio.to_thread(reader.read, CHUNK_SIZE)
        except OSError as e:
            return _error_info(file_path, str(e))
        if not window:
            break

        whole_units: int = len(window) - len(window) % bytes_per_control_char
        for offset in range(0, whole_units, bytes_per_control_char):
            unit: bytes = window[offset : offset + bytes_per_control_char]
            if encoding_utils.does_byte_sequence_suggest_binary(unit, bom):
                message = f"NUL control unit at byte {position + offset}"
                logger.debug("Suspected binary file %s: %s", file_path, message)
                return FileInfo(file_path, ProcessingStatus.BINARY, message)
            if encoding_utils.is_byte_sequence_cr(unit, bom):
                last_unit_was_cr = True
            else:
                if last_unit_was_cr and encoding_utils.is_byte_sequence_lf(unit, bom):
                    needs_fixing = True
                last_unit_was_cr = False

        if whole_units != len(window):
            return _error_info(file_path, "did not read expected number of bytes")
        position += len(window)

    if needs_fixing:
        return FileInfo(file_path, ProcessingStatus.BAD)
    return FileInfo(file_path, ProcessingStatus.GOOD)


async def determine_processing_status(file_path: str) -> FileInfo:
    """
    Classify a file as good, bad (contains CRLF), binary or error.

    Never raises for I/O problems; they are reported as an error status.
    """
    try:
        bom: Bom = await asyncio.to_thread(encoding_utils.detect_bom, file_path)
        reader: BinaryIO = await asyncio.to_thread(open, file_path, "rb")
    except OSError as e:
        return _error_info(file_path, str(e))

    try:
        return await _scan_file(reader, file_path, bom)
    finally:
        try:
            await asyncio.to_thread(_close_reader, reader, file_path)
        except IOCloseError as e:
            logger.warning("%s", e)


async def classify_files(
    file_list: Sequence[str],
    concurrency: int = DEFAULT_CONCURRENCY,
    on_result: Optional[Callable[[FileInfo], None]] = None,
) -> List[FileInfo]:
    """Classify many files concurrently, returning results in input order."""
    semaphore = asyncio.Semaphore(concurrency)

    async def classify(file_path: str) -> FileInfo:
        async with semaphore:
            info = await determine_processing_status(file_path)
        if on_result is not None:
            on_result(info)
        return info

    return list(await asyncio.gather(*(classify(path) for path in file_list)))


def convert_dos_to_unix_bytes(buffer: bytes) -> bytes:
    """
    Drop every CR control unit that is immediately followed by an LF unit.

    The BOM, lone CR and LF units, and any trailing bytes are copied
    verbatim. The buffer is walked once in control-unit-aligned steps.
    """
    bom: Bom = encoding_utils.detect_bom_from_buffer(
        buffer[: encoding_utils.MAX_BOM_LENGTH]
    )
    bytes_per_bom: int = encoding_utils.get_bytes_per_bom(bom)
    bytes_per_control_char: int = encoding_utils.get_bytes_per_control_char(bom)

    output = bytearray()
    last_write_index = 0
    last_unit_was_cr = False

    for offset in range(bytes_per_bom, len(buffer), bytes_per_control_char):
        unit: bytes = buffer[offset : offset + bytes_per_control_char]
        if encoding_utils.is_byte_sequence_cr(unit, bom):
            last_unit_was_cr = True
            continue
        if last_unit_was_cr and encoding_utils.is_byte_sequence_lf(unit, bom):
            # Everything since the last write, minus the CR
            output += buffer[last_write_index : offset - bytes_per_control_char]
            # The next write starts with this LF
            last_write_index = offset
        last_unit_was_cr = False

    output += buffer[last_write_index:]
    return bytes(output)


def _read_bytes(file_path: str) -> bytes:
    with open(file_path, "rb") as f:
        return f.read()


def _replace_file(file_path: str, data: bytes) -> None:
    """Write data to a sibling temporary file, then atomically swap it in."""
    # Replace the symlink target, not the link itself
    target_path: str = os.path.realpath(file_path)
    directory: str = os.path.dirname(target_path)
    fd, temp_path = tempfile.mkstemp(prefix=".dos2unix-", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        shutil.copymode(target_path, temp_path)
        _copy_ownership(target_path, temp_path)
        os.replace(temp_path, target_path)
    except Exception:
        try:
            os.remove(temp_path)
        except OSError as remove_err:
            logger.debug(
                "Could not remove temporary file %s: %s", temp_path, str(remove_err)
            )
        raise


def _copy_ownership(source_path: str, temp_path: str) -> None:
    if not hasattr(os, "chown"):
        return
    source_stat = os.stat(source_path)
    temp_stat = os.stat(temp_path)
    if (source_stat.st_uid, source_stat.st_gid) == (temp_stat.st_uid, temp_stat.st_gid):
        return
    try:
        os.chown(temp_path, source_stat.st_uid, source_stat.st_gid)
    except PermissionError as e:
        logger.warning("Could not preserve ownership of %s: %s", source_path, str(e))


async def convert_file_from_dos_to_unix(file_path: str) -> None:
    """
    Rewrite a file in place with CRLF pairs collapsed to LF.

    Raises IOReadError or IOWriteError; the original file is left untouched
    when writing fails.
    """
    try:
        buffer: bytes = await asyncio.to_thread(_read_bytes, file_path)
    except OSError as e:
        raise IOReadError(f'Error while reading file "{file_path}": {e}') from e

    if not os.access(file_path, os.W_OK):
        raise IOWriteError(f'File is not writable: "{file_path}"')

    converted: bytes = convert_dos_to_unix_bytes(buffer)

    try:
        await asyncio.to_thread(_replace_file, file_path, converted)
    except OSError as e:
        raise IOWriteError(f'Error while writing file "{file_path}": {e}') from e

    logger.debug(
        "Successfully rewrote file: %s (%d bytes removed)",
        file_path,
        len(buffer) - len(converted),
    )


class Dos2UnixConverter:
    """
    Classify files matched by glob patterns and convert those with CRLF.

    ``process()`` streams per-file events followed by a terminal ``end`` or
    ``error`` event; ``run()`` drains the same stream as a batch call.
    """

    def __init__(
        self,
        glob_patterns: Union[str, Sequence[str]],
        options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.glob_patterns: List[str] = validate_glob_patterns(glob_patterns)
        self.options: Dict[str, Any] = validate_options(options)
        self._file_list: Optional[List[str]] = None

    def find_files(self) -> List[str]:
        if self._file_list is None:
            self._file_list = find_files(self.glob_patterns, self.options["glob"])
        return self._file_list

    async def process_file(self, file_path: str) -> AsyncIterator[ConversionEvent]:
        """Classify one file and, if it needs fixing, rewrite it."""
        info: FileInfo = await determine_processing_status(file_path)
        event_type, message = _STATUS_EVENTS[info.status]
        if info.message:
            message = f"{message}: {info.message}"
        yield ConversionEvent(event_type, info.path, info.status, message)

        if info.status is not ProcessingStatus.BAD:
            return

        try:
            await convert_file_from_dos_to_unix(file_path)
        except (IOReadError, IOWriteError) as e:
            logger.debug("%s", e)
            yield ConversionEvent(
                EventType.ERROR, file_path, ProcessingStatus.ERROR, str(e), e
            )
            return

        yield ConversionEvent(
            EventType.END, file_path, ProcessingStatus.GOOD, "Successfully rewrote file"
        )

    async def process(self) -> AsyncIterator[ConversionEvent]:
        """Process every matched file concurrently, yielding events as they resolve."""
        try:
            file_list: List[str] = await asyncio.to_thread(self.find_files)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Error while finding files: %s", str(e))
            yield ConversionEvent(EventType.BATCH_ERROR, message=str(e), error=e)
            return

        queue: "asyncio.Queue[Any]" = asyncio.Queue()
        semaphore = asyncio.Semaphore(self.options["concurrency"])
        done_marker = object()

        async def worker(file_path: str) -> None:
            try:
                async with semaphore:
                    async for event in self.process_file(file_path):
                        await queue.put(event)
            except Exception as e:  # pylint: disable=broad-exception-caught
                await queue.put(e)
            finally:
                await queue.put(done_marker)

        tasks = [asyncio.create_task(worker(path)) for path in file_list]
        remaining: int = len(tasks)
        failure: Optional[BaseException] = None
        try:
            while remaining:
                item = await queue.get()
                if item is done_marker:
                    remaining -= 1
                elif isinstance(item, BaseException):
                    logger.error("Unhandled error while processing files: %s", item)
                    if failure is None:
                        failure = item
                else:
                    yield item
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        if failure is not None:
            yield ConversionEvent(
                EventType.BATCH_ERROR, message=str(failure), error=failure
            )
        else:
            yield ConversionEvent(
                EventType.BATCH_END, message=f"Processed {len(file_list)} files"
            )

    async def run(self) -> None:
        """Process every matched file; raise the first unrecoverable error."""
        async for event in self.process():
            if event.type is EventType.BATCH_ERROR and event.error is not None:
                raise event.error


def dos2unix(
    glob_patterns: Union[str, Sequence[str]],
    options: Optional[Mapping[str, Any]] = None,
) -> None:
    """Convert all matched files from CRLF to LF, blocking until done."""
    converter = Dos2UnixConverter(glob_patterns, options)
    asyncio.run(converter.run())


def format_duration(execution_time: float) -> str:
    if execution_time < 60:
        return f"{execution_time:.2f} seconds"
    if execution_time < 3600:
        minutes = int(execution_time // 60)
        seconds = execution_time % 60
        return f"{minutes} minute{'s' if minutes != 1 else ''} {seconds:.2f} seconds"
    hours = int(execution_time // 3600)
    minutes = int((execution_time % 3600) // 60)
    seconds = execution_time % 60
    return (
        f"{hours} hour{'s' if hours != 1 else ''} "
        f"{minutes} minute{'s' if minutes != 1 else ''} "
        f"{seconds:.2f} seconds"
    )


async def convert_with_progress(converter: Dos2UnixConverter) -> Dict[str, int]:
    """Drain the converter's event stream, logging events and showing progress."""
    counts: Dict[str, int] = {"converted": 0, "skipped": 0, "errors": 0}
    with tqdm(
        total=len(converter.find_files()), desc="Converting files", unit="file"
    ) as pbar:
        async for event in converter.process():
            if event.type is EventType.START:
                logger.debug(
                    'Converting line endings from "\\r\\n" to "\\n" in file: %s',
                    event.file,
                )
                continue
            if event.type is EventType.BATCH_ERROR and event.error is not None:
                raise event.error
            if event.type is EventType.BATCH_END:
                continue

            if event.type is EventType.END:
                counts["converted"] += 1
                logger.debug("%s: %s", event.message, event.file)
            elif event.type is EventType.SKIP:
                counts["skipped"] += 1
                logger.debug("%s: %s", event.message, event.file)
            else:
                counts["errors"] += 1
                logger.error("%s: %s", event.message, event.file)
            pbar.update(1)
    return counts


async def check_with_progress(
    file_list: Sequence[str], concurrency: int
) -> List[FileInfo]:
    """Classify files without modifying them, showing progress."""
    with tqdm(total=len(file_list), desc="Checking files", unit="file") as pbar:
        return await classify_files(
            file_list, concurrency, on_result=lambda _info: pbar.update(1)
        )


def main() -> int:  # pylint: disable=too-many-branches,too-many-statements
    try:
        parser = argparse.ArgumentParser(
            description='Convert line endings from "\\r\\n" to "\\n" in text files'
        )
        parser.add_argument(
            "patterns",
            nargs="+",
            help="Glob patterns of files to convert (e.g. '**/*.txt')",
        )
        parser.add_argument(
            "--root-dir",
            default=None,
            help="Directory the glob patterns are relative to "
            "(default: current directory)",
        )
        parser.add_argument(
            "--no-recursive",
            action="store_true",
            help="Do not let '**' match across directories",
        )
        parser.add_argument(
            "--include-hidden",
            action="store_true",
            help="Let wildcards match hidden files and directories",
        )
        parser.add_argument(
            "--workers",
            type=int,
            default=None,
            help="Number of files processed concurrently "
            "(default: auto-detect based on CPU count)",
        )
        parser.add_argument(
            "--check",
            action="store_true",
            help="Only report files that need fixing, do not rewrite them",
        )
        parser.add_argument(
            "--verbose", action="store_true", help="Enable verbose logging"
        )
        parser.add_argument(
            "--log-file", default=None, help="Also append log output to this file"
        )
        parser.add_argument(
            "--version",
            action="version",
            version=f"Dos2Unix v{__version__}",
            help="Show program version and exit",
        )

        args = parser.parse_args()

        configure_logging(args.verbose, args.log_file)
        logger.info("Dos2Unix v%s - Line Ending Converter", __version__)

        glob_options: Dict[str, Any] = {"recursive": not args.no_recursive}
        if args.root_dir:
            if not os.path.isdir(args.root_dir):
                logger.error("Error: '%s' is not a valid directory.", args.root_dir)
                return 1
            glob_options["root_dir"] = os.path.abspath(args.root_dir)
        if args.include_hidden:
            glob_options["include_hidden"] = True

        options: Dict[str, Any] = {"glob": glob_options}
        if args.workers is not None:
            if args.workers <= 0:
                logger.warning(
                    "Invalid worker count (%d), using auto-detection instead",
                    args.workers,
                )
            else:
                options["concurrency"] = args.workers

        converter = Dos2UnixConverter(args.patterns, options)

        logger.info(
            "Searching for files matching patterns: %s", " ".join(args.patterns)
        )
        start_time: float = time.time()

        files: List[str] = converter.find_files()
        if not files:
            logger.warning("No matching files found.")
            return 0

        logger.info("Found %d files to process.", len(files))

        if args.check:
            results = asyncio.run(
                check_with_progress(files, converter.options["concurrency"])
            )
            needs_fixing = [
                info for info in results if info.status is ProcessingStatus.BAD
            ]
            for info in results:
                if info.status is ProcessingStatus.BAD:
                    logger.info("File needs fixing: %s", info.path)
                elif info.status is ProcessingStatus.ERROR:
                    logger.error(
                        "Error while reading %s: %s", info.path, info.message
                    )
            logger.info(
                "Done! %d of %d files need fixing (checked in %s).",
                len(needs_fixing),
                len(files),
                format_duration(time.time() - start_time),
            )
            return 1 if needs_fixing else 0

        counts = asyncio.run(convert_with_progress(converter))

        if counts["errors"] > 0:
            logger.warning(
                "Encountered errors while processing %d files", counts["errors"]
            )
        logger.info(
            "Converted: %d, Skipped: %d, Errors: %d",
            counts["converted"],
            counts["skipped"],
            counts["errors"],
        )
        logger.info(
            "Done! Converted %d of %d files in %s.",
            counts["converted"],
            len(files),
            format_duration(time.time() - start_time),
        )
        return 0
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user.")
        return 130
    except ValidationError as e:
        logger.error("Invalid input: %s", str(e))
        return 1
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("An unexpected error occurred: %s", str(e))
        if logger.level <= logging.DEBUG:
            import traceback  # pylint: disable=import-outside-toplevel

            logger.debug("Traceback: %s", traceback.format_exc())
        return 1


if __name__ == "__main__":
    sys.exit(main())

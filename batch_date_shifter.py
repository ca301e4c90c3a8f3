#!/usr/bin/env python3
"""
Batch EXIF Date Shifter

Shifts the capture date of JPEG files given as an explicit list or found by
walking directory trees, either continuing past per-file failures or
stopping at the first one.
"""

import argparse
import sys
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, NamedTuple, Optional, Set

from exif_date_codec import TimeOffset, format_exif_date, parse_time_offset
from exif_date_shifter import ExifDateShifter, ShiftOutcome, ShiftResult
from exif_errors import MetadataIOError, ShiftError, TimeParsingError
from exif_metadata_reader import describe_metadata
from file_replacer import TEMP_SUFFIX

JPEG_EXTENSIONS = {".jpg", ".jpeg", ".jpe", ".jfif"}

RED = "\033[91m"
RESET = "\033[0m"


class ShiftJob(NamedTuple):
    file_path: Path
    time_offset: TimeOffset
    # Set when the job stands for a directory the walk could not list
    error: Optional[ShiftError] = None


class BatchReport:
    """Per-file results of a batch, in processing order."""

    def __init__(self):
        self.results: List[ShiftResult] = []

    def __len__(self) -> int:
        return len(self.results)

    def record(self, result: ShiftResult) -> None:
        self.results.append(result)

    def results_with(self, outcome: ShiftOutcome) -> List[ShiftResult]:
        return [result for result in self.results if result.outcome is outcome]

    @property
    def succeeded(self) -> List[ShiftResult]:
        return self.results_with(ShiftOutcome.SUCCEEDED)

    @property
    def skipped(self) -> List[ShiftResult]:
        return self.results_with(ShiftOutcome.SKIPPED)

    @property
    def failed(self) -> List[ShiftResult]:
        return self.results_with(ShiftOutcome.FAILED)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    def outcome_for(self, file_path: Path) -> Optional[ShiftOutcome]:
        for result in self.results:
            if result.file_path == Path(file_path):
                return result.outcome
        return None


class BatchAbortedError(Exception):
    """
    Raised when a batch without ignore_errors hits its first failure.

    The report holds every result up to and including the failed file; the
    ShiftError that stopped the batch is the exception's __cause__.
    """

    def __init__(self, report: BatchReport, file_path: Path):
        self.report = report
        self.file_path = file_path
        super().__init__(f"Batch aborted at {file_path}")


class WalkEntry(NamedTuple):
    """A regular file found by a walk, or a directory it could not list."""

    path: Path
    error: Optional[MetadataIOError] = None


def walk_tree(
    root_path: Path, extensions: Optional[Set[str]] = None
) -> Iterator[WalkEntry]:
    """
    Lazily walk a directory tree depth-first.

    Entries are visited in name order; the files of a directory come before
    the contents of its sub-directories. Symbolic links and special files
    are skipped. A directory that cannot be listed is yielded with an error
    and the walk goes on with its siblings.

    Args:
        root_path: Directory to walk
        extensions: Lower-case suffixes to keep, or None to keep every file

    Yields:
        WalkEntry for each regular file and each unreadable directory
    """
    pending_directories = [Path(root_path)]

    while pending_directories:
        directory = pending_directories.pop()
        sub_directories = []

        try:
            entries = sorted(directory.iterdir(), key=lambda path: path.name)
        except OSError as error:
            yield WalkEntry(
                directory,
                MetadataIOError(f"Could not list directory: {error}", directory),
            )
            continue

        for entry in entries:
            if entry.is_symlink():
                continue
            if entry.is_dir():
                sub_directories.append(entry)
            elif entry.is_file() and _has_wanted_extension(entry, extensions):
                yield WalkEntry(entry)

        pending_directories.extend(reversed(sub_directories))


def iter_regular_files(
    root_path: Path, extensions: Optional[Set[str]] = None
) -> Iterator[Path]:
    """
    Yield the regular files under a directory tree, in walk_tree order.

    Raises:
        MetadataIOError: If a directory cannot be listed
    """
    for walk_entry in walk_tree(root_path, extensions):
        if walk_entry.error is not None:
            raise walk_entry.error
        yield walk_entry.path


def _has_wanted_extension(file_path: Path, extensions: Optional[Set[str]]) -> bool:
    return extensions is None or file_path.suffix.lower() in extensions


def collect_jobs(
    paths: Iterable[Path],
    time_offset: TimeOffset,
    extensions: Optional[Set[str]] = None,
) -> Iterator[ShiftJob]:
    """
    Turn command-line paths into shift jobs.

    Directories expand to the regular files under them, anything else is
    taken as a single file. The extension filter only applies to files found
    by walking a directory. A sub-directory that cannot be listed becomes a
    job carrying its MetadataIOError.
    """
    for path in paths:
        path = Path(path)
        if path.is_dir():
            for walk_entry in walk_tree(path, extensions):
                yield ShiftJob(walk_entry.path, time_offset, walk_entry.error)
        else:
            yield ShiftJob(path, time_offset)


class BatchRunner:
    """Runs shift jobs sequentially and collects a BatchReport."""

    def __init__(
        self,
        shifter: Optional[ExifDateShifter] = None,
        on_result: Optional[Callable[[ShiftResult], None]] = None,
    ):
        """
        Initialize the runner.

        Args:
            shifter: Single-file shifter to use (a default one if None)
            on_result: Called with each result as soon as it is recorded
        """
        self.shifter = shifter if shifter is not None else ExifDateShifter()
        self.on_result = on_result

    def run(self, jobs: Iterable[ShiftJob], ignore_errors: bool) -> BatchReport:
        """
        Process jobs in order.

        Args:
            jobs: Shift jobs; consumed lazily, one at a time. A job carrying an
                error fails with it without being shifted
            ignore_errors: Record failures and continue if True, stop at the
                first failure if False

        Returns:
            BatchReport with one result per processed job

        Raises:
            BatchAbortedError: On the first failure when ignore_errors is
                False. Files already rewritten stay rewritten.
        """
        report = BatchReport()

        for job in jobs:
            try:
                if job.error is not None:
                    raise job.error
                result = self.shifter.shift_one(job.file_path, job.time_offset)
            except ShiftError as error:
                result = ShiftResult(
                    Path(job.file_path), ShiftOutcome.FAILED, reason=str(error)
                )
                self._record(report, result)
                if not ignore_errors:
                    raise BatchAbortedError(report, result.file_path) from error
                continue

            self._record(report, result)

        return report

    def run_files(
        self, file_paths: Iterable[Path], time_offset: TimeOffset, ignore_errors: bool
    ) -> BatchReport:
        """Shift every file of an explicit list, in the given order."""
        jobs = (ShiftJob(Path(file_path), time_offset) for file_path in file_paths)
        return self.run(jobs, ignore_errors)

    def run_folder(
        self,
        root_path: Path,
        time_offset: TimeOffset,
        ignore_errors: bool,
        extensions: Optional[Set[str]] = None,
    ) -> BatchReport:
        """
        Shift every regular file under a directory tree.

        Raises:
            ValueError: If root_path is not a directory
        """
        root_path = Path(root_path)
        if not root_path.is_dir():
            raise ValueError(f"Folder does not exist: {root_path}")

        jobs = (
            ShiftJob(walk_entry.path, time_offset, walk_entry.error)
            for walk_entry in walk_tree(root_path, extensions)
        )
        return self.run(jobs, ignore_errors)

    def _record(self, report: BatchReport, result: ShiftResult) -> None:
        report.record(result)
        if self.on_result is not None:
            self.on_result(result)


def print_result(result: ShiftResult) -> None:
    """Print the console line(s) for one processed file."""
    if result.outcome is ShiftOutcome.SUCCEEDED:
        prefix = "[DRY RUN] " if result.dry_run else ""
        print(f"{prefix}Processing: {result.file_path}")
        print(f"  Original capture date: {format_exif_date(result.original_date)}")
        print(f"  Shifted capture date:  {format_exif_date(result.shifted_date)}")
    elif result.outcome is ShiftOutcome.SKIPPED:
        print(f"Skipping: {result.file_path} (no EXIF metadata)")
    else:
        print(f"{RED}Failed: {result.reason}{RESET}")


def print_summary(report: BatchReport, dry_run: bool) -> None:
    print("=" * 60)
    print(f"{'DRY RUN ' if dry_run else ''}SUMMARY:")
    print(f"Total files processed: {len(report)}")
    print(
        f"Files {'that would be ' if dry_run else ''}shifted: {len(report.succeeded)}"
    )
    print(f"Files skipped (no EXIF metadata): {len(report.skipped)}")

    if report.failed:
        print()
        print(f"{RED}ERRORS ENCOUNTERED ({len(report.failed)}):{RESET}")
        for result in report.failed:
            print(f"{RED}  {result.reason}{RESET}")


def build_time_offset(parsed_arguments: argparse.Namespace) -> TimeOffset:
    """Combine the --days/--hours/--minutes/--seconds and --adjust options."""
    time_offset = TimeOffset(
        parsed_arguments.days,
        parsed_arguments.hours,
        parsed_arguments.minutes,
        parsed_arguments.seconds,
    )
    if parsed_arguments.adjust:
        time_offset = time_offset.combine(parse_time_offset(parsed_arguments.adjust))
    return time_offset


def run_shift_command(parsed_arguments: argparse.Namespace) -> int:
    time_offset = build_time_offset(parsed_arguments)
    extensions = JPEG_EXTENSIONS if parsed_arguments.jpeg_only else None

    print(f"Time adjustment: {time_offset.as_timedelta()}")
    print(f"Dry run: {'Yes' if parsed_arguments.dry_run else 'No'}")
    print(f"Ignore errors: {'Yes' if parsed_arguments.ignore_errors else 'No'}")
    print()

    shifter = ExifDateShifter(
        dry_run=parsed_arguments.dry_run, temp_suffix=parsed_arguments.temp_suffix
    )
    runner = BatchRunner(shifter, on_result=print_result)
    jobs = collect_jobs(parsed_arguments.paths, time_offset, extensions)

    try:
        report = runner.run(jobs, parsed_arguments.ignore_errors)
    except BatchAbortedError as error:
        print()
        print(f"{RED}Stopped at the first failure: {error.file_path}{RESET}")
        print_summary(error.report, parsed_arguments.dry_run)
        return 1

    print_summary(report, parsed_arguments.dry_run)
    return 1 if report.has_failures else 0


def run_date_command(parsed_arguments: argparse.Namespace) -> int:
    shifter = ExifDateShifter()
    exit_status = 0

    for file_path in parsed_arguments.paths:
        try:
            capture_date = shifter.read_capture_date_file(file_path)
        except ShiftError as error:
            print(f"{RED}{error}{RESET}")
            exit_status = 1
            continue
        print(f"{file_path}: {format_exif_date(capture_date)}")

    return exit_status


def run_tags_command(parsed_arguments: argparse.Namespace) -> int:
    try:
        described_tags = describe_metadata(parsed_arguments.path)
    except ShiftError as error:
        print(f"{RED}{error}{RESET}")
        return 1

    print(f"EXIF tags of {parsed_arguments.path}:")
    for tag_name, tag_value in described_tags.items():
        print(f"  {tag_name}: {tag_value}")
    return 0


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="exif-date-shift",
        description="Shift the EXIF capture date of JPEG photos losslessly",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s shift photo.jpg --hours 2                 # Add 2 hours
  %(prog)s shift /path/to/photos --days -1           # Subtract 1 day
  %(prog)s shift /path/to/photos --adjust="-1d 30m"  # Subtract 1 day 30 minutes
  %(prog)s shift a.jpg b.jpg --seconds 30 --ignore-errors
  %(prog)s date photo.jpg                            # Show the capture date
  %(prog)s tags photo.jpg                            # List every EXIF tag

Supported --adjust units:
  w = weeks, d = days, h = hours, m = minutes, s = seconds
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    shift_parser = subparsers.add_parser(
        "shift", help="Shift the capture date of files and folders"
    )
    shift_parser.add_argument(
        "paths", nargs="+", type=Path, help="JPEG files or folders to walk"
    )
    shift_parser.add_argument("--days", type=int, default=0)
    shift_parser.add_argument("--hours", type=int, default=0)
    shift_parser.add_argument("--minutes", type=int, default=0)
    shift_parser.add_argument("--seconds", type=int, default=0)
    shift_parser.add_argument(
        "--adjust",
        help="Extra adjustment such as '+1d 2h' (write --adjust=-1d when negative)",
    )
    shift_parser.add_argument(
        "--ignore-errors",
        action="store_true",
        help="Report failed files and continue instead of stopping",
    )
    shift_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be changed without modifying files",
    )
    shift_parser.add_argument(
        "--jpeg-only",
        action="store_true",
        help="Only visit .jpg/.jpeg/.jpe/.jfif files when walking folders",
    )
    shift_parser.add_argument(
        "--temp-suffix",
        default=TEMP_SUFFIX,
        help=f"Suffix of the staging file next to each photo (default: {TEMP_SUFFIX})",
    )
    shift_parser.set_defaults(handler=run_shift_command)

    date_parser = subparsers.add_parser("date", help="Show the capture date of files")
    date_parser.add_argument("paths", nargs="+", type=Path, help="JPEG files")
    date_parser.set_defaults(handler=run_date_command)

    tags_parser = subparsers.add_parser("tags", help="List every EXIF tag of a file")
    tags_parser.add_argument("path", type=Path, help="JPEG file")
    tags_parser.set_defaults(handler=run_tags_command)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the script."""
    parser = build_argument_parser()
    parsed_arguments = parser.parse_args(argv)

    try:
        return parsed_arguments.handler(parsed_arguments)
    except (OSError, ValueError, TimeParsingError) as error:
        print(f"Error: {error}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
EXIF Date Shifter

Shifts the original capture date of a single JPEG by a time offset:
read metadata, extract the date, compute the new date, rewrite the EXIF
segment and swap the patched file in place.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import NamedTuple, Optional, Union

from exif_date_codec import TimeOffset
from exif_errors import NoMetadataPresentError
from exif_metadata_reader import ByteSource, read_metadata, read_metadata_file
from exif_patcher import extract_capture_date, rewrite
from file_replacer import TEMP_SUFFIX, replace_file


class ShiftOutcome(Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


class ShiftResult(NamedTuple):
    """Outcome of one file, with the dates involved when they are known."""

    file_path: Path
    outcome: ShiftOutcome
    reason: Optional[str] = None
    original_date: Optional[datetime] = None
    shifted_date: Optional[datetime] = None
    dry_run: bool = False


class ExifDateShifter:
    """Shifts the DateTimeOriginal tag of JPEG files, one file at a time."""

    def __init__(self, dry_run: bool = False, temp_suffix: str = TEMP_SUFFIX):
        """
        Initialize the shifter.

        Args:
            dry_run: If True, compute and encode the new metadata but leave
                files untouched
            temp_suffix: Suffix appended to a file name for its staging file
        """
        self.dry_run = dry_run
        self.temp_suffix = temp_suffix

    def read_capture_date(self, byte_source: ByteSource, label: str) -> datetime:
        """
        Read the original capture date from a JPEG stream.

        Args:
            byte_source: Readable binary stream, or the JPEG bytes
            label: Identifier of the image, used in error messages only

        Raises:
            MetadataError: If the metadata is missing, unreadable or corrupt
            FieldMissingError: If there is no DateTimeOriginal tag
            DateFormatError: If the tag value is not a valid EXIF date
        """
        handle = read_metadata(byte_source, label)
        return extract_capture_date(handle)

    def read_capture_date_file(self, file_path: Union[str, Path]) -> datetime:
        """Read the original capture date of a JPEG file."""
        handle = read_metadata_file(file_path)
        return extract_capture_date(handle)

    def shift_one(
        self, file_path: Union[str, Path], time_offset: TimeOffset
    ) -> ShiftResult:
        """
        Shift the capture date of one file.

        A JPEG without an EXIF segment is skipped. Every other failure aborts
        the remaining steps for this file and is raised to the caller.

        Args:
            file_path: JPEG file to rewrite
            time_offset: Offset added to the capture date

        Returns:
            ShiftResult with outcome SUCCEEDED or SKIPPED

        Raises:
            ShiftError: Any failure of the read, extract, compute, rewrite or
                replace steps
        """
        file_path = Path(file_path)

        try:
            handle = read_metadata_file(file_path)
        except NoMetadataPresentError as error:
            return ShiftResult(file_path, ShiftOutcome.SKIPPED, reason=str(error))

        original_date = extract_capture_date(handle)
        shifted_date = time_offset.apply_to(original_date, str(file_path))
        patched_bytes = rewrite(handle, shifted_date)

        if not self.dry_run:
            replace_file(file_path, patched_bytes, self.temp_suffix)

        return ShiftResult(
            file_path,
            ShiftOutcome.SUCCEEDED,
            original_date=original_date,
            shifted_date=shifted_date,
            dry_run=self.dry_run,
        )

#!/usr/bin/env python3
"""
EXIF Date Shift Errors

Exception hierarchy shared by the reader, patcher, replacer and shifter.
"""

from pathlib import Path
from typing import Optional, Union


class TimeParsingError(Exception):
    """Exception raised when a time adjustment string cannot be parsed."""

    pass


class ShiftError(Exception):
    """Base class for every failure that can end a single-file shift."""

    def __init__(self, message: str, label: Optional[Union[str, Path]] = None):
        self.label = str(label) if label is not None else None
        if self.label:
            message = f"{self.label}: {message}"
        super().__init__(message)


class MetadataError(ShiftError):
    """Reading the EXIF metadata of an image failed."""


class MetadataIOError(MetadataError):
    """The image stream or file could not be read."""


class NoMetadataPresentError(MetadataError):
    """The JPEG carries no EXIF segment. Callers treat this as a skip."""


class CorruptMetadataError(MetadataError):
    """An EXIF segment (or the JPEG around it) is present but unparsable."""


class NotJpegError(CorruptMetadataError):
    """The stream does not start with a JPEG start-of-image marker."""


class FieldMissingError(ShiftError):
    """The EXIF directory has no original capture date tag."""


class DateFormatError(ShiftError):
    """A date string does not match the EXIF date format."""


class PatchError(ShiftError):
    """The modified EXIF directory could not be spliced into the JPEG."""


class ReplaceError(ShiftError):
    """The patched file could not be swapped in place of the original."""

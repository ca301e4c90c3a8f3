#!/usr/bin/env python3
"""
EXIF Patcher

Reads the original capture date from a decoded EXIF tree and rewrites it
losslessly: only the EXIF APP1 segment is re-encoded, every other JPEG
segment and the scan data are copied as they are.
"""

import io
from datetime import datetime
from typing import Dict, Optional

import exifread
import piexif

from exif_date_codec import format_exif_date, parse_exif_date
from exif_errors import DateFormatError, FieldMissingError, PatchError
from exif_metadata_reader import IFD_NAMES, ExifDirectory, ImageMetadataHandle
from jpeg_segments import EXIF_HEADER, build_exif_segment, replace_segment

CAPTURE_DATE_TAG = piexif.ExifIFD.DateTimeOriginal
CAPTURE_DATE_TAG_NAME = "EXIF DateTimeOriginal"
EXIF_IFD_NAME = "Exif"

# Offsets into the TIFF data, recomputed on every encode
OFFSET_TAGS = {
    0x0111,  # StripOffsets
    0x0201,  # JPEGInterchangeFormat
    0x8769,  # ExifOffset
    0x8825,  # GPSInfo
    0xA005,  # InteroperabilityOffset
}

# Marker and length field in front of the "Exif\0\0" header
SEGMENT_HEADER_LENGTH = 4


class ExifOutputSet:
    """Editable copy of a handle's directories, ready to be encoded."""

    def __init__(self, handle: ImageMetadataHandle):
        self.label = handle.label
        self.directories: Dict[str, ExifDirectory] = {
            ifd_name: directory.copy()
            for ifd_name, directory in handle.directories.items()
        }
        self.thumbnail = handle.thumbnail

    def get_or_create_directory(self, ifd_name: str) -> ExifDirectory:
        directory = self.directories.get(ifd_name)
        if directory is None:
            directory = ExifDirectory(ifd_name)
            self.directories[ifd_name] = directory
        return directory

    def to_exif_dict(self) -> Dict[str, object]:
        """Build the dictionary layout piexif.dump expects."""
        exif_dict: Dict[str, object] = {
            ifd_name: self.directories[ifd_name].to_dict()
            for ifd_name in IFD_NAMES
            if ifd_name in self.directories
        }
        exif_dict["thumbnail"] = self.thumbnail
        return exif_dict


def extract_capture_date(handle: ImageMetadataHandle) -> datetime:
    """
    Get the original capture date of an image.

    Raises:
        FieldMissingError: If the EXIF sub-directory has no DateTimeOriginal
        DateFormatError: If the stored value is not a valid EXIF date string
    """
    exif_directory = handle.find_directory(EXIF_IFD_NAME)
    raw_value: Optional[object] = None

    if exif_directory is not None:
        raw_value = exif_directory.find_field(CAPTURE_DATE_TAG)

    if raw_value is None:
        raise FieldMissingError("EXIF data has no DateTimeOriginal tag", handle.label)

    if not isinstance(raw_value, (str, bytes)):
        raise DateFormatError(
            f"DateTimeOriginal tag holds a non-text value: {raw_value!r}",
            handle.label,
        )

    return parse_exif_date(raw_value, handle.label)


def list_segment_tags(exif_segment: bytes, label: str) -> Dict[str, str]:
    """
    List the tags of an EXIF APP1 segment as exifread sees them.

    Tags piexif has no definition for are listed too, as "Tag 0x....".
    Offset tags are left out.

    Args:
        exif_segment: Complete APP1 segment, marker included
        label: Identifier of the image, used in error messages only

    Returns:
        Dictionary mapping exifread tag names to their printable values

    Raises:
        PatchError: If exifread cannot decode the segment
    """
    tiff_data = exif_segment[SEGMENT_HEADER_LENGTH + len(EXIF_HEADER) :]

    try:
        exif_tags = exifread.process_file(
            io.BytesIO(tiff_data), details=False, truncate_tags=False
        )
    except Exception as error:
        raise PatchError(f"Could not list EXIF tags: {error}", label) from error

    return {
        tag_name: str(tag_value.printable)
        for tag_name, tag_value in exif_tags.items()
        if hasattr(tag_value, "printable") and tag_value.tag not in OFFSET_TAGS
    }


def check_tags_preserved(
    original_segment: bytes, patched_segment: bytes, label: str
) -> None:
    """
    Compare every tag except DateTimeOriginal between two EXIF segments.

    piexif.load keeps only the tags it knows and piexif.dump writes no 1st
    IFD without a thumbnail, so a re-encode can lose fields.

    Raises:
        PatchError: Naming the tags that were dropped, added or altered
    """
    original_tags = list_segment_tags(original_segment, label)
    patched_tags = list_segment_tags(patched_segment, label)
    original_tags.pop(CAPTURE_DATE_TAG_NAME, None)
    patched_tags.pop(CAPTURE_DATE_TAG_NAME, None)

    changed_tags = sorted(
        tag_name
        for tag_name in set(original_tags) | set(patched_tags)
        if original_tags.get(tag_name) != patched_tags.get(tag_name)
    )

    if changed_tags:
        raise PatchError(
            "Re-encoding EXIF data would lose or alter tags: "
            + ", ".join(changed_tags),
            label,
        )


def rewrite(handle: ImageMetadataHandle, new_date: datetime) -> bytes:
    """
    Produce the JPEG bytes with DateTimeOriginal set to new_date.

    The handle is consumed: a second rewrite of the same handle fails.

    Args:
        handle: Metadata handle from read_metadata
        new_date: Capture date to store

    Returns:
        Complete JPEG file contents

    Raises:
        PatchError: If there is no EXIF segment to patch, the handle was
            already rewritten, the modified directories cannot be encoded, or
            the encoded segment would not carry every other tag unchanged
    """
    if handle.consumed:
        raise PatchError("Metadata handle was already rewritten", handle.label)
    handle.consumed = True

    if not handle.has_exif:
        raise PatchError("JPEG has no EXIF segment to patch", handle.label)

    output_set = ExifOutputSet(handle)

    # Remove and add the field to set the new value
    exif_directory = output_set.get_or_create_directory(EXIF_IFD_NAME)
    exif_directory.remove_field(CAPTURE_DATE_TAG)
    exif_directory.add_field(CAPTURE_DATE_TAG, format_exif_date(new_date))

    try:
        exif_payload = piexif.dump(output_set.to_exif_dict())
    except Exception as error:
        raise PatchError(
            f"Could not encode EXIF data: {error}", handle.label
        ) from error

    exif_segment = build_exif_segment(exif_payload, handle.label)
    check_tags_preserved(
        handle.segments[handle.exif_segment_index], exif_segment, handle.label
    )
    return replace_segment(handle.segments, handle.exif_segment_index, exif_segment)

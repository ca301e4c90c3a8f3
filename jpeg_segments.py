#!/usr/bin/env python3
"""
JPEG Segment Utilities

Splits a JPEG byte stream into its marker segments and splices a new EXIF
APP1 segment back in. Joining the segment list always reproduces the input
byte-for-byte, so every segment that is not replaced is copied verbatim.
"""

import struct
from typing import List, Optional

from exif_errors import CorruptMetadataError, NotJpegError, PatchError

SOI_MARKER = b"\xff\xd8"
APP1_MARKER = b"\xff\xe1"
EXIF_HEADER = b"Exif\x00\x00"

SOS_MARKER_CODE = 0xDA
EOI_MARKER_CODE = 0xD9

# Markers without a length field (TEM and RST0-RST7)
STANDALONE_MARKER_CODES = {0x01} | set(range(0xD0, 0xD8))

MAX_SEGMENT_LENGTH = 0xFFFF


def split_jpeg_segments(data: bytes, label: Optional[str] = None) -> List[bytes]:
    """
    Split JPEG data into marker segments.

    The first entry is the SOI marker. Everything from the first SOS marker
    (or an early EOI) to the end of the data, including the entropy-coded
    scan and any trailing bytes, is kept as a single final entry. Fill bytes
    (0xFF padding between segments) become their own one-byte entries.

    Args:
        data: Complete JPEG file contents
        label: Identifier of the image, used in error messages only

    Returns:
        List of segments whose concatenation equals data

    Raises:
        NotJpegError: If data does not start with the SOI marker
        CorruptMetadataError: If the marker structure is truncated or invalid
    """
    if data[0:2] != SOI_MARKER:
        raise NotJpegError("Not a JPEG stream (missing SOI marker)", label)

    segments = [data[0:2]]
    position = 2
    data_length = len(data)

    while True:
        if position + 2 > data_length:
            raise CorruptMetadataError(
                f"JPEG ends inside the header at offset {position}", label
            )

        if data[position] != 0xFF:
            raise CorruptMetadataError(
                f"Expected a marker at offset {position}, found 0x{data[position]:02x}",
                label,
            )

        marker_code = data[position + 1]

        if marker_code == 0xFF:
            segments.append(data[position : position + 1])
            position += 1
            continue

        if marker_code in (SOS_MARKER_CODE, EOI_MARKER_CODE):
            segments.append(data[position:])
            return segments

        if marker_code in STANDALONE_MARKER_CODES:
            segments.append(data[position : position + 2])
            position += 2
            continue

        size_bytes = data[position + 2 : position + 4]
        if len(size_bytes) != 2:
            raise CorruptMetadataError(
                f"JPEG ends inside the segment at offset {position}", label
            )

        segment_length = struct.unpack(">H", size_bytes)[0]
        segment_end = position + 2 + segment_length

        if segment_length < 2 or segment_end > data_length:
            raise CorruptMetadataError(
                f"Segment 0xff{marker_code:02x} at offset {position} has an "
                f"invalid length of {segment_length}",
                label,
            )

        segments.append(data[position:segment_end])
        position = segment_end


def is_exif_segment(segment: bytes) -> bool:
    """Check if a segment is an APP1 segment carrying EXIF data."""
    return segment[0:2] == APP1_MARKER and segment[4:10] == EXIF_HEADER


def find_exif_segment(segments: List[bytes]) -> Optional[int]:
    """
    Find the first EXIF APP1 segment before the scan data.

    Returns:
        Index into segments, or None if the image has no EXIF segment
    """
    # The last entry holds the scan data and is never a header segment
    for index, segment in enumerate(segments[1:-1], start=1):
        if is_exif_segment(segment):
            return index
    return None


def build_exif_segment(exif_payload: bytes, label: Optional[str] = None) -> bytes:
    """
    Wrap an "Exif\\0\\0"-prefixed TIFF payload in an APP1 marker segment.

    Raises:
        PatchError: If the payload lacks the EXIF header or does not fit in a
            single segment
    """
    if exif_payload[0:6] != EXIF_HEADER:
        raise PatchError("EXIF payload does not start with the Exif header", label)

    segment_length = len(exif_payload) + 2
    if segment_length > MAX_SEGMENT_LENGTH:
        raise PatchError(
            f"EXIF payload of {len(exif_payload):,} bytes does not fit in one "
            "APP1 segment",
            label,
        )

    return APP1_MARKER + struct.pack(">H", segment_length) + exif_payload


def replace_segment(segments: List[bytes], index: int, new_segment: bytes) -> bytes:
    """Join the segments back into JPEG data with one segment swapped out."""
    return b"".join(segments[:index] + [new_segment] + segments[index + 1 :])

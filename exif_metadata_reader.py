#!/usr/bin/env python3
"""
EXIF Metadata Reader

Opens a JPEG byte source and decodes its EXIF segment into per-IFD
directories, keeping the original segments around so the patcher can
copy everything else verbatim.
"""

from pathlib import Path
from typing import BinaryIO, Dict, Iterator, List, Optional, Tuple, Union

import exifread
import piexif

from exif_errors import CorruptMetadataError, MetadataIOError, NoMetadataPresentError
from jpeg_segments import find_exif_segment, split_jpeg_segments

IFD_NAMES = ("0th", "Exif", "GPS", "Interop", "1st")

ByteSource = Union[bytes, bytearray, BinaryIO]


class ExifDirectory:
    """Ordered tag -> value entries of one IFD, in piexif value form."""

    def __init__(self, name: str, entries: Optional[Dict[int, object]] = None):
        self.name = name
        self._entries: Dict[int, object] = dict(entries or {})

    def __contains__(self, tag: int) -> bool:
        return tag in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def __repr__(self) -> str:
        return f"ExifDirectory({self.name!r}, {len(self._entries)} fields)"

    def find_field(self, tag: int) -> Optional[object]:
        return self._entries.get(tag)

    def items(self) -> List[Tuple[int, object]]:
        return list(self._entries.items())

    def add_field(self, tag: int, value: object) -> None:
        """
        Append a field to the directory.

        Raises:
            ValueError: If the tag is already present; remove it first
        """
        if tag in self._entries:
            raise ValueError(f"Tag {tag} already present in {self.name} directory")
        self._entries[tag] = value

    def remove_field(self, tag: int) -> None:
        """Remove a field. Removing a tag that is not present does nothing."""
        self._entries.pop(tag, None)

    def copy(self) -> "ExifDirectory":
        return ExifDirectory(self.name, self._entries)

    def to_dict(self) -> Dict[int, object]:
        return dict(self._entries)


class ImageMetadataHandle:
    """
    Parsed EXIF tree of one JPEG plus the segments it was read from.

    Created by read_metadata for a single shift and handed to the patcher
    once; the patcher refuses a handle that has already been rewritten.
    """

    def __init__(
        self,
        label: str,
        segments: List[bytes],
        exif_segment_index: Optional[int],
        directories: Dict[str, ExifDirectory],
        thumbnail: Optional[bytes] = None,
    ):
        self.label = label
        self.segments = segments
        self.exif_segment_index = exif_segment_index
        self.directories = directories
        self.thumbnail = thumbnail
        self.consumed = False

    @property
    def has_exif(self) -> bool:
        return self.exif_segment_index is not None

    def find_directory(self, name: str) -> Optional[ExifDirectory]:
        """Return the named IFD, or None when it is absent or empty."""
        directory = self.directories.get(name)
        if directory is None or len(directory) == 0:
            return None
        return directory

    def original_bytes(self) -> bytes:
        return b"".join(self.segments)


def read_metadata(byte_source: ByteSource, label: str) -> ImageMetadataHandle:
    """
    Read and decode the EXIF metadata of a JPEG.

    Args:
        byte_source: Readable binary stream, or the JPEG bytes themselves
        label: Identifier of the image, used in error messages only

    Returns:
        ImageMetadataHandle owning the decoded directories

    Raises:
        MetadataIOError: If the stream cannot be read
        NoMetadataPresentError: If the JPEG has no EXIF segment
        CorruptMetadataError: If the JPEG structure or the EXIF segment is
            unparsable (NotJpegError for non-JPEG data)
    """
    if isinstance(byte_source, (bytes, bytearray)):
        data = bytes(byte_source)
    else:
        try:
            data = byte_source.read()
        except OSError as error:
            raise MetadataIOError(
                f"Could not read image stream: {error}", label
            ) from error

    segments = split_jpeg_segments(data, label)
    exif_segment_index = find_exif_segment(segments)

    if exif_segment_index is None:
        raise NoMetadataPresentError("JPEG has no EXIF segment", label)

    # Skip the marker and length; piexif accepts the "Exif\0\0" payload
    exif_payload = segments[exif_segment_index][4:]

    try:
        exif_dict = piexif.load(exif_payload)
    except Exception as error:
        raise CorruptMetadataError(
            f"Could not decode EXIF segment: {error}", label
        ) from error

    directories = {
        ifd_name: ExifDirectory(ifd_name, exif_dict.get(ifd_name))
        for ifd_name in IFD_NAMES
    }

    return ImageMetadataHandle(
        label,
        segments,
        exif_segment_index,
        directories,
        exif_dict.get("thumbnail"),
    )


def read_metadata_file(file_path: Union[str, Path]) -> ImageMetadataHandle:
    """Open a JPEG file and read its EXIF metadata. See read_metadata."""
    file_path = Path(file_path)

    try:
        with open(file_path, "rb") as file_handle:
            return read_metadata(file_handle, str(file_path))
    except OSError as error:
        raise MetadataIOError(f"Could not open image: {error}", file_path) from error


def describe_metadata(file_path: Union[str, Path]) -> Dict[str, str]:
    """
    List every EXIF tag of an image as printable text.

    Args:
        file_path: Path to the image file

    Returns:
        Dictionary mapping exifread tag names (e.g. "EXIF DateTimeOriginal")
        to their printable values, in file order

    Raises:
        MetadataIOError: If the file cannot be read
        NoMetadataPresentError: If the file carries no EXIF tags
        CorruptMetadataError: If exifread fails on the EXIF data
    """
    file_path = Path(file_path)

    try:
        with open(file_path, "rb") as file_handle:
            exif_tags = exifread.process_file(file_handle, details=False)
    except OSError as error:
        raise MetadataIOError(f"Could not open image: {error}", file_path) from error
    except Exception as error:
        raise CorruptMetadataError(
            f"Could not list EXIF tags: {error}", file_path
        ) from error

    # Thumbnail entries hold raw bytes rather than tags
    described_tags = {
        tag_name: str(tag_value)
        for tag_name, tag_value in exif_tags.items()
        if hasattr(tag_value, "printable")
    }

    if not described_tags:
        raise NoMetadataPresentError("Image has no EXIF tags", file_path)

    return described_tags

"""
Configuration for pytest: human-readable test names and JPEG fixture builders.

Test docstrings are displayed as test names in reports, following
https://medium.com/@dsmd90/python-displayname-analog-from-java-6a1d1ad3c468
"""

import io
import struct
from pathlib import Path

import piexif
import pytest
from PIL import Image

CAPTURE_DATE = "2024:01:31 23:59:59"

# APP1 payload whose IFD pointer runs far past the end of the TIFF data
CORRUPT_EXIF_PAYLOAD = b"Exif\x00\x00MM\x00\x2a\xff\xff\xff\xf0"


def pytest_collection_modifyitems(items):
    """Modify test items to use docstrings as human-readable test names."""
    for item in items:
        docstring = item.function.__doc__
        if docstring:
            summary = next(
                (
                    line.strip()
                    for line in docstring.strip().splitlines()
                    if line.strip()
                ),
                None,
            )
            if summary:
                if hasattr(item, "callspec"):
                    # For parameterized tests, preserve parameter id from the original nodeid
                    start = item.nodeid.find("[")
                    parameter_part = item.nodeid[start:] if start != -1 else ""
                    item._nodeid = summary + parameter_part
                else:
                    item._nodeid = summary


def build_exif_dict(capture_date=CAPTURE_DATE):
    """Build a piexif dictionary with a camera, exposure and date fields."""
    exif_ifd = {
        piexif.ExifIFD.DateTimeDigitized: b"2024:01:31 23:59:59",
        piexif.ExifIFD.ExposureTime: (1, 125),
        piexif.ExifIFD.ISOSpeedRatings: 200,
    }
    if capture_date is not None:
        exif_ifd[piexif.ExifIFD.DateTimeOriginal] = capture_date.encode("ascii")

    return {
        "0th": {
            piexif.ImageIFD.Make: b"TestCam",
            piexif.ImageIFD.Model: b"Model X",
            piexif.ImageIFD.DateTime: b"2024:02:02 10:00:00",
        },
        "Exif": exif_ifd,
        "GPS": {},
        "Interop": {},
        "1st": {},
        "thumbnail": None,
    }


def build_jpeg_bytes(exif_bytes=None, color=(200, 40, 90)):
    """Encode a small gradient image as JPEG, optionally with EXIF bytes."""
    image = Image.new("RGB", (32, 24), color)
    for x in range(32):
        image.putpixel((x, x % 24), (x * 8, 255 - x * 8, 128))

    buffer = io.BytesIO()
    if exif_bytes is None:
        image.save(buffer, "JPEG", quality=90)
    else:
        image.save(buffer, "JPEG", quality=90, exif=exif_bytes)
    return buffer.getvalue()


def build_raw_exif_payload(zeroth_entries, exif_entries=(), first_entries=()):
    """
    Encode little-endian EXIF data by hand, for tags piexif cannot write.

    Each entry is (tag, field_type, count, value_bytes). Values longer than
    four bytes are stored in a data area after the directories.
    """

    def ifd_size(entry_count):
        return 2 + 12 * entry_count + 4 if entry_count else 0

    zeroth_entries = list(zeroth_entries)
    zeroth_offset = 8
    exif_offset = zeroth_offset + ifd_size(len(zeroth_entries) + bool(exif_entries))
    first_offset = exif_offset + ifd_size(len(exif_entries))
    data_offset = first_offset + ifd_size(len(first_entries))
    data_area = bytearray()

    if exif_entries:
        zeroth_entries.append((0x8769, 4, 1, struct.pack("<I", exif_offset)))

    def encode_ifd(entries, next_ifd_offset):
        encoded = struct.pack("<H", len(entries))
        for tag, field_type, count, value in sorted(entries):
            if len(value) <= 4:
                value_field = value.ljust(4, b"\x00")
            else:
                value_field = struct.pack("<I", data_offset + len(data_area))
                data_area.extend(value)
                if len(data_area) % 2:
                    data_area.append(0)
            encoded += struct.pack("<HHI", tag, field_type, count) + value_field
        return encoded + struct.pack("<I", next_ifd_offset)

    directories = encode_ifd(zeroth_entries, first_offset if first_entries else 0)
    if exif_entries:
        directories += encode_ifd(list(exif_entries), 0)
    if first_entries:
        directories += encode_ifd(list(first_entries), 0)

    return (
        b"Exif\x00\x00II*\x00"
        + struct.pack("<I", zeroth_offset)
        + directories
        + bytes(data_area)
    )


def build_exif_jpeg_bytes(capture_date=CAPTURE_DATE):
    return build_jpeg_bytes(piexif.dump(build_exif_dict(capture_date)))


def build_corrupt_exif_jpeg_bytes():
    """Splice an undecodable EXIF APP1 segment in right after SOI."""
    plain_jpeg = build_jpeg_bytes()
    app1_segment = (
        b"\xff\xe1"
        + struct.pack(">H", len(CORRUPT_EXIF_PAYLOAD) + 2)
        + CORRUPT_EXIF_PAYLOAD
    )
    return plain_jpeg[:2] + app1_segment + plain_jpeg[2:]


@pytest.fixture
def make_exif_jpeg():
    """Return a builder writing a JPEG with EXIF metadata to a path."""

    def _make(file_path, capture_date=CAPTURE_DATE):
        file_path = Path(file_path)
        file_path.write_bytes(build_exif_jpeg_bytes(capture_date))
        return file_path

    return _make


@pytest.fixture
def make_plain_jpeg():
    """Return a builder writing a JPEG without any EXIF segment to a path."""

    def _make(file_path):
        file_path = Path(file_path)
        file_path.write_bytes(build_jpeg_bytes())
        return file_path

    return _make


@pytest.fixture
def make_corrupt_jpeg():
    """Return a builder writing a JPEG with an undecodable EXIF segment."""

    def _make(file_path):
        file_path = Path(file_path)
        file_path.write_bytes(build_corrupt_exif_jpeg_bytes())
        return file_path

    return _make

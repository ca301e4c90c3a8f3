#!/usr/bin/env python3
"""
EXIF Date Codec

Parses and formats the EXIF date-time representation ("YYYY:MM:DD HH:MM:SS")
and models the signed time offset applied to a capture date.
"""

import re
from datetime import datetime, timedelta
from typing import NamedTuple, Optional, Union

from exif_errors import DateFormatError, TimeParsingError

QUOTE_CHARACTERS = ("'", '"')

_EXIF_DATE_PATTERN = re.compile(
    r"(\d{4}):(\d{2}):(\d{2}) (\d{2}):(\d{2}):(\d{2})", re.ASCII
)
_OFFSET_PATTERN = re.compile(r"(?:\d+[a-z])+", re.ASCII)
_OFFSET_TOKEN_PATTERN = re.compile(r"(\d+)([a-z])", re.ASCII)


class TimeOffset(NamedTuple):
    """Signed shift applied to a capture date. Components are unbounded."""

    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0

    def as_timedelta(self) -> timedelta:
        return timedelta(
            days=self.days,
            hours=self.hours,
            minutes=self.minutes,
            seconds=self.seconds,
        )

    def combine(self, other: "TimeOffset") -> "TimeOffset":
        """Return the component-wise sum of two offsets."""
        return TimeOffset(
            self.days + other.days,
            self.hours + other.hours,
            self.minutes + other.minutes,
            self.seconds + other.seconds,
        )

    def is_zero(self) -> bool:
        return self.as_timedelta() == timedelta(0)

    def apply_to(self, value: datetime, label: Optional[str] = None) -> datetime:
        """
        Shift a naive datetime by this offset.

        Carry and borrow follow the proleptic Gregorian calendar with no time
        zone and no DST, so month, year and leap-day boundaries roll over the
        usual way.

        Raises:
            DateFormatError: If the result falls outside years 1..9999
        """
        try:
            return value + self.as_timedelta()
        except OverflowError as error:
            raise DateFormatError(
                f"Shifting {format_exif_date(value)} by {self.as_timedelta()} "
                "leaves the representable date range",
                label,
            ) from error


def parse_exif_date(
    text: Union[str, bytes], label: Optional[str] = None
) -> datetime:
    """
    Parse an EXIF date-time string to a naive datetime.

    Trailing NUL padding and a single pair of wrapping quote characters are
    stripped before matching.

    Args:
        text: Raw tag value, as text or as the ASCII bytes stored in the tag
        label: Identifier of the image, used in error messages only

    Returns:
        datetime with second precision

    Raises:
        DateFormatError: If the text does not match "YYYY:MM:DD HH:MM:SS" or
            holds out-of-range calendar components
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("ascii")
        except UnicodeDecodeError as error:
            raise DateFormatError(
                f"Date value is not ASCII text: {text!r}", label
            ) from error

    cleaned_text = text.rstrip("\x00")
    if (
        len(cleaned_text) >= 2
        and cleaned_text[0] in QUOTE_CHARACTERS
        and cleaned_text[-1] == cleaned_text[0]
    ):
        cleaned_text = cleaned_text[1:-1]

    match = _EXIF_DATE_PATTERN.fullmatch(cleaned_text)
    if not match:
        raise DateFormatError(
            f"Date value does not match YYYY:MM:DD HH:MM:SS: {text!r}", label
        )

    try:
        return datetime(*(int(component) for component in match.groups()))
    except ValueError as error:
        raise DateFormatError(
            f"Date value is out of calendar range: {text!r} ({error})", label
        ) from error


def format_exif_date(value: datetime) -> str:
    """Format a datetime as a fixed-width EXIF date-time string."""
    # strftime does not zero-pad years below 1000 on every platform
    return (
        f"{value.year:04d}:{value.month:02d}:{value.day:02d} "
        f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )


def parse_time_offset(time_string: str) -> TimeOffset:
    """
    Parse a human-readable time adjustment string to a TimeOffset.

    Supports formats like:
    - +5 (days)
    - +1d 2h 30m 15s (1 day, 2 hours, 30 minutes, 15 seconds)
    - -2w 1d (subtract 2 weeks and 1 day)

    Args:
        time_string: Human-readable time adjustment string

    Returns:
        TimeOffset with every component carrying the leading sign

    Raises:
        TimeParsingError: If the format cannot be parsed
    """
    time_string = time_string.strip()

    if not time_string.startswith(("+", "-")):
        raise TimeParsingError(
            f"Time adjustment must start with + or -: {time_string}"
        )

    sign = 1 if time_string.startswith("+") else -1
    time_string = time_string[1:].strip()

    # A bare number means days
    if time_string.isdigit():
        return TimeOffset(days=sign * int(time_string))

    # Parse complex format like "1w 2d 3h 4m 5s"
    compact_string = "".join(time_string.lower().split())
    if not _OFFSET_PATTERN.fullmatch(compact_string):
        raise TimeParsingError(f"Invalid time format: {time_string}")

    days = hours = minutes = seconds = 0

    for value_str, unit in _OFFSET_TOKEN_PATTERN.findall(compact_string):
        value = int(value_str)

        if unit == "w":
            days += value * 7
        elif unit == "d":
            days += value
        elif unit == "h":
            hours += value
        elif unit == "m":
            minutes += value
        elif unit == "s":
            seconds += value
        else:
            raise TimeParsingError(f"Unsupported time unit: {unit}")

    return TimeOffset(sign * days, sign * hours, sign * minutes, sign * seconds)

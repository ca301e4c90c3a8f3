#!/usr/bin/env python3
"""
File Replacer

Stages patched image bytes in a sibling temporary file and renames it over
the original in one atomic step.
"""

import os
import shutil
from pathlib import Path
from typing import Union

from exif_errors import ReplaceError

TEMP_SUFFIX = ".tmp"


def temporary_path_for(file_path: Path, temp_suffix: str = TEMP_SUFFIX) -> Path:
    """Return the staging path: the original file name plus the suffix."""
    return file_path.with_name(file_path.name + temp_suffix)


def replace_file(
    file_path: Union[str, Path], patched_bytes: bytes, temp_suffix: str = TEMP_SUFFIX
) -> None:
    """
    Replace a file's contents with patched bytes.

    The temporary file is created exclusively, flushed to disk, given the
    original's permission bits and renamed over the original with
    os.replace. On failure the temporary file is removed and the original
    is left untouched. A pre-existing file at the temporary path is never
    overwritten or removed.

    Args:
        file_path: File to replace
        patched_bytes: New file contents
        temp_suffix: Suffix appended to the file name for the staging file

    Raises:
        ReplaceError: If the temporary path is taken, or writing or renaming
            fails
    """
    file_path = Path(file_path)
    temp_path = temporary_path_for(file_path, temp_suffix)

    try:
        temp_file = open(temp_path, "xb")
    except FileExistsError as error:
        raise ReplaceError(
            f"Temporary file already exists: {temp_path}", file_path
        ) from error
    except OSError as error:
        raise ReplaceError(
            f"Could not create temporary file {temp_path}: {error}", file_path
        ) from error

    try:
        with temp_file:
            temp_file.write(patched_bytes)
            temp_file.flush()
            os.fsync(temp_file.fileno())

        shutil.copymode(file_path, temp_path)
        os.replace(temp_path, file_path)
    except OSError as error:
        if temp_path.exists():
            temp_path.unlink()
        raise ReplaceError(f"Could not replace file: {error}", file_path) from error

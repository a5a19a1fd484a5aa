"""Utility functions for heap-images."""

import hashlib
import os
from pathlib import Path
from typing import List, Union


CHUNK_SIZE = 1024 * 1024


def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB")
    """
    if size_bytes == 0:
        return "0 B"

    size_units = ["B", "KB", "MB", "GB", "TB"]
    unit_index = 0
    size = float(size_bytes)

    while size >= 1024 and unit_index < len(size_units) - 1:
        size /= 1024
        unit_index += 1

    if unit_index == 0:
        return f"{int(size)} {size_units[unit_index]}"
    else:
        return f"{size:.1f} {size_units[unit_index]}"


def file_md5(file_path: Union[str, Path]) -> str:
    """Hex MD5 digest of a file, read in chunks."""
    digest = hashlib.md5()
    with open(file_path, 'rb') as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b''):
            digest.update(chunk)
    return digest.hexdigest()


def list_files(directory: Union[str, Path]) -> List[Path]:
    """List the regular files directly inside a directory, sorted by name."""
    return sorted(path for path in Path(directory).iterdir() if path.is_file())


def relative_to_ledger(file_path: Union[str, Path], ledger_path: Union[str, Path]) -> str:
    """Express file_path relative to the directory holding the ledger, POSIX style."""
    base = Path(ledger_path).resolve().parent
    return Path(os.path.relpath(Path(file_path).resolve(), base)).as_posix()

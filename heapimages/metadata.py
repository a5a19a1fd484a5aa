"""Photo metadata extraction."""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import exifread
from PIL import Image, UnidentifiedImageError
from PIL.ExifTags import TAGS

from .errors import MetadataError


logger = logging.getLogger(__name__)

EXIF_IFD = 0x8769
EXIF_DATETIME_FORMAT = '%Y:%m:%d %H:%M:%S'


@dataclass
class ExifTags:
    """The EXIF fields a photo card is built from."""

    date_time_original: Optional[str] = None
    width: int = 0
    height: int = 0
    title: Optional[str] = None
    description: Optional[str] = None
    copyright: Optional[str] = None


def _decode_xp(value: Any) -> Optional[str]:
    """Decode a Windows XP* tag (UTF-16LE bytes or a tuple of byte values)."""
    if isinstance(value, tuple):
        value = bytes(value)
    if isinstance(value, bytes):
        return value.decode('utf-16le', errors='ignore').rstrip('\x00').strip() or None
    if isinstance(value, str):
        return value.strip() or None
    return None


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode('utf-8', errors='ignore')
    text = str(value).rstrip('\x00').strip()
    return text or None


def _exif_date(value: Any) -> Optional[str]:
    """Return an EXIF date string, or None when it is blank or zeroed.

    Cameras without a clock set write '0000:00:00 00:00:00' or spaces.
    """
    text = _clean(value)
    if text is None:
        return None
    try:
        datetime.strptime(text[:19], EXIF_DATETIME_FORMAT)
    except ValueError:
        return None
    return text


class MetadataExtractor:
    """Read the EXIF fields heap-images cares about."""

    def extract(self, file_path: Union[str, Path]) -> ExifTags:
        """Extract metadata from a photo file.

        Pillow supplies dimensions and most tags; ExifRead fills in anything
        Pillow could not decode. When no capture time is recorded the file
        modification time is used.

        Args:
            file_path: Path to photo file

        Returns:
            ExifTags for the photo

        Raises:
            MetadataError: If the file cannot be opened as an image
        """
        file_path = Path(file_path)
        logger.info("Reading EXIF data on %s...", file_path)

        tags = self._extract_with_pil(file_path)

        for key, value in self._extract_with_exifread(file_path).items():
            if getattr(tags, key) is None:
                setattr(tags, key, value)

        if tags.date_time_original is None:
            logger.warning("No capture date in %s, using file modification time", file_path)
            mtime = datetime.fromtimestamp(file_path.stat().st_mtime)
            tags.date_time_original = mtime.strftime(EXIF_DATETIME_FORMAT)

        return tags

    def _extract_with_pil(self, file_path: Path) -> ExifTags:
        """Extract dimensions and EXIF data using PIL.

        Args:
            file_path: Path to image file

        Returns:
            ExifTags with whatever Pillow found
        """
        try:
            with Image.open(file_path) as img:
                width, height = img.size
                exif = img.getexif()
                exif_ifd = exif.get_ifd(EXIF_IFD)
        except (OSError, UnidentifiedImageError) as e:
            raise MetadataError(f"Cannot read image {file_path}: {e}") from e

        named: Dict[str, Any] = {TAGS.get(tag_id, tag_id): value for tag_id, value in exif.items()}
        named.update({TAGS.get(tag_id, tag_id): value for tag_id, value in exif_ifd.items()})

        return ExifTags(
            date_time_original=_exif_date(named.get('DateTimeOriginal')) or _exif_date(named.get('DateTime')),
            width=width,
            height=height,
            title=_decode_xp(named.get('XPTitle')),
            description=_clean(named.get('ImageDescription')),
            copyright=_clean(named.get('Copyright')),
        )

    def _extract_with_exifread(self, file_path: Path) -> Dict[str, Optional[str]]:
        """Extract EXIF data using ExifRead.

        Args:
            file_path: Path to image file

        Returns:
            Dictionary keyed by ExifTags attribute names
        """
        try:
            with open(file_path, 'rb') as f:
                tags = exifread.process_file(f, details=False)
        except (OSError, ValueError, KeyError) as e:
            logger.debug("ExifRead could not process %s: %s", file_path, e)
            return {}

        def tag(name: str, clean=_clean) -> Optional[str]:
            value = tags.get(name)
            return clean(value.printable) if value is not None else None

        return {
            'date_time_original': tag('EXIF DateTimeOriginal', _exif_date) or tag('Image DateTime', _exif_date),
            'description': tag('Image ImageDescription'),
            'copyright': tag('Image Copyright'),
        }

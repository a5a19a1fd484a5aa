"""Heap export: resized images, an archive of originals and the exported config."""

import json
import logging
import os
import re
import shutil
import tarfile
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from PIL import Image

from .cards import REMOTE_FIELDS, PHOTO, Card, PhotoCard, TitleCard, to_remote_dict
from .errors import ExportError
from .ledger import Ledger
from .utils import file_md5


logger = logging.getLogger(__name__)

# '<name>-<size|original>-<md5>' as written by export_image
_EXPORTED_NAME_RE = re.compile(r'^(?P<name>.+)-(?:\d+|original)-[0-9a-f]{32}$')


@dataclass
class ExportResult:
    """Summary of a finished export."""

    target_dir: Path
    config_path: Path
    config: Dict[str, Any]
    photos: int = 0
    titles: int = 0
    images_written: int = 0
    archive: Optional[str] = None


def ensure_target_dir(to_dir: Optional[Union[str, Path]] = None) -> Path:
    """Return a writable export directory.

    Args:
        to_dir: Directory to export into; created when missing. When None a
            temporary staging directory is created.

    Returns:
        Path to the directory

    Raises:
        ExportError: If the directory cannot be created or written to
    """
    if to_dir is None:
        return Path(tempfile.mkdtemp(prefix='heap-images-'))

    to_dir = Path(to_dir)
    if not to_dir.exists():
        logger.info("To-dir does not exist, creating now.")
        try:
            to_dir.mkdir(parents=True)
        except OSError as e:
            raise ExportError(f"Error creating to-dir {to_dir}: {e}") from e
    elif not to_dir.is_dir() or not os.access(to_dir, os.W_OK):
        raise ExportError(f"Cannot write to to-dir {to_dir}")
    return to_dir


def target_size(long_side: int, width: int, height: int) -> Optional[Tuple[int, int]]:
    """Dimensions for resizing so the long side equals long_side.

    Returns None when the image is already smaller than long_side on both
    sides.
    """
    if long_side > width and long_side > height:
        return None
    if width > height:
        return long_side, (long_side * height) // width
    return (long_side * width) // height, long_side


def original_name(exported_name: str) -> str:
    """Recover the original file stem from an exported image or archive name."""
    stem = Path(exported_name).name
    for suffix in ('.tar.gz',) + tuple(Path(stem).suffixes[-1:]):
        if stem.endswith(suffix):
            stem = stem[:-len(suffix)]
            break
    match = _EXPORTED_NAME_RE.match(stem)
    return match.group('name') if match else stem


class HeapExporter:
    """Exports a ledger into a directory that can be served as-is."""

    def __init__(self, ledger: Ledger, cdn_prefix: str, sizes: Sequence[int],
                 json_only: bool = False, existing_config: Optional[Dict[str, Any]] = None,
                 jpeg_quality: int = 90):
        """Initialize exporter.

        Args:
            ledger: Heap to export
            cdn_prefix: Public URL prefix for every exported file
            sizes: Long-side sizes to resize photos to
            json_only: Only rebuild the config, reusing the existing config's sources
            existing_config: Previously exported config, required for json_only
            jpeg_quality: Quality for resized JPEGs
        """
        if json_only and existing_config is None:
            raise ExportError("json-only export needs an existing exported config")

        self.ledger = ledger
        self.cdn_prefix = cdn_prefix
        self.sizes = list(sizes)
        self.json_only = json_only
        self.existing_config = existing_config or {}
        self.jpeg_quality = jpeg_quality
        self.base_dir = ledger.path.resolve().parent
        self.images_written = 0

    def _source_path(self, relative: str) -> Path:
        return (self.base_dir / relative).resolve()

    def _resize(self, image_path: Path, to_path: Path, long_side: int,
                width: int, height: int) -> Optional[Dict[str, Any]]:
        size = target_size(long_side, width, height)
        if size is None:
            return None

        try:
            with Image.open(image_path) as img:
                resized = img.resize(size, Image.LANCZOS)
                save_args: Dict[str, Any] = {'quality': self.jpeg_quality}
                exif = img.info.get('exif')
                if exif:
                    save_args['exif'] = exif
                resized.save(to_path, **save_args)
        except OSError as e:
            raise ExportError(
                f"Error resizing image [from={image_path}, to={to_path}, size={long_side}]: {e}"
            ) from e

        self.images_written += 1
        return {'src': f"{self.cdn_prefix}{to_path.name}", 'width': size[0]}

    def export_image(self, card: PhotoCard, target_dir: Path) -> List[Dict[str, Any]]:
        """Write the resized variants and a copy of the original.

        File names carry the md5 of the original so every variant changes
        name whenever the original does.

        Args:
            card: Photo card to export
            target_dir: Directory to write into

        Returns:
            The card's sources list
        """
        logger.info("Exporting image %s...", card.file_path)
        image_path = self._source_path(card.file_path)
        if not image_path.is_file():
            raise ExportError(f"Image not found: {image_path}")

        md5 = file_md5(image_path)
        name, ext = image_path.stem, image_path.suffix

        sources = []
        for long_side in self.sizes:
            to_path = target_dir / f"{name}-{long_side}-{md5}{ext}"
            source = self._resize(image_path, to_path, long_side, card.width, card.height)
            if source is not None:
                sources.append(source)

        copy_path = target_dir / f"{name}-original-{md5}{ext}"
        try:
            shutil.copyfile(image_path, copy_path)
        except OSError as e:
            raise ExportError(f"Error copying {image_path}: {e}") from e
        self.images_written += 1
        sources.append({
            'src': f"{self.cdn_prefix}{copy_path.name}",
            'width': card.width,
            'size': image_path.stat().st_size,
        })
        return sources

    def _read_description(self, card: TitleCard) -> Optional[str]:
        if card.description_file is None:
            return card.description
        logger.info("Reading title description file %s", card.description_file)
        try:
            return self._source_path(card.description_file).read_text(encoding='utf-8')
        except OSError as e:
            raise ExportError(f"Cannot read description file {card.description_file}: {e}") from e

    def _existing_card(self, card: Card) -> Dict[str, Any]:
        cards = self.existing_config.get('cards') or []
        for existing in cards:
            if existing.get('path') == card.path:
                return existing

        if isinstance(card, PhotoCard):
            # The path may have been edited; fall back to the image name.
            name = Path(card.file_path or '').stem
            for existing in cards:
                sources = existing.get('sources') or []
                if sources and original_name(sources[0].get('src', '')) == name:
                    return existing
            raise ExportError(f"No existing card found for a photo card in json-only mode: {card.path}")
        return {}

    def export_card(self, card: Card, target_dir: Path) -> Dict[str, Any]:
        """Build the exported form of a card, writing its images if needed."""
        if isinstance(card, PhotoCard):
            exported = {key: value for key, value in to_remote_dict(card).items()
                        if key not in ('sources', 'preview')}
            if not self.json_only:
                exported['sources'] = self.export_image(card, target_dir)
        elif isinstance(card, TitleCard):
            exported = to_remote_dict(card)
            description = self._read_description(card)
            if description is not None:
                exported['description'] = description
        else:
            raise ExportError(f"Unknown card: {card!r}")

        if self.json_only:
            merged = dict(self._existing_card(card))
            merged.update(exported)
            card_type = merged.get('cardType', PHOTO)
            return {key: merged[key] for key in REMOTE_FIELDS[card_type] if key in merged}
        return exported

    def create_archive(self, target_dir: Path) -> Tuple[str, int]:
        """Pack the original photos into '<name>-<md5>.tar.gz'.

        Returns:
            Archive file name and its size in bytes
        """
        logger.info("Creating photo archive...")
        archive_path = target_dir / f"{self.ledger.name}.tar.gz"
        try:
            with tarfile.open(archive_path, 'w:gz') as archive:
                for photo in self.ledger.photos:
                    archive.add(self._source_path(photo.file_path), arcname=photo.file_path)
        except OSError as e:
            raise ExportError(f"Error creating archive {archive_path}: {e}") from e

        asset_name = f"{self.ledger.name}-{file_md5(archive_path)}.tar.gz"
        asset_path = target_dir / asset_name
        archive_path.replace(asset_path)
        return asset_name, asset_path.stat().st_size

    def export(self, target_dir: Union[str, Path], config_name: Optional[str] = None) -> ExportResult:
        """Export every card, the archive and the config into target_dir.

        Args:
            target_dir: Writable export directory
            config_name: File name for the exported config, defaults to the ledger's

        Returns:
            ExportResult
        """
        target_dir = Path(target_dir)
        logger.info("Writing to target dir %s", target_dir)

        config: Dict[str, Any] = {
            'name': self.ledger.name,
            'copyright': self.ledger.copyright,
            'copyrightCovers': list(self.ledger.copyright_covers),
        }
        cards = [self.export_card(card, target_dir) for card in self.ledger.cards]

        archive = None
        if self.json_only:
            for key in ('archiveUrl', 'archiveSize'):
                if key in self.existing_config:
                    config[key] = self.existing_config[key]
        else:
            archive, archive_size = self.create_archive(target_dir)
            config['archiveUrl'] = f"{self.cdn_prefix}{archive}"
            config['archiveSize'] = archive_size
        config['cards'] = cards

        config_path = target_dir / (config_name or self.ledger.path.name)
        logger.info("Writing config to %s", config_path)
        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                json.dump(config, f, separators=(',', ':'), ensure_ascii=False)
        except OSError as e:
            raise ExportError(f"Error writing export config {config_path}: {e}") from e

        photo_count = len(self.ledger.photos)
        return ExportResult(
            target_dir=target_dir,
            config_path=config_path,
            config=config,
            photos=photo_count,
            titles=len(self.ledger.cards) - photo_count,
            images_written=self.images_written,
            archive=archive,
        )


def export_heap(ledger: Ledger, cdn_prefix: str, sizes: Sequence[int],
                to_dir: Optional[Union[str, Path]] = None, json_only: bool = False,
                existing_config: Optional[Dict[str, Any]] = None,
                jpeg_quality: int = 90) -> ExportResult:
    """Export a heap into to_dir, or a fresh staging directory when None."""
    target_dir = ensure_target_dir(to_dir)
    exporter = HeapExporter(ledger, cdn_prefix, sizes, json_only=json_only,
                            existing_config=existing_config, jpeg_quality=jpeg_quality)
    return exporter.export(target_dir)

"""Photo import: read images from a directory into the heap ledger."""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .config import Config
from .errors import PhotoImportError
from .ledger import Ledger, insert_photo
from .metadata import MetadataExtractor
from .utils import list_files, relative_to_ledger


logger = logging.getLogger(__name__)


class PhotoImporter:
    """Adds every supported image in a directory to a ledger."""

    def __init__(self, config: Config, metadata_extractor: Optional[MetadataExtractor] = None):
        """Initialize photo importer.

        Args:
            config: Settings
            metadata_extractor: EXIF reader, defaults to MetadataExtractor()
        """
        self.config = config
        self.metadata_extractor = metadata_extractor or MetadataExtractor()

        # Statistics
        self.stats = {
            'processed': 0,
            'added': 0,
            'skipped': 0,
        }
        self.added_paths: List[str] = []

    def find_images(self, from_dir: Union[str, Path]) -> List[Path]:
        """List importable images directly inside from_dir."""
        from_dir = Path(from_dir)
        if not from_dir.is_dir():
            raise PhotoImportError(f"Not a directory: {from_dir}")
        return [path for path in list_files(from_dir) if self.config.is_supported_format(path)]

    def import_images(self, ledger: Ledger, from_dir: Union[str, Path]) -> Tuple[Ledger, Dict[str, int]]:
        """Import images from a directory.

        Args:
            ledger: Ledger to add photos to
            from_dir: Directory to read images from

        Returns:
            The updated ledger and import statistics
        """
        logger.info("Importing images from %s", from_dir)

        for image_path in self.find_images(from_dir):
            tags = self.metadata_extractor.extract(image_path)
            result = insert_photo(ledger, tags, relative_to_ledger(image_path, ledger.path))
            self.stats['processed'] += 1
            if result.skipped:
                self.stats['skipped'] += 1
            else:
                self.stats['added'] += 1
                self.added_paths.append(result.card.path)
                ledger = result.ledger

        return ledger, self.stats.copy()

"""Tests for importing photos into a ledger."""

import tempfile
from pathlib import Path
from unittest import TestCase
from unittest.mock import Mock

from PIL import Image

from heapimages.config import Config
from heapimages.errors import MetadataError, PhotoImportError
from heapimages.importer import PhotoImporter
from heapimages.ledger import read_ledger
from heapimages.metadata import ExifTags


def save_photo(path, date):
    exif = Image.Exif()
    exif[0x0132] = date
    Image.new('RGB', (40, 30)).save(path, 'JPEG', exif=exif)


class TestPhotoImporter(TestCase):
    """Test PhotoImporter class."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.heap_dir = Path(self.temp_dir.name) / 'trip'
        self.images_dir = self.heap_dir / 'images'
        self.images_dir.mkdir(parents=True)
        self.ledger_path = self.heap_dir / 'heap.json'
        self.config = Config(Path(self.temp_dir.name) / 'missing.yaml')

        save_photo(self.images_dir / 'late.jpg', '2020:01:03 00:00:00')
        save_photo(self.images_dir / 'early.JPG', '2020:01:01 00:00:00')
        save_photo(self.images_dir / 'middle.jpeg', '2020:01:02 00:00:00')
        (self.images_dir / 'notes.txt').write_text('skip me', encoding='utf-8')

    def tearDown(self):
        """Clean up test fixtures."""
        self.temp_dir.cleanup()

    def test_find_images(self):
        names = [path.name for path in PhotoImporter(self.config).find_images(self.images_dir)]
        self.assertEqual(names, ['early.JPG', 'late.jpg', 'middle.jpeg'])

    def test_find_images_not_a_directory(self):
        with self.assertRaises(PhotoImportError):
            PhotoImporter(self.config).find_images(self.images_dir / 'late.jpg')

    def test_import_images(self):
        importer = PhotoImporter(self.config)
        ledger, stats = importer.import_images(read_ledger(self.ledger_path), self.images_dir)

        self.assertEqual(stats, {'processed': 3, 'added': 3, 'skipped': 0})
        self.assertEqual([card.path for card in ledger.cards], ['early', 'middle', 'late'])
        self.assertEqual([card.file_path for card in ledger.cards],
                         ['images/early.JPG', 'images/middle.jpeg', 'images/late.jpg'])
        self.assertEqual(ledger.cards[0].date, '2020-01-01T00:00:00')
        self.assertEqual((ledger.cards[0].width, ledger.cards[0].height), (40, 30))
        self.assertEqual(importer.added_paths, ['early', 'late', 'middle'])

    def test_reimport_skips_existing(self):
        ledger, _ = PhotoImporter(self.config).import_images(read_ledger(self.ledger_path), self.images_dir)
        ledger, stats = PhotoImporter(self.config).import_images(ledger, self.images_dir)

        self.assertEqual(stats, {'processed': 3, 'added': 0, 'skipped': 3})
        self.assertEqual(len(ledger.cards), 3)

    def test_zeroed_date_does_not_stop_import(self):
        """Test that a photo from a camera without its clock set still imports."""
        save_photo(self.images_dir / 'noclock.jpg', '0000:00:00 00:00:00')

        ledger, stats = PhotoImporter(self.config).import_images(read_ledger(self.ledger_path), self.images_dir)

        self.assertEqual(stats, {'processed': 4, 'added': 4, 'skipped': 0})
        noclock = [card for card in ledger.cards if card.path == 'noclock'][0]
        self.assertRegex(noclock.date, r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}$')
        self.assertNotEqual(noclock.date[:4], '0000')

    def test_supported_formats_from_settings(self):
        self.config.set('import.supported_formats', ['.jpeg'])
        names = [path.name for path in PhotoImporter(self.config).find_images(self.images_dir)]
        self.assertEqual(names, ['middle.jpeg'])

    def test_metadata_errors_propagate(self):
        extractor = Mock()
        extractor.extract.side_effect = MetadataError('broken')
        with self.assertRaises(MetadataError):
            PhotoImporter(self.config, extractor).import_images(read_ledger(self.ledger_path), self.images_dir)

    def test_custom_extractor(self):
        extractor = Mock()
        extractor.extract.return_value = ExifTags(date_time_original='2019:01:01 00:00:00',
                                                  width=1, height=1, title='Same')
        ledger, _ = PhotoImporter(self.config, extractor).import_images(
            read_ledger(self.ledger_path), self.images_dir)

        self.assertEqual(extractor.extract.call_count, 3)
        self.assertEqual([card.path for card in ledger.cards], ['same', 'same-2', 'same-3'])

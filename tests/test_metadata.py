"""Tests for metadata extraction."""

import os
import tempfile
from datetime import datetime
from pathlib import Path
from unittest import TestCase
from unittest.mock import patch

from PIL import Image

from heapimages.errors import MetadataError
from heapimages.metadata import ExifTags, MetadataExtractor


class TestMetadataExtractor(TestCase):
    """Test MetadataExtractor class."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.dir = Path(self.temp_dir.name)
        self.extractor = MetadataExtractor()

    def tearDown(self):
        """Clean up test fixtures."""
        self.temp_dir.cleanup()

    def make_image(self, name='photo.jpg', size=(64, 48), **tags):
        path = self.dir / name
        exif = Image.Exif()
        for tag_id, value in tags.items():
            exif[int(tag_id[1:], 16)] = value
        Image.new('RGB', size, color=(10, 20, 30)).save(path, 'JPEG', exif=exif)
        return path

    def test_extract_tags(self):
        """Test reading dimensions, date and text tags."""
        path = self.make_image(
            x0132='2019:06:01 18:30:12',
            x010e='A description',
            x8298='2019 Someone',
            x9c9b='Sunset'.encode('utf-16le') + b'\x00\x00',
        )
        tags = self.extractor.extract(path)

        self.assertEqual((tags.width, tags.height), (64, 48))
        self.assertEqual(tags.date_time_original, '2019:06:01 18:30:12')
        self.assertEqual(tags.description, 'A description')
        self.assertEqual(tags.copyright, '2019 Someone')
        self.assertEqual(tags.title, 'Sunset')

    def test_missing_date_uses_mtime(self):
        """Test date fallback to file modification time."""
        path = self.make_image()
        timestamp = datetime(2021, 3, 4, 5, 6, 7).timestamp()
        os.utime(path, (timestamp, timestamp))

        tags = self.extractor.extract(path)

        self.assertEqual(tags.date_time_original, '2021:03:04 05:06:07')
        self.assertIsNone(tags.title)
        self.assertIsNone(tags.copyright)

    def test_zeroed_date_uses_mtime(self):
        """Test that a camera without its clock set does not supply a date."""
        for zeroed in ('0000:00:00 00:00:00', '    :  :     :  :  '):
            path = self.make_image(x0132=zeroed)
            timestamp = datetime(2021, 3, 4, 5, 6, 7).timestamp()
            os.utime(path, (timestamp, timestamp))

            with self.assertLogs('heapimages.metadata', level='WARNING'):
                tags = self.extractor.extract(path)

            self.assertEqual(tags.date_time_original, '2021:03:04 05:06:07')

    def test_zeroed_original_falls_back_to_datetime(self):
        path = self.make_image()
        with patch.object(MetadataExtractor, '_extract_with_exifread', return_value={
            'date_time_original': None,
        }), patch('heapimages.metadata.Image.open') as mock_open:
            img = mock_open.return_value.__enter__.return_value
            img.size = (10, 10)
            img.getexif.return_value.items.return_value = [(0x0132, '2019:06:01 18:30:12')]
            img.getexif.return_value.get_ifd.return_value = {0x9003: '0000:00:00 00:00:00'}

            tags = self.extractor.extract(path)

        self.assertEqual(tags.date_time_original, '2019:06:01 18:30:12')

    def test_exifread_fills_gaps(self):
        """Test that ExifRead values only fill fields Pillow left empty."""
        path = self.make_image(x010e='From Pillow')
        with patch.object(MetadataExtractor, '_extract_with_exifread', return_value={
            'date_time_original': '2018:01:01 00:00:00',
            'description': 'From ExifRead',
            'copyright': None,
        }):
            tags = self.extractor.extract(path)

        self.assertEqual(tags.date_time_original, '2018:01:01 00:00:00')
        self.assertEqual(tags.description, 'From Pillow')

    def test_not_an_image(self):
        """Test that unreadable files raise MetadataError."""
        path = self.dir / 'notes.jpg'
        path.write_text('not an image', encoding='utf-8')
        with self.assertRaises(MetadataError):
            self.extractor.extract(path)

    def test_missing_file(self):
        with self.assertRaises(MetadataError):
            self.extractor.extract(self.dir / 'missing.jpg')

    def test_defaults(self):
        tags = ExifTags()
        self.assertIsNone(tags.date_time_original)
        self.assertEqual((tags.width, tags.height), (0, 0))

"""Tests for settings management."""

import tempfile
from pathlib import Path
from unittest import TestCase

import yaml

from heapimages.config import Config, load_config, parse_sizes


class TestConfig(TestCase):
    """Test settings functionality."""

    def setUp(self):
        """Set up test fixtures."""
        self.config = Config('/nonexistent/settings.yaml')

    def test_default_config_loads(self):
        """Test that default settings load successfully."""
        self.assertEqual(self.config.export_sizes, [500, 1366, 1920, 3840])
        self.assertEqual(self.config.jpeg_quality, 90)
        self.assertEqual(self.config.aws_acl, 'public-read')
        self.assertIsNone(self.config.aws_region)
        self.assertTrue(self.config.remove_staging_dir)

    def test_get_with_dot_notation(self):
        """Test getting values with dot notation."""
        self.assertEqual(self.config.get('aws.max_attempts'), 5)
        self.assertEqual(self.config.get('aws.max_attempts'), self.config.aws_max_attempts)

    def test_get_with_default(self):
        """Test getting non-existent key returns default."""
        value = self.config.get('nonexistent.key', 'default_value')
        self.assertEqual(value, 'default_value')

    def test_set_with_dot_notation(self):
        """Test setting values with dot notation."""
        self.config.set('export.sizes', [800, 400])
        self.assertEqual(self.config.export_sizes, [400, 800])

        self.config.set('new.section.value', 1)
        self.assertEqual(self.config.get('new.section.value'), 1)

    def test_is_supported_format(self):
        """Test format support checking."""
        self.assertTrue(self.config.is_supported_format('photo.jpg'))
        self.assertTrue(self.config.is_supported_format('photo.JPEG'))
        self.assertFalse(self.config.is_supported_format('photo.png'))

    def test_multipart_sizes_in_bytes(self):
        self.assertEqual(self.config.multipart_threshold, 8 * 1024 * 1024)
        self.config.set('aws.multipart_chunksize_mb', 16)
        self.assertEqual(self.config.multipart_chunksize, 16 * 1024 * 1024)

    def test_load_config_function(self):
        """Test standalone settings loading function."""
        config = load_config('/nonexistent/settings.yaml')
        self.assertIsInstance(config, Config)


class TestParseSizes(TestCase):
    """Test export size parsing."""

    def test_from_string(self):
        self.assertEqual(parse_sizes('1366, 500,500,'), [500, 1366])

    def test_from_list(self):
        self.assertEqual(parse_sizes([3840, '500']), [500, 3840])

    def test_invalid(self):
        with self.assertRaises(ValueError):
            parse_sizes('500,big')
        with self.assertRaises(ValueError):
            parse_sizes('0,500')


class TestConfigFile(TestCase):
    """Test settings file handling."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.temp_dir.name) / 'settings.yaml'

    def tearDown(self):
        """Clean up test fixtures."""
        self.temp_dir.cleanup()

    def test_config_with_custom_file(self):
        """Test that a partial file is merged over the defaults."""
        self.path.write_text("""
export:
  sizes: [640, 1280]
aws:
  region: eu-west-1
""", encoding='utf-8')

        config = Config(self.path)

        self.assertEqual(config.export_sizes, [640, 1280])
        self.assertEqual(config.jpeg_quality, 90)
        self.assertEqual(config.aws_region, 'eu-west-1')
        self.assertEqual(config.aws_acl, 'public-read')

    def test_empty_file(self):
        self.path.write_text('', encoding='utf-8')
        self.assertEqual(Config(self.path).jpeg_quality, 90)

    def test_save_config(self):
        """Test saving settings and loading them back."""
        config = Config(self.path)
        config.set('aws.acl', 'private')
        nested = Path(self.temp_dir.name) / 'nested' / 'settings.yaml'
        config.save_config(nested)

        with open(nested, 'r', encoding='utf-8') as f:
            self.assertEqual(yaml.safe_load(f)['aws']['acl'], 'private')
        self.assertEqual(Config(nested).aws_acl, 'private')

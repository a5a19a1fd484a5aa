"""Tests for S3 sync."""

import hashlib
import tempfile
from pathlib import Path
from unittest import TestCase
from unittest.mock import MagicMock

from botocore.exceptions import ClientError

from heapimages.aws_sync import (
    ASSET_CACHE_CONTROL,
    CONFIG_CACHE_CONTROL,
    S3Syncer,
    attachment_name,
    content_type,
    object_key,
    sync_to_aws,
    upload_args,
)
from heapimages.config import Config
from heapimages.errors import SyncError


MD5 = 'd41d8cd98f00b204e9800998ecf8427e'


def client_error(status, code=None):
    return ClientError(
        {'Error': {'Code': code or str(status), 'Message': 'error'},
         'ResponseMetadata': {'HTTPStatusCode': status}},
        'HeadObject',
    )


class TestUploadArgs(TestCase):
    """Test per-file upload headers."""

    def test_attachment_name(self):
        self.assertEqual(attachment_name(f'sunset-original-{MD5}.jpg'), 'sunset.jpg')
        self.assertEqual(attachment_name(f'trip-{MD5}.tar.gz'), 'trip.tar.gz')

    def test_content_type(self):
        self.assertEqual(content_type('a.jpg'), 'image/jpeg')
        self.assertEqual(content_type('heap.json'), 'application/json; charset=utf-8')
        self.assertEqual(content_type('README'), 'application/octet-stream')

    def test_config_is_not_cached(self):
        args = upload_args(Path('heap.json'), 'public-read')
        self.assertEqual(args['CacheControl'], CONFIG_CACHE_CONTROL)
        self.assertEqual(args['ACL'], 'public-read')
        self.assertNotIn('ContentDisposition', args)

    def test_media_is_cached_forever(self):
        args = upload_args(Path(f'sunset-original-{MD5}.jpg'), 'private')
        self.assertEqual(args['CacheControl'], ASSET_CACHE_CONTROL)
        self.assertEqual(args['ContentDisposition'], 'attachment; filename=sunset.jpg')
        self.assertEqual(args['ContentType'], 'image/jpeg')

    def test_object_key(self):
        self.assertEqual(object_key('heaps/trip', Path('/tmp/x/a.jpg')), 'heaps/trip/a.jpg')
        self.assertEqual(object_key('', Path('a.jpg')), 'a.jpg')


class TestS3Syncer(TestCase):
    """Test syncing against a mocked S3 client."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.export_dir = Path(self.temp_dir.name) / 'export'
        self.export_dir.mkdir()
        (self.export_dir / 'a-500-abc.jpg').write_bytes(b'small')
        (self.export_dir / 'a-original-abc.jpg').write_bytes(b'original')
        (self.export_dir / 'heap.json').write_text('{}', encoding='utf-8')

        self.config = Config(Path(self.temp_dir.name) / 'missing.yaml')
        self.client = MagicMock()
        self.client.head_object.side_effect = client_error(404)
        self.paginator = MagicMock()
        self.paginator.paginate.return_value = [{'Contents': []}]
        self.client.get_paginator.return_value = self.paginator

        self.syncer = S3Syncer('bucket', '/heaps/trip/', self.config, self.client)

    def tearDown(self):
        """Clean up test fixtures."""
        self.temp_dir.cleanup()

    def etag(self, name):
        return '"%s"' % hashlib.md5((self.export_dir / name).read_bytes()).hexdigest()

    def test_uploads_media_before_config(self):
        result = self.syncer.sync(self.export_dir)

        uploaded_keys = [call.args[2] for call in self.client.upload_file.call_args_list]
        self.assertEqual(uploaded_keys, [
            'heaps/trip/a-500-abc.jpg', 'heaps/trip/a-original-abc.jpg', 'heaps/trip/heap.json',
        ])
        self.assertEqual(result.uploaded, uploaded_keys)
        self.assertEqual(result.skipped, [])

        _, kwargs = self.client.upload_file.call_args
        self.assertEqual(kwargs['ExtraArgs']['CacheControl'], CONFIG_CACHE_CONTROL)
        self.assertIs(kwargs['Config'], self.syncer.transfer_config)

    def test_unchanged_files_skipped(self):
        etags = {'heaps/trip/a-500-abc.jpg': self.etag('a-500-abc.jpg'),
                 'heaps/trip/heap.json': '"stale"'}

        def head_object(Bucket, Key):
            if Key in etags:
                return {'ETag': etags[Key]}
            raise client_error(404)

        self.client.head_object.side_effect = head_object
        result = self.syncer.sync(self.export_dir)

        self.assertEqual(result.skipped, ['heaps/trip/a-500-abc.jpg'])
        self.assertEqual(result.uploaded, ['heaps/trip/a-original-abc.jpg', 'heaps/trip/heap.json'])

    def test_forbidden_counts_as_missing(self):
        self.client.head_object.side_effect = client_error(403, 'Forbidden')
        self.assertEqual(len(self.syncer.sync(self.export_dir).uploaded), 3)

    def test_other_head_errors_fail(self):
        self.client.head_object.side_effect = client_error(500, 'InternalError')
        with self.assertRaises(SyncError):
            self.syncer.sync(self.export_dir)

    def test_upload_failure(self):
        self.client.upload_file.side_effect = client_error(500, 'InternalError')
        with self.assertRaises(SyncError):
            self.syncer.sync(self.export_dir)

    def test_stale_objects_deleted(self):
        self.paginator.paginate.return_value = [
            {'Contents': [{'Key': 'heaps/trip/a-500-abc.jpg'}, {'Key': 'heaps/trip/old-500-def.jpg'}]},
            {'Contents': [{'Key': 'heaps/trip/old.json'}]},
            {},
        ]
        result = self.syncer.sync(self.export_dir)

        self.paginator.paginate.assert_called_once_with(Bucket='bucket', Prefix='heaps/trip/')
        self.assertEqual(result.deleted, ['heaps/trip/old-500-def.jpg', 'heaps/trip/old.json'])
        self.client.delete_objects.assert_called_once_with(
            Bucket='bucket',
            Delete={'Objects': [{'Key': 'heaps/trip/old-500-def.jpg'}, {'Key': 'heaps/trip/old.json'}]},
        )

    def test_nothing_stale(self):
        self.syncer.sync(self.export_dir)
        self.client.delete_objects.assert_not_called()

    def test_deletes_in_batches(self):
        keys = [{'Key': f'heaps/trip/old-{index}.jpg'} for index in range(1500)]
        self.paginator.paginate.return_value = [{'Contents': keys}]
        result = self.syncer.sync(self.export_dir)

        self.assertEqual(self.client.delete_objects.call_count, 2)
        self.assertEqual(len(result.deleted), 1500)


class TestSyncToAws(TestCase):
    """Test the sync entry point."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.export_dir = Path(self.temp_dir.name) / 'export'
        self.export_dir.mkdir()
        (self.export_dir / 'heap.json').write_text('{}', encoding='utf-8')
        self.config = Config(Path(self.temp_dir.name) / 'missing.yaml')

        self.client = MagicMock()
        self.client.head_object.side_effect = client_error(404)
        self.client.get_paginator.return_value.paginate.return_value = []

    def tearDown(self):
        """Clean up test fixtures."""
        self.temp_dir.cleanup()

    def test_removes_staging_dir(self):
        sync_to_aws(self.export_dir, 'bucket', 'trip', self.config, self.client, remove_dir=True)
        self.assertFalse(self.export_dir.exists())

    def test_keeps_dir(self):
        result = sync_to_aws(self.export_dir, 'bucket', 'trip', self.config, self.client, remove_dir=False)
        self.assertTrue(self.export_dir.exists())
        self.assertEqual(result.uploaded, ['trip/heap.json'])

    def test_default_from_settings(self):
        self.config.set('aws.remove_staging_dir', False)
        sync_to_aws(self.export_dir, 'bucket', 'trip', self.config, self.client)
        self.assertTrue(self.export_dir.exists())

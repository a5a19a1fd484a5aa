"""heap-images - import photos into a heap, export them and lay them out for viewing."""

__version__ = "0.1.0"
__author__ = "heap-images Contributors"
__description__ = "Import photos into a JSON heap, export resized variants and sync them to S3"

from .cli import app

__all__ = ["app"]

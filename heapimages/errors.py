"""Exceptions raised by heap-images."""


class HeapImagesError(Exception):
    """Base class for all heap-images errors."""


class CardError(HeapImagesError):
    """A card could not be parsed or has an unknown card type."""


class LedgerError(HeapImagesError):
    """The heap ledger file could not be read or written."""


class LedgerMissingError(LedgerError):
    """The heap ledger file does not exist and an empty one was not allowed."""


class MetadataError(HeapImagesError):
    """EXIF metadata could not be read from an image."""


class ExportError(HeapImagesError):
    """Exporting the heap failed."""


class SyncError(HeapImagesError):
    """Syncing an export to remote storage failed."""


class PhotoImportError(HeapImagesError):
    """Importing photos into the ledger failed."""

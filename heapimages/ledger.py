"""The heap ledger: the local JSON file that lists every card in a heap."""

import json
import logging
import re
import unicodedata
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple, Union

from .cards import Card, PhotoCard, card_from_dict, is_photo, to_local_dict
from .errors import CardError, LedgerError, LedgerMissingError
from .metadata import ExifTags


logger = logging.getLogger(__name__)

DEFAULT_LEDGER = 'heap.json'

LOCAL_HEAP_FIELDS = ['name', 'copyright', 'copyrightCovers', 'cdnPrefix', 'remote']

_WORD_RE = re.compile(r'[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|[0-9]+')
_EXIF_DATE_RE = re.compile(r'^(\d{4}):(\d{2}):(\d{2})[ T]')


def kebab_case(text: str) -> str:
    """Convert text to a lowercase, hyphen separated slug.

    Accents are stripped, camelCase and letter/digit boundaries split words,
    and everything else is treated as a separator.

    >>> kebab_case('Sunset over the Bay!')
    'sunset-over-the-bay'
    >>> kebab_case('IMG_0042')
    'img-0042'
    """
    ascii_text = unicodedata.normalize('NFKD', text).encode('ascii', 'ignore').decode('ascii')
    return '-'.join(word.lower() for word in _WORD_RE.findall(ascii_text))


def normalize_timestamp(value: Union[str, datetime]) -> str:
    """Turn an unzoned capture time into a comparable ISO-8601 token.

    The value is read as if it were UTC. No conversion happens: any offset
    is dropped, as is the sub-second fraction.

    Args:
        value: EXIF string ('2019:06:01 18:30:12.25+02:00'), ISO string or datetime

    Returns:
        'YYYY-MM-DDTHH:MM:SS'
    """
    if isinstance(value, datetime):
        moment = value
    else:
        text = _EXIF_DATE_RE.sub(r'\1-\2-\3T', value.strip())
        text = re.sub(r'(\.\d+)?(Z|[+-]\d{2}:?\d{2})?$', '', text)
        try:
            moment = datetime.fromisoformat(text)
        except ValueError as e:
            raise LedgerError(f"Unrecognized timestamp: {value!r}") from e
    return moment.replace(tzinfo=timezone.utc, microsecond=0).strftime('%Y-%m-%dT%H:%M:%S')


def parse_date(value: str) -> datetime:
    """Parse a card date into a naive datetime for comparison.

    Zoned dates (possible in hand-edited ledgers) are converted to UTC.
    """
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def photos(cards: Iterable[Card]) -> List[PhotoCard]:
    """Filter the photo cards out of a card sequence."""
    return [card for card in cards if is_photo(card)]


def dates_sorted(cards: Iterable[Card]) -> bool:
    """Check that photo dates strictly increase, ignoring title cards.

    A photo without a readable date breaks the ordering.
    """
    previous = None
    for photo in photos(cards):
        if photo.date is None:
            return False
        try:
            current = parse_date(photo.date)
        except ValueError:
            return False
        if previous is not None and not previous < current:
            return False
        previous = current
    return True


def photo_exists(photo_cards: Iterable[PhotoCard], file_path: str) -> bool:
    """Return True if any of the photo cards was imported from file_path."""
    return any(photo.file_path == file_path for photo in photo_cards)


def unique_slug(slug: str, photo_cards: Iterable[PhotoCard]) -> str:
    """Find a card path that no existing photo uses.

    Every existing path starting with ``slug`` counts as a collision. If
    there are any, numeric suffixes are tried from ``-2`` upward until one
    is free.

    Args:
        slug: Desired path
        photo_cards: Existing photo cards

    Returns:
        slug, or slug with the smallest free suffix
    """
    collisions = {photo.path for photo in photo_cards if photo.path.startswith(slug)}
    candidate = slug
    added = 1
    while candidate in collisions:
        added += 1
        candidate = f"{slug}-{added}"
    return candidate


@dataclass(frozen=True)
class Ledger:
    """A heap: metadata plus an ordered sequence of cards.

    Ledger values are never changed in place; every operation returns a
    new Ledger.
    """

    path: Path
    name: str
    copyright: str = ''
    copyright_covers: Tuple[str, ...] = ()
    cards: Tuple[Card, ...] = ()
    images_date_sorted: bool = True
    cdn_prefix: Optional[str] = None
    remote: Optional[Dict[str, Dict[str, str]]] = None

    @classmethod
    def empty(cls, path: Union[str, Path]) -> 'Ledger':
        """Create an empty ledger named after the directory holding it."""
        path = Path(path)
        return cls(path=path, name=path.resolve().parent.name)

    @classmethod
    def from_dict(cls, path: Union[str, Path], data: Dict[str, Any]) -> 'Ledger':
        """Build a ledger from the parsed contents of a ledger file."""
        path = Path(path)
        if not isinstance(data, dict):
            raise LedgerError(f"Ledger {path} must contain a JSON object")
        try:
            cards = tuple(card_from_dict(card) for card in data.get('cards') or [])
        except CardError as e:
            raise LedgerError(f"Invalid card in {path}: {e}") from e

        return cls(
            path=path,
            name=data.get('name') or path.resolve().parent.name,
            copyright=data.get('copyright') or '',
            copyright_covers=tuple(data.get('copyrightCovers') or ()),
            cards=cards,
            images_date_sorted=dates_sorted(cards),
            cdn_prefix=data.get('cdnPrefix'),
            remote=data.get('remote'),
        )

    @property
    def photos(self) -> List[PhotoCard]:
        return photos(self.cards)

    @property
    def aws_remote(self) -> Optional[Dict[str, str]]:
        """The configured AWS bucket/path, if any."""
        return (self.remote or {}).get('AWS')

    def with_cdn_prefix(self, cdn_prefix: str) -> 'Ledger':
        return replace(self, cdn_prefix=cdn_prefix)

    def with_remote_aws(self, bucket: str, path: str) -> 'Ledger':
        return replace(self, remote={'AWS': {'bucket': bucket, 'path': path}})

    def to_local_dict(self) -> Dict[str, Any]:
        """Serialize with the fields that belong in the local ledger file."""
        data: Dict[str, Any] = {
            'name': self.name,
            'copyright': self.copyright,
            'copyrightCovers': list(self.copyright_covers),
            'cdnPrefix': self.cdn_prefix,
            'remote': self.remote,
        }
        data = {key: data[key] for key in LOCAL_HEAP_FIELDS if data[key] is not None}
        data['cards'] = [to_local_dict(card) for card in self.cards]
        return data

    def summary(self) -> Dict[str, Any]:
        """Counts and settings shown by the info command."""
        photo_cards = self.photos
        dates = [photo.date for photo in photo_cards if photo.date]
        return {
            'name': self.name,
            'copyright': self.copyright,
            'copyright_covers': list(self.copyright_covers),
            'cards': len(self.cards),
            'photos': len(photo_cards),
            'titles': len(self.cards) - len(photo_cards),
            'images_date_sorted': self.images_date_sorted,
            'first_date': min(dates) if dates else None,
            'last_date': max(dates) if dates else None,
            'cdn_prefix': self.cdn_prefix,
            'remote': self.aws_remote,
        }


class InsertResult(NamedTuple):
    """Outcome of inserting a photo into a ledger."""

    ledger: Ledger
    card: PhotoCard
    skipped: bool


def build_photo_card(tags: ExifTags, file_path: str, existing: Sequence[PhotoCard] = ()) -> PhotoCard:
    """Create the photo card for an imported image.

    Args:
        tags: EXIF tags read from the image
        file_path: Image path relative to the ledger
        existing: Photo cards already in the ledger, used to keep the path unique

    Returns:
        New PhotoCard
    """
    slug = kebab_case(tags.title if tags.title else Path(file_path).stem) or 'photo'
    meta = {'title': tags.title, 'description': tags.description, 'copyright': tags.copyright}
    return PhotoCard(
        path=unique_slug(slug, existing),
        file_path=file_path,
        date=normalize_timestamp(tags.date_time_original) if tags.date_time_original else None,
        width=tags.width,
        height=tags.height,
        meta={key: value for key, value in meta.items() if value is not None},
    )


def _insertion_index(cards: Sequence[Card], date: Optional[str]) -> int:
    if date is None:
        return len(cards)
    moment = parse_date(date)
    for index, card in enumerate(cards):
        if is_photo(card) and card.date is not None and moment < parse_date(card.date):
            return index
    return len(cards)


def insert_photo(ledger: Ledger, tags: ExifTags, file_path: str) -> InsertResult:
    """Add an imported photo to a ledger.

    Photos that were already imported from the same file are skipped so
    that hand edits in the ledger survive a re-import. When the ledger's
    photos are date sorted the new card goes right before the first later
    photo; otherwise it is appended.

    Args:
        ledger: Current ledger
        tags: EXIF tags of the new photo
        file_path: Image path relative to the ledger

    Returns:
        InsertResult with the new ledger (the same object when skipped)
    """
    existing = ledger.photos
    card = build_photo_card(tags, file_path, existing)

    if photo_exists(existing, file_path):
        logger.warning("Skipping existing image in config: %s", file_path)
        return InsertResult(ledger, card, True)

    if ledger.images_date_sorted:
        index = _insertion_index(ledger.cards, card.date)
    else:
        index = len(ledger.cards)

    cards = ledger.cards[:index] + (card,) + ledger.cards[index:]
    logger.info("Added %s as %s at position %d", file_path, card.path, index)
    return InsertResult(replace(ledger, cards=cards), card, False)


def read_ledger(path: Union[str, Path], create_empty: bool = True) -> Ledger:
    """Read a ledger file.

    Args:
        path: Path to the ledger JSON file
        create_empty: Return an empty ledger when the file is missing

    Returns:
        Ledger

    Raises:
        LedgerMissingError: If the file is missing and create_empty is False
        LedgerError: If the file cannot be read or parsed
    """
    path = Path(path)
    logger.info("Reading config from %s...", path)

    if not path.exists():
        if create_empty:
            logger.info("Config file does not exist, starting with an empty config.")
            return Ledger.empty(path)
        raise LedgerMissingError(f"Config file missing: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise LedgerError(f"Config file {path} is not valid JSON: {e}") from e
    except OSError as e:
        raise LedgerError(f"Cannot read config file {path}: {e}") from e

    return Ledger.from_dict(path, data)


def write_ledger(ledger: Ledger, path: Optional[Union[str, Path]] = None) -> Path:
    """Write a ledger as indented JSON so it is easy to edit by hand.

    Args:
        ledger: Ledger to write
        path: Destination, defaults to the path the ledger was read from

    Returns:
        Path written
    """
    path = Path(path) if path is not None else ledger.path
    logger.info("Writing config to %s...", path)

    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(ledger.to_local_dict(), f, indent=2, ensure_ascii=False)
            f.write('\n')
    except OSError as e:
        raise LedgerError(f"Cannot write config file {path}: {e}") from e

    return path

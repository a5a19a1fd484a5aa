"""Card types that make up a heap."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .errors import CardError


PHOTO = 'photo'
TITLE = 'title'

# JSON key -> attribute name
_PHOTO_ATTRS = {
    'cardType': 'card_type',
    'path': 'path',
    'filePath': 'file_path',
    'date': 'date',
    'width': 'width',
    'height': 'height',
    'meta': 'meta',
    'sources': 'sources',
    'preview': 'preview',
}

_TITLE_ATTRS = {
    'cardType': 'card_type',
    'path': 'path',
    'title': 'title',
    'descriptionFile': 'description_file',
    'description': 'description',
}

LOCAL_FIELDS = {
    PHOTO: ['cardType', 'path', 'filePath', 'date', 'width', 'height', 'meta'],
    TITLE: ['cardType', 'path', 'title', 'descriptionFile'],
}

REMOTE_FIELDS = {
    PHOTO: ['cardType', 'path', 'width', 'height', 'meta', 'sources', 'preview'],
    TITLE: ['cardType', 'path', 'title', 'description'],
}


@dataclass(frozen=True)
class PhotoCard:
    """A photo in the heap.

    ``file_path`` and ``date`` are only present in the local ledger, while
    ``sources`` and ``preview`` are only present in an exported config.
    """

    path: str
    file_path: Optional[str] = None
    date: Optional[str] = None
    width: int = 0
    height: int = 0
    meta: Dict[str, str] = field(default_factory=dict)
    sources: Optional[List[Dict[str, Any]]] = None
    preview: Optional[str] = None

    card_type = PHOTO


@dataclass(frozen=True)
class TitleCard:
    """A title page, optionally with a description read from a file on export."""

    path: str
    title: str = ''
    description_file: Optional[str] = None
    description: Optional[str] = None

    card_type = TITLE


Card = Union[PhotoCard, TitleCard]


@dataclass(frozen=True)
class Placement:
    """Scatter position of a card relative to the center of the screen."""

    offset_x: float = 0.0
    offset_y: float = 0.0
    rotation: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {'offsetX': self.offset_x, 'offsetY': self.offset_y, 'rotation': self.rotation}


ORIGIN = Placement()


def is_photo(card: Card) -> bool:
    """Return True for photo cards, False for title cards."""
    if isinstance(card, PhotoCard):
        return True
    if isinstance(card, TitleCard):
        return False
    raise CardError(f"Unknown card: {card!r}")


def _attrs_for(card: Card) -> Dict[str, str]:
    if isinstance(card, PhotoCard):
        return _PHOTO_ATTRS
    if isinstance(card, TitleCard):
        return _TITLE_ATTRS
    raise CardError(f"Unknown card: {card!r}")


def card_from_dict(data: Dict[str, Any]) -> Card:
    """Build a card from its JSON representation.

    Args:
        data: Card dictionary from a ledger or an exported config

    Returns:
        PhotoCard or TitleCard

    Raises:
        CardError: If the card type is unknown or the path is missing
    """
    if not isinstance(data, dict):
        raise CardError(f"Card must be an object, got {type(data).__name__}")

    card_type = data.get('cardType')
    if card_type == PHOTO:
        cls, attrs = PhotoCard, _PHOTO_ATTRS
    elif card_type == TITLE:
        cls, attrs = TitleCard, _TITLE_ATTRS
    else:
        raise CardError(f"Unknown card type: {card_type!r}")

    if not data.get('path'):
        raise CardError(f"Card is missing a path: {data!r}")

    kwargs = {
        attr: data[key]
        for key, attr in attrs.items()
        if key != 'cardType' and data.get(key) is not None
    }
    if cls is PhotoCard and 'meta' in kwargs:
        kwargs['meta'] = {k: v for k, v in kwargs['meta'].items() if v is not None}
    return cls(**kwargs)


def card_to_dict(card: Card, fields: Optional[List[str]] = None) -> Dict[str, Any]:
    """Serialize a card, keeping only the given JSON fields.

    Unset (None) values are left out.

    Args:
        card: Card to serialize
        fields: JSON keys to keep. Defaults to every known key for the card type.

    Returns:
        Dictionary ready for json.dump
    """
    attrs = _attrs_for(card)
    keys = fields if fields is not None else list(attrs)

    result: Dict[str, Any] = {}
    for key in keys:
        value = getattr(card, attrs[key])
        if value is None:
            continue
        if key == 'meta':
            value = {k: v for k, v in value.items() if v is not None}
        elif key == 'sources':
            value = [dict(source) for source in value]
        result[key] = value
    return result


def to_local_dict(card: Card) -> Dict[str, Any]:
    """Serialize a card for the local ledger file."""
    return card_to_dict(card, LOCAL_FIELDS[PHOTO if is_photo(card) else TITLE])


def to_remote_dict(card: Card) -> Dict[str, Any]:
    """Serialize a card for an exported config."""
    return card_to_dict(card, REMOTE_FIELDS[PHOTO if is_photo(card) else TITLE])

"""Viewer state for an exported heap: theme, display states and navigation."""

import json
import logging
import random
from dataclasses import asdict, dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.error import HTTPError, URLError
from urllib.request import urlopen

from .cards import card_from_dict
from .errors import HeapImagesError
from .layout import MAX_BACKGROUND, SCREENSAVER, STORY, PlacedCard, ScreensaverFeed, story_mode_cards


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Theme:
    """Colors, scales and timings (in milliseconds) for a viewing mode."""

    base_background: str = '#7c5f44'
    drawer_background: str = 'rgba(180, 180, 180, 80%)'
    light_box_background: str = '#f8f8f8'
    background_image_border: str = '#af9e9b'
    drop_shadow: str = '#5f524f'
    active_scale: float = 1.8
    inactive_scale: float = 1 / 1.8
    transition_duration: int = 300
    fade_duration: int = 600


STORY_THEME = Theme()
SCREENSAVER_THEME = replace(STORY_THEME, transition_duration=1000, fade_duration=3000)

THEMES = {
    STORY: STORY_THEME,
    SCREENSAVER: SCREENSAVER_THEME,
}


def theme_for_mode(mode: str) -> Theme:
    return THEMES.get(mode, STORY_THEME)


class DisplayState(Enum):
    """How a card is shown relative to the active card."""

    ACTIVE = 'active'
    HIDDEN = 'hidden'
    BACKGROUND = 'background'
    BURIED = 'buried'

    @classmethod
    def calculate(cls, index: int, current_index: int) -> 'DisplayState':
        if index == current_index:
            return cls.ACTIVE
        if index < current_index:
            return cls.HIDDEN
        if index - current_index > MAX_BACKGROUND:
            return cls.BURIED
        return cls.BACKGROUND


def load_heap_config(source: Union[str, Path, Dict[str, Any]], timeout: float = 10) -> Dict[str, Any]:
    """Load an exported heap config.

    Args:
        source: The config itself, a file path, or an http(s) URL
        timeout: Seconds to wait when fetching a URL

    Returns:
        Exported config dictionary

    Raises:
        HeapImagesError: If the config cannot be fetched or parsed
    """
    if isinstance(source, dict):
        return source

    text = str(source)
    try:
        if text.startswith(('http://', 'https://')):
            logger.info("Fetching heap config from %s", text)
            with urlopen(text, timeout=timeout) as response:
                return json.loads(response.read().decode('utf-8'))
        with open(text, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (URLError, HTTPError, OSError) as e:
        raise HeapImagesError(f"Cannot load heap config {text}: {e}") from e
    except json.JSONDecodeError as e:
        raise HeapImagesError(f"Heap config {text} is not valid JSON: {e}") from e


class HeapView:
    """Cards of an exported heap laid out for a mode, plus the active card.

    The theme belongs to the view and is handed to whatever renders it;
    there is no shared current theme.
    """

    def __init__(self, config: Dict[str, Any], mode: str = STORY,
                 theme: Optional[Theme] = None, current_path: Optional[str] = None,
                 rng: Optional[random.Random] = None):
        """Initialize heap view.

        Args:
            config: Exported heap config
            mode: 'story' or 'screensaver'
            theme: Theme override, defaults to the theme for the mode
            current_path: Path of the card to start on
            rng: Random source for the layout
        """
        self.config = config
        self.mode = mode if mode in THEMES else STORY
        self.theme = theme if theme is not None else theme_for_mode(self.mode)

        cards = [card_from_dict(card) for card in config.get('cards') or []]
        self._feed: Optional[ScreensaverFeed] = None
        self._story: List[PlacedCard] = []
        if self.mode == SCREENSAVER:
            self._feed = ScreensaverFeed(cards, rng)
        else:
            self._story = story_mode_cards(cards, rng)

        self.current_path: Optional[str] = None
        self.go_to(current_path)

    @property
    def cards(self) -> List[PlacedCard]:
        return self._feed.cards if self._feed is not None else list(self._story)

    @property
    def current_index(self) -> int:
        return self.card_index(self.current_path)

    def card_index(self, path: Optional[str]) -> int:
        for index, card in enumerate(self.cards):
            if card.path == path:
                return index
        return -1

    def go_to(self, path: Optional[str]) -> Optional[str]:
        """Make a card active; unknown paths fall back to the first card."""
        cards = self.cards
        if not cards:
            self.current_path = None
        elif path is None or self.card_index(path) < 0:
            self.current_path = cards[0].path
        else:
            self.current_path = path
        if self._feed is not None and self.current_path is not None:
            self._feed.replenish(self.current_index)
        return self.current_path

    def first(self) -> Optional[str]:
        cards = self.cards
        return self.go_to(cards[0].path) if cards else None

    def back(self) -> Optional[str]:
        index = self.current_index
        if index <= 0:
            return self.current_path
        return self.go_to(self.cards[index - 1].path)

    def forward(self) -> Optional[str]:
        index = self.current_index
        cards = self.cards
        if index >= len(cards) - 1:
            return self.current_path
        return self.go_to(cards[index + 1].path)

    def last(self) -> Optional[str]:
        cards = self.cards
        return self.go_to(cards[-1].path) if cards else None

    def display_state(self, path: str) -> DisplayState:
        return DisplayState.calculate(self.card_index(path), self.current_index)

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot of the view for rendering or printing."""
        current_index = self.current_index
        return {
            **{key: value for key, value in self.config.items() if key != 'cards'},
            'mode': self.mode,
            'theme': asdict(self.theme),
            'currentPath': self.current_path,
            'cards': [
                {**card.to_dict(), 'displayState': DisplayState.calculate(index, current_index).value}
                for index, card in enumerate(self.cards)
            ],
        }

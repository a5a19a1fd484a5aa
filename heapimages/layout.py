"""Scatter layout for the stack-of-photos view.

Background cards are spread over normalized screen space
([-0.5, 0.5] on both axes) by cutting it into a grid of square buckets and
giving each card its own bucket. Within a bucket the offset is random, and
every card gets a rotation between MIN_ROTATION and MAX_ROTATION degrees in
either direction. The first card is the active one and always sits
unrotated at the origin.

Nothing here is seeded: each load gets a fresh arrangement. Pass a
``random.Random`` to get repeatable output.
"""

import math
import random
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterator, List, Optional, Sequence

from .cards import ORIGIN, Card, Placement, card_from_dict, card_to_dict, is_photo


# Keep this a perfect square so the bucket grid covers the whole screen.
MAX_BACKGROUND = 36

MIN_ROTATION = 20
MAX_ROTATION = 60

STORY = 'story'
SCREENSAVER = 'screensaver'
MODES = (STORY, SCREENSAVER)


@dataclass(frozen=True)
class Bucket:
    """A square cell of normalized screen space."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float


@dataclass(frozen=True)
class PlacedCard:
    """A card together with where it sits on screen."""

    card: Card
    placement: Placement

    @property
    def path(self) -> str:
        return self.card.path

    def to_dict(self) -> Dict[str, Any]:
        data = card_to_dict(self.card)
        data.update(self.placement.to_dict())
        return data


def bucket_count(num_cards: int) -> int:
    """Number of buckets needed for a card list; the first card needs none."""
    return max(min(num_cards - 1, MAX_BACKGROUND), 0)


def generate_buckets(num_buckets: int) -> Iterator[Bucket]:
    """Yield a floor(sqrt(n)) x floor(sqrt(n)) grid of buckets in row-major order.

    When num_buckets is not a perfect square fewer than num_buckets buckets
    are produced.
    """
    per_side = math.isqrt(num_buckets) if num_buckets > 0 else 0
    if per_side == 0:
        return
    length = 1 / per_side
    for row in range(per_side):
        for column in range(per_side):
            min_x = -0.5 + column * length
            min_y = -0.5 + row * length
            yield Bucket(min_x, min_x + length, min_y, min_y + length)


class BucketPool:
    """Buckets drawn at random without replacement.

    The pool starts empty. Drawing from an empty pool resets it, so a bucket
    can only be handed out again once every other bucket of the current
    cycle has been used.
    """

    def __init__(self, num_buckets: int, rng: Optional[random.Random] = None):
        """Initialize bucket pool.

        Args:
            num_buckets: Upper bound on the number of cards to place
            rng: Random source, defaults to the random module
        """
        self.num_buckets = num_buckets
        self._rng = rng if rng is not None else random
        self._available: List[Bucket] = []
        self.cycles = 0

    def __len__(self) -> int:
        return len(self._available)

    def reset(self) -> None:
        """Regenerate the full set of buckets."""
        self._available = list(generate_buckets(self.num_buckets))
        self.cycles += 1

    def draw(self) -> Bucket:
        if not self._available:
            self.reset()
        if not self._available:
            raise ValueError("Cannot draw from a pool without buckets")
        return self._available.pop(self._rng.randrange(len(self._available)))


def place_in_bucket(bucket: Bucket, rng: Optional[random.Random] = None) -> Placement:
    """Pick a random offset inside the bucket and a random tilt."""
    rng = rng if rng is not None else random
    rotation = rng.uniform(MIN_ROTATION, MAX_ROTATION)
    if rng.random() < 0.5:
        rotation = -rotation
    return Placement(
        offset_x=rng.uniform(bucket.min_x, bucket.max_x),
        offset_y=rng.uniform(bucket.min_y, bucket.max_y),
        rotation=rotation,
    )


def scatter(cards: Sequence[Card], rng: Optional[random.Random] = None) -> List[PlacedCard]:
    """Place cards in order, pinning the first one to the origin.

    Args:
        cards: Cards to place
        rng: Random source, defaults to the random module

    Returns:
        PlacedCard for every input card, in the same order
    """
    pool = BucketPool(bucket_count(len(cards)), rng)
    placed = []
    for index, card in enumerate(cards):
        if index == 0:
            placed.append(PlacedCard(card, ORIGIN))
        else:
            placed.append(PlacedCard(card, place_in_bucket(pool.draw(), rng)))
    return placed


def story_mode_cards(cards: Sequence[Card], rng: Optional[random.Random] = None) -> List[PlacedCard]:
    """Lay out every card in heap order."""
    return scatter(cards, rng)


def screensaver_mode_cards(cards: Sequence[Card], iteration: int = 0,
                           rng: Optional[random.Random] = None) -> List[PlacedCard]:
    """Lay out a shuffled batch of the photo cards.

    Title cards are dropped. Each card path gets ``-{iteration}`` appended so
    that repeated batches never share a path.
    """
    rng = rng if rng is not None else random
    shuffled = [card for card in cards if is_photo(card)]
    rng.shuffle(shuffled)
    return [
        PlacedCard(replace(placed.card, path=f"{placed.card.path}-{iteration}"), placed.placement)
        for placed in scatter(shuffled, rng)
    ]


class ScreensaverFeed:
    """An ever-growing screensaver card list.

    Batches are appended whenever fewer than MAX_BACKGROUND cards remain
    after the current one. Cards already handed out are never moved.
    """

    def __init__(self, cards: Sequence[Card], rng: Optional[random.Random] = None):
        self._photos = [card for card in cards if is_photo(card)]
        self._rng = rng
        self._cards: List[PlacedCard] = []
        self.iteration = 0
        self.replenish(0)

    @property
    def cards(self) -> List[PlacedCard]:
        return list(self._cards)

    def __len__(self) -> int:
        return len(self._cards)

    def replenish(self, current_index: int) -> int:
        """Append batches until the background behind current_index is full.

        Args:
            current_index: Index of the active card

        Returns:
            Number of batches added
        """
        added = 0
        while self._photos and len(self._cards) - current_index - 1 < MAX_BACKGROUND:
            self._cards.extend(screensaver_mode_cards(self._photos, self.iteration, self._rng))
            self.iteration += 1
            added += 1
        return added


def cards_for_mode(mode: str, cards: Sequence[Card],
                   rng: Optional[random.Random] = None) -> List[PlacedCard]:
    """Lay out cards for a viewing mode; unknown modes use story mode."""
    if mode == SCREENSAVER:
        return screensaver_mode_cards(cards, 0, rng)
    return story_mode_cards(cards, rng)


def process_config(config: Dict[str, Any], mode: str = STORY,
                   rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Return a copy of an exported config with placed cards.

    Args:
        config: Exported heap config
        mode: 'story' or 'screensaver'
        rng: Random source, defaults to the random module

    Returns:
        Config whose cards carry offsetX, offsetY and rotation
    """
    cards = [card_from_dict(card) for card in config.get('cards') or []]
    placed = cards_for_mode(mode, cards, rng)
    return {**config, 'cards': [card.to_dict() for card in placed]}

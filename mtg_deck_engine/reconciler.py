"""
Final size correction for an assembled deck.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Sequence

from .lands import distribute_basics
from .models import Card

logger = logging.getLogger(__name__)

# Categories trimmed first when a deck runs over
TRIM_ORDER = (
    'synergy', 'utility', 'creatures', 'cardDraw', 'ramp', 'singleRemoval', 'boardWipes'
)


def reconcile(
    categories: Mapping[str, Sequence[Card]],
    required: int,
    color_identity: Iterable[str]
) -> Dict[str, List[Card]]:
    """
    Bring the deck to exactly ``required`` non-commander cards.

    Excess cards come off the end of the first non-empty category in
    TRIM_ORDER; a shortfall is filled with basic lands. The input mapping is
    left untouched, and reconciling an exact deck returns an equal copy.

    Args:
        categories: Deck category -> cards
        required: Exact number of non-commander cards
        color_identity: Combined commander color identity

    Returns:
        New category mapping
    """
    result = {category: list(cards) for category, cards in categories.items()}
    total = sum(len(cards) for cards in result.values())

    if total > required:
        excess = total - required
        for category in TRIM_ORDER:
            cards = result.get(category)
            while cards and excess > 0:
                removed = cards.pop()
                excess -= 1
                logger.debug(f"Trimmed {removed.name} from {category}")
            if excess == 0:
                break
        if excess > 0:
            logger.warning(f"Deck still {excess} cards over size after trimming")

    elif total < required:
        basics = distribute_basics(required - total, color_identity)
        result.setdefault('lands', []).extend(basics)
        logger.info(f"Added {len(basics)} basic lands to reach {required} cards")

    return result

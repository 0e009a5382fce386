"""
Mana base generation.

Non-basic lands come from the recommendation pool first, then from a generic
card search; basics fill whatever is left, split evenly across the commander's
colors.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from .models import COLOR_ORDER, CandidateCard, Card
from .scryfall_service import ScryfallAPIError
from .selector import CurveAwareSelector, SelectionState, exceeds_price, fits_color_identity, record

# Basic land per color; Wastes stands in for a colorless identity
BASIC_LAND_TYPES: Dict[str, str] = {
    'W': 'Plains',
    'U': 'Island',
    'B': 'Swamp',
    'R': 'Mountain',
    'G': 'Forest',
    'C': 'Wastes',
}

BASIC_LAND_NAMES = frozenset([
    'Plains', 'Island', 'Swamp', 'Mountain', 'Forest',
    'Snow-Covered Plains', 'Snow-Covered Island', 'Snow-Covered Swamp',
    'Snow-Covered Mountain', 'Snow-Covered Forest',
    'Wastes',
])

COMMAND_TOWER = 'Command Tower'
COMMAND_TOWER_FORMAT = 99


def basic_land_card(name: str) -> Card:
    """
    Build the Card record for a basic land without a database lookup.

    Args:
        name: One of the BASIC_LAND_TYPES values

    Returns:
        Card for the basic land
    """
    color = next((c for c, land in BASIC_LAND_TYPES.items() if land == name), None)
    if color is None:
        raise ValueError(f"Not a basic land type: {name}")

    if color == 'C':
        return Card(
            name=name,
            type_line='Basic Land',
            oracle_text='{T}: Add {C}.',
        )
    return Card(
        name=name,
        type_line=f'Basic Land — {name}',
        oracle_text=f'({{T}}: Add {{{color}}}.)',
        color_identity=frozenset([color]),
    )


def distribute_basics(count: int, color_identity: Iterable[str]) -> List[Card]:
    """
    Split ``count`` basic lands across a color identity.

    Colors are visited in WUBRG order; each gets an equal share and any
    remainder goes to the earlier colors. A colorless identity gets Wastes.
    DeckGenerator rejects an empty identity before lands are built, so only
    direct callers of this function or of LandGenerator reach that case.

    Args:
        count: Number of basics to produce
        color_identity: Commander color identity

    Returns:
        Basic land cards, grouped by color
    """
    if count <= 0:
        return []

    identity = set(color_identity)
    colors = [c for c in COLOR_ORDER if c in identity] or ['C']

    per_color, remainder = divmod(count, len(colors))
    basics: List[Card] = []
    for index, color in enumerate(colors):
        share = per_color + (1 if index < remainder else 0)
        basics.extend([basic_land_card(BASIC_LAND_TYPES[color])] * share)
    return basics


def non_basic_land_query(color_identity: Iterable[str]) -> str:
    """Search query for on-color non-basic lands."""
    colors = [c for c in COLOR_ORDER if c in set(color_identity)]
    if not colors:
        return 't:land id:c -t:basic'
    produces = ' OR '.join(f'o:{{{c}}}' for c in colors)
    return f't:land ({produces}) -t:basic'


class LandGenerator:
    """Builds the land section of a deck."""

    def __init__(self, card_database, selector: Optional[CurveAwareSelector] = None):
        """
        Initialize the land generator.

        Args:
            card_database: Object with ``resolve`` and ``search``
            selector: Selector to reuse; one is created if omitted
        """
        self.card_database = card_database
        self.selector = selector or CurveAwareSelector(card_database)
        self.logger = logging.getLogger(__name__)

    def generate(
        self,
        candidates: Sequence[CandidateCard],
        color_identity: Iterable[str],
        total: int,
        non_basic_target: int,
        format_size: int,
        state: SelectionState
    ) -> List[Card]:
        """
        Generate exactly ``total`` lands where enough on-color lands exist.

        Args:
            candidates: Recommended lands, best first
            color_identity: Combined commander color identity
            total: Number of lands required
            non_basic_target: Number of non-basic lands wanted
            format_size: Deck format (40, 60 or 99)
            state: Run state shared with the rest of the generation

        Returns:
            Land cards, at most ``total`` of them
        """
        identity = frozenset(color_identity)
        if total <= 0:
            return []
        non_basic_target = max(0, min(non_basic_target, total))

        lands: List[Card] = []

        non_basic_candidates = [c for c in candidates if c.name not in BASIC_LAND_NAMES]
        if non_basic_target > 0 and non_basic_candidates:
            picked = self.selector.select(
                non_basic_candidates, non_basic_target, state, expected_type='land', use_curve=False
            )
            self.logger.info(f"Picked {len(picked)} non-basic lands from recommendations")
            lands.extend(picked)

        if len(lands) < non_basic_target:
            found = self._search_non_basics(identity, non_basic_target - len(lands), state)
            self.logger.info(f"Found {len(found)} additional non-basic lands by search")
            lands.extend(found)

        if format_size == COMMAND_TOWER_FORMAT and len(identity) >= 2 and state.is_available(COMMAND_TOWER):
            tower = self.selector.resolve(COMMAND_TOWER)
            if tower is not None and not exceeds_price(tower, state.max_card_price):
                lands.append(tower)
                record(tower, state, count_curve=False)

        basics_needed = max(0, total - len(lands))
        lands.extend(distribute_basics(basics_needed, identity))

        if len(lands) < total:
            self.logger.warning(f"Land shortfall: generated {len(lands)} of {total} lands")
        return lands[:total]

    def _search_non_basics(self, identity: frozenset, count: int, state: SelectionState) -> List[Card]:
        """Fill non-basic slots from a generic land search."""
        query = non_basic_land_query(identity)
        try:
            results = self.card_database.search(query, identity)
        except ScryfallAPIError as e:
            self.logger.error(f"Land search failed for query '{query}': {e}")
            return []

        found: List[Card] = []
        for card in results:
            if len(found) >= count:
                break
            if not state.is_available(card.name) or card.name in BASIC_LAND_NAMES:
                continue
            if not fits_color_identity(card, identity) or exceeds_price(card, state.max_card_price):
                continue
            found.append(card)
            record(card, state, count_curve=False)
        return found

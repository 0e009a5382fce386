"""
Summary statistics for a generated deck.
"""

from typing import Dict, Iterable, Mapping, Sequence

from .models import COLOR_ORDER, CURVE_BUCKETS, Card, DeckStats, GeneratedDeck, colored_pips

# First match wins, so creature lands count as creatures
TYPE_PRIORITY = (
    'Creature', 'Instant', 'Sorcery', 'Artifact', 'Enchantment', 'Land', 'Planeswalker', 'Battle'
)


def primary_type(type_line: str) -> str:
    line = type_line.lower()
    for type_name in TYPE_PRIORITY:
        if type_name.lower() in line:
            return type_name
    return 'Other'


def calculate_stats(categories: Mapping[str, Sequence[Card]]) -> DeckStats:
    """
    Compute deck statistics from assembled categories.

    Args:
        categories: Deck category -> cards

    Returns:
        DeckStats for every card in the categories
    """
    all_cards = [card for cards in categories.values() for card in cards]
    non_lands = [card for card in all_cards if not card.is_land]

    mana_curve: Dict[int, int] = {bucket: 0 for bucket in CURVE_BUCKETS}
    for card in non_lands:
        mana_curve[card.mana_value_bucket] += 1

    average_cmc = sum(card.cmc for card in non_lands) / len(non_lands) if non_lands else 0.0

    return DeckStats(
        total_cards=len(all_cards),
        average_cmc=round(average_cmc, 2),
        mana_curve=mana_curve,
        color_distribution=color_distribution(non_lands),
        type_distribution=type_distribution(all_cards),
    )


def color_distribution(cards: Iterable[Card]) -> Dict[str, int]:
    """Colored pip counts, with pip-less cards counted under 'C'."""
    distribution: Dict[str, int] = {color: 0 for color in COLOR_ORDER + ('C',)}
    for card in cards:
        pips = colored_pips(card.mana_cost)
        if not pips:
            distribution['C'] += 1
            continue
        for color, count in pips.items():
            distribution[color] += count
    return distribution


def type_distribution(cards: Iterable[Card]) -> Dict[str, int]:
    distribution: Dict[str, int] = {}
    for card in cards:
        type_name = primary_type(card.type_line)
        distribution[type_name] = distribution.get(type_name, 0) + 1
    return distribution


def calculate_stats_for_deck(deck: GeneratedDeck) -> DeckStats:
    """Recompute statistics for an existing deck."""
    return calculate_stats(deck.categories)

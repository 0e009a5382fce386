"""
Functional classification of selected spells and permanents.

Instants, sorceries, artifacts and enchantments have no one-to-one deck role,
so each card is matched against an ordered table of oracle-text predicates.
The first matching rule wins; an unmatched card is ``synergy``.
"""

import re
from typing import Callable, Dict, Iterable, List, MutableMapping, Tuple

from .models import Card

REMOVAL = 'removal'
BOARD_WIPE = 'boardWipe'
RAMP = 'ramp'
CARD_DRAW = 'cardDraw'
SYNERGY = 'synergy'

ROLES = (REMOVAL, BOARD_WIPE, RAMP, CARD_DRAW, SYNERGY)

ROLE_TO_CATEGORY: Dict[str, str] = {
    REMOVAL: 'singleRemoval',
    BOARD_WIPE: 'boardWipes',
    RAMP: 'ramp',
    CARD_DRAW: 'cardDraw',
    SYNERGY: 'synergy',
}

# (lowercased oracle text, source type) -> matches
Predicate = Callable[[str, str], bool]

_ADD_MANA_SYMBOL = re.compile(r'add \{[wubrgc]\}')


def is_board_wipe(text: str, source_type: str) -> bool:
    return (
        'destroy all' in text
        or 'exile all' in text
        or ('each creature' in text and 'damage' in text)
        or 'all creatures get -' in text
    )


def is_land_search(text: str, source_type: str) -> bool:
    # Sorceries only
    return source_type == 'sorcery' and 'search your library' in text and 'land' in text


def is_targeted_removal(text: str, source_type: str) -> bool:
    if any(phrase in text for phrase in ('destroy target', 'exile target', 'counter target', 'return target')):
        return True
    return 'deals' in text and 'damage to' in text


def draws_cards(text: str, source_type: str) -> bool:
    return 'draw' in text


def produces_mana(text: str, source_type: str) -> bool:
    return 'add' in text and ('mana' in text or _ADD_MANA_SYMBOL.search(text) is not None)


SPELL_RULES: Tuple[Tuple[Predicate, str], ...] = (
    (is_board_wipe, BOARD_WIPE),
    (is_land_search, RAMP),
    (is_targeted_removal, REMOVAL),
    (draws_cards, CARD_DRAW),
)

PERMANENT_RULES: Tuple[Tuple[Predicate, str], ...] = (
    (produces_mana, RAMP),
    (draws_cards, CARD_DRAW),
)

RULES_BY_TYPE: Dict[str, Tuple[Tuple[Predicate, str], ...]] = {
    'instant': SPELL_RULES,
    'sorcery': SPELL_RULES,
    'artifact': PERMANENT_RULES,
    'enchantment': PERMANENT_RULES,
}


def classify(card: Card, source_type: str) -> str:
    """
    Assign a functional role to a card.

    Args:
        card: Resolved card
        source_type: Engine type it was selected as ('instant', 'sorcery', ...)

    Returns:
        One of the ROLES; never raises
    """
    source = (source_type or '').lower()
    text = (card.oracle_text or '').lower()

    for predicate, role in RULES_BY_TYPE.get(source, ()):
        if predicate(text, source):
            return role
    return SYNERGY


def categorize(
    cards: Iterable[Card],
    source_type: str,
    categories: MutableMapping[str, List[Card]]
) -> Dict[str, int]:
    """
    Append each card to the deck category of its role.

    Returns:
        Count of cards placed per category
    """
    placed: Dict[str, int] = {}
    for card in cards:
        category = ROLE_TO_CATEGORY[classify(card, source_type)]
        categories.setdefault(category, []).append(card)
        placed[category] = placed.get(category, 0) + 1
    return placed

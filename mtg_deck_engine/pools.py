"""
Candidate pool construction and merging.

A type's usable candidates are its typed recommendation list followed by the
generic "popular/synergy" entries whose type is still unknown. Pools from
several theme pages merge per name, keeping the stronger entry, so the merge
is commutative, associative and idempotent.
"""

from functools import reduce
from typing import Dict, Iterable, Optional, Sequence, Tuple

from .models import CandidateCard, CardPool, sort_candidates

# Engine card type -> CardPool list holding its typed recommendations
POOL_KEYS: Dict[str, Optional[str]] = {
    'creature': 'creatures',
    'instant': 'instants',
    'sorcery': 'sorceries',
    'artifact': 'artifacts',
    'enchantment': 'enchantments',
    'planeswalker': 'planeswalkers',
    'battle': None,
    'land': 'lands',
}


def candidates_for_type(
    typed: Sequence[CandidateCard],
    all_non_land: Sequence[CandidateCard]
) -> Tuple[CandidateCard, ...]:
    """
    Build the ordered candidate list for one card type.

    Args:
        typed: The type-specific recommendation list
        all_non_land: The generic recommendation list

    Returns:
        Typed entries first, then unknown-type generic entries not already present
    """
    seen = {c.name for c in typed}
    extras = tuple(c for c in all_non_land if c.is_unknown_type and c.name not in seen)
    return tuple(typed) + extras


def candidates_from_pool(pool: CardPool, card_type: str) -> Tuple[CandidateCard, ...]:
    """Candidate list for ``card_type`` drawn from a pool."""
    list_name = POOL_KEYS.get(card_type)
    typed = getattr(pool, list_name) if list_name else ()
    if card_type == 'land':
        return tuple(typed)
    return candidates_for_type(typed, pool.all_non_land)


def _rank(candidate: CandidateCard) -> tuple:
    """Total order used to pick between two entries for the same name."""
    return (
        candidate.inclusion,
        candidate.synergy if candidate.synergy is not None else float('-inf'),
        not candidate.is_unknown_type,
        candidate.is_game_changer,
        candidate.num_decks,
        candidate.primary_type,
    )


def merge_candidate_lists(*lists: Iterable[CandidateCard]) -> Tuple[CandidateCard, ...]:
    """Merge candidate lists, keeping the higher-inclusion entry for each name."""
    best: Dict[str, CandidateCard] = {}
    for candidates in lists:
        for candidate in candidates:
            existing = best.get(candidate.name)
            if existing is None or _rank(candidate) > _rank(existing):
                best[candidate.name] = candidate
    return sort_candidates(best.values())


def merge_pools(first: CardPool, second: CardPool) -> CardPool:
    """Merge two pools list by list."""
    return CardPool(**{
        list_name: merge_candidate_lists(getattr(first, list_name), getattr(second, list_name))
        for list_name in CardPool.LIST_NAMES
    })


def merge_pool_list(pools: Iterable[CardPool]) -> CardPool:
    """Merge any number of pools; an empty input yields an empty pool."""
    return reduce(merge_pools, pools, CardPool.empty())

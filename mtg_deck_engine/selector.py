"""
Curve-aware candidate selection.

Selection interleaves I/O (resolving a candidate through the card database)
with accept/reject rules. The rules live in the pure ``decide`` function so
they can be tested without any network plumbing; ``CurveAwareSelector`` only
walks the candidates, resolves them, and records accepted cards.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set

from .models import CandidateCard, Card, card_name_key
from .scryfall_service import ScryfallAPIError

logger = logging.getLogger(__name__)

CURVE_TOLERANCE_RATIO = 0.1
INCLUSION_BYPASS_THRESHOLD = 40


class Decision(Enum):
    """Outcome of evaluating one resolved candidate."""
    ACCEPT = 'accept'
    USED = 'already used'
    BANNED = 'banned'
    WRONG_TYPE = 'wrong type'
    OFF_COLOR = 'outside color identity'
    OVER_PRICE = 'over price cap'
    GAME_CHANGER_CAP = 'game changer limit reached'
    CURVE_SATURATED = 'curve bucket saturated'

    @property
    def accepted(self) -> bool:
        return self is Decision.ACCEPT


@dataclass
class SelectionState:
    """Mutable state owned by a single generation run."""
    color_identity: FrozenSet[str]
    curve_targets: Mapping[int, int] = field(default_factory=dict)
    banned: FrozenSet[str] = frozenset()
    used_names: Set[str] = field(default_factory=set)
    curve_counts: Dict[int, int] = field(default_factory=dict)
    max_card_price: Optional[float] = None
    game_changer_limit: Optional[int] = None
    game_changers_used: int = 0

    def is_banned(self, name: str) -> bool:
        key = card_name_key(name)
        return any(card_name_key(banned) == key for banned in self.banned)

    def is_available(self, name: str) -> bool:
        return name not in self.used_names and not self.is_banned(name)


def tolerance(target: int) -> int:
    """Soft curve tolerance: 10% of the bucket target, at least one card."""
    return max(1, math.ceil(CURVE_TOLERANCE_RATIO * target))


def fits_color_identity(card: Card, color_identity: Iterable[str]) -> bool:
    return card.color_identity <= frozenset(color_identity)


def matches_expected_type(type_line: str, expected_type: str) -> bool:
    """
    Check a resolved type line against the engine type being filled.

    Artifact and enchantment creatures count as creatures only.
    """
    line = type_line.lower()
    expected = expected_type.lower()

    if expected in ('artifact', 'enchantment'):
        return expected in line and 'creature' not in line
    if expected in ('creature', 'instant', 'sorcery', 'planeswalker', 'battle', 'land'):
        return expected in line
    return False


def exceeds_price(card: Card, max_price: Optional[float]) -> bool:
    if max_price is None or card.price_usd is None:
        return False
    return card.price_usd > max_price


def decide(
    candidate: CandidateCard,
    card: Card,
    state: SelectionState,
    expected_type: Optional[str] = None,
    use_curve: bool = True
) -> Decision:
    """
    Decide whether a resolved candidate joins the deck.

    Pure: reads ``state`` but never modifies it.

    Args:
        candidate: The recommendation entry being considered
        card: The candidate resolved from the card database
        state: Current run state
        expected_type: Engine type being filled, if any
        use_curve: Apply soft curve enforcement (False for lands)

    Returns:
        Decision.ACCEPT or the first rule that rejects the card
    """
    if candidate.name in state.used_names or card.name in state.used_names:
        return Decision.USED
    if state.is_banned(candidate.name) or state.is_banned(card.name):
        return Decision.BANNED

    if expected_type and candidate.is_unknown_type:
        if not matches_expected_type(card.type_line, expected_type):
            return Decision.WRONG_TYPE

    if not fits_color_identity(card, state.color_identity):
        return Decision.OFF_COLOR

    if exceeds_price(card, state.max_card_price):
        return Decision.OVER_PRICE

    is_game_changer = candidate.is_game_changer or card.is_game_changer
    if (is_game_changer and state.game_changer_limit is not None
            and state.game_changers_used >= state.game_changer_limit):
        return Decision.GAME_CHANGER_CAP

    if use_curve:
        bucket = card.mana_value_bucket
        target = state.curve_targets.get(bucket, 0)
        count = state.curve_counts.get(bucket, 0)
        if count >= target + tolerance(target) and candidate.inclusion < INCLUSION_BYPASS_THRESHOLD:
            return Decision.CURVE_SATURATED

    return Decision.ACCEPT


def record(card: Card, state: SelectionState, is_game_changer: bool = False, count_curve: bool = True) -> None:
    """Mark an accepted card as used and update the running counts."""
    state.used_names.add(card.name)
    if count_curve and not card.is_land:
        bucket = card.mana_value_bucket
        state.curve_counts[bucket] = state.curve_counts.get(bucket, 0) + 1
    if is_game_changer or card.is_game_changer:
        state.game_changers_used += 1


class CurveAwareSelector:
    """Greedy selector that resolves candidates in priority order."""

    def __init__(self, card_database):
        """
        Initialize the selector.

        Args:
            card_database: Object with ``resolve(name) -> Optional[Card]``
        """
        self.card_database = card_database
        self.logger = logging.getLogger(__name__)

    def resolve(self, name: str) -> Optional[Card]:
        """Resolve a name, treating lookup failures as "not found"."""
        try:
            card = self.card_database.resolve(name)
        except ScryfallAPIError as e:
            self.logger.warning(f"Failed to resolve '{name}': {e}")
            return None
        if card is None:
            self.logger.warning(f"Card not found in card database: {name}")
        return card

    def select(
        self,
        candidates: Iterable[CandidateCard],
        target: int,
        state: SelectionState,
        expected_type: Optional[str] = None,
        use_curve: bool = True
    ) -> List[Card]:
        """
        Accept up to ``target`` candidates in order.

        A shortfall is returned as-is; topping up is the caller's job.

        Args:
            candidates: Ordered candidate list, best first
            target: Maximum number of cards to accept
            state: Run state, updated for every accepted card
            expected_type: Engine type being filled, if any
            use_curve: Apply soft curve enforcement

        Returns:
            Accepted cards, at most ``target`` of them
        """
        accepted: List[Card] = []
        if target <= 0:
            return accepted

        for candidate in candidates:
            if len(accepted) >= target:
                break

            # Skip before resolving so used or banned names cost no request
            if not state.is_available(candidate.name):
                continue

            card = self.resolve(candidate.name)
            if card is None:
                continue

            decision = decide(candidate, card, state, expected_type, use_curve)
            if not decision.accepted:
                self.logger.debug(f"Skipping {candidate.name}: {decision.value}")
                continue

            accepted.append(card)
            record(card, state, candidate.is_game_changer, count_curve=use_curve)
            state.used_names.add(candidate.name)

        if len(accepted) < target:
            self.logger.info(
                f"Selected {len(accepted)}/{target} {expected_type or 'cards'} from recommendations"
            )
        return accepted

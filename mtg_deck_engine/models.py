"""
Data models for the MTG Commander Deck Engine.

This module contains the core data structures shared by the services and the
composition engine: resolved cards, recommendation candidates, candidate pools,
aggregated commander statistics, allocation targets, user customization and
the generated deck itself.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple


# Engine card types in their fixed tie-break order
CARD_TYPES: Tuple[str, ...] = (
    'creature', 'instant', 'sorcery', 'artifact', 'enchantment', 'planeswalker', 'battle'
)

# Functional deck categories in display order
DECK_CATEGORIES: Tuple[str, ...] = (
    'lands', 'ramp', 'cardDraw', 'singleRemoval', 'boardWipes', 'creatures', 'synergy', 'utility'
)

CURVE_BUCKETS: Tuple[int, ...] = tuple(range(8))
MAX_CURVE_BUCKET = 7

COLOR_ORDER: Tuple[str, ...] = ('W', 'U', 'B', 'R', 'G')

UNKNOWN_TYPE = 'Unknown'

# Format size -> (default land count, minimum lands, maximum lands)
FORMAT_LAND_RANGES: Dict[int, Tuple[int, int, int]] = {
    40: (16, 14, 18),
    60: (23, 19, 27),
    99: (37, 32, 42),
}

BUDGET_OPTIONS: Tuple[str, ...] = ('budget', 'expensive')


def card_name_key(name: str) -> str:
    """Case-insensitive lookup key for a card name; double-faced cards match on the front face."""
    return name.split(' // ')[0].strip().casefold()


def mana_value_bucket(cmc: float) -> int:
    """Bucket a mana value into 0..7, where 7 stands for 7+."""
    return max(0, min(math.floor(cmc), MAX_CURVE_BUCKET))


@dataclass(frozen=True)
class Card:
    """A card resolved from the card database. Immutable once created."""
    name: str
    cmc: float = 0.0
    type_line: str = ""
    oracle_text: str = ""
    color_identity: FrozenSet[str] = frozenset()
    price_usd: Optional[float] = None
    mana_cost: str = ""
    colors: Tuple[str, ...] = ()
    is_game_changer: bool = False

    @classmethod
    def from_scryfall_data(cls, data: Dict[str, Any]) -> 'Card':
        """
        Create a Card from a Scryfall card object.

        Double-faced cards keep their rules text and mana costs on each face,
        so both are joined across faces when the top-level field is missing.

        Args:
            data: Raw card JSON from Scryfall

        Returns:
            Card instance
        """
        faces = data.get('card_faces') or []

        oracle_text = data.get('oracle_text')
        if not oracle_text and faces:
            oracle_text = "\n\n".join(f.get('oracle_text', '') for f in faces if f.get('oracle_text'))

        mana_cost = data.get('mana_cost')
        if not mana_cost and faces:
            mana_cost = " // ".join(f.get('mana_cost', '') for f in faces if f.get('mana_cost'))

        colors = data.get('colors')
        if colors is None and faces:
            colors = sorted({c for f in faces for c in f.get('colors', [])})

        return cls(
            name=data.get('name', ''),
            cmc=float(data.get('cmc', 0) or 0),
            type_line=data.get('type_line', '') or '',
            oracle_text=oracle_text or '',
            color_identity=frozenset(data.get('color_identity', []) or []),
            price_usd=_parse_price((data.get('prices') or {}).get('usd')),
            mana_cost=mana_cost or '',
            colors=tuple(colors or ()),
            is_game_changer=bool(data.get('game_changer', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'name': self.name,
            'cmc': self.cmc,
            'type_line': self.type_line,
            'oracle_text': self.oracle_text,
            'color_identity': sorted(self.color_identity, key=_color_sort_key),
            'price_usd': self.price_usd,
            'mana_cost': self.mana_cost,
            'colors': list(self.colors),
            'is_game_changer': self.is_game_changer,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Card':
        """Create Card from dictionary."""
        return cls(
            name=data.get('name', ''),
            cmc=float(data.get('cmc', 0) or 0),
            type_line=data.get('type_line', ''),
            oracle_text=data.get('oracle_text', ''),
            color_identity=frozenset(data.get('color_identity', [])),
            price_usd=data.get('price_usd'),
            mana_cost=data.get('mana_cost', ''),
            colors=tuple(data.get('colors', [])),
            is_game_changer=bool(data.get('is_game_changer', False)),
        )

    @property
    def is_land(self) -> bool:
        return 'land' in self.type_line.lower()

    @property
    def is_basic_land(self) -> bool:
        return 'basic' in self.type_line.lower() and self.is_land

    @property
    def mana_value_bucket(self) -> int:
        return mana_value_bucket(self.cmc)


def _parse_price(value: Any) -> Optional[float]:
    if value in (None, ''):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _color_sort_key(color: str) -> int:
    return COLOR_ORDER.index(color) if color in COLOR_ORDER else len(COLOR_ORDER)


@dataclass(frozen=True)
class CandidateCard:
    """A card suggestion from the recommendation service, not yet resolved."""
    name: str
    primary_type: str = UNKNOWN_TYPE
    inclusion: float = 0.0
    synergy: Optional[float] = None
    num_decks: int = 0
    is_game_changer: bool = False

    def __post_init__(self):
        """Clamp inclusion rate into 0-100."""
        object.__setattr__(self, 'inclusion', max(0.0, min(100.0, float(self.inclusion))))

    @property
    def is_unknown_type(self) -> bool:
        return self.primary_type == UNKNOWN_TYPE


def sort_candidates(candidates) -> Tuple[CandidateCard, ...]:
    """Order candidates by inclusion rate, highest first, ties by name."""
    return tuple(sorted(candidates, key=lambda c: (-c.inclusion, c.name)))


@dataclass(frozen=True)
class CardPool:
    """Per-type recommendation lists for one commander (or theme) page."""
    creatures: Tuple[CandidateCard, ...] = ()
    instants: Tuple[CandidateCard, ...] = ()
    sorceries: Tuple[CandidateCard, ...] = ()
    artifacts: Tuple[CandidateCard, ...] = ()
    enchantments: Tuple[CandidateCard, ...] = ()
    planeswalkers: Tuple[CandidateCard, ...] = ()
    lands: Tuple[CandidateCard, ...] = ()
    all_non_land: Tuple[CandidateCard, ...] = ()

    LIST_NAMES = (
        'creatures', 'instants', 'sorceries', 'artifacts',
        'enchantments', 'planeswalkers', 'lands', 'all_non_land'
    )

    def __post_init__(self):
        """Freeze and sort every list."""
        for list_name in self.LIST_NAMES:
            object.__setattr__(self, list_name, sort_candidates(getattr(self, list_name)))

    @classmethod
    def empty(cls) -> 'CardPool':
        return cls()

    @property
    def has_non_land(self) -> bool:
        return len(self.all_non_land) > 0

    @property
    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in self.LIST_NAMES)


@dataclass(frozen=True)
class CommanderStats:
    """Aggregated deck statistics published for a commander page."""
    type_histogram: Mapping[str, int] = field(default_factory=dict)
    curve_histogram: Mapping[int, int] = field(default_factory=dict)
    land_distribution: Mapping[str, int] = field(default_factory=dict)
    sample_size: int = 0
    avg_price: float = 0.0
    deck_size: int = 81

    @property
    def non_basic_land_average(self) -> Optional[int]:
        """Average non-basic land count, if the service reported one."""
        value = self.land_distribution.get('nonbasic')
        return int(value) if value is not None else None


@dataclass(frozen=True)
class Theme:
    """A commander sub-theme published by the recommendation service."""
    name: str
    slug: str
    count: int = 0
    popularity_percent: float = 0.0


@dataclass(frozen=True)
class CommanderData:
    """Everything one recommendation page yields."""
    stats: Optional[CommanderStats]
    pool: CardPool
    themes: Tuple[Theme, ...] = ()


@dataclass(frozen=True)
class TargetProfile:
    """Per-type and per-curve-bucket count targets for one generation run."""
    land_count: int
    non_basic_land_count: int
    type_targets: Mapping[str, int]
    curve_targets: Mapping[int, int]
    used_stats: bool = False

    @property
    def non_land_count(self) -> int:
        return sum(self.type_targets.values())


@dataclass(frozen=True)
class Customization:
    """User-supplied constraints. Read-only to the engine."""
    format_size: int = 99
    land_count: int = 37
    non_basic_land_count: int = 15
    banned_cards: FrozenSet[str] = frozenset()
    must_include: FrozenSet[str] = frozenset()
    max_card_price: Optional[float] = None
    budget: Optional[str] = None
    bracket: Optional[int] = None
    game_changer_limit: Optional[int] = None

    def __post_init__(self):
        """Validate format and option values; clamp land count into range."""
        if self.format_size not in FORMAT_LAND_RANGES:
            raise ValueError(
                f"Unsupported format size {self.format_size}, expected one of {sorted(FORMAT_LAND_RANGES)}"
            )
        if self.budget is not None and self.budget not in BUDGET_OPTIONS:
            raise ValueError(f"Unknown budget option: {self.budget}")
        if self.bracket is not None and self.bracket not in range(1, 6):
            raise ValueError(f"Bracket must be between 1 and 5, got {self.bracket}")

        _, min_lands, max_lands = FORMAT_LAND_RANGES[self.format_size]
        object.__setattr__(self, 'land_count', max(min_lands, min(max_lands, int(self.land_count))))
        object.__setattr__(self, 'non_basic_land_count', max(0, int(self.non_basic_land_count)))
        object.__setattr__(self, 'banned_cards', frozenset(self.banned_cards))
        object.__setattr__(self, 'must_include', frozenset(self.must_include))

    @classmethod
    def for_format(cls, format_size: int, **kwargs) -> 'Customization':
        """Build a customization using the format's default land count."""
        if format_size in FORMAT_LAND_RANGES:
            kwargs.setdefault('land_count', FORMAT_LAND_RANGES[format_size][0])
        return cls(format_size=format_size, **kwargs)


@dataclass(frozen=True)
class DeckStats:
    """Summary statistics derived from a generated deck."""
    total_cards: int = 0
    average_cmc: float = 0.0
    mana_curve: Mapping[int, int] = field(default_factory=dict)
    color_distribution: Mapping[str, int] = field(default_factory=dict)
    type_distribution: Mapping[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_cards': self.total_cards,
            'average_cmc': self.average_cmc,
            'mana_curve': {str(k): v for k, v in self.mana_curve.items()},
            'color_distribution': dict(self.color_distribution),
            'type_distribution': dict(self.type_distribution),
        }


@dataclass(frozen=True)
class GeneratedDeck:
    """The result of one generation run."""
    commander: Card
    partner_commander: Optional[Card]
    categories: Mapping[str, Tuple[Card, ...]]
    stats: DeckStats
    used_themes: Tuple[str, ...] = ()

    @property
    def commander_count(self) -> int:
        return 2 if self.partner_commander else 1

    @property
    def commanders(self) -> List[Card]:
        return [c for c in (self.commander, self.partner_commander) if c is not None]

    @property
    def all_cards(self) -> List[Card]:
        """Every non-commander card, in category display order."""
        return [card for category in DECK_CATEGORIES for card in self.categories.get(category, ())]

    @property
    def card_count(self) -> int:
        return len(self.all_cards)

    @property
    def color_identity(self) -> FrozenSet[str]:
        identity = set()
        for commander in self.commanders:
            identity |= commander.color_identity
        return frozenset(identity)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON export."""
        return {
            'commander': self.commander.name,
            'partner_commander': self.partner_commander.name if self.partner_commander else None,
            'color_identity': sorted(self.color_identity, key=_color_sort_key),
            'categories': {
                category: [card.name for card in self.categories.get(category, ())]
                for category in DECK_CATEGORIES
            },
            'stats': self.stats.to_dict(),
            'used_themes': list(self.used_themes),
        }


_HYBRID_SYMBOL = re.compile(r'\{([^}]*)\}')


def colored_pips(mana_cost: str) -> Dict[str, int]:
    """
    Count colored mana symbols in a mana cost string.

    Hybrid and phyrexian symbols count once for each color they name.

    Args:
        mana_cost: Scryfall mana cost, e.g. "{2}{W/U}{B}"

    Returns:
        Mapping of color letter to symbol count
    """
    pips: Dict[str, int] = {}
    for symbol in _HYBRID_SYMBOL.findall(mana_cost or ''):
        for color in COLOR_ORDER:
            if color in symbol.upper().split('/'):
                pips[color] = pips.get(color, 0) + 1
    return pips

"""
In-memory stand-ins for the card database and recommendation service.

The generator and selector only need ``resolve``/``search`` and the
``fetch_*`` methods, so these fakes record calls and answer from dicts.
"""

from typing import Dict, Iterable, List, Optional

from mtg_deck_engine.edhrec_service import EDHRECAPIError
from mtg_deck_engine.models import CandidateCard, Card, CardPool, CommanderData, Theme


def make_card(
    name: str,
    cmc: float = 2,
    type_line: str = "Creature — Elf",
    oracle_text: str = "",
    identity: str = "G",
    price: Optional[float] = None,
    mana_cost: str = "",
    game_changer: bool = False
) -> Card:
    return Card(
        name=name,
        cmc=cmc,
        type_line=type_line,
        oracle_text=oracle_text,
        color_identity=frozenset(identity),
        price_usd=price,
        mana_cost=mana_cost,
        colors=tuple(identity),
        is_game_changer=game_changer,
    )


def make_candidate(name: str, inclusion: float = 50, primary_type: str = "Unknown", **kwargs) -> CandidateCard:
    return CandidateCard(name=name, primary_type=primary_type, inclusion=inclusion, **kwargs)


class FakeCardDatabase:
    """Card database answering from a name -> Card dict and a query -> results dict."""

    def __init__(self, cards: Iterable[Card] = (), search_results: Optional[Dict[str, List[Card]]] = None):
        self.cards = {card.name: card for card in cards}
        self.search_results = search_results or {}
        self.resolved: List[str] = []
        self.searches: List[str] = []
        self.errors: Dict[str, Exception] = {}

    def add(self, *cards: Card) -> None:
        for card in cards:
            self.cards[card.name] = card

    def resolve(self, name: str) -> Optional[Card]:
        self.resolved.append(name)
        if name in self.errors:
            raise self.errors[name]
        return self.cards.get(name)

    def search(self, query: str, color_identity, order: str = 'edhrec', page: int = 1) -> List[Card]:
        self.searches.append(query)
        return list(self.search_results.get(query, []))


class FakeRecommendations:
    """Recommendation service serving pages keyed by theme slug (None for the base page)."""

    def __init__(self, pages: Optional[Dict[Optional[str], CommanderData]] = None, themes: Iterable[Theme] = ()):
        self.pages = pages or {}
        self.themes = list(themes)
        self.calls: List[tuple] = []
        self.partner_calls: List[tuple] = []

    def _page(self, theme: Optional[str]) -> CommanderData:
        page = self.pages.get(theme)
        if page is None:
            raise EDHRECAPIError(f"No page for theme {theme}")
        return page

    def fetch_commander_data(self, commander, theme=None, bracket=None, budget=None) -> CommanderData:
        self.calls.append((commander, theme, bracket, budget))
        return self._page(theme)

    def fetch_partner_data(self, commander, partner, theme=None, bracket=None, budget=None) -> CommanderData:
        self.partner_calls.append((commander, partner, theme, bracket, budget))
        return self._page(theme)

    def fetch_themes(self, commander) -> List[Theme]:
        return list(self.themes)


TYPE_LINES = {
    'Creature': 'Creature — Elf Druid',
    'Instant': 'Instant',
    'Sorcery': 'Sorcery',
    'Artifact': 'Artifact',
    'Enchantment': 'Enchantment',
    'Planeswalker': 'Legendary Planeswalker — Nissa',
    'Land': 'Land',
}

POOL_ATTRIBUTES = {
    'Creature': 'creatures',
    'Instant': 'instants',
    'Sorcery': 'sorceries',
    'Artifact': 'artifacts',
    'Enchantment': 'enchantments',
    'Planeswalker': 'planeswalkers',
    'Land': 'lands',
}


def build_pool(database: FakeCardDatabase, per_type: int = 40, identity: str = "G", extra: Optional[Dict[str, List[CandidateCard]]] = None) -> CardPool:
    """
    Build a pool with ``per_type`` typed candidates for every type, each
    resolvable through ``database``. Mana values cycle through 1-6.
    """
    lists: Dict[str, List[CandidateCard]] = {name: [] for name in CardPool.LIST_NAMES}
    for primary_type, attribute in POOL_ATTRIBUTES.items():
        for i in range(per_type):
            name = f"{primary_type} {i}"
            is_land = primary_type == 'Land'
            database.add(make_card(
                name,
                cmc=0 if is_land else (i % 6) + 1,
                type_line=TYPE_LINES[primary_type],
                identity="" if is_land else identity,
                mana_cost="" if is_land else f"{{{i % 3}}}{{{identity or 'C'}}}",
            ))
            candidate = make_candidate(name, inclusion=90 - i, primary_type=primary_type)
            lists[attribute].append(candidate)
            if not is_land:
                lists['all_non_land'].append(candidate)

    for attribute, candidates in (extra or {}).items():
        lists[attribute].extend(candidates)

    return CardPool(**lists)

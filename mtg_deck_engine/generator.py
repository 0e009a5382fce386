"""
Core deck generation engine for Commander decks.

This module orchestrates a full generation run: fetching recommendation data,
allocating targets, selecting cards type by type, building the mana base,
correcting the final size and computing statistics.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .classifier import categorize
from .cache import TTLCache
from .edhrec_service import EDHRECAPIError, EDHRECService
from .lands import BASIC_LAND_NAMES, LandGenerator
from .models import (
    CARD_TYPES, DECK_CATEGORIES, CandidateCard, Card, CardPool, CommanderStats,
    Customization, GeneratedDeck, TargetProfile
)
from .pools import candidates_from_pool, merge_pool_list
from .reconciler import reconcile
from .scryfall_service import ScryfallAPIError, ScryfallService
from .selector import CurveAwareSelector, SelectionState, decide, fits_color_identity, record
from .stats import calculate_stats
from .targets import allocate_targets, correct_into_largest, format_slots, round_half_up

ProgressCallback = Callable[[str, int], None]

# Types whose cards are sorted into roles by oracle text
CLASSIFIED_TYPES = ('instant', 'sorcery', 'artifact', 'enchantment')

# Fallback composition when no recommendations exist, keyed by format
FALLBACK_COMPOSITION: Dict[int, Dict[str, int]] = {
    99: {'ramp': 10, 'cardDraw': 10, 'singleRemoval': 8, 'boardWipes': 3,
         'creatures': 25, 'synergy': 30, 'utility': 3},
    60: {'ramp': 4, 'cardDraw': 4, 'singleRemoval': 5, 'boardWipes': 2,
         'creatures': 15, 'synergy': 6, 'utility': 0},
    40: {'ramp': 2, 'cardDraw': 2, 'singleRemoval': 3, 'boardWipes': 1,
         'creatures': 11, 'synergy': 4, 'utility': 0},
}

FALLBACK_QUERIES: Tuple[Tuple[str, str], ...] = (
    ('ramp', '(t:artifact o:"add" OR o:"search your library" o:land t:sorcery cmc<=3)'),
    ('cardDraw', 'o:"draw" (t:instant OR t:sorcery OR t:enchantment)'),
    ('singleRemoval', '(o:"destroy target" OR o:"exile target") (t:instant OR t:sorcery)'),
    ('boardWipes', '(o:"destroy all" OR o:"exile all") (t:instant OR t:sorcery)'),
    ('creatures', 't:creature'),
    ('synergy', '(t:artifact OR t:enchantment)'),
    ('utility', '(t:planeswalker OR t:battle)'),
)

SHORTAGE_QUERY = '(t:artifact OR t:enchantment OR t:creature)'


class GenerationError(Exception):
    """Raised when a deck cannot be generated at all."""
    pass


def scaled_fallback_composition(format_size: int, non_land_count: int) -> Dict[str, int]:
    """
    Scale the format's fallback composition to the non-land slot count.

    Args:
        format_size: Deck format (40, 60 or 99)
        non_land_count: Number of non-land cards to fill

    Returns:
        Category -> count, summing to ``non_land_count``
    """
    base = FALLBACK_COMPOSITION.get(format_size, FALLBACK_COMPOSITION[99])
    base_total = sum(base.values())
    if non_land_count <= 0 or base_total == 0:
        return {category: 0 for category in base}

    scaled = {
        category: round_half_up(count * non_land_count / base_total)
        for category, count in base.items()
    }
    return correct_into_largest(scaled, non_land_count, base.keys())


class DeckGenerator:
    """Main deck generation engine."""

    def __init__(self, card_database, recommendations):
        """
        Initialize the generator.

        Args:
            card_database: Card database with ``resolve`` and ``search`` (ScryfallService)
            recommendations: Recommendation service (EDHRECService)
        """
        self.card_database = card_database
        self.recommendations = recommendations
        self.selector = CurveAwareSelector(card_database)
        self.land_generator = LandGenerator(card_database, self.selector)
        self.logger = logging.getLogger(__name__)

    def generate(
        self,
        commander: Card,
        partner_commander: Optional[Card],
        color_identity: Iterable[str],
        customization: Optional[Customization] = None,
        selected_theme_slugs: Sequence[str] = (),
        progress_callback: Optional[ProgressCallback] = None
    ) -> GeneratedDeck:
        """
        Generate a complete deck for a commander.

        Args:
            commander: Resolved commander card
            partner_commander: Resolved partner commander, if any
            color_identity: Combined color identity of the commander(s)
            customization: User constraints; format defaults when omitted
            selected_theme_slugs: Theme pages to draw recommendations from
            progress_callback: Called with (message, percent) between steps

        Returns:
            GeneratedDeck with exactly format_size - commander_count cards
            whenever enough legal cards exist

        Raises:
            GenerationError: If no commander is given or the color identity is empty
        """
        if commander is None:
            raise GenerationError("A commander is required to generate a deck")

        customization = customization or Customization()
        progress = _ProgressReporter(progress_callback)
        identity = frozenset(color_identity)
        report = {'fallback_strategies_used': [], 'search_fills': 0}

        self.logger.info(f"Starting deck generation for commander: {commander.name}")
        progress('Shuffling the library...', 5)

        state = SelectionState(
            color_identity=identity,
            banned=customization.banned_cards,
            max_card_price=customization.max_card_price,
            game_changer_limit=customization.game_changer_limit,
        )
        for card in (commander, partner_commander):
            if card is not None:
                state.used_names.add(card.name)

        # Step 1: recommendation data
        progress('Consulting the recommendation service...', 8)
        stats, pool, used_themes = self._fetch_recommendations(
            commander, partner_commander, customization, selected_theme_slugs, report
        )
        progress('Recommendation data gathered', 12)

        # Step 2: targets
        required = format_slots(customization.format_size, partner_commander is not None)
        targets = allocate_targets(
            required, customization.land_count, stats, customization.non_basic_land_count
        )
        if not targets.used_stats:
            report['fallback_strategies_used'].append('heuristic targets')
        state.curve_targets = dict(targets.curve_targets)
        self.logger.info(
            f"Targets: {targets.land_count} lands ({targets.non_basic_land_count} non-basic), "
            f"{targets.non_land_count} non-lands"
        )

        if not identity:
            raise GenerationError(
                f"Cannot select cards for {commander.name}: combined color identity is empty"
            )

        categories: Dict[str, List[Card]] = {category: [] for category in DECK_CATEGORIES}
        remaining_types = dict(targets.type_targets)

        # Step 3: must-include cards
        if customization.must_include:
            progress('Adding must-include cards...', 15)
            self._add_must_include(customization.must_include, state, categories, remaining_types)

        # Step 4: non-land selection
        if pool.has_non_land:
            self._select_from_pool(pool, remaining_types, state, categories, progress, report)
        else:
            self.logger.warning("No recommendation pool available, using card search fallback")
            report['fallback_strategies_used'].append('search-only composition')
            self._fill_from_search_only(
                customization.format_size, targets, state, categories, progress, report
            )

        # Step 5: lands
        progress('Surveying the mana base...', 78)
        land_total = max(0, targets.land_count - len(categories['lands']))
        categories['lands'].extend(self.land_generator.generate(
            candidates_from_pool(pool, 'land'),
            identity,
            land_total,
            targets.non_basic_land_count,
            customization.format_size,
            state,
        ))

        # Step 6: shortage fill, then exact size
        progress('Balancing the deck...', 92)
        shortage = required - _count(categories)
        if shortage > 0:
            self._fill_shortage(pool, shortage, state, categories, report)

        categories = reconcile(categories, required, identity)
        final_count = _count(categories)
        if final_count != required:
            self.logger.warning(f"Final deck size mismatch: got {final_count}, expected {required}")

        # Step 7: stats
        progress('Calculating statistics...', 96)
        deck = GeneratedDeck(
            commander=commander,
            partner_commander=partner_commander,
            categories={category: tuple(categories.get(category, ())) for category in DECK_CATEGORIES},
            stats=calculate_stats(categories),
            used_themes=tuple(used_themes),
        )

        report.update({'target_size': required, 'actual_size': deck.card_count})
        self._log_generation_decisions(deck, report)

        progress('Deck complete!', 100)
        return deck

    def _fetch_recommendations(
        self,
        commander: Card,
        partner: Optional[Card],
        customization: Customization,
        theme_slugs: Sequence[str],
        report: Dict
    ) -> Tuple[Optional[CommanderStats], CardPool, List[str]]:
        """
        Fetch stats and pools, falling back from themes to the base page.

        Stats and pools are kept independently: a page with no usable stats
        still contributes its pool, and vice versa.

        Returns:
            (stats or None, merged pool, names of themes actually used)
        """
        stats: Optional[CommanderStats] = None
        pools: List[CardPool] = []
        used_slugs: List[str] = []

        for slug in theme_slugs:
            try:
                data = self._fetch_page(commander, partner, customization, slug)
            except EDHRECAPIError as e:
                self.logger.error(f"Failed to fetch theme '{slug}': {e}")
                continue
            used_slugs.append(slug)
            pools.append(data.pool)
            if stats is None and _has_stats(data.stats):
                stats = data.stats

        if theme_slugs and not used_slugs:
            report['fallback_strategies_used'].append('base commander page (themes unavailable)')

        if not used_slugs:
            try:
                data = self._fetch_page(commander, partner, customization, None)
                pools.append(data.pool)
                if _has_stats(data.stats):
                    stats = data.stats
            except EDHRECAPIError as e:
                self.logger.error(f"Failed to fetch recommendations for {commander.name}: {e}")
                report['fallback_strategies_used'].append('no recommendation data')

        pool = merge_pool_list(pools)
        if stats is None:
            self.logger.warning("Aggregated statistics unavailable")
        if pool.is_empty:
            self.logger.warning("Recommendation card lists unavailable")

        return stats, pool, self._theme_names(commander, used_slugs)

    def _fetch_page(self, commander: Card, partner: Optional[Card], customization: Customization, theme: Optional[str]):
        if partner is not None:
            return self.recommendations.fetch_partner_data(
                commander.name, partner.name, theme, customization.bracket, customization.budget
            )
        return self.recommendations.fetch_commander_data(
            commander.name, theme, customization.bracket, customization.budget
        )

    def _theme_names(self, commander: Card, slugs: Sequence[str]) -> List[str]:
        """Map theme slugs to display names, keeping the slug when unknown."""
        if not slugs:
            return []
        try:
            names = {theme.slug: theme.name for theme in self.recommendations.fetch_themes(commander.name)}
        except EDHRECAPIError as e:
            self.logger.debug(f"Could not look up theme names: {e}")
            names = {}
        return [names.get(slug, slug) for slug in slugs]

    def _add_must_include(
        self,
        names: Iterable[str],
        state: SelectionState,
        categories: Dict[str, List[Card]],
        remaining_types: Dict[str, int]
    ) -> None:
        """Place user-required cards before any recommendation is considered."""
        for name in sorted(names):
            if not state.is_available(name):
                self.logger.warning(f"Must-include card '{name}' is banned or already used")
                continue

            card = self.selector.resolve(name)
            if card is None:
                continue
            if not state.is_available(card.name):
                self.logger.warning(f"Must-include card '{card.name}' is banned or already used")
                continue
            if not fits_color_identity(card, state.color_identity):
                self.logger.warning(f"Must-include card '{name}' is outside the color identity")
                continue

            card_type = _engine_type(card.type_line)
            if card_type == 'land':
                categories['lands'].append(card)
                record(card, state, count_curve=False)
                continue

            if card_type == 'creature':
                categories['creatures'].append(card)
            elif card_type in CLASSIFIED_TYPES:
                categorize([card], card_type, categories)
            else:
                categories['utility'].append(card)

            if card_type in remaining_types:
                remaining_types[card_type] = max(0, remaining_types[card_type] - 1)
            record(card, state)
            self.logger.info(f"Added must-include card: {card.name}")

    def _select_from_pool(
        self,
        pool: CardPool,
        remaining_types: Dict[str, int],
        state: SelectionState,
        categories: Dict[str, List[Card]],
        progress: '_ProgressReporter',
        report: Dict
    ) -> None:
        """Select non-land cards type by type from the recommendation pool."""
        step_percents = dict(zip(CARD_TYPES, (35, 45, 55, 62, 68, 72, 75)))

        for card_type in CARD_TYPES:
            target = remaining_types.get(card_type, 0)
            if target <= 0:
                continue

            progress(f"Selecting {card_type} cards...", step_percents[card_type])
            candidates = candidates_from_pool(pool, card_type)
            selected = self.selector.select(candidates, target, state, expected_type=card_type)

            if len(selected) < target:
                found = self._search_fill(f't:{card_type}', target - len(selected), state, count_curve=True)
                if found:
                    report['search_fills'] += len(found)
                    report['fallback_strategies_used'].append(f'{card_type} search top-up ({len(found)})')
                selected.extend(found)

            self.logger.info(f"Selected {len(selected)}/{target} {card_type} cards")

            if card_type == 'creature':
                categories['creatures'].extend(selected)
            elif card_type in CLASSIFIED_TYPES:
                categorize(selected, card_type, categories)
            else:
                categories['utility'].extend(selected)

    def _fill_from_search_only(
        self,
        format_size: int,
        targets: TargetProfile,
        state: SelectionState,
        categories: Dict[str, List[Card]],
        progress: '_ProgressReporter',
        report: Dict
    ) -> None:
        """Fill functional categories from card searches alone."""
        non_land_needed = max(0, targets.non_land_count - _count(categories, exclude=('lands',)))
        composition = scaled_fallback_composition(format_size, non_land_needed)

        percents = (20, 30, 40, 50, 60, 70, 75)
        for (category, query), percent in zip(FALLBACK_QUERIES, percents):
            count = composition.get(category, 0)
            if count <= 0:
                continue
            progress(f"Searching for {category} cards...", percent)
            found = self._search_fill(query, count, state, count_curve=True)
            report['search_fills'] += len(found)
            categories[category].extend(found)
            self.logger.info(f"Found {len(found)}/{count} {category} cards by search")

    def _fill_shortage(
        self,
        pool: CardPool,
        shortage: int,
        state: SelectionState,
        categories: Dict[str, List[Card]],
        report: Dict
    ) -> None:
        """Top up a short deck from leftover recommendations, then from search."""
        self.logger.info(f"Deck is {shortage} cards short, filling from remaining recommendations")

        if pool.has_non_land:
            leftovers = [c for c in pool.all_non_land if state.is_available(c.name)]
            filled = self.selector.select(leftovers, shortage, state, use_curve=False)
            categories['synergy'].extend(filled)
            shortage -= len(filled)

        if shortage > 0:
            found = self._search_fill(SHORTAGE_QUERY, shortage, state, count_curve=False)
            if found:
                report['fallback_strategies_used'].append(f'shortage search fill ({len(found)})')
                report['search_fills'] += len(found)
            categories['synergy'].extend(found)

    def _search_fill(self, query: str, count: int, state: SelectionState, count_curve: bool) -> List[Card]:
        """
        Accept up to ``count`` cards from a generic search.

        Search results are checked with the same rules as recommendations,
        minus curve enforcement. Search failures count as no results.
        """
        if count <= 0:
            return []

        try:
            results = self.card_database.search(query, state.color_identity)
        except ScryfallAPIError as e:
            self.logger.error(f"Search fallback failed for query '{query}': {e}")
            return []

        found: List[Card] = []
        for card in results:
            if len(found) >= count:
                break
            if card.name in BASIC_LAND_NAMES:
                continue
            candidate = CandidateCard(name=card.name, is_game_changer=card.is_game_changer)
            decision = decide(candidate, card, state, use_curve=False)
            if not decision.accepted:
                self.logger.debug(f"Skipping search result {card.name}: {decision.value}")
                continue
            found.append(card)
            record(card, state, count_curve=count_curve)
        return found

    def _log_generation_decisions(self, deck: GeneratedDeck, report: Dict) -> None:
        """
        Log detailed information about deck generation decisions.

        Args:
            deck: Generated deck
            report: Generation report with statistics
        """
        self.logger.info("=== Deck Generation Report ===")
        self.logger.info(f"Commander: {deck.commander.name}")
        if deck.partner_commander:
            self.logger.info(f"Partner: {deck.partner_commander.name}")
        self.logger.info(f"Target deck size: {report['target_size']} cards")
        self.logger.info(f"Actual deck size: {report['actual_size']} cards")
        self.logger.info(f"Cards added by search: {report['search_fills']}")

        if deck.used_themes:
            self.logger.info(f"Themes: {', '.join(deck.used_themes)}")

        if report['fallback_strategies_used']:
            self.logger.info("Fallback strategies used:")
            for strategy in report['fallback_strategies_used']:
                self.logger.info(f"  - {strategy}")

        self.logger.info("Card categories filled:")
        for category in DECK_CATEGORIES:
            self.logger.info(f"  - {category}: {len(deck.categories.get(category, ()))} cards")


class _ProgressReporter:
    """Forwards progress to a callback, never letting the percentage go backwards."""

    def __init__(self, callback: Optional[ProgressCallback]):
        self.callback = callback
        self.percent = 0

    def __call__(self, message: str, percent: int) -> None:
        self.percent = max(self.percent, min(100, percent))
        if self.callback is not None:
            self.callback(message, self.percent)


def _has_stats(stats: Optional[CommanderStats]) -> bool:
    return stats is not None and stats.sample_size > 0


def _engine_type(type_line: str) -> str:
    """Engine type of a card; creature wins over artifact and enchantment."""
    line = type_line.lower()
    if 'land' in line and 'creature' not in line:
        return 'land'
    for card_type in CARD_TYPES:
        if card_type in line:
            return card_type
    return 'other'


def _count(categories: Dict[str, List[Card]], exclude: Sequence[str] = ()) -> int:
    return sum(len(cards) for category, cards in categories.items() if category not in exclude)


def generate(
    commander: Card,
    partner_commander: Optional[Card],
    color_identity: Iterable[str],
    customization: Optional[Customization] = None,
    selected_theme_slugs: Sequence[str] = (),
    progress_callback: Optional[ProgressCallback] = None,
    card_database=None,
    recommendations=None
) -> GeneratedDeck:
    """
    Generate a deck with default services.

    A ScryfallService and an EDHRECService sharing one in-memory TTL cache are
    created unless provided.
    """
    if card_database is None or recommendations is None:
        cache = TTLCache()
        card_database = card_database or ScryfallService(cache=cache)
        recommendations = recommendations or EDHRECService(cache=cache)

    generator = DeckGenerator(card_database, recommendations)
    return generator.generate(
        commander, partner_commander, color_identity, customization,
        selected_theme_slugs, progress_callback
    )

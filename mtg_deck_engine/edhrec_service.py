"""EDHREC service module for fetching commander statistics and card lists."""

import logging
import re
import time
from typing import Any, Dict, List, Optional, Tuple

import requests

from .models import (
    CandidateCard, CardPool, CommanderData, CommanderStats, Theme, UNKNOWN_TYPE
)
from .pools import merge_pools
from .throttle import EDHREC_GATE, ThrottleGate


class EDHRECAPIError(Exception):
    """Raised when EDHREC API calls fail."""
    pass


BRACKET_SLUGS: Dict[int, str] = {
    1: 'exhibition',
    2: 'core',
    3: 'upgraded',
    4: 'optimized',
    5: 'cedh',
}

# EDHREC cardlist tag -> (CardPool list, primary type)
TYPED_TAGS: Dict[str, Tuple[str, str]] = {
    'creatures': ('creatures', 'Creature'),
    'instants': ('instants', 'Instant'),
    'sorceries': ('sorceries', 'Sorcery'),
    'utilityartifacts': ('artifacts', 'Artifact'),
    'manaartifacts': ('artifacts', 'Artifact'),
    'enchantments': ('enchantments', 'Enchantment'),
    'planeswalkers': ('planeswalkers', 'Planeswalker'),
    'utilitylands': ('lands', 'Land'),
    'lands': ('lands', 'Land'),
}

# Generic lists whose cards carry no type information
GENERIC_TAGS = frozenset({'newcards', 'highsynergycards', 'topcards', 'gamechangers'})

STAT_TYPES = ('creature', 'instant', 'sorcery', 'artifact', 'enchantment', 'land', 'planeswalker', 'battle')


def format_commander_slug(name: str) -> str:
    """
    Format a commander name the way EDHREC builds its page URLs.

    "Atraxa, Praetors' Voice" -> "atraxa-praetors-voice". Double-faced cards
    use only the front face name.
    """
    front_face = name.split(' // ')[0]
    slug = front_face.lower()
    slug = re.sub(r"[',]", '', slug)
    slug = re.sub(r'\s+', '-', slug)
    slug = re.sub(r'-+', '-', slug)
    return re.sub(r'[^a-z0-9-]', '', slug)


def bracket_suffix(bracket: Optional[int]) -> str:
    if not bracket:
        return ''
    if bracket not in BRACKET_SLUGS:
        raise ValueError(f"Unknown bracket level: {bracket}")
    return f"/{BRACKET_SLUGS[bracket]}"


def budget_suffix(budget: Optional[str]) -> str:
    if budget == 'budget':
        return '/budget'
    if budget == 'expensive':
        return '/expensive'
    return ''


def commander_page_path(
    slug: str,
    theme: Optional[str] = None,
    bracket: Optional[int] = None,
    budget: Optional[str] = None
) -> str:
    """Build the JSON page path for a commander, theme, bracket and budget."""
    theme_part = f"/{theme}" if theme else ''
    return f"/pages/commanders/{slug}{bracket_suffix(bracket)}{theme_part}{budget_suffix(budget)}.json"


def _number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def parse_stats(payload: Dict[str, Any]) -> CommanderStats:
    """Parse the top-level statistics fields of a commander page."""
    curve: Dict[int, int] = {}
    for key, value in (payload.get('mana_curve') or {}).items():
        try:
            cmc = int(key)
        except (TypeError, ValueError):
            continue
        if _number(value) > 0:
            curve[cmc] = int(_number(value))

    land_distribution = {
        'basic': int(_number(payload.get('basic'))),
        'total': int(_number(payload.get('land'))),
    }
    # A published average of zero non-basics is data; a missing field is not
    if payload.get('nonbasic') is not None:
        land_distribution['nonbasic'] = int(_number(payload.get('nonbasic')))

    return CommanderStats(
        type_histogram={t: int(_number(payload.get(t))) for t in STAT_TYPES},
        curve_histogram=curve,
        land_distribution=land_distribution,
        sample_size=int(_number(payload.get('num_decks_avg'))),
        avg_price=_number(payload.get('avg_price')),
        deck_size=int(_number(payload.get('deck_size'))) or 81,
    )


def parse_candidate(raw: Dict[str, Any], tag: str) -> CandidateCard:
    """Parse one cardview; EDHREC reports inclusion as a deck count."""
    potential_decks = _number(raw.get('potential_decks')) or 1
    inclusion = _number(raw.get('inclusion')) / potential_decks * 100
    typed = TYPED_TAGS.get(tag)

    synergy = raw.get('synergy')
    return CandidateCard(
        name=raw['name'],
        primary_type=typed[1] if typed else UNKNOWN_TYPE,
        inclusion=inclusion,
        synergy=float(synergy) if synergy is not None else None,
        num_decks=int(_number(raw.get('num_decks'))),
        is_game_changer=tag == 'gamechangers',
    )


def parse_card_lists(payload: Dict[str, Any]) -> CardPool:
    """
    Parse the cardlists of a commander page into a CardPool.

    A card listed under several tags keeps the first entry seen unless a
    later one has a strictly higher inclusion rate.
    """
    raw_lists = ((payload.get('container') or {}).get('json_dict') or {}).get('cardlists') or []
    best: Dict[str, Tuple[Optional[str], CandidateCard]] = {}

    for card_list in raw_lists:
        tag = str(card_list.get('tag', '')).lower()
        if tag not in TYPED_TAGS and tag not in GENERIC_TAGS:
            continue

        list_name = TYPED_TAGS[tag][0] if tag in TYPED_TAGS else None
        for raw in card_list.get('cardviews') or []:
            if not raw.get('name'):
                continue
            candidate = parse_candidate(raw, tag)
            existing = best.get(candidate.name)
            if existing is not None and existing[1].inclusion >= candidate.inclusion:
                continue
            best[candidate.name] = (list_name, candidate)

    lists: Dict[str, List[CandidateCard]] = {name: [] for name in CardPool.LIST_NAMES}
    for list_name, candidate in best.values():
        if list_name is not None:
            lists[list_name].append(candidate)
        if list_name != 'lands':
            lists['all_non_land'].append(candidate)

    return CardPool(**lists)


def parse_themes(payload: Dict[str, Any]) -> List[Theme]:
    """Parse sub-themes from the page's taglinks panel, most popular first."""
    taglinks = (payload.get('panels') or {}).get('taglinks') or []
    total = sum(int(_number(t.get('count'))) for t in taglinks)

    themes = [
        Theme(
            name=t.get('value', ''),
            slug=t.get('slug', ''),
            count=int(_number(t.get('count'))),
            popularity_percent=(int(_number(t.get('count'))) / total * 100) if total > 0 else 0.0,
        )
        for t in taglinks if t.get('slug')
    ]
    return sorted(themes, key=lambda t: -t.count)


def parse_commander_data(payload: Dict[str, Any]) -> CommanderData:
    return CommanderData(
        stats=parse_stats(payload),
        pool=parse_card_lists(payload),
        themes=tuple(parse_themes(payload)),
    )


class EDHRECService:
    """Service for interacting with EDHREC's JSON commander pages."""

    BASE_URL = "https://json.edhrec.com"
    RATE_LIMIT_BACKOFF = 2.0  # seconds before the single retry

    def __init__(
        self,
        cache=None,
        session: Optional[requests.Session] = None,
        gate: Optional[ThrottleGate] = None,
        timeout: float = 15,
        sleep=time.sleep
    ):
        """
        Initialize EDHREC service.

        Args:
            cache: Optional cache object with get/set (see mtg_deck_engine.cache)
            session: Optional requests session, mainly for tests
            gate: Throttle gate; defaults to the process-wide EDHREC gate
            timeout: Request timeout in seconds
            sleep: Sleep function used for the rate-limit backoff
        """
        self.logger = logging.getLogger(__name__)
        self.cache = cache
        self.gate = gate or EDHREC_GATE
        self.timeout = timeout
        self._sleep = sleep

        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': 'MTG-Deck-Engine/0.2.0',
            'Accept': 'application/json',
        })

    def fetch_commander_data(
        self,
        commander: str,
        theme: Optional[str] = None,
        bracket: Optional[int] = None,
        budget: Optional[str] = None
    ) -> CommanderData:
        """
        Fetch and parse one commander (or commander theme) page.

        Args:
            commander: Commander card name
            theme: Optional theme slug
            bracket: Optional power bracket 1-5
            budget: Optional budget tier ('budget' or 'expensive')

        Returns:
            Parsed statistics, card pool and themes

        Raises:
            EDHRECAPIError: If the page cannot be fetched or parsed
        """
        return self._fetch_page(format_commander_slug(commander), theme, bracket, budget)

    def fetch_stats(
        self,
        commander: str,
        bracket: Optional[int] = None,
        budget: Optional[str] = None
    ) -> CommanderStats:
        """Fetch the aggregated statistics for a commander."""
        return self.fetch_commander_data(commander, bracket=bracket, budget=budget).stats

    def fetch_card_lists(
        self,
        commander: str,
        theme: Optional[str] = None,
        bracket: Optional[int] = None,
        budget: Optional[str] = None
    ) -> CardPool:
        """Fetch the per-type recommendation lists for a commander or theme."""
        return self.fetch_commander_data(commander, theme, bracket, budget).pool

    def fetch_themes(self, commander: str) -> List[Theme]:
        """Fetch the sub-themes published for a commander."""
        return list(self.fetch_commander_data(commander).themes)

    def fetch_partner_data(
        self,
        commander: str,
        partner: str,
        theme: Optional[str] = None,
        bracket: Optional[int] = None,
        budget: Optional[str] = None
    ) -> CommanderData:
        """
        Fetch data for a partner pairing.

        EDHREC does not always order partner slugs alphabetically, so both
        orderings are tried. Without a combined page, the two commanders'
        individual pools are merged and the first commander's stats are kept.

        Raises:
            EDHRECAPIError: If no data is available for either commander
        """
        slug_a = format_commander_slug(commander)
        slug_b = format_commander_slug(partner)

        for slug in (f"{slug_a}-{slug_b}", f"{slug_b}-{slug_a}"):
            try:
                data = self._fetch_page(slug, theme, bracket, budget)
                self.logger.info(f"Found partner page for {slug}")
                return data
            except EDHRECAPIError as e:
                self.logger.debug(f"No partner page at {slug}: {e}")

        self.logger.info("No partner page found, merging individual commander data")

        results = []
        for name in (commander, partner):
            try:
                results.append(self.fetch_commander_data(name, theme, bracket, budget))
            except EDHRECAPIError as e:
                self.logger.warning(f"Could not fetch EDHREC data for {name}: {e}")

        if not results:
            raise EDHRECAPIError(f"Failed to fetch EDHREC data for both {commander} and {partner}")

        if len(results) == 1:
            return results[0]

        first, second = results
        return CommanderData(
            stats=first.stats,
            pool=merge_pools(first.pool, second.pool),
            themes=first.themes,
        )

    def _fetch_page(
        self,
        slug: str,
        theme: Optional[str],
        bracket: Optional[int],
        budget: Optional[str]
    ) -> CommanderData:
        path = commander_page_path(slug, theme, bracket, budget)

        payload = self.cache.get(path) if self.cache is not None else None
        if payload is not None:
            self.logger.debug(f"Using cached EDHREC page {path}")
        else:
            payload = self._request(path)
            if self.cache is not None:
                self.cache.set(path, payload)

        try:
            return parse_commander_data(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise EDHRECAPIError(f"Malformed EDHREC response for {path}: {e}")

    def _request(self, path: str, retry_on_rate_limit: bool = True) -> Dict[str, Any]:
        """
        Perform one throttled GET request against EDHREC.

        Raises:
            EDHRECAPIError: On any failure, including a redirect payload
        """
        self.gate.wait()
        url = f"{self.BASE_URL}{path}"
        self.logger.debug(f"Fetching EDHREC page: {url}")

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise EDHRECAPIError(f"Network error: {e}")

        if response.status_code == 429:
            if retry_on_rate_limit:
                self.logger.warning(f"Rate limited by EDHREC, retrying in {self.RATE_LIMIT_BACKOFF:.1f}s")
                self._sleep(self.RATE_LIMIT_BACKOFF)
                return self._request(path, retry_on_rate_limit=False)
            raise EDHRECAPIError("Rate limited by EDHREC after retry")

        if response.status_code != 200:
            raise EDHRECAPIError(f"EDHREC API error: {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise EDHRECAPIError(f"Invalid JSON response: {e}")

        if not isinstance(payload, dict):
            raise EDHRECAPIError("Unexpected EDHREC response shape")

        # Wrong partner orderings answer with a redirect instead of data
        if payload.get('redirect'):
            raise EDHRECAPIError(f"EDHREC redirect to {payload['redirect']}")

        return payload

"""
Scryfall API service for resolving and searching card data.

This module implements the card database collaborator used by the deck
engine: exact-name resolution and Commander-legal searches filtered by color
identity. Requests go through the process-wide throttle gate, rate-limit
responses are retried once, and resolved cards are kept in an injected cache.
"""

import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import requests

from .models import COLOR_ORDER, Card
from .throttle import SCRYFALL_GATE, ThrottleGate


class ScryfallAPIError(Exception):
    """Raised when Scryfall API calls fail."""
    pass


def build_search_query(query: str, color_identity: Iterable[str]) -> str:
    """
    Build a full Scryfall search string.

    The user query is wrapped in parentheses so the color filter applies to
    every OR clause, and results are limited to Commander-legal cards.

    Args:
        query: Scryfall search syntax, e.g. 't:creature'
        color_identity: Colors the results must fit within

    Returns:
        Complete search string
    """
    colors = "".join(c for c in COLOR_ORDER if c in set(color_identity))
    color_filter = f"id<={colors}" if colors else ""
    return f"{color_filter} ({query}) f:commander".strip()


class ScryfallService:
    """Service for interacting with the Scryfall API."""

    BASE_URL = "https://api.scryfall.com"
    RATE_LIMIT_BACKOFF = 1.0  # seconds before the single retry

    def __init__(
        self,
        cache=None,
        session: Optional[requests.Session] = None,
        gate: Optional[ThrottleGate] = None,
        timeout: float = 15,
        sleep=time.sleep
    ):
        """
        Initialize Scryfall service.

        Args:
            cache: Optional cache object with get/set (see mtg_deck_engine.cache)
            session: Optional requests session, mainly for tests
            gate: Throttle gate; defaults to the process-wide Scryfall gate
            timeout: Request timeout in seconds
            sleep: Sleep function used for the rate-limit backoff
        """
        self.logger = logging.getLogger(__name__)
        self.cache = cache
        self.gate = gate or SCRYFALL_GATE
        self.timeout = timeout
        self._sleep = sleep

        # Session for connection pooling
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': 'MTG-Deck-Engine/0.2.0',
            'Accept': 'application/json',
        })

    def resolve(self, name: str) -> Optional[Card]:
        """
        Resolve a card by exact name.

        Args:
            name: Exact card name

        Returns:
            Card if found, None if Scryfall has no such card

        Raises:
            ScryfallAPIError: On network errors, server errors or repeated rate limiting
        """
        cache_key = f"scryfall_named_{name.strip().lower()}"
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                self.logger.debug(f"Cache hit for card: {name}")
                return Card.from_dict(cached)

        data = self._request('/cards/named', {'exact': name})
        if data is None:
            self.logger.debug(f"Card not found on Scryfall: {name}")
            return None

        card = Card.from_scryfall_data(data)
        if self.cache is not None:
            self.cache.set(cache_key, card.to_dict())
        return card

    def search(
        self,
        query: str,
        color_identity: Iterable[str],
        order: str = 'edhrec',
        page: int = 1
    ) -> List[Card]:
        """
        Search Commander-legal cards within a color identity.

        Args:
            query: Scryfall search syntax
            color_identity: Colors the results must fit within
            order: Scryfall sort order
            page: Result page number

        Returns:
            One page of matching cards; empty if nothing matches

        Raises:
            ScryfallAPIError: On network errors, server errors or repeated rate limiting
        """
        full_query = build_search_query(query, color_identity)
        self.logger.debug(f"Searching Scryfall: {full_query}")

        data = self._request('/cards/search', {'q': full_query, 'order': order, 'page': page})
        if data is None:
            return []

        return [Card.from_scryfall_data(item) for item in data.get('data', [])]

    def _request(self, endpoint: str, params: Dict[str, Any], retry_on_rate_limit: bool = True) -> Optional[Dict[str, Any]]:
        """
        Perform one throttled GET request.

        Returns:
            Decoded JSON, or None on 404

        Raises:
            ScryfallAPIError: For any other failure
        """
        self.gate.wait()
        url = f"{self.BASE_URL}{endpoint}"

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout:
            raise ScryfallAPIError("Request timeout")
        except requests.ConnectionError as e:
            raise ScryfallAPIError(f"Connection error: {e}")
        except requests.RequestException as e:
            raise ScryfallAPIError(f"Network error: {e}")

        if response.status_code == 429:
            if retry_on_rate_limit:
                self.logger.warning(f"Rate limited by Scryfall, retrying in {self.RATE_LIMIT_BACKOFF:.1f}s")
                self._sleep(self.RATE_LIMIT_BACKOFF)
                return self._request(endpoint, params, retry_on_rate_limit=False)
            raise ScryfallAPIError("Rate limited by Scryfall after retry")

        if response.status_code == 404:
            return None

        if response.status_code != 200:
            raise ScryfallAPIError(f"API request failed with status {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise ScryfallAPIError(f"Invalid JSON response: {e}")

"""MTG Commander Deck Engine

Builds exact-size, format-legal Commander decks from EDHREC popularity
statistics and Scryfall card data.
"""

__version__ = "0.2.0"
__author__ = "MTG Deck Engine"
__description__ = "Generate curve and type balanced Commander decks from EDHREC data"

"""
Commander and partner legality checks.

A card can lead a deck if it is a legendary creature, says it can be your
commander, or is one of the planeswalkers printed as commanders before that
wording existed. A second commander is only allowed when both cards share a
pairing mechanic: Partner, Partner with, Friends forever, or Choose a
Background together with a Background.
"""

import logging
import re
from typing import Optional

from .models import Card

logger = logging.getLogger(__name__)

# Planeswalkers from Commander 2014 that predate "can be your commander"
COMMANDER_PLANESWALKERS = frozenset([
    "freyalise, llanowar's fury",
    'nahiri, the lithomancer',
    'ob nixilis of the black oath',
    'teferi, temporal archmage',
    'daretti, scrap savant',
])

PARTNER_NONE = 'none'
PARTNER = 'partner'
PARTNER_WITH = 'partner-with'
FRIENDS_FOREVER = 'friends-forever'
CHOOSE_BACKGROUND = 'choose-background'
BACKGROUND = 'background'

_PARTNER_WITH_PATTERN = re.compile(r'Partner with ([A-Z][^(\n]+)')
_PARTNER_KEYWORD_PATTERN = re.compile(r'^Partner\b(?! with)', re.MULTILINE)


class CommanderValidationError(Exception):
    """Raised when a card cannot be a commander or two commanders cannot pair."""
    pass


def is_legal_commander(card: Card) -> bool:
    """
    Check if a card can be a commander.

    Args:
        card: Resolved card

    Returns:
        True if the card can be a commander
    """
    type_line = card.type_line.lower()
    oracle_text = card.oracle_text.lower()

    if 'legendary' in type_line and 'creature' in type_line:
        return True

    if 'can be your commander' in oracle_text:
        return True

    if 'planeswalker' in type_line and card.name.lower() in COMMANDER_PLANESWALKERS:
        return True

    logger.debug(f"'{card.name}' is not a legal commander")
    return False


def partner_type(card: Card) -> str:
    """Classify the pairing mechanic a card carries, if any."""
    if 'Background' in card.type_line:
        return BACKGROUND
    if 'Choose a Background' in card.oracle_text:
        return CHOOSE_BACKGROUND
    if 'Friends forever' in card.oracle_text:
        return FRIENDS_FOREVER
    if _PARTNER_WITH_PATTERN.search(card.oracle_text):
        return PARTNER_WITH
    if _PARTNER_KEYWORD_PATTERN.search(card.oracle_text):
        return PARTNER
    return PARTNER_NONE


def partner_with_name(card: Card) -> Optional[str]:
    """Name of the specific partner a "Partner with" card names."""
    match = _PARTNER_WITH_PATTERN.search(card.oracle_text)
    return match.group(1).strip() if match else None


def are_valid_partners(first: Card, second: Card) -> bool:
    """
    Check whether two cards may be played together as commanders.

    Args:
        first: Primary commander
        second: Partner commander

    Returns:
        True if the pair shares a pairing mechanic
    """
    if first.name == second.name:
        return False

    first_type = partner_type(first)
    second_type = partner_type(second)

    if first_type == PARTNER_WITH:
        return partner_with_name(first) == second.name
    if second_type == PARTNER_WITH:
        return partner_with_name(second) == first.name

    if first_type == second_type and first_type in (PARTNER, FRIENDS_FOREVER):
        return True

    return {first_type, second_type} == {CHOOSE_BACKGROUND, BACKGROUND}


def validate_commanders(commander: Card, partner: Optional[Card] = None) -> None:
    """
    Validate a commander and optional partner.

    Raises:
        CommanderValidationError: If either card cannot lead the deck or the
            pair cannot be played together
    """
    if not is_legal_commander(commander):
        raise CommanderValidationError(f"'{commander.name}' cannot be your commander")

    if partner is None:
        return

    if not (is_legal_commander(partner) or partner_type(partner) == BACKGROUND):
        raise CommanderValidationError(f"'{partner.name}' cannot be your commander")

    if not are_valid_partners(commander, partner):
        raise CommanderValidationError(
            f"'{commander.name}' and '{partner.name}' cannot be played together as commanders"
        )

    logger.debug(f"Validated commander pair '{commander.name}' and '{partner.name}'")

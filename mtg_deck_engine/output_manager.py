"""Output manager for writing generated decks to disk."""

import json
import os
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .models import COLOR_ORDER, DECK_CATEGORIES, GeneratedDeck

CATEGORY_LABELS = {
    'lands': 'LANDS',
    'ramp': 'RAMP',
    'cardDraw': 'CARD DRAW',
    'singleRemoval': 'REMOVAL',
    'boardWipes': 'BOARD WIPES',
    'creatures': 'CREATURES',
    'synergy': 'SYNERGY',
    'utility': 'UTILITY',
}


class OutputManager:
    """Handles deck file output and formatting."""

    def __init__(self, output_directory: str = "."):
        """
        Initialize output manager.

        Args:
            output_directory: Directory where deck files will be written
        """
        self.output_directory = Path(output_directory)
        self.output_directory.mkdir(parents=True, exist_ok=True)

    def generate_filename(self, commander: str, extension: str = "txt") -> str:
        """
        Generate unique filename for deck output with timestamp handling.

        Args:
            commander: Name of the commander card
            extension: File extension without the dot

        Returns:
            Unique filename with timestamp if needed
        """
        safe_name = self._sanitize_filename(commander)
        base_filename = f"{safe_name}_deck.{extension}"

        # The JSON export shares the stem, so it must be free too
        taken = any(
            (self.output_directory / f"{safe_name}_deck.{suffix}").exists()
            for suffix in {extension, 'json'}
        )
        if not taken:
            return base_filename

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"{safe_name}_deck_{timestamp}.{extension}"

    def _sanitize_filename(self, name: str) -> str:
        """
        Sanitize a string to be safe for use as a filename.

        Args:
            name: Raw string to sanitize

        Returns:
            Sanitized filename-safe string
        """
        sanitized = name.lower().replace(" ", "_")
        sanitized = "".join(c for c in sanitized if c.isalnum() or c in "_-")

        if not sanitized:
            sanitized = "unknown_commander"

        # Limit length to avoid filesystem issues
        return sanitized[:50]

    def format_deck_list(self, deck: GeneratedDeck) -> str:
        """
        Format deck list in readable text format.

        Args:
            deck: Generated deck to format

        Returns:
            Formatted deck list as string
        """
        lines = []
        title = " & ".join(c.name for c in deck.commanders)

        lines.append("=" * 60)
        lines.append(f"MTG Commander Deck: {title}")
        lines.append("=" * 60)
        lines.append("")

        lines.append("COMMANDER:")
        for commander in deck.commanders:
            lines.append(f"1 {commander.name}")
        lines.append("")

        for category in DECK_CATEGORIES:
            cards = deck.categories.get(category, ())
            if not cards:
                continue
            lines.append(f"{CATEGORY_LABELS[category]} ({len(cards)}):")
            # Basics repeat, so identical names are collapsed into one line
            for name, count in Counter(card.name for card in cards).items():
                lines.append(f"{count} {name}")
            lines.append("")

        lines.append("DECK SUMMARY:")
        lines.append(f"Total Cards: {deck.card_count + deck.commander_count}")
        if deck.color_identity:
            colors = ", ".join(c for c in COLOR_ORDER if c in deck.color_identity)
            lines.append(f"Color Identity: {colors}")
        if deck.used_themes:
            lines.append(f"Themes: {', '.join(deck.used_themes)}")
        lines.append("")

        lines.extend(self._format_statistics(deck))

        lines.append("")
        lines.append("Generated by MTG Commander Deck Engine")
        lines.append(f"Generated on: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

        return "\n".join(lines)

    def _format_statistics(self, deck: GeneratedDeck) -> List[str]:
        stats = deck.stats
        lines = ["DECK STATISTICS:", f"Average CMC: {stats.average_cmc:.2f}", ""]

        lines.append("CARD TYPE BREAKDOWN:")
        for card_type, count in stats.type_distribution.items():
            if count > 0 and stats.total_cards:
                percentage = (count / stats.total_cards) * 100
                lines.append(f"  {card_type}: {count} ({percentage:.1f}%)")
        lines.append("")

        lines.append("MANA CURVE:")
        for cmc in range(0, 8):
            count = stats.mana_curve.get(cmc, 0)
            if count > 0:
                label = f"{cmc}+" if cmc == 7 else str(cmc)
                bar = "#" * min(count, 20)
                lines.append(f"  CMC {label:<2}: {count:2d} {bar}")
        lines.append("")

        lines.append("COLOR PIPS:")
        for color, count in stats.color_distribution.items():
            if count > 0:
                lines.append(f"  {color}: {count}")

        return lines

    def write_deck_file(self, deck: GeneratedDeck, filename: Optional[str] = None, as_json: bool = False) -> str:
        """
        Write deck to file with proper error handling and permissions.

        Args:
            deck: Generated deck to write
            filename: Optional custom filename (will generate if not provided)
            as_json: Also write a JSON export next to the text file

        Returns:
            Path to the written text file

        Raises:
            OSError: If file cannot be written due to permissions or disk space
            ValueError: If the deck is empty
        """
        if deck.card_count == 0:
            raise ValueError("Cannot write deck file: deck has no cards")

        if filename is None:
            filename = self.generate_filename(deck.commander.name)

        file_path = self.output_directory / filename

        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                f.write(self.format_deck_list(deck))
            os.chmod(file_path, 0o644)

            if as_json:
                json_path = file_path.with_suffix('.json')
                with open(json_path, 'w', encoding='utf-8') as f:
                    json.dump(deck.to_dict(), f, indent=2)
                os.chmod(json_path, 0o644)

            return str(file_path)

        except OSError as e:
            raise OSError(f"Failed to write deck file '{file_path}': {e}")

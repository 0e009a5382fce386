"""Command-line interface for the MTG Deck Engine."""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence

from . import __version__
from .cache import FileTTLCache
from .commanders import CommanderValidationError, validate_commanders
from .config import ConfigManager, apply_env_overrides, build_customization
from .edhrec_service import EDHRECAPIError, EDHRECService
from .generator import DeckGenerator, GenerationError
from .models import BUDGET_OPTIONS, COLOR_ORDER, FORMAT_LAND_RANGES, Card, GeneratedDeck
from .output_manager import OutputManager
from .scryfall_service import ScryfallAPIError, ScryfallService


class CommanderNotFoundError(Exception):
    """Raised when a commander name cannot be resolved."""
    pass


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        argv: Argument list; defaults to sys.argv[1:]

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog='mtg-deck-engine',
        description='Generate a Commander deck from EDHREC recommendations and Scryfall card data',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s "Atraxa, Praetors' Voice"
  %(prog)s "Edgar Markov" --format 60 --max-price 5
  %(prog)s "Tymna the Weaver" --partner "Kraum, Ludevic's Opus" --json
  %(prog)s "Meren of Clan Nel Toth" --list-themes
        """
    )

    parser.add_argument('commander', type=str, help='Name of the commander card')

    parser.add_argument('--partner', type=str, metavar='NAME', help='Partner commander name')

    parser.add_argument(
        '--format',
        type=int,
        dest='format_size',
        choices=sorted(FORMAT_LAND_RANGES),
        help='Deck format size (default: 99)'
    )

    parser.add_argument('--lands', type=int, dest='land_count', metavar='N',
                        help="Number of lands (clamped to the format's range)")

    parser.add_argument('--non-basic-lands', type=int, dest='non_basic_land_count', metavar='N',
                        help='Preferred number of non-basic lands when no statistics are available')

    parser.add_argument('--ban', action='append', dest='banned_cards', default=[], metavar='NAME',
                        help='Card that must never be included (repeatable)')

    parser.add_argument('--must-include', action='append', dest='must_include', default=[], metavar='NAME',
                        help='Card that must be included (repeatable)')

    parser.add_argument('--max-price', type=float, dest='max_card_price', metavar='USD',
                        help='Skip cards priced above this amount')

    parser.add_argument('--budget', choices=BUDGET_OPTIONS, help='Use budget or expensive recommendations')

    parser.add_argument('--bracket', type=int, choices=range(1, 6), metavar='{1..5}',
                        help='Commander bracket for recommendations')

    parser.add_argument('--game-changer-limit', type=int, dest='game_changer_limit', metavar='N',
                        help='Maximum number of game changer cards')

    parser.add_argument('--theme', action='append', dest='themes', default=[], metavar='SLUG',
                        help='Theme slug to draw recommendations from (repeatable)')

    parser.add_argument('--list-themes', action='store_true',
                        help='List available themes for the commander and exit')

    parser.add_argument('--output-dir', '-o', type=str,
                        help='Directory to save the generated deck file (default: current directory)')

    parser.add_argument('--json', action='store_true', help='Also write a JSON export')

    parser.add_argument('--no-cache', action='store_true', help='Disable response caching')

    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose output with detailed progress information')

    parser.add_argument('--quiet', '-q', action='store_true', help='Suppress all output except errors')

    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    args = parser.parse_args(argv)

    if args.verbose and args.quiet:
        parser.error("--verbose and --quiet cannot be used together")

    for name in ('land_count', 'non_basic_land_count', 'game_changer_limit'):
        value = getattr(args, name)
        if value is not None and value < 0:
            parser.error(f"--{name.replace('_count', 's').replace('_', '-')} must be non-negative")

    if args.max_card_price is not None and args.max_card_price < 0:
        parser.error("--max-price must be non-negative")

    return args


class MultilineFormatter(logging.Formatter):
    """Indents continuation lines of multiline log messages."""

    def format(self, record):
        formatted = super().format(record)
        if '\n' in formatted:
            lines = formatted.split('\n')
            return '\n'.join([lines[0]] + ['  ' + line for line in lines[1:]])
        return formatted


def setup_logging(verbose: bool = False, quiet: bool = False, log_dir: Optional[Path] = None) -> None:
    """
    Set up logging for debugging and user information.

    Args:
        verbose: Enable verbose logging with detailed operation reporting
        quiet: Enable quiet mode (errors only)
        log_dir: Directory for verbose log files (defaults to the config logs directory)
    """
    if quiet:
        level = logging.ERROR
        format_str = '%(levelname)s: %(message)s'
    elif verbose:
        level = logging.DEBUG
        format_str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    else:
        level = logging.INFO
        format_str = '%(levelname)s: %(message)s'

    logging.basicConfig(
        level=level,
        format=format_str,
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[logging.StreamHandler(sys.stderr)]
    )

    for handler in logging.root.handlers:
        handler.setFormatter(MultilineFormatter(format_str, datefmt='%Y-%m-%d %H:%M:%S'))

    logging.getLogger('mtg_deck_engine').setLevel(level)

    # Reduce noise from external libraries in non-verbose mode
    if not verbose:
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('requests').setLevel(logging.WARNING)
        return

    try:
        if log_dir is None:
            log_dir = ConfigManager().get_logs_dir()
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        log_file = log_dir / f"mtg_deck_engine_{time.strftime('%Y%m%d_%H%M%S')}.log"

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(MultilineFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))

        logging.root.addHandler(file_handler)
        logging.info(f"Detailed logs will be saved to: {log_file}")

    except OSError as e:
        logging.warning(f"Could not set up file logging: {e}")


class ProgressPrinter:
    """Prints generator progress callbacks to stdout."""

    def __init__(self, verbose: bool = False, quiet: bool = False):
        self.verbose = verbose
        self.quiet = quiet
        self.start_time = time.time()

    def __call__(self, message: str, percent: int) -> None:
        if self.quiet:
            return
        if self.verbose:
            elapsed = time.time() - self.start_time
            print(f"[{time.strftime('%H:%M:%S')}] {percent:3d}% {message} ({elapsed:.1f}s)")
        else:
            print(f"[{percent:3d}%] {message}")


def resolve_commander(card_database: ScryfallService, name: str) -> Card:
    """
    Resolve a commander name through the card database.

    Raises:
        CommanderNotFoundError: If the card does not exist
    """
    card = card_database.resolve(name)
    if card is None:
        raise CommanderNotFoundError(f"No card named '{name}' was found on Scryfall")
    return card


def combined_color_identity(commanders: Sequence[Card]) -> List[str]:
    """Union of the commanders' color identities in WUBRG order."""
    identity = set()
    for commander in commanders:
        identity |= commander.color_identity
    return [c for c in COLOR_ORDER if c in identity]


def list_themes(recommendations: EDHRECService, commander: str) -> None:
    """Print the themes available for a commander."""
    themes = recommendations.fetch_themes(commander)
    if not themes:
        print(f"No themes found for {commander}")
        return

    print(f"Themes for {commander}:")
    for theme in themes:
        print(f"  {theme.slug:<30} {theme.name} ({theme.count} decks, {theme.popularity_percent:.1f}%)")


def print_summary(deck: GeneratedDeck, output_path: str) -> None:
    commanders = " & ".join(c.name for c in deck.commanders)
    print("")
    print(f"Deck for {commanders}")
    print(f"  Cards: {deck.card_count} + {deck.commander_count} commander(s)")
    for category, cards in deck.categories.items():
        if cards:
            print(f"  {category}: {len(cards)}")
    print(f"  Average CMC: {deck.stats.average_cmc:.2f}")
    if deck.used_themes:
        print(f"  Themes: {', '.join(deck.used_themes)}")
    print(f"Deck list written to: {output_path}")


def handle_user_friendly_errors(error: Exception, verbose: bool = False) -> str:
    """
    Convert technical errors into user-friendly error messages.

    Args:
        error: Exception to convert
        verbose: Whether to include technical details

    Returns:
        User-friendly error message
    """
    if isinstance(error, (CommanderNotFoundError, CommanderValidationError)):
        return f"Commander issue: {error}"

    elif isinstance(error, GenerationError):
        return f"Could not generate deck: {error}"

    elif isinstance(error, ScryfallAPIError):
        return f"Scryfall service error: {error}. Check your connection and try again."

    elif isinstance(error, EDHRECAPIError):
        return f"EDHREC service error: {error}"

    elif isinstance(error, ValueError):
        return f"Invalid input: {error}"

    elif isinstance(error, OSError):
        return f"File system error: {error}"

    else:
        if verbose:
            return f"Unexpected error: {error}"
        else:
            return "An unexpected error occurred. Use --verbose for more details."


def run(args: argparse.Namespace) -> Optional[str]:
    """
    Execute the command described by ``args``.

    Returns:
        Path of the written deck file, or None when only listing themes
    """
    config_manager = ConfigManager()
    config = apply_env_overrides(config_manager.get_config())

    cache = None
    if config.cache_enabled and not args.no_cache:
        cache = FileTTLCache(config_manager.get_cache_dir(), ttl_seconds=config.cache_ttl_seconds)

    card_database = ScryfallService(cache=cache, timeout=config.api_timeout_seconds)
    recommendations = EDHRECService(cache=cache, timeout=config.api_timeout_seconds)

    if args.list_themes:
        list_themes(recommendations, args.commander)
        return None

    customization = build_customization(
        config,
        format_size=args.format_size,
        land_count=args.land_count,
        non_basic_land_count=args.non_basic_land_count,
        banned_cards=frozenset(args.banned_cards) or None,
        must_include=frozenset(args.must_include) or None,
        max_card_price=args.max_card_price,
        budget=args.budget,
        bracket=args.bracket,
        game_changer_limit=args.game_changer_limit,
    )

    commander = resolve_commander(card_database, args.commander)
    partner = resolve_commander(card_database, args.partner) if args.partner else None
    validate_commanders(commander, partner)
    identity = combined_color_identity([c for c in (commander, partner) if c is not None])

    generator = DeckGenerator(card_database, recommendations)
    deck = generator.generate(
        commander,
        partner,
        identity,
        customization,
        selected_theme_slugs=args.themes,
        progress_callback=ProgressPrinter(args.verbose, args.quiet),
    )

    output_manager = OutputManager(args.output_dir or config.default_output_dir)
    output_path = output_manager.write_deck_file(deck, as_json=args.json)

    if not args.quiet:
        print_summary(deck, output_path)
    return output_path


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point for the MTG Deck Engine CLI."""
    args = None

    try:
        args = parse_arguments(argv)
        setup_logging(args.verbose, args.quiet)

        if not args.quiet:
            print(f"MTG Commander Deck Engine v{__version__}")
            print("=" * 40)

        run(args)

    except KeyboardInterrupt:
        if not (args and args.quiet):
            print("\nOperation cancelled by user")
        sys.exit(1)

    except Exception as e:
        verbose = bool(args and args.verbose)
        if verbose:
            logging.exception(f"Error: {e}")
        print(f"Error: {handle_user_friendly_errors(e, verbose)}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

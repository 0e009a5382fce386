#!/usr/bin/env python3
"""
Main entry point script for the MTG Commander Deck Engine.

Run directly from a checkout to generate a Commander deck without installing
the package first.
"""

import sys
from pathlib import Path

# Add the project directory to Python path
project_dir = Path(__file__).parent
sys.path.insert(0, str(project_dir))

from mtg_deck_engine.cli import main

if __name__ == "__main__":
    main()

"""
Unit tests for MTG Deck Engine data models.
"""

import unittest

from mtg_deck_engine.models import (
    CandidateCard, Card, CardPool, CommanderStats, Customization, DeckStats,
    GeneratedDeck, colored_pips, mana_value_bucket
)


class TestCard(unittest.TestCase):
    """Test cases for the Card dataclass."""

    def test_from_scryfall_data(self):
        """Test building a card from a Scryfall card object."""
        data = {
            'name': 'Sol Ring',
            'cmc': 1.0,
            'type_line': 'Artifact',
            'oracle_text': '{T}: Add {C}{C}.',
            'color_identity': [],
            'mana_cost': '{1}',
            'colors': [],
            'prices': {'usd': '1.49'},
            'game_changer': True,
        }

        card = Card.from_scryfall_data(data)

        self.assertEqual(card.name, 'Sol Ring')
        self.assertEqual(card.cmc, 1.0)
        self.assertEqual(card.price_usd, 1.49)
        self.assertEqual(card.color_identity, frozenset())
        self.assertTrue(card.is_game_changer)
        self.assertFalse(card.is_land)

    def test_double_faced_card_joins_faces(self):
        """Test that oracle text and mana cost are joined across faces."""
        data = {
            'name': 'Delver of Secrets // Insectile Aberration',
            'cmc': 1,
            'type_line': 'Creature — Human Wizard // Creature — Human Insect',
            'color_identity': ['U'],
            'card_faces': [
                {'oracle_text': 'At the beginning of your upkeep, look at the top card.', 'mana_cost': '{U}', 'colors': ['U']},
                {'oracle_text': 'Flying', 'mana_cost': '', 'colors': ['U']},
            ],
            'prices': {'usd': None},
        }

        card = Card.from_scryfall_data(data)

        self.assertIn('upkeep', card.oracle_text)
        self.assertIn('Flying', card.oracle_text)
        self.assertEqual(card.mana_cost, '{U}')
        self.assertEqual(card.colors, ('U',))
        self.assertIsNone(card.price_usd)

    def test_dict_round_trip_preserves_card(self):
        """Test that cached dictionaries rebuild an equal card."""
        card = Card(
            name='Llanowar Elves', cmc=1, type_line='Creature — Elf Druid',
            oracle_text='{T}: Add {G}.', color_identity=frozenset('G'),
            price_usd=0.25, mana_cost='{G}', colors=('G',)
        )

        self.assertEqual(Card.from_dict(card.to_dict()), card)

    def test_land_properties(self):
        """Test land and basic land detection."""
        forest = Card(name='Forest', type_line='Basic Land — Forest')
        dryad = Card(name='Dryad Arbor', type_line='Land Creature — Forest Dryad')

        self.assertTrue(forest.is_land)
        self.assertTrue(forest.is_basic_land)
        self.assertTrue(dryad.is_land)
        self.assertFalse(dryad.is_basic_land)

    def test_mana_value_bucket(self):
        """Test bucketing of mana values into 0..7."""
        self.assertEqual(mana_value_bucket(0), 0)
        self.assertEqual(mana_value_bucket(2.5), 2)
        self.assertEqual(mana_value_bucket(7), 7)
        self.assertEqual(mana_value_bucket(15), 7)
        self.assertEqual(Card(name='Big', cmc=9).mana_value_bucket, 7)


class TestCandidateAndPool(unittest.TestCase):
    """Test cases for CandidateCard and CardPool."""

    def test_inclusion_is_clamped(self):
        """Test that inclusion rates are clamped into 0-100."""
        self.assertEqual(CandidateCard(name='A', inclusion=140).inclusion, 100.0)
        self.assertEqual(CandidateCard(name='B', inclusion=-3).inclusion, 0.0)

    def test_unknown_type(self):
        """Test the unknown type flag."""
        self.assertTrue(CandidateCard(name='A').is_unknown_type)
        self.assertFalse(CandidateCard(name='A', primary_type='Creature').is_unknown_type)

    def test_pool_lists_are_sorted(self):
        """Test that pool lists are sorted by inclusion then name."""
        pool = CardPool(creatures=[
            CandidateCard(name='Zebra', inclusion=10),
            CandidateCard(name='Beta', inclusion=50),
            CandidateCard(name='Alpha', inclusion=50),
        ])

        self.assertIsInstance(pool.creatures, tuple)
        self.assertEqual([c.name for c in pool.creatures], ['Alpha', 'Beta', 'Zebra'])

    def test_empty_pool(self):
        """Test the empty pool helpers."""
        pool = CardPool.empty()

        self.assertTrue(pool.is_empty)
        self.assertFalse(pool.has_non_land)

    def test_non_basic_land_average(self):
        """Test reading the non-basic average from land distribution."""
        self.assertEqual(CommanderStats(land_distribution={'nonbasic': 12}).non_basic_land_average, 12)
        self.assertIsNone(CommanderStats().non_basic_land_average)
        self.assertEqual(CommanderStats(land_distribution={'nonbasic': 0}).non_basic_land_average, 0)


class TestCustomization(unittest.TestCase):
    """Test cases for Customization validation."""

    def test_land_count_is_clamped_to_format(self):
        """Test that land counts are clamped into the format's range."""
        self.assertEqual(Customization(format_size=99, land_count=50).land_count, 42)
        self.assertEqual(Customization(format_size=60, land_count=10).land_count, 19)
        self.assertEqual(Customization(format_size=40, land_count=16).land_count, 16)

    def test_for_format_uses_default_lands(self):
        """Test format defaults for land count."""
        self.assertEqual(Customization.for_format(40).land_count, 16)
        self.assertEqual(Customization.for_format(60).land_count, 23)
        self.assertEqual(Customization.for_format(99).land_count, 37)
        self.assertEqual(Customization.for_format(99, land_count=35).land_count, 35)

    def test_invalid_values_raise(self):
        """Test that invalid options are rejected."""
        with self.assertRaises(ValueError):
            Customization(format_size=100)
        with self.assertRaises(ValueError):
            Customization(budget='cheap')
        with self.assertRaises(ValueError):
            Customization(bracket=6)

    def test_name_sets_are_frozen(self):
        """Test that banned and must-include lists become frozensets."""
        customization = Customization(banned_cards=['Sol Ring'], must_include=['Cultivate'])

        self.assertEqual(customization.banned_cards, frozenset({'Sol Ring'}))
        self.assertEqual(customization.must_include, frozenset({'Cultivate'}))


class TestGeneratedDeck(unittest.TestCase):
    """Test cases for GeneratedDeck."""

    def setUp(self):
        """Set up test fixtures."""
        self.commander = Card(name='Tymna the Weaver', color_identity=frozenset('WB'))
        self.partner = Card(name="Kraum, Ludevic's Opus", color_identity=frozenset('UR'))
        self.deck = GeneratedDeck(
            commander=self.commander,
            partner_commander=self.partner,
            categories={
                'lands': (Card(name='Plains', type_line='Basic Land — Plains'),),
                'creatures': (Card(name='Esper Sentinel', type_line='Artifact Creature — Human Soldier'),),
            },
            stats=DeckStats(total_cards=2),
            used_themes=('Tokens',),
        )

    def test_properties(self):
        """Test commander and card count properties."""
        self.assertEqual(self.deck.commander_count, 2)
        self.assertEqual(self.deck.card_count, 2)
        self.assertEqual(self.deck.color_identity, frozenset('WUBR'))
        self.assertEqual([c.name for c in self.deck.all_cards], ['Plains', 'Esper Sentinel'])

    def test_to_dict(self):
        """Test JSON export structure."""
        data = self.deck.to_dict()

        self.assertEqual(data['commander'], 'Tymna the Weaver')
        self.assertEqual(data['partner_commander'], "Kraum, Ludevic's Opus")
        self.assertEqual(data['color_identity'], ['W', 'U', 'B', 'R'])
        self.assertEqual(data['categories']['lands'], ['Plains'])
        self.assertEqual(data['categories']['ramp'], [])
        self.assertEqual(data['used_themes'], ['Tokens'])


class TestColoredPips(unittest.TestCase):
    """Test cases for mana cost pip counting."""

    def test_counts_plain_hybrid_and_phyrexian_symbols(self):
        """Test counting of colored symbols."""
        self.assertEqual(colored_pips('{2}{G}{G}'), {'G': 2})
        self.assertEqual(colored_pips('{W/U}{B}'), {'W': 1, 'U': 1, 'B': 1})
        self.assertEqual(colored_pips('{G/P}'), {'G': 1})
        self.assertEqual(colored_pips('{3}'), {})
        self.assertEqual(colored_pips(''), {})


if __name__ == '__main__':
    unittest.main()

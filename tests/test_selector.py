"""
Tests for the curve-aware selector.

``decide`` is pure and tested directly; ``CurveAwareSelector`` is tested
against an in-memory card database.
"""

import unittest

from mtg_deck_engine.scryfall_service import ScryfallAPIError
from mtg_deck_engine.selector import (
    CurveAwareSelector, Decision, SelectionState, decide, matches_expected_type, record, tolerance
)

from fakes import FakeCardDatabase, make_candidate, make_card


class TestDecide(unittest.TestCase):
    """Test cases for the pure decision function."""

    def setUp(self):
        """Set up test fixtures."""
        self.state = SelectionState(
            color_identity=frozenset('BG'),
            curve_targets={3: 10},
            banned=frozenset({'Banned Card'}),
        )
        self.card = make_card('Grim Flayer', cmc=3, identity='BG')

    def test_accepts_legal_card(self):
        """Test a card passing every rule."""
        self.assertEqual(decide(make_candidate('Grim Flayer'), self.card, self.state), Decision.ACCEPT)

    def test_rejects_used_and_banned(self):
        """Test singleton and ban rules."""
        self.state.used_names.add('Grim Flayer')
        self.assertEqual(decide(make_candidate('Grim Flayer'), self.card, self.state), Decision.USED)

        banned = make_card('Banned Card', identity='G')
        self.assertEqual(decide(make_candidate('Banned Card'), banned, self.state), Decision.BANNED)

    def test_ban_matching_ignores_case_and_back_faces(self):
        """Test that bans match regardless of case and on the front face."""
        self.state.banned = frozenset({'sol ring', 'Delver of Secrets'})
        sol_ring = make_card('Sol Ring', cmc=1, type_line='Artifact', identity='')
        delver = make_card('Delver of Secrets // Insectile Aberration', cmc=1, identity='U')

        self.assertEqual(decide(make_candidate('Sol Ring'), sol_ring, self.state), Decision.BANNED)
        self.assertEqual(decide(make_candidate(delver.name), delver, self.state), Decision.BANNED)
        self.assertFalse(self.state.is_available('SOL RING'))
        self.assertTrue(self.state.is_available('Sol Talisman'))

    def test_rejects_off_color(self):
        """Test color identity enforcement."""
        card = make_card('Lightning Bolt', cmc=1, type_line='Instant', identity='R')

        self.assertEqual(decide(make_candidate('Lightning Bolt'), card, self.state), Decision.OFF_COLOR)

    def test_colorless_fits_any_identity(self):
        """Test that colorless cards are always on-color."""
        card = make_card('Sol Ring', cmc=1, type_line='Artifact', identity='')

        self.assertEqual(decide(make_candidate('Sol Ring'), card, self.state), Decision.ACCEPT)

    def test_type_check_only_for_unknown_candidates(self):
        """Test that typed candidates skip the type check."""
        instant = make_card('Beast Within', cmc=3, type_line='Instant', identity='G')

        unknown = make_candidate('Beast Within', primary_type='Unknown')
        typed = make_candidate('Beast Within', primary_type='Creature')

        self.assertEqual(decide(unknown, instant, self.state, expected_type='creature'), Decision.WRONG_TYPE)
        self.assertEqual(decide(typed, instant, self.state, expected_type='creature'), Decision.ACCEPT)

    def test_price_cap(self):
        """Test the maximum card price."""
        self.state.max_card_price = 5.0
        expensive = make_card('Gaea\'s Cradle', cmc=0, type_line='Legendary Land', identity='', price=800.0)
        unpriced = make_card('Unpriced', cmc=3, identity='G', price=None)

        self.assertEqual(decide(make_candidate(expensive.name), expensive, self.state), Decision.OVER_PRICE)
        self.assertEqual(decide(make_candidate('Unpriced'), unpriced, self.state), Decision.ACCEPT)

    def test_game_changer_cap(self):
        """Test the game changer limit."""
        self.state.game_changer_limit = 1
        self.state.game_changers_used = 1
        card = make_card('Cyclonic Rift', cmc=2, type_line='Instant', identity='', game_changer=True)

        self.assertEqual(decide(make_candidate('Cyclonic Rift'), card, self.state), Decision.GAME_CHANGER_CAP)

    def test_saturated_bucket_bypass_for_popular_cards(self):
        """A 55% card in a saturated bucket is accepted; a 10% card is skipped."""
        target = self.state.curve_targets[3]
        self.state.curve_counts[3] = target + tolerance(target)

        popular = make_candidate('Grim Flayer', inclusion=55)
        fringe = make_candidate('Grim Flayer', inclusion=10)

        self.assertEqual(decide(popular, self.card, self.state), Decision.ACCEPT)
        self.assertEqual(decide(fringe, self.card, self.state), Decision.CURVE_SATURATED)

    def test_bucket_below_saturation_accepts_fringe_cards(self):
        """Test that tolerance allows slight overshoot."""
        self.state.curve_counts[3] = 10

        self.assertEqual(decide(make_candidate('Grim Flayer', inclusion=10), self.card, self.state), Decision.ACCEPT)

    def test_curve_agnostic_mode(self):
        """Test that use_curve=False ignores saturation."""
        self.state.curve_counts[3] = 50

        decision = decide(make_candidate('Grim Flayer', inclusion=1), self.card, self.state, use_curve=False)

        self.assertEqual(decision, Decision.ACCEPT)

    def test_decide_does_not_modify_state(self):
        """Test purity of decide."""
        decide(make_candidate('Grim Flayer'), self.card, self.state)

        self.assertEqual(self.state.used_names, set())
        self.assertEqual(self.state.curve_counts, {})


class TestHelpers(unittest.TestCase):
    """Test cases for selector helpers."""

    def test_tolerance(self):
        """Test 10% tolerance with a minimum of one."""
        self.assertEqual(tolerance(0), 1)
        self.assertEqual(tolerance(5), 1)
        self.assertEqual(tolerance(11), 2)
        self.assertEqual(tolerance(20), 2)

    def test_matches_expected_type(self):
        """Test type matching rules."""
        self.assertTrue(matches_expected_type('Artifact', 'artifact'))
        self.assertFalse(matches_expected_type('Artifact Creature — Golem', 'artifact'))
        self.assertTrue(matches_expected_type('Artifact Creature — Golem', 'creature'))
        self.assertFalse(matches_expected_type('Enchantment Creature — God', 'enchantment'))
        self.assertTrue(matches_expected_type('Legendary Planeswalker — Nissa', 'planeswalker'))
        self.assertFalse(matches_expected_type('Sorcery', 'instant'))

    def test_record_updates_counts(self):
        """Test recording an accepted card."""
        state = SelectionState(color_identity=frozenset('G'))
        record(make_card('Cyclonic Rift', cmc=2, game_changer=True), state)
        record(make_card('Forest', cmc=0, type_line='Basic Land — Forest'), state)

        self.assertEqual(state.used_names, {'Cyclonic Rift', 'Forest'})
        self.assertEqual(state.curve_counts, {2: 1})
        self.assertEqual(state.game_changers_used, 1)


class TestCurveAwareSelector(unittest.TestCase):
    """Test cases for CurveAwareSelector.select."""

    def setUp(self):
        """Set up test fixtures."""
        self.cards = [make_card(f'Elf {i}', cmc=2) for i in range(10)]
        self.database = FakeCardDatabase(self.cards)
        self.selector = CurveAwareSelector(self.database)
        self.state = SelectionState(color_identity=frozenset('G'), curve_targets={2: 10})
        self.candidates = [make_candidate(f'Elf {i}', inclusion=90 - i, primary_type='Creature') for i in range(10)]

    def test_never_exceeds_target(self):
        """Test the target bound."""
        selected = self.selector.select(self.candidates, 4, self.state, expected_type='creature')

        self.assertEqual([c.name for c in selected], ['Elf 0', 'Elf 1', 'Elf 2', 'Elf 3'])
        self.assertEqual(self.state.curve_counts[2], 4)

    def test_zero_target(self):
        """Test that a zero target selects nothing."""
        self.assertEqual(self.selector.select(self.candidates, 0, self.state), [])
        self.assertEqual(self.database.resolved, [])

    def test_skips_used_and_banned_without_resolving(self):
        """Test that unavailable names never reach the card database."""
        self.state.used_names.add('Elf 0')
        self.state.banned = frozenset({'Elf 1'})

        selected = self.selector.select(self.candidates, 2, self.state)

        self.assertEqual([c.name for c in selected], ['Elf 2', 'Elf 3'])
        self.assertNotIn('Elf 0', self.database.resolved)
        self.assertNotIn('Elf 1', self.database.resolved)

    def test_never_returns_same_name_twice(self):
        """Test singleton enforcement across calls."""
        first = self.selector.select(self.candidates, 3, self.state)
        second = self.selector.select(self.candidates, 3, self.state)

        names = [c.name for c in first + second]
        self.assertEqual(len(names), len(set(names)))

    def test_resolution_failures_are_skipped(self):
        """Test that missing cards and API errors do not abort selection."""
        del self.database.cards['Elf 0']
        self.database.errors['Elf 1'] = ScryfallAPIError("boom")

        selected = self.selector.select(self.candidates, 2, self.state)

        self.assertEqual([c.name for c in selected], ['Elf 2', 'Elf 3'])

    def test_shortfall_is_returned_as_is(self):
        """Test that the selector never tops up."""
        selected = self.selector.select(self.candidates[:3], 8, self.state)

        self.assertEqual(len(selected), 3)
        self.assertEqual(self.database.searches, [])


if __name__ == '__main__':
    unittest.main()

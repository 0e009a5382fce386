"""
Tests for final deck size correction.
"""

import unittest

from mtg_deck_engine.reconciler import TRIM_ORDER, reconcile

from fakes import make_card


def cards(prefix: str, count: int):
    return [make_card(f'{prefix} {i}') for i in range(count)]


class TestReconcile(unittest.TestCase):
    """Test cases for reconcile."""

    def setUp(self):
        """Set up test fixtures."""
        self.categories = {
            'creatures': cards('Creature', 5),
            'ramp': cards('Ramp', 3),
            'synergy': cards('Synergy', 2),
            'utility': cards('Utility', 1),
            'lands': cards('Land', 4),
        }

    def test_exact_deck_is_unchanged(self):
        """Test that an exact deck reconciles to an equal copy."""
        result = reconcile(self.categories, 15, {'G'})

        self.assertEqual(result, self.categories)
        self.assertIsNot(result['creatures'], self.categories['creatures'])

    def test_idempotent(self):
        """Test that reconciling twice gives the same result."""
        once = reconcile(self.categories, 12, {'G'})
        twice = reconcile(once, 12, {'G'})

        self.assertEqual(once, twice)

    def test_trims_in_order_from_the_end(self):
        """Test that synergy empties first, then utility, then creatures."""
        result = reconcile(self.categories, 11, {'G'})

        self.assertEqual(result['synergy'], [])
        self.assertEqual(result['utility'], [])
        self.assertEqual([c.name for c in result['creatures']], ['Creature 0', 'Creature 1', 'Creature 2', 'Creature 3'])
        self.assertEqual(len(result['ramp']), 3)
        self.assertEqual(sum(len(v) for v in result.values()), 11)

    def test_lands_are_never_trimmed(self):
        """Test that only trim-order categories lose cards."""
        self.assertNotIn('lands', TRIM_ORDER)

        result = reconcile(self.categories, 2, {'G'})

        self.assertEqual(len(result['lands']), 4)

    def test_fills_shortfall_with_basics(self):
        """Test basic land fill for a short deck."""
        result = reconcile(self.categories, 19, {'G', 'U'})

        added = [c.name for c in result['lands'][4:]]
        self.assertEqual(added, ['Island', 'Island', 'Forest', 'Forest'])
        self.assertEqual(sum(len(v) for v in result.values()), 19)

    def test_fills_missing_lands_category(self):
        """Test that a deck without lands gets a lands category."""
        result = reconcile({'creatures': cards('Creature', 2)}, 4, set())

        self.assertEqual([c.name for c in result['lands']], ['Wastes', 'Wastes'])

    def test_input_is_not_modified(self):
        """Test purity."""
        before = {k: list(v) for k, v in self.categories.items()}

        reconcile(self.categories, 5, {'G'})
        reconcile(self.categories, 30, {'G'})

        self.assertEqual(self.categories, before)


if __name__ == '__main__':
    unittest.main()

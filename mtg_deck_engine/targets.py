"""
Target allocation for deck composition.

Converts a format's slot count and optional aggregated commander statistics
into per-type and per-mana-value-bucket count targets. Every path rounds half
up and then corrects the rounding remainder so that both target maps sum to
exactly the non-land card count.
"""

import logging
import math
from typing import Dict, Iterable, Mapping, Optional

from .models import (
    CARD_TYPES, CURVE_BUCKETS, FORMAT_LAND_RANGES, MAX_CURVE_BUCKET,
    CommanderStats, TargetProfile
)

logger = logging.getLogger(__name__)

HEURISTIC_CURVE: Dict[int, float] = {
    0: 0.02, 1: 0.12, 2: 0.20, 3: 0.25, 4: 0.18, 5: 0.12, 6: 0.06, 7: 0.05
}

HEURISTIC_TYPES: Dict[str, float] = {
    'creature': 0.45,
    'instant': 0.12,
    'sorcery': 0.12,
    'artifact': 0.12,
    'enchantment': 0.12,
    'planeswalker': 0.03,
    'battle': 0.0,
}

# Non-creature spell types that absorb heuristic rounding, one card at a time
HEURISTIC_ABSORBERS = ('instant', 'sorcery', 'artifact', 'enchantment')


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up."""
    return int(math.floor(value + 0.5))


def format_slots(format_size: int, has_partner: bool = False) -> int:
    """
    Number of non-commander cards a deck of the given format holds.

    Args:
        format_size: One of 40, 60 or 99
        has_partner: Whether a second commander occupies a slot

    Returns:
        Non-commander slot count (39/59/98, one fewer with a partner)
    """
    if format_size not in FORMAT_LAND_RANGES:
        raise ValueError(f"Unsupported format size: {format_size}")
    return format_size - (2 if has_partner else 1)


def clamp_land_count(format_size: int, land_count: int) -> int:
    """Clamp a land count preference into the format's allowed range."""
    _, min_lands, max_lands = FORMAT_LAND_RANGES[format_size]
    return max(min_lands, min(max_lands, land_count))


def correct_into_largest(targets: Dict, total: int, order: Iterable) -> Dict:
    """
    Add the rounding remainder to the single largest target.

    Ties go to the first key in ``order``. A negative remainder never drives a
    target below zero; any excess moves on to the next largest target.
    """
    order = list(order)
    remainder = total - sum(targets.values())
    while remainder != 0:
        candidates = [k for k in order if remainder > 0 or targets[k] > 0]
        if not candidates:
            break
        largest = max(candidates, key=lambda k: targets[k])
        adjusted = max(0, targets[largest] + remainder)
        remainder -= adjusted - targets[largest]
        targets[largest] = adjusted
    return targets


def spread_remainder(targets: Dict[str, int], total: int, absorbers: Iterable[str]) -> Dict[str, int]:
    """Distribute the rounding remainder round-robin across ``absorbers``."""
    absorbers = list(absorbers)
    remainder = total - sum(targets.values())
    step = 1 if remainder > 0 else -1
    index = 0
    stalled = 0

    while remainder != 0 and stalled < len(absorbers):
        key = absorbers[index % len(absorbers)]
        index += 1
        if step < 0 and targets[key] == 0:
            stalled += 1
            continue
        stalled = 0
        targets[key] += step
        remainder -= step

    if remainder:
        correct_into_largest(targets, total, CARD_TYPES)
    return targets


def heuristic_type_targets(non_land_count: int) -> Dict[str, int]:
    targets = {t: round_half_up(HEURISTIC_TYPES[t] * non_land_count) for t in CARD_TYPES}
    return spread_remainder(targets, non_land_count, HEURISTIC_ABSORBERS)


def heuristic_curve_targets(non_land_count: int) -> Dict[int, int]:
    targets = {b: round_half_up(HEURISTIC_CURVE[b] * non_land_count) for b in CURVE_BUCKETS}
    return correct_into_largest(targets, non_land_count, CURVE_BUCKETS)


def stats_type_targets(type_histogram: Mapping[str, int], non_land_count: int) -> Optional[Dict[str, int]]:
    """Scale the type histogram to the non-land count, or None if it is empty."""
    counts = {t: max(0, float(type_histogram.get(t, 0) or 0)) for t in CARD_TYPES}
    total = sum(counts.values())
    if total <= 0:
        return None

    targets = {t: round_half_up(counts[t] / total * non_land_count) for t in CARD_TYPES}
    return correct_into_largest(targets, non_land_count, CARD_TYPES)


def stats_curve_targets(curve_histogram: Mapping[int, int], non_land_count: int) -> Optional[Dict[int, int]]:
    """Scale the mana value histogram to the non-land count, or None if it is empty."""
    folded = {b: 0.0 for b in CURVE_BUCKETS}
    for key, value in curve_histogram.items():
        try:
            bucket = int(key)
        except (TypeError, ValueError):
            continue
        if bucket < 0 or not value or value < 0:
            continue
        folded[min(bucket, MAX_CURVE_BUCKET)] += float(value)

    total = sum(folded.values())
    if total <= 0:
        return None

    targets = {b: round_half_up(folded[b] / total * non_land_count) for b in CURVE_BUCKETS}
    return correct_into_largest(targets, non_land_count, CURVE_BUCKETS)


def allocate_targets(
    deck_size: int,
    land_count: int,
    stats: Optional[CommanderStats] = None,
    non_basic_land_count: int = 0
) -> TargetProfile:
    """
    Compute the target profile for one generation run.

    Stats are used only when present with a positive sample size. The type
    and curve histograms fall back to the fixed heuristics independently when
    either one is empty.

    Args:
        deck_size: Non-commander slot count
        land_count: Land target, already clamped to the format's range
        stats: Aggregated commander statistics, if available
        non_basic_land_count: User's non-basic land preference

    Returns:
        TargetProfile whose type and curve targets both sum to the non-land count
    """
    non_land_count = max(0, deck_size - land_count)
    use_stats = stats is not None and stats.sample_size > 0

    type_targets = None
    curve_targets = None
    if use_stats:
        type_targets = stats_type_targets(stats.type_histogram, non_land_count)
        curve_targets = stats_curve_targets(stats.curve_histogram, non_land_count)
        if type_targets is None:
            logger.warning("Type histogram empty, using heuristic type ratios")
        if curve_targets is None:
            logger.warning("Mana curve histogram empty, using heuristic curve")
    else:
        logger.info("No aggregated statistics available, using heuristic targets")

    if type_targets is None:
        type_targets = heuristic_type_targets(non_land_count)
    if curve_targets is None:
        curve_targets = heuristic_curve_targets(non_land_count)

    non_basic = non_basic_land_count
    if use_stats and stats.non_basic_land_average is not None:
        non_basic = stats.non_basic_land_average
    non_basic = max(0, min(non_basic, land_count))

    logger.debug(f"Type targets: {type_targets}")
    logger.debug(f"Curve targets: {curve_targets}")

    return TargetProfile(
        land_count=land_count,
        non_basic_land_count=non_basic,
        type_targets=type_targets,
        curve_targets=curve_targets,
        used_stats=use_stats,
    )

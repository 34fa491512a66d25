"""Overlap checks for untrusted solutions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

from packt.geometry import Placement, boxes_overlap

if TYPE_CHECKING:
    from packt.solution import Solution

logger = logging.getLogger(__name__)


def find_overlap(placements: Sequence[Placement]) -> tuple[int, int] | None:
    """
    Return the indices (i, j), i < j, of the first overlapping pair.

    Takes quadratic time in the number of placements.
    """
    bounds = [p.bounds() for p in placements]
    for i in range(len(bounds)):
        a = bounds[i]
        for j in range(i + 1, len(bounds)):
            if boxes_overlap(a, bounds[j]):
                return i, j
    return None


def is_valid(solution: Solution) -> bool:
    """True if no two placements of the solution overlap."""
    pair = find_overlap(solution.placements)
    if pair is None:
        return True

    i, j = pair
    logger.warning(
        f"Overlap found: placement {i} {solution.placements[i].bounds()} "
        f"and placement {j} {solution.placements[j].bounds()}"
    )
    return False

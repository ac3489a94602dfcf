"""
Portfolio allocation across one scan date's approved candidates.

If the approved position sizes sum to more than the daily cap, every
approved size is scaled by cap / total, which keeps their ranking and makes
the new total exactly the cap. Rejected candidates are never touched.
"""

import logging
from typing import List

from . import constants
from .filters.pipeline import Candidate

logger = logging.getLogger(__name__)


class PortfolioAllocator:
    """Scale approved candidates to fit under the daily allocation cap."""

    def __init__(self, max_allocation: float = constants.MAX_DAILY_PORTFOLIO_ALLOCATION):
        if max_allocation <= 0:
            raise ValueError("max_allocation must be positive")
        self.max_allocation = max_allocation

    def allocate(self, candidates: List[Candidate]) -> List[Candidate]:
        """
        Apply the daily cap in place.

        Returns:
            The same candidate list
        """
        approved = [c for c in candidates if c.approved]
        total = sum(c.position_size_pct for c in approved)
        if total <= self.max_allocation:
            logger.info(
                f"Total allocation {total:.2%} within cap {self.max_allocation:.2%}"
            )
            return candidates

        scale = self.max_allocation / total
        for candidate in approved:
            candidate.position_size_pct *= scale
        logger.info(
            f"Scaled {len(approved)} candidates by {scale:.4f} "
            f"({total:.2%} -> {self.max_allocation:.2%})"
        )
        return candidates

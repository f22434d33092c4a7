import random
from typing import Dict, List, Optional, Sequence

from loguru import logger

from backend.config import settings
from backend.models import ReviewDifficulty, SmartReviewItem


def difficulty_weight(difficulty: ReviewDifficulty) -> float:
    """Probability weight assigned by a rating. EASY makes an item rarer, HARD more frequent."""
    weights = {
        ReviewDifficulty.EASY: settings.easy_weight,
        ReviewDifficulty.MEDIUM: settings.medium_weight,
        ReviewDifficulty.HARD: settings.hard_weight,
    }
    return weights[ReviewDifficulty(difficulty)]


def get_selection_strategy(name: Optional[str] = None, rng: Optional[random.Random] = None):
    """Factory function to return the selection strategy named in config"""
    name = (name or settings.selection_strategy).lower()
    if name not in STRATEGIES:
        raise ValueError(
            f"Unknown selection strategy '{name}', expected one of {sorted(STRATEGIES)}"
        )
    return STRATEGIES[name](rng=rng)


class SelectionStrategy:
    """Base class for picking the next review item among the candidates of a pass"""

    name = "base"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def select(self, candidates: Sequence[SmartReviewItem]) -> Optional[SmartReviewItem]:
        raise NotImplementedError

    def _weighted_choice(self, items: Sequence[SmartReviewItem]) -> Optional[SmartReviewItem]:
        """
        Weighted random selection on probability_weight.

        Items marked EASY (lower weight) are less likely to be picked.
        """
        if not items:
            return None

        total_weight = sum(max(item.probability_weight, 0.0) for item in items)
        if total_weight <= 0:
            return self.rng.choice(list(items))

        threshold = self.rng.random() * total_weight
        for item in items:
            threshold -= max(item.probability_weight, 0.0)
            if threshold <= 0:
                return item

        # Float rounding can leave a tiny remainder
        return items[-1]


class CoverageFirstStrategy(SelectionStrategy):
    """Least-served items first, weighted random inside that tier"""

    name = "coverage"

    def select(self, candidates):
        if not candidates:
            return None
        least_served = min(item.times_served for item in candidates)
        tier = [item for item in candidates if item.times_served == least_served]
        logger.debug(
            f"Coverage tier: {len(tier)}/{len(candidates)} candidates served {least_served} times"
        )
        return self._weighted_choice(tier)


class WeightedRandomStrategy(SelectionStrategy):
    """Weighted random over every candidate"""

    name = "weighted"

    def select(self, candidates):
        return self._weighted_choice(candidates)


class OrderedStrategy(SelectionStrategy):
    """Deterministic walk: module order, then flashcards before activities, then creation order"""

    name = "ordered"

    def select(self, candidates):
        if not candidates:
            return None
        return min(candidates, key=self.sort_key)

    @staticmethod
    def sort_key(item: SmartReviewItem):
        module_order = item.module.order if item.module is not None else 0
        source_id = item.flashcard_id or item.learning_activity_id or 0
        return (module_order, 0 if item.flashcard_id else 1, source_id)


STRATEGIES: Dict[str, type] = {
    CoverageFirstStrategy.name: CoverageFirstStrategy,
    WeightedRandomStrategy.name: WeightedRandomStrategy,
    OrderedStrategy.name: OrderedStrategy,
}


def available_strategies() -> List[str]:
    return sorted(STRATEGIES)

"""
Exact Merchant Match Scorer

Learns from the couple's own history: every past expense whose merchant is
literally the same (case-insensitive, trimmed) votes for its category.

Confidence sits between 0.90 and 0.99:
- a unanimous merchant seen 10+ times reaches the 0.99 cap
- a split vote (majority share near 50-60%) stays close to the 0.90 floor
"""
from collections import Counter
from typing import Iterable, List, Optional, Sequence, Tuple

from .merchant_normalizer import normalize_key
from .models import ExpenseHistoryRecord, PredictionSource, ScorerOutput

BASE_CONFIDENCE = 0.90
MAX_CONFIDENCE = 0.99
MAX_BONUS = 0.09
VOLUME_SATURATION = 10  # visits after which volume stops adding confidence


def majority_category(records: Iterable[ExpenseHistoryRecord]) -> Optional[Tuple[str, int, int]]:
    """
    Most common category among records.

    Returns:
        (category, majority_count, total) or None when no record has a
        category. Ties go to the category seen first in history order.
    """
    counts = Counter(r.category for r in records if r.category)
    if not counts:
        return None
    category, count = counts.most_common(1)[0]
    return category, count, sum(counts.values())


def exact_confidence(majority_count: int, total: int) -> float:
    """Map (k, n) onto [0.90, 0.99], rewarding both agreement and volume"""
    if total <= 0:
        return 0.0
    agreement = majority_count / total
    # 0 at a coin-flip majority, 1 when unanimous
    agreement_strength = max(0.0, (agreement - 0.5) / 0.5)
    volume = min(total, VOLUME_SATURATION) / VOLUME_SATURATION
    volume_factor = 0.5 + 0.5 * volume
    return min(MAX_CONFIDENCE, BASE_CONFIDENCE + MAX_BONUS * agreement_strength * volume_factor)


class ExactMatchScorer:
    """Scores categories from literal merchant matches in history"""

    source = PredictionSource.EXACT

    @staticmethod
    def matching_records(merchant: str,
                         history: Sequence[ExpenseHistoryRecord]) -> List[ExpenseHistoryRecord]:
        key = normalize_key(merchant)
        if not key:
            return []
        return [r for r in history if normalize_key(r.merchant) == key]

    def score(self,
              merchant: str,
              history: Sequence[ExpenseHistoryRecord]) -> Optional[ScorerOutput]:
        """
        Args:
            merchant: Resolved merchant name
            history: Couple's expense history snapshot

        Returns:
            ScorerOutput for the majority category, or None (abstain) when
            the merchant never appears in history
        """
        majority = majority_category(self.matching_records(merchant, history))
        if majority is None:
            return None

        category, count, total = majority
        return ScorerOutput(
            category=category,
            confidence=exact_confidence(count, total),
            source=self.source,
            rationale=f"{count}/{total} past '{merchant.strip()}' expenses were {category}",
        )

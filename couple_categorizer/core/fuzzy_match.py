"""
Fuzzy Merchant Match Scorer

Finds the historical merchant most similar to the resolved merchant and
borrows its majority category. Similarity below 0.60 is treated as
coincidental overlap; above it, similarity maps linearly onto
confidence 0.60-0.85.
"""
from typing import Dict, List, Optional, Sequence

from .exact_match import majority_category
from .merchant_normalizer import normalize_key
from .models import ExpenseHistoryRecord, PredictionSource, ScorerOutput
from .similarity import SimilarityFunc, default_similarity

QUALIFYING_SIMILARITY = 0.60
MIN_CONFIDENCE = 0.60
MAX_CONFIDENCE = 0.85


def fuzzy_confidence(similarity: float) -> float:
    """Linear map of similarity [0.60, 1.0] onto confidence [0.60, 0.85]"""
    s = min(max(similarity, QUALIFYING_SIMILARITY), 1.0)
    span = MAX_CONFIDENCE - MIN_CONFIDENCE
    return MIN_CONFIDENCE + (s - QUALIFYING_SIMILARITY) / (1.0 - QUALIFYING_SIMILARITY) * span


class FuzzyMatchScorer:
    """
    Scores categories from approximate merchant-name matches.

    The merchant's own literal spelling is skipped; literal matches are the
    exact scorer's evidence and counting them twice would earn a spurious
    agreement bonus.
    """

    source = PredictionSource.FUZZY

    def __init__(self,
                 similarity: Optional[SimilarityFunc] = None,
                 threshold: float = QUALIFYING_SIMILARITY):
        self.similarity = similarity or default_similarity
        self.threshold = threshold

    @staticmethod
    def _group_by_merchant(history: Sequence[ExpenseHistoryRecord]) -> Dict[str, List[ExpenseHistoryRecord]]:
        """Distinct merchants (by lookup key) in first-seen order"""
        groups: Dict[str, List[ExpenseHistoryRecord]] = {}
        for record in history:
            key = normalize_key(record.merchant)
            if key:
                groups.setdefault(key, []).append(record)
        return groups

    def score(self,
              merchant: str,
              history: Sequence[ExpenseHistoryRecord]) -> Optional[ScorerOutput]:
        """
        Args:
            merchant: Resolved merchant name
            history: Couple's expense history snapshot

        Returns:
            ScorerOutput or None (abstain) when no historical merchant
            clears the similarity gate
        """
        key = normalize_key(merchant)
        if not key:
            return None

        best_records = None
        best_name = None
        best_similarity = -1.0

        for candidate_key, records in self._group_by_merchant(history).items():
            if candidate_key == key:
                continue

            name = records[0].merchant
            similarity = float(self.similarity(merchant.strip(), name))
            # Strictly greater keeps the first-seen merchant on ties
            if similarity >= self.threshold and similarity > best_similarity:
                best_similarity = similarity
                best_records = records
                best_name = name

        if best_records is None:
            return None

        majority = majority_category(best_records)
        if majority is None:
            return None

        category, count, total = majority
        return ScorerOutput(
            category=category,
            confidence=fuzzy_confidence(best_similarity),
            source=self.source,
            rationale=(
                f"similar to '{best_name}' ({best_similarity:.2f}); "
                f"{count}/{total} of those expenses were {category}"
            ),
        )

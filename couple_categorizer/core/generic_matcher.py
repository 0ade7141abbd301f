"""
Generic Category Matcher

History-independent fallback used for new couples and new merchants.

Two signals per category, each bounded to [0.40, 0.90]:
- merchant keywords (weight 0.75): global table of merchant-name substrings
- amount pattern (weight 0.25): how well the amount fits the category's
  typical range (a $5 ticket looks like coffee, $400 looks like home)

The matcher never abstains. A merchant that hits no keyword scores at most
0.525, which stays under the confidence gate: "no data" rather than
"no opinion".
"""
import re
from decimal import Decimal
from typing import Optional, Tuple, Union

from .merchant_normalizer import clean_merchant_name
from .models import PredictionSource, ScorerOutput
from .taxonomy import DEFAULT_GENERIC_RULES, GenericCategoryRule, GenericRules

SIGNAL_FLOOR = 0.40
SIGNAL_CEILING = 0.90
KEYWORD_WEIGHT = 0.75
AMOUNT_WEIGHT = 0.25
NEUTRAL_AMOUNT_SCORE = 0.5  # missing/zero/negative amounts


def _bounded(score: float) -> float:
    """Map a raw [0, 1] score onto the [0.40, 0.90] signal range"""
    score = min(max(score, 0.0), 1.0)
    return SIGNAL_FLOOR + (SIGNAL_CEILING - SIGNAL_FLOOR) * score


def keyword_score(text: str, keywords: Tuple[str, ...]) -> Tuple[float, list]:
    """
    Raw keyword score in [0, 1]; longer keywords count for more.

    Keywords match on word boundaries so "bar" does not fire on "barber".
    """
    if not text:
        return 0.0, []

    total_weight = 0.0
    hits = []
    for keyword in keywords:
        if re.search(r'\b' + re.escape(keyword.lower()) + r'\b', text):
            total_weight += len(keyword) / 8 * 1.5
            hits.append(keyword)

    if not hits:
        return 0.0, []
    return min(total_weight / 1.5, 1.0), hits


def amount_score(amount: float, rule: GenericCategoryRule) -> float:
    """Raw fit of an amount to the rule's range in [0.2, 1]"""
    if not amount or amount <= 0 or not rule.has_amount_window:
        return NEUTRAL_AMOUNT_SCORE

    low, high = rule.amount_min, rule.amount_max
    if low <= amount <= high:
        typical = rule.typical_amount if rule.typical_amount is not None else (low + high) / 2
        span = high - low
        typical_score = 1 - abs(amount - typical) / span if span > 0 else 1.0
        return max(0.7, min(typical_score, 1.0))

    if amount < low:
        return max(0.3, 0.7 - (low - amount) / low)
    return max(0.2, 0.7 - (amount - high) / high)


class GenericFallbackMatcher:
    """Keyword + amount heuristic over global tables"""

    source = PredictionSource.GENERIC

    def __init__(self, rules: Optional[GenericRules] = None):
        self.rules = rules or DEFAULT_GENERIC_RULES

    def score(self, merchant: Optional[str], amount: Union[float, Decimal, None] = 0) -> ScorerOutput:
        """
        Args:
            merchant: Raw or resolved merchant name
            amount: Expense amount

        Returns:
            Always a ScorerOutput with confidence in [0.40, 0.90]
        """
        text = clean_merchant_name(merchant).lower()
        value = float(amount or 0)

        best = None
        for rule in self.rules.rules:
            raw_keyword, hits = keyword_score(text, rule.keywords)
            keyword_signal = _bounded(raw_keyword)
            amount_signal = _bounded(amount_score(value, rule))
            combined = KEYWORD_WEIGHT * keyword_signal + AMOUNT_WEIGHT * amount_signal

            # Earlier rules win ties
            if best is None or combined > best[1]:
                best = (rule.category, combined, hits)

        category, combined, hits = best
        if hits:
            rationale = f"merchant name matches {', '.join(hits)}"
        else:
            rationale = f"no known merchant keyword; amount fits {category}"

        return ScorerOutput(
            category=category,
            confidence=min(max(combined, SIGNAL_FLOOR), SIGNAL_CEILING),
            source=self.source,
            rationale=rationale,
        )


def generic_category_matcher(merchant: Optional[str],
                             amount: Union[float, Decimal, None] = 0,
                             rules: Optional[GenericRules] = None) -> ScorerOutput:
    """Score one merchant with the generic tables (default: built-in rules)"""
    return GenericFallbackMatcher(rules).score(merchant, amount)

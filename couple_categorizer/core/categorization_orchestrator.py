"""
Categorization Orchestrator

Runs the four scorers over one immutable history snapshot and hands their
outputs to the ConfidenceAggregator:
1. Exact merchant match (couple's own history)
2. Fuzzy merchant match (similar merchants in history)
3. Description keywords (category keyword tables)
4. Generic fallback (global merchant/amount heuristics)

Alias resolution happens before scoring and is advisory: if it times out or
the alias store is down, the raw merchant text is scored instead.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .confidence_aggregator import ConfidenceAggregator
from .errors import StoreUnavailableError, ValidationError
from .exact_match import ExactMatchScorer
from .fuzzy_match import FuzzyMatchScorer
from .generic_matcher import GenericFallbackMatcher
from .keyword_scorer import KeywordScorer
from .merchant_alias_resolver import MerchantAliasResolver
from .models import CategoryDefinition, ExpenseHistoryRecord, PredictionResult, to_decimal
from .similarity import SimilarityFunc
from .taxonomy import DEFAULT_CATEGORIES, DEFAULT_GENERIC_RULES, GenericRules, generic_rules_for

logger = logging.getLogger(__name__)

HistoryInput = Iterable[Union[ExpenseHistoryRecord, Dict[str, Any]]]


def _as_records(history: Optional[HistoryInput]) -> Tuple[ExpenseHistoryRecord, ...]:
    """Freeze the history snapshot; ledger dicts are converted"""
    records = []
    for item in history or ():
        if isinstance(item, ExpenseHistoryRecord):
            records.append(item)
        elif isinstance(item, dict):
            records.append(ExpenseHistoryRecord.from_dict(item))
    return tuple(records)


def resolve_merchant(resolver: Optional[MerchantAliasResolver],
                     ocr_merchant: Optional[str],
                     couple_id: Optional[str],
                     timeout: Optional[float] = None) -> str:
    """
    Resolve a merchant through its alias, falling back to the raw text.

    Args:
        resolver: Alias resolver (None skips resolution)
        ocr_merchant: Raw merchant text
        couple_id: Owning couple
        timeout: Seconds to wait for the store (None waits indefinitely)

    Returns:
        The alias, or the trimmed raw merchant when resolution is not
        possible (no resolver, blank input, timeout, store unavailable)
    """
    raw = (ocr_merchant or '').strip()
    if resolver is None:
        return raw

    if timeout is None:
        try:
            return resolver.resolve(ocr_merchant, couple_id)
        except (StoreUnavailableError, ValidationError) as e:
            logger.warning("Alias resolution skipped for %r: %s", raw, e)
            return raw

    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(resolver.resolve, ocr_merchant, couple_id)
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        logger.warning("Alias resolution timed out after %.2fs for %r", timeout, raw)
        return raw
    except (StoreUnavailableError, ValidationError) as e:
        logger.warning("Alias resolution skipped for %r: %s", raw, e)
        return raw
    finally:
        # A late resolve still finishes its own transaction in the background
        executor.shutdown(wait=False)


class CategoryPredictor:
    """
    Predicts expense categories with explainable, calibrated confidence.

    Holds the immutable configuration (category tables, generic rules,
    similarity function) and running statistics. Safe to reuse across
    couples: nothing couple-specific is stored between calls.
    """

    def __init__(self,
                 categories: Optional[Sequence[CategoryDefinition]] = None,
                 generic_rules: Optional[GenericRules] = None,
                 similarity: Optional[SimilarityFunc] = None,
                 aggregator: Optional[ConfidenceAggregator] = None,
                 resolver: Optional[MerchantAliasResolver] = None,
                 alias_timeout: Optional[float] = None):
        """
        Args:
            categories: Category definitions for the keyword scorer
                (default: DEFAULT_CATEGORIES)
            generic_rules: Base tables for the generic fallback matcher; they
                are re-keyed to `categories` and their amount windows are
                replaced by each category's amount_range
            similarity: Fuzzy similarity function (default: rapidfuzz ratio)
            aggregator: Confidence aggregator (default: 0.55 gate)
            resolver: Alias resolver used by predict_receipt
            alias_timeout: Seconds predict_receipt waits for alias resolution
        """
        self.categories = tuple(categories) if categories is not None else DEFAULT_CATEGORIES
        self.exact_scorer = ExactMatchScorer()
        self.fuzzy_scorer = FuzzyMatchScorer(similarity)
        self.keyword_scorer = KeywordScorer(self.categories)
        self.generic_matcher = GenericFallbackMatcher(
            generic_rules_for(self.categories, generic_rules or DEFAULT_GENERIC_RULES)
        )
        self.aggregator = aggregator or ConfidenceAggregator()
        self.resolver = resolver
        self.alias_timeout = alias_timeout

        # Stats
        self.stats = {
            'total': 0,
            'exact': 0,
            'fuzzy': 0,
            'keyword': 0,
            'generic': 0,
            'below_threshold': 0,
            'scorer_errors': 0,
        }

    def _run_scorer(self, name: str, scorer_fn, *args):
        """Run one scorer; an exception counts as abstention"""
        try:
            return scorer_fn(*args)
        except Exception as e:
            logger.warning("%s scorer failed, treating as abstention: %s", name, e)
            self.stats['scorer_errors'] += 1
            return None

    def predict(self,
                merchant: Optional[str],
                amount: Any = 0,
                description: Optional[str] = '',
                history: Optional[HistoryInput] = None) -> PredictionResult:
        """
        Predict a category for one expense

        Args:
            merchant: Resolved (or raw) merchant name
            amount: Expense amount
            description: Free-text description
            history: Couple's past expenses

        Returns:
            PredictionResult; never raises for bad or missing data
        """
        return self._predict(merchant, amount, description, _as_records(history))

    def _predict(self, merchant, amount, description, records) -> PredictionResult:
        merchant = (merchant or '').strip()
        value = float(to_decimal(amount))

        outputs = [
            self._run_scorer('exact', self.exact_scorer.score, merchant, records),
            self._run_scorer('fuzzy', self.fuzzy_scorer.score, merchant, records),
            self._run_scorer('keyword', self.keyword_scorer.score, description),
            self._run_scorer('generic', self.generic_matcher.score, merchant, value),
        ]
        result = self.aggregator.aggregate(outputs)

        self.stats['total'] += 1
        if result.below_threshold:
            self.stats['below_threshold'] += 1
        else:
            self.stats[result.source.value] += 1

        logger.debug("Predicted %r -> %s (%.2f, %s)",
                     merchant, result.category, result.confidence, result.source.value)
        return result

    def predict_batch(self,
                      expenses: Iterable[Dict[str, Any]],
                      history: Optional[HistoryInput] = None) -> List[PredictionResult]:
        """
        Predict categories for many expenses against one history snapshot

        Args:
            expenses: Dicts with 'merchant', 'amount' and 'description' keys
            history: Couple's past expenses

        Returns:
            One PredictionResult per expense, in input order
        """
        records = _as_records(history)
        return [
            self._predict(e.get('merchant'), e.get('amount'), e.get('description'), records)
            for e in expenses
        ]

    def predict_receipt(self,
                        ocr_merchant: Optional[str],
                        couple_id: Optional[str],
                        amount: Any = 0,
                        description: Optional[str] = '',
                        history: Optional[HistoryInput] = None) -> Tuple[str, PredictionResult]:
        """
        Resolve the merchant alias, then predict.

        Returns:
            (display merchant, PredictionResult)
        """
        merchant = resolve_merchant(self.resolver, ocr_merchant, couple_id, self.alias_timeout)
        return merchant, self.predict(merchant, amount, description, history)

    def print_stats(self):
        """Print prediction statistics"""
        if self.stats['total'] == 0:
            print("No expenses categorized yet")
            return

        total = self.stats['total']

        print("\n" + "=" * 80)
        print("📊 CATEGORIZATION STATISTICS")
        print("=" * 80)
        print(f"Total expenses: {total}")
        print(f"\n✅ Confident predictions by source:")
        for source in ('exact', 'fuzzy', 'keyword', 'generic'):
            print(f"  • {source.capitalize()}: {self.stats[source]} ({self.stats[source]/total*100:.1f}%)")

        print(f"\n📋 Review Status:")
        print(f"  • Below {self.aggregator.threshold*100:.0f}% (needs a pick): "
              f"{self.stats['below_threshold']} ({self.stats['below_threshold']/total*100:.1f}%)")
        if self.stats['scorer_errors']:
            print(f"  • Scorer errors: {self.stats['scorer_errors']}")

        print("=" * 80)


def predict_category(merchant: Optional[str],
                     amount: Any,
                     description: Optional[str],
                     history: Optional[HistoryInput],
                     categories: Optional[Sequence[CategoryDefinition]] = None,
                     *,
                     similarity: Optional[SimilarityFunc] = None,
                     generic_rules: Optional[GenericRules] = None,
                     threshold: Optional[float] = None) -> PredictionResult:
    """
    Predict a category for one expense.

    Callers wanting alias-aware display names resolve the merchant first
    (see resolve_merchant) and pass history already scoped to the couple.
    """
    aggregator = ConfidenceAggregator(threshold) if threshold is not None else None
    predictor = CategoryPredictor(
        categories=categories,
        generic_rules=generic_rules,
        similarity=similarity,
        aggregator=aggregator,
    )
    return predictor.predict(merchant, amount, description, history)

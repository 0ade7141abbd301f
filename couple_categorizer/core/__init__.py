"""
Couple Categorizer core

Merchant alias resolution and explainable category prediction for a
couples expense tracker.
"""

from .alias_store import AliasStore, AliasTransaction, InMemoryAliasStore
from .categorization_orchestrator import CategoryPredictor, predict_category, resolve_merchant
from .confidence_aggregator import ConfidenceAggregator
from .errors import (
    CategorizerError,
    ConflictError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from .exact_match import ExactMatchScorer
from .fuzzy_match import FuzzyMatchScorer
from .generic_matcher import GenericFallbackMatcher, generic_category_matcher
from .keyword_scorer import KeywordScorer
from .merchant_alias_resolver import MerchantAliasResolver
from .models import (
    Alternative,
    CategoryDefinition,
    ExpenseHistoryRecord,
    MerchantAlias,
    PredictionResult,
    PredictionSource,
    ScorerOutput,
)

__all__ = [
    'AliasStore',
    'AliasTransaction',
    'InMemoryAliasStore',
    'CategoryPredictor',
    'predict_category',
    'resolve_merchant',
    'ConfidenceAggregator',
    'CategorizerError',
    'ConflictError',
    'NotFoundError',
    'StoreUnavailableError',
    'ValidationError',
    'ExactMatchScorer',
    'FuzzyMatchScorer',
    'GenericFallbackMatcher',
    'generic_category_matcher',
    'KeywordScorer',
    'MerchantAliasResolver',
    'Alternative',
    'CategoryDefinition',
    'ExpenseHistoryRecord',
    'MerchantAlias',
    'PredictionResult',
    'PredictionSource',
    'ScorerOutput',
]

"""
Couple Categorizer

Learns a couple's merchant aliases and spending history to categorize new
expenses with calibrated, explainable confidence.
"""

__version__ = "1.0.0"

from .core import (
    CategoryPredictor,
    InMemoryAliasStore,
    MerchantAliasResolver,
    PredictionResult,
    predict_category,
)

__all__ = [
    'CategoryPredictor',
    'InMemoryAliasStore',
    'MerchantAliasResolver',
    'PredictionResult',
    'predict_category',
]

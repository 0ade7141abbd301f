"""
String similarity capability.

The fuzzy scorer only depends on a callable `(a, b) -> float in [0, 1]`.
The default uses rapidfuzz's normalized Indel ratio on normalized keys, so
"Whole Foods" vs "Whole Foods Market" scores ~0.76.
"""
from typing import Callable

from rapidfuzz import fuzz

from .merchant_normalizer import normalize_key

SimilarityFunc = Callable[[str, str], float]


def default_similarity(a: str, b: str) -> float:
    """Case/whitespace-insensitive similarity in [0, 1]"""
    left = normalize_key(a)
    right = normalize_key(b)
    if not left or not right:
        return 0.0
    return fuzz.ratio(left, right) / 100.0

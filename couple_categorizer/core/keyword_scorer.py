"""
Keyword Scorer

Scores categories by how many distinct configured keywords appear in the
expense description. One hit gives 0.50; each extra distinct hit adds 0.10
up to 0.80. Ties go to the category declared first.
"""
import re
from typing import List, Optional, Sequence, Set

from .models import CategoryDefinition, PredictionSource, ScorerOutput

SINGLE_HIT_CONFIDENCE = 0.50
PER_EXTRA_HIT = 0.10
MAX_CONFIDENCE = 0.80

# Unicode word characters, so "crème" and "寿司" stay whole tokens
TOKEN_PATTERN = re.compile(r"\w+(?:'\w+)*")


def tokenize(text: Optional[str]) -> List[str]:
    """Case-folded word tokens"""
    if not text:
        return []
    return TOKEN_PATTERN.findall(text.casefold())


def keyword_confidence(hits: int) -> float:
    if hits <= 0:
        return 0.0
    return min(MAX_CONFIDENCE, SINGLE_HIT_CONFIDENCE + PER_EXTRA_HIT * (hits - 1))


def matched_keywords(tokens: Sequence[str], keywords: Set[str]) -> List[str]:
    """
    Distinct keywords present in the token stream.

    Multi-word keywords ("gas station") must appear as consecutive tokens.
    """
    token_set = set(tokens)
    padded = f" {' '.join(tokens)} "
    hits = []
    for keyword in sorted(keywords):
        keyword_tokens = tokenize(keyword)
        if not keyword_tokens:
            continue
        if len(keyword_tokens) == 1:
            found = keyword_tokens[0] in token_set
        else:
            found = f" {' '.join(keyword_tokens)} " in padded
        if found:
            hits.append(keyword)
    return hits


class KeywordScorer:
    """Scores categories from description keywords"""

    source = PredictionSource.KEYWORD

    def __init__(self, categories: Sequence[CategoryDefinition]):
        """
        Args:
            categories: Category definitions in declaration order
        """
        self.categories = tuple(categories)

    def score(self, description: Optional[str]) -> Optional[ScorerOutput]:
        """
        Returns:
            ScorerOutput for the category with the most distinct hits, or
            None (abstain) when no keyword matches
        """
        tokens = tokenize(description)
        if not tokens:
            return None

        best_category = None
        best_hits: List[str] = []
        for definition in self.categories:
            hits = matched_keywords(tokens, definition.keywords)
            # Strictly more hits; earlier declarations win ties
            if len(hits) > len(best_hits):
                best_category = definition.key
                best_hits = hits

        if best_category is None:
            return None

        return ScorerOutput(
            category=best_category,
            confidence=keyword_confidence(len(best_hits)),
            source=self.source,
            rationale=f"description mentions {', '.join(best_hits)}",
        )

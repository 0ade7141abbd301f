"""
Confidence Aggregator

Combines the non-abstaining scorer outputs into one PredictionResult:

1. Group outputs by category; a group's confidence is its best member's,
   plus +0.10 (capped at 0.99) when two or more distinct sources agree.
2. The best group wins; ties go to the group holding the higher-priority
   source (exact > fuzzy > keyword > generic).
3. Remaining groups become the alternatives, best first, at most three.
4. Below 0.55 the category is withheld, and the would-be winner is offered
   as alternatives[0] instead.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .models import Alternative, PredictionResult, PredictionSource, ScorerOutput

CONFIDENCE_THRESHOLD = 0.55
AGREEMENT_BONUS = 0.10
AGREEMENT_CAP = 0.99
MAX_ALTERNATIVES = 3


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(max(float(value), low), high)


@dataclass
class _CategoryGroup:
    category: str
    members: List[ScorerOutput]
    confidence: float = 0.0

    @property
    def top(self) -> ScorerOutput:
        """Most confident member; higher-priority source on ties"""
        return min(self.members, key=lambda o: (-o.confidence, o.source.priority))

    @property
    def best_priority(self) -> int:
        return min(o.source.priority for o in self.members)

    @property
    def sources(self) -> List[PredictionSource]:
        return sorted({o.source for o in self.members}, key=lambda s: s.priority)


class ConfidenceAggregator:
    """Turns scorer outputs into a gated, ranked PredictionResult"""

    def __init__(self,
                 threshold: float = CONFIDENCE_THRESHOLD,
                 agreement_bonus: float = AGREEMENT_BONUS,
                 max_alternatives: int = MAX_ALTERNATIVES):
        self.threshold = threshold
        self.agreement_bonus = agreement_bonus
        self.max_alternatives = max_alternatives

    def _group(self, outputs: Iterable[ScorerOutput]) -> List[_CategoryGroup]:
        groups: Dict[str, _CategoryGroup] = {}
        for output in outputs:
            group = groups.setdefault(output.category, _CategoryGroup(output.category, []))
            group.members.append(output)

        for group in groups.values():
            confidence = max(o.confidence for o in group.members)
            if len(group.sources) >= 2:
                confidence = min(AGREEMENT_CAP, confidence + self.agreement_bonus)
            group.confidence = clamp(confidence)

        # Best first: combined confidence, then source priority
        return sorted(groups.values(), key=lambda g: (-g.confidence, g.best_priority))

    @staticmethod
    def _rationale(group: _CategoryGroup) -> Optional[str]:
        rationale = group.top.rationale
        if len(group.sources) >= 2:
            agreeing = ', '.join(s.value for s in group.sources)
            note = f"agreement between {agreeing}"
            rationale = f"{rationale}; {note}" if rationale else note
        return rationale

    def aggregate(self, outputs: Iterable[Optional[ScorerOutput]]) -> PredictionResult:
        """
        Args:
            outputs: Scorer outputs; None entries are abstentions

        Returns:
            PredictionResult (never raises for empty input)
        """
        ranked = self._group(o for o in outputs if o is not None)
        if not ranked:
            return PredictionResult(
                category=None,
                confidence=0.0,
                source=PredictionSource.GENERIC,
                below_threshold=True,
                alternatives=(),
                rationale='no scorer produced a category',
            )

        winner, others = ranked[0], ranked[1:]
        alternatives = [Alternative(g.category, g.confidence) for g in others]

        below_threshold = winner.confidence < self.threshold
        if below_threshold:
            alternatives.insert(0, Alternative(winner.category, winner.confidence))

        return PredictionResult(
            category=None if below_threshold else winner.category,
            confidence=winner.confidence,
            source=winner.top.source,
            below_threshold=below_threshold,
            alternatives=tuple(alternatives[:self.max_alternatives]),
            rationale=self._rationale(winner),
        )

"""
Categorization Data Model

Dataclasses passed between the alias resolver, the scorers and the
aggregator. Everything except MerchantAlias is immutable.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple


class PredictionSource(str, Enum):
    """Which scorer produced a signal"""
    EXACT = 'exact'
    FUZZY = 'fuzzy'
    KEYWORD = 'keyword'
    GENERIC = 'generic'

    @property
    def priority(self) -> int:
        """Lower value wins ties: exact > fuzzy > keyword > generic"""
        return _SOURCE_PRIORITY[self]


_SOURCE_PRIORITY = {
    PredictionSource.EXACT: 0,
    PredictionSource.FUZZY: 1,
    PredictionSource.KEYWORD: 2,
    PredictionSource.GENERIC: 3,
}


def to_decimal(value: Any) -> Decimal:
    """Coerce ledger amounts (str, float, int, Decimal) to Decimal; junk and NaN/inf become 0"""
    if isinstance(value, Decimal):
        amount = value
    elif value is None or value == '':
        return Decimal('0')
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return Decimal('0')
    return amount if amount.is_finite() else Decimal('0')


@dataclass
class MerchantAlias:
    """
    Learned mapping from a raw OCR/manual merchant string to a display name,
    scoped to a couple.
    """
    ocr_merchant: str
    ocr_merchant_normalized: str
    user_alias: str
    user_alias_normalized: str
    couple_id: str
    usage_count: int = 1
    created_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    created_by: Optional[str] = None
    id: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        """Render the persisted document layout (stable camelCase field names)"""
        doc = {
            'ocrMerchant': self.ocr_merchant,
            'ocrMerchantNormalized': self.ocr_merchant_normalized,
            'userAlias': self.user_alias,
            'userAliasNormalized': self.user_alias_normalized,
            'coupleId': self.couple_id,
            'usageCount': self.usage_count,
            'createdAt': self.created_at,
            'lastUsedAt': self.last_used_at,
        }
        if self.created_by:
            doc['createdBy'] = self.created_by
        return doc

    @classmethod
    def from_document(cls, alias_id: Optional[str], doc: Dict[str, Any]) -> 'MerchantAlias':
        return cls(
            id=alias_id,
            ocr_merchant=doc['ocrMerchant'],
            ocr_merchant_normalized=doc['ocrMerchantNormalized'],
            user_alias=doc['userAlias'],
            user_alias_normalized=doc['userAliasNormalized'],
            couple_id=doc['coupleId'],
            usage_count=int(doc.get('usageCount') or 0),
            created_at=doc.get('createdAt'),
            last_used_at=doc.get('lastUsedAt'),
            created_by=doc.get('createdBy'),
        )


@dataclass(frozen=True)
class ExpenseHistoryRecord:
    """One past transaction from the expense ledger (read-only)"""
    merchant: str
    category: str
    amount: Decimal = Decimal('0')
    description: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExpenseHistoryRecord':
        """Build from a ledger row such as {'merchant': ..., 'category': ..., 'amount': 12.5}"""
        return cls(
            merchant=(data.get('merchant') or '').strip(),
            category=(data.get('category') or '').strip(),
            amount=to_decimal(data.get('amount')),
            description=(data.get('description') or '').strip(),
        )


@dataclass(frozen=True)
class CategoryDefinition:
    """Category configuration: key, keyword set, optional amount hint"""
    key: str
    keywords: FrozenSet[str] = frozenset()
    amount_range: Optional[Tuple[float, float]] = None
    name: Optional[str] = None

    @classmethod
    def create(cls,
               key: str,
               keywords: Iterable[str] = (),
               amount_range: Optional[Tuple[float, float]] = None,
               name: Optional[str] = None) -> 'CategoryDefinition':
        """Build a definition with keywords lower-cased and frozen"""
        return cls(
            key=key,
            keywords=frozenset(k.strip().lower() for k in keywords if k and k.strip()),
            amount_range=tuple(amount_range) if amount_range else None,
            name=name,
        )


@dataclass(frozen=True)
class ScorerOutput:
    """A single non-abstaining scorer's opinion"""
    category: str
    confidence: float
    source: PredictionSource
    rationale: Optional[str] = None


@dataclass(frozen=True)
class Alternative:
    category: str
    confidence: float


@dataclass(frozen=True)
class PredictionResult:
    """Final categorization decision, built fresh on every call"""
    category: Optional[str]
    confidence: float
    source: PredictionSource
    below_threshold: bool
    alternatives: Tuple[Alternative, ...] = field(default_factory=tuple)
    rationale: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """camelCase rendering for callers forwarding the result to the app"""
        return {
            'category': self.category,
            'confidence': self.confidence,
            'source': self.source.value,
            'belowThreshold': self.below_threshold,
            'alternatives': [
                {'category': alt.category, 'confidence': alt.confidence}
                for alt in self.alternatives
            ],
        }

"""
Category Taxonomy

Immutable default tables for the keyword scorer and the generic fallback
matcher, a loader for couple-specific taxonomy JSON files, and the
derivation of generic tables from a couple's own categories.

Taxonomy JSON format (same wrapper the budget dashboards use):
{
  "categories": [
    {"key": "food", "name": "Food & Dining",
     "keywords": ["coffee", "lunch"], "amount_range": [3, 150]}
  ]
}
"""
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .models import CategoryDefinition


@dataclass(frozen=True)
class GenericCategoryRule:
    """Merchant-name keywords and amount pattern for one category"""
    category: str
    keywords: Tuple[str, ...]
    amount_min: Optional[float] = None
    amount_max: Optional[float] = None
    typical_amount: Optional[float] = None

    @property
    def has_amount_window(self) -> bool:
        return self.amount_min is not None and self.amount_max is not None


@dataclass(frozen=True)
class GenericRules:
    """Global, history-independent tables for the generic fallback matcher"""
    rules: Tuple[GenericCategoryRule, ...]

    def rule_for(self, category: str) -> Optional[GenericCategoryRule]:
        return next((rule for rule in self.rules if rule.category == category), None)


DEFAULT_CATEGORIES: Tuple[CategoryDefinition, ...] = (
    CategoryDefinition.create(
        'groceries',
        ['grocery', 'groceries', 'produce', 'vegetables', 'fruits', 'milk',
         'eggs', 'bread', 'supermarket', 'organic'],
        amount_range=(20, 300),
        name='Groceries',
    ),
    CategoryDefinition.create(
        'food',
        ['coffee', 'breakfast', 'lunch', 'dinner', 'restaurant', 'cafe',
         'burger', 'pizza', 'sushi', 'meal', 'bagel', 'latte', 'takeout'],
        amount_range=(3, 150),
        name='Food & Dining',
    ),
    CategoryDefinition.create(
        'transport',
        ['gas', 'gasoline', 'fuel', 'uber', 'lyft', 'ride', 'taxi', 'parking',
         'transit', 'car', 'toll'],
        amount_range=(5, 100),
        name='Transport',
    ),
    CategoryDefinition.create(
        'home',
        ['hardware', 'furniture', 'paint', 'home', 'house', 'renovation',
         'repair', 'fixture', 'garden', 'lawn', 'plumbing'],
        amount_range=(20, 500),
        name='Home & Utilities',
    ),
    CategoryDefinition.create(
        'fun',
        ['movie', 'theater', 'game', 'entertainment', 'ticket', 'tickets',
         'concert', 'sport', 'hobby', 'museum'],
        amount_range=(5, 200),
        name='Entertainment',
    ),
    CategoryDefinition.create('other', [], name='Other'),
)


DEFAULT_GENERIC_RULES = GenericRules(rules=(
    GenericCategoryRule(
        category='groceries',
        keywords=(
            'whole foods', 'trader joes', 'safeway', 'kroger', 'albertsons',
            'costco', 'walmart', 'target', 'aldi', 'sprouts', 'fresh market',
            'grocery', 'groceries', 'supermarket', 'market', 'food store',
            'produce', 'organic', 'farmers market',
        ),
        amount_min=20, amount_max=300, typical_amount=60,
    ),
    GenericCategoryRule(
        category='food',
        keywords=(
            'starbucks', 'coffee', 'cafe', 'restaurant', 'bistro', 'grill',
            'pizza', 'burger', 'taco', 'sushi', 'diner', 'bakery',
            'mcdonalds', 'subway', 'chipotle', 'panera', 'wendys',
            'dunkin', 'donut', 'breakfast', 'lunch', 'dinner',
            'kitchen', 'bar', 'pub', 'tavern', 'eatery', 'dining',
        ),
        amount_min=3, amount_max=150, typical_amount=15,
    ),
    GenericCategoryRule(
        category='transport',
        keywords=(
            'shell', 'chevron', 'bp', 'exxon', 'mobil', 'texaco', 'gas',
            'gasoline', 'fuel', 'petrol', 'station',
            'uber', 'lyft', 'taxi', 'ride', 'transit', 'metro', 'bus',
            'parking', 'garage', 'toll', 'auto', 'car',
        ),
        amount_min=5, amount_max=100, typical_amount=45,
    ),
    GenericCategoryRule(
        category='home',
        keywords=(
            'home depot', 'lowes', 'ace hardware', 'hardware',
            'ikea', 'furniture', 'bed bath', 'wayfair',
            'paint', 'lumber', 'tools', 'renovation', 'improvement',
            'garden', 'lawn', 'plumbing', 'electrical', 'fixture',
        ),
        amount_min=20, amount_max=500, typical_amount=100,
    ),
    GenericCategoryRule(
        category='fun',
        keywords=(
            'amc', 'theater', 'theatre', 'cinema', 'movie', 'film',
            'netflix', 'hulu', 'spotify', 'entertainment', 'streaming',
            'game', 'gaming', 'playstation', 'xbox', 'steam',
            'concert', 'ticket', 'museum', 'park', 'zoo',
            'golf', 'bowling', 'arcade', 'hobby', 'sport',
        ),
        amount_min=5, amount_max=200, typical_amount=30,
    ),
))


def _category_from_entry(entry: Union[Dict, str]) -> Optional[CategoryDefinition]:
    """Accept either {"key"/"name", "keywords", ...} dicts or bare names"""
    if isinstance(entry, str):
        return CategoryDefinition.create(entry)
    if not isinstance(entry, dict):
        return None

    key = entry.get('key') or entry.get('category') or entry.get('name')
    if not key:
        return None
    return CategoryDefinition.create(
        key,
        entry.get('keywords', []),
        amount_range=entry.get('amount_range'),
        name=entry.get('name'),
    )


def categories_from_data(raw_data: Union[Dict, List]) -> Tuple[CategoryDefinition, ...]:
    """
    Build category definitions from parsed taxonomy JSON.

    Handles both the {"categories": [...]} wrapper and a bare list.
    Declaration order is preserved (it breaks keyword-scorer ties).
    """
    if isinstance(raw_data, dict) and 'categories' in raw_data:
        raw_taxonomy = raw_data['categories']
    else:
        raw_taxonomy = raw_data

    definitions = []
    if isinstance(raw_taxonomy, list):
        for item in raw_taxonomy:
            definition = _category_from_entry(item)
            if definition:
                definitions.append(definition)
    elif isinstance(raw_taxonomy, dict):
        # {"food": ["coffee", ...], ...}
        for key, keywords in raw_taxonomy.items():
            definitions.append(CategoryDefinition.create(key, keywords or []))

    return tuple(definitions)


def load_categories(taxonomy_path: Union[str, Path]) -> Tuple[CategoryDefinition, ...]:
    """Load category definitions from a taxonomy JSON file"""
    with open(taxonomy_path, encoding='utf-8') as f:
        return categories_from_data(json.load(f))


def _valid_range(amount_range) -> Optional[Tuple[float, float]]:
    """(min, max) when usable as an amount window, else None"""
    if not amount_range or len(amount_range) != 2:
        return None
    try:
        low, high = float(amount_range[0]), float(amount_range[1])
    except (TypeError, ValueError):
        return None
    if low < 0 or high <= 0 or low > high:
        return None
    return low, high


def generic_rules_for(categories: Iterable[CategoryDefinition],
                      base: GenericRules = DEFAULT_GENERIC_RULES) -> GenericRules:
    """
    Generic fallback tables keyed to a caller's categories.

    Each category keeps the base table's merchant keywords when the base
    knows its key, otherwise its own keywords double as merchant-name
    keywords. A category's amount_range replaces the base amount window.
    Categories with no keywords and no amount window carry no signal and
    are left out, unless none carries one (then all of them compete on
    the neutral score, so the fallback still names a caller category).

    An empty category list returns the base tables unchanged.
    """
    definitions = list(categories)
    if not definitions:
        return base

    rules = []
    for definition in definitions:
        base_rule = base.rule_for(definition.key)
        keywords = base_rule.keywords if base_rule else tuple(sorted(definition.keywords))

        window = _valid_range(definition.amount_range)
        if window is None and base_rule and base_rule.has_amount_window:
            window = (base_rule.amount_min, base_rule.amount_max)
            typical = base_rule.typical_amount
        elif window is not None:
            low, high = window
            if base_rule and base_rule.typical_amount is not None and low <= base_rule.typical_amount <= high:
                typical = base_rule.typical_amount
            else:
                typical = (low + high) / 2
        else:
            typical = None

        rules.append(GenericCategoryRule(
            category=definition.key,
            keywords=keywords,
            amount_min=window[0] if window else None,
            amount_max=window[1] if window else None,
            typical_amount=typical,
        ))

    with_signal = [rule for rule in rules if rule.keywords or rule.has_amount_window]
    return GenericRules(rules=tuple(with_signal or rules))

"""Shared fixtures"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from couple_categorizer.core.alias_store import InMemoryAliasStore
from couple_categorizer.core.merchant_alias_resolver import MerchantAliasResolver
from couple_categorizer.core.models import ExpenseHistoryRecord
from couple_categorizer.core.taxonomy import DEFAULT_CATEGORIES


def _records(merchant, category, count, amount, description=''):
    return [
        ExpenseHistoryRecord(merchant, category, Decimal(str(amount)), description)
        for _ in range(count)
    ]


@pytest.fixture
def repeated_merchants_user():
    """A couple with a long, consistent history at three merchants"""
    return (
        _records('Starbucks', 'food', 20, '5.75', 'coffee')
        + _records('Shell Gas Station', 'transport', 15, '48.20')
        + _records('Home Depot', 'home', 10, '112.35', 'paint and supplies')
    )


@pytest.fixture
def whole_foods_history():
    return _records('Whole Foods Market', 'groceries', 3, '84.10')


@pytest.fixture
def categories():
    return DEFAULT_CATEGORIES


class FakeClock:
    """Deterministic, advancing clock"""

    def __init__(self):
        self.now = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        current = self.now
        self.now = self.now + timedelta(minutes=1)
        return current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryAliasStore()


@pytest.fixture
def resolver(store, clock):
    return MerchantAliasResolver(store, clock=clock)

import pytest

from couple_categorizer.core.generic_matcher import (
    GenericFallbackMatcher,
    amount_score,
    generic_category_matcher,
    keyword_score,
)
from couple_categorizer.core.models import PredictionSource
from couple_categorizer.core.taxonomy import DEFAULT_GENERIC_RULES, GenericCategoryRule, GenericRules

GROCERIES = DEFAULT_GENERIC_RULES.rules[0]


def test_unknown_store_still_gets_a_category():
    output = generic_category_matcher("Unknown Store", 50.00)

    assert output.category is not None
    assert output.source == PredictionSource.GENERIC
    assert 0.40 <= output.confidence <= 0.90


def test_unknown_store_stays_below_gate():
    output = generic_category_matcher("Unknown Store", 50.00)
    assert output.category == 'groceries'
    assert output.confidence == pytest.approx(0.5205, abs=1e-3)
    assert output.rationale.startswith('no known merchant keyword')


def test_known_merchant_is_confident():
    output = generic_category_matcher("Starbucks", 5.25)
    assert output.category == 'food'
    assert output.confidence > 0.85


def test_gas_station_is_transport():
    assert generic_category_matcher("SHELL OIL 57442", 45.00).category == 'transport'


def test_random_store_large_amount_is_low():
    output = generic_category_matcher("Random Store XYZ 123", 999.99)
    assert output.confidence == pytest.approx(0.425)


@pytest.mark.parametrize("merchant", ["Starbucks", "Unknown Store", "", None, "Home Depot #4411"])
@pytest.mark.parametrize("amount", [0, -20, 0.01, 5, 60, 450, 10**9])
def test_confidence_always_in_band(merchant, amount):
    output = GenericFallbackMatcher().score(merchant, amount)
    assert 0.40 <= output.confidence <= 0.90


def test_keywords_match_whole_words_only():
    score, hits = keyword_score("barber shop", ('bar',))
    assert score == 0.0
    assert hits == []


def test_longer_keywords_weigh_more():
    short, _ = keyword_score("bp", ('bp',))
    long, _ = keyword_score("whole foods", ('whole foods',))
    assert short < long == 1.0


class TestAmountScore:

    def test_typical_amount_is_best(self):
        assert amount_score(60, GROCERIES) == pytest.approx(1.0)

    def test_in_range_floor(self):
        assert amount_score(300, GROCERIES) >= 0.7

    def test_below_range(self):
        assert amount_score(10, GROCERIES) == pytest.approx(0.3)

    def test_far_above_range(self):
        assert amount_score(5000, GROCERIES) == pytest.approx(0.2)

    @pytest.mark.parametrize("amount", [0, -5, None])
    def test_missing_amount_is_neutral(self, amount):
        assert amount_score(amount, GROCERIES) == 0.5


def test_injected_rules_replace_defaults():
    rules = GenericRules(rules=(
        GenericCategoryRule('pets', ('petco',), amount_min=10, amount_max=200, typical_amount=50),
    ))
    output = GenericFallbackMatcher(rules).score("PETCO #55", 40)

    assert output.category == 'pets'
    assert 'petco' in output.rationale


def test_rule_without_amount_window_is_neutral():
    rule = GenericCategoryRule('other', ('misc',))
    assert amount_score(120, rule) == 0.5


def test_zero_width_window():
    rule = GenericCategoryRule('rent', (), amount_min=1000, amount_max=1000, typical_amount=1000)
    assert amount_score(1000, rule) == pytest.approx(1.0)

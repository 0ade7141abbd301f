import pytest

from couple_categorizer.core.confidence_aggregator import ConfidenceAggregator
from couple_categorizer.core.models import Alternative, PredictionSource, ScorerOutput

EXACT = PredictionSource.EXACT
FUZZY = PredictionSource.FUZZY
KEYWORD = PredictionSource.KEYWORD
GENERIC = PredictionSource.GENERIC


def out(category, confidence, source, rationale=None):
    return ScorerOutput(category, confidence, source, rationale)


@pytest.fixture
def aggregator():
    return ConfidenceAggregator()


@pytest.mark.parametrize("outputs", [[], [None, None, None, None]])
def test_no_outputs(aggregator, outputs):
    result = aggregator.aggregate(outputs)

    assert result.category is None
    assert result.confidence == 0.0
    assert result.source == GENERIC
    assert result.below_threshold is True
    assert result.alternatives == ()


def test_single_output(aggregator):
    result = aggregator.aggregate([out('food', 0.95, EXACT), None, None, None])

    assert result.category == 'food'
    assert result.confidence == pytest.approx(0.95)
    assert result.source == EXACT
    assert result.below_threshold is False
    assert result.alternatives == ()


def test_agreement_bonus_is_capped(aggregator):
    result = aggregator.aggregate([out('food', 0.95, EXACT), out('food', 0.80, GENERIC)])
    assert result.confidence == pytest.approx(0.99)
    assert result.source == EXACT


def test_agreement_bonus(aggregator):
    result = aggregator.aggregate([out('food', 0.70, KEYWORD), out('food', 0.52, GENERIC)])
    assert result.confidence == pytest.approx(0.80)
    assert 'agreement between keyword, generic' in result.rationale


def test_same_source_twice_is_not_agreement(aggregator):
    result = aggregator.aggregate([out('food', 0.50, KEYWORD), out('food', 0.60, KEYWORD)])
    assert result.confidence == pytest.approx(0.60)


def test_ties_broken_by_source_priority(aggregator):
    result = aggregator.aggregate([out('food', 0.70, KEYWORD), out('groceries', 0.70, FUZZY)])

    assert result.category == 'groceries'
    assert result.source == FUZZY
    assert result.alternatives == (Alternative('food', 0.70),)


def test_alternatives_sorted_and_capped(aggregator):
    result = aggregator.aggregate([
        out('a', 0.90, EXACT),
        out('b', 0.60, FUZZY),
        out('c', 0.70, KEYWORD),
        out('d', 0.45, GENERIC),
        out('e', 0.55, KEYWORD),
    ])

    assert result.category == 'a'
    assert [alt.category for alt in result.alternatives] == ['c', 'b', 'e']
    assert all('a' != alt.category for alt in result.alternatives)


def test_below_threshold_offers_winner_first(aggregator):
    result = aggregator.aggregate([out('home', 0.52, GENERIC), out('fun', 0.50, KEYWORD)])

    assert result.category is None
    assert result.below_threshold is True
    assert result.confidence == pytest.approx(0.52)
    assert result.source == GENERIC
    assert result.alternatives == (Alternative('home', 0.52), Alternative('fun', 0.50))


def test_below_threshold_alternatives_capped(aggregator):
    result = aggregator.aggregate([
        out('a', 0.50, GENERIC),
        out('b', 0.45, GENERIC),
        out('c', 0.44, GENERIC),
        out('d', 0.43, GENERIC),
    ])
    assert [alt.category for alt in result.alternatives] == ['a', 'b', 'c']


def test_threshold_is_inclusive(aggregator):
    result = aggregator.aggregate([out('food', 0.55, KEYWORD)])
    assert result.category == 'food'
    assert result.below_threshold is False


def test_custom_threshold():
    result = ConfidenceAggregator(threshold=0.75).aggregate([out('food', 0.70, KEYWORD)])
    assert result.category is None


def test_out_of_range_confidences_are_clamped(aggregator):
    result = aggregator.aggregate([out('food', 1.4, EXACT), out('fun', -0.2, GENERIC)])

    assert result.confidence == 1.0
    assert result.alternatives == (Alternative('fun', 0.0),)


def test_outputs_are_not_modified(aggregator):
    outputs = [out('food', 0.70, KEYWORD), out('food', 0.52, GENERIC)]
    aggregator.aggregate(outputs)
    assert [o.confidence for o in outputs] == [0.70, 0.52]

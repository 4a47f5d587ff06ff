"""
Tests for threshold conditions.

Hit clustering requires every condition to hold, alignment pruning needs a
single one. Both combinations are checked on the same metrics so that a
change to either rule shows up here.
"""
import pytest

from phygecluster.conditions import (
    Condition,
    all_conditions_hold,
    any_condition_holds,
    parse_conditions,
)
from phygecluster.exceptions import ConfigurationError

PERMITTED = ('length', 'num_sequences', 'percent_identity')


class TestParseConditions:

    def test_valid_conditions_keep_order(self):
        parsed = parse_conditions({'length': ('<', 100), 'num_sequences': ['>=', '3']}, PERMITTED)
        assert parsed == [Condition('length', '<', 100), Condition('num_sequences', '>=', 3)]

    def test_unknown_metric_is_rejected(self):
        with pytest.raises(ConfigurationError, match="not a permitted variable"):
            parse_conditions({'bogus': ('<', 1)}, PERMITTED)

    @pytest.mark.parametrize("threshold", [1.5, -1, "ten", True, None])
    def test_non_integer_threshold_is_rejected(self, threshold):
        with pytest.raises(ConfigurationError):
            parse_conditions({'length': ('<', threshold)}, PERMITTED)

    @pytest.mark.parametrize("comparator", ["=", "!=", "=>", "lt"])
    def test_unsupported_comparator_is_rejected(self, comparator):
        with pytest.raises(ConfigurationError, match="comparator"):
            parse_conditions({'length': (comparator, 1)}, PERMITTED)

    def test_value_must_be_a_pair(self):
        with pytest.raises(ConfigurationError):
            parse_conditions({'length': '<100'}, PERMITTED)
        with pytest.raises(ConfigurationError):
            parse_conditions({'length': ('<', 100, 1)}, PERMITTED)

    def test_conditions_must_be_a_dict(self):
        with pytest.raises(ConfigurationError):
            parse_conditions([('length', '<', 100)], PERMITTED)

    def test_configuration_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_conditions({'bogus': ('<', 1)}, PERMITTED)


class TestConditionSemantics:

    def setup_method(self):
        self.conditions = parse_conditions({'length': ('<', 100), 'num_sequences': ('>', 1000)}, PERMITTED)
        self.metrics = {'length': 50, 'num_sequences': 2}

    def test_all_conditions_needs_every_condition(self):
        assert all_conditions_hold(self.conditions, self.metrics) is False
        assert all_conditions_hold(self.conditions, {'length': 50, 'num_sequences': 2000}) is True

    def test_any_condition_needs_a_single_condition(self):
        assert any_condition_holds(self.conditions, self.metrics) is True
        assert any_condition_holds(self.conditions, {'length': 500, 'num_sequences': 2}) is False

    def test_and_or_asymmetry_on_same_metrics(self):
        """Same input, opposite answers: clustering (AND) rejects, pruning (OR) matches."""
        assert all_conditions_hold(self.conditions, self.metrics) != any_condition_holds(self.conditions, self.metrics)

    def test_no_conditions(self):
        assert all_conditions_hold([], self.metrics) is True
        assert any_condition_holds([], self.metrics) is False

    def test_missing_metric_never_holds(self):
        conditions = parse_conditions({'percent_identity': ('>', 90)}, PERMITTED)
        assert all_conditions_hold(conditions, {'percent_identity': None}) is False
        assert any_condition_holds(conditions, {}) is False

    @pytest.mark.parametrize("comparator,value,expected", [
        ('<', 9, True), ('<', 10, False),
        ('<=', 10, True), ('<=', 11, False),
        ('==', 10, True), ('==', 11, False),
        ('>=', 10, True), ('>=', 9, False),
        ('>', 11, True), ('>', 10, False),
    ])
    def test_comparators(self, comparator, value, expected):
        assert Condition('length', comparator, 10).matches(value) is expected

"""
Threshold conditions used to filter BLAST hits and alignments.

A condition maps a metric name to a ``(comparator, threshold)`` pair, e.g.
``{'percent_identity': ('>', 90)}``. Hit clustering and homologous search
require every condition to hold; alignment pruning removes a cluster when any
condition holds.
"""

import logging
import operator
from dataclasses import dataclass

from .exceptions import ConfigurationError

COMPARATORS = {
    '<': operator.lt,
    '<=': operator.le,
    '==': operator.eq,
    '>=': operator.ge,
    '>': operator.gt,
}


@dataclass(frozen=True)
class Condition:
    """A single validated ``metric comparator threshold`` test."""
    metric: str
    comparator: str
    threshold: int

    def matches(self, value):
        return COMPARATORS[self.comparator](value, self.threshold)

    def __str__(self):
        return f"{self.metric} {self.comparator} {self.threshold}"


def _as_threshold(metric, value, caller):
    if isinstance(value, bool):
        raise ConfigurationError(f"WRONG threshold for {metric} in {caller}(): {value!r} is not an integer.")
    if isinstance(value, int) and value >= 0:
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    raise ConfigurationError(f"WRONG threshold for {metric} in {caller}(): only non-negative integers are permitted, got {value!r}.")


def parse_conditions(conditions, permitted, caller='parse_conditions'):
    """
    Validates a condition mapping and converts it to a list of Condition records.

    Args:
        conditions (dict): Mapping of metric name to a (comparator, threshold) pair.
        permitted (Iterable[str]): Metric names accepted by the caller.
        caller (str): Name used in error messages.

    Returns:
        list: Condition records, in the mapping's order.

    Raises:
        ConfigurationError: If the mapping, a metric name, a comparator or a threshold is invalid.
    """
    if not isinstance(conditions, dict):
        raise ConfigurationError(f"ARGUMENT ERROR: conditions for {caller}() must be a dict, got {type(conditions).__name__}.")

    permitted = set(permitted)
    parsed = []
    for metric, spec in conditions.items():
        if metric not in permitted:
            logging.error(f"Unknown metric '{metric}' for {caller}()")
            raise ConfigurationError(
                f"WRONG VARIABLE: {metric} is not a permitted variable for {caller}() "
                f"(permitted: {', '.join(sorted(permitted))})."
            )
        if not isinstance(spec, (list, tuple)) or len(spec) != 2:
            raise ConfigurationError(f"WRONG format for {metric} in {caller}(): expected (comparator, threshold), got {spec!r}.")

        comparator, threshold = spec
        if comparator not in COMPARATORS:
            raise ConfigurationError(
                f"WRONG comparator for {metric} in {caller}(): {comparator!r} is not one of "
                f"{', '.join(COMPARATORS)}."
            )
        parsed.append(Condition(metric, comparator, _as_threshold(metric, threshold, caller)))
    return parsed


def all_conditions_hold(conditions, metrics):
    """
    Returns True when every condition holds for the metrics.

    A counter starts at the number of conditions and is decremented for each
    one satisfied; the hit passes only when it reaches zero.
    """
    remaining = len(conditions)
    for condition in conditions:
        value = metrics.get(condition.metric)
        if value is not None and condition.matches(value):
            remaining -= 1
    return remaining == 0


def any_condition_holds(conditions, metrics):
    """Returns True as soon as one condition holds. Metrics that are None are skipped."""
    for condition in conditions:
        value = metrics.get(condition.metric)
        if value is None:
            logging.debug(f"Metric {condition.metric} is not available; skipping condition {condition}")
            continue
        if condition.matches(value):
            return True
    return False

"""Condition parsing and evaluation against installation state."""

from .parser import Comparator, FunctionCall, parse_condition
from .evaluator import ConditionEvaluator, compare_versions

__all__ = [
    "Comparator",
    "FunctionCall",
    "parse_condition",
    "ConditionEvaluator",
    "compare_versions",
]

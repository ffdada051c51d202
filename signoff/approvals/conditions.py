"""Approval conditions: decide whether a flow must run for a submission.

A flow names its condition by key (``Flow.condition_key``). Keys map to
factories in a ``ConditionRegistry``; the factory receives the flow's
``condition_params`` and returns an object with

    requires_approval(subject, attributes) -> bool

Factories are checked when registered, so a misconfigured condition fails
at startup rather than on the first submission.

Built-in ``rules`` condition — JSON rules against a context dict:

    params  = {"amount_gte": 5000, "department_in": ["sales", "ops"]}
    context = {"amount": 12000, "department": "sales"}
    RuleEvaluator.evaluate(params, context) → True

Operators (key suffix):
    _gte, _gt, _lte, _lt   — numeric comparison
    _eq, _neq               — equality
    _in, _not_in            — membership in list
    _exists                 — key presence (value is bool)
    _contains               — substring match
    (no suffix)             — exact equality

All rules are AND'd together. The context is the subject's
``approval_context()`` (or the subject itself when it is a dict),
overlaid with the submission attributes.
"""

import inspect
import logging
from typing import Any, Callable, Dict, Optional

from .exceptions import InvalidConditionEvaluator

logger = logging.getLogger('signoff.approvals.conditions')

# Operator suffixes in order of longest-first to avoid partial matches
_OPERATORS = [
    ('_not_in', 'not_in'),
    ('_contains', 'contains'),
    ('_exists', 'exists'),
    ('_gte', 'gte'),
    ('_gt', 'gt'),
    ('_lte', 'lte'),
    ('_lt', 'lt'),
    ('_neq', 'neq'),
    ('_eq', 'eq'),
    ('_in', 'in'),
]


class RuleEvaluator:

    @staticmethod
    def evaluate(rules: dict, context: dict) -> bool:
        """Evaluate all rules against context. Returns True if ALL match."""
        if not rules:
            return True

        for key, expected in rules.items():
            field, op = RuleEvaluator._parse_key(key)

            if op == 'exists':
                if bool(expected) != (field in context):
                    return False
                continue

            actual = context.get(field)

            if op in ('gte', 'gt', 'lte', 'lt'):
                if not RuleEvaluator._compare(op, actual, expected):
                    return False
            elif op in ('in', 'not_in'):
                if not isinstance(expected, list):
                    return False
                if (actual in expected) != (op == 'in'):
                    return False
            elif op == 'contains':
                if actual is None or expected is None:
                    return False
                if str(expected) not in str(actual):
                    return False
            elif op == 'neq':
                if actual == expected:
                    return False
            else:
                # eq and bare keys
                if actual != expected:
                    return False

        return True

    @staticmethod
    def _compare(op: str, actual, expected) -> bool:
        if actual is None:
            return False
        try:
            a = float(actual)
            e = float(expected)
        except (ValueError, TypeError):
            return False
        if op == 'gte':
            return a >= e
        if op == 'gt':
            return a > e
        if op == 'lte':
            return a <= e
        return a < e

    @staticmethod
    def _parse_key(key: str) -> tuple:
        """Parse 'amount_gte' into ('amount', 'gte'). Returns (key, None) for bare keys."""
        for suffix, op_name in _OPERATORS:
            if key.endswith(suffix):
                field = key[:-len(suffix)]
                if field:
                    return field, op_name
        return key, None


def subject_context(subject, attributes: Optional[dict]) -> dict:
    """Build the dict rules are evaluated against."""
    context = {}
    provider = getattr(subject, 'approval_context', None)
    if callable(provider):
        context.update(provider() or {})
    elif isinstance(subject, dict):
        context.update(subject)
    context.update(attributes or {})
    return context


class RuleCondition:
    """Approval is required when every rule in ``params`` matches."""

    def __init__(self, params: Optional[dict] = None):
        self.rules = dict(params or {})

    def requires_approval(self, subject, attributes: dict) -> bool:
        return RuleEvaluator.evaluate(self.rules, subject_context(subject, attributes))


def _has_capability(obj) -> bool:
    return callable(getattr(obj, 'requires_approval', None))


class ConditionRegistry:
    """Maps condition keys to factories producing condition objects."""

    def __init__(self):
        self._factories: Dict[str, Callable[[dict], Any]] = {}

    def register(self, key: str, factory):
        """Register a condition class, instance or factory function under ``key``.

        Raises:
            InvalidConditionEvaluator: the factory cannot produce a condition.
        """
        if not key:
            raise InvalidConditionEvaluator(str(key), 'empty key')

        if inspect.isclass(factory):
            if not _has_capability(factory):
                raise InvalidConditionEvaluator(
                    key, f'{factory.__name__} does not define requires_approval()')
            cls = factory
            self._factories[key] = lambda params: cls(params)
        elif _has_capability(factory):
            instance = factory
            self._factories[key] = lambda params: instance
        elif callable(factory):
            self._factories[key] = factory
        else:
            raise InvalidConditionEvaluator(key, 'factory is not callable')

        logger.debug(f"Registered approval condition '{key}'")

    def unregister(self, key: str):
        self._factories.pop(key, None)

    def is_registered(self, key: str) -> bool:
        return key in self._factories

    def resolve(self, key: str, params: Optional[dict] = None):
        """Build the condition for a flow.

        Raises:
            InvalidConditionEvaluator: unknown key, or the factory returned
                something without requires_approval().
        """
        factory = self._factories.get(key)
        if factory is None:
            raise InvalidConditionEvaluator(key, 'not registered')
        condition = factory(dict(params or {}))
        if not _has_capability(condition):
            raise InvalidConditionEvaluator(
                key, f'factory returned {type(condition).__name__} without requires_approval()')
        return condition


default_registry = ConditionRegistry()
default_registry.register('rules', RuleCondition)


def register_condition(key: str, factory):
    """Register a condition on the process-wide registry."""
    default_registry.register(key, factory)

"""Exceptions raised by the voucher rule engine."""

from __future__ import annotations

from typing import List, Optional


class RuleEngineError(Exception):
    """Raised when rule data cannot be parsed or evaluated."""


class ConditionError(RuleEngineError, ValueError):
    """Raised when a rule's conditions map is malformed."""


class FieldPathError(RuleEngineError, ValueError):
    """Raised when a rule names a field path the resolver does not know."""


class LogicSyntaxError(RuleEngineError, ValueError):
    """Raised when a logic expression cannot be parsed."""


class ConfigError(RuleEngineError, ValueError):
    """Raised when the engine configuration file is invalid."""


class RulePayloadError(RuleEngineError, ValueError):
    """Raised by strict payload parsing; carries every problem found."""

    def __init__(self, message: str, problems: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.problems: List[str] = list(problems or [])


__all__ = [
    "ConditionError",
    "ConfigError",
    "FieldPathError",
    "LogicSyntaxError",
    "RuleEngineError",
    "RulePayloadError",
]

"""Boolean logic expressions over rule ids, e.g. ``"1 and (2 or 3)"``.

``and``/``or`` share one precedence level and fold strictly left to right:
``"1 and 2 or 3"`` is ``(1 and 2) or 3`` and ``"1 or 2 and 3"`` is ``(1 or 2) and 3``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Union

from .errors import LogicSyntaxError

logger = logging.getLogger(__name__)

AND = "and"
OR = "or"
_KEYWORDS = {AND, OR}


@dataclass(frozen=True)
class Ref:
    rule_id: str


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "LogicNode"
    right: "LogicNode"


LogicNode = Union[Ref, BinaryOp]


def tokenize(expression: str) -> List[str]:
    """Split on whitespace; parentheses are tokens even without surrounding spaces."""
    tokens: List[str] = []
    current: List[str] = []
    for ch in expression:
        if ch.isspace() or ch in "()":
            if current:
                tokens.append("".join(current))
                current = []
            if not ch.isspace():
                tokens.append(ch)
        else:
            current.append(ch)
    if current:
        tokens.append("".join(current))
    return tokens


class _Parser:
    def __init__(self, tokens: List[str]) -> None:
        self.tokens = tokens
        self.index = 0

    def _peek(self) -> Optional[str]:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def parse(self) -> LogicNode:
        node = self._expression()
        if self._peek() is not None:
            raise LogicSyntaxError(f"Unexpected token {self._peek()!r} at position {self.index}")
        return node

    def _expression(self) -> LogicNode:
        node = self._term()
        while True:
            token = self._peek()
            if token is None or token.lower() not in _KEYWORDS:
                return node
            self.index += 1
            node = BinaryOp(token.lower(), node, self._term())

    def _term(self) -> LogicNode:
        token = self._peek()
        if token is None:
            raise LogicSyntaxError("Expression ended where a rule id or '(' was expected")
        self.index += 1
        if token == "(":
            inner = self._expression()
            if self._peek() != ")":
                raise LogicSyntaxError("Missing closing parenthesis")
            self.index += 1
            return inner
        if token == ")" or token.lower() in _KEYWORDS:
            raise LogicSyntaxError(f"Unexpected token {token!r} at position {self.index - 1}")
        return Ref(token)


def parse_logic(expression: str) -> LogicNode:
    """Parse an expression into a tree; raises LogicSyntaxError when malformed."""
    tokens = tokenize(expression or "")
    if not tokens:
        raise LogicSyntaxError("Empty logic expression")
    return _Parser(tokens).parse()


def evaluate_node(node: LogicNode, results: Mapping[str, bool]) -> bool:
    """Fold a parsed expression; flat chains are walked iteratively down the left spine."""
    spine: List[BinaryOp] = []
    while isinstance(node, BinaryOp):
        spine.append(node)
        node = node.left
    value = bool(results.get(node.rule_id, False))
    for op_node in reversed(spine):
        right = evaluate_node(op_node.right, results)
        value = (value and right) if op_node.op == AND else (value or right)
    return value


def evaluate_logic(
    expression: Optional[str],
    results: Mapping[str, bool],
    default_ids: Optional[Iterable[str]] = None,
) -> bool:
    """
    Evaluate ``expression`` against precomputed rule results.

    Unknown ids count as false. A blank or malformed expression falls back to
    AND across ``default_ids`` (all ids in ``results`` when not given).
    """
    ids = list(results.keys()) if default_ids is None else list(default_ids)
    if expression is None or not expression.strip():
        return all(results.get(rule_id, False) for rule_id in ids)
    try:
        node = parse_logic(expression)
    except LogicSyntaxError as exc:
        logger.warning("Malformed logic expression %r (%s); using AND of all rules", expression, exc)
        return all(results.get(rule_id, False) for rule_id in ids)
    return evaluate_node(node, results)


__all__ = [
    "BinaryOp",
    "LogicNode",
    "Ref",
    "evaluate_logic",
    "evaluate_node",
    "parse_logic",
    "tokenize",
]

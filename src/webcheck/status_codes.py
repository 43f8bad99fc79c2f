"""Status code acceptance expressions.

An expression is a comma-delimited list of conditions, each optionally
prefixed with a relational operator::

    !500              # anything besides 500
    200, 202          # 200 or 202
    200, >=300, <400  # 200 or any 3xx code
    <400, 405, !202   # (<400 and !202) or 405

Conditions without a prefix form an ``OR`` group, prefixed conditions form an
``AND`` group, and a code is accepted when either group matches. ``==`` is not
accepted as a prefix; write the bare code instead.
"""
from __future__ import annotations

import operator
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from .errors import StatusCodeParseError

DEFAULT_STATUS_CODE = 200

_CONDITION_PATTERN = re.compile(r"^(==|!=|<=|>=|<|>|!)?(\d+)$")


class Operator(str, Enum):
    """Relational operator applied to a status code."""

    EQ = "=="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="


_COMPARATORS: Mapping[Operator, Callable[[int, int], bool]] = {
    Operator.EQ: operator.eq,
    Operator.NE: operator.ne,
    Operator.LT: operator.lt,
    Operator.LE: operator.le,
    Operator.GT: operator.gt,
    Operator.GE: operator.ge,
}


@dataclass(slots=True, frozen=True)
class Condition:
    """A single ``<operator> <code>`` comparison."""

    operator: Operator
    code: int

    def matches(self, actual: int) -> bool:
        """Return ``True`` when *actual* satisfies the condition."""
        return _COMPARATORS[self.operator](actual, self.code)

    def __str__(self) -> str:
        if self.operator is Operator.EQ:
            return str(self.code)
        return f"{self.operator.value}{self.code}"


@dataclass(slots=True, frozen=True)
class StatusCodePolicy:
    """Parsed acceptance policy over HTTP status codes."""

    any_of: tuple[Condition, ...] = ()
    all_of: tuple[Condition, ...] = ()
    expression: str = field(default="", compare=False)

    @classmethod
    def exact(cls, code: int = DEFAULT_STATUS_CODE) -> StatusCodePolicy:
        """Return a policy accepting only *code*."""
        return cls(any_of=(Condition(Operator.EQ, code),), expression=str(code))

    @property
    def is_single_code(self) -> bool:
        """Return ``True`` when the policy is a bare single code."""
        return len(self.any_of) == 1 and not self.all_of

    def evaluate(self, actual: int) -> bool:
        """Return ``True`` when *actual* is an acceptable status code."""
        or_match = bool(self.any_of) and any(cond.matches(actual) for cond in self.any_of)
        and_match = bool(self.all_of) and all(cond.matches(actual) for cond in self.all_of)
        return or_match or and_match

    matches = evaluate

    def __str__(self) -> str:
        if self.expression:
            return self.expression
        return ", ".join(str(cond) for cond in (*self.any_of, *self.all_of))


def parse_status_codes(expression: str | int | StatusCodePolicy | None) -> StatusCodePolicy:
    """Parse *expression* into a :class:`StatusCodePolicy`.

    ``None`` and blank strings yield the default policy (exactly 200). A plain
    integer yields an exact-match policy. Already parsed policies are returned
    untouched.
    """
    if isinstance(expression, StatusCodePolicy):
        return expression
    if expression is None:
        return StatusCodePolicy.exact()
    if isinstance(expression, bool):
        raise StatusCodeParseError(
            f"Status code must be an integer or expression, got {expression!r}.",
            token=str(expression),
        )
    if isinstance(expression, int):
        return StatusCodePolicy.exact(expression)
    if not isinstance(expression, str):
        raise StatusCodeParseError(
            f"Status code must be an integer or expression, got {type(expression).__name__}.",
        )

    text = expression.strip()
    if not text:
        return StatusCodePolicy.exact()

    any_of: list[Condition] = []
    all_of: list[Condition] = []
    for raw_token in text.split(","):
        token = raw_token.strip()
        match = _CONDITION_PATTERN.match(token)
        if match is None:
            raise StatusCodeParseError(
                f"The status code condition '{token}' is not valid.",
                token=token,
            )
        prefix, digits = match.groups()
        code = int(digits)
        if prefix is None:
            any_of.append(Condition(Operator.EQ, code))
            continue
        if prefix == "==":
            raise StatusCodeParseError(
                f"The status code condition '{token}' may not use '=='; "
                "write the bare code instead.",
                token=token,
            )
        if prefix == "!":
            prefix = "!="
        all_of.append(Condition(Operator(prefix), code))

    return StatusCodePolicy(
        any_of=tuple(any_of),
        all_of=tuple(all_of),
        expression=", ".join(token.strip() for token in text.split(",")),
    )


__all__ = [
    "DEFAULT_STATUS_CODE",
    "Condition",
    "Operator",
    "StatusCodePolicy",
    "parse_status_codes",
]

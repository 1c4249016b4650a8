"""Condition language used by `if "..." { }` blocks.

A condition is one of::

    contains "text"          case-insensitive substring test on the input
    not_contains "text"
    field OP value           OP in >= <= != == > <
    field                    truthiness, i.e. ``field != ""``

Pipeline values are unstructured text, so fields such as ``rain`` or
``price`` are recovered by scanning the text for known anchors and taking
the first number on the matching line.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from .errors import ConditionParseError

INPUT_FIELD = "_input"

# Longest operators first so that ">" never matches inside ">=".
OPERATORS = (">=", "<=", "!=", "==", ">", "<")

_PREFIX_OPERATORS = ("contains", "not_contains")

# field aliases -> anchors searched line by line in the pipeline value
KNOWN_FIELDS: Dict[str, List[str]] = {}
for _names, _anchors in (
    (("rain", "rain%", "rain_chance", "precipitation"), ["Rain%", "rain", "precipitation", "chance of rain"]),
    (("temp", "temperature"), ["Temperature:", "temperature", "°F", "°C"]),
    (("price",), ["Price:", "$", "price"]),
    (("change", "change%"), ["Change%", "change", "percent"]),
    (("score",), ["Score:", "score", "⬆"]),
    (("count", "total", "found"), ["found", "total", "count", "results"]),
):
    for _n in _names:
        KNOWN_FIELDS[_n] = _anchors


def _strip_quotes(s: str) -> str:
    return s.strip().strip("\"'")


def _parse_float(s: str) -> Optional[float]:
    try:
        return float(s)
    except ValueError:
        return None


@dataclass(frozen=True)
class Condition:
    left: str
    operator: str
    right: str

    def evaluate(self, input: str, vars: Optional[Mapping[str, str]] = None) -> bool:
        left = self.resolve(self.left, input, vars or {})
        right = self.right
        op = self.operator
        if op == "contains":
            return right.lower() in left.lower()
        if op == "not_contains":
            return right.lower() not in left.lower()
        if op == "==":
            return left == right
        if op == "!=":
            return left != right
        if op in (">", "<", ">=", "<="):
            return self._compare(left, right)
        return False

    @staticmethod
    def resolve(field: str, input: str, vars: Mapping[str, str]) -> str:
        if field in (INPUT_FIELD, "input"):
            return input
        if field in vars:
            return str(vars[field])
        anchors = KNOWN_FIELDS.get(field.lower())
        if anchors is not None:
            return extract_number(input, anchors)
        if _parse_float(field) is not None:
            return field
        if field.lower() in input.lower():
            return extract_number_near(input, field)
        return field

    def _compare(self, left: str, right: str) -> bool:
        a, b = _parse_float(left), _parse_float(right)
        if a is None or b is None:
            # lexicographic fallback
            a, b = left, right
        if self.operator == ">":
            return a > b
        if self.operator == "<":
            return a < b
        if self.operator == ">=":
            return a >= b
        return a <= b


def parse_condition(text: str) -> Condition:
    cond = (text or "").strip()
    if not cond:
        raise ConditionParseError("could not parse condition: empty condition")

    for prefix in _PREFIX_OPERATORS:
        if cond.startswith(prefix + " "):
            return Condition(left=INPUT_FIELD, operator=prefix, right=_strip_quotes(cond[len(prefix) + 1:]))

    for op in OPERATORS:
        if op in cond:
            left, right = cond.split(op, 1)
            left = left.strip()
            if not left:
                raise ConditionParseError(f"could not parse condition {text!r}: missing left operand for {op!r}")
            return Condition(left=left, operator=op, right=_strip_quotes(right))

    return Condition(left=cond, operator="!=", right="")


def evaluate_condition(text: str, input: str, vars: Optional[Mapping[str, str]] = None) -> bool:
    return parse_condition(text).evaluate(input, vars or {})


def extract_first_number(s: str) -> str:
    """Return the first number in `s` as text ("-5.2", "72"), or "0" if there is none."""
    out: List[str] = []
    sign = ""
    has_decimal = False
    for ch in s:
        if "0" <= ch <= "9":
            out.append(ch)
        elif ch == "." and out and not has_decimal:
            out.append(ch)
            has_decimal = True
        elif out:
            break
        else:
            # a sign only counts when it directly precedes the digits
            sign = "-" if ch == "-" else ""
    if not out:
        return "0"
    return sign + "".join(out)


def extract_number(text: str, anchors: List[str]) -> str:
    for line in text.split("\n"):
        low = line.lower()
        for anchor in anchors:
            if anchor.lower() in low:
                return extract_first_number(line)
    return "0"


def extract_number_near(text: str, field: str) -> str:
    for line in text.split("\n"):
        if field.lower() in line.lower():
            return extract_first_number(line)
    return ""

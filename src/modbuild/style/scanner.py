from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .rules import Rule


@dataclass(frozen=True)
class Match:
    rule_message: str
    offset: int
    matched_text: str


def scan(text: str, rules: Sequence[Rule]) -> list[Match]:
    """Return the first match of each rule in ``text``, in rule order.

    Only the first occurrence per rule is reported; a rule that does not
    match contributes nothing.
    """
    out: list[Match] = []
    for r in rules:
        m = r.pattern.search(text)
        if m is None:
            continue
        out.append(Match(rule_message=r.message, offset=m.start(), matched_text=m.group(0)))
    return out

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True)
class Rule:
    pattern: re.Pattern[str]
    message: str


def rule(pattern: str, message: str) -> Rule:
    return Rule(pattern=re.compile(pattern), message=message)


# Doc-comment tag conventions. Order only affects diagnostic order.
DEFAULT_RULES: Final[tuple[Rule, ...]] = (
    # Accepts "@param  name desc" and "@param name  desc"
    rule(r"@param(?=[ \t])(?!  \S| \S+  \S)", "@param should be followed by 2 spaces"),
    rule(r"@return \s", "@return should be followed by 1 space"),
    rule(r"@returns", "Use @return instead of @returns"),
    rule(r"@throws \s", "@throws should be followed by 1 space"),
)

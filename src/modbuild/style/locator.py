from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LineInfo:
    line_number: int
    line_text: str


def locate(text: str, offset: int) -> LineInfo:
    if offset < 0 or offset > len(text):
        raise ValueError(f"offset {offset} outside text of length {len(text)}")
    line_number = text.count("\n", 0, offset) + 1
    start = text.rfind("\n", 0, offset) + 1
    end = text.find("\n", offset)
    if end == -1:
        end = len(text)
    return LineInfo(line_number=line_number, line_text=text[start:end])

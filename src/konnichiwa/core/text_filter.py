from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Protocol

# Hiragana/Katakana and CJK Unified Ideographs.
DEFAULT_SCRIPT_RANGES: tuple[tuple[int, int], ...] = (
    (0x3040, 0x30FF),
    (0x4E00, 0x9FFF),
)


class TextFilter(Protocol):
    def should_translate(self, text: str) -> bool: ...


def contains_script(text: str, ranges: Iterable[tuple[int, int]]) -> bool:
    ranges = tuple(ranges)
    for ch in text:
        code = ord(ch)
        for low, high in ranges:
            if low <= code <= high:
                return True
    return False


@dataclass(frozen=True, slots=True)
class ScriptFilter:
    """Accepts text containing at least one code point from `ranges`."""

    ranges: tuple[tuple[int, int], ...] = field(default=DEFAULT_SCRIPT_RANGES)

    def __post_init__(self) -> None:
        for low, high in self.ranges:
            if low < 0 or high < low:
                raise ValueError(f"invalid script range: {low:#x}..{high:#x}")

    def should_translate(self, text: str) -> bool:
        if not text or not text.strip():
            return False
        return contains_script(text, self.ranges)

    def join_ocr_lines(self, lines: Iterable[str]) -> str:
        """Keep only qualifying lines of one OCR frame, newline-joined."""
        return "\n".join(line for line in lines if self.should_translate(line))


@dataclass(frozen=True, slots=True)
class NonEmptyFilter:
    def should_translate(self, text: str) -> bool:
        return bool(text and text.strip())

"""
Greedy longest-match segmentation of Chinese text against a root dictionary.

Works on code points (Python str indexing), so multi-byte characters are never
split. The search window at each position is bounded by the longest key in the
snapshot; at one position only one key of any given length can be a prefix of
the remaining text, so the longest match is always unique.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional

from .models import Segment


class RootSnapshot(Mapping[str, str]):
    """Immutable point-in-time view of the root dictionary."""

    __slots__ = ("_roots", "max_key_len")

    def __init__(self, roots: Optional[Mapping[str, str]] = None):
        # copy so later store mutations can't leak in
        self._roots = MappingProxyType(dict(roots or {}))
        self.max_key_len = max((len(k) for k in self._roots), default=0)

    def __getitem__(self, key: str) -> str:
        return self._roots[key]

    def __contains__(self, key: object) -> bool:
        return key in self._roots

    def __iter__(self) -> Iterator[str]:
        return iter(self._roots)

    def __len__(self) -> int:
        return len(self._roots)

    def __repr__(self) -> str:
        return f"RootSnapshot({len(self)} roots, max_key_len={self.max_key_len})"

    def as_dict(self) -> Dict[str, str]:
        return dict(self._roots)


def longest_match(text: str, start: int, roots: RootSnapshot) -> Optional[str]:
    """Longest key of `roots` that is a prefix of text[start:], or None."""
    window = min(roots.max_key_len, len(text) - start)
    for length in range(window, 0, -1):
        candidate = text[start : start + length]
        if candidate in roots:
            return candidate
    return None


def segment(text: str, roots: RootSnapshot) -> List[Segment]:
    if not text or not text.strip():
        return []

    out: List[Segment] = []
    i = 0
    while i < len(text):
        key = longest_match(text, i, roots)
        if key is None:
            out.append(Segment(chinese=text[i], english="", matched=False))
            i += 1
        else:
            out.append(Segment(chinese=key, english=roots[key], matched=True))
            i += len(key)
    return out

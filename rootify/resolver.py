from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Sequence

from .models import Segment, TranslationResult
from .segmenter import RootSnapshot, segment

logger = logging.getLogger(__name__)

JOINER = "_"


def _display_token(seg: Segment) -> str:
    # unknown characters stay visible instead of being dropped
    return seg.english if seg.matched else seg.chinese


def resolve(segments: Sequence[Segment]) -> TranslationResult:
    segs = list(segments)
    return TranslationResult(
        segments=segs,
        joined_english=JOINER.join(_display_token(s) for s in segs),
        complete=all(s.matched for s in segs),
    )


def translate(text: str, roots: RootSnapshot) -> str:
    return resolve(segment(text, roots)).joined_english


def is_complete(text: str, roots: RootSnapshot) -> bool:
    return resolve(segment(text, roots)).complete


def translate_batch(
    lines: Sequence[str], roots: RootSnapshot, *, max_workers: int = 4
) -> List[TranslationResult]:
    """
    Translate independent lines concurrently.

    Every line sees the same snapshot. Results come back in the order of `lines`
    regardless of which worker finishes first.
    """
    if not lines:
        return []

    results: List[TranslationResult | None] = [None] * len(lines)
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        futures = {
            pool.submit(lambda t: resolve(segment(t, roots)), line): idx
            for idx, line in enumerate(lines)
        }
        for fut in as_completed(futures):
            results[futures[fut]] = fut.result()

    logger.debug("Translated batch of %d lines", len(lines))
    return [r for r in results if r is not None]

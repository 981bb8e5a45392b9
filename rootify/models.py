from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict


class RootEntry(BaseModel):
    chinese: str
    english: str


class Segment(BaseModel):
    model_config = ConfigDict(frozen=True)

    chinese: str  # span of the input, in code points
    english: str  # "" when unmatched
    matched: bool


class SegmentationResult(BaseModel):
    """Segment as the presentation layer expects it."""

    chinese: str
    english: str
    isUnknown: bool

    @classmethod
    def from_segment(cls, seg: Segment) -> "SegmentationResult":
        return cls(chinese=seg.chinese, english=seg.english, isUnknown=not seg.matched)


class TranslationResult(BaseModel):
    segments: List[Segment]
    joined_english: str
    complete: bool


class HistoryEntry(BaseModel):
    id: int
    chineseText: str
    englishText: str
    createdAt: datetime


class ImportPreviewItem(BaseModel):
    chinese: str
    english: str
    action: Literal["add", "update"]


# --- request / response bodies ---

class TextRequest(BaseModel):
    text: str


class TranslateRequest(BaseModel):
    text: str
    record: bool = False


class TranslateResponse(BaseModel):
    text: str
    translation: str
    complete: bool


class BatchTranslateRequest(BaseModel):
    lines: List[str]


class ImportRequest(BaseModel):
    roots: Dict[str, str]


class PreviewRequest(BaseModel):
    csv: str


class HistoryRequest(BaseModel):
    chineseText: str
    englishText: str


# roots.json format: { "交易": "transaction", "日期": "date", ... }
RootsJson = Dict[str, str]

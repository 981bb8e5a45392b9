from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Make rootify and scripts/ importable when running tests from the repo root.
ROOT = Path(__file__).resolve().parents[1]
for p in (ROOT, ROOT / "scripts"):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from rootify.main import create_app  # noqa: E402
from rootify.segmenter import RootSnapshot  # noqa: E402


@pytest.fixture
def roots() -> RootSnapshot:
    return RootSnapshot({"交易": "transaction", "日期": "date", "金额": "amount", "交易日": "trade_day"})


@pytest.fixture
def client(tmp_path: Path):
    app = create_app(tmp_path)
    with TestClient(app) as c:
        yield c

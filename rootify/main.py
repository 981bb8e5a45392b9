from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .csv_io import CsvFormatError, is_empty_export, parse_import_preview
from .history import HistoryLog, HistoryWriter
from .models import (
    BatchTranslateRequest,
    HistoryEntry,
    HistoryRequest,
    ImportPreviewItem,
    ImportRequest,
    PreviewRequest,
    RootEntry,
    SegmentationResult,
    TextRequest,
    TranslateRequest,
    TranslateResponse,
)
from .resolver import is_complete, resolve, translate_batch
from .segmenter import segment
from .store import RootStore, StoreError

APP_DIR = Path(__file__).resolve().parent

logger = logging.getLogger(__name__)


def _parse_csv_env(name: str) -> list[str]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return []
    return [x.strip() for x in raw.split(",") if x.strip()]


def _int_env(name: str, default: int, minimum: Optional[int] = None) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if minimum is not None and value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def setup_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# CORS:
# - Default to a small allowlist (local dev). For production, set CORS_ORIGINS.
#   Example:
#     CORS_ORIGINS=https://rootify.example.com,http://localhost:5173
DEFAULT_CORS_ORIGINS = [
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1",
    "http://127.0.0.1:5173",
]


def create_app(data_dir: Optional[Path] = None) -> FastAPI:
    # Data directory: roots.json + history.json
    data_dir = Path(data_dir or os.getenv("DATA_DIR", str(APP_DIR / "data"))).resolve()
    roots_path = data_dir / "roots.json"
    history_path = data_dir / "history.json"
    history_limit = _int_env("ROOTIFY_HISTORY_LIMIT", 100, minimum=0) or None  # 0 = unbounded
    batch_workers = _int_env("ROOTIFY_BATCH_WORKERS", 4, minimum=1)
    cors_origins = _parse_csv_env("CORS_ORIGINS") or DEFAULT_CORS_ORIGINS

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.store = RootStore.load(roots_path)
        app.state.history = HistoryLog.load(history_path)
        app.state.history_writer = HistoryWriter(app.state.history)
        app.state.history_writer.start()
        logger.info("Rootify ready (data_dir=%s)", data_dir)
        try:
            yield
        finally:
            app.state.history_writer.stop()
            app.state.store.flush()
            app.state.history.flush()

    app = FastAPI(title="rootify", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    def store(request: Request) -> RootStore:
        return request.app.state.store

    @app.get("/health")
    def health(request: Request):
        return {
            "ok": True,
            "data_dir": str(data_dir),
            "roots": len(store(request)),
            "history": len(request.app.state.history),
        }

    # --- roots ---

    @app.get("/roots")
    def get_all_roots(request: Request) -> Dict[str, str]:
        return store(request).get_all()

    @app.post("/roots")
    def add_root(entry: RootEntry, request: Request):
        if not store(request).add(entry.chinese, entry.english):
            raise HTTPException(400, detail="chinese and english must both be non-empty")
        return {"ok": True, "chinese": entry.chinese.strip()}

    # keys may contain "/"
    @app.delete("/roots/{chinese:path}")
    def delete_root(chinese: str, request: Request):
        removed = store(request).delete(chinese)
        return {"ok": True, "removed": removed}

    @app.delete("/roots")
    def clear_all_roots(request: Request):
        store(request).clear()
        return {"ok": True}

    @app.post("/roots/import")
    def import_roots(body: ImportRequest, request: Request):
        n = store(request).import_merge(body.roots)
        return {"ok": True, "imported": n}

    @app.post("/roots/import/preview", response_model=List[ImportPreviewItem])
    def preview_import(body: PreviewRequest, request: Request):
        try:
            return parse_import_preview(body.csv, store(request).snapshot())
        except CsvFormatError as e:
            raise HTTPException(400, detail=str(e))

    @app.get("/roots/export")
    def export_roots(request: Request):
        content = store(request).export_all()
        if is_empty_export(content):
            return Response(status_code=204)
        return Response(content=content, media_type="text/csv; charset=utf-8")

    # --- translation ---

    @app.post("/segment", response_model=List[SegmentationResult])
    def segment_text(body: TextRequest, request: Request):
        segs = segment(body.text, store(request).snapshot())
        return [SegmentationResult.from_segment(s) for s in segs]

    @app.post("/translate", response_model=TranslateResponse)
    def translate_text(body: TranslateRequest, request: Request):
        result = resolve(segment(body.text, store(request).snapshot()))
        if body.record and result.complete and result.segments:
            request.app.state.history_writer.submit(body.text, result.joined_english)
        return TranslateResponse(
            text=body.text, translation=result.joined_english, complete=result.complete
        )

    @app.post("/translate/batch", response_model=List[TranslateResponse])
    def translate_lines(body: BatchTranslateRequest, request: Request):
        results = translate_batch(body.lines, store(request).snapshot(), max_workers=batch_workers)
        return [
            TranslateResponse(text=line, translation=r.joined_english, complete=r.complete)
            for line, r in zip(body.lines, results)
        ]

    @app.post("/translate/complete")
    def is_translation_complete(body: TextRequest, request: Request):
        return {"complete": is_complete(body.text, store(request).snapshot())}

    # --- history ---

    @app.post("/history", status_code=202)
    def save_translation_history(body: HistoryRequest, request: Request):
        request.app.state.history_writer.submit(body.chineseText, body.englishText)
        return {"ok": True}

    @app.get("/history", response_model=List[HistoryEntry])
    def get_translation_history(
        request: Request,
        limit: Optional[int] = Query(None, ge=1, description="max entries, newest first"),
    ):
        return request.app.state.history.list(limit or history_limit)

    @app.delete("/history")
    def clear_translation_history(request: Request):
        request.app.state.history.clear()
        return {"ok": True}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    setup_logging()
    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=_int_env("PORT", 8000))

"""FastAPI application with all routes."""
from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from urllib.parse import quote

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import Response, StreamingResponse

from passage_workbook.config import Settings, load_settings, save_settings
from passage_workbook.content_generator import generate_all_content
from passage_workbook.db import Database
from passage_workbook.errors import BatchExhaustionError, ExportError
from passage_workbook.export import export_filename, render_pdf, render_text
from passage_workbook.models import (
    GeneratedContent,
    MultipleChoiceQuestion,
    ParagraphScrambleItem,
    PassageResult,
    SentenceScrambleItem,
)
from passage_workbook.providers.base import LLMProvider
from passage_workbook.providers.factory import get_llm
from passage_workbook.worksheets import (
    check_multiple_choice,
    check_paragraph_order,
    check_sentence_scramble,
    format_paragraph_order,
    has_valid_choice_pair,
)

log = logging.getLogger("passage_workbook.app")


def create_app(
    settings: Settings | None = None,
    db: Database | None = None,
    llm_factory: Callable[[Settings], LLMProvider] = get_llm,
) -> FastAPI:
    """Build the app.  Settings, store and LLM factory live on ``app.state``."""
    app = FastAPI(title="Passage Workbook")
    app.state.settings = settings or load_settings()
    app.state.db = db
    app.state.owns_db = db is None
    app.state.llm_factory = llm_factory

    @app.on_event("startup")
    async def startup():
        if app.state.db is None:
            app.state.db = Database(app.state.settings.db_full_path)

    @app.on_event("shutdown")
    async def shutdown():
        if app.state.owns_db and app.state.db is not None:
            app.state.db.close()
            app.state.db = None

    _register_routes(app)
    return app


def _db(request: Request) -> Database:
    db = request.app.state.db
    assert db is not None
    return db


def _settings(request: Request) -> Settings:
    return request.app.state.settings


async def _json_body(request: Request) -> dict:
    if not await request.body():
        return {}
    try:
        body = await request.json()
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Request body is not valid JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return body


def _parse_generate_body(body: dict) -> tuple[str, list[dict]]:
    grade = str(body.get("grade", "")).strip()
    passages = body.get("passages")
    if not grade:
        raise HTTPException(status_code=422, detail="grade is required")
    if not isinstance(passages, list) or not passages:
        raise HTTPException(status_code=422, detail="at least one passage is required")
    cleaned = []
    for i, p in enumerate(passages, 1):
        english = str(p.get("english", "")).strip() if isinstance(p, dict) else ""
        korean = str(p.get("korean", "")).strip() if isinstance(p, dict) else ""
        if not english or not korean:
            raise HTTPException(status_code=422, detail=f"passage #{i} needs both english and korean text")
        cleaned.append({"english": english, "korean": korean})
    return grade, cleaned


def _parse_results(body: dict) -> tuple[str, list[PassageResult]]:
    title = str(body.get("title", "")).strip()
    raw = body.get("results")
    if not title:
        raise HTTPException(status_code=422, detail="title is required")
    if not isinstance(raw, list) or not raw:
        raise HTTPException(status_code=422, detail="results must be a non-empty list")
    try:
        return title, [PassageResult.from_dict(r) for r in raw]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise HTTPException(status_code=422, detail=f"malformed results: {e}")


def _parse_content(body: dict) -> GeneratedContent:
    raw = body.get("content")
    if not isinstance(raw, dict):
        raise HTTPException(status_code=422, detail="content is required")
    try:
        return GeneratedContent.from_dict(raw)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise HTTPException(status_code=422, detail=f"malformed content: {e}")


def _check_answer(worksheet: str, item: dict, answer) -> dict:
    if worksheet == "multipleChoice":
        q = MultipleChoiceQuestion.from_dict(item)
        return {
            "correct": check_multiple_choice(q, str(answer)),
            "expected": q.answer,
            "validPair": has_valid_choice_pair(q),
        }
    if worksheet == "sentenceScramble":
        s = SentenceScrambleItem.from_dict(item)
        return {"correct": check_sentence_scramble(s, str(answer)), "expected": s.correct}
    if worksheet == "paragraphScramble":
        p = ParagraphScrambleItem.from_dict(item)
        if not isinstance(answer, list):
            raise ValueError("answer must be a list of paragraph indices")
        arrangement = [int(i) for i in answer]
        return {
            "correct": check_paragraph_order(p, arrangement),
            "expected": format_paragraph_order(p.correct_order),
        }
    raise HTTPException(status_code=422, detail=f"Unknown worksheet: {worksheet}")


def _download(content: bytes, filename: str, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


def _export(title: str, results: list[PassageResult], fmt: str, settings: Settings) -> Response:
    if fmt == "text":
        return _download(
            render_text(title, results).encode("utf-8"),
            export_filename(title, "txt"),
            "text/plain; charset=utf-8",
        )
    if fmt == "pdf":
        try:
            pdf = render_pdf(title, results, font_path=settings.pdf_font)
        except ExportError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return _download(pdf, export_filename(title, "pdf"), "application/pdf")
    raise HTTPException(status_code=400, detail=f"Unknown export format: {fmt}")


def _register_routes(app: FastAPI) -> None:

    # ── API: Generate ─────────────────────────────────────────────────────

    @app.post("/api/generate")
    async def api_generate(request: Request):
        body = await _json_body(request)
        grade, passages = _parse_generate_body(body)
        settings = _settings(request)
        llm = request.app.state.llm_factory(settings)

        failures = []
        try:
            results = await generate_all_content(
                llm, passages, grade,
                on_failure=failures.append,
                **settings.pipeline_options(),
            )
        except BatchExhaustionError as e:
            raise HTTPException(status_code=502, detail={
                "message": str(e),
                "failures": [f.to_dict() for f in e.failures],
            })
        return {
            "title": body.get("title", ""),
            "results": [r.to_dict() for r in results],
            "failures": [f.to_dict() for f in failures],
        }

    @app.post("/api/generate/stream")
    async def api_generate_stream(request: Request):
        """Generate with NDJSON events: progress, failure, result, then done or error."""
        body = await _json_body(request)
        grade, passages = _parse_generate_body(body)
        settings = _settings(request)
        llm = request.app.state.llm_factory(settings)
        queue: asyncio.Queue = asyncio.Queue()

        async def run():
            try:
                results = await generate_all_content(
                    llm, passages, grade,
                    on_progress=lambda p: queue.put_nowait({"event": "progress", **p.to_dict()}),
                    on_failure=lambda f: queue.put_nowait({"event": "failure", **f.to_dict()}),
                    **settings.pipeline_options(),
                )
                for r in results:
                    queue.put_nowait({"event": "result", "result": r.to_dict()})
                queue.put_nowait({"event": "done", "count": len(results)})
            except BatchExhaustionError as e:
                queue.put_nowait({
                    "event": "error",
                    "message": str(e),
                    "failures": [f.to_dict() for f in e.failures],
                })
            except Exception as e:
                log.exception("Streaming generation failed")
                queue.put_nowait({"event": "error", "message": str(e), "failures": []})
            finally:
                queue.put_nowait(None)

        async def stream():
            task = asyncio.create_task(run())
            try:
                while True:
                    event = await queue.get()
                    if event is None:
                        break
                    yield json.dumps(event, ensure_ascii=False) + "\n"
            finally:
                if not task.done():
                    task.cancel()

        return StreamingResponse(stream(), media_type="application/x-ndjson")

    # ── API: Materials ────────────────────────────────────────────────────

    @app.get("/api/materials")
    async def api_list_materials(request: Request):
        return {"materials": [m.to_dict() for m in _db(request).list_materials()]}

    @app.post("/api/materials")
    async def api_save_material(request: Request):
        title, results = _parse_results(await _json_body(request))
        doc_id = _db(request).save_material(title, results)
        log.info("Saved material '%s' (%s, %d passages)", title, doc_id, len(results))
        return {"docId": doc_id}

    @app.get("/api/materials/{doc_id}")
    async def api_get_material(doc_id: str, request: Request):
        material = _db(request).get_material(doc_id)
        if material is None:
            raise HTTPException(status_code=404, detail="Material not found")
        return material.to_dict()

    @app.delete("/api/materials/{doc_id}")
    async def api_delete_material(doc_id: str, request: Request):
        if not _db(request).delete_material(doc_id):
            raise HTTPException(status_code=404, detail="Material not found")
        return {"deleted": doc_id}

    @app.get("/api/materials/{doc_id}/export")
    async def api_export_material(doc_id: str, request: Request, format: str = "text"):
        material = _db(request).get_material(doc_id)
        if material is None:
            raise HTTPException(status_code=404, detail="Material not found")
        return _export(material.title, material.results, format, _settings(request))

    # ── API: Export ───────────────────────────────────────────────────────

    @app.post("/api/export/text")
    async def api_export_text(request: Request):
        title, results = _parse_results(await _json_body(request))
        return _export(title, results, "text", _settings(request))

    @app.post("/api/export/pdf")
    async def api_export_pdf(request: Request):
        title, results = _parse_results(await _json_body(request))
        return _export(title, results, "pdf", _settings(request))

    # ── API: Content editing ───────────────────────────────────────────────

    @app.post("/api/content/remove-item")
    async def api_remove_item(request: Request):
        """Delete one item from a generated bundle before it is saved."""
        body = await _json_body(request)
        content = _parse_content(body)
        try:
            removed = content.remove_item(str(body.get("section", "")), str(body.get("itemId", "")))
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return {"removed": removed, "content": content.to_dict()}

    @app.post("/api/content/replace-section")
    async def api_replace_section(request: Request):
        body = await _json_body(request)
        content = _parse_content(body)
        try:
            content.replace_section(str(body.get("section", "")), body.get("value"))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise HTTPException(status_code=422, detail=f"cannot replace section: {e}")
        return {"content": content.to_dict()}

    # ── API: Worksheets ───────────────────────────────────────────────────

    @app.post("/api/worksheets/check")
    async def api_check_answer(request: Request):
        body = await _json_body(request)
        item = body.get("item")
        if not isinstance(item, dict):
            raise HTTPException(status_code=422, detail="item is required")
        try:
            return _check_answer(str(body.get("worksheet", "")), item, body.get("answer", ""))
        except (KeyError, TypeError, ValueError) as e:
            raise HTTPException(status_code=422, detail=f"cannot check answer: {e}")

    # ── API: Settings ─────────────────────────────────────────────────────

    @app.get("/api/settings")
    async def api_get_settings(request: Request):
        return _settings(request).to_dict()

    @app.put("/api/settings")
    async def api_update_settings(request: Request):
        body = await _json_body(request)
        s = _settings(request)
        known = set(Settings.__dataclass_fields__)
        for key, value in body.items():
            if key in known:
                setattr(s, key, value)
        save_settings(s)
        return s.to_dict()

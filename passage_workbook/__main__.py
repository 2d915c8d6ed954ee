"""CLI entry point for passage-workbook.

Usage:
  python -m passage_workbook serve [--port PORT] [--host HOST]
  python -m passage_workbook generate --input FILE --grade GRADE [--title TITLE] [--save] [--output FILE]
  python -m passage_workbook list
  python -m passage_workbook show DOC_ID
  python -m passage_workbook delete DOC_ID
  python -m passage_workbook export DOC_ID [--format text|pdf] [--output FILE]

The generate input file is a JSON list of {"english": ..., "korean": ...}.
"""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

USAGE = "Commands: serve, generate, list, show, delete, export"


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    command = args[0] if args else "serve"
    rest = args[1:]

    if command == "serve":
        _serve(rest)
    elif command == "generate":
        return _generate(rest)
    elif command == "list":
        _list()
    elif command == "show":
        return _show(rest)
    elif command == "delete":
        return _delete(rest)
    elif command == "export":
        return _export(rest)
    else:
        print(f"Unknown command: {command}")
        print(USAGE)
        return 1
    return 0


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _positional(args: list[str]) -> str | None:
    return args[0] if args and not args[0].startswith("--") else None


def _open_db():
    from passage_workbook.config import load_settings
    from passage_workbook.db import Database

    settings = load_settings()
    return settings, Database(settings.db_full_path)


def _serve(args: list[str]):
    import uvicorn

    port = int(_parse_flag(args, "--port", "8765"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    print(f"Starting Passage Workbook on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    uvicorn.run(
        "passage_workbook.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=False,
        timeout_graceful_shutdown=5,
    )


def _load_passages(path: Path) -> list[dict]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError("input file must contain a JSON list of passages")
    passages = []
    for i, p in enumerate(data, 1):
        english = str(p.get("english", "")).strip()
        korean = str(p.get("korean", "")).strip()
        if not english or not korean:
            raise ValueError(f"passage #{i} needs both english and korean text")
        passages.append({"english": english, "korean": korean})
    return passages


def _generate(args: list[str]) -> int:
    logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

    input_path = _parse_flag(args, "--input", "")
    grade = _parse_flag(args, "--grade", "")
    if not input_path or not grade:
        print("generate needs --input FILE and --grade GRADE")
        return 1
    title = _parse_flag(args, "--title", Path(input_path).stem)
    output = _parse_flag(args, "--output", "")

    try:
        passages = _load_passages(Path(input_path))
    except (OSError, ValueError, AttributeError) as e:
        print(f"Could not read passages: {e}")
        return 1

    from passage_workbook.content_generator import generate_all_content
    from passage_workbook.errors import BatchExhaustionError
    from passage_workbook.providers.factory import get_llm

    settings, db = _open_db()
    try:
        llm = get_llm(settings)
        print(f"Generating {len(passages)} passage(s) using {llm.name()}...")
        try:
            results = asyncio.run(generate_all_content(
                llm, passages, grade,
                on_progress=lambda p: print(f"  [{p.current}/{p.total}] generating..."),
                on_failure=lambda f: print(f"  [{f.index}/{len(passages)}] FAILED: {f.error}"),
                **settings.pipeline_options(),
            ))
        except BatchExhaustionError as e:
            print(f"\nGeneration failed: {e}")
            return 1

        print(f"\nGenerated {len(results)}/{len(passages)} passages")
        payload = {"title": title, "results": [r.to_dict() for r in results]}
        if output:
            Path(output).write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
            print(f"Wrote {output}")
        if "--save" in args:
            doc_id = db.save_material(title, results)
            print(f"Saved as {doc_id}")
        if not output and "--save" not in args:
            print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0
    finally:
        db.close()


def _list():
    _, db = _open_db()
    materials = db.list_materials()
    if not materials:
        print("No saved materials.")
    for m in materials:
        print(f"{m.doc_id}  {m.created_at[:19]}  {len(m.results):2d} passage(s)  {m.title}")
    db.close()


def _show(args: list[str]) -> int:
    doc_id = _positional(args)
    if doc_id is None:
        print("show needs a DOC_ID")
        return 1
    _, db = _open_db()
    material = db.get_material(doc_id)
    db.close()
    if material is None:
        print(f"Not found: {doc_id}")
        return 1
    from passage_workbook.export import render_text
    print(render_text(material.title, material.results))
    return 0


def _delete(args: list[str]) -> int:
    doc_id = _positional(args)
    if doc_id is None:
        print("delete needs a DOC_ID")
        return 1
    _, db = _open_db()
    deleted = db.delete_material(doc_id)
    db.close()
    if not deleted:
        print(f"Not found: {doc_id}")
        return 1
    print(f"Deleted {doc_id}")
    return 0


def _export(args: list[str]) -> int:
    from passage_workbook.errors import ExportError
    from passage_workbook.export import export_filename, render_pdf, render_text

    doc_id = _positional(args)
    if doc_id is None:
        print("export needs a DOC_ID")
        return 1
    fmt = _parse_flag(args, "--format", "text")
    if fmt not in ("text", "pdf"):
        print(f"Unknown format: {fmt}")
        return 1

    settings, db = _open_db()
    material = db.get_material(doc_id)
    db.close()
    if material is None:
        print(f"Not found: {doc_id}")
        return 1

    ext = "txt" if fmt == "text" else "pdf"
    default_out = settings.export_full_path / export_filename(material.title, ext)
    out = Path(_parse_flag(args, "--output", str(default_out)))
    if fmt == "text":
        data = render_text(material.title, material.results).encode("utf-8")
    else:
        try:
            data = render_pdf(material.title, material.results, font_path=settings.pdf_font)
        except ExportError as e:
            print(f"Export failed: {e}")
            return 1
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(data)
    print(f"Exported {out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

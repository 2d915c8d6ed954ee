"""Plain-text and PDF exports of generated study material."""
from __future__ import annotations

import io
import logging
import os
from collections.abc import Sequence
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from passage_workbook.errors import ExportError
from passage_workbook.models import PassageResult
from passage_workbook.worksheets import format_paragraph_order, paragraph_label

log = logging.getLogger("passage_workbook.export")

BANNER = "=================="

PAGE_WIDTH = 1240
MARGIN = 80
FONT_SIZE = 24
TITLE_FONT_SIZE = 36
LINE_SPACING = 1.5


def export_filename(title: str, ext: str) -> str:
    return f"{title.strip().replace(' ', '_')}_학습자료.{ext}"


def passage_lines(index: int, result: PassageResult) -> list[str]:
    """Lines for one passage in export order.

    analysis → vocabulary → expanded vocabulary → translated sentences →
    worksheets (multiple choice → sentence scramble → paragraph scramble).
    *index* is 1-based.
    """
    c = result.content
    lines = ["", BANNER, f"    지문 #{index}", BANNER, ""]

    lines.append("--- 글의 분석 ---")
    lines.append(f"한글 주제: {c.korean_topic}")
    lines.append(f"영어 제목: {c.english_title}")
    lines.append(f"내용 요약 (한글): {c.korean_summary}")
    lines.append("글의 흐름:")
    lines.extend(f"{i}. {step}" for i, step in enumerate(c.text_flow, 1))

    lines += ["", "--- 어휘 정리 ---"]
    lines.extend(f"{v.word}: {v.meaning}" for v in c.vocabulary)

    lines += ["", "--- 어휘 확장 ---"]
    for v in c.expanded_vocabulary:
        lines += [
            "",
            f"[{v.word}]",
            f"Korean Meaning: {v.meaning}",
            f"English Meaning: {v.definition}",
            f"Synonym: {v.synonym}",
            f"Antonym: {v.antonym}",
        ]

    lines += ["", "--- 한줄 해석 ---"]
    for s in c.translated_sentences:
        lines += ["", s.korean, s.english]

    lines += ["", "--- 워크시트 ---"]
    lines += ["", "[어휘 및 어법 선택]"]
    lines.extend(
        f"{i}. {q.sentence} (정답: {q.answer})"
        for i, q in enumerate(c.multiple_choice_worksheet, 1)
    )

    lines += ["", "[문장 배열]"]
    for i, q in enumerate(c.sentence_scramble_worksheet, 1):
        lines += [f"{i}. {' / '.join(q.scrambled)}", f"정답: {q.correct}"]

    para = c.paragraph_scramble_worksheet
    lines += ["", "[문단 배열]"]
    lines.append(f"정답 순서: {format_paragraph_order(para.correct_order)}")
    lines.extend(
        f"({paragraph_label(i)}) {p}" for i, p in enumerate(para.scrambled_paragraphs)
    )
    return lines


def render_text(title: str, results: list[PassageResult]) -> str:
    out = [f"AI 생성 영어 학습자료: {title}", ""]
    for i, result in enumerate(results, 1):
        out.extend(passage_lines(i, result))
    return "\n".join(out) + "\n"


# ── PDF ───────────────────────────────────────────────────────────────────


FONT_DIRS = (
    Path("/usr/share/fonts"),
    Path("/usr/local/share/fonts"),
    Path.home() / ".local" / "share" / "fonts",
    Path.home() / ".fonts",
    Path("/Library/Fonts"),
    Path("/System/Library/Fonts"),
    Path(os.environ.get("WINDIR", "C:/Windows")) / "Fonts",
)

# Searched in order; the first pattern with a hit wins.
CJK_FONT_PATTERNS = (
    "NotoSansCJK*-Regular.tt[cf]",
    "NotoSansCJKkr-Regular.otf",
    "NotoSansKR-Regular.[ot]tf",
    "NanumGothic.ttf",
    "NanumBarunGothic.ttf",
    "malgun.ttf",
    "AppleSDGothicNeo.ttc",
    "UnDotum.ttf",
    "wqy-zenhei.ttc",
    "NotoSansCJK*.tt[cf]",
)


def find_cjk_font(dirs: Sequence[Path] = FONT_DIRS) -> Path | None:
    """First installed font with Hangul coverage under the usual system font dirs."""
    existing = [d for d in dirs if d.is_dir()]
    for pattern in CJK_FONT_PATTERNS:
        for d in existing:
            hits = sorted(d.rglob(pattern))
            if hits:
                return hits[0]
    return None


def resolve_font(font_path: Path | None = None) -> Path:
    """The configured font, else a discovered CJK font.

    Raises ``ExportError`` when neither exists.
    """
    if font_path is not None:
        if not Path(font_path).is_file():
            raise ExportError(f"PDF font not found: {font_path}")
        return Path(font_path)
    found = find_cjk_font()
    if found is None:
        raise ExportError(
            "no Korean-capable font found for PDF export; "
            "install Noto Sans CJK or NanumGothic, or set pdf_font_path in config.json"
        )
    log.info("Using PDF font %s", found)
    return found


def _load_font(font_path: Path, size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.truetype(str(font_path), size)


def _wrap(text: str, font, max_width: float) -> list[str]:
    if not text:
        return [""]
    lines: list[str] = []
    current = ""
    for word in text.split(" "):
        candidate = f"{current} {word}" if current else word
        if not current or font.getlength(candidate) <= max_width:
            current = candidate
        else:
            lines.append(current)
            current = word
    lines.append(current)
    return lines


def _layout(lines: list[str], font, max_width: float) -> list[str]:
    """Split embedded newlines, then wrap each physical line to *max_width*."""
    return [
        w
        for line in lines
        for part in (line.splitlines() or [""])
        for w in _wrap(part, font, max_width)
    ]


def _render_page(lines: list[str], font, width: int, heading: str | None = None, heading_font=None) -> Image.Image:
    max_width = width - 2 * MARGIN
    line_height = int(FONT_SIZE * LINE_SPACING)
    wrapped = _layout(lines, font, max_width)

    heading_height = int(TITLE_FONT_SIZE * 2) if heading else 0
    height = 2 * MARGIN + heading_height + line_height * len(wrapped)
    page = Image.new("RGB", (width, height), "white")
    draw = ImageDraw.Draw(page)

    y = MARGIN
    if heading:
        draw.text((MARGIN, y), heading, fill="black", font=heading_font)
        y += heading_height
    for line in wrapped:
        draw.text((MARGIN, y), line, fill="black", font=font)
        y += line_height
    return page


def render_pdf(
    title: str,
    results: list[PassageResult],
    *,
    font_path: Path | None = None,
    width: int = PAGE_WIDTH,
) -> bytes:
    """Render each passage as one page image and bundle the pages into a PDF.

    Raises ``ExportError`` if there is nothing to export or no usable font.
    """
    if not results:
        raise ExportError("nothing to export")
    resolved = resolve_font(font_path)
    font = _load_font(resolved, FONT_SIZE)
    heading_font = _load_font(resolved, TITLE_FONT_SIZE)

    pages = []
    for i, result in enumerate(results, 1):
        heading = f"AI 생성 영어 학습자료: {title}" if i == 1 else None
        pages.append(_render_page(passage_lines(i, result), font, width, heading, heading_font))

    buf = io.BytesIO()
    pages[0].save(buf, format="PDF", save_all=True, append_images=pages[1:], resolution=150.0)
    log.info("Rendered PDF '%s': %d pages", title, len(pages))
    return buf.getvalue()

"""Tests for text and PDF exports."""
from __future__ import annotations

import copy
import re
from unittest.mock import patch

import pytest
from PIL import Image, ImageDraw, ImageFont

from passage_workbook.errors import ExportError
from passage_workbook.export import (
    _layout,
    _render_page,
    export_filename,
    find_cjk_font,
    passage_lines,
    render_pdf,
    render_text,
    resolve_font,
)


def _pages(pdf: bytes) -> int:
    return len(re.findall(rb"/Type\s*/Page\b", pdf))


class TestFilename:
    def test_spaces_replaced(self):
        assert export_filename(" Unit 1 Review ", "txt") == "Unit_1_Review_학습자료.txt"

    def test_pdf(self):
        assert export_filename("중간고사", "pdf") == "중간고사_학습자료.pdf"


class TestRenderText:
    def test_header(self, sample_result):
        text = render_text("Unit 1", [sample_result])
        assert text.startswith("AI 생성 영어 학습자료: Unit 1\n")
        assert text.endswith("\n")

    def test_section_order(self, sample_result):
        text = render_text("Unit 1", [sample_result])
        headings = ["--- 글의 분석 ---", "--- 어휘 정리 ---", "--- 어휘 확장 ---", "--- 한줄 해석 ---",
                    "--- 워크시트 ---", "[어휘 및 어법 선택]", "[문장 배열]", "[문단 배열]"]
        positions = [text.index(h) for h in headings]
        assert positions == sorted(positions)

    def test_passages_numbered_from_one(self, sample_result):
        second = copy.deepcopy(sample_result)
        second.source_index = 1
        text = render_text("Unit 1", [sample_result, second])
        assert "지문 #1" in text
        assert "지문 #2" in text
        assert "지문 #0" not in text

    def test_content_lines(self, sample_result):
        lines = passage_lines(1, sample_result)
        assert "한글 주제: 고양이의 특징" in lines
        assert "1. 고양이는 포유류이다" in lines
        assert "mammal: 포유류" in lines
        assert "English Meaning: a warm-blooded animal" in lines
        assert "1. Cats [is/are] mammals. (정답: are)" in lines
        assert "1. mammals / Cats / are" in lines
        assert "정답: Cats are mammals." in lines

    def test_paragraph_labels(self, sample_result):
        lines = passage_lines(1, sample_result)
        assert "정답 순서: B -> A" in lines
        assert "(A) They sleep often." in lines
        assert "(B) Cats are mammals." in lines

    def test_translation_korean_first(self, sample_result):
        lines = passage_lines(1, sample_result)
        i = lines.index("고양이는 포유류다.")
        assert lines[i + 1] == "Cats are mammals."


class TestFonts:
    def test_find_in_dirs(self, tmp_path):
        (tmp_path / "truetype" / "nanum").mkdir(parents=True)
        font = tmp_path / "truetype" / "nanum" / "NanumGothic.ttf"
        font.write_bytes(b"")
        (tmp_path / "DejaVuSans.ttf").write_bytes(b"")
        assert find_cjk_font([tmp_path]) == font

    def test_pattern_priority(self, tmp_path):
        (tmp_path / "NanumGothic.ttf").write_bytes(b"")
        (tmp_path / "NotoSansCJK-Regular.ttc").write_bytes(b"")
        assert find_cjk_font([tmp_path, tmp_path / "missing"]).name == "NotoSansCJK-Regular.ttc"

    def test_none_found(self, tmp_path):
        (tmp_path / "DejaVuSans.ttf").write_bytes(b"")
        assert find_cjk_font([tmp_path]) is None

    def test_configured_font_missing(self, tmp_path):
        with pytest.raises(ExportError, match="not found"):
            resolve_font(tmp_path / "nope.ttf")

    def test_no_font_available(self):
        with patch("passage_workbook.export.find_cjk_font", return_value=None):
            with pytest.raises(ExportError, match="pdf_font_path"):
                resolve_font(None)

    def test_resolved_font_draws_distinct_hangul(self, cjk_font):
        font = ImageFont.truetype(str(resolve_font(None)), 24)

        def glyph(ch: str) -> bytes:
            img = Image.new("L", (48, 48), 0)
            ImageDraw.Draw(img).text((4, 4), ch, fill=255, font=font)
            return img.tobytes()

        glyphs = [glyph(ch) for ch in ("가", "나", "힣")]
        assert len(set(glyphs)) == 3
        assert all(any(g) for g in glyphs)


class TestLayout:
    def test_embedded_newlines_get_their_own_rows(self):
        font = ImageFont.load_default(size=24)
        assert _layout(["first\nsecond", "third"], font, 800) == ["first", "second", "third"]
        assert _layout([""], font, 800) == [""]

    def test_page_height_counts_embedded_newlines(self):
        font = ImageFont.load_default(size=24)
        split = _render_page(["a", "b", "c"], font, 800)
        joined = _render_page(["a\nb\nc"], font, 800)
        assert joined.height == split.height

    def test_long_lines_wrap(self):
        font = ImageFont.load_default(size=24)
        rows = _layout(["word " * 80], font, 400)
        assert len(rows) > 1
        assert all(font.getlength(r) <= 400 for r in rows)


class TestRenderPdf:
    def test_pdf_bytes(self, sample_result, cjk_font):
        pdf = render_pdf("Unit 1", [sample_result])
        assert pdf.startswith(b"%PDF")
        assert _pages(pdf) == 1

    def test_one_page_per_passage(self, sample_result, cjk_font):
        results = [copy.deepcopy(sample_result) for _ in range(3)]
        assert _pages(render_pdf("Unit 1", results, font_path=cjk_font)) == 3

    def test_empty_rejected(self):
        with pytest.raises(ExportError):
            render_pdf("Unit 1", [])

    def test_no_font_rejected(self, sample_result):
        with patch("passage_workbook.export.find_cjk_font", return_value=None):
            with pytest.raises(ExportError):
                render_pdf("Unit 1", [sample_result])

"""Tests for result building, report rendering and the event catalog."""

import json

from font_inspector.catalog import FontCatalog
from font_inspector.models import DetectedFont
from font_inspector.report import (
    build_font_filename,
    build_results,
    css_snippet,
    extract_site_name,
    font_file_extension,
    render_report,
    safe_filename,
    write_json,
)
from font_inspector.session import DETECTION_DONE, FONT_UPGRADED, ROLLOVER_RESULT


def make_font(**overrides):
    data = dict(
        id="style_inter_700_normal_abc123",
        family="Inter",
        full_name="Inter Bold",
        weight="Bold",
        weight_num=700,
        style="normal",
        source="binary",
        variable=False,
        css_family='"Inter", sans-serif',
        font_face_src="https://example.com/fonts/inter-bold.woff2?v=4",
    )
    data.update(overrides)
    return DetectedFont(**data)


class TestFilenames:
    def test_regular(self):
        assert build_font_filename(make_font()) == "Inter-Bold.woff2"

    def test_style_suffix_and_family_spaces(self):
        font = make_font(
            family="Open Sans",
            weight="Semi Bold",
            style="italic",
            font_face_src="https://example.com/os.ttf",
        )
        assert build_font_filename(font) == "OpenSans-Semi BoldItalic.ttf"

    def test_path_characters_are_replaced(self):
        assert build_font_filename(make_font(family="AC/DC", weight="Regular")) == "AC_DC-Regular.woff2"
        name = build_font_filename(make_font(family="../../etc/passwd", weight="Bold"))
        assert "/" not in name
        assert not name.startswith(".")
        assert safe_filename("///") == "font"

    def test_no_file_for_inline_or_missing_source(self):
        assert build_font_filename(make_font(font_face_src="data:font/woff2;base64,AAAA")) is None
        assert build_font_filename(make_font(font_face_src=None)) is None

    def test_extension_defaults_to_woff2(self):
        assert font_file_extension("https://example.com/font?id=1") == "woff2"
        assert font_file_extension("https://example.com/a.OTF") == "otf"


class TestResults:
    def test_css_snippet(self):
        assert css_snippet(make_font()) == 'font-family: "Inter", sans-serif;\nfont-weight: 700;\nfont-style: normal;'

    def test_build_and_render(self, tmp_path):
        fonts = [make_font(), make_font(id="style_x", family="Lora", full_name="Lora Regular", weight="Regular",
                                        weight_num=400, source="css", font_face_src=None)]
        results = build_results("https://www.example.com/page", fonts, ["Font binary unavailable: x"])
        assert results["meta"]["site_name"] == "example"
        assert results["count"] == 2
        assert results["notes"] == ["Limits:", "Font binary unavailable: x"]

        report = render_report(results)
        assert "# Fonts on example" in report
        assert "| Inter Bold | Inter | 700 | normal | False | binary |" in report
        assert "1 identified from font files" in report
        assert "### Lora Regular" in report
        assert "- Font binary unavailable: x" in report

        path = tmp_path / "fonts.json"
        write_json(path, results)
        assert json.loads(path.read_text(encoding="utf-8"))["fonts"][0]["fullName"] == "Inter Bold"

    def test_no_limits(self):
        results = build_results("https://example.com", [], [])
        assert results["notes"] == ["Limits: none detected"]
        assert "(none)" in render_report(results)

    def test_site_name_fallback(self):
        assert extract_site_name("not a url") == "site"


class TestCatalog:
    def test_upsert_by_id_is_idempotent(self):
        catalog = FontCatalog()
        css_record = make_font(source="css", full_name="Body Regular")
        message = {"type": DETECTION_DONE, "fonts": [css_record.to_dict()]}
        catalog(message)
        catalog(message)
        assert len(catalog) == 1

        catalog({"type": FONT_UPGRADED, "font": make_font().to_dict()})
        assert len(catalog) == 1
        assert catalog.fonts()[0].source == "binary"
        assert catalog.to_list()[0]["fontFaceSrc"] == "https://example.com/fonts/inter-bold.woff2?v=4"

    def test_ignores_other_messages(self):
        catalog = FontCatalog()
        catalog({"type": ROLLOVER_RESULT, "font": None})
        assert len(catalog) == 0
        assert catalog.events == 0

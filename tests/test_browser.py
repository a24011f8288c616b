"""Tests for the Playwright driver and CLI helpers, with the page faked out."""

import asyncio

from font_inspector.browser import (
    APPLY_TAGS_JS,
    CAPTURE_JS,
    CAPTURE_REF_ATTRIBUTE,
    DEFAULT_VIEWPORT,
    FontInspector,
    apply_tags,
    capture_snapshot,
)
from font_inspector.cli import parse_viewport
from font_inspector.models import FONT_TAG_ATTRIBUTE, DetectedFont
from font_inspector.transport import DIRECT_FETCH_JS

from .conftest import FakeTransport, b64

PAGE_URL = "https://example.com/"
FONT_URL = "https://example.com/fonts/body.woff2"

CAPTURED = {
    "url": PAGE_URL,
    "elements": [
        {
            "index": 4,
            "tag": "P",
            "has_text": True,
            "visibility": "visible",
            "display": "block",
            "width": 300,
            "height": 18,
            "font_family": '"Body", sans-serif',
            "font_weight": "400",
            "font_style": "normal",
            "font_size": "16px",
            "color": "rgb(0, 0, 0)",
        },
    ],
    "stylesheets": [
        {
            "href": "https://example.com/site.css",
            "rules": [
                {"kind": "group", "rules": [
                    {
                        "kind": "font-face",
                        "css_text": '@font-face { font-family: "Body"; src: url("/fonts/body.woff2") format("woff2"); }',
                    },
                ]},
            ],
        },
    ],
}


class FakeRequestContext:
    async def get(self, url):
        raise RuntimeError("offline")


class FakeContext:
    request = FakeRequestContext()


class FakePage:
    def __init__(self, fonts=None, tag_error=None):
        self.fonts = fonts or {}
        self.tag_error = tag_error
        self.context = FakeContext()
        self.captured = []
        self.applied = []
        self.fetched = []
        self.visited = []

    async def goto(self, url, **kwargs):
        self.visited.append(url)

    async def wait_for_selector(self, selector, **kwargs):
        return None

    async def wait_for_load_state(self, state, **kwargs):
        raise TimeoutError("still loading")

    async def wait_for_timeout(self, ms):
        return None

    async def evaluate(self, script, arg=None):
        if script == CAPTURE_JS:
            self.captured.append(arg)
            return CAPTURED
        if script == APPLY_TAGS_JS:
            if self.tag_error:
                raise self.tag_error
            self.applied.append(arg)
            return len(arg["tags"])
        if script == DIRECT_FETCH_JS:
            self.fetched.append(arg["url"])
            body = self.fonts.get(arg["url"])
            if body is None:
                return None
            return b64(body) if arg["base64"] else body.decode("utf-8")
        raise AssertionError("unexpected script")


def test_parse_viewport():
    assert parse_viewport("1280x720") == {"width": 1280, "height": 720}
    assert parse_viewport("wide") == DEFAULT_VIEWPORT
    assert parse_viewport("axb") == DEFAULT_VIEWPORT
    assert parse_viewport(None) == DEFAULT_VIEWPORT


def test_capture_and_apply_tags():
    page = FakePage()

    async def run():
        snapshot = await capture_snapshot(page)
        assert await apply_tags(page, snapshot) == 0
        snapshot.tag(snapshot.elements, "style_body")
        return await apply_tags(page, snapshot)

    assert asyncio.run(run()) == 1
    assert page.captured == [CAPTURE_REF_ATTRIBUTE]
    assert page.applied == [{
        "attribute": FONT_TAG_ATTRIBUTE,
        "refAttribute": CAPTURE_REF_ATTRIBUTE,
        "tags": [[4, "style_body"]],
    }]


def test_tags_resolve_through_capture_marker():
    # positions shift when the page mutates between capture and write-back
    assert "setAttribute(refAttribute" in CAPTURE_JS
    assert "querySelector(`[${refAttribute}=" in APPLY_TAGS_JS
    assert "getElementsByTagName" not in APPLY_TAGS_JS


def test_inspect_page_end_to_end(tmp_path, inter_bold_font):
    page = FakePage({FONT_URL: inter_bold_font})
    inspector = FontInspector(PAGE_URL, str(tmp_path / "out"), download=True)
    asyncio.run(inspector.inspect_page(page))

    fonts = inspector.catalog.fonts()
    assert [f.full_name for f in fonts] == ["Inter Bold"]
    assert fonts[0].source == "binary"
    assert inspector.limits == []
    assert inspector.downloads == {"Inter-Bold.woff2": FONT_URL}
    assert (tmp_path / "out" / "fonts" / "Inter-Bold.woff2").read_bytes() == inter_bold_font


def test_inspect_page_records_stage_failures(tmp_path):
    class BrokenPage(FakePage):
        async def goto(self, url, **kwargs):
            raise RuntimeError("net::ERR_NAME_NOT_RESOLVED")

    inspector = FontInspector(PAGE_URL, str(tmp_path))
    asyncio.run(inspector.inspect_page(BrokenPage()))
    assert inspector.limits == [f"Failed to inspect {PAGE_URL} at goto: net::ERR_NAME_NOT_RESOLVED"]


def test_tag_failures_do_not_stop_phase2(tmp_path, inter_bold_font):
    page = FakePage({FONT_URL: inter_bold_font}, tag_error=RuntimeError("Execution context was destroyed"))
    inspector = FontInspector(PAGE_URL, str(tmp_path))
    asyncio.run(inspector.inspect_page(page))

    fonts = inspector.catalog.fonts()
    assert [(f.full_name, f.source) for f in fonts] == [("Inter Bold", "binary")]
    assert page.fetched == [FONT_URL]
    assert inspector.limits == [
        f"Failed to tag elements on {PAGE_URL} at tag_phase1: Execution context was destroyed",
        f"Failed to tag elements on {PAGE_URL} at tag_phase2: Execution context was destroyed",
    ]


def test_session_limits_survive_a_later_failure(tmp_path, monkeypatch):
    async def full_disk(self, transport):
        raise OSError("disk full")

    monkeypatch.setattr(FontInspector, "download_fonts", full_disk)
    inspector = FontInspector(PAGE_URL, str(tmp_path), download=True)
    asyncio.run(inspector.inspect_page(FakePage()))

    assert inspector.limits == [
        f"Failed to inspect {PAGE_URL} at download: disk full",
        f"Font binary unavailable: {FONT_URL}",
    ]


def catalog_font(font_id, family, weight, src):
    return DetectedFont(
        id=font_id,
        family=family,
        full_name=f"{family} {weight}",
        weight=weight,
        weight_num=400,
        style="normal",
        source="css",
        variable=False,
        css_family=family,
        font_face_src=src,
    )


class TestDownloads:
    ACDC_URL = "https://example.com/fonts/acdc.woff2"

    def make_inspector(self, tmp_path):
        inspector = FontInspector(PAGE_URL, str(tmp_path), download=True)
        inspector.catalog.upsert(catalog_font("style_acdc", "AC/DC", "Regular", self.ACDC_URL))
        inspector.catalog.upsert(catalog_font("style_inter", "Inter", "Bold", FONT_URL))
        return inspector

    def test_family_names_become_safe_filenames(self, tmp_path):
        inspector = self.make_inspector(tmp_path)
        transport = FakeTransport({self.ACDC_URL: b"acdc", FONT_URL: b"inter"})
        asyncio.run(inspector.download_fonts(transport))

        assert inspector.downloads == {"AC_DC-Regular.woff2": self.ACDC_URL, "Inter-Bold.woff2": FONT_URL}
        assert (tmp_path / "fonts" / "AC_DC-Regular.woff2").read_bytes() == b"acdc"
        assert inspector.limits == []

    def test_bad_payload_skips_only_that_font(self, tmp_path):
        class GarbledTransport(FakeTransport):
            async def fetch(self, url, want_base64=False):
                if url == TestDownloads.ACDC_URL:
                    return "abc"
                return await super().fetch(url, want_base64)

        inspector = self.make_inspector(tmp_path)
        asyncio.run(inspector.download_fonts(GarbledTransport({FONT_URL: b"inter"})))

        assert inspector.downloads == {"Inter-Bold.woff2": FONT_URL}
        assert (tmp_path / "fonts" / "Inter-Bold.woff2").read_bytes() == b"inter"
        assert len(inspector.limits) == 1
        assert inspector.limits[0].startswith("Download skipped for AC/DC Regular: ")

"""
Pytest configuration and fixtures for font detection tests.
"""

import base64
import io
from typing import Dict, List, Optional

import pytest
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen

from font_inspector.errors import FetchError
from font_inspector.models import CSSRuleInfo, DocumentSnapshot, ElementInfo, StyleSheetInfo


def build_font(
    family: str,
    style: str = "Regular",
    typographic_family: Optional[str] = None,
    typographic_subfamily: Optional[str] = None,
    weight_class: int = 400,
    variable: bool = False,
    flavor: Optional[str] = None,
) -> bytes:
    """Build a minimal TrueType font in memory."""
    fb = FontBuilder(1000, isTTF=True)
    fb.setupGlyphOrder([".notdef", "space"])

    pen = TTGlyphPen(None)
    pen.moveTo((50, 0))
    pen.lineTo((450, 0))
    pen.lineTo((450, 700))
    pen.lineTo((50, 700))
    pen.closePath()
    fb.setupGlyf({".notdef": pen.glyph(), "space": TTGlyphPen(None).glyph()})
    fb.setupHorizontalMetrics({".notdef": (500, 50), "space": (250, 0)})
    fb.setupCharacterMap({0x20: "space"})
    fb.setupHorizontalHeader(ascent=800, descent=-200)

    names = {
        "familyName": family,
        "styleName": style,
        "uniqueFontIdentifier": f"{family}-{style}",
        "fullName": f"{family} {style}",
        "psName": f"{family.replace(' ', '')}-{style.replace(' ', '')}",
        "version": "Version 1.000",
    }
    if typographic_family:
        names["typographicFamily"] = typographic_family
    if typographic_subfamily:
        names["typographicSubfamily"] = typographic_subfamily
    fb.setupNameTable(names)
    fb.setupOS2(usWeightClass=weight_class, sTypoAscender=800, sTypoDescender=-200, usWinAscent=800, usWinDescent=200)
    fb.setupPost()
    if variable:
        fb.setupFvar([("wght", 100, 400, 900, "Weight")], [])
    if flavor:
        fb.font.flavor = flavor

    buf = io.BytesIO()
    fb.save(buf)
    return buf.getvalue()


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def text_element(
    index: int,
    font_family: str,
    font_weight: str = "400",
    font_style: str = "normal",
    tag: str = "P",
    **kwargs,
) -> ElementInfo:
    return ElementInfo(
        index=index,
        tag=tag,
        has_text=kwargs.pop("has_text", True),
        visibility=kwargs.pop("visibility", "visible"),
        display=kwargs.pop("display", "block"),
        width=kwargs.pop("width", 200.0),
        height=kwargs.pop("height", 20.0),
        font_family=font_family,
        font_weight=font_weight,
        font_style=font_style,
        **kwargs,
    )


def font_face(family: str, src: str, weight: str = "400", style: str = "normal") -> CSSRuleInfo:
    return CSSRuleInfo(
        kind="font-face",
        css_text=f'@font-face {{ font-family: "{family}"; src: {src}; font-weight: {weight}; font-style: {style}; }}',
    )


class FakeTransport:
    """In-memory transport: text for stylesheets, bytes for font files."""

    def __init__(self, responses: Optional[Dict[str, object]] = None):
        self.responses = dict(responses or {})
        self.calls: List[str] = []

    async def fetch(self, url: str, want_base64: bool = False) -> str:
        self.calls.append(url)
        if url not in self.responses:
            raise FetchError(url, "HTTP 404")
        body = self.responses[url]
        if isinstance(body, Exception):
            raise body
        if want_base64:
            return b64(body if isinstance(body, bytes) else body.encode("utf-8"))
        return body if isinstance(body, str) else body.decode("utf-8")


@pytest.fixture
def inter_bold_font():
    return build_font("Inter Bold", "Regular", typographic_family="Inter", typographic_subfamily="Bold", weight_class=700)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def sample_snapshot():
    """Page with one same-origin @font-face and one CORS-blocked stylesheet."""
    return DocumentSnapshot(
        url="https://example.com/",
        elements=[
            text_element(0, '"Body", sans-serif'),
            text_element(1, '"Body", sans-serif'),
            text_element(2, "Arial, sans-serif", "700"),
            text_element(3, "Georgia, serif", tag="SCRIPT"),
        ],
        stylesheets=[
            StyleSheetInfo(
                href="https://example.com/site.css",
                rules=[font_face("Body", 'url("/fonts/body.woff2") format("woff2")')],
            ),
            StyleSheetInfo(href="https://cdn.example.net/fonts.css", rules=None),
        ],
    )

"""Identify the fonts that render a web page from @font-face rules and font binaries."""

from .binary import FontBinaryMeta, parse_font_binary
from .catalog import FontCatalog
from .errors import FetchError, FontInspectorError
from .models import DetectedFont, DocumentSnapshot, ElementInfo, FontFaceRule, FontSource, StyleGroup
from .session import DetectionState, FontDetectionSession

__version__ = "0.1.0"

__all__ = [
    "DetectedFont",
    "DetectionState",
    "DocumentSnapshot",
    "ElementInfo",
    "FetchError",
    "FontBinaryMeta",
    "FontCatalog",
    "FontDetectionSession",
    "FontFaceRule",
    "FontInspectorError",
    "FontSource",
    "StyleGroup",
    "parse_font_binary",
]

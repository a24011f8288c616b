"""
Name, weight and style heuristics for font identification.

The keyword passes below run in a fixed order (compound weights, short
weights, italic keywords, then the broad weight vocabulary) and weight
extraction keeps the longest match, so "Semibold" wins over "Bold".
"""

import hashlib
import math
import re
from typing import Any, Dict, Optional, Tuple, Union
from urllib.parse import unquote


WEIGHT_NAME_TO_NUM: Dict[str, int] = {
    "xthin": 50, "extrathin": 50, "hairline": 50, "ultrathin": 50,
    "thin": 100,
    "xlight": 200, "extralight": 200, "ultralight": 200,
    "light": 300, "clair": 300, "lighter": 300,
    "book": 400, "normal": 400, "regular": 400, "standard": 400, "initial": 400,
    "medium": 500,
    "demi": 600, "semi": 600, "demibold": 600, "semibold": 600,
    "bold": 700,
    "xbold": 800, "extrabold": 800, "ultrabold": 800, "bolder": 800,
    "heavy": 900, "black": 900, "noir": 900,
    "ultra": 950, "xblack": 950, "extrablack": 950, "poster": 950, "ultrablack": 950,
}

WEIGHT_NUM_TO_NAME: Dict[int, str] = {
    100: "Thin",
    200: "Extra Light",
    300: "Light",
    400: "Regular",
    500: "Medium",
    600: "Semi Bold",
    700: "Bold",
    800: "Extra Bold",
    900: "Black",
    950: "Extra Black",
}

GENERIC_FAMILY_RE = re.compile(r"^(sans|sans-serif|monospace|serif|system-ui|cursive|emoji)", re.IGNORECASE)
COMPOUND_WEIGHT_RE = re.compile(r"(ultra|extra|semi|demi|super)(\s|-)?([a-z]+)", re.IGNORECASE)
SHORT_WEIGHT_RE = re.compile(r"e?x-?(thin|light|black|bold|heavy)", re.IGNORECASE)
ITALIC_KEYWORD_RE = re.compile(r"\b(italic|italique|slanted|oblique)\b", re.IGNORECASE)
WEIGHT_KEYWORD_RE = re.compile(
    r"\b(Hair(?:line)?|Bold|Italic|Italique|Slanted|Normal|Regular|Reg|Book|Roman|Medium"
    r"|Oblique|Thin|Heavy|Black|Noir|Demi|Super|Light|Ultra|Clair|Semi)\b",
    re.IGNORECASE,
)
WEIGHT_EXTRACT_RE = re.compile(
    r"\w*?((Ultra|Extra|Semi|Demi)(\s|-|X-)?([Tt]hin|[Ll]ight|[Bb]lack|[Bb]old|[Hh]eavy)"
    r"|Hair(?:line)?|[xX]?Thin|Light|Medium|[xX]?Bold|Black|Heavy|Standard|Book)\w*?",
    re.IGNORECASE,
)

STYLE_PATTERNS: Tuple[Tuple[str, "re.Pattern[str]"], ...] = (
    ("oblique", re.compile(r"oblique", re.IGNORECASE)),
    ("italic", re.compile(r"italic|italique|kursiv|corsivo|cursiva|Ita?$", re.IGNORECASE)),
    ("slanted", re.compile(r"slanted", re.IGNORECASE)),
)

_CONTROL_CHARS_RE = re.compile("[\u0000-\u0008\ud800-\udfff]")
_EDGE_TRIM_RE = re.compile(r"^.*?([a-z0-9]+.*[a-z0-9]+).*?$", re.IGNORECASE)


def capitalize(value: str) -> str:
    return value[:1].upper() + value[1:]


def clean_name_string(value: Optional[str]) -> str:
    """Normalize a raw name-table string: dashes to spaces, no control chars."""
    s = re.sub(r"-+", " ", value or "")
    s = _CONTROL_CHARS_RE.sub("", s)
    s = re.sub(r"\s+", " ", s)
    return s.strip()


def clean_font_family(raw: Optional[str]) -> str:
    """Strip quotes and serialization artifacts from a CSS font-family value."""
    s = unquote(raw or "")
    s = re.sub(r'"(.+?)"', r"\1", s)
    s = re.sub(r"'(.+?)'", r"\1", s)
    s = re.sub(r"\s+\w+=.+(\S|$)", "", s)
    return _EDGE_TRIM_RE.sub(r"\1", s).strip()


def clean_font_name(name: str) -> str:
    """Strip weight and style keywords from a full font name to get the family root."""
    s = (name or "").strip()
    if GENERIC_FAMILY_RE.match(s):
        return s
    s = re.sub(r"[^\w\s-]", "", s)
    s = COMPOUND_WEIGHT_RE.sub(" ", s)
    s = SHORT_WEIGHT_RE.sub(" ", s)
    s = re.sub(r"Ita?$", " ", s)
    s = re.sub(r"\sita?$", " ", s, flags=re.IGNORECASE)
    s = ITALIC_KEYWORD_RE.sub(" ", s)
    s = WEIGHT_KEYWORD_RE.sub(" ", s)
    words = re.findall(r"\w+", s)
    return " ".join(words).strip() if words else s.strip()


def clean_weight(name: Optional[str]) -> str:
    """Return the most specific weight keyword in a name, lowercased, or ''."""
    s = name or ""
    if re.search(r"demi$", s, re.IGNORECASE):
        s = s[:-4] + "Semibold"
    if re.search(r"ultra$", s, re.IGNORECASE):
        s = s[:-5] + "Ultrablack"
    matches = [m.group(0) for m in WEIGHT_EXTRACT_RE.finditer(s)]
    if not matches:
        return ""
    longest = sorted(matches, key=len, reverse=True)[0]
    return re.sub(r"[\s-]", "", longest).lower()


def _parse_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number):
        return None
    return number


def map_weight(value: Union[str, int, float, None]) -> Dict[str, Any]:
    """Map a weight keyword or number to ``{"weight": name, "weightNum": number}``."""
    if value is None:
        value = ""
    number = _parse_number(value)
    if number is not None:
        num = number if math.isfinite(number) and number else 400.0
        if num < 0:
            num = -num
        while num > 1000:
            num = math.floor(num / 10)
        while num < 10:
            num *= 10
        if num <= 50:
            snapped = 100
        elif num >= 950:
            snapped = 950
        else:
            snapped = 100 * int(math.floor(num / 100 + 0.5))
        return {"weight": WEIGHT_NUM_TO_NAME.get(snapped, "Regular"), "weightNum": snapped}

    key = re.sub(r"[\s-]", "", str(value).lower())
    if key in WEIGHT_NAME_TO_NUM:
        num = WEIGHT_NAME_TO_NUM[key]
        return {"weight": WEIGHT_NUM_TO_NAME.get(num, str(value)), "weightNum": num}
    return {"weight": str(value), "weightNum": 400}


def clean_style(value: Optional[str]) -> str:
    s = value or ""
    for style, pattern in STYLE_PATTERNS:
        if pattern.search(s):
            return style
    return "normal"


def format_full_name(family: str, weight: str, style: str) -> str:
    base = f"{family} {weight}"
    return f"{base} {capitalize(style)}" if style != "normal" else base


def _slug(value: str) -> str:
    s = re.sub(r"\W+", "-", value, flags=re.ASCII)
    return s.strip("-").lower()


def normalize_style_id(family: str, weight: Union[str, int], style: str) -> str:
    """Stable key for a (family, weight, style) signature.

    The family is compared case-insensitively; the digest keeps non-Latin
    family names apart once the slug has dropped their characters.
    """
    key = family.strip().lower()
    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:6]
    parts = [key, str(weight), style, digest]
    return "_".join(_slug(p) for p in parts)


def style_id_for(font_family: str, font_weight: Union[str, int], font_style: str) -> str:
    """Style id of a computed ``(font-family, font-weight, font-style)`` triple.

    Only the first entry of the fallback chain takes part in grouping.
    """
    primary = clean_font_family((font_family or "").split(",")[0])
    weight_num = map_weight(font_weight)["weightNum"]
    return "style_" + normalize_style_id(primary, weight_num, clean_style(font_style))


def parse_color(value: str) -> Optional[Tuple[int, int, int, float]]:
    if not value:
        return None
    value = value.strip().lower()
    if value in {"transparent", "none"}:
        return None
    rgba_match = re.match(r"rgba?\(([^)]+)\)", value)
    if rgba_match:
        parts = [p.strip() for p in re.split(r"[,\s/]+", rgba_match.group(1)) if p.strip()]
        if len(parts) >= 3:
            try:
                r = int(float(parts[0]))
                g = int(float(parts[1]))
                b = int(float(parts[2]))
                a = float(parts[3]) if len(parts) > 3 else 1.0
                return r, g, b, a
            except ValueError:
                return None
    hex_match = re.match(r"#([0-9a-f]{3,8})", value)
    if hex_match:
        h = hex_match.group(1)
        if len(h) in {3, 4}:
            r = int(h[0] * 2, 16)
            g = int(h[1] * 2, 16)
            b = int(h[2] * 2, 16)
            a = int(h[3] * 2, 16) / 255.0 if len(h) == 4 else 1.0
            return r, g, b, a
        if len(h) in {6, 8}:
            r = int(h[0:2], 16)
            g = int(h[2:4], 16)
            b = int(h[4:6], 16)
            a = int(h[6:8], 16) / 255.0 if len(h) == 8 else 1.0
            return r, g, b, a
    return None


def rgba_to_hex(value: str) -> str:
    """``rgb(255, 0, 0)`` -> ``#FF0000``; alpha is dropped. Unparseable input is returned as-is."""
    rgba = parse_color(value)
    if not rgba:
        return value
    r, g, b, _ = rgba
    return "#" + "".join(f"{max(0, min(255, c)):02X}" for c in (r, g, b))

"""
Identity metadata from a font binary (TTF, OTF, WOFF, WOFF2).

Only the naming table, the OS/2 weight class and the presence of variation
axes are read. Anything that fails to parse yields ``None``; callers treat
that as "keep what CSS told us".
"""

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote_to_bytes

from fontTools.ttLib import TTFont

from .names import clean_font_name, clean_name_string, clean_style, clean_weight, map_weight

logger = logging.getLogger(__name__)


NAME_FAMILY = 1
NAME_SUBFAMILY = 2
NAME_FULL = 4
NAME_TYPOGRAPHIC_FAMILY = 16
NAME_TYPOGRAPHIC_SUBFAMILY = 17


@dataclass
class FontBinaryMeta:
    full_name: str
    family: str
    weight: str
    weight_num: int
    style: str
    variable: bool


def _is_english(record) -> bool:
    if record.platformID == 3:
        return (record.langID & 0xFF) == 0x09
    if record.platformID == 1:
        return record.langID == 0
    return False


def localized_name(name_table, name_id: int) -> str:
    """English string for a name id, else the first decodable one, else ''."""
    fallback = ""
    for record in name_table.names:
        if record.nameID != name_id:
            continue
        try:
            text = record.toUnicode()
        except (UnicodeDecodeError, LookupError):
            continue
        if not text:
            continue
        if _is_english(record):
            return text
        if not fallback:
            fallback = text
    return fallback


def _resolve_full_name(font: TTFont) -> str:
    if "name" not in font:
        return ""
    names = font["name"]
    family = localized_name(names, NAME_TYPOGRAPHIC_FAMILY) or localized_name(names, NAME_FAMILY)
    subfamily = localized_name(names, NAME_TYPOGRAPHIC_SUBFAMILY) or localized_name(names, NAME_SUBFAMILY)
    if family and subfamily:
        return f"{family} {subfamily}"
    if family:
        return family
    return localized_name(names, NAME_FULL)


def decode_data_uri(url: str) -> Optional[str]:
    """Base64 payload of a data: URI, re-encoding percent-encoded payloads."""
    if not url.startswith("data:") or "," not in url:
        return None
    header, payload = url.split(",", 1)
    if ";base64" in header.lower():
        return payload.strip()
    return base64.b64encode(unquote_to_bytes(payload)).decode("ascii")


def parse_font_binary(encoded: str) -> Optional[FontBinaryMeta]:
    try:
        data = base64.b64decode(encoded, validate=False)
    except (binascii.Error, ValueError) as exc:
        logger.debug("Font payload is not base64: %s", exc)
        return None

    try:
        with TTFont(io.BytesIO(data), lazy=True, fontNumber=0) as font:
            full_name = clean_name_string(_resolve_full_name(font))
            if not full_name:
                return None

            family = clean_font_name(full_name) or full_name
            weight_keyword = clean_weight(full_name)
            if weight_keyword:
                mapped = map_weight(weight_keyword)
            else:
                os2_weight = font["OS/2"].usWeightClass if "OS/2" in font else 0
                mapped = map_weight(os2_weight or 400)
            variable = "fvar" in font and len(font["fvar"].axes) > 0

            return FontBinaryMeta(
                full_name=full_name,
                family=family,
                weight=mapped["weight"],
                weight_num=mapped["weightNum"],
                style=clean_style(full_name),
                variable=variable,
            )
    except Exception as exc:
        logger.debug("Could not parse font binary (%d bytes): %s", len(data), exc)
        return None

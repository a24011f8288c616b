"""
@font-face extraction from CSSOM rule trees and from raw CSS text.
"""

import asyncio
import logging
import re
from typing import Iterable, Iterator, List, Optional, Sequence, Set, Tuple
from urllib.parse import urljoin, urlparse

from .models import CSSRuleInfo, DocumentSnapshot, FontFaceRule, FontSource
from .names import clean_font_family
from .transport import FetchTransport

logger = logging.getLogger(__name__)


FORMAT_PRIORITY = ["woff2", "woff", "truetype", "opentype"]

EXTENSION_FORMATS = {
    "woff2": "woff2",
    "woff": "woff",
    "ttf": "truetype",
    "otf": "opentype",
    "eot": "embedded-opentype",
}

ICON_FONT_MARKERS = ["fontawesome", "font-awesome", "glyphicons", "icomoon", "material-icons", "materialicons"]

IMPORT_RE = re.compile(
    r"@import\s+(?:url\(\s*['\"]?(.+?)['\"]?\s*\)|['\"](.+?)['\"])[^;]*;",
    re.IGNORECASE,
)
FONT_FACE_BLOCK_RE = re.compile(r"@font-face\s*\{([^}]+)\}", re.IGNORECASE)
URL_RE = re.compile(r"url\s*\(\s*['\"]?(.+?)['\"]?\s*\)", re.IGNORECASE)
FORMAT_RE = re.compile(r"format\s*\(\s*['\"]?(.+?)['\"]?\s*\)", re.IGNORECASE)
LOCAL_RE = re.compile(r"^local\s*\(", re.IGNORECASE)
CSS_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)


def _declaration(css_text: str, prop: str) -> str:
    # url(...) and quoted strings may carry ';' (data URIs), so they are consumed whole
    pattern = re.compile(
        rf"(?<![-\w]){re.escape(prop)}\s*:\s*((?:url\([^)]*\)|\"[^\"]*\"|'[^']*'|[^;}}])+)",
        re.IGNORECASE,
    )
    m = pattern.search(css_text)
    return m.group(1).strip() if m else ""


def split_src(src_value: str) -> List[str]:
    """Split a src value on commas that are not inside parentheses."""
    parts = []
    depth = 0
    current = []
    for ch in src_value:
        if ch == "(":
            depth += 1
        elif ch == ")" and depth:
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts


def _is_icon_font(url: str) -> bool:
    lower = url.lower()
    return any(marker in lower for marker in ICON_FONT_MARKERS)


def _sniff_data_uri_format(url: str) -> str:
    # only the header and the start of the payload can carry a marker
    head = url[:200].lower()
    if "woff2" in head:
        return "woff2"
    if "woff" in head:
        return "woff"
    if "truetype" in head or "ttf" in head:
        return "truetype"
    if "opentype" in head or "otf" in head:
        return "opentype"
    return ""


def _extension_format(url: str) -> str:
    path = url.split("?")[0].split("#")[0]
    if "." not in path.rsplit("/", 1)[-1]:
        return ""
    ext = path.rsplit(".", 1)[-1].lower()
    return EXTENSION_FORMATS.get(ext, "")


def parse_font_src(src_value: str, base_url: str) -> List[FontSource]:
    sources: List[FontSource] = []
    for part in split_src(src_value):
        trimmed = part.strip()
        if LOCAL_RE.match(trimmed):
            continue
        url_match = URL_RE.search(trimmed)
        if not url_match:
            continue
        url = url_match.group(1)
        format_match = FORMAT_RE.search(trimmed[url_match.end():])
        fmt = format_match.group(1).lower() if format_match else ""

        if _is_icon_font(url):
            logger.debug("Skipping icon font source %s", url[:80])
            continue

        if url.startswith("data:"):
            if not fmt:
                fmt = _sniff_data_uri_format(url)
        else:
            try:
                url = urljoin(base_url, url)
            except ValueError:
                continue
            if not urlparse(url).scheme:
                continue
            if not fmt:
                fmt = _extension_format(url)

        if fmt in FORMAT_PRIORITY:
            sources.append(FontSource(url=url, format=fmt))
    return sources


def find_best_source(sources: Sequence[FontSource]) -> Optional[FontSource]:
    for fmt in FORMAT_PRIORITY:
        for source in sources:
            if source.format == fmt:
                return source
    return sources[0] if sources else None


def parse_font_face_css(css_text: str, base_url: str) -> Optional[FontFaceRule]:
    """Build a FontFaceRule from the text of one @font-face block.

    ``font-family`` and at least one usable ``src`` entry are required;
    weight and style default to ``400`` and ``normal``.
    """
    css_text = CSS_COMMENT_RE.sub("", css_text)
    family = clean_font_family(_declaration(css_text, "font-family"))
    if not family:
        return None
    weight = _declaration(css_text, "font-weight") or "400"
    style = _declaration(css_text, "font-style") or "normal"
    src_value = _declaration(css_text, "src")
    if not src_value:
        return None
    sources = parse_font_src(src_value, base_url)
    if not sources:
        return None
    return FontFaceRule(family=family, weight=weight, style=style, sources=tuple(sources))


def _resolve(href: str, base_url: str) -> Optional[str]:
    try:
        resolved = urljoin(base_url, href.strip())
    except ValueError:
        return None
    if not urlparse(resolved).scheme:
        return None
    return resolved


def extract_font_face_rules(
    css_rules: Iterable[CSSRuleInfo],
    base_url: str,
) -> Tuple[List[FontFaceRule], List[str]]:
    """Flatten a same-origin CSSOM rule tree into @font-face rules.

    Returns the rules in discovery order and the resolved @import URLs that
    still need fetching. Imported sheets the browser exposes are walked in
    place, relative to the import's own URL.
    """
    rules: List[FontFaceRule] = []
    import_urls: List[str] = []
    stack: List[Tuple[Iterator[CSSRuleInfo], str]] = [(iter(css_rules), base_url)]

    while stack:
        iterator, current_base = stack[-1]
        rule = next(iterator, None)
        if rule is None:
            stack.pop()
            continue

        if rule.kind == "import":
            resolved = _resolve(rule.href, current_base) if rule.href else None
            if resolved:
                import_urls.append(resolved)
            if rule.rules:
                stack.append((iter(rule.rules), resolved or current_base))
        elif rule.kind == "font-face":
            parsed = parse_font_face_css(rule.css_text, current_base)
            if parsed:
                rules.append(parsed)
        elif rule.rules:
            stack.append((iter(rule.rules), current_base))

    return rules, import_urls


def extract_same_origin_rules(snapshot: DocumentSnapshot) -> Tuple[List[FontFaceRule], List[str]]:
    """Rules readable without network access, plus the URLs to fetch later."""
    rules: List[FontFaceRule] = []
    cors_urls: List[str] = []
    import_urls: List[str] = []

    for sheet in snapshot.stylesheets:
        if not sheet.readable:
            if sheet.href:
                cors_urls.append(sheet.href)
            continue
        sheet_rules, sheet_imports = extract_font_face_rules(sheet.rules, sheet.href or snapshot.url)
        rules.extend(sheet_rules)
        import_urls.extend(sheet_imports)

    cors_urls.extend(import_urls)
    return rules, cors_urls


def parse_css_text_for_font_faces(
    css_text: str,
    base_url: str,
    visited: Optional[Set[str]] = None,
) -> Tuple[List[FontFaceRule], List[str]]:
    visited = visited if visited is not None else set()
    css_text = CSS_COMMENT_RE.sub("", css_text)
    import_urls: List[str] = []
    for m in IMPORT_RE.finditer(css_text):
        href = m.group(1) or m.group(2)
        resolved = _resolve(href, base_url)
        if resolved and resolved not in visited:
            import_urls.append(resolved)

    rules: List[FontFaceRule] = []
    for m in FONT_FACE_BLOCK_RE.finditer(css_text):
        parsed = parse_font_face_css(f"@font-face {{ {m.group(1)} }}", base_url)
        if parsed:
            rules.append(parsed)
    return rules, import_urls


async def fetch_cors_rules(cors_urls: Sequence[str], transport: FetchTransport) -> List[FontFaceRule]:
    """Fetch stylesheets the page could not read, following @import breadth-first.

    Each wave fetches every not-yet-visited URL in parallel; only newly
    discovered imports seed the next wave, so import cycles terminate.
    """
    rules: List[FontFaceRule] = []
    visited: Set[str] = set()
    pending = list(cors_urls)

    while pending:
        batch = [u for u in dict.fromkeys(pending) if u not in visited]
        if not batch:
            break
        visited.update(batch)

        results = await asyncio.gather(
            *(transport.fetch(url) for url in batch),
            return_exceptions=True,
        )
        next_urls: List[str] = []
        for url, result in zip(batch, results):
            if isinstance(result, BaseException):
                logger.debug("Stylesheet fetch failed for %s: %s", url, result)
                continue
            sheet_rules, sheet_imports = parse_css_text_for_font_faces(result, url, visited)
            rules.extend(sheet_rules)
            next_urls.extend(sheet_imports)

        pending = [u for u in next_urls if u not in visited]

    return rules

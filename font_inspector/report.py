import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from .models import DetectedFont
from .names import capitalize


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def now_iso() -> str:
    return datetime.now().isoformat()


def extract_site_name(base_url: str) -> str:
    domain = urlparse(base_url).netloc
    name = domain.replace("www.", "").split(".")[0]
    return name or "site"


def safe_filename(value: str) -> str:
    return re.sub(r"[^\w\-]", "_", value).strip("_") or "font"


def write_text(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")


def write_json(path: Path, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def font_file_extension(url: Optional[str]) -> str:
    try:
        path = urlparse(url or "").path
    except ValueError:
        return "woff2"
    match = re.search(r"\.(woff2?|ttf|otf|eot)$", path, re.IGNORECASE)
    return match.group(1).lower() if match else "woff2"


def build_font_filename(font: DetectedFont) -> Optional[str]:
    """Download name like ``Inter-BoldItalic.woff2``; None for inline data URIs."""
    if not font.font_face_src or font.font_face_src.startswith("data:"):
        return None
    family = safe_filename(re.sub(r"\s+", "", font.family))
    weight = re.sub(r"[^\w\- ]", "_", capitalize(font.weight))
    style_suffix = capitalize(font.style) if font.style != "normal" else ""
    return f"{family}-{weight}{style_suffix}.{font_file_extension(font.font_face_src)}"


def css_snippet(font: DetectedFont) -> str:
    return f"font-family: {font.css_family};\nfont-weight: {font.weight_num};\nfont-style: {font.style};"


def build_results(
    url: str,
    fonts: List[DetectedFont],
    limits: List[str],
    downloads: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    return {
        "meta": {
            "site_name": extract_site_name(url),
            "url": url,
            "collected_at": now_iso(),
        },
        "count": len(fonts),
        "fonts": [f.to_dict() for f in fonts],
        "css": {f.full_name: css_snippet(f) for f in fonts},
        "downloads": downloads or {},
        "notes": (["Limits:"] + limits) if limits else ["Limits: none detected"],
    }


def render_report(results: Dict[str, Any]) -> str:
    meta = results.get("meta", {})

    def join_list(items: List[str]) -> str:
        if not items:
            return "-"
        return "\n".join([f"- {item}" for item in items])

    def simple_table(rows: List[Dict[str, Any]], columns: List[str]) -> str:
        if not rows:
            return "(none)"
        header = "| " + " | ".join(columns) + " |\n"
        divider = "|" + "|".join([" --- " for _ in columns]) + "|\n"
        body = ""
        for row in rows:
            body += "| " + " | ".join(str(row.get(col, "")).replace("|", "\\|") for col in columns) + " |\n"
        return header + divider + body

    fonts = results.get("fonts", [])
    binary_count = len([f for f in fonts if f.get("source") == "binary"])
    lines = [
        f"# Fonts on {meta.get('site_name', '')}",
        "",
        f"- URL: {meta.get('url', '')}",
        f"- Collected: {meta.get('collected_at', '')}",
        f"- Fonts: {len(fonts)} ({binary_count} identified from font files)",
        "",
        "## Detected fonts",
        "",
        simple_table(fonts, ["fullName", "family", "weightNum", "style", "variable", "source"]),
        "",
        "## CSS",
        "",
    ]
    for name, snippet in results.get("css", {}).items():
        lines += [f"### {name}", "", "```css", snippet, "```", ""]
    lines += [
        "## Downloads",
        "",
        join_list([f"{name}: {src}" for name, src in results.get("downloads", {}).items()]),
        "",
        "## Notes",
        "",
        join_list(results.get("notes", [])),
        "",
    ]
    return "\n".join(lines)

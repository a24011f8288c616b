"""
Playwright driver: open a page, capture its DOM and CSSOM, run the
detection session and write the results.
"""

import base64
import binascii
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from playwright.async_api import Page, async_playwright

from .catalog import FontCatalog
from .errors import FetchError
from .models import FONT_TAG_ATTRIBUTE, DocumentSnapshot
from .report import build_font_filename, build_results, ensure_dir, render_report, write_json, write_text
from .session import FontDetectionSession
from .transport import PROXY_TIMEOUT_SECONDS, PageFetchTransport

logger = logging.getLogger(__name__)


DEFAULT_VIEWPORT = {"width": 1440, "height": 900}

# holds each captured element's capture index; tags are resolved through it
CAPTURE_REF_ATTRIBUTE = "data-font-inspector-ref"

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

CAPTURE_JS = """(refAttribute) => {
    const serializeRules = (list) => Array.from(list || []).map(rule => {
        const entry = { kind: 'other', css_text: '', href: null, rules: null };
        if (rule.type === 3) {
            entry.kind = 'import';
            entry.href = rule.href || null;
            try {
                if (rule.styleSheet && rule.styleSheet.cssRules) {
                    entry.rules = serializeRules(rule.styleSheet.cssRules);
                }
            } catch (e) { entry.rules = null; }
        } else if (rule.type === 5) {
            entry.kind = 'font-face';
            entry.css_text = rule.cssText;
        } else if (rule.cssRules && rule.cssRules.length) {
            entry.kind = 'group';
            entry.rules = serializeRules(rule.cssRules);
        }
        return entry;
    });

    const stylesheets = Array.from(document.styleSheets).map(sheet => {
        let rules = null;
        try { rules = serializeRules(sheet.cssRules || sheet.rules); } catch (e) { rules = null; }
        return { href: sheet.href || null, rules };
    });

    const elements = [];
    const all = document.body ? document.body.getElementsByTagName('*') : [];
    for (let i = 0; i < all.length; i++) {
        const el = all[i];
        const hasText = Array.from(el.childNodes).some(
            n => n.nodeType === Node.TEXT_NODE && n.textContent && n.textContent.trim()
        );
        if (!hasText) continue;
        el.setAttribute(refAttribute, String(i));
        const cs = window.getComputedStyle(el);
        elements.push({
            index: i,
            tag: el.tagName,
            has_text: true,
            visibility: cs.visibility,
            display: cs.display,
            width: el.offsetWidth || 0,
            height: el.offsetHeight || 0,
            font_family: cs.fontFamily,
            font_weight: cs.fontWeight,
            font_style: cs.fontStyle,
            font_size: cs.fontSize,
            line_height: cs.lineHeight,
            letter_spacing: cs.letterSpacing,
            color: cs.color,
        });
    }
    return { url: document.location.href, elements, stylesheets };
}"""

APPLY_TAGS_JS = """({attribute, refAttribute, tags}) => {
    let applied = 0;
    for (const [index, fontId] of tags) {
        const el = document.querySelector(`[${refAttribute}="${index}"]`);
        if (el) {
            el.setAttribute(attribute, fontId);
            applied += 1;
        }
    }
    return applied;
}"""


async def capture_snapshot(page: Page) -> DocumentSnapshot:
    data = await page.evaluate(CAPTURE_JS, CAPTURE_REF_ATTRIBUTE)
    return DocumentSnapshot.from_dict(data)


async def apply_tags(page: Page, snapshot: DocumentSnapshot) -> int:
    tags = [[index, font_id] for index, font_id in snapshot.tagged().items()]
    if not tags:
        return 0
    return await page.evaluate(
        APPLY_TAGS_JS,
        {"attribute": FONT_TAG_ATTRIBUTE, "refAttribute": CAPTURE_REF_ATTRIBUTE, "tags": tags},
    )


class FontInspector:
    def __init__(
        self,
        url: str,
        output_dir: str,
        download: bool = False,
        viewport: Optional[Dict[str, int]] = None,
        fetch_timeout: float = PROXY_TIMEOUT_SECONDS,
    ):
        self.url = url
        self.output_dir = Path(output_dir)
        self.fonts_dir = self.output_dir / "fonts"
        self.download = download
        self.viewport = viewport or DEFAULT_VIEWPORT
        self.fetch_timeout = fetch_timeout

        ensure_dir(self.output_dir)
        if self.download:
            ensure_dir(self.fonts_dir)

        self.catalog = FontCatalog()
        self.limits: List[str] = []
        self.downloads: Dict[str, str] = {}

    async def inspect(self) -> Dict[str, Any]:
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True)
            context = await browser.new_context(
                viewport=self.viewport,
                device_scale_factor=1,
                user_agent=USER_AGENT,
            )
            page = await context.new_page()
            try:
                await self.inspect_page(page)
            finally:
                await context.close()
                await browser.close()

        results = build_results(self.url, self.catalog.fonts(), self.limits, self.downloads)
        results_path = self.output_dir / "fonts.json"
        write_json(results_path, results)
        report_path = self.output_dir / "report.md"
        write_text(report_path, render_report(results))
        results["paths"] = {"results": str(results_path), "report": str(report_path)}
        return results

    async def push_tags(self, page: Page, snapshot: DocumentSnapshot, stage: str) -> None:
        try:
            await apply_tags(page, snapshot)
        except Exception as exc:
            logger.warning("Failed to tag elements on %s at %s: %s", self.url, stage, exc)
            self.limits.append(f"Failed to tag elements on {self.url} at {stage}: {exc}")

    async def inspect_page(self, page: Page) -> None:
        stage = "init"
        session: Optional[FontDetectionSession] = None
        try:
            stage = "goto"
            await page.goto(self.url, wait_until="domcontentloaded", timeout=60000)
            stage = "wait_body"
            await page.wait_for_selector("body", state="attached", timeout=15000)
            try:
                stage = "wait_networkidle"
                await page.wait_for_load_state("networkidle", timeout=15000)
            except Exception:
                logger.debug("Network did not go idle on %s, continuing", self.url)
            stage = "post_wait"
            await page.wait_for_timeout(1000)

            stage = "capture"
            snapshot = await capture_snapshot(page)
            transport = PageFetchTransport(page, timeout=self.fetch_timeout)
            session = FontDetectionSession(snapshot, transport, on_event=self.catalog)

            stage = "phase1"
            result = session.run_phase1()
            await self.push_tags(page, snapshot, "tag_phase1")

            stage = "phase2"
            await session.run_phase2(result)
            await self.push_tags(page, snapshot, "tag_phase2")

            if self.download:
                stage = "download"
                await self.download_fonts(transport)
        except Exception as exc:
            logger.warning("Failed to inspect %s at %s: %s", self.url, stage, exc)
            self.limits.append(f"Failed to inspect {self.url} at {stage}: {exc}")
        finally:
            if session is not None:
                self.limits.extend(session.limits)

    async def download_fonts(self, transport: PageFetchTransport) -> None:
        for font in self.catalog.fonts():
            filename = build_font_filename(font)
            if not filename or filename in self.downloads:
                continue
            try:
                payload = await transport.fetch(font.font_face_src, want_base64=True)
            except FetchError as exc:
                self.limits.append(f"Download skipped for {font.full_name}: {exc.reason}")
                continue
            path = self.fonts_dir / filename
            try:
                path.write_bytes(base64.b64decode(payload))
            except (OSError, binascii.Error, ValueError) as exc:
                logger.warning("Could not save %s: %s", path, exc)
                self.limits.append(f"Download skipped for {font.full_name}: {exc}")
                continue
            self.downloads[filename] = font.font_face_src

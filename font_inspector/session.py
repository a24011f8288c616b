"""
Two-phase font detection.

Phase 1 runs synchronously over the captured document with no network
access and publishes every record at once. Phase 2 fetches the stylesheets
the page could not read, fetches the chosen font binaries and upgrades
records from ``css`` to ``binary`` one at a time.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from .binary import FontBinaryMeta, decode_data_uri, parse_font_binary
from .css import extract_same_origin_rules, fetch_cors_rules, find_best_source
from .matcher import find_best_rule, matching_rules
from .models import DetectedFont, DocumentSnapshot, ElementStyle, FontFaceRule, FontSource, StyleGroup
from .names import clean_font_family, clean_style, format_full_name, map_weight, rgba_to_hex, style_id_for
from .transport import FetchTransport
from .walker import walk_dom

logger = logging.getLogger(__name__)


DETECTION_DONE = "DETECTION_DONE"
FONT_UPGRADED = "FONT_UPGRADED"
ROLLOVER_RESULT = "ROLLOVER_RESULT"


class DetectionState(Enum):
    IDLE = "idle"
    PHASE1_RUNNING = "phase1_running"
    PHASE1_DONE = "phase1_done"
    PHASE2_RUNNING = "phase2_running"
    PHASE2_DONE = "phase2_done"


@dataclass
class Phase1Result:
    cors_urls: List[str] = field(default_factory=list)
    style_groups: Dict[str, StyleGroup] = field(default_factory=dict)
    same_origin_rules: List[FontFaceRule] = field(default_factory=list)


@dataclass
class BinaryJob:
    url: str
    style_id: str
    group: StyleGroup
    rule: FontFaceRule
    source: FontSource


class FontDetectionSession:
    def __init__(
        self,
        snapshot: DocumentSnapshot,
        transport: FetchTransport,
        on_event: Optional[Callable[[Dict[str, Any]], None]] = None,
    ):
        self.snapshot = snapshot
        self.transport = transport
        self.on_event = on_event
        self.state = DetectionState.IDLE
        self.detected_fonts: List[DetectedFont] = []
        self.element_font_map: Dict[str, DetectedFont] = {}
        self.limits: List[str] = []
        self._phase2_task: Optional[asyncio.Task] = None

    def publish(self, message: Dict[str, Any]) -> None:
        if self.on_event is None:
            return
        try:
            self.on_event(message)
        except Exception as exc:
            logger.warning("Event consumer failed on %s: %s", message.get("type"), exc)

    # ---- visibility toggle ----

    def toggle(self, visible: bool) -> Optional[asyncio.Task]:
        """Start a detection pass when the inspector becomes visible.

        A pass only starts while no fonts have been detected, so repeated
        toggles never run two passes at once. Phase 2 is scheduled on the
        running event loop and the task is returned.
        """
        if not visible:
            # an in-flight Phase 2 still owns the state until it finishes
            if self._phase2_task is None or self._phase2_task.done():
                self.state = DetectionState.IDLE
            return None
        if self.detected_fonts:
            return None
        result = self.run_phase1()
        self._phase2_task = asyncio.get_running_loop().create_task(self.run_phase2(result))
        return self._phase2_task

    async def detect(self) -> List[DetectedFont]:
        result = self.run_phase1()
        await self.run_phase2(result)
        return self.detected_fonts

    # ---- Phase 1 ----

    def _css_font(self, style_id: str, group: StyleGroup, rules: List[FontFaceRule]) -> DetectedFont:
        style = clean_style(group.font_style)
        if rules:
            best_rule = find_best_rule(rules, group)
            best_source = find_best_source(best_rule.sources)
            mapped = map_weight(group.font_weight or best_rule.weight)
            if not group.font_style:
                style = clean_style(best_rule.style)
            family = clean_font_family(best_rule.family)
            font_face_src = best_source.url if best_source else None
        else:
            mapped = map_weight(group.font_weight)
            raw_family = group.font_family.split(",")[0].strip().replace('"', "").replace("'", "")
            family = clean_font_family(raw_family) or raw_family
            font_face_src = None

        return DetectedFont(
            id=style_id,
            family=family,
            full_name=format_full_name(family, mapped["weight"], style),
            weight=mapped["weight"],
            weight_num=mapped["weightNum"],
            style=style,
            source="css",
            variable=False,
            css_family=group.font_family,
            font_face_src=font_face_src,
        )

    def run_phase1(self) -> Phase1Result:
        self.state = DetectionState.PHASE1_RUNNING
        self.detected_fonts = []
        self.element_font_map = {}
        try:
            same_origin_rules, cors_urls = extract_same_origin_rules(self.snapshot)
            style_groups = walk_dom(self.snapshot)

            fonts: List[DetectedFont] = []
            seen_families: Set[str] = set()
            for style_id, group in style_groups.items():
                font = self._css_font(style_id, group, matching_rules(same_origin_rules, group))

                if font.dedupe_key not in seen_families:
                    seen_families.add(font.dedupe_key)
                    fonts.append(font)

                self.snapshot.tag(group.elements, font.id)
                self.element_font_map[style_id] = font

            self.detected_fonts = fonts
            self.publish({"type": DETECTION_DONE, "fonts": [f.to_dict() for f in fonts]})
            logger.info("Phase 1: %d fonts from %d style groups", len(fonts), len(style_groups))
            return Phase1Result(
                cors_urls=cors_urls,
                style_groups=style_groups,
                same_origin_rules=same_origin_rules,
            )
        except Exception as exc:
            logger.warning("Phase 1 detection failed: %s", exc, exc_info=True)
            self.limits.append(f"Phase 1 detection failed: {exc}")
            return Phase1Result()
        finally:
            self.state = DetectionState.PHASE1_DONE

    # ---- Phase 2 ----

    def _plan_binary_jobs(self, result: Phase1Result, all_rules: List[FontFaceRule]) -> List[BinaryJob]:
        jobs = []
        for style_id, group in result.style_groups.items():
            rules = matching_rules(all_rules, group)
            if not rules:
                continue
            best_rule = find_best_rule(rules, group)
            best_source = find_best_source(best_rule.sources)
            if not best_source:
                continue
            jobs.append(BinaryJob(
                url=best_source.url,
                style_id=style_id,
                group=group,
                rule=best_rule,
                source=best_source,
            ))
        return jobs

    async def _load_binaries(self, jobs: List[BinaryJob]) -> Dict[str, str]:
        payloads: Dict[str, str] = {}
        fetch_urls: List[str] = []
        for job in jobs:
            if job.url.startswith("data:"):
                payload = decode_data_uri(job.url)
                if payload:
                    payloads[job.url] = payload
            elif job.url not in fetch_urls:
                fetch_urls.append(job.url)

        if fetch_urls:
            results = await asyncio.gather(
                *(self.transport.fetch(url, want_base64=True) for url in fetch_urls),
                return_exceptions=True,
            )
            for url, outcome in zip(fetch_urls, results):
                if isinstance(outcome, BaseException):
                    logger.debug("Font fetch failed for %s: %s", url, outcome)
                    self.limits.append(f"Font binary unavailable: {url}")
                    continue
                payloads[url] = outcome
        return payloads

    def _upgrade(self, job: BinaryJob, meta: FontBinaryMeta) -> Optional[DetectedFont]:
        """Apply one binary result; returns the record if the collection changed.

        The style id always maps to the upgraded record. The collection only
        takes it when no other record already holds its dedupe key.
        """
        upgraded = DetectedFont(
            id=job.style_id,
            family=meta.family,
            full_name=format_full_name(meta.family, meta.weight, meta.style),
            weight=meta.weight,
            weight_num=meta.weight_num,
            style=meta.style,
            source="binary",
            variable=meta.variable,
            css_family=job.group.font_family,
            font_face_src=job.source.url,
        )

        self.element_font_map[job.style_id] = upgraded
        untagged = [el for el in job.group.elements if el.font_tag != upgraded.id]
        self.snapshot.tag(untagged, upgraded.id)

        key = upgraded.dedupe_key
        if any(f.dedupe_key == key and f.id != upgraded.id for f in self.detected_fonts):
            logger.debug("%s already listed, keeping %s as is", upgraded.full_name, job.style_id)
            return None

        for idx, existing in enumerate(self.detected_fonts):
            if existing.id == job.style_id:
                self.detected_fonts[idx] = upgraded
                return upgraded
        self.detected_fonts.append(upgraded)
        return upgraded

    async def run_phase2(self, result: Phase1Result) -> None:
        self.state = DetectionState.PHASE2_RUNNING
        upgraded_count = 0
        try:
            cors_rules = await fetch_cors_rules(result.cors_urls, self.transport) if result.cors_urls else []
            all_rules = result.same_origin_rules + cors_rules

            jobs = self._plan_binary_jobs(result, all_rules)
            if not jobs:
                return

            payloads = await self._load_binaries(jobs)
            parsed: Dict[str, Optional[FontBinaryMeta]] = {}

            for job in jobs:
                payload = payloads.get(job.url)
                if not payload:
                    continue
                if job.url not in parsed:
                    parsed[job.url] = await asyncio.to_thread(parse_font_binary, payload)
                meta = parsed[job.url]
                if meta is None:
                    continue

                upgraded = self._upgrade(job, meta)
                if upgraded is None:
                    continue
                upgraded_count += 1
                self.publish({"type": FONT_UPGRADED, "font": upgraded.to_dict()})
        except Exception as exc:
            logger.warning("Phase 2 enhancement failed: %s", exc, exc_info=True)
            self.limits.append(f"Phase 2 enhancement failed: {exc}")
        finally:
            self.state = DetectionState.PHASE2_DONE
            logger.info("Phase 2: %d fonts upgraded from binaries", upgraded_count)

    # ---- rollover ----

    def lookup(self, font_family: str, font_weight: str, font_style: str) -> Optional[DetectedFont]:
        return self.element_font_map.get(style_id_for(font_family, font_weight, font_style))

    def rollover(
        self,
        font_family: str,
        font_weight: str,
        font_style: str,
        style: Optional[ElementStyle] = None,
    ) -> Dict[str, Any]:
        font = self.lookup(font_family, font_weight, font_style)
        style = style or ElementStyle()
        style_dict = style.to_dict()
        if style.color:
            style_dict["color"] = rgba_to_hex(style.color)
        return {
            "type": ROLLOVER_RESULT,
            "font": font.to_dict() if font else None,
            "style": style_dict,
        }

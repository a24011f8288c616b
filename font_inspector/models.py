"""
Data model shared by the detection pipeline.

``DocumentSnapshot`` is the captured page: the text-bearing elements with
their computed font triple and the stylesheet rule trees as the browser
exposed them. Everything downstream works on the snapshot only.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


FONT_TAG_ATTRIBUTE = "data-font-inspector"


@dataclass(frozen=True)
class FontSource:
    url: str
    format: str


@dataclass(frozen=True)
class FontFaceRule:
    family: str
    weight: str
    style: str
    sources: Tuple[FontSource, ...]


@dataclass
class DetectedFont:
    id: str
    family: str
    full_name: str
    weight: str
    weight_num: int
    style: str
    source: str
    variable: bool
    css_family: str
    font_face_src: Optional[str] = None

    @property
    def dedupe_key(self) -> str:
        return f"{self.family.lower()}_{self.weight_num}_{self.style}"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "family": self.family,
            "fullName": self.full_name,
            "weight": self.weight,
            "weightNum": self.weight_num,
            "style": self.style,
            "source": self.source,
            "variable": self.variable,
            "cssFamily": self.css_family,
        }
        if self.font_face_src is not None:
            data["fontFaceSrc"] = self.font_face_src
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectedFont":
        return cls(
            id=data["id"],
            family=data["family"],
            full_name=data["fullName"],
            weight=data["weight"],
            weight_num=data["weightNum"],
            style=data["style"],
            source=data["source"],
            variable=data["variable"],
            css_family=data["cssFamily"],
            font_face_src=data.get("fontFaceSrc"),
        )


@dataclass
class ElementStyle:
    font_size: str = ""
    line_height: str = ""
    letter_spacing: str = ""
    color: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "fontSize": self.font_size,
            "lineHeight": self.line_height,
            "letterSpacing": self.letter_spacing,
            "color": self.color,
        }


@dataclass
class ElementInfo:
    index: int
    tag: str
    has_text: bool = True
    visibility: str = "visible"
    display: str = "block"
    width: float = 0.0
    height: float = 0.0
    font_family: str = ""
    font_weight: str = "400"
    font_style: str = "normal"
    style: ElementStyle = field(default_factory=ElementStyle)
    attributes: Dict[str, str] = field(default_factory=dict)

    @property
    def font_tag(self) -> Optional[str]:
        return self.attributes.get(FONT_TAG_ATTRIBUTE)


@dataclass
class StyleGroup:
    style_id: str
    font_family: str
    font_weight: str
    font_style: str
    elements: List[ElementInfo] = field(default_factory=list)


@dataclass
class CSSRuleInfo:
    """One CSSOM rule.

    kind is ``import``, ``group``, ``font-face`` or ``other``. For imports,
    ``rules`` holds the imported sheet when the browser let us read it; for
    grouping rules it holds the nested rules.
    """

    kind: str
    css_text: str = ""
    href: Optional[str] = None
    rules: Optional[List["CSSRuleInfo"]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CSSRuleInfo":
        nested = data.get("rules")
        return cls(
            kind=data.get("kind", "other"),
            css_text=data.get("css_text") or "",
            href=data.get("href"),
            rules=[cls.from_dict(r) for r in nested] if nested is not None else None,
        )


@dataclass
class StyleSheetInfo:
    href: Optional[str]
    rules: Optional[List[CSSRuleInfo]]

    @property
    def readable(self) -> bool:
        return self.rules is not None


@dataclass
class DocumentSnapshot:
    url: str
    elements: List[ElementInfo] = field(default_factory=list)
    stylesheets: List[StyleSheetInfo] = field(default_factory=list)

    def tag(self, elements: List[ElementInfo], font_id: str) -> None:
        for el in elements:
            el.attributes[FONT_TAG_ATTRIBUTE] = font_id

    def tagged(self) -> Dict[int, str]:
        return {el.index: el.font_tag for el in self.elements if el.font_tag}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentSnapshot":
        elements = []
        for item in data.get("elements", []):
            elements.append(ElementInfo(
                index=item["index"],
                tag=item.get("tag", ""),
                has_text=bool(item.get("has_text")),
                visibility=item.get("visibility") or "visible",
                display=item.get("display") or "",
                width=float(item.get("width") or 0),
                height=float(item.get("height") or 0),
                font_family=item.get("font_family") or "",
                font_weight=str(item.get("font_weight") or "400"),
                font_style=item.get("font_style") or "normal",
                style=ElementStyle(
                    font_size=item.get("font_size") or "",
                    line_height=item.get("line_height") or "",
                    letter_spacing=item.get("letter_spacing") or "",
                    color=item.get("color") or "",
                ),
            ))
        stylesheets = []
        for sheet in data.get("stylesheets", []):
            rules = sheet.get("rules")
            stylesheets.append(StyleSheetInfo(
                href=sheet.get("href"),
                rules=[CSSRuleInfo.from_dict(r) for r in rules] if rules is not None else None,
            ))
        return cls(url=data.get("url", ""), elements=elements, stylesheets=stylesheets)

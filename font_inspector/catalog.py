from collections import OrderedDict
from typing import Any, Dict, List

from .models import DetectedFont
from .session import DETECTION_DONE, FONT_UPGRADED


class FontCatalog:
    """Consumer side of the detection events: upserts records by id."""

    def __init__(self):
        self._fonts: "OrderedDict[str, DetectedFont]" = OrderedDict()
        self.events = 0

    def __call__(self, message: Dict[str, Any]) -> None:
        self.handle(message)

    def __len__(self) -> int:
        return len(self._fonts)

    def handle(self, message: Dict[str, Any]) -> None:
        kind = message.get("type")
        if kind == DETECTION_DONE:
            for item in message.get("fonts", []):
                self.upsert(DetectedFont.from_dict(item))
        elif kind == FONT_UPGRADED:
            self.upsert(DetectedFont.from_dict(message["font"]))
        else:
            return
        self.events += 1

    def upsert(self, font: DetectedFont) -> None:
        self._fonts[font.id] = font

    def fonts(self) -> List[DetectedFont]:
        return list(self._fonts.values())

    def to_list(self) -> List[Dict[str, Any]]:
        return [f.to_dict() for f in self._fonts.values()]

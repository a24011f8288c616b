from collections import OrderedDict
from typing import Dict

from .models import DocumentSnapshot, ElementInfo, StyleGroup
from .names import style_id_for


SKIP_TAGS = {"SCRIPT", "STYLE", "NOSCRIPT", "BR", "HR", "FONT-INSPECTOR-TEXT"}


def is_text_bearing(el: ElementInfo) -> bool:
    if el.tag.upper() in SKIP_TAGS:
        return False
    if not el.has_text:
        return False
    if el.visibility != "visible":
        return False
    if el.display == "none":
        return False
    if el.width == 0 and el.height == 0:
        return False
    return True


def walk_dom(snapshot: DocumentSnapshot) -> Dict[str, StyleGroup]:
    """Group visible text-bearing elements by their computed font signature."""
    groups: Dict[str, StyleGroup] = OrderedDict()
    for el in snapshot.elements:
        if not is_text_bearing(el):
            continue
        style_id = style_id_for(el.font_family, el.font_weight, el.font_style)
        group = groups.get(style_id)
        if group is None:
            group = StyleGroup(
                style_id=style_id,
                font_family=el.font_family,
                font_weight=el.font_weight,
                font_style=el.font_style,
            )
            groups[style_id] = group
        group.elements.append(el)
    return groups

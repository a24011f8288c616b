"""
Match @font-face rules against a style group's font-family fallback chain.
"""

from typing import List, Optional, Sequence

from .models import FontFaceRule, StyleGroup
from .names import clean_style, map_weight


def _unquote_family(value: str) -> str:
    return value.strip().replace('"', "").replace("'", "").lower()


def match_rule_to_family(rule: FontFaceRule, css_family: str) -> bool:
    # any entry of the fallback chain may be the one a declared face satisfies
    families = [_unquote_family(f) for f in css_family.split(",")]
    return _unquote_family(rule.family) in families


def matching_rules(rules: Sequence[FontFaceRule], group: StyleGroup) -> List[FontFaceRule]:
    return [r for r in rules if match_rule_to_family(r, group.font_family)]


def find_best_rule(rules: Sequence[FontFaceRule], group: StyleGroup) -> Optional[FontFaceRule]:
    """Exact weight and style match, else the first rule in discovery order.

    No nearest-weight fallback.
    """
    if not rules:
        return None
    group_weight = map_weight(group.font_weight)["weightNum"]
    group_style = clean_style(group.font_style)
    for rule in rules:
        if map_weight(rule.weight)["weightNum"] == group_weight and clean_style(rule.style) == group_style:
            return rule
    return rules[0]

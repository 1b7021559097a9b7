# src/exporter/services/css_service.py
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from composer.dom.core import RenderNode
from composer.dom.registry import BlockRegistry
from composer.model import PageDocument

logger = logging.getLogger(__name__)

# Node attribute name -> CSS property.
STYLE_PROPERTY_MAP: Dict[str, str] = {
    # Layout
    "width": "width",
    "height": "height",
    "minWidth": "min-width",
    "maxWidth": "max-width",
    "minHeight": "min-height",
    "maxHeight": "max-height",
    # Spacing
    "padding": "padding",
    "paddingTop": "padding-top",
    "paddingRight": "padding-right",
    "paddingBottom": "padding-bottom",
    "paddingLeft": "padding-left",
    "margin": "margin",
    "marginTop": "margin-top",
    "marginRight": "margin-right",
    "marginBottom": "margin-bottom",
    "marginLeft": "margin-left",
    "gap": "gap",
    # Colors
    "backgroundColor": "background-color",
    "color": "color",
    "borderColor": "border-color",
    # Typography
    "fontSize": "font-size",
    "fontWeight": "font-weight",
    "lineHeight": "line-height",
    "letterSpacing": "letter-spacing",
    "textAlign": "text-align",
    "textDecoration": "text-decoration",
    "textTransform": "text-transform",
    # Border
    "borderWidth": "border-width",
    "borderStyle": "border-style",
    "borderRadius": "border-radius",
    # Effects
    "opacity": "opacity",
    "boxShadow": "box-shadow",
    "textShadow": "text-shadow",
    "transform": "transform",
    "cursor": "cursor",
    # Display
    "display": "display",
    "flexDirection": "flex-direction",
    "alignItems": "align-items",
    "justifyContent": "justify-content",
    "flexWrap": "flex-wrap",
}

# Numbers for these stay unitless.
UNITLESS = {"opacity", "fontWeight", "lineHeight", "flexGrow", "flexShrink"}

STATE_PSEUDO_CLASS = {"hover": ":hover", "active": ":active", "focus": ":focus"}

# Responsive values are mobile first: base/mobile unconditionally, then min-width queries.
BREAKPOINTS = [("tablet", 768), ("desktop", 1024)]
RESPONSIVE_KEYS = {"base", "mobile", "tablet", "desktop"}

# Values that could close the declaration, the rule or the <style> element.
_UNSAFE_VALUE = re.compile(r"[<>{};]")

TRANSITION_ALIASES = {
    "colors": "background-color, color, border-color",
    "shadow": "box-shadow, text-shadow",
}

BASE_RESET = """
*,
*::before,
*::after {
  box-sizing: border-box;
}

body {
  margin: 0;
  font-family: system-ui, -apple-system, sans-serif;
  line-height: 1.5;
}

img,
video {
  max-width: 100%;
  height: auto;
}

a {
  color: inherit;
  text-decoration: none;
}

button {
  font: inherit;
  cursor: pointer;
}

.ps-lazy {
  display: block;
  width: 100%;
}
""".strip()


def minify_css(css: str) -> str:
    css = re.sub(r"/\*[\s\S]*?\*/", "", css)
    css = re.sub(r"\s+", " ", css)
    css = re.sub(r"\s*([{};:,>~+])\s*", r"\1", css)
    css = css.replace(";}", "}")
    return css.strip()


@dataclass
class CssRule:
    selector: str
    declarations: Dict[str, str] = field(default_factory=dict)
    media: Optional[str] = None

    def render(self, minify: bool = True) -> str:
        if minify:
            body = ";".join(f"{prop}:{value}" for prop, value in self.declarations.items())
            rule = f"{self.selector}{{{body}}}"
            return f"@media {self.media.replace(': ', ':')}{{{rule}}}" if self.media else rule

        indent = "    " if self.media else "  "
        body = "\n".join(f"{indent}{prop}: {value};" for prop, value in self.declarations.items())
        close = "  }" if self.media else "}"
        rule = f"{'  ' if self.media else ''}{self.selector} {{\n{body}\n{close}"
        return f"@media {self.media} {{\n{rule}\n}}" if self.media else rule


def css_value(prop: str, value: Any) -> Optional[str]:
    """Converts one attribute value to a CSS value, or None when it is not usable."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if prop == "opacity" and isinstance(value, (int, float)):
        # Opacity is authored as a percentage.
        return f"{value / 100:g}"
    if isinstance(value, (int, float)):
        return f"{value:g}" if prop in UNITLESS else f"{value:g}px"
    if isinstance(value, str):
        if _UNSAFE_VALUE.search(value):
            logger.debug(f"Dropping unsafe CSS value for '{prop}': {value!r}")
            return None
        return value.strip() or None
    return None


def _style_source(attributes: Dict[str, Any]) -> Dict[str, Any]:
    props = {k: v for k, v in attributes.items() if k in STYLE_PROPERTY_MAP}
    nested = attributes.get("styles")
    if isinstance(nested, dict):
        props.update({k: v for k, v in nested.items() if k in STYLE_PROPERTY_MAP})
    return props


def _is_responsive(value: Any) -> bool:
    return isinstance(value, dict) and bool(RESPONSIVE_KEYS & set(value))


def transition_value(transition: Optional[Dict[str, Any]]) -> Optional[str]:
    if not transition:
        return None
    prop = transition.get("property") or "all"
    if prop == "none":
        return None
    prop = TRANSITION_ALIASES.get(prop, prop)
    value = f"{prop} {int(transition.get('duration', 200))}ms {transition.get('easing') or 'ease'}"
    delay = transition.get("delay")
    if delay:
        value += f" {int(delay)}ms"
    return value


def node_rules(node: RenderNode) -> List[CssRule]:
    """Per-node rules: base declarations, state pseudo-classes, then media queries."""
    selector = f".{node.class_name}"
    base: Dict[str, str] = {}
    responsive: Dict[str, Dict[str, str]] = {name: {} for name, _ in BREAKPOINTS}

    for prop, value in _style_source(node.attributes).items():
        css_prop = STYLE_PROPERTY_MAP[prop]
        if _is_responsive(value):
            base_value = css_value(prop, value.get("base", value.get("mobile")))
            if base_value is not None:
                base[css_prop] = base_value
            for name, _ in BREAKPOINTS:
                bp_value = css_value(prop, value.get(name))
                if bp_value is not None:
                    responsive[name][css_prop] = bp_value
            continue
        converted = css_value(prop, value)
        if converted is not None:
            base[css_prop] = converted

    transition = transition_value(node.transition)
    if transition:
        base["transition"] = transition

    rules: List[CssRule] = []
    if base:
        rules.append(CssRule(selector, base))

    for state, pseudo in STATE_PSEUDO_CLASS.items():
        overrides = (node.states or {}).get(state)
        if not isinstance(overrides, dict):
            continue
        declarations = {}
        for prop, value in overrides.items():
            if prop not in STYLE_PROPERTY_MAP or _is_responsive(value):
                continue
            converted = css_value(prop, value)
            if converted is not None:
                declarations[STYLE_PROPERTY_MAP[prop]] = converted
        if declarations:
            rules.append(CssRule(f"{selector}{pseudo}", declarations))

    for name, width in BREAKPOINTS:
        if responsive[name]:
            rules.append(CssRule(selector, responsive[name], media=f"(min-width: {width}px)"))
    return rules


def root_rules(document: PageDocument) -> List[CssRule]:
    """Page-level styles from the root props."""
    if document.root is None or document.root.props.styles is None:
        return []
    styles = document.root.props.styles.model_dump(by_alias=True, exclude_none=True)
    body: Dict[str, str] = {}
    page: Dict[str, str] = {}
    for prop, value in styles.items():
        if prop == "backgroundImage":
            url = str(value)
            if _UNSAFE_VALUE.search(url) or '"' in url:
                continue
            body["background-image"] = url if url.startswith("url(") else f'url("{url}")'
            continue
        if prop in ("maxWidth", "padding"):
            converted = css_value(prop, value)
            if converted:
                page[STYLE_PROPERTY_MAP[prop]] = converted
            continue
        css_prop = {"fontFamily": "font-family"}.get(prop) or STYLE_PROPERTY_MAP.get(prop)
        converted = css_value(prop, value) if css_prop else None
        if converted:
            body[css_prop] = converted

    rules = []
    if body:
        rules.append(CssRule("body", body))
    if page:
        page.setdefault("margin", "0 auto")
        rules.append(CssRule(".ps-page", page))
    return rules


class StyleSheetBuilder:
    """
    Collects CSS in a fixed order: base reset, page rules, kind-level CSS
    (first appearance order), then per-node rules in document order. The
    output is a list of rule strings, so subsets and unions stay cheap.
    """

    def __init__(self, document: PageDocument, minify: bool = True):
        self.minify = minify
        self._document = document

    def _fmt(self, css: str) -> str:
        return minify_css(css) if self.minify else css

    def preamble(self) -> List[str]:
        out = [self._fmt(BASE_RESET)]
        out.extend(rule.render(self.minify) for rule in root_rules(self._document))
        return out

    def rules_for(self, roots: Iterable[RenderNode]) -> List[str]:
        kinds: List[str] = []
        per_node: List[str] = []
        for root in roots:
            for node in root.walk():
                if node.kind not in kinds:
                    kinds.append(node.kind)
                per_node.extend(rule.render(self.minify) for rule in node_rules(node))

        kind_css = [self._fmt(BlockRegistry.base_css(kind)) for kind in kinds]
        return dedupe(self.preamble() + [css for css in kind_css if css] + per_node)

    def join(self, rules: Iterable[str]) -> str:
        return ("" if self.minify else "\n\n").join(rules)


def dedupe(rules: Iterable[str]) -> List[str]:
    """Ordered de-duplication."""
    seen = set()
    out = []
    for rule in rules:
        if rule and rule not in seen:
            seen.add(rule)
            out.append(rule)
    return out

# src/composer/dom/core.py
import hashlib
import html
import json
import re
from typing import Any, Callable, Dict, Iterator, List, Optional, Set

from pydantic import BaseModel, Field

# Block kinds that are expensive to render on load (iframes, players, canvases).
HEAVY_KINDS: Set[str] = {
    "video",
    "map",
    "carousel",
    "embed",
    "chart",
    "image-gallery",
    "animated-illustration",
}

SYMBOL_INSTANCE_KIND = "symbol-instance"
MISSING_SYMBOL_KIND = "missing-symbol"

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_CSS_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")
_URL_NOISE = re.compile(r"[\x00-\x20]")
_UNSAFE_SCHEMES = ("javascript:", "vbscript:", "data:text/html")


def normalize_kind(kind: Optional[str]) -> str:
    """
    Normalizes a block-kind tag so 'ImageGallery', 'image_gallery' and
    'image-gallery' all resolve to the same registry key.
    """
    if not kind:
        return ""
    kebab = _CAMEL_BOUNDARY.sub("-", kind.strip())
    return kebab.replace("_", "-").replace(" ", "-").lower()


def css_safe(value: str) -> str:
    """
    Class-name fragment for an id. Ids that need rewriting get a short digest
    of the raw id appended, so 'a.b' and 'a-b' never share a class.
    """
    safe = _CSS_UNSAFE.sub("-", value)
    if safe == value:
        return safe
    digest = hashlib.sha1(value.encode("utf-8")).hexdigest()[:6]
    return f"{safe}-{digest}"


class RenderNode(BaseModel):
    """
    A node of the resolved render tree.

    Symbol instances are already expanded, hidden nodes and orphans are gone.
    `id` is unique within one page render; nodes coming from a symbol source
    are scoped with the id of the instance that produced them.
    """
    id: str
    source_id: str
    kind: str
    type: str
    attributes: Dict[str, Any] = Field(default_factory=dict)
    children: List['RenderNode'] = Field(default_factory=list)
    states: Optional[Dict[str, Dict[str, Any]]] = None
    transition: Optional[Dict[str, Any]] = None
    symbol_id: Optional[str] = None

    @property
    def class_name(self) -> str:
        return f"ps-{css_safe(self.id)}"

    @property
    def is_heavy(self) -> bool:
        return self.kind in HEAVY_KINDS

    def walk(self) -> Iterator['RenderNode']:
        """Pre-order traversal of this node and all its descendants."""
        yield self
        for child in self.children:
            yield from child.walk()


class RenderContext(BaseModel):
    """
    Per-page information renderers may consult: responsive image sources
    planned by the asset planner and whether a node sits above the fold.
    """
    image_sources: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    eager_node_ids: Set[str] = Field(default_factory=set)

    def is_eager(self, node: RenderNode) -> bool:
        return node.id in self.eager_node_ids


Renderer = Callable[[RenderNode, str, RenderContext], str]


def attr(value: Any) -> str:
    return html.escape("" if value is None else str(value), quote=True)


def text(value: Any) -> str:
    return html.escape("" if value is None else str(value), quote=False)


def element(
        tag: str,
        node: RenderNode,
        inner: str = "",
        attrs: Optional[Dict[str, Any]] = None,
        void: bool = False,
) -> str:
    """
    Builds the outer element of a block: kind class, per-node class and the
    node id used by the hydration script and by debugging tools.
    """
    classes = f"ps-block ps-{node.kind} {node.class_name}"
    extra = dict(attrs or {})
    if extra.get("class"):
        classes = f"{classes} {extra.pop('class')}"
    parts = [f'class="{attr(classes)}"', f'data-node-id="{attr(node.id)}"']
    for key, value in extra.items():
        if value is None or value is False:
            continue
        if value is True:
            parts.append(key)
        else:
            parts.append(f'{key}="{attr(value)}"')
    opening = f"<{tag} {' '.join(parts)}>"
    if void:
        return opening
    return f"{opening}{inner}</{tag}>"


def is_safe_url(value: str) -> bool:
    """False for script-bearing URLs. Browsers ignore whitespace and control characters inside the scheme."""
    compact = _URL_NOISE.sub("", value).lower()
    return not compact.startswith(_UNSAFE_SCHEMES)


def safe_url(value: Any, fallback: Optional[str] = None) -> Optional[str]:
    """`value` when it is a non-empty, navigable URL string, otherwise `fallback`."""
    if isinstance(value, str) and value and is_safe_url(value):
        return value
    return fallback


def image_url(value: Any) -> Optional[str]:
    """Accepts either a plain URL string or an image object ({'src': ...} / {'url': ...})."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        return value.get("src") or value.get("url") or None
    return None


def img_tag(value: Any, ctx: RenderContext, node: RenderNode, alt: Optional[str] = None) -> str:
    """Renders an <img> with responsive sources when the asset planner produced any."""
    url = image_url(value)
    if not url:
        return ""
    if alt is None and isinstance(value, dict):
        alt = value.get("alt")
    parts = [f'src="{attr(url)}"', f'alt="{attr(alt or "")}"']
    planned = ctx.image_sources.get(url) or {}
    if planned.get("srcset"):
        parts.append(f'srcset="{attr(planned["srcset"])}"')
        parts.append(f'sizes="{attr(planned.get("sizes", "100vw"))}"')
    for dim in ("width", "height"):
        if planned.get(dim):
            parts.append(f'{dim}="{attr(planned[dim])}"')
    if ctx.is_eager(node):
        parts.append('fetchpriority="high"')
    else:
        parts.append('loading="lazy" decoding="async"')
    return f"<img {' '.join(parts)}>"


def to_json_attr(payload: Any) -> str:
    return attr(json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str))


class BlockDefinition:
    """
    Configuration object binding a block kind to its renderer and kind-level CSS.
    """

    def __init__(
            self,
            kind: str,
            renderer: Renderer,
            base_css: str = "",
            aliases: Optional[List[str]] = None,
    ):
        self.kind = normalize_kind(kind)
        self.renderer = renderer
        self.base_css = base_css.strip()
        self.aliases = [normalize_kind(a) for a in (aliases or [])]

    @property
    def heavy(self) -> bool:
        return self.kind in HEAVY_KINDS

    def __repr__(self) -> str:
        return f"<BlockDefinition kind={self.kind} heavy={self.heavy}>"

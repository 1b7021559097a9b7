# src/exporter/services/asset_planner_service.py
import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple
from urllib.parse import urlparse

from composer.dom.core import RenderNode
from exporter.model import ExportSettings, PlannedAsset

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".avif", ".svg", ".bmp", ".ico")
FONT_EXTENSIONS = (".woff2", ".woff", ".ttf", ".otf", ".eot")

# Attribute names that hold an image even without a telling extension.
IMAGE_KEY_HINTS = ("image", "img", "avatar", "logo", "poster", "thumbnail", "photo")

# Block kinds whose plain `src` attribute is an image.
IMAGE_SRC_KINDS = {"image"}

PRIORITY_RANK = {"critical": 0, "high": 1, "low": 2}

SIZES_BY_LAYOUT = {
    "full": "100vw",
    "half": "(min-width: 768px) 50vw, 100vw",
    "third": "(min-width: 768px) 33vw, 100vw",
    "quarter": "(min-width: 768px) 25vw, 100vw",
}

_URL_LIKE = re.compile(r"^(https?:)?//|^/|^\./|^\.\./|^data:", re.IGNORECASE)
_PX = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(px)?\s*$")
_PERCENT = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*%\s*$")


@dataclass
class AssetPlan:
    assets: List[PlannedAsset] = field(default_factory=list)
    preloads: List[PlannedAsset] = field(default_factory=list)

    def image_sources(self) -> Dict[str, Dict[str, Any]]:
        """Responsive attributes per image URL, in the shape the renderers read."""
        sources: Dict[str, Dict[str, Any]] = {}
        for asset in self.assets:
            if asset.kind != "image":
                continue
            entry: Dict[str, Any] = {}
            if asset.srcset:
                entry["srcset"] = asset.srcset
                entry["sizes"] = asset.sizes or "100vw"
            if asset.width:
                entry["width"] = asset.width
            if asset.height:
                entry["height"] = asset.height
            if entry:
                sources[asset.url] = entry
        return sources


def classify_url(key: str, value: str) -> Optional[str]:
    """
    Returns 'image', 'font' or None for one string attribute value. The file
    extension decides first; URLs without one count as images only when the
    attribute name says so (`image`, `avatar`, `logo`, ...).
    """
    url = (value or "").strip()
    if not url:
        return None
    lowered = url.lower()
    if lowered.startswith("data:"):
        if lowered.startswith("data:image/"):
            return "image"
        if lowered.startswith(("data:font/", "data:application/font", "data:application/x-font")):
            return "font"
        return None
    if " " in url:
        return None

    ext = posixpath.splitext(urlparse(url).path.lower())[1]
    if ext in FONT_EXTENSIONS:
        return "font"
    if ext in IMAGE_EXTENSIONS:
        return "image"
    if ext or not _URL_LIKE.search(url):
        return None

    key_l = key.lower()
    if any(hint in key_l for hint in IMAGE_KEY_HINTS) and not key_l.endswith(("link", "href")):
        return "image"
    return None


def iter_urls(value: Any, key: str = "") -> Iterator[Tuple[str, str]]:
    """(kind, url) pairs found in an attribute value, recursing into mappings and lists."""
    if isinstance(value, str):
        kind = classify_url(key, value)
        if kind:
            yield kind, value.strip()
    elif isinstance(value, dict):
        for sub_key, sub_value in value.items():
            # {"src": ...} nested under "image" or "avatar" takes the outer name.
            inner_key = key if sub_key in ("src", "url") and key else sub_key
            yield from iter_urls(sub_value, inner_key)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_urls(item, key)


def classify_layout(node: RenderNode, parent_columns: Optional[int]) -> Tuple[str, Optional[str]]:
    """Coarse layout slot of a node: (layout name, sizes hint)."""
    a = node.attributes
    layout = a.get("layout")
    if isinstance(layout, str) and layout in SIZES_BY_LAYOUT:
        return layout, SIZES_BY_LAYOUT[layout]

    width = a.get("width")
    if isinstance(width, (int, float)) and not isinstance(width, bool):
        return "custom", f"{width:g}px"
    if isinstance(width, str):
        px = _PX.match(width)
        if px:
            return "custom", f"{float(px.group(1)):g}px"
        pct = _PERCENT.match(width)
        if pct:
            share = float(pct.group(1))
            for name, limit in (("quarter", 25), ("third", 34), ("half", 50)):
                if share <= limit:
                    return name, SIZES_BY_LAYOUT[name]
            return "full", SIZES_BY_LAYOUT["full"]

    if parent_columns:
        name = {2: "half", 3: "third"}.get(parent_columns, "quarter" if parent_columns >= 4 else "full")
        return name, SIZES_BY_LAYOUT[name]
    return "full", SIZES_BY_LAYOUT["full"]


def is_resizable(url: str, resizing_hosts: List[str]) -> bool:
    """
    Only URLs served by something that understands `?w=` get a width ladder:
    site-relative paths and the configured resizing hosts. Data URIs and SVG
    never do.
    """
    lowered = url.lower()
    if lowered.startswith("data:"):
        return False
    parsed = urlparse(url)
    if parsed.path.lower().endswith(".svg"):
        return False
    if not parsed.netloc:
        return True
    host = parsed.hostname or ""
    return any(host == h or host.endswith(f".{h}") for h in resizing_hosts)


def width_variant(url: str, width: int) -> str:
    return f"{url}{'&' if '?' in url else '?'}w={width}"


def plan_assets(
        nodes: List[RenderNode],
        above_fold_count: int,
        settings: Optional[ExportSettings] = None,
) -> AssetPlan:
    """
    Collects image and font URLs from the rendered trees, deduplicated by URL
    in order of first appearance, and decides priority, responsive variants
    and preloads.
    """
    settings = settings or ExportSettings()
    by_url: Dict[str, PlannedAsset] = {}
    counter = 0

    def visit(node: RenderNode, above: bool, parent_columns: Optional[int]) -> None:
        nonlocal counter
        layout, sizes = classify_layout(node, parent_columns)
        for key, value in node.attributes.items():
            if key == "src" and node.kind in IMAGE_SRC_KINDS:
                key = "image"
            for kind, url in iter_urls(value, key):
                asset = by_url.get(url)
                if asset is None:
                    asset = PlannedAsset(url=url, kind=kind, first_seen=counter, layout=layout, sizes=sizes)
                    by_url[url] = asset
                    counter += 1
                if node.id not in asset.node_ids:
                    asset.node_ids.append(node.id)
                asset.above_fold = asset.above_fold or above

        columns = node.attributes.get("columns") if node.kind == "columns" else None
        if not isinstance(columns, int) or isinstance(columns, bool):
            columns = len(node.children) if node.kind == "columns" else None
        for child in node.children:
            visit(child, above, columns)

    for index, root in enumerate(nodes):
        visit(root, index < above_fold_count, None)

    for asset in by_url.values():
        if asset.kind == "image":
            asset.priority = "critical" if asset.above_fold else "low"
            asset.resizable = is_resizable(asset.url, settings.resizing_hosts)
            if asset.resizable and settings.width_ladder:
                asset.variants = [width_variant(asset.url, w) for w in settings.width_ladder]
                asset.srcset = ", ".join(f"{v} {w}w" for v, w in zip(asset.variants, settings.width_ladder))
            else:
                asset.sizes = None
        else:
            asset.priority = "high"
            asset.sizes = None

    assets = list(by_url.values())
    ranked = sorted(assets, key=lambda a: (PRIORITY_RANK[a.priority], a.first_seen))
    plan = AssetPlan(assets=assets, preloads=ranked[:settings.preload_limit])
    logger.debug(f"Planned {len(assets)} assets, {len(plan.preloads)} preloads.")
    return plan

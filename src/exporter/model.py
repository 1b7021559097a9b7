# src/exporter/model.py (Export Layer)
import logging
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from composer.model import CamelModel

logger = logging.getLogger(__name__)

DEFAULT_WIDTH_LADDER = [320, 640, 768, 1024, 1280, 1920]

AssetKind = Literal["image", "font"]
AssetPriority = Literal["critical", "high", "low"]


class ExportSettings(BaseModel):
    """
    Everything one export run needs to know, passed explicitly to the
    compiler and to the worker processes.
    """
    above_fold_count: int = Field(3, ge=0)
    critical_css_budget_kb: float = 14.0
    placeholder_height: int = 400
    minify: bool = True
    inline_styles: bool = False
    preload_limit: int = Field(5, ge=0)
    workers: int = 1
    stylesheet_href: str = "/styles.css"
    lang: str = "en"
    width_ladder: List[int] = Field(default_factory=lambda: list(DEFAULT_WIDTH_LADDER))
    resizing_hosts: List[str] = Field(default_factory=list)
    probe_enabled: bool = False
    probe_timeout: float = 3.0

    @classmethod
    def from_config(cls, config, **overrides: Any) -> "ExportSettings":
        """
        Builds settings from a ConfigManager-like object (anything with
        `get_nested`). Keyword overrides with a value of None are ignored.
        """
        exporter = config.get_nested("exporter", {}) or {}
        assets = config.get_nested("assets", {}) or {}
        probe = assets.get("probe", {}) or {}

        values: Dict[str, Any] = {
            "above_fold_count": exporter.get("above_fold_count", 3),
            "critical_css_budget_kb": exporter.get("critical_css_budget_kb", 14.0),
            "placeholder_height": exporter.get("placeholder_height", 400),
            "minify": exporter.get("minify", True),
            "inline_styles": exporter.get("inline_styles", False),
            "preload_limit": exporter.get("preload_limit", 5),
            "workers": exporter.get("workers", 1),
            "stylesheet_href": exporter.get("stylesheet_href", "/styles.css"),
            "lang": exporter.get("lang", "en"),
            "width_ladder": assets.get("width_ladder", DEFAULT_WIDTH_LADDER),
            "resizing_hosts": assets.get("resizing_hosts", []),
            "probe_enabled": probe.get("enabled", False),
            "probe_timeout": probe.get("timeout", 3.0),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class PlannedAsset(CamelModel):
    """One deduplicated image or font URL found on a page."""
    url: str
    kind: AssetKind
    priority: AssetPriority = "low"
    node_ids: List[str] = Field(default_factory=list)
    first_seen: int = 0
    above_fold: bool = False
    layout: str = "full"
    resizable: bool = False
    variants: List[str] = Field(default_factory=list)
    srcset: Optional[str] = None
    sizes: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def font_format(self) -> Optional[str]:
        if self.kind != "font":
            return None
        ext = self.url.split("?", 1)[0].rsplit(".", 1)[-1].lower()
        return {"woff2": "font/woff2", "woff": "font/woff", "ttf": "font/ttf", "otf": "font/otf"}.get(ext)


class BuildStats(CamelModel):
    node_count: int = 0
    rendered_nodes: int = 0
    above_fold_nodes: int = 0
    lazy_nodes: int = 0
    critical_css_bytes: int = 0
    deferred_css_bytes: int = 0
    html_bytes: int = 0
    asset_count: int = 0
    preload_count: int = 0
    build_time_ms: float = 0.0


class BuildArtifact(CamelModel):
    """Result of compiling one page. `html` is None when the page could not be built."""
    page: str = ""
    path: str = ""
    html: Optional[str] = None
    html_bytes: int = 0
    critical_css: str = ""
    deferred_css: str = ""
    css_bytes: int = 0
    css_rules: List[str] = Field(default_factory=list)
    assets: List[PlannedAsset] = Field(default_factory=list)
    preloads: List[str] = Field(default_factory=list)
    lazy_node_ids: List[str] = Field(default_factory=list)
    stats: BuildStats = Field(default_factory=BuildStats)
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors and self.html is not None


class PageFailure(CamelModel):
    page: str
    path: str = ""
    errors: List[str] = Field(default_factory=list)


class StylesheetArtifact(CamelModel):
    path: str = "styles.css"
    content: str = ""
    bytes: int = 0


class SiteStats(CamelModel):
    total_pages: int = 0
    built_pages: int = 0
    failed_pages: int = 0
    total_html_bytes: int = Field(0, alias="totalHTMLBytes")
    total_css_bytes: int = Field(0, alias="totalCSSBytes")
    total_assets: int = 0
    asset_counts: Dict[str, int] = Field(default_factory=dict)
    build_time_ms: float = 0.0
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class SiteBuildResult(CamelModel):
    pages: List[BuildArtifact] = Field(default_factory=list)
    failures: List[PageFailure] = Field(default_factory=list)
    stylesheet: StylesheetArtifact = Field(default_factory=StylesheetArtifact)
    stats: SiteStats = Field(default_factory=SiteStats)

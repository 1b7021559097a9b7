# src/exporter/services/render_service.py
import logging
from typing import Iterable, List, Optional, Set

from composer.dom.core import RenderContext, RenderNode, attr, text, to_json_attr
from composer.dom.registry import BlockRegistry
from exporter.model import ExportSettings, PlannedAsset

logger = logging.getLogger(__name__)

# Swaps every lazy placeholder for its <template> content once it comes near
# the viewport; without IntersectionObserver everything hydrates immediately.
HYDRATION_SCRIPT = (
    "(function(){"
    "var nodes=Array.prototype.slice.call(document.querySelectorAll('[data-lazy-kind]'));"
    "function hydrate(el){"
    "var tpl=el.querySelector('template');if(!tpl||!el.parentNode)return;"
    "var kind=el.getAttribute('data-lazy-kind'),props={};"
    "try{props=JSON.parse(el.getAttribute('data-lazy-props')||'{}');}catch(e){}"
    "el.parentNode.replaceChild(tpl.content.cloneNode(true),el);"
    "document.dispatchEvent(new CustomEvent('pagesmith:hydrated',{detail:{kind:kind,props:props}}));"
    "}"
    "if(!('IntersectionObserver' in window)){nodes.forEach(hydrate);return;}"
    "var io=new IntersectionObserver(function(entries){entries.forEach(function(entry){"
    "if(entry.isIntersecting){io.unobserve(entry.target);hydrate(entry.target);}"
    "});},{rootMargin:'200px'});"
    "nodes.forEach(function(el){io.observe(el);});"
    "})();"
)


class PageRenderer:
    """Renders resolved nodes through the block registry."""

    def __init__(self, ctx: Optional[RenderContext] = None, settings: Optional[ExportSettings] = None):
        self.ctx = ctx or RenderContext()
        self.settings = settings or ExportSettings()

    def render_node(self, node: RenderNode) -> str:
        inner = "".join(self.render_node(child) for child in node.children)
        return BlockRegistry.render(node, inner, self.ctx)

    def render_lazy(self, node: RenderNode) -> str:
        """
        Placeholder for a deferred heavy block. It reserves space with a fixed
        min-height and keeps the eager markup in a <template> for hydration.
        """
        eager = self.render_node(node)
        props = to_json_attr(node.attributes)
        return (
            f'<div class="ps-lazy ps-lazy-{attr(node.kind)}" data-lazy-id="{attr(node.id)}" '
            f'data-lazy-kind="{attr(node.kind)}" data-lazy-props="{props}" '
            f'style="min-height:{int(self.settings.placeholder_height)}px">'
            f"<template>{eager}</template></div>"
        )

    def render_body(self, nodes: Iterable[RenderNode], lazy_ids: Set[str]) -> str:
        parts = []
        for node in nodes:
            parts.append(self.render_lazy(node) if node.id in lazy_ids else self.render_node(node))
        return "".join(parts)


def preload_tag(asset: PlannedAsset) -> str:
    if asset.kind == "font":
        font_type = asset.font_format
        type_attr = f' type="{font_type}"' if font_type else ""
        return f'<link rel="preload" href="{attr(asset.url)}" as="font"{type_attr} crossorigin>'

    parts = ['rel="preload"', f'href="{attr(asset.url)}"', 'as="image"']
    if asset.srcset:
        parts.append(f'imagesrcset="{attr(asset.srcset)}"')
        parts.append(f'imagesizes="{attr(asset.sizes or "100vw")}"')
    if asset.priority == "critical":
        parts.append('fetchpriority="high"')
    return f"<link {' '.join(parts)}>"


def assemble_document(
        *,
        title: str,
        description: str,
        body_html: str,
        critical_css: str,
        deferred_css: str,
        preloads: List[PlannedAsset],
        settings: ExportSettings,
        include_hydration: bool,
) -> str:
    """Full HTML document for one page."""
    head = [
        '<meta charset="utf-8">',
        '<meta name="viewport" content="width=device-width, initial-scale=1">',
        f"<title>{text(title)}</title>",
    ]
    if description:
        head.append(f'<meta name="description" content="{attr(description)}">')
    head.extend(preload_tag(asset) for asset in preloads)
    head.append(f'<style data-pagesmith="critical">{critical_css}</style>')

    if settings.inline_styles:
        head.append(f'<style data-pagesmith="deferred">{deferred_css}</style>')
    else:
        href = attr(settings.stylesheet_href)
        head.append(
            f'<link rel="preload" href="{href}" as="style" '
            f"onload=\"this.onload=null;this.rel='stylesheet'\">"
        )
        head.append(f'<noscript><link rel="stylesheet" href="{href}"></noscript>')

    body = f'<main class="ps-page">{body_html}</main>'
    if include_hydration:
        body += f'<script data-pagesmith="hydrate">{HYDRATION_SCRIPT}</script>'

    return (
        "<!DOCTYPE html>\n"
        f'<html lang="{attr(settings.lang)}">'
        f"<head>{''.join(head)}</head>"
        f"<body>{body}</body>"
        "</html>\n"
    )

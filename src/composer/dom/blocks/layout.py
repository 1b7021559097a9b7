from ..core import BlockDefinition, RenderContext, RenderNode, element


def render_section(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    anchor = node.attributes.get("anchor")
    return element("section", node, inner_html, {"id": anchor})


def render_container(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    return element("div", node, inner_html)


def render_columns(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    count = node.attributes.get("columns") or len(node.children) or 1
    return element("div", node, inner_html, {"data-columns": count})


def render_spacer(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    return element("div", node, "", {"aria-hidden": "true"})


def render_divider(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    return element("hr", node, void=True)


# --- DEFINITIONS ---
DEFINITIONS = [
    BlockDefinition(
        kind="section",
        renderer=render_section,
        base_css=".ps-section{display:block;width:100%;padding:64px 24px}",
    ),
    BlockDefinition(
        kind="container",
        renderer=render_container,
        aliases=["box", "div"],
        base_css=".ps-container{margin:0 auto;max-width:1200px}",
    ),
    BlockDefinition(
        kind="columns",
        renderer=render_columns,
        aliases=["grid", "row"],
        base_css=".ps-columns{display:grid;gap:24px;grid-template-columns:repeat(auto-fit,minmax(240px,1fr))}",
    ),
    BlockDefinition(
        kind="spacer",
        renderer=render_spacer,
        base_css=".ps-spacer{height:32px}",
    ),
    BlockDefinition(
        kind="divider",
        renderer=render_divider,
        base_css=".ps-divider{border:0;border-top:1px solid currentColor;opacity:.15;margin:32px 0}",
    ),
]

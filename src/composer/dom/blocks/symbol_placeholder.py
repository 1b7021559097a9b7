from ..core import BlockDefinition, RenderContext, RenderNode, MISSING_SYMBOL_KIND, element, text


def render_missing_symbol(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    """Stand-in for an instance whose symbol no longer resolves. Keeps the page buildable."""
    reason = node.attributes.get("reason") or "symbol not found"
    return element(
        "div",
        node,
        f"<!-- missing symbol '{text(node.symbol_id or '')}': {text(reason)} -->",
        {"data-missing-symbol": node.symbol_id or "", "aria-hidden": "true"},
    )


# --- DEFINITION ---
DEFINITION = BlockDefinition(
    kind=MISSING_SYMBOL_KIND,
    renderer=render_missing_symbol,
    base_css=".ps-missing-symbol{display:none}",
)

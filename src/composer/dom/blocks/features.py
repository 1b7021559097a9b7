from ..core import BlockDefinition, RenderContext, RenderNode, element, img_tag, text


def render_features(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    a = node.attributes
    parts = []
    if a.get("title"):
        parts.append(f'<h2 class="ps-features__title">{text(a["title"])}</h2>')

    items = []
    for item in a.get("items") or a.get("features") or []:
        if not isinstance(item, dict):
            continue
        body = []
        if item.get("icon"):
            body.append(f'<span class="ps-features__icon" aria-hidden="true">{text(item["icon"])}</span>')
        if item.get("image"):
            body.append(img_tag(item["image"], ctx, node))
        if item.get("title"):
            body.append(f'<h3>{text(item["title"])}</h3>')
        if item.get("description"):
            body.append(f'<p>{text(item["description"])}</p>')
        items.append(f'<li class="ps-features__item">{"".join(body)}</li>')

    if items:
        parts.append(f'<ul class="ps-features__list">{"".join(items)}</ul>')
    return element("section", node, "".join(parts) + inner_html)


# --- DEFINITION ---
DEFINITION = BlockDefinition(
    kind="features",
    renderer=render_features,
    aliases=["feature-grid"],
    base_css=(
        ".ps-features{padding:64px 24px}"
        ".ps-features__title{text-align:center;margin:0 0 40px}"
        ".ps-features__list{list-style:none;margin:0;padding:0;display:grid;gap:32px;"
        "grid-template-columns:repeat(auto-fit,minmax(220px,1fr))}"
        ".ps-features__icon{font-size:2rem}"
    ),
)

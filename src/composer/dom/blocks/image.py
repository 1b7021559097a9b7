from ..core import BlockDefinition, RenderContext, RenderNode, element, img_tag, image_url, text


def render_image(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    a = node.attributes
    source = a.get("src") or a.get("image")
    if not image_url(source):
        return element("figure", node, "<!-- image without source -->")
    caption = f"<figcaption>{text(a['caption'])}</figcaption>" if a.get("caption") else ""
    return element("figure", node, img_tag(source, ctx, node, alt=a.get("alt")) + caption)


# --- DEFINITION ---
DEFINITION = BlockDefinition(
    kind="image",
    renderer=render_image,
    aliases=["picture"],
    base_css=".ps-image{margin:0}.ps-image img{display:block;width:100%;height:auto}",
)

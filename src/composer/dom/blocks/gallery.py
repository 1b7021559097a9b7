from ..core import BlockDefinition, RenderContext, RenderNode, element, img_tag, image_url, text


def _slides(node: RenderNode):
    a = node.attributes
    for item in a.get("images") or a.get("slides") or a.get("items") or []:
        if isinstance(item, dict):
            source = item.get("image") or item.get("src") or item.get("url")
            yield source, item.get("alt") or item.get("caption"), item.get("caption")
        elif isinstance(item, str):
            yield item, None, None


def render_carousel(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    slides = []
    for index, (source, alt, caption) in enumerate(_slides(node)):
        if not image_url(source):
            continue
        caption_html = f"<figcaption>{text(caption)}</figcaption>" if caption else ""
        slides.append(
            f'<figure class="ps-carousel__slide" data-index="{index}">'
            f'{img_tag(source, ctx, node, alt=alt)}{caption_html}</figure>'
        )
    interval = node.attributes.get("interval", 5000)
    return element("div", node, f'<div class="ps-carousel__track">{"".join(slides)}</div>',
                   {"data-interval": interval, "role": "region", "aria-roledescription": "carousel"})


def render_image_gallery(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    tiles = []
    for source, alt, caption in _slides(node):
        if not image_url(source):
            continue
        caption_html = f"<figcaption>{text(caption)}</figcaption>" if caption else ""
        tiles.append(f"<figure>{img_tag(source, ctx, node, alt=alt)}{caption_html}</figure>")
    columns = node.attributes.get("columns", 3)
    return element("div", node, "".join(tiles), {"data-columns": columns})


# --- DEFINITIONS ---
DEFINITIONS = [
    BlockDefinition(
        kind="carousel",
        renderer=render_carousel,
        aliases=["slider"],
        base_css=(
            ".ps-carousel{overflow:hidden}"
            ".ps-carousel__track{display:flex;overflow-x:auto;scroll-snap-type:x mandatory}"
            ".ps-carousel__slide{flex:0 0 100%;margin:0;scroll-snap-align:start}"
        ),
    ),
    BlockDefinition(
        kind="image-gallery",
        renderer=render_image_gallery,
        aliases=["gallery"],
        base_css=(
            ".ps-image-gallery{display:grid;gap:16px;grid-template-columns:repeat(auto-fill,minmax(200px,1fr))}"
            ".ps-image-gallery figure{margin:0}"
        ),
    ),
]

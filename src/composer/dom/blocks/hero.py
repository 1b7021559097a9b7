from ..core import BlockDefinition, RenderContext, RenderNode, element, img_tag, image_url, safe_url, attr, text


def render_hero(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    a = node.attributes
    parts = []
    if a.get("title"):
        parts.append(f'<h1 class="ps-hero__title">{text(a["title"])}</h1>')
    if a.get("subtitle"):
        parts.append(f'<p class="ps-hero__subtitle">{text(a["subtitle"])}</p>')

    cta_label = a.get("ctaText") or a.get("buttonText")
    if cta_label:
        cta_href = safe_url(a.get("ctaLink") or a.get("buttonLink"), "#")
        parts.append(f'<a class="ps-hero__cta" href="{attr(cta_href)}">{text(cta_label)}</a>')

    image = a.get("image")
    if image_url(image):
        parts.append(f'<div class="ps-hero__media">{img_tag(image, ctx, node)}</div>')

    extra = {}
    background = image_url(a.get("backgroundImage"))
    if background:
        extra["style"] = f"background-image:url('{background}')"

    return element("header", node, "".join(parts) + inner_html, extra)


# --- DEFINITION ---
DEFINITION = BlockDefinition(
    kind="hero",
    renderer=render_hero,
    base_css=(
        ".ps-hero{padding:96px 24px;text-align:center;background-size:cover;background-position:center}"
        ".ps-hero__title{font-size:3rem;margin:0 0 16px}"
        ".ps-hero__subtitle{font-size:1.25rem;margin:0 auto 32px;max-width:640px}"
        ".ps-hero__cta{display:inline-block;padding:14px 28px;border-radius:6px;background:#111;color:#fff}"
    ),
)

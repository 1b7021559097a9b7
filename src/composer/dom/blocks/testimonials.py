from ..core import BlockDefinition, RenderContext, RenderNode, element, img_tag, text


def render_testimonials(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    a = node.attributes
    parts = []
    if a.get("title"):
        parts.append(f'<h2 class="ps-testimonials__title">{text(a["title"])}</h2>')

    for item in a.get("items") or a.get("testimonials") or []:
        if not isinstance(item, dict):
            continue
        avatar = img_tag(item["avatar"], ctx, node, alt=item.get("author")) if item.get("avatar") else ""
        author = text(item.get("author", ""))
        role = f'<span class="ps-testimonials__role">{text(item["role"])}</span>' if item.get("role") else ""
        parts.append(
            '<figure class="ps-testimonials__item">'
            f'<blockquote>{text(item.get("quote", ""))}</blockquote>'
            f'<figcaption>{avatar}<cite>{author}</cite>{role}</figcaption>'
            '</figure>'
        )
    return element("section", node, "".join(parts) + inner_html)


# --- DEFINITION ---
DEFINITION = BlockDefinition(
    kind="testimonials",
    renderer=render_testimonials,
    base_css=(
        ".ps-testimonials{padding:64px 24px}"
        ".ps-testimonials__item{margin:0 0 32px}"
        ".ps-testimonials__item img{width:48px;height:48px;border-radius:50%}"
    ),
)

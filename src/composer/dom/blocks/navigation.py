from ..core import BlockDefinition, RenderContext, RenderNode, element, img_tag, safe_url, attr, text


def _links(items) -> str:
    out = []
    for link in items or []:
        if not isinstance(link, dict):
            continue
        out.append(f'<li><a href="{attr(safe_url(link.get("href"), "#"))}">{text(link.get("label", ""))}</a></li>')
    return "".join(out)


def render_navbar(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    a = node.attributes
    brand = img_tag(a["logo"], ctx, node, alt=a.get("brand")) if a.get("logo") else text(a.get("brand", ""))
    links = _links(a.get("links"))
    return element(
        "nav",
        node,
        f'<a class="ps-navbar__brand" href="/">{brand}</a><ul class="ps-navbar__links">{links}</ul>{inner_html}',
    )


def render_footer(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    a = node.attributes
    links = _links(a.get("links"))
    copyright_line = f'<p class="ps-footer__copy">{text(a["copyright"])}</p>' if a.get("copyright") else ""
    return element("footer", node, f'<ul class="ps-footer__links">{links}</ul>{copyright_line}{inner_html}')


# --- DEFINITIONS ---
DEFINITIONS = [
    BlockDefinition(
        kind="navbar",
        renderer=render_navbar,
        aliases=["navigation", "header-nav"],
        base_css=(
            ".ps-navbar{display:flex;align-items:center;justify-content:space-between;padding:16px 24px}"
            ".ps-navbar__links{display:flex;gap:24px;list-style:none;margin:0;padding:0}"
            ".ps-navbar__brand img{height:32px;width:auto}"
        ),
    ),
    BlockDefinition(
        kind="footer",
        renderer=render_footer,
        base_css=(
            ".ps-footer{padding:48px 24px;font-size:.875rem}"
            ".ps-footer__links{display:flex;flex-wrap:wrap;gap:16px;list-style:none;margin:0 0 16px;padding:0}"
        ),
    ),
]

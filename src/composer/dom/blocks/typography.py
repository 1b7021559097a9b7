from bs4 import BeautifulSoup, Comment

from ..core import BlockDefinition, RenderContext, RenderNode, element, is_safe_url, safe_url, text

_HEADING_LEVELS = {"h1", "h2", "h3", "h4", "h5", "h6"}
_BLOCKED_TAGS = ("script", "style", "iframe", "object", "embed", "form")


def sanitize_rich_text(markup: str) -> str:
    """
    Strips executable content from author-supplied rich text: blocked tags,
    comments, inline event handlers and javascript: URLs.
    """
    if not markup:
        return ""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup.find_all(_BLOCKED_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    for tag in soup.find_all(True):
        for name in list(tag.attrs):
            value = tag.attrs[name]
            if name.lower().startswith("on"):
                del tag.attrs[name]
            elif isinstance(value, str) and not is_safe_url(value):
                del tag.attrs[name]
    return str(soup)


def render_heading(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    level = str(node.attributes.get("level", "h2")).lower()
    if level.isdigit():
        level = f"h{level}"
    if level not in _HEADING_LEVELS:
        level = "h2"
    return element(level, node, text(node.attributes.get("text", "")))


def render_text(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    return element("p", node, text(node.attributes.get("text", "")))


def render_rich_text(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    content = node.attributes.get("content") or node.attributes.get("html") or ""
    return element("div", node, sanitize_rich_text(str(content)))


def render_button(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    label = node.attributes.get("label") or node.attributes.get("text") or ""
    href = safe_url(node.attributes.get("href") or node.attributes.get("link"))
    variant = node.attributes.get("variant", "primary")
    if href:
        return element("a", node, text(label), {"href": href, "class": f"ps-button--{variant}"})
    return element("button", node, text(label), {"type": "button", "class": f"ps-button--{variant}"})


# --- DEFINITIONS ---
DEFINITIONS = [
    BlockDefinition(
        kind="heading",
        renderer=render_heading,
        aliases=["title"],
        base_css=".ps-heading{margin:0 0 16px;line-height:1.2}",
    ),
    BlockDefinition(
        kind="text",
        renderer=render_text,
        aliases=["paragraph"],
        base_css=".ps-text{margin:0 0 16px}",
    ),
    BlockDefinition(
        kind="rich-text",
        renderer=render_rich_text,
        base_css=".ps-rich-text>*:last-child{margin-bottom:0}",
    ),
    BlockDefinition(
        kind="button",
        renderer=render_button,
        base_css=(
            ".ps-button{display:inline-block;padding:12px 24px;border-radius:6px;border:0;font-weight:600}"
            ".ps-button--primary{background:#111;color:#fff}"
            ".ps-button--secondary{background:transparent;border:1px solid currentColor}"
        ),
    ),
]

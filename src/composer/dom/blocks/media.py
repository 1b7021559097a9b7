from urllib.parse import quote_plus, urlparse, parse_qs

from ..core import BlockDefinition, RenderContext, RenderNode, element, image_url, safe_url, attr, text

_YOUTUBE_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com", "youtu.be"}
_VIMEO_HOSTS = {"vimeo.com", "www.vimeo.com", "player.vimeo.com"}


def video_embed_url(url: str) -> str:
    """Maps watch-page URLs of the common video hosts onto their embeddable player URL."""
    parsed = urlparse(url)
    host = parsed.netloc.lower()
    if host in _YOUTUBE_HOSTS:
        if host == "youtu.be":
            video_id = parsed.path.lstrip("/")
        elif parsed.path.startswith("/embed/"):
            return url
        else:
            video_id = (parse_qs(parsed.query).get("v") or [""])[0]
        return f"https://www.youtube-nocookie.com/embed/{video_id}" if video_id else url
    if host in _VIMEO_HOSTS and host != "player.vimeo.com":
        video_id = parsed.path.strip("/").split("/")[0]
        return f"https://player.vimeo.com/video/{video_id}" if video_id else url
    return url


def _iframe(src: str, title: str, extra: str = "") -> str:
    return (
        f'<iframe src="{attr(src)}" title="{attr(title)}" loading="lazy" '
        f'allowfullscreen{extra}></iframe>'
    )


def render_video(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    a = node.attributes
    src = safe_url(a.get("src") or a.get("url"), "")
    title = a.get("title") or "Video"
    embed = video_embed_url(src)
    if embed != src or urlparse(src).netloc.lower() in _YOUTUBE_HOSTS | _VIMEO_HOSTS:
        body = _iframe(embed, title, ' allow="autoplay; encrypted-media; picture-in-picture"')
    else:
        parts = [f'src="{attr(src)}"', "controls", "playsinline", 'preload="metadata"']
        poster = image_url(a.get("poster"))
        if poster:
            parts.append(f'poster="{attr(poster)}"')
        parts.extend(flag for flag in ("autoplay", "muted", "loop") if a.get(flag))
        body = f"<video {' '.join(parts)}></video>"
    return element("div", node, body)


def render_embed(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    a = node.attributes
    src = safe_url(a.get("src") or a.get("url"))
    if not src:
        return element("div", node, "<!-- embed without a usable source -->")
    return element("div", node, _iframe(src, a.get("title") or "Embedded content"))


def render_map(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    a = node.attributes
    address = a.get("address") or ""
    zoom = a.get("zoom", 14)
    src = safe_url(a.get("embedUrl"))
    if not src:
        src = f"https://maps.google.com/maps?q={quote_plus(str(address))}&z={zoom}&output=embed"
    return element("div", node, _iframe(src, f"Map: {address}" if address else "Map"))


def render_animated_illustration(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    a = node.attributes
    src = a.get("src") or a.get("animationUrl") or ""
    fallback = image_url(a.get("fallbackImage"))
    fallback_img = f'<img src="{attr(fallback)}" alt="{attr(a.get("alt", ""))}" loading="lazy">' if fallback else ""
    loop = "true" if a.get("loop", True) else "false"
    caption = f"<p>{text(a['caption'])}</p>" if a.get("caption") else ""
    stage = (
        f'<div class="ps-animated-illustration__stage" data-animation-src="{attr(src)}" '
        f'data-loop="{loop}">{fallback_img}</div>'
    )
    return element("div", node, stage + caption)


# --- DEFINITIONS ---
DEFINITIONS = [
    BlockDefinition(
        kind="video",
        renderer=render_video,
        base_css=(
            ".ps-video{position:relative;aspect-ratio:16/9}"
            ".ps-video iframe,.ps-video video{position:absolute;inset:0;width:100%;height:100%;border:0}"
        ),
    ),
    BlockDefinition(
        kind="embed",
        renderer=render_embed,
        aliases=["iframe"],
        base_css=".ps-embed iframe{width:100%;min-height:360px;border:0}",
    ),
    BlockDefinition(
        kind="map",
        renderer=render_map,
        aliases=["google-map"],
        base_css=".ps-map iframe{width:100%;height:400px;border:0}",
    ),
    BlockDefinition(
        kind="animated-illustration",
        renderer=render_animated_illustration,
        aliases=["lottie"],
        base_css=".ps-animated-illustration__stage{max-width:100%}",
    ),
]

# tests/exporter/test_render_service.py
import json

from bs4 import BeautifulSoup

from composer.dom.core import RenderNode
from exporter.model import ExportSettings, PlannedAsset
from exporter.services.render_service import PageRenderer, assemble_document, preload_tag


def _node(node_id, kind, children=(), **attributes):
    return RenderNode(id=node_id, source_id=node_id, kind=kind, type=kind,
                      attributes=attributes, children=list(children))


def _document(settings=None, body_html="", include_hydration=False, preloads=()):
    return assemble_document(
        title="Home & Garden",
        description="All about <plants>",
        body_html=body_html,
        critical_css=".a{top:0}",
        deferred_css=".a{top:0}.b{left:0}",
        preloads=list(preloads),
        settings=settings or ExportSettings(),
        include_hydration=include_hydration,
    )


def test_lazy_placeholder_reserves_space_and_keeps_markup():
    video = _node("clip", "video", src="/media/clip.mp4", title="Intro")
    renderer = PageRenderer(settings=ExportSettings(placeholder_height=400))
    soup = BeautifulSoup(renderer.render_body([video], {"clip"}), "html.parser")

    wrapper = soup.find("div", class_="ps-lazy")
    assert wrapper["data-lazy-id"] == "clip"
    assert wrapper["data-lazy-kind"] == "video"
    assert wrapper["style"] == "min-height:400px"
    assert json.loads(wrapper["data-lazy-props"]) == {"src": "/media/clip.mp4", "title": "Intro"}

    template = wrapper.find("template")
    assert template is not None
    assert template.find("video")["src"] == "/media/clip.mp4"


def test_eager_nodes_render_directly_with_children():
    section = _node("s", "section", children=[_node("t", "text", text="Hello")])
    html = PageRenderer().render_body([section], set())
    soup = BeautifulSoup(html, "html.parser")

    assert soup.find(class_="ps-lazy") is None
    assert soup.find("p", attrs={"data-node-id": "t"}).get_text() == "Hello"
    assert soup.find(attrs={"data-node-id": "s"}).find("p") is not None


def test_document_without_lazy_nodes_has_no_script():
    soup = BeautifulSoup(_document(), "html.parser")

    assert soup.find("script") is None
    assert soup.find("html")["lang"] == "en"
    assert soup.find("title").get_text() == "Home & Garden"
    assert soup.find("meta", attrs={"name": "description"})["content"] == "All about <plants>"
    assert soup.find("main", class_="ps-page") is not None


def test_critical_css_inline_and_stylesheet_deferred():
    soup = BeautifulSoup(_document(ExportSettings(stylesheet_href="/assets/site.css")), "html.parser")

    assert soup.find("style", attrs={"data-pagesmith": "critical"}).get_text() == ".a{top:0}"
    assert soup.find("style", attrs={"data-pagesmith": "deferred"}) is None
    link = soup.find("link", attrs={"as": "style"})
    assert link["href"] == "/assets/site.css"
    assert "stylesheet" in link["onload"]
    assert soup.find("noscript").find("link")["rel"] == ["stylesheet"]


def test_inline_styles_embed_the_deferred_css():
    soup = BeautifulSoup(_document(ExportSettings(inline_styles=True)), "html.parser")

    deferred = soup.find("style", attrs={"data-pagesmith": "deferred"})
    assert deferred.get_text() == ".a{top:0}.b{left:0}"
    assert soup.find("link", attrs={"as": "style"}) is None
    assert soup.find("noscript") is None


def test_hydration_script_only_with_lazy_nodes():
    soup = BeautifulSoup(_document(include_hydration=True), "html.parser")
    script = soup.find("script", attrs={"data-pagesmith": "hydrate"})
    assert script is not None
    assert "IntersectionObserver" in script.get_text()


def test_preload_tags():
    font = PlannedAsset(url="/fonts/inter.woff2", kind="font", priority="high")
    hero = PlannedAsset(url="/img/hero.jpg", kind="image", priority="critical",
                        srcset="/img/hero.jpg?w=320 320w", sizes="100vw")
    plain = PlannedAsset(url="https://other.com/a.png", kind="image", priority="low")

    assert preload_tag(font) == '<link rel="preload" href="/fonts/inter.woff2" as="font" type="font/woff2" crossorigin>'
    assert preload_tag(hero) == (
        '<link rel="preload" href="/img/hero.jpg" as="image" imagesrcset="/img/hero.jpg?w=320 320w" '
        'imagesizes="100vw" fetchpriority="high">'
    )
    assert preload_tag(plain) == '<link rel="preload" href="https://other.com/a.png" as="image">'


def test_preloads_come_before_critical_style():
    html = _document(preloads=[PlannedAsset(url="/img/a.jpg", kind="image", priority="critical")])
    assert html.index('href="/img/a.jpg"') < html.index('data-pagesmith="critical"')

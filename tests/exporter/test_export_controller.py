# tests/exporter/test_export_controller.py
import pytest
from bs4 import BeautifulSoup

from composer.managers.symbol_manager import SymbolCatalog
from composer.model import Node, PageDocument, PageRoot, RootProps, Symbol
from exporter.controllers.export_controller import ExportController, build_site, compile_page, page_path
from exporter.model import ExportSettings


def _page(slug, children, nodes, title=""):
    return PageDocument(
        slug=slug,
        root=PageRoot(props=RootProps(title=title or slug), children=children),
        nodes={node.id: node for node in nodes},
    )


@pytest.fixture
def catalog():
    return SymbolCatalog([
        Symbol(
            id="sym-cta",
            name="Call to action",
            source_node=Node(id="cta", type="Section", attributes={"padding": 24}, children=["cta-btn"]),
            source_children={
                "cta-btn": Node(id="cta-btn", type="Button", attributes={"label": "Buy now"}, parent_id="cta"),
            },
        )
    ])


@pytest.fixture
def site(catalog):
    home = _page("home", ["banner", "clip"], [
        Node(id="banner", type="Hero", attributes={"title": "Welcome", "image": "/img/hero.jpg"}),
        Node(id="clip", type="Video", attributes={"src": "/media/clip.mp4"}),
    ], title="Home")
    catalog.create_instance("sym-cta", home)

    about = _page("about", ["intro", "ghost"], [
        Node(id="intro", type="Text", attributes={"text": "About us", "color": "#333"}),
        Node(id="ghost", type="SymbolInstance", attributes={"symbolId": "sym-gone", "overrides": {}}),
        Node(id="orphan", type="Text", attributes={"text": "SECRET DRAFT"}),
    ])
    broken = _page("broken", ["nope"], [])
    return [home, about, broken]


@pytest.mark.parametrize("slug, doc_id, expected", [
    ("home", None, "index.html"),
    ("", None, "index.html"),
    ("index", None, "index.html"),
    ("about", None, "about/index.html"),
    ("/blog/first-post/", None, "blog/first-post/index.html"),
    (None, "contact", "contact/index.html"),
    (None, None, "index.html"),
])
def test_page_path(slug, doc_id, expected):
    assert page_path(PageDocument(id=doc_id, slug=slug)) == expected


def test_compile_page_stops_on_validation_errors():
    artifact = compile_page(_page("broken", ["nope"], []))

    assert not artifact.ok
    assert artifact.html is None
    assert artifact.path == "broken/index.html"
    assert any("missing node 'nope'" in e for e in artifact.errors)


def test_compile_page_expands_symbols_and_splits_css(site, catalog):
    settings = ExportSettings(above_fold_count=1)
    artifact = compile_page(site[0], catalog.snapshot(), settings)
    soup = BeautifulSoup(artifact.html, "html.parser")

    assert artifact.ok
    assert artifact.lazy_node_ids == ["clip"]
    assert soup.find("div", class_="ps-lazy")["data-lazy-id"] == "clip"
    assert soup.find("script", attrs={"data-pagesmith": "hydrate"}) is not None
    assert "Buy now" in soup.get_text()
    assert artifact.preloads[0] == "/img/hero.jpg"
    assert artifact.stats.lazy_nodes == 1
    assert artifact.stats.html_bytes == len(artifact.html.encode("utf-8"))


def test_build_site_isolates_failing_pages(site, catalog):
    result = build_site(site, catalog, settings=ExportSettings())

    assert result.stats.total_pages == 3
    assert result.stats.built_pages == 2
    assert result.stats.failed_pages == 1
    assert [p.path for p in result.pages] == ["index.html", "about/index.html"]
    assert result.failures[0].page == "broken"
    assert result.failures[0].path == "broken/index.html"
    assert result.stats.errors == result.failures[0].errors


def test_build_site_warnings_and_orphans(site, catalog):
    result = build_site(site, catalog)
    about = result.pages[1]

    assert any("sym-gone" in w for w in about.warnings)
    assert any("orphan" in w for w in about.warnings)
    assert "SECRET DRAFT" not in about.html
    assert "missing symbol 'sym-gone'" in about.html
    assert any("sym-gone" in w for w in result.stats.warnings)


def test_shared_stylesheet_is_the_union_of_page_rules(site, catalog):
    result = build_site(site, catalog)
    content = result.stylesheet.content

    for artifact in result.pages:
        for rule in artifact.css_rules:
            assert rule in content
    assert ".ps-intro{color:#333}" in content
    assert content.count(".ps-hero{") == 1
    assert result.stylesheet.bytes == len(content.encode("utf-8"))
    assert result.stats.total_css_bytes == result.stylesheet.bytes
    assert result.stats.asset_counts == {"image": 1}


def test_write_site(tmp_path, site, catalog):
    controller = ExportController(ExportSettings())
    result = controller.build_site(site, catalog)
    written = controller.write_site(result, tmp_path / "dist")

    assert sorted(p.relative_to(tmp_path / "dist").as_posix() for p in written) == [
        "about/index.html", "index.html", "styles.css",
    ]
    assert not (tmp_path / "dist" / "broken").exists()
    assert (tmp_path / "dist" / "index.html").read_text(encoding="utf-8").startswith("<!DOCTYPE html>")


def test_write_site_inline_styles_skips_stylesheet(tmp_path, site, catalog):
    controller = ExportController(ExportSettings(inline_styles=True))
    written = controller.write_site(controller.build_site(site, catalog), tmp_path)

    assert not (tmp_path / "styles.css").exists()
    assert len(written) == 2


def test_parallel_build_matches_sequential(site, catalog):
    sequential = build_site(site, catalog, workers=1)
    parallel = build_site(site, catalog, workers=2)

    assert [p.path for p in parallel.pages] == [p.path for p in sequential.pages]
    assert [p.html for p in parallel.pages] == [p.html for p in sequential.pages]
    assert parallel.stylesheet.content == sequential.stylesheet.content
    assert parallel.stats.failed_pages == 1


def test_empty_site():
    result = build_site([])
    assert result.stats.total_pages == 0
    assert result.pages == []
    assert result.stylesheet.content == ""

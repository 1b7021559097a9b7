# tests/exporter/test_asset_planner.py
import asyncio

import pytest

from composer.dom.core import RenderNode
from exporter.model import ExportSettings, PlannedAsset
from exporter.services import asset_probe_service
from exporter.services.asset_planner_service import (
    classify_url,
    is_resizable,
    iter_urls,
    plan_assets,
    width_variant,
)
from exporter.services.asset_probe_service import AssetProbeService, probe_assets, sniff_dimensions


def _node(node_id, kind, children=(), **attributes):
    return RenderNode(id=node_id, source_id=node_id, kind=kind, type=kind,
                      attributes=attributes, children=list(children))


@pytest.mark.parametrize("key, value, expected", [
    ("src", "/img/photo.JPG", "image"),
    ("href", "/fonts/inter.woff2?v=3", "font"),
    ("backgroundImage", "https://cdn.example.com/render/abc", "image"),
    ("logo", "//cdn.example.com/logo", "image"),
    ("avatarLink", "https://example.com/team/ann", None),
    ("link", "https://example.com/page", None),
    ("text", "just some words", None),
    ("src", "/docs/manual.pdf", None),
    ("image", "data:image/png;base64,AAAA", "image"),
    ("font", "data:font/woff2;base64,AAAA", "font"),
    ("src", "data:text/plain,hi", None),
    ("image", "", None),
])
def test_classify_url(key, value, expected):
    assert classify_url(key, value) == expected


def test_iter_urls_yields_kind_and_url_using_outer_key_for_src():
    value = {"image": {"src": "https://cdn.example.com/a", "alt": "x"}, "items": [{"avatar": "/u/1"}]}
    assert list(iter_urls(value)) == [("image", "https://cdn.example.com/a"), ("image", "/u/1")]


def test_is_resizable():
    hosts = ["images.example.com"]
    assert is_resizable("/img/a.jpg", hosts)
    assert is_resizable("https://images.example.com/a.jpg", hosts)
    assert is_resizable("https://eu.images.example.com/a.jpg", hosts)
    assert not is_resizable("https://other.com/a.jpg", hosts)
    assert not is_resizable("/img/logo.svg", hosts)
    assert not is_resizable("data:image/png;base64,AAAA", hosts)


def test_width_variant():
    assert width_variant("/a.jpg", 320) == "/a.jpg?w=320"
    assert width_variant("/a.jpg?v=2", 640) == "/a.jpg?v=2&w=640"


def test_priorities_variants_and_preload_order():
    nodes = [
        _node("hero", "hero", image="/img/hero.jpg", fontUrl="/fonts/display.woff2"),
        _node("gallery", "image-gallery", images=[{"src": "https://other.com/a.png"}, {"src": "/img/b.png"}]),
    ]
    settings = ExportSettings(width_ladder=[320, 640])
    plan = plan_assets(nodes, above_fold_count=1, settings=settings)

    by_url = {a.url: a for a in plan.assets}
    assert [a.url for a in plan.assets] == ["/img/hero.jpg", "/fonts/display.woff2", "https://other.com/a.png", "/img/b.png"]

    hero = by_url["/img/hero.jpg"]
    assert (hero.kind, hero.priority, hero.above_fold) == ("image", "critical", True)
    assert hero.srcset == "/img/hero.jpg?w=320 320w, /img/hero.jpg?w=640 640w"
    assert hero.sizes == "100vw"

    assert by_url["/fonts/display.woff2"].priority == "high"
    assert by_url["/fonts/display.woff2"].font_format == "font/woff2"

    external = by_url["https://other.com/a.png"]
    assert external.priority == "low"
    assert not external.resizable
    assert external.srcset is None and external.sizes is None

    assert [a.url for a in plan.preloads] == [
        "/img/hero.jpg", "/fonts/display.woff2", "https://other.com/a.png", "/img/b.png",
    ]
    assert sorted(a.kind for a in plan.assets) == ["font", "image", "image", "image"]


def test_preload_limit_and_dedup_by_url():
    nodes = [_node(f"img{i}", "image", src=f"/img/{i}.jpg") for i in range(8)]
    nodes.append(_node("again", "image", src="/img/0.jpg"))
    plan = plan_assets(nodes, above_fold_count=2, settings=ExportSettings(preload_limit=3))

    assert len(plan.assets) == 8
    assert plan.assets[0].node_ids == ["img0", "again"]
    assert [a.url for a in plan.preloads] == ["/img/0.jpg", "/img/1.jpg", "/img/2.jpg"]
    assert [a.priority for a in plan.preloads] == ["critical", "critical", "low"]


def test_column_children_get_fractional_sizes():
    columns = _node("cols", "columns", children=[
        _node("left", "image", src="/img/l.jpg"),
        _node("right", "image", src="/img/r.jpg", width="25%"),
        _node("fixed", "image", src="/img/f.jpg", width=240),
    ], columns=2)
    plan = plan_assets([columns], above_fold_count=1)
    sizes = {a.url: a.sizes for a in plan.assets}

    assert sizes["/img/l.jpg"] == "(min-width: 768px) 50vw, 100vw"
    assert sizes["/img/r.jpg"] == "(min-width: 768px) 25vw, 100vw"
    assert sizes["/img/f.jpg"] == "240px"


def test_image_sources_for_renderers():
    plan = plan_assets([_node("i", "image", src="/img/a.jpg")], 1, ExportSettings(width_ladder=[100]))
    assert plan.image_sources() == {"/img/a.jpg": {"srcset": "/img/a.jpg?w=100 100w", "sizes": "100vw"}}


# --- Probe ---

def test_sniff_png_and_gif_dimensions():
    png = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + (640).to_bytes(4, "big") + (480).to_bytes(4, "big")
    gif = b"GIF89a" + (32).to_bytes(2, "little") + (16).to_bytes(2, "little")

    assert sniff_dimensions(png) == (640, 480)
    assert sniff_dimensions(gif) == (32, 16)
    assert sniff_dimensions(b"not an image") is None


def test_probe_failure_falls_back_to_original_url(monkeypatch):
    async def fake_probe(self, url):
        if "broken" in url:
            return {"ok": False, "error": "HTTP 404"}
        return {"ok": True, "width": 800, "height": 600}

    monkeypatch.setattr(AssetProbeService, "probe", fake_probe)
    broken = PlannedAsset(url="https://img.example.com/broken.jpg", kind="image", resizable=True,
                          variants=["x"], srcset="x 1w", sizes="100vw")
    fine = PlannedAsset(url="https://img.example.com/ok.jpg", kind="image")
    local = PlannedAsset(url="/img/local.jpg", kind="image", srcset="kept")

    warnings = probe_assets([broken, fine, local], timeout=1.0)

    assert len(warnings) == 1 and "broken.jpg" in warnings[0]
    assert (broken.srcset, broken.sizes, broken.variants, broken.resizable) == (None, None, [], False)
    assert (fine.width, fine.height) == (800, 600)
    assert local.srcset == "kept"


def test_probe_timeout_strips_remote_variants(monkeypatch):
    async def slow_probe(self, url):
        await asyncio.sleep(5)
        return {"ok": True}

    monkeypatch.setattr(AssetProbeService, "probe", slow_probe)
    remote = PlannedAsset(url="https://img.example.com/a.jpg", kind="image", srcset="x 1w", resizable=True)

    warnings = asset_probe_service.probe_assets([remote], timeout=0.05)

    assert "timed out" in warnings[0]
    assert remote.srcset is None
    assert not remote.resizable

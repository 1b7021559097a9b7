# tests/composer/test_symbol_catalog.py
import pytest

from composer.dom.tree import DocumentModel
from composer.errors import MutationError, SymbolError
from composer.managers.symbol_manager import (
    CatalogSnapshot,
    SymbolCatalog,
    deep_merge,
    instances_in,
    overridden_fields,
)
from composer.model import Node, PageDocument, PageRoot, Symbol
from composer.services.resolution_service import resolve_document


@pytest.fixture
def header_symbol():
    return Symbol(
        id="sym-header",
        name="Header",
        category="layout",
        tags=["nav", "top"],
        source_node=Node(id="hdr", type="Hero", attributes={"title": "Acme", "subtitle": "Tools"}, children=["hdr-cta"]),
        source_children={
            "hdr-cta": Node(id="hdr-cta", type="Button", attributes={"label": "Buy"}, parent_id="hdr"),
        },
    )


@pytest.fixture
def catalog(header_symbol):
    return SymbolCatalog([header_symbol])


@pytest.fixture
def page():
    return PageDocument.empty("Home", slug="home")


# --- Override resolution ---

def test_deep_merge_does_not_modify_inputs():
    base = {"style": {"color": "red", "size": 1}, "title": "a"}
    result = deep_merge(base, {"style": {"color": "blue"}})

    assert result == {"style": {"color": "blue", "size": 1}, "title": "a"}
    assert base["style"]["color"] == "red"


def test_deep_merge_is_idempotent():
    source = {"title": "Acme", "style": {"color": "red", "padding": {"top": 4, "left": 8}}, "items": [1, 2]}
    overrides = {"style": {"padding": {"top": 12}}, "items": [3], "unknown": {"x": 1}}

    once = deep_merge(source, overrides)
    twice = deep_merge(once, overrides)

    assert twice == once
    assert once["style"] == {"color": "red", "padding": {"top": 12, "left": 8}}
    assert once["items"] == [3]
    assert once["unknown"] == {"x": 1}


def test_effective_attributes_with_override(catalog, page):
    instance_id = catalog.create_instance("sym-header", page)
    catalog.set_overrides(page, instance_id, {"title": "Acme Labs"})
    instance = page.nodes[instance_id]

    effective = catalog.effective(instance)
    assert effective == {"title": "Acme Labs", "subtitle": "Tools"}
    assert catalog.overridden_fields(instance) == ["title"]
    # Resolving twice gives the same result.
    assert catalog.effective(instance) == effective


def test_override_equal_to_source_is_not_reported():
    assert overridden_fields({"title": "Acme"}, {"title": "Acme"}) == []
    assert overridden_fields({"style": {"a": 1}}, {"style": {"a": 1}}) == []
    assert overridden_fields({"style": {"a": 1}}, {"style": {"a": 2}}) == ["style"]


def test_stray_override_keys_are_returned_and_ignored(catalog, page):
    instance_id = catalog.create_instance("sym-header", page)
    strays = catalog.set_overrides(page, instance_id, {"title": "X", "bogus": 1})

    assert strays == ["bogus"]
    assert "bogus" not in catalog.effective(page.nodes[instance_id])
    status = catalog.sync_status(page.nodes[instance_id])
    assert status.stray_override_keys == ["bogus"]


def test_set_overrides_merge(catalog, page):
    instance_id = catalog.create_instance("sym-header", page)
    catalog.set_overrides(page, instance_id, {"title": "X"})
    catalog.set_overrides(page, instance_id, {"subtitle": "Y"}, merge=True)

    assert page.nodes[instance_id].overrides == {"title": "X", "subtitle": "Y"}


def test_symbol_edit_is_visible_without_propagation(catalog, page):
    instance_id = catalog.create_instance("sym-header", page)
    catalog.update_symbol("sym-header", attributes={"subtitle": "Hardware"})

    assert catalog.effective(page.nodes[instance_id])["subtitle"] == "Hardware"
    nodes, warnings = resolve_document(page, catalog)
    assert warnings == []
    assert nodes[0].attributes["subtitle"] == "Hardware"


def test_sync_status_tracks_versions(catalog, page):
    instance_id = catalog.create_instance("sym-header", page)
    assert catalog.sync_status(page.nodes[instance_id]).is_up_to_date

    catalog.update_symbol("sym-header", name="Site header")
    status = catalog.sync_status(page.nodes[instance_id])
    assert status.resolved
    assert status.version == 2
    assert status.synced_version == 1
    assert not status.is_up_to_date


# --- Instances ---

def test_create_instance_counts_and_places_link(catalog, page):
    instance_id = catalog.create_instance("sym-header", page)
    node = page.nodes[instance_id]

    assert page.root.children == [instance_id]
    assert node.is_symbol_instance
    assert node.symbol_id == "sym-header"
    assert node.children is None
    assert catalog.get("sym-header").instance_count == 1


def test_instance_cannot_take_children(catalog):
    model = DocumentModel(PageDocument.empty("Home"))
    instance_id = catalog.create_instance("sym-header", model)

    with pytest.raises(MutationError):
        model.mutate({"op": "add", "type": "Text", "parentId": instance_id})


def test_create_instance_on_document_model_is_undoable(catalog):
    model = DocumentModel(PageDocument.empty("Home"))
    instance_id = catalog.create_instance("sym-header", model)

    assert model.get(instance_id) is not None
    assert model.undo()
    assert model.get(instance_id) is None


def test_unlink_then_source_edit_leaves_instance_alone(catalog, page):
    instance_id = catalog.create_instance("sym-header", page)
    catalog.set_overrides(page, instance_id, {"title": "Acme Labs"})

    new_ids = catalog.unlink(page, instance_id)
    catalog.update_symbol("sym-header", attributes={"title": "Changed", "subtitle": "Changed"})

    node = page.nodes[instance_id]
    assert not node.is_symbol_instance
    assert node.type == "Hero"
    assert node.attributes == {"title": "Acme Labs", "subtitle": "Tools"}
    assert new_ids == [f"{instance_id}-hdr-cta"]
    assert node.children == new_ids
    assert page.nodes[new_ids[0]].attributes == {"label": "Buy"}
    assert page.nodes[new_ids[0]].parent_id == instance_id


def test_unlink_plain_node_is_refused(catalog, page):
    page.nodes["plain"] = Node(id="plain", type="Text")
    page.root.children.append("plain")

    with pytest.raises(MutationError):
        catalog.unlink(page, "plain")


def test_delete_symbol_unlinks_every_instance(catalog):
    page_a = PageDocument.empty("A", slug="a")
    page_b = PageDocument.empty("B", slug="b")
    first = catalog.create_instance("sym-header", page_a)
    second = catalog.create_instance("sym-header", page_b)
    catalog.set_overrides(page_b, second, {"title": "Acme Labs"})

    unlinked = catalog.delete_symbol("sym-header", [page_a, page_b])

    assert unlinked == 2
    assert catalog.get("sym-header") is None
    assert page_a.nodes[first].attributes == {"title": "Acme", "subtitle": "Tools"}
    assert page_b.nodes[second].attributes == {"title": "Acme Labs", "subtitle": "Tools"}
    for doc in (page_a, page_b):
        assert instances_in(doc) == []
        nodes, warnings = resolve_document(doc, catalog)
        assert warnings == []
        assert nodes[0].kind == "hero"


def test_unknown_symbol_raises_symbol_error(catalog, page):
    with pytest.raises(SymbolError):
        catalog.update_symbol("nope", name="x")
    with pytest.raises(SymbolError):
        catalog.create_instance("nope", page)
    with pytest.raises(KeyError):
        catalog.delete_symbol("nope")


# --- Lifecycle ---

def test_create_symbol_from_node_folds_zones(page):
    catalog = SymbolCatalog()
    model = DocumentModel(page)
    section = model.mutate({"op": "add", "type": "Section", "attributes": {"padding": 24}})
    heading = model.mutate({"op": "add", "type": "Heading", "parentId": section})
    aside = model.mutate({"op": "add", "type": "Image", "parentId": section, "zoneId": "aside"})

    symbol = catalog.create_symbol("Promo", section, model, category="marketing", tags=["promo"])

    assert symbol.source_node.id == section
    assert symbol.source_node.children == [heading, aside]
    assert set(symbol.source_children) == {heading, aside}
    assert symbol.source_children[aside].zone_id is None
    assert symbol.source_children[aside].parent_id == section
    # The page is unchanged.
    assert model.get(section).type == "Section"


def test_create_symbol_from_unknown_node(page):
    with pytest.raises(SymbolError):
        SymbolCatalog().create_symbol("X", "missing", page)


def test_duplicate_symbol_gets_fresh_ids(catalog):
    copy = catalog.duplicate_symbol("sym-header")

    assert copy.id != "sym-header"
    assert copy.name == "Header (copy)"
    assert copy.source_node.id != "hdr"
    child_id = copy.source_node.children[0]
    assert child_id in copy.source_children
    assert copy.source_children[child_id].parent_id == copy.source_node.id
    assert copy.source_node.attributes == {"title": "Acme", "subtitle": "Tools"}


def test_list_and_search(catalog):
    catalog.import_symbols([
        {"id": "sym-footer", "name": "Footer", "category": "layout",
         "sourceNode": {"id": "f", "type": "Footer"}},
        {"id": "sym-cta", "name": "Call to action", "category": "marketing", "description": "Big button",
         "sourceNode": {"id": "c", "type": "Button"}},
    ])

    assert [s.name for s in catalog.list()] == ["Call to action", "Footer", "Header"]
    assert [s.name for s in catalog.list("layout")] == ["Footer", "Header"]
    assert [s.id for s in catalog.search("button")] == ["sym-cta"]
    assert [s.id for s in catalog.search("NAV")] == ["sym-header"]
    assert len(catalog.search("")) == 3


def test_import_without_overwrite_keeps_existing(catalog):
    imported = catalog.import_symbols(
        [{"id": "sym-header", "name": "Other", "sourceNode": {"id": "x", "type": "Text"}}],
        overwrite=False,
    )
    assert imported == 0
    assert catalog.get("sym-header").name == "Header"


def test_export_and_snapshot_round_trip(catalog):
    exported = catalog.export_symbols()
    assert exported[0]["sourceNode"]["attributes"] == {"title": "Acme", "subtitle": "Tools"}

    snapshot = catalog.snapshot()
    catalog.update_symbol("sym-header", attributes={"title": "Later"})

    assert snapshot.get("sym-header").source_node.attributes["title"] == "Acme"
    restored = CatalogSnapshot.from_payload(snapshot.to_payload())
    assert len(restored) == 1
    assert "sym-header" in restored
    assert restored.get("sym-header").source_children["hdr-cta"].attributes == {"label": "Buy"}


def test_observers_are_notified_and_can_unsubscribe(catalog, page):
    events = []
    unsubscribe = catalog.subscribe(lambda event, symbol: events.append((event, symbol.id)))
    catalog.create_instance("sym-header", page)

    catalog.update_symbol("sym-header", attributes={"title": "New"})
    assert catalog.propagate("sym-header", [page]) == 1
    unsubscribe()
    catalog.update_symbol("sym-header", attributes={"title": "Newer"})

    assert events == [("updated", "sym-header"), ("propagated", "sym-header")]


def test_failing_observer_does_not_break_update(catalog):
    def broken(event, symbol):
        raise RuntimeError("boom")

    catalog.subscribe(broken)
    symbol = catalog.update_symbol("sym-header", attributes={"title": "Still works"})
    assert symbol.version == 2


def test_recount_instances(catalog):
    pages = [PageDocument.empty("A"), PageDocument.empty("B")]
    for doc in pages:
        catalog.create_instance("sym-header", doc)
    catalog.create_instance("sym-header", pages[0])
    catalog.get("sym-header").instance_count = 0

    assert catalog.recount_instances(pages) == {"sym-header": 3}
    assert catalog.get("sym-header").instance_count == 3


def test_nested_instance_ids_in_render_tree(catalog, page):
    instance_id = catalog.create_instance("sym-header", page)
    nodes, _ = resolve_document(page, catalog)

    assert nodes[0].id == instance_id
    assert nodes[0].symbol_id == "sym-header"
    assert nodes[0].children[0].id == f"{instance_id}:hdr-cta"
    assert nodes[0].children[0].kind == "button"


def test_self_referencing_symbol_renders_placeholder():
    looping = Symbol(
        id="sym-loop",
        name="Loop",
        source_node=Node(id="l", type="SymbolInstance", attributes={"symbolId": "sym-loop", "overrides": {}}),
    )
    catalog = SymbolCatalog([looping])
    page = PageDocument(root=PageRoot(children=["i"]), nodes={
        "i": Node(id="i", type="SymbolInstance", attributes={"symbolId": "sym-loop"}),
    })

    nodes, warnings = resolve_document(page, catalog)

    assert nodes[0].kind == "missing-symbol"
    assert any("expands into itself" in w for w in warnings)

# src/composer/managers/symbol_manager.py
import copy
import json
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from composer.dom.core import SYMBOL_INSTANCE_KIND
from composer.dom.tree import DocumentModel, child_ids, collect_subtree, insert_node
from composer.errors import MutationError, SymbolError
from composer.model import ROOT_ID, Node, PageDocument, Symbol, SymbolSyncStatus

logger = logging.getLogger(__name__)

SYMBOL_INSTANCE_TYPE = "SymbolInstance"

# Attribute keys of an instance node that belong to the link itself.
INSTANCE_KEYS = ("symbolId", "overrides", "isUnlinked", "syncedVersion")

SymbolObserver = Callable[[str, Symbol], None]
DocumentTarget = Union[PageDocument, DocumentModel]


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


def deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Merges `overrides` onto `base`: nested mappings are merged key by key,
    any other value replaces. Neither input is modified.
    """
    result = copy.deepcopy(dict(base))
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), Mapping):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def stray_keys(source: Mapping[str, Any], overrides: Mapping[str, Any]) -> List[str]:
    """Override keys the source node does not declare."""
    return [key for key in overrides if key not in source]


def overridden_fields(source: Mapping[str, Any], overrides: Mapping[str, Any]) -> List[str]:
    """Keys whose overridden value is structurally different from the source value."""
    changed = []
    for key, value in overrides.items():
        if key not in source:
            continue
        merged = deep_merge({key: source[key]}, {key: value})[key]
        if merged != source[key]:
            changed.append(key)
    return changed


def instances_in(document: PageDocument, symbol_id: Optional[str] = None) -> List[Node]:
    """Linked symbol instances stored in `document`, optionally for one symbol."""
    return [
        node for node in document.nodes.values()
        if node.is_symbol_instance and (symbol_id is None or node.symbol_id == symbol_id)
    ]


class _SymbolResolution:
    """Read-time override resolution shared by the live catalog and its snapshots."""

    def get(self, symbol_id: Optional[str]) -> Optional[Symbol]:
        raise NotImplementedError

    def require(self, symbol_id: Optional[str]) -> Symbol:
        symbol = self.get(symbol_id)
        if symbol is None:
            raise SymbolError(f"Unknown symbol '{symbol_id}'.")
        return symbol

    def __contains__(self, symbol_id: object) -> bool:
        return isinstance(symbol_id, str) and self.get(symbol_id) is not None

    def effective(self, instance: Node) -> Dict[str, Any]:
        """Source attributes with the instance overrides merged on top (stray keys ignored)."""
        symbol = self.require(instance.symbol_id)
        return self._merge(symbol, instance.overrides)

    @staticmethod
    def _merge(symbol: Symbol, overrides: Mapping[str, Any]) -> Dict[str, Any]:
        source = symbol.source_node.attributes
        valid = {k: v for k, v in overrides.items() if k in source}
        return deep_merge(source, valid)

    def effective_children(self, instance: Node) -> Dict[str, Node]:
        symbol = self.require(instance.symbol_id)
        return {key: node.model_copy(deep=True) for key, node in symbol.source_children.items()}

    def overridden_fields(self, instance: Node) -> List[str]:
        symbol = self.require(instance.symbol_id)
        return overridden_fields(symbol.source_node.attributes, instance.overrides)

    def sync_status(self, instance: Node) -> SymbolSyncStatus:
        symbol = self.get(instance.symbol_id)
        synced = instance.attributes.get("syncedVersion")
        if symbol is None:
            return SymbolSyncStatus(
                instance_id=instance.id,
                symbol_id=instance.symbol_id or "",
                resolved=False,
                synced_version=synced,
            )
        source = symbol.source_node.attributes
        return SymbolSyncStatus(
            instance_id=instance.id,
            symbol_id=symbol.id,
            resolved=True,
            version=symbol.version,
            synced_version=synced,
            overridden_fields=overridden_fields(source, instance.overrides),
            stray_override_keys=stray_keys(source, instance.overrides),
        )


class CatalogSnapshot(_SymbolResolution):
    """
    Frozen copy of a catalog taken at the start of a build run. Later catalog
    edits do not show through, so every page of one run resolves against the
    same symbol versions.
    """

    def __init__(self, symbols: Iterable[Symbol] = ()):
        self._symbols = MappingProxyType({s.id: s.model_copy(deep=True) for s in symbols})

    def get(self, symbol_id: Optional[str]) -> Optional[Symbol]:
        if not symbol_id:
            return None
        return self._symbols.get(symbol_id)

    @property
    def symbols(self) -> List[Symbol]:
        return list(self._symbols.values())

    def __len__(self) -> int:
        return len(self._symbols)

    def to_payload(self) -> str:
        return json.dumps([s.model_dump(mode="json", by_alias=True) for s in self._symbols.values()])

    @classmethod
    def from_payload(cls, payload: str) -> "CatalogSnapshot":
        return cls(Symbol.model_validate(item) for item in json.loads(payload))


class SymbolCatalog(_SymbolResolution):
    """
    Per-project table of symbols.

    Instances only store a link plus a sparse override delta; their effective
    attributes and subtree are derived from the catalog every time they are
    read. Editing a symbol therefore needs no propagation step, and
    `propagate` only informs observers.

    Operations that change a page accept either a PageDocument (changed in
    place) or a DocumentModel (changed through a recorded history step).
    """

    def __init__(self, symbols: Optional[Iterable[Symbol]] = None):
        self._symbols: Dict[str, Symbol] = {}
        self._observers: List[SymbolObserver] = []
        self._lock = threading.RLock()
        for symbol in symbols or []:
            self._symbols[symbol.id] = symbol

    def __len__(self) -> int:
        return len(self._symbols)

    # --- READ ---

    def get(self, symbol_id: Optional[str]) -> Optional[Symbol]:
        if not symbol_id:
            return None
        return self._symbols.get(symbol_id)

    def list(self, category: Optional[str] = None) -> List[Symbol]:
        symbols = [s for s in self._symbols.values() if category is None or s.category == category]
        return sorted(symbols, key=lambda s: s.name.lower())

    def search(self, query: str = "", category: Optional[str] = None) -> List[Symbol]:
        """Case-insensitive match on name, description and tags."""
        needle = query.strip().lower()
        results = []
        for symbol in self.list(category):
            haystack = [symbol.name.lower(), symbol.description.lower()] + [t.lower() for t in symbol.tags]
            if not needle or any(needle in item for item in haystack):
                results.append(symbol)
        return results

    def snapshot(self) -> CatalogSnapshot:
        with self._lock:
            return CatalogSnapshot(self._symbols.values())

    # --- SYMBOL LIFECYCLE ---

    def create_symbol(
            self,
            name: str,
            node_id: str,
            document: DocumentTarget,
            description: str = "",
            category: str = "general",
            tags: Optional[List[str]] = None,
    ) -> Symbol:
        """
        Saves the node `node_id` and everything below it as a new symbol.
        Zone content is folded into the owner's child list, so the source is
        one self-contained subtree. The page itself is not changed.
        """
        doc = document.document if isinstance(document, DocumentModel) else document
        if node_id not in doc.nodes:
            raise SymbolError(f"Node '{node_id}' does not exist on page '{doc.label}'.")

        subtree = collect_subtree(doc, node_id)
        members = set(subtree)
        copies: Dict[str, Node] = {}
        for member_id in subtree:
            node = doc.nodes[member_id].model_copy(deep=True)
            if not node.is_symbol_instance:
                node.children = [c for c in child_ids(doc, member_id) if c in members]
            node.zone_id = None
            copies[member_id] = node
        for node in copies.values():
            for child in node.children or []:
                copies[child].parent_id = node.id

        source_node = copies.pop(node_id)
        source_node.parent_id = None
        symbol = Symbol(
            id=_new_id("symbol"),
            name=name,
            description=description,
            category=category,
            tags=list(tags or []),
            source_node=source_node,
            source_children=copies,
        )
        with self._lock:
            self._symbols[symbol.id] = symbol
        logger.info(f"Created symbol '{name}' ({symbol.id}) from node '{node_id}' with {len(copies)} descendants.")
        return symbol

    def update_symbol(
            self,
            symbol_id: str,
            attributes: Optional[Dict[str, Any]] = None,
            source_children: Optional[Dict[str, Any]] = None,
            name: Optional[str] = None,
            description: Optional[str] = None,
            category: Optional[str] = None,
            tags: Optional[List[str]] = None,
            replace_attributes: bool = False,
    ) -> Symbol:
        """
        Edits the source of a symbol and bumps its version. Attributes are
        shallow-merged unless `replace_attributes` is set. Linked instances see
        the change the next time they are resolved.
        """
        with self._lock:
            symbol = self.require(symbol_id)
            if attributes is not None:
                current = {} if replace_attributes else symbol.source_node.attributes
                symbol.source_node.attributes = {**current, **attributes}
            if source_children is not None:
                symbol.source_children = {
                    key: value if isinstance(value, Node) else Node.model_validate(value)
                    for key, value in source_children.items()
                }
            if name is not None:
                symbol.name = name
            if description is not None:
                symbol.description = description
            if category is not None:
                symbol.category = category
            if tags is not None:
                symbol.tags = list(tags)
            symbol.version += 1
            symbol.updated_at = datetime.now(timezone.utc)

        logger.debug(f"Symbol '{symbol_id}' updated to version {symbol.version}.")
        self._notify("updated", symbol)
        return symbol

    def duplicate_symbol(self, symbol_id: str, name: Optional[str] = None) -> Symbol:
        """Copies a symbol under a new id; every source node gets a fresh id."""
        original = self.require(symbol_id)
        id_map = {old: _new_id("node") for old in original.source_children}
        id_map[original.source_node.id] = _new_id("node")

        def remap(node: Node) -> Node:
            clone = node.model_copy(deep=True)
            clone.id = id_map[node.id]
            if clone.children is not None:
                clone.children = [id_map.get(c, c) for c in clone.children]
            if clone.parent_id is not None:
                clone.parent_id = id_map.get(clone.parent_id, clone.parent_id)
            return clone

        duplicate = Symbol(
            id=_new_id("symbol"),
            name=name or f"{original.name} (copy)",
            description=original.description,
            category=original.category,
            tags=list(original.tags),
            source_node=remap(original.source_node),
            source_children={id_map[k]: remap(n) for k, n in original.source_children.items()},
        )
        with self._lock:
            self._symbols[duplicate.id] = duplicate
        return duplicate

    def delete_symbol(self, symbol_id: str, documents: Iterable[DocumentTarget] = ()) -> int:
        """
        Removes a symbol after unlinking every instance of it in `documents`,
        so those pages keep rendering the last known content. Returns the
        number of unlinked instances.
        """
        symbol = self.require(symbol_id)
        unlinked = 0
        for document in documents:
            doc = document.document if isinstance(document, DocumentModel) else document
            for instance in instances_in(doc, symbol_id):
                self.unlink(document, instance.id, symbol=symbol)
                unlinked += 1

        with self._lock:
            self._symbols.pop(symbol_id, None)
        logger.info(f"Deleted symbol '{symbol.name}' ({symbol_id}); {unlinked} instance(s) unlinked.")
        self._notify("deleted", symbol)
        return unlinked

    # --- INSTANCES ---

    def create_instance(
            self,
            symbol_id: str,
            document: DocumentTarget,
            parent_id: str = ROOT_ID,
            index: Optional[int] = None,
            zone_id: Optional[str] = None,
    ) -> str:
        """Places a linked instance of the symbol on the page and returns its node id."""
        symbol = self.require(symbol_id)
        instance = Node(
            id=_new_id("instance"),
            type=SYMBOL_INSTANCE_TYPE,
            attributes={"symbolId": symbol.id, "overrides": {}, "syncedVersion": symbol.version},
        )
        with self._editing(document, f"instance {symbol.id}") as doc:
            insert_node(doc, instance, parent_id, index, zone_id)
        with self._lock:
            symbol.instance_count += 1
        return instance.id

    def set_overrides(
            self,
            document: DocumentTarget,
            instance_id: str,
            overrides: Dict[str, Any],
            merge: bool = False,
    ) -> List[str]:
        """
        Stores the override delta of an instance. Keys the source does not
        declare are kept but ignored when resolving; they are returned and
        logged as warnings.
        """
        with self._editing(document, f"overrides {instance_id}") as doc:
            instance = self._require_instance(doc, instance_id)
            symbol = self.get(instance.symbol_id)
            current = instance.overrides if merge else {}
            instance.attributes["overrides"] = {**current, **copy.deepcopy(overrides)}

        strays = stray_keys(symbol.source_node.attributes, overrides) if symbol else []
        if strays:
            logger.warning(
                f"Instance '{instance_id}' overrides keys not present on symbol "
                f"'{instance.symbol_id}': {', '.join(strays)} (ignored)."
            )
        return strays

    def unlink(self, document: DocumentTarget, instance_id: str, symbol: Optional[Symbol] = None) -> List[str]:
        """
        Turns a linked instance into plain nodes: the effective attributes are
        baked into the instance node, which takes the source type, and the
        source subtree is cloned in with ids derived from the instance id.
        Later edits to the symbol no longer affect it. Returns the ids of the
        cloned descendants.
        """
        with self._editing(document, f"unlink {instance_id}") as doc:
            instance = self._require_instance(doc, instance_id)
            symbol = symbol or self.require(instance.symbol_id)
            source = symbol.source_node

            id_map: Dict[str, str] = {source.id: instance.id}
            for old_id in symbol.source_children:
                new_id = f"{instance.id}-{old_id}"
                while new_id in doc.nodes:
                    new_id = f"{new_id}-1"
                id_map[old_id] = new_id

            for old_id, child in symbol.source_children.items():
                clone = child.model_copy(deep=True)
                clone.id = id_map[old_id]
                if clone.children is not None:
                    clone.children = [id_map.get(c, c) for c in clone.children]
                clone.parent_id = id_map.get(child.parent_id or source.id, instance.id)
                clone.zone_id = None
                doc.nodes[clone.id] = clone

            instance.attributes = self._merge(symbol, instance.overrides)
            instance.type = source.type
            instance.children = [id_map.get(c, c) for c in source.children or []]
            if instance.states is None and source.states is not None:
                instance.states = copy.deepcopy(source.states)
            if instance.transition is None and source.transition is not None:
                instance.transition = source.transition.model_copy()

        with self._lock:
            if symbol.id in self._symbols:
                symbol.instance_count = max(0, symbol.instance_count - 1)
        logger.info(f"Unlinked instance '{instance_id}' from symbol '{symbol.id}'.")
        return [id_map[k] for k in symbol.source_children]

    def propagate(self, symbol_id: str, documents: Iterable[PageDocument] = ()) -> int:
        """
        Announces a symbol edit. Nothing is rewritten: observers are called and
        the instance count is refreshed. Returns the number of linked instances.
        """
        symbol = self.require(symbol_id)
        docs = [d.document if isinstance(d, DocumentModel) else d for d in documents]
        count = sum(len(instances_in(doc, symbol_id)) for doc in docs)
        with self._lock:
            symbol.instance_count = count
        self._notify("propagated", symbol)
        return count

    def recount_instances(self, documents: Iterable[DocumentTarget]) -> Dict[str, int]:
        counts = {symbol_id: 0 for symbol_id in self._symbols}
        for document in documents:
            doc = document.document if isinstance(document, DocumentModel) else document
            for instance in instances_in(doc):
                if instance.symbol_id in counts:
                    counts[instance.symbol_id] += 1
        with self._lock:
            for symbol_id, count in counts.items():
                self._symbols[symbol_id].instance_count = count
        return counts

    # --- OBSERVERS ---

    def subscribe(self, callback: SymbolObserver) -> Callable[[], None]:
        """Registers `callback(event, symbol)`; returns a function that unsubscribes it."""
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _notify(self, event: str, symbol: Symbol) -> None:
        for callback in list(self._observers):
            try:
                callback(event, symbol)
            except Exception as e:
                logger.error(f"Symbol observer failed on '{event}' for '{symbol.id}': {e}", exc_info=True)

    # --- IMPORT / EXPORT ---

    def import_symbols(self, data: Iterable[Union[Symbol, Dict[str, Any]]], overwrite: bool = True) -> int:
        imported = 0
        with self._lock:
            for item in data:
                symbol = item if isinstance(item, Symbol) else Symbol.model_validate(item)
                if symbol.id in self._symbols and not overwrite:
                    logger.debug(f"Skipping existing symbol '{symbol.id}'.")
                    continue
                self._symbols[symbol.id] = symbol
                imported += 1
        return imported

    def export_symbols(self, symbol_ids: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
        wanted = set(symbol_ids) if symbol_ids is not None else None
        return [
            s.model_dump(mode="json", by_alias=True)
            for s in self._symbols.values()
            if wanted is None or s.id in wanted
        ]

    # --- HELPERS ---

    @staticmethod
    def _require_instance(doc: PageDocument, instance_id: str) -> Node:
        node = doc.nodes.get(instance_id)
        if node is None:
            raise MutationError(f"Node '{instance_id}' does not exist on page '{doc.label}'.")
        if node.kind != SYMBOL_INSTANCE_KIND:
            raise MutationError(f"Node '{instance_id}' is not a symbol instance.")
        return node

    @contextmanager
    def _editing(self, document: DocumentTarget, action: str) -> Iterator[PageDocument]:
        if isinstance(document, DocumentModel):
            work = document.snapshot()
            yield work
            document.replace(work, action)
        else:
            yield document

# src/composer/services/resolution_service.py
import copy
import logging
from typing import Callable, List, Mapping, Optional, Set, Tuple

from composer.dom.core import MISSING_SYMBOL_KIND, RenderNode
from composer.dom.registry import BlockRegistry
from composer.dom.tree import child_ids
from composer.model import ROOT_ID, Node, PageDocument

logger = logging.getLogger(__name__)

ChildLookup = Callable[[Node], List[Node]]


class DocumentResolver:
    """
    Turns a page document into the render tree the exporter works on.

    Walks from the root through plain children and zones. Hidden nodes and
    everything below them are skipped, orphans are never visited. Symbol
    instances are expanded against the catalog (or catalog snapshot): the
    instance node takes the effective attributes and the source type, the
    source descendants are copied in with ids scoped by the instance id.
    An instance that cannot be resolved, or that would expand into itself,
    becomes a missing-symbol node and a warning.
    """

    def __init__(self, document: PageDocument, catalog=None):
        self.document = document
        self.catalog = catalog
        self.warnings: List[str] = []
        self._emitted: Set[str] = set()

    def resolve(self) -> List[RenderNode]:
        if self.document.root is None:
            return []
        out = []
        for node in self._document_children_ids(ROOT_ID):
            rendered = self._emit(node, node.id, None, self._document_children, ())
            if rendered is not None:
                out.append(rendered)
        return out

    # --- Child lookups ---

    def _document_children_ids(self, node_id: str) -> List[Node]:
        return [self.document.nodes[c] for c in child_ids(self.document, node_id) if c in self.document.nodes]

    def _document_children(self, node: Node) -> List[Node]:
        return self._document_children_ids(node.id)

    @staticmethod
    def _source_children(lookup: Mapping[str, Node]) -> ChildLookup:
        def children_of(node: Node) -> List[Node]:
            return [lookup[c] for c in node.children or [] if c in lookup]
        return children_of

    # --- Emission ---

    def _emit(
            self,
            node: Node,
            render_id: str,
            scope: Optional[str],
            children_of: ChildLookup,
            stack: Tuple[str, ...],
    ) -> Optional[RenderNode]:
        if node.hidden or render_id in self._emitted:
            return None
        self._emitted.add(render_id)

        if node.is_symbol_instance:
            return self._expand_instance(node, render_id, stack)

        rendered = RenderNode(
            id=render_id,
            source_id=node.id,
            kind=BlockRegistry.canonical_kind(node.type),
            type=node.type,
            attributes=copy.deepcopy(node.attributes),
            states=copy.deepcopy(node.states),
            transition=node.transition.model_dump(by_alias=True) if node.transition else None,
        )
        for child in children_of(node):
            child_id = child.id if scope is None else f"{scope}:{child.id}"
            resolved = self._emit(child, child_id, scope, children_of, stack)
            if resolved is not None:
                rendered.children.append(resolved)
        return rendered

    def _missing(self, node: Node, render_id: str, reason: str) -> RenderNode:
        message = (
            f"Page '{self.document.label}': node '{node.id}' {reason} "
            f"'{node.symbol_id}'; rendered a placeholder."
        )
        self.warnings.append(message)
        logger.warning(message)
        return RenderNode(
            id=render_id,
            source_id=node.id,
            kind=MISSING_SYMBOL_KIND,
            type="MissingSymbol",
            attributes={"reason": reason},
            symbol_id=node.symbol_id,
        )

    def _expand_instance(self, node: Node, render_id: str, stack: Tuple[str, ...]) -> RenderNode:
        symbol_id = node.symbol_id
        if symbol_id in stack:
            return self._missing(node, render_id, "expands into itself through symbol")
        symbol = self.catalog.get(symbol_id) if self.catalog is not None else None
        if symbol is None:
            return self._missing(node, render_id, "references unknown symbol")

        attributes = self.catalog.effective(node)
        source = symbol.source_node
        stack = stack + (symbol_id,)

        if source.is_symbol_instance:
            # A symbol whose source is itself an instance of another symbol.
            inner = Node(id=node.id, type=source.type, attributes=attributes,
                         states=node.states, transition=node.transition)
            return self._expand_instance(inner, render_id, stack)

        transition = node.transition or source.transition
        rendered = RenderNode(
            id=render_id,
            source_id=node.id,
            kind=BlockRegistry.canonical_kind(source.type),
            type=source.type,
            attributes=attributes,
            states=copy.deepcopy(node.states or source.states),
            transition=transition.model_dump(by_alias=True) if transition else None,
            symbol_id=symbol_id,
        )
        lookup = symbol.source_children
        children_of = self._source_children(lookup)
        for child_id in source.children or []:
            child = lookup.get(child_id)
            if child is None:
                self.warnings.append(
                    f"Page '{self.document.label}': symbol '{symbol_id}' lists missing source node '{child_id}'."
                )
                continue
            resolved = self._emit(child, f"{render_id}:{child_id}", render_id, children_of, stack)
            if resolved is not None:
                rendered.children.append(resolved)
        return rendered


def resolve_document(document: PageDocument, catalog=None) -> Tuple[List[RenderNode], List[str]]:
    """Returns the top-level render nodes in document order plus resolution warnings."""
    resolver = DocumentResolver(document, catalog)
    nodes = resolver.resolve()
    return nodes, resolver.warnings

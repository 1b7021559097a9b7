# src/composer/dom/tree.py
import logging
import threading
import uuid
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from composer.errors import MutationError
from composer.managers.history_manager import DEFAULT_HISTORY_LIMIT, HistoryManager
from composer.model import (
    PATCH_ADAPTER,
    ROOT_ID,
    AddNodePatch,
    DuplicateNodePatch,
    MoveNodePatch,
    Node,
    PageDocument,
    RemoveNodePatch,
    RootProps,
    UpdateNodePatch,
    UpdateRootPatch,
    ValidationReport,
)

logger = logging.getLogger(__name__)


def generate_node_id() -> str:
    return f"node-{uuid.uuid4().hex[:12]}"


# --- Tree helpers over plain documents ---

def zone_owner(zone_id: str) -> str:
    """Zone ids have the form '<ownerNodeId>:<zoneName>'."""
    return zone_id.split(":", 1)[0]


def owned_zones(doc: PageDocument, owner_id: str) -> List[str]:
    return [zone_id for zone_id in doc.zones if zone_owner(zone_id) == owner_id]


def child_ids(doc: PageDocument, node_id: str) -> List[str]:
    """
    Ordered child ids of a node: its plain children first, then the content of
    the zones it owns (zones in key order). Ids are returned even when they do
    not resolve; the validator reports those.
    """
    out: List[str] = []
    if node_id == ROOT_ID:
        if doc.root is not None:
            out.extend(doc.root.children)
    else:
        node = doc.nodes.get(node_id)
        if node is None:
            return []
        out.extend(node.children or [])
    for zone_id in owned_zones(doc, node_id):
        out.extend(doc.zones[zone_id])
    return out


def iter_reference_lists(doc: PageDocument) -> Iterator[tuple]:
    """Yields (owner label, id list) for every list that references nodes."""
    if doc.root is not None:
        yield "root.children", doc.root.children
    for node in doc.nodes.values():
        if node.children:
            yield f"node '{node.id}'.children", node.children
    for zone_id, ids in doc.zones.items():
        yield f"zone '{zone_id}'", ids


def find_container(doc: PageDocument, node_id: str) -> Optional[List[str]]:
    """The id list that currently holds `node_id`, or None when unreferenced."""
    for _, ids in iter_reference_lists(doc):
        if node_id in ids:
            return ids
    return None


def find_parent(doc: PageDocument, node_id: str) -> Optional[str]:
    """Parent id derived from the reference lists (authoritative over `parentId`)."""
    if doc.root is not None and node_id in doc.root.children:
        return ROOT_ID
    for node in doc.nodes.values():
        if node.children and node_id in node.children:
            return node.id
    for zone_id, ids in doc.zones.items():
        if node_id in ids:
            return zone_owner(zone_id)
    return None


def collect_subtree(doc: PageDocument, node_id: str) -> List[str]:
    """`node_id` followed by every resolvable descendant, pre-order, cycle safe."""
    seen: List[str] = []
    stack = [node_id]
    visited = set()
    while stack:
        current = stack.pop()
        if current in visited or current not in doc.nodes:
            continue
        visited.add(current)
        seen.append(current)
        stack.extend(reversed(child_ids(doc, current)))
    return seen


def reachable_ids(doc: PageDocument) -> set:
    """Ids reachable from the root through children and zones."""
    reached = set()
    if doc.root is None:
        return reached
    stack = list(child_ids(doc, ROOT_ID))
    while stack:
        current = stack.pop()
        if current in reached or current not in doc.nodes:
            continue
        reached.add(current)
        stack.extend(child_ids(doc, current))
    return reached


def _insert(ids: List[str], node_id: str, index: Optional[int]) -> None:
    if index is not None and 0 <= index <= len(ids):
        ids.insert(index, node_id)
    else:
        ids.append(node_id)


def zone_key(parent_id: str, zone_id: Optional[str]) -> Optional[str]:
    """Accepts a bare zone name or a full '<owner>:<name>' key."""
    if not zone_id:
        return None
    return zone_id if ":" in zone_id else f"{parent_id}:{zone_id}"


def target_list(doc: PageDocument, parent_id: str, zone_id: Optional[str] = None) -> List[str]:
    """
    The id list new children of `parent_id` go into, created on demand.
    Linked symbol instances never take stored children.
    """
    if parent_id != ROOT_ID:
        parent = doc.nodes.get(parent_id)
        if parent is None:
            raise MutationError(f"Parent '{parent_id}' does not exist.")
        if parent.is_symbol_instance:
            raise MutationError(
                f"Node '{parent_id}' is a linked symbol instance; its children come from the symbol."
            )
    elif doc.root is None:
        raise MutationError("Document has no root.")

    key = zone_key(parent_id, zone_id)
    if key:
        if zone_owner(key) != parent_id:
            raise MutationError(f"Zone '{key}' does not belong to '{parent_id}'.")
        return doc.zones.setdefault(key, [])
    if parent_id == ROOT_ID:
        return doc.root.children
    parent = doc.nodes[parent_id]
    if parent.children is None:
        parent.children = []
    return parent.children


def insert_node(
        doc: PageDocument,
        node: Node,
        parent_id: str = ROOT_ID,
        index: Optional[int] = None,
        zone_id: Optional[str] = None,
) -> None:
    """Registers `node` in `doc` and links it under `parent_id` (in place)."""
    if node.id in doc.nodes or node.id == ROOT_ID:
        raise MutationError(f"Node id '{node.id}' is already in use.")
    target = target_list(doc, parent_id, zone_id)
    node.parent_id = None if parent_id == ROOT_ID else parent_id
    node.zone_id = zone_key(parent_id, zone_id)
    doc.nodes[node.id] = node
    _insert(target, node.id, index)


# --- Document model ---

PatchInput = Union[AddNodePatch, UpdateNodePatch, MoveNodePatch, RemoveNodePatch,
                   DuplicateNodePatch, UpdateRootPatch, Dict[str, Any]]


class DocumentModel:
    """
    Owns one PageDocument and applies mutations to it, one at a time.

    Each patch is applied to a working copy; the copy replaces the document
    only when the whole patch succeeded, then a snapshot is recorded in the
    history ring buffer.
    """

    def __init__(
            self,
            document: Optional[PageDocument] = None,
            history_limit: int = DEFAULT_HISTORY_LIMIT,
            id_factory: Optional[Callable[[], str]] = None,
    ):
        self._doc = document if document is not None else PageDocument.empty()
        self._lock = threading.RLock()
        self._id_factory = id_factory or generate_node_id
        self.history = HistoryManager(history_limit)
        self.history.record(self._doc, "load")

    @property
    def document(self) -> PageDocument:
        return self._doc

    # --- Reads ---

    def get(self, node_id: str) -> Optional[Node]:
        return self._doc.nodes.get(node_id)

    def children(self, node_id: str = ROOT_ID) -> List[str]:
        return child_ids(self._doc, node_id)

    def ancestors(self, node_id: str) -> List[str]:
        """Ancestor ids, nearest first, ending with 'root' when the node is attached."""
        chain: List[str] = []
        current = find_parent(self._doc, node_id)
        while current is not None and current not in chain:
            chain.append(current)
            if current == ROOT_ID:
                break
            current = find_parent(self._doc, current)
        return chain

    def validate(self, catalog=None) -> ValidationReport:
        from composer.services.validation_service import validate_document
        return validate_document(self._doc, catalog)

    # --- History ---

    def undo(self) -> bool:
        with self._lock:
            restored = self.history.undo()
            if restored is None:
                return False
            self._doc = restored
            return True

    def redo(self) -> bool:
        with self._lock:
            restored = self.history.redo()
            if restored is None:
                return False
            self._doc = restored
            return True

    def jump(self, index: int) -> None:
        with self._lock:
            self._doc = self.history.jump(index)

    def snapshot(self) -> PageDocument:
        """Detached copy of the current document."""
        return self._doc.clone()

    def replace(self, document: PageDocument, action: str = "replace") -> None:
        """Swaps in a whole document (e.g. after a catalog unlink) and records it."""
        with self._lock:
            self._doc = document
            self.history.record(document, action)

    # --- Mutations ---

    def mutate(self, patch: PatchInput) -> Optional[str]:
        """
        Applies one patch. Returns the id of the created node for 'add' and
        'duplicate', None otherwise. Raises MutationError when the patch is
        invalid; the document is then left untouched.
        """
        if isinstance(patch, dict):
            try:
                patch = PATCH_ADAPTER.validate_python(patch)
            except ValueError as e:
                raise MutationError(f"Invalid patch: {e}") from e

        handlers = {
            "add": self._apply_add,
            "update": self._apply_update,
            "move": self._apply_move,
            "remove": self._apply_remove,
            "duplicate": self._apply_duplicate,
            "update_root": self._apply_update_root,
        }

        with self._lock:
            work = self._doc.clone()
            result = handlers[patch.op](work, patch)
            self._doc = work
            target = getattr(patch, "node_id", None) or result or ROOT_ID
            self.history.record(work, f"{patch.op} {target}")
            logger.debug("Applied '%s' on %s", patch.op, target)
            return result

    @staticmethod
    def _require(doc: PageDocument, node_id: str) -> Node:
        node = doc.nodes.get(node_id)
        if node is None:
            raise MutationError(f"Node '{node_id}' does not exist.")
        return node

    def _apply_add(self, doc: PageDocument, patch: AddNodePatch) -> str:
        node_id = patch.node_id or self._id_factory()
        node = Node(id=node_id, type=patch.type, attributes=dict(patch.attributes))
        if not node.is_symbol_instance:
            node.children = []
        insert_node(doc, node, patch.parent_id, patch.index, patch.zone_id)
        return node_id

    def _apply_update(self, doc: PageDocument, patch: UpdateNodePatch) -> None:
        node = self._require(doc, patch.node_id)
        unlocking = patch.locked is False
        if node.locked and patch.attributes and not unlocking:
            raise MutationError(f"Node '{node.id}' is locked.")
        if patch.attributes:
            node.attributes = {**node.attributes, **patch.attributes}
        if patch.locked is not None:
            node.locked = patch.locked
        if patch.hidden is not None:
            node.hidden = patch.hidden

    def _apply_move(self, doc: PageDocument, patch: MoveNodePatch) -> None:
        node = self._require(doc, patch.node_id)
        if patch.parent_id != ROOT_ID and patch.parent_id in collect_subtree(doc, node.id):
            raise MutationError(f"Cannot move '{node.id}' into itself or one of its descendants.")

        target = target_list(doc, patch.parent_id, patch.zone_id)
        current = find_container(doc, node.id)
        if current is not None:
            current.remove(node.id)
        _insert(target, node.id, patch.index)
        node.parent_id = None if patch.parent_id == ROOT_ID else patch.parent_id
        node.zone_id = zone_key(patch.parent_id, patch.zone_id)

    def _apply_remove(self, doc: PageDocument, patch: RemoveNodePatch) -> None:
        self._require(doc, patch.node_id)
        doomed = set(collect_subtree(doc, patch.node_id))
        for node_id in doomed:
            for zone_id in owned_zones(doc, node_id):
                del doc.zones[zone_id]
            doc.nodes.pop(node_id, None)
        # Every surviving list drops the removed ids, not just the first container.
        for _, ids in iter_reference_lists(doc):
            ids[:] = [i for i in ids if i not in doomed]

    def _apply_duplicate(self, doc: PageDocument, patch: DuplicateNodePatch) -> str:
        original = self._require(doc, patch.node_id)
        subtree = collect_subtree(doc, original.id)
        id_map = {old: self._id_factory() for old in subtree}

        for old_id in subtree:
            source = doc.nodes[old_id]
            clone = source.model_copy(deep=True)
            clone.id = id_map[old_id]
            if clone.children is not None:
                clone.children = [id_map.get(c, c) for c in clone.children]
            if old_id != original.id and clone.parent_id in id_map:
                clone.parent_id = id_map[clone.parent_id]
            if clone.zone_id and old_id != original.id:
                owner = zone_owner(clone.zone_id)
                clone.zone_id = clone.zone_id.replace(owner, id_map.get(owner, owner), 1)
            doc.nodes[clone.id] = clone

            for zone_id in owned_zones(doc, old_id):
                new_key = f"{clone.id}:{zone_id.split(':', 1)[1]}"
                doc.zones[new_key] = [id_map.get(c, c) for c in doc.zones[zone_id]]

        container = find_container(doc, original.id)
        new_id = id_map[original.id]
        if container is not None:
            container.insert(container.index(original.id) + 1, new_id)
        return new_id

    def _apply_update_root(self, doc: PageDocument, patch: UpdateRootPatch) -> None:
        if doc.root is None:
            raise MutationError("Document has no root.")
        current = doc.root.props.model_dump(by_alias=True, exclude_none=True)
        doc.root.props = RootProps.model_validate({**current, **patch.props})

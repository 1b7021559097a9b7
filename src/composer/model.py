# src/composer/model.py (Composition Layer)
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from composer.dom.core import SYMBOL_INSTANCE_KIND, normalize_kind

logger = logging.getLogger(__name__)

ROOT_ID = "root"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python, both accepted on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Page tree ---

class TransitionSettings(CamelModel):
    property_name: str = Field(default="all", alias="property")
    duration: int = 200
    easing: str = "ease"
    delay: int = 0


class Node(CamelModel):
    """One placed element of a page."""
    id: str
    type: str
    attributes: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("attributes", "props"),
    )
    children: Optional[List[str]] = None
    parent_id: Optional[str] = None
    zone_id: Optional[str] = None
    locked: bool = False
    hidden: bool = False
    states: Optional[Dict[str, Dict[str, Any]]] = None
    transition: Optional[TransitionSettings] = None

    @property
    def kind(self) -> str:
        return normalize_kind(self.type)

    @property
    def is_symbol_instance(self) -> bool:
        return self.kind == SYMBOL_INSTANCE_KIND

    @property
    def symbol_id(self) -> Optional[str]:
        return self.attributes.get("symbolId") if self.is_symbol_instance else None

    @property
    def overrides(self) -> Dict[str, Any]:
        value = self.attributes.get("overrides") if self.is_symbol_instance else None
        return value if isinstance(value, dict) else {}


class RootStyles(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    background_color: Optional[str] = None
    background_image: Optional[str] = None
    font_family: Optional[str] = None
    font_size: Optional[str] = None
    color: Optional[str] = None
    max_width: Optional[str] = None
    padding: Optional[str] = None


class RootProps(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    title: str = ""
    description: str = ""
    styles: Optional[RootStyles] = None


class PageRoot(CamelModel):
    id: Literal["root"] = ROOT_ID
    type: Literal["Root"] = "Root"
    props: RootProps = Field(default_factory=RootProps)
    children: List[str] = Field(default_factory=list)


class PageDocument(CamelModel):
    """
    Canonical representation of one page.

    `nodes` maps node id to Node; `root.children` lists the top-level ids.
    `zones` holds named insertion points keyed '<ownerNodeId>:<zoneName>'.
    `root` may be missing in loaded data; the validator reports that as fatal.
    """
    id: Optional[str] = None
    slug: Optional[str] = None
    version: str = "1.0"
    root: Optional[PageRoot] = None
    nodes: Dict[str, Node] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("nodes", "components"),
    )
    zones: Dict[str, List[str]] = Field(default_factory=dict)

    @classmethod
    def empty(cls, title: str = "", **kwargs: Any) -> "PageDocument":
        return cls(root=PageRoot(props=RootProps(title=title)), **kwargs)

    @property
    def label(self) -> str:
        """Human readable page reference for diagnostics."""
        return self.slug or self.id or (self.root.props.title if self.root else "") or "<untitled>"

    def clone(self) -> "PageDocument":
        return self.model_copy(deep=True)

    def to_payload(self) -> str:
        return self.model_dump_json(by_alias=True)


# --- Symbols ---

class Symbol(CamelModel):
    """A named, reusable node subtree scoped to a project."""
    id: str
    name: str
    description: str = ""
    category: str = "general"
    tags: List[str] = Field(default_factory=list)
    source_node: Node
    source_children: Dict[str, Node] = Field(default_factory=dict)
    instance_count: int = 0
    version: int = 1
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class SymbolSyncStatus(CamelModel):
    instance_id: str
    symbol_id: str
    resolved: bool
    version: Optional[int] = None
    synced_version: Optional[int] = None
    overridden_fields: List[str] = Field(default_factory=list)
    stray_override_keys: List[str] = Field(default_factory=list)

    @property
    def has_overrides(self) -> bool:
        return bool(self.overridden_fields)

    @property
    def is_up_to_date(self) -> bool:
        return self.resolved and self.synced_version == self.version


# --- Validation ---

class ValidationReport(BaseModel):
    """Structured result of a document check: `valid` is False as soon as one error exists."""
    valid: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.valid = False

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)


# --- History ---

class HistoryEntry(BaseModel):
    """A full document snapshot taken after one mutation."""
    action: str = Field(description="Short description of the mutation that produced this state.")
    timestamp: datetime = Field(default_factory=_utcnow)
    data: PageDocument


# --- Mutations ---

class AddNodePatch(CamelModel):
    op: Literal["add"] = "add"
    type: str
    attributes: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("attributes", "props"),
    )
    parent_id: str = ROOT_ID
    index: Optional[int] = None
    zone_id: Optional[str] = None
    node_id: Optional[str] = None


class UpdateNodePatch(CamelModel):
    op: Literal["update"] = "update"
    node_id: str
    attributes: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("attributes", "props"),
    )
    locked: Optional[bool] = None
    hidden: Optional[bool] = None


class MoveNodePatch(CamelModel):
    op: Literal["move"] = "move"
    node_id: str
    parent_id: str = ROOT_ID
    index: Optional[int] = None
    zone_id: Optional[str] = None


class RemoveNodePatch(CamelModel):
    op: Literal["remove"] = "remove"
    node_id: str


class DuplicateNodePatch(CamelModel):
    op: Literal["duplicate"] = "duplicate"
    node_id: str


class UpdateRootPatch(CamelModel):
    op: Literal["update_root"] = "update_root"
    props: Dict[str, Any] = Field(default_factory=dict)


Patch = Annotated[
    Union[AddNodePatch, UpdateNodePatch, MoveNodePatch, RemoveNodePatch, DuplicateNodePatch, UpdateRootPatch],
    Field(discriminator="op"),
]

PATCH_ADAPTER: TypeAdapter = TypeAdapter(Patch)

# src/composer/dom/registry.py
import importlib
import pkgutil
import logging
from typing import Dict, List, Optional

from .core import BlockDefinition, RenderContext, RenderNode, HEAVY_KINDS, normalize_kind

logger = logging.getLogger(__name__)


def render_unknown(node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
    """Default renderer: unknown kinds become an explanatory comment, never an exception."""
    kind = (node.type or "").replace("--", "- -")
    node_id = node.id.replace("--", "- -")
    return f"<!-- pagesmith: no renderer for block kind '{kind}' (node {node_id}) -->{inner_html}"


class BlockRegistry:
    """
    Central registry of block kinds.

    Dynamically discovers BlockDefinition objects from the modules of the
    'composer.dom.blocks' package. A module exposes either a single
    `DEFINITION` or a list of them as `DEFINITIONS`.
    """

    _definitions: Dict[str, BlockDefinition] = {}
    _aliases: Dict[str, str] = {}
    _loaded: bool = False

    @classmethod
    def discover(cls) -> None:
        """Imports every module of the blocks package and registers its definitions."""
        if cls._loaded:
            return

        try:
            import composer.dom.blocks as blocks_pkg

            for _, name, _ in pkgutil.iter_modules(blocks_pkg.__path__):
                full_name = f"composer.dom.blocks.{name}"
                try:
                    module = importlib.import_module(full_name)
                except Exception as e:
                    logger.error(f"Error loading block module {name}: {e}", exc_info=True)
                    continue

                found: List[BlockDefinition] = []
                if isinstance(getattr(module, "DEFINITION", None), BlockDefinition):
                    found.append(module.DEFINITION)
                for defn in getattr(module, "DEFINITIONS", []) or []:
                    if isinstance(defn, BlockDefinition):
                        found.append(defn)

                for defn in found:
                    cls.register(defn)

            cls._loaded = True
        except ImportError as e:
            logger.error(f"Could not find blocks package: {e}")

    @classmethod
    def register(cls, defn: BlockDefinition) -> None:
        if defn.kind in cls._definitions:
            logger.warning("Block kind '%s' registered twice; keeping the latest definition.", defn.kind)
        cls._definitions[defn.kind] = defn
        for alias in defn.aliases:
            cls._aliases[alias] = defn.kind
        logger.debug(f"Block kind loaded: {defn.kind}")

    @classmethod
    def get(cls, kind: str) -> Optional[BlockDefinition]:
        cls.discover()
        key = normalize_kind(kind)
        key = cls._aliases.get(key, key)
        return cls._definitions.get(key)

    @classmethod
    def canonical_kind(cls, kind: str) -> str:
        """Normalized kind with aliases folded onto their registered kind."""
        cls.discover()
        key = normalize_kind(kind)
        return cls._aliases.get(key, key)

    @classmethod
    def is_known(cls, kind: str) -> bool:
        return cls.get(kind) is not None

    @classmethod
    def is_heavy(cls, kind: str) -> bool:
        return cls.canonical_kind(kind) in HEAVY_KINDS

    @classmethod
    def render(cls, node: RenderNode, inner_html: str, ctx: RenderContext) -> str:
        defn = cls.get(node.kind)
        if defn is None:
            return render_unknown(node, inner_html, ctx)
        return defn.renderer(node, inner_html, ctx)

    @classmethod
    def base_css(cls, kind: str) -> str:
        defn = cls.get(kind)
        return defn.base_css if defn else ""

    @classmethod
    def all_kinds(cls) -> List[str]:
        cls.discover()
        return sorted(cls._definitions.keys())



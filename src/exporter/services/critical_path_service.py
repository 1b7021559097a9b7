# src/exporter/services/critical_path_service.py
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from composer.dom.core import RenderNode
from composer.model import PageDocument
from exporter.model import ExportSettings
from exporter.services.css_service import StyleSheetBuilder, minify_css

logger = logging.getLogger(__name__)


@dataclass
class CriticalPathPlan:
    above_fold: List[RenderNode] = field(default_factory=list)
    deferred: List[RenderNode] = field(default_factory=list)
    lazy_node_ids: List[str] = field(default_factory=list)
    eager_node_ids: Set[str] = field(default_factory=set)
    critical_rules: List[str] = field(default_factory=list)
    deferred_rules: List[str] = field(default_factory=list)
    critical_css: str = ""
    deferred_css: str = ""
    warnings: List[str] = field(default_factory=list)


def analyze_critical_path(
        nodes: List[RenderNode],
        document: PageDocument,
        settings: Optional[ExportSettings] = None,
) -> CriticalPathPlan:
    """
    Splits the top-level nodes at K (`above_fold_count`).

    The first K subtrees are rendered eagerly and their styles make up the
    inline critical CSS. The deferred stylesheet always holds every rule of
    the page, so it works on its own and contains the critical rules too.
    Heavy blocks from position K on are marked for lazy hydration.
    """
    settings = settings or ExportSettings()
    k = settings.above_fold_count
    builder = StyleSheetBuilder(document, minify=settings.minify)

    plan = CriticalPathPlan(above_fold=list(nodes[:k]), deferred=list(nodes[k:]))
    plan.lazy_node_ids = [node.id for node in plan.deferred if node.is_heavy]
    plan.eager_node_ids = {n.id for root in plan.above_fold for n in root.walk()}

    plan.critical_rules = builder.rules_for(plan.above_fold)
    plan.deferred_rules = builder.rules_for(nodes)
    plan.critical_css = builder.join(plan.critical_rules)
    plan.deferred_css = builder.join(plan.deferred_rules)

    size = len(minify_css(plan.critical_css).encode("utf-8"))
    budget = int(settings.critical_css_budget_kb * 1024)
    if size > budget:
        message = (
            f"Page '{document.label}': critical CSS is {size / 1024:.1f} KB, over the "
            f"{settings.critical_css_budget_kb:g} KB budget; consider an above-the-fold count below {k}."
        )
        plan.warnings.append(message)
        logger.warning(message)

    logger.debug(
        f"Critical path for '{document.label}': {len(plan.above_fold)} eager, "
        f"{len(plan.deferred)} deferred, {len(plan.lazy_node_ids)} lazy."
    )
    return plan

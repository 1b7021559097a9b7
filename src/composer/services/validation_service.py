# src/composer/services/validation_service.py
import logging
from collections import defaultdict
from typing import Dict, List

from composer.dom.registry import BlockRegistry
from composer.dom.tree import reachable_ids, zone_owner
from composer.managers.symbol_manager import stray_keys
from composer.model import ROOT_ID, PageDocument, ValidationReport

logger = logging.getLogger(__name__)


def _reference_map(doc: PageDocument) -> Dict[str, List[str]]:
    """Node id -> ids of every parent whose children or zones list it."""
    refs: Dict[str, List[str]] = defaultdict(list)
    if doc.root is not None:
        for child in doc.root.children:
            refs[child].append(ROOT_ID)
    for node in doc.nodes.values():
        for child in node.children or []:
            refs[child].append(node.id)
    for zone_id, ids in doc.zones.items():
        for child in ids:
            refs[child].append(zone_owner(zone_id))
    return refs


def validate_document(doc: PageDocument, catalog=None) -> ValidationReport:
    """
    Structural checks run before a page is compiled.

    Errors (the page cannot be built): missing root, references to nodes that
    do not exist. Everything else is reported as a warning: orphans, link
    inconsistencies, unknown block kinds, and symbol instances with
    unresolved symbols, stray override keys or stored children. Symbol
    checks need a catalog; without one they are skipped.
    """
    report = ValidationReport()
    page = doc.label

    if doc.root is None:
        report.add_error(f"Page '{page}': document has no root.")

    # Dangling references, one error each.
    if doc.root is not None:
        for child in doc.root.children:
            if child not in doc.nodes:
                report.add_error(f"Page '{page}': root references missing node '{child}'.")
    for node in doc.nodes.values():
        for child in node.children or []:
            if child not in doc.nodes:
                report.add_error(f"Page '{page}': node '{node.id}' references missing node '{child}'.")
    for zone_id, ids in doc.zones.items():
        owner = zone_owner(zone_id)
        if owner != ROOT_ID and owner not in doc.nodes:
            report.add_warning(f"Page '{page}': zone '{zone_id}' belongs to missing node '{owner}'.")
        for child in ids:
            if child not in doc.nodes:
                report.add_error(f"Page '{page}': zone '{zone_id}' references missing node '{child}'.")

    # Orphans stay in the document but are never rendered.
    if doc.root is not None:
        reachable = reachable_ids(doc)
        for node_id in doc.nodes:
            if node_id not in reachable:
                report.add_warning(f"Page '{page}': node '{node_id}' is not reachable from the root (orphan).")

    refs = _reference_map(doc)
    for node_id, node in doc.nodes.items():
        parents = refs.get(node_id, [])
        if len(parents) > 1:
            report.add_warning(
                f"Page '{page}': node '{node_id}' is referenced from {len(parents)} places "
                f"({', '.join(parents)}); only the first is rendered."
            )
        if parents and (node.parent_id or ROOT_ID) not in parents:
            report.add_warning(
                f"Page '{page}': node '{node_id}' has parentId '{node.parent_id or ROOT_ID}' "
                f"but is listed under '{parents[0]}'."
            )

        if node.is_symbol_instance:
            _check_instance(report, page, node, catalog)
        elif not BlockRegistry.is_known(node.type):
            report.add_warning(
                f"Page '{page}': node '{node_id}' has unknown block kind '{node.type}'; it renders as a comment."
            )

    if report.errors:
        logger.debug(f"Validation of '{page}' failed with {len(report.errors)} error(s).")
    return report


def _check_instance(report: ValidationReport, page: str, node, catalog) -> None:
    if node.children:
        report.add_warning(
            f"Page '{page}': symbol instance '{node.id}' stores children; they are ignored while linked."
        )
    if not node.symbol_id:
        report.add_warning(f"Page '{page}': symbol instance '{node.id}' has no symbolId.")
        return
    if catalog is None:
        return

    symbol = catalog.get(node.symbol_id)
    if symbol is None:
        report.add_warning(
            f"Page '{page}': symbol instance '{node.id}' references unknown symbol '{node.symbol_id}'."
        )
        return

    strays = stray_keys(symbol.source_node.attributes, node.overrides)
    if strays:
        report.add_warning(
            f"Page '{page}': symbol instance '{node.id}' overrides keys the symbol does not have: "
            f"{', '.join(strays)} (ignored)."
        )

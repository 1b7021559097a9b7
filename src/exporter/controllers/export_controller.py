from __future__ import annotations

import logging
import os
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from tqdm.auto import tqdm

from composer.dom.core import RenderContext
from composer.managers.symbol_manager import CatalogSnapshot, SymbolCatalog
from composer.model import PageDocument
from composer.services.resolution_service import resolve_document
from composer.services.validation_service import validate_document
from exporter.model import (
    BuildArtifact,
    BuildStats,
    ExportSettings,
    PageFailure,
    SiteBuildResult,
    SiteStats,
    StylesheetArtifact,
)
from exporter.services.asset_planner_service import plan_assets
from exporter.services.asset_probe_service import probe_assets
from exporter.services.critical_path_service import analyze_critical_path
from exporter.services.css_service import dedupe
from exporter.services.render_service import PageRenderer, assemble_document
from exporter.utils.parallel_workers import compile_page_worker, decode_artifact
from exporter.utils.run_timers import RunTimers

logger = logging.getLogger(__name__)

Catalog = Union[SymbolCatalog, CatalogSnapshot, None]

HOME_SLUGS = {"", "/", "index", "home"}


def page_path(document: PageDocument) -> str:
    """Output path of a page: 'index.html' for the home page, '<slug>/index.html' otherwise."""
    slug = (document.slug if document.slug is not None else document.id or "").strip().strip("/")
    if slug.lower() in HOME_SLUGS:
        return "index.html"
    return f"{slug}/index.html"


def compile_page(
        document: PageDocument,
        catalog: Catalog = None,
        settings: Optional[ExportSettings] = None,
) -> BuildArtifact:
    """
    Compiles one page into a standalone HTML document plus its CSS.

    Validation errors stop the build of this page: the artifact then carries
    the errors and no html. Recoverable problems end up in `warnings`.
    """
    settings = settings or ExportSettings()
    timer = RunTimers()
    timer.start()

    artifact = BuildArtifact(page=document.label, path=page_path(document))
    report = validate_document(document, catalog)
    artifact.warnings.extend(report.warnings)
    if not report.valid:
        artifact.errors.extend(report.errors)
        timer.stop()
        artifact.stats.build_time_ms = timer.duration_ms
        logger.warning(f"Page '{document.label}' not built: {len(report.errors)} error(s).")
        return artifact

    nodes, resolve_warnings = resolve_document(document, catalog)
    artifact.warnings.extend(resolve_warnings)

    plan = analyze_critical_path(nodes, document, settings)
    artifact.warnings.extend(plan.warnings)

    assets = plan_assets(nodes, settings.above_fold_count, settings)
    if settings.probe_enabled:
        artifact.warnings.extend(probe_assets(assets.assets, settings.probe_timeout))

    ctx = RenderContext(image_sources=assets.image_sources(), eager_node_ids=plan.eager_node_ids)
    renderer = PageRenderer(ctx, settings)
    lazy_ids = set(plan.lazy_node_ids)
    body_html = renderer.render_body(nodes, lazy_ids)

    props = document.root.props
    html = assemble_document(
        title=props.title,
        description=props.description,
        body_html=body_html,
        critical_css=plan.critical_css,
        deferred_css=plan.deferred_css,
        preloads=assets.preloads,
        settings=settings,
        include_hydration=bool(lazy_ids),
    )

    artifact.html = html
    artifact.html_bytes = len(html.encode("utf-8"))
    artifact.critical_css = plan.critical_css
    artifact.deferred_css = plan.deferred_css
    artifact.css_bytes = len(plan.deferred_css.encode("utf-8"))
    artifact.css_rules = plan.deferred_rules
    artifact.assets = assets.assets
    artifact.preloads = [a.url for a in assets.preloads]
    artifact.lazy_node_ids = plan.lazy_node_ids

    timer.stop()
    artifact.stats = BuildStats(
        node_count=len(document.nodes),
        rendered_nodes=sum(1 for root in nodes for _ in root.walk()),
        above_fold_nodes=len(plan.above_fold),
        lazy_nodes=len(plan.lazy_node_ids),
        critical_css_bytes=len(plan.critical_css.encode("utf-8")),
        deferred_css_bytes=artifact.css_bytes,
        html_bytes=artifact.html_bytes,
        asset_count=len(assets.assets),
        preload_count=len(assets.preloads),
        build_time_ms=timer.duration_ms,
    )
    logger.debug(f"Compiled '{document.label}' -> {artifact.path} ({artifact.html_bytes} bytes).")
    return artifact


class ExportController:
    """
    Orchestrates multi-page site builds.

    Every page is compiled independently against one catalog snapshot taken
    at the start of the run. Pages are farmed out to a process pool; a page
    that fails (or crashes its worker) is recorded and the others continue.
    """

    def __init__(self, settings: Optional[ExportSettings] = None) -> None:
        self.settings = settings or ExportSettings()

    @staticmethod
    def _snapshot(catalog: Catalog) -> CatalogSnapshot:
        if isinstance(catalog, CatalogSnapshot):
            return catalog
        if isinstance(catalog, SymbolCatalog):
            return catalog.snapshot()
        return CatalogSnapshot()

    def _compile_sequential(
            self,
            documents: Sequence[PageDocument],
            snapshot: CatalogSnapshot,
            show_progress: bool,
    ) -> List[BuildArtifact]:
        artifacts = []
        iterator = documents
        if show_progress:
            iterator = tqdm(documents, desc="Building pages", unit=" page")
        for document in iterator:
            try:
                artifacts.append(compile_page(document, snapshot, self.settings))
            except Exception as e:
                logger.error("Failed to build page %s: %s", document.label, e, exc_info=True)
                artifacts.append(BuildArtifact(
                    page=document.label,
                    path=page_path(document),
                    errors=[f"Page '{document.label}': build crashed: {e}"],
                ))
        return artifacts

    def _compile_parallel(
            self,
            documents: Sequence[PageDocument],
            snapshot: CatalogSnapshot,
            workers: int,
            show_progress: bool,
    ) -> List[BuildArtifact]:
        snapshot_json = snapshot.to_payload()
        settings_json = self.settings.model_dump_json()
        results: Dict[int, BuildArtifact] = {}

        with ProcessPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(compile_page_worker, doc.to_payload(), snapshot_json, settings_json): index
                for index, doc in enumerate(documents)
            }
            iterator = as_completed(futures)
            if show_progress:
                iterator = tqdm(iterator, total=len(futures), desc="Building pages", unit=" page")

            for fut in iterator:
                index = futures[fut]
                document = documents[index]
                try:
                    artifact = decode_artifact(fut.result())
                except Exception as e:
                    logger.error("Worker failed on page %s: %s", document.label, e, exc_info=True)
                    artifact = BuildArtifact(errors=[f"Page '{document.label}': worker crashed: {e}"])
                artifact.page = artifact.page if artifact.page not in ("", "<unknown>") else document.label
                artifact.path = artifact.path or page_path(document)
                results[index] = artifact

        return [results[i] for i in range(len(documents))]

    def build_site(
            self,
            documents: Iterable[PageDocument],
            catalog: Catalog = None,
            workers: Optional[int] = None,
            show_progress: bool = False,
    ) -> SiteBuildResult:
        documents = list(documents)
        snapshot = self._snapshot(catalog)
        n_workers = int(workers if workers is not None else self.settings.workers)
        n_workers = min(n_workers, os.cpu_count() or 1, max(len(documents), 1))

        timer = RunTimers()
        timer.start()
        if n_workers <= 1 or len(documents) <= 1:
            artifacts = self._compile_sequential(documents, snapshot, show_progress)
        else:
            artifacts = self._compile_parallel(documents, snapshot, n_workers, show_progress)
        timer.stop()

        result = SiteBuildResult()
        for artifact in artifacts:
            if artifact.ok:
                result.pages.append(artifact)
            else:
                result.failures.append(PageFailure(page=artifact.page, path=artifact.path, errors=artifact.errors))

        rules = dedupe(rule for artifact in result.pages for rule in artifact.css_rules)
        content = ("" if self.settings.minify else "\n\n").join(rules)
        result.stylesheet = StylesheetArtifact(content=content, bytes=len(content.encode("utf-8")))

        asset_counts: Dict[str, int] = {}
        unique_assets = {}
        for artifact in result.pages:
            for asset in artifact.assets:
                unique_assets.setdefault(asset.url, asset.kind)
        for kind in unique_assets.values():
            asset_counts[kind] = asset_counts.get(kind, 0) + 1

        result.stats = SiteStats(
            total_pages=len(documents),
            built_pages=len(result.pages),
            failed_pages=len(result.failures),
            total_html_bytes=sum(a.html_bytes for a in result.pages),
            total_css_bytes=result.stylesheet.bytes,
            total_assets=len(unique_assets),
            asset_counts=asset_counts,
            build_time_ms=timer.duration_ms,
            warnings=[w for a in artifacts for w in a.warnings],
            errors=[e for a in artifacts for e in a.errors],
        )
        logger.info(
            f"Site build finished: {result.stats.built_pages}/{result.stats.total_pages} pages "
            f"in {result.stats.build_time_ms:.0f} ms."
        )
        return result

    @staticmethod
    def record_failure(result: SiteBuildResult, page: str, errors: Sequence[str]) -> PageFailure:
        """Counts a page that never reached compilation (for instance an unreadable page file)."""
        failure = PageFailure(page=page, path=page_path(PageDocument.empty(slug=page)), errors=list(errors))
        result.failures.append(failure)
        result.stats.total_pages += 1
        result.stats.failed_pages += 1
        result.stats.errors.extend(failure.errors)
        logger.warning(f"Page '{page}' failed before compilation: {'; '.join(failure.errors)}")
        return failure

    def write_site(self, result: SiteBuildResult, output_dir: Union[str, Path]) -> List[Path]:
        """Writes every built page and the shared stylesheet below `output_dir`."""
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        written = []
        for artifact in result.pages:
            target = out / artifact.path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(artifact.html or "", encoding="utf-8")
            written.append(target)
        if not self.settings.inline_styles:
            target = out / result.stylesheet.path
            target.write_text(result.stylesheet.content, encoding="utf-8")
            written.append(target)
        logger.info(f"Wrote {len(written)} files to {out}")
        return written


def build_site(
        documents: Iterable[PageDocument],
        catalog: Catalog = None,
        workers: Optional[int] = None,
        settings: Optional[ExportSettings] = None,
        show_progress: bool = False,
) -> SiteBuildResult:
    return ExportController(settings).build_site(documents, catalog, workers=workers, show_progress=show_progress)

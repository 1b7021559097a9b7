# src/pagesmith_shell/core/handlers/build_handler.py
import argparse
import logging
from typing import List

from exporter.controllers.export_controller import ExportController
from exporter.model import ExportSettings
from exporter.services.report_service import BuildReportService
from exporter.utils.run_timers import RunTimers
from pagesmith_shell.core.context.shell_context import ShellContext
from pagesmith_shell.core.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)

build_help_text = """
  build <project_dir> [-o <out>] [--workers N] [--above-fold K] [--inline]
        [--page <slug>] [--no-progress] [--no-report]
                      Compile every page of a project to static HTML.
                      Writes <out>/index.html, <out>/<slug>/index.html and
                      <out>/styles.css (unless --inline) plus a CSV build report.
                      Output defaults to <project_dir>/dist.
""".strip("\n")

COMMAND_HIERARCHY = None


def handle_build(args: List[str], ctx: ShellContext) -> int:
    """
    Builds a project into a static site.

    Returns:
        0 when every page was built, 1 when a page failed or the
        arguments/project could not be used.
    """
    parser = argparse.ArgumentParser(prog="build", description="Export a project as a static site.")
    parser.add_argument("project_dir", help="Project directory containing pages/ and symbols.json.")
    parser.add_argument("--output", "-o", help="Output directory (default: <project_dir>/dist).")
    parser.add_argument("--workers", type=int, help="Number of worker processes.")
    parser.add_argument("--above-fold", dest="above_fold", type=int, help="Number of top-level blocks treated as above the fold.")
    parser.add_argument("--inline", action="store_true", help="Inline the full stylesheet into every page.")
    parser.add_argument("--page", help="Only build the page with this slug or id.")
    parser.add_argument("--no-progress", dest="progress", action="store_false", help="Hide the progress bar.")
    parser.add_argument("--no-report", dest="report", action="store_false", help="Do not write the CSV build report.")
    try:
        parsed_args = parser.parse_args(args)
    except SystemExit:
        return 1

    if parsed_args.workers is not None and parsed_args.workers < 1:
        print("❌ Error: --workers must be at least 1.")
        return 1
    if parsed_args.above_fold is not None and parsed_args.above_fold < 0:
        print("❌ Error: --above-fold cannot be negative.")
        return 1

    try:
        project = ctx.project_manager.load_project(parsed_args.project_dir)
    except FileNotFoundError as e:
        print(f"❌ Error: {e}")
        return 1
    ctx.set_project(project)

    pages = project.pages
    unreadable = dict(project.unreadable_pages)
    if parsed_args.page:
        page = project.find_page(parsed_args.page)
        unreadable = {k: v for k, v in unreadable.items() if k == parsed_args.page}
        if page is None and not unreadable:
            print(f"❌ Error: Page '{parsed_args.page}' not found in {project.root}.")
            return 1
        pages = [page] if page is not None else []
    if not pages and not unreadable:
        print(f"❌ Error: No pages found in {project.root}.")
        return 1

    settings = ExportSettings.from_config(
        ctx.config,
        above_fold_count=parsed_args.above_fold,
        workers=parsed_args.workers,
        inline_styles=True if parsed_args.inline else None,
    )
    output_dir = PathUtils.get_output_dir(parsed_args.output, project.root)

    timer = RunTimers()
    timer.start()
    try:
        controller = ExportController(settings)
        result = controller.build_site(pages, project.catalog, show_progress=parsed_args.progress)
        for stem, message in unreadable.items():
            controller.record_failure(result, stem, [message])
        other_errors = [m for m in project.load_errors if m not in project.unreadable_pages.values()]
        result.stats.errors.extend(other_errors)
        controller.write_site(result, output_dir)
    except Exception as e:
        logger.error(f"Build of {project.root} failed: {e}", exc_info=True)
        print(f"❌ Build failed: {e}")
        return 1
    timer.stop()

    reporter = BuildReportService()
    if parsed_args.report:
        report_name = ctx.config.get_nested("exporter.report_file", "build_report.csv")
        try:
            reporter.write_csv(result, output_dir / report_name)
        except OSError as e:
            logger.error(f"Could not write build report: {e}", exc_info=True)
            print(f"⚠️ Could not write build report: {e}")

    stats = result.stats
    print(reporter.summary(result))
    for message in stats.errors:
        print(f"  ERROR   {message}")
    print(
        f"\n{'❌' if result.failures or other_errors else '✅'} Built {stats.built_pages}/{stats.total_pages} page(s) "
        f"into {output_dir} ({stats.total_html_bytes} HTML bytes, {stats.total_css_bytes} CSS bytes, "
        f"{stats.total_assets} asset(s), {len(stats.warnings)} warning(s)) in {timer.duration:.2f}s."
    )
    return 1 if result.failures or other_errors else 0

# src/pagesmith_shell/core/handlers/validate_handler.py
import argparse
import logging
from typing import List

from composer.services.validation_service import validate_document
from pagesmith_shell.core.context.shell_context import ShellContext

logger = logging.getLogger(__name__)

validate_help_text = """
  validate <project_dir> [--page <slug>] [--strict]
                      Check every page of a project for broken references,
                      orphans and symbol problems. --strict also fails on warnings.
""".strip("\n")

COMMAND_HIERARCHY = None


def handle_validate(args: List[str], ctx: ShellContext) -> int:
    parser = argparse.ArgumentParser(prog="validate", description="Validate the pages of a project.")
    parser.add_argument("project_dir", help="Project directory containing pages/ and symbols.json.")
    parser.add_argument("--page", help="Only validate the page with this slug or id.")
    parser.add_argument("--strict", action="store_true", help="Treat warnings as failures.")
    try:
        parsed_args = parser.parse_args(args)
    except SystemExit:
        return 1

    try:
        project = ctx.project_manager.load_project(parsed_args.project_dir)
    except FileNotFoundError as e:
        print(f"❌ Error: {e}")
        return 1
    ctx.set_project(project)

    pages = project.pages
    if parsed_args.page:
        page = project.find_page(parsed_args.page)
        if page is None:
            print(f"❌ Error: Page '{parsed_args.page}' not found in {project.root}.")
            return 1
        pages = [page]

    total_errors = len(project.load_errors)
    total_warnings = 0
    for message in project.load_errors:
        print(f"  ERROR   {message}")

    for page in pages:
        report = validate_document(page, project.catalog)
        total_errors += len(report.errors)
        total_warnings += len(report.warnings)
        status = "✅" if report.valid else "❌"
        print(f"{status} {page.label}: {len(report.errors)} error(s), {len(report.warnings)} warning(s)")
        for message in report.errors:
            print(f"  ERROR   {message}")
        for message in report.warnings:
            print(f"  WARNING {message}")

    print(f"\nValidated {len(pages)} page(s): {total_errors} error(s), {total_warnings} warning(s).")
    if total_errors or (parsed_args.strict and total_warnings):
        return 1
    return 0

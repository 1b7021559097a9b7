# src/pagesmith_shell/core/handlers/symbol_handler.py
import argparse
import json
import logging
from typing import List

from composer.errors import ComposerError
from composer.managers.symbol_manager import instances_in
from pagesmith_shell.core.context.shell_context import ShellContext

logger = logging.getLogger(__name__)

COMMAND_HIERARCHY = {
    "list": None,
    "show": None,
    "unlink": None,
    "delete": None,
}

symbol_help_text = """
  symbol list <project_dir> [--category <c>] [--search <text>]
                      List the project's symbols with their instance counts.
  symbol show <project_dir> <symbol_id>
                      Show a symbol and where its instances live.
  symbol unlink <project_dir> <page> <instance_id>
                      Turn one instance into plain blocks; later symbol edits no longer apply.
  symbol delete <project_dir> <symbol_id>
                      Delete a symbol; its instances are unlinked first so pages keep their content.
""".strip("\n")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="symbol", description="Inspect and manage project symbols.")
    sub = parser.add_subparsers(dest="action", required=True)

    p_list = sub.add_parser("list", help="List symbols.")
    p_list.add_argument("project_dir")
    p_list.add_argument("--category")
    p_list.add_argument("--search", default="")

    p_show = sub.add_parser("show", help="Show one symbol.")
    p_show.add_argument("project_dir")
    p_show.add_argument("symbol_id")

    p_unlink = sub.add_parser("unlink", help="Unlink an instance.")
    p_unlink.add_argument("project_dir")
    p_unlink.add_argument("page")
    p_unlink.add_argument("instance_id")

    p_delete = sub.add_parser("delete", help="Delete a symbol.")
    p_delete.add_argument("project_dir")
    p_delete.add_argument("symbol_id")
    return parser


def handle_symbol(args: List[str], ctx: ShellContext) -> int:
    try:
        parsed_args = _build_parser().parse_args(args)
    except SystemExit:
        return 1

    try:
        project = ctx.project_manager.load_project(parsed_args.project_dir)
    except FileNotFoundError as e:
        print(f"❌ Error: {e}")
        return 1
    ctx.set_project(project)
    catalog = project.catalog

    if parsed_args.action == "list":
        symbols = catalog.search(parsed_args.search, parsed_args.category)
        if not symbols:
            print("No symbols found.")
            return 0
        for symbol in symbols:
            print(
                f"{symbol.id:<20} {symbol.name:<28} {symbol.category:<12} "
                f"v{symbol.version:<4} {symbol.instance_count} instance(s)"
            )
        return 0

    if parsed_args.action == "show":
        symbol = catalog.get(parsed_args.symbol_id)
        if symbol is None:
            print(f"❌ Error: Unknown symbol '{parsed_args.symbol_id}'.")
            return 1
        print(json.dumps(symbol.model_dump(mode="json", by_alias=True), indent=2))
        for page in project.pages:
            for instance in instances_in(page, symbol.id):
                status = catalog.sync_status(instance)
                overridden = ", ".join(status.overridden_fields) if status.has_overrides else "-"
                sync = "up to date" if status.is_up_to_date else f"synced v{status.synced_version}"
                print(f"  {page.label}: {instance.id} (overrides: {overridden}; {sync})")
        return 0

    try:
        if parsed_args.action == "unlink":
            page = project.find_page(parsed_args.page)
            if page is None:
                print(f"❌ Error: Page '{parsed_args.page}' not found in {project.root}.")
                return 1
            document = ctx.project_manager.open_document(page)
            new_ids = catalog.unlink(document, parsed_args.instance_id)
            ctx.project_manager.save_page(project, document.document)
            ctx.project_manager.save_catalog(project)
            print(f"✅ Unlinked '{parsed_args.instance_id}' on page '{page.label}' ({len(new_ids)} block(s) copied).")
            return 0

        if parsed_args.action == "delete":
            affected = [p for p in project.pages if instances_in(p, parsed_args.symbol_id)]
            unlinked = catalog.delete_symbol(parsed_args.symbol_id, project.pages)
            for page in affected:
                ctx.project_manager.save_page(project, page)
            ctx.project_manager.save_catalog(project)
            print(f"✅ Deleted symbol '{parsed_args.symbol_id}'; {unlinked} instance(s) unlinked.")
            return 0
    except ComposerError as e:
        logger.error(f"symbol {parsed_args.action} failed: {e}", exc_info=True)
        print(f"❌ Error: {e}")
        return 1

    print(f"Unknown command: 'symbol {parsed_args.action}'.")
    return 1

from __future__ import annotations

import logging
import sys

from pagesmith_shell.core.command_registry import ensure_registered, get_handler, subcommands, suggest
from pagesmith_shell.core.context.shell_context import ShellContext
from pagesmith_shell.core.managers.config_manager import config_manager
from pagesmith_shell.core.utils.configure_logging import configure_logger
from pagesmith_shell.core.utils.helptext import get_help_text

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    configure_logger(
        config_manager.get_nested("debug.level", "INFO"),
        config_manager.get_nested("debug.module_levels", {}),
        config_manager.get_nested("debug.silenced_loggers", {}),
    )


def run_command(argv: list[str], ctx: ShellContext | None = None) -> int:
    """Dispatches one command line (without the program name) to its handler."""
    ensure_registered()
    if not argv or argv[0] in ("-h", "--help"):
        print(get_help_text())
        return 0 if argv else 1

    command, args = argv[0], argv[1:]
    handler = get_handler(command)
    if handler is None:
        hint = suggest(command)
        print(f"❌ Unknown command: '{command}'. Type 'pagesmith help' for a list of commands.")
        if hint:
            print(f"   Did you mean: {', '.join(hint)}?")
        return 1

    known = subcommands(command)
    if known and args and not args[0].startswith("-") and args[0] not in known:
        print(f"❌ Unknown subcommand '{command} {args[0]}'. Available: {', '.join(known)}.")
        return 1

    ctx = ctx or ShellContext()
    try:
        return int(handler(args, ctx) or 0)
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    except Exception as e:
        logger.error(f"Command '{command}' failed: {e}", exc_info=True)
        print(f"❌ Error: {e}")
        return 1


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the 'pagesmith' command line."""
    _configure_logging()
    return run_command(list(sys.argv[1:] if argv is None else argv))


if __name__ == "__main__":
    sys.exit(main())

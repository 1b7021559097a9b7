# src/pagesmith_shell/core/handlers/help_handler.py
from pagesmith_shell.core.context.shell_context import ShellContext
from pagesmith_shell.core.utils.helptext import get_help_text


def handle_help(_args, _ctx: ShellContext) -> int:
    print(get_help_text())
    return 0

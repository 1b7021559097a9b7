# src/pagesmith_shell/core/utils/helptext.py
from pagesmith_shell.core.command_registry import COMMAND_HELP_TEXTS

# The static header part of the help text
HEADER_HELP_TEXT = """
🚀 Pagesmith - Help

Compose pages from blocks and symbols, and export them as static HTML.

Usage: pagesmith <command> [arguments]

A project directory holds one JSON document per page in 'pages/'
and an optional 'symbols.json' with the symbol catalog.

---
COMMANDS
---
GENERAL:
  help                Show this help text.
""".strip()


def get_help_text() -> str:
    """
    Dynamically assembles the full help text from the header and all
    discovered help text fragments from the command handlers.
    """
    full_help_parts = [HEADER_HELP_TEXT]
    for command_name in sorted(COMMAND_HELP_TEXTS.keys()):
        full_help_parts.append(COMMAND_HELP_TEXTS[command_name])
    return "\n\n".join(full_help_parts)

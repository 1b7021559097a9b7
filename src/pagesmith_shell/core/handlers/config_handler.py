# src/pagesmith_shell/core/handlers/config_handler.py
import json
import logging
from typing import List, Optional, Dict, Any

from pagesmith_shell.core.context.shell_context import ShellContext

logger = logging.getLogger(__name__)

COMMAND_HIERARCHY: Dict[str, Optional[Dict[str, Any]]] = {
    "list": None,
    "get": None,
    "set": None,
    "reset": None,
}

config_help_text = """
  config list         Show the current configuration as JSON.
  config get <key>    Show one value (e.g., exporter.above_fold_count).
  config set <key> <value>
                      Set a config value for this run (e.g., exporter.workers 4).
  config reset        Reload the configuration from settings.json.
""".strip("\n")

USAGE = f"Usage:\n{config_help_text}"


def handle_config(args: List[str], ctx: ShellContext) -> int:
    """Handles the 'config' command for viewing and modifying the configuration."""
    if not args:
        print(USAGE)
        return 1

    command = args[0]
    config = ctx.config

    if command == "list":
        print(json.dumps(config.get_all(), indent=2))
        return 0

    if command == "get":
        if len(args) != 2:
            print("Usage: config get <key>")
            return 1
        value = config.get_nested(args[1])
        if value is None:
            print(f"❌ Error: Unknown config key '{args[1]}'.")
            return 1
        print(json.dumps(value, indent=2) if isinstance(value, (dict, list)) else value)
        return 0

    if command == "set":
        if len(args) < 3:
            print("Usage: config set <key> <value>")
            return 1
        key_path = args[1]
        value = " ".join(args[2:])
        if value.startswith('"') and value.endswith('"'):
            value = value[1:-1]

        if config.set_nested(key_path, value):
            new_value = config.get_nested(key_path)
            print(f"✅ Config updated: {key_path} = {new_value} (type: {type(new_value).__name__})")
            return 0
        print(f"❌ Error: Failed to set config value for key '{key_path}'.")
        return 1

    if command == "reset":
        config.reset()
        print("✅ Configuration has been reset to the values from settings.json.")
        return 0

    print(f"Unknown command: 'config {command}'.")
    return 1

# src/pagesmith_shell/core/command_registry.py
import difflib
import importlib
import logging
import pkgutil
from types import ModuleType
from typing import Callable, Dict, Any, List, Optional

logger = logging.getLogger(__name__)

# The central registries, populated from the handler modules.
CommandRegistry: Dict[str, Callable[..., int]] = {}
COMMAND_HIERARCHY: Dict[str, Any] = {}
COMMAND_HELP_TEXTS: Dict[str, str] = {}


def register_command(name: str, handler: Callable[..., int]) -> None:
    """Adds a command and its handler function to the registry."""
    CommandRegistry[name] = handler
    logger.debug("Registered command '%s'", name)


HANDLERS_PACKAGE = "pagesmith_shell.core.handlers"


def iter_handler_modules() -> List[ModuleType]:
    """Imports every '<command>_handler' module of the handlers package."""
    package = importlib.import_module(HANDLERS_PACKAGE)
    modules = []
    for _, module_name, _ in pkgutil.iter_modules(package.__path__):
        if not module_name.endswith("_handler"):
            continue
        try:
            modules.append(importlib.import_module(f"{HANDLERS_PACKAGE}.{module_name}"))
        except Exception as e:
            logger.error(f"Error loading handler module {module_name}: {e}", exc_info=True)
    return modules


def register_module(module: ModuleType) -> Optional[str]:
    """
    Registers the command a handler module provides.

    A module named 'build_handler' must define `handle_build(args, ctx)`; it may
    define `build_help_text` and a `COMMAND_HIERARCHY` of subcommands.
    Returns the command name, or None when the module has no handler.
    """
    name = module.__name__.rsplit(".", 1)[-1][: -len("_handler")]
    handler = getattr(module, f"handle_{name}", None)
    if not callable(handler):
        logger.warning(f"Handler module {module.__name__} does not define handle_{name}(); skipped.")
        return None

    CommandRegistry.setdefault(name, handler)
    hierarchy = getattr(module, "COMMAND_HIERARCHY", None)
    if hierarchy is not None:
        COMMAND_HIERARCHY[name] = hierarchy
    help_text = getattr(module, f"{name}_help_text", None)
    if isinstance(help_text, str):
        COMMAND_HELP_TEXTS[name] = help_text
    return name


def register_all_commands() -> None:
    """Registers every handler module. Commands registered by hand are not replaced."""
    for module in iter_handler_modules():
        register_module(module)

    logger.debug("Registered %d command(s): %s", len(CommandRegistry), ", ".join(sorted(CommandRegistry)))


def ensure_registered() -> None:
    if not CommandRegistry:
        register_all_commands()


def get_handler(name: str) -> Optional[Callable[..., int]]:
    ensure_registered()
    return CommandRegistry.get(name)


def subcommands(name: str) -> List[str]:
    """Subcommand names a handler declares in its COMMAND_HIERARCHY (e.g. 'symbol' -> list, show, ...)."""
    hierarchy = COMMAND_HIERARCHY.get(name)
    return list(hierarchy) if isinstance(hierarchy, dict) else []


def suggest(name: str) -> List[str]:
    """Registered command names that look like a mistyped `name`."""
    return difflib.get_close_matches(name, sorted(CommandRegistry), n=3, cutoff=0.6)

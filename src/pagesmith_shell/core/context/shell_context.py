# src/pagesmith_shell/core/context/shell_context.py
import logging
from typing import Optional, TYPE_CHECKING

from pagesmith_shell.core.managers.config_manager import config_manager, ConfigManager
from pagesmith_shell.core.managers.project_manager import ProjectManager

# Prevent circular imports during runtime, but retain type hinting for static analysis
if TYPE_CHECKING:
    from pagesmith_shell.model import Project

logger = logging.getLogger(__name__)


class ShellContext:
    """
    Holds the state a command needs: the configuration, the project loader
    and the project the last command loaded.
    """

    def __init__(self, config: Optional[ConfigManager] = None, project_manager: Optional[ProjectManager] = None):
        self._vars = {}
        self.config = config or config_manager
        self.project_manager = project_manager or ProjectManager(self.config)
        self.current_project: Optional['Project'] = None

    def set_project(self, project: Optional['Project']) -> None:
        """Sets the active project and exposes its location as context variables."""
        self.current_project = project
        if project:
            self.set("project.root", str(project.root))
            self.set("project.pages", str(len(project.pages)))
        else:
            for k in [k for k in self._vars if k.startswith("project.")]:
                del self._vars[k]

    def set(self, key: str, value: str) -> None:
        self._vars[key] = value

    def get(self, key: str) -> Optional[str]:
        return self._vars.get(key)

    def __repr__(self) -> str:
        root = self.current_project.root if self.current_project else "None"
        return f"<ShellContext active_project={root} vars_count={len(self._vars)}>"

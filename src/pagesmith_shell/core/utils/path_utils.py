# src/pagesmith_shell/core/utils/path_utils.py
import logging
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class PathUtils:
    """
    A central utility for reliably retrieving package and project paths.
    """

    # --- Package paths ---

    @staticmethod
    def get_shell_package_root() -> Path:
        """Directory of the pagesmith_shell package (holds settings.json)."""
        return Path(__file__).resolve().parents[2]

    @staticmethod
    def get_settings_file() -> Path:
        return PathUtils.get_shell_package_root() / "settings.json"

    # --- User specific paths ---

    @staticmethod
    def get_user_config_dir() -> Path:
        """
        Returns the path to the user's .pagesmith directory.
        (e.g., ~/.pagesmith/)
        """
        return Path.home() / ".pagesmith"

    # --- Project paths ---

    @staticmethod
    def resolve_project_dir(path: Union[str, Path]) -> Path:
        """Absolute project directory; raises FileNotFoundError when it does not exist."""
        project_dir = Path(path).expanduser().resolve()
        if not project_dir.is_dir():
            raise FileNotFoundError(f"Project directory not found: {project_dir}")
        return project_dir

    @staticmethod
    def get_pages_dir(project_dir: Path, pages_dir: str = "pages") -> Path:
        return project_dir / pages_dir

    @staticmethod
    def get_symbols_file(project_dir: Path, symbols_file: str = "symbols.json") -> Path:
        return project_dir / symbols_file

    @staticmethod
    def get_output_dir(output: Optional[Union[str, Path]], project_dir: Path) -> Path:
        """
        Output directory of a build. Relative paths are taken relative to the
        current directory; without one the build lands in '<project>/dist'.
        """
        if output:
            return Path(output).expanduser().resolve()
        return project_dir / "dist"

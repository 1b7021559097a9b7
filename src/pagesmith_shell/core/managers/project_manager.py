import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Union

from pydantic import ValidationError

from composer.dom.tree import DocumentModel
from composer.managers.symbol_manager import SymbolCatalog
from composer.model import PageDocument
from pagesmith_shell.model import Project
from pagesmith_shell.core.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)


class ProjectManager:
    """
    Loads and saves file based projects.

    A project directory holds one JSON document per page under `pages/`
    and an optional `symbols.json` with the symbol catalog. A page file that
    does not parse is skipped and recorded in `Project.load_errors`; the
    other pages still load.
    """

    def __init__(self, config=None):
        self.pages_dir_name = "pages"
        self.symbols_file_name = "symbols.json"
        self.history_limit = 50
        if config is not None:
            self.pages_dir_name = config.get_nested("project.pages_dir", self.pages_dir_name)
            self.symbols_file_name = config.get_nested("project.symbols_file", self.symbols_file_name)
            self.history_limit = config.get_nested("history.limit", self.history_limit)

    # --- LOAD ---

    def load_project(self, path: Union[str, Path]) -> Project:
        """Raises FileNotFoundError when the directory itself is missing."""
        project_dir = PathUtils.resolve_project_dir(path)
        project = Project(root=project_dir)

        pages_dir = PathUtils.get_pages_dir(project_dir, self.pages_dir_name)
        if not pages_dir.is_dir():
            logger.warning(f"No '{self.pages_dir_name}' directory in {project_dir}.")
        else:
            for page_file in sorted(pages_dir.glob("*.json")):
                page = self.load_page(page_file, project.load_errors)
                if page is None:
                    project.unreadable_pages[page_file.stem] = project.load_errors[-1]
                    continue
                project.pages.append(page)
                project.page_files[page.label] = page_file

        symbols_file = PathUtils.get_symbols_file(project_dir, self.symbols_file_name)
        if symbols_file.exists():
            project.catalog = self.load_catalog(symbols_file, project.load_errors)
            project.catalog.recount_instances(project.pages)

        logger.info(
            f"Loaded project {project_dir.name}: {len(project.pages)} page(s), "
            f"{len(project.catalog)} symbol(s), {len(project.load_errors)} load error(s)."
        )
        return project

    @staticmethod
    def load_page(page_file: Path, errors: Optional[List[str]] = None) -> Optional[PageDocument]:
        """Parses one page file; the slug defaults to the file name."""
        try:
            data = json.loads(page_file.read_text(encoding="utf-8"))
            page = PageDocument.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Could not load page {page_file.name}: {e}")
            if errors is not None:
                errors.append(f"Page file '{page_file.name}': {e}")
            return None
        if not page.slug:
            page.slug = page_file.stem
        return page

    @staticmethod
    def load_catalog(symbols_file: Path, errors: Optional[List[str]] = None) -> SymbolCatalog:
        """Accepts either a list of symbols or an object with a 'symbols' list."""
        catalog = SymbolCatalog()
        try:
            data: Any = json.loads(symbols_file.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                data = data.get("symbols", [])
            catalog.import_symbols(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Could not load symbols from {symbols_file.name}: {e}")
            if errors is not None:
                errors.append(f"Symbol file '{symbols_file.name}': {e}")
        return catalog

    def open_document(self, page: PageDocument) -> DocumentModel:
        """Editable wrapper around a loaded page, with undo history capped by `history.limit`."""
        return DocumentModel(page, history_limit=int(self.history_limit))

    # --- SAVE ---

    def save_page(self, project: Project, page: PageDocument) -> Path:
        target = project.page_files.get(page.label)
        if target is None:
            target = PathUtils.get_pages_dir(project.root, self.pages_dir_name) / f"{page.label}.json"
            project.page_files[page.label] = target
        target.parent.mkdir(parents=True, exist_ok=True)
        data = page.model_dump(mode="json", by_alias=True, exclude_none=True)
        target.write_text(json.dumps(data, indent=2), encoding="utf-8")
        logger.debug(f"Saved page '{page.label}' to {target}")
        return target

    def save_catalog(self, project: Project) -> Path:
        target = PathUtils.get_symbols_file(project.root, self.symbols_file_name)
        target.write_text(json.dumps(project.catalog.export_symbols(), indent=2), encoding="utf-8")
        logger.debug(f"Saved {len(project.catalog)} symbol(s) to {target}")
        return target

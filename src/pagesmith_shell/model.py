# src/pagesmith_shell/model.py (Shell Layer)
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from composer.managers.symbol_manager import SymbolCatalog
from composer.model import PageDocument


class Project(BaseModel):
    """A project directory loaded from disk: page documents plus its symbol catalog."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    root: Path
    pages: List[PageDocument] = Field(default_factory=list)
    page_files: Dict[str, Path] = Field(default_factory=dict, description="Page label to source file.")
    catalog: SymbolCatalog = Field(default_factory=SymbolCatalog)
    load_errors: List[str] = Field(default_factory=list)
    unreadable_pages: Dict[str, str] = Field(default_factory=dict, description="Page file stem to load error.")
    loaded_at: datetime = Field(default_factory=datetime.now)

    def find_page(self, ref: str) -> Optional[PageDocument]:
        """Looks a page up by slug, id or source file stem."""
        for page in self.pages:
            if ref in (page.slug, page.id) or self.page_files.get(page.label, Path()).stem == ref:
                return page
        return None

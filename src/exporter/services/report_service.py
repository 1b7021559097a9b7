# src/exporter/services/report_service.py
import logging
from pathlib import Path
from typing import Union

import pandas as pd

from exporter.model import SiteBuildResult

logger = logging.getLogger(__name__)

REPORT_COLUMNS = [
    "page", "path", "status", "html_bytes", "critical_css_bytes", "deferred_css_bytes",
    "rendered_nodes", "lazy_nodes", "assets", "preloads", "warnings", "errors", "build_time_ms",
]


class BuildReportService:
    """
    Turns a site build result into a per-page statistics table.

    Built pages and failed pages share one table so the report shows the
    whole run; failures have zero sizes and carry their error messages.
    """

    def to_dataframe(self, result: SiteBuildResult) -> pd.DataFrame:
        rows = []
        for artifact in result.pages:
            stats = artifact.stats
            rows.append({
                "page": artifact.page,
                "path": artifact.path,
                "status": "built",
                "html_bytes": artifact.html_bytes,
                "critical_css_bytes": stats.critical_css_bytes,
                "deferred_css_bytes": stats.deferred_css_bytes,
                "rendered_nodes": stats.rendered_nodes,
                "lazy_nodes": stats.lazy_nodes,
                "assets": stats.asset_count,
                "preloads": stats.preload_count,
                "warnings": len(artifact.warnings),
                "errors": "",
                "build_time_ms": stats.build_time_ms,
            })
        for failure in result.failures:
            rows.append({
                "page": failure.page,
                "path": failure.path,
                "status": "failed",
                "html_bytes": 0,
                "critical_css_bytes": 0,
                "deferred_css_bytes": 0,
                "rendered_nodes": 0,
                "lazy_nodes": 0,
                "assets": 0,
                "preloads": 0,
                "warnings": 0,
                "errors": " | ".join(failure.errors),
                "build_time_ms": 0.0,
            })

        if not rows:
            return pd.DataFrame(columns=REPORT_COLUMNS)
        df = pd.DataFrame(rows, columns=REPORT_COLUMNS)
        return df.sort_values(by=["status", "path"]).reset_index(drop=True)

    def write_csv(self, result: SiteBuildResult, path: Union[str, Path]) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        self.to_dataframe(result).to_csv(target, index=False)
        logger.info(f"Build report written to {target}")
        return target

    def summary(self, result: SiteBuildResult) -> str:
        """Console table of the run (truncated errors)."""
        df = self.to_dataframe(result)
        if df.empty:
            return "No pages."
        view = df[["path", "status", "html_bytes", "critical_css_bytes", "lazy_nodes", "assets", "warnings"]]
        return view.to_string(index=False)

# src/exporter/utils/parallel_workers.py
import logging

from composer.model import PageDocument
from composer.managers.symbol_manager import CatalogSnapshot
from exporter.model import BuildArtifact, ExportSettings

logger = logging.getLogger(__name__)


def compile_page_worker(document_json: str, snapshot_json: str, settings_json: str) -> str:
    """
    Worker entry point for the process pool. Inputs and output are JSON
    strings so nothing but plain text crosses the process boundary.
    A crash while compiling is returned as an artifact carrying the error.
    """
    from exporter.controllers.export_controller import compile_page

    label = "<unknown>"
    try:
        document = PageDocument.model_validate_json(document_json)
        label = document.label
        snapshot = CatalogSnapshot.from_payload(snapshot_json)
        settings = ExportSettings.model_validate_json(settings_json)
        artifact = compile_page(document, snapshot, settings)
    except Exception as e:
        logger.error(f"WORKER ERROR compiling page '{label}': {e}", exc_info=True)
        artifact = BuildArtifact(page=label, errors=[f"Page '{label}': build crashed: {e}"])
    return artifact.model_dump_json(by_alias=True)


def decode_artifact(payload: str) -> BuildArtifact:
    return BuildArtifact.model_validate_json(payload)

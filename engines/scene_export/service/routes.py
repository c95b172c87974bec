from __future__ import annotations

import logging
import tempfile
from typing import Any, Dict, List

from fastapi import APIRouter
from pydantic import BaseModel, Field

from engines.common.error_envelope import error_response
from engines.scene_export.codegen.json_backend import scene_to_json
from engines.scene_export.pipeline.errors import ExportFailedError, ExportValidationError
from engines.scene_export.pipeline.models import ExportManifest, ExportOptions, ExportReport
from engines.scene_export.pipeline.service import preview_scenes, run_export
from engines.scene_export.producer.models import SceneSource
from engines.scene_export.producer.protocol import InMemorySceneProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scene-export", tags=["scene_export"])


class ExportRunRequest(BaseModel):
    options: ExportOptions = Field(default_factory=ExportOptions)
    scenes: List[SceneSource] = Field(default_factory=list)


class ExportRunResponse(BaseModel):
    bundleRoot: str
    manifest: ExportManifest
    report: ExportReport


class PreviewResponse(BaseModel):
    scenes: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


def _prepare_options(request: ExportRunRequest) -> ExportOptions:
    options = request.options.model_copy(deep=True)
    if not options.scene_paths:
        options.scene_paths = [s.asset_path for s in request.scenes]
    problem = options.validate_options()
    if problem is not None:
        error_response(
            code="scene_export.invalid_options",
            message=f"Invalid export options: {problem}",
            status_code=400,
            resource_kind="scene_export",
        )
    return options


@router.post("/run", response_model=ExportRunResponse)
def run_scene_export(request: ExportRunRequest) -> ExportRunResponse:
    options = _prepare_options(request)
    provider = InMemorySceneProvider(request.scenes, options.asset_root)
    try:
        result = run_export(options, provider)
    except ExportValidationError as exc:
        error_response(code="scene_export.invalid_options", message=str(exc), status_code=400, resource_kind="scene_export")
    except ExportFailedError as exc:
        error_response(
            code="scene_export.failed",
            message=str(exc),
            status_code=422,
            resource_kind="scene_export",
            details={"errors": exc.errors},
        )
    return ExportRunResponse(bundleRoot=result.bundleRoot, manifest=result.manifest, report=result.report)


@router.post("/preview", response_model=PreviewResponse)
def preview_scene_export(request: ExportRunRequest) -> PreviewResponse:
    with tempfile.TemporaryDirectory(prefix="scene_export_preview_") as scratch:
        request.options.output_root = scratch
        options = _prepare_options(request)
        provider = InMemorySceneProvider(request.scenes, options.asset_root)
        documents, report = preview_scenes(options, provider)
    logger.info("previewed %d scene(s)", len(documents))
    return PreviewResponse(
        scenes=[scene_to_json(d) for d in documents],
        warnings=report.warnings,
        errors=report.errors,
    )

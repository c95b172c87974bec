"""Export run orchestration.

One run owns one export session: a content store shared by every scene, a
schema unifier, a component audit and the diagnostic log. Scenes are
collected in a fixed order, rendered by the enabled backends, and the run
always ends with a manifest and report on disk.
"""
from __future__ import annotations

import logging
import shutil
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from engines.scene_export.assets.models import AssetKind
from engines.scene_export.assets.service import ContentStore
from engines.scene_export.codegen.components_header import write_component_headers
from engines.scene_export.codegen.cpp_backend import CppSceneGenerator
from engines.scene_export.codegen.json_backend import SCENES_DIR, render_json, write_scene_json
from engines.scene_export.codegen.project import write_project
from engines.scene_export.codegen.runtime_helper import write_runtime_helper
from engines.scene_export.collector.audit import ComponentAudit, ComponentAuditReport, audit_markdown
from engines.scene_export.collector.service import SceneCollector
from engines.scene_export.core.diagnostics import DiagnosticLog
from engines.scene_export.core.ids import sanitize_identifier
from engines.scene_export.custom_components.schema import CustomSchemaUnifier
from engines.scene_export.ir.models import SceneDocument
from engines.scene_export.pipeline.errors import (
    ExportFailedError,
    ExportValidationError,
    SceneExportError,
    SceneReadError,
)
from engines.scene_export.pipeline.models import (
    ExportManifest,
    ExportOptions,
    ExportReport,
    ExportRunResult,
    GameExportData,
    GameSceneEntry,
    SceneManifestEntry,
)
from engines.scene_export.producer.protocol import SceneProvider

logger = logging.getLogger(__name__)

DATA_DIR = "assets/data"
GAME_DATA_PATH = f"{DATA_DIR}/game.json"
BUNDLE_DIRS = (
    "assets/data/scenes",
    "assets/models",
    "assets/textures",
    "assets/audio",
    "assets/terrains",
    "game/scenes",
    "game/components/generated",
    "game/src",
)
_INVALID_DIR_CHARS = '<>:"/\\|?*'


def safe_directory_name(name: Optional[str], fallback: str = "ExportedProject") -> str:
    value = (name or "").strip()
    value = "".join("_" if c in _INVALID_DIR_CHARS or ord(c) < 32 else c for c in value)
    return value if value.strip() else fallback


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _write_json(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_json(data) + "\n", encoding="utf-8")


def _unique(base: str, used: Dict[str, int]) -> str:
    key = base.lower()
    count = used.get(key, 0)
    used[key] = count + 1
    return base if count == 0 else f"{base}_{count + 1}"


class SceneExportPipeline:
    def __init__(self, options: ExportOptions, provider: SceneProvider):
        self.options = options
        self.provider = provider
        self.log = DiagnosticLog()
        generated_at = options.timestamp or _utc_now()
        self.report = ExportReport(generatedAtUtc=generated_at)
        self.manifest = ExportManifest(
            projectName=options.generated_project_name,
            generatedAtUtc=generated_at,
            options=options.snapshot(),
        )
        self.bundle_root = Path(options.output_root).resolve() / safe_directory_name(options.generated_project_name)
        self.result = ExportRunResult(bundleRoot=str(self.bundle_root), manifest=self.manifest, report=self.report)
        self._started = time.perf_counter()

    # -- run -----------------------------------------------------------

    def run(self) -> ExportRunResult:
        logger.info("scene export started: %d scene(s) -> %s", len(self.options.scene_paths), self.bundle_root)
        problem = self.options.validate_options()
        if problem is not None:
            self.log.error("Invalid export options: " + problem)
            self.finish_report()
            self.write_failure_outputs()
            if self.options.fail_on_error:
                raise ExportValidationError("Invalid export options: " + problem)
            return self.result

        try:
            self._export()
        except (SceneExportError, OSError) as exc:
            self.log.error(str(exc))
            self.finish_report()
            self.write_failure_outputs()
            if self.options.fail_on_error:
                raise
            return self.result
        except Exception as exc:
            logger.exception("scene export aborted")
            self.log.error(f"Unexpected export failure: {exc!r}")
            self.finish_report()
            self.write_failure_outputs()
            raise

        if self.result.has_errors and self.options.fail_on_error:
            raise ExportFailedError("Export completed with errors. See report.json.", self.report.errors)
        logger.info(
            "scene export finished: %d scene(s), %d warning(s), %d error(s)",
            self.report.stats.sceneCount,
            len(self.report.warnings),
            len(self.report.errors),
        )
        return self.result

    def _export(self) -> None:
        options = self.options
        self.prepare_directories()
        store = ContentStore(str(self.bundle_root), options.asset_root, self.log)
        unifier = CustomSchemaUnifier(self.log)
        audit = ComponentAudit()
        collector = SceneCollector(store, unifier, audit, self.log)

        documents = self.collect_scenes(collector)
        if not documents:
            self.log.error("No scenes were exported. Check the scene list and input scene paths.")
        self.result.scenes = documents

        store.export_discovered_assets(self.provider.discover_assets(self._scene_paths(), options.asset_scope))

        entries = self._scene_entries(documents)
        if options.generate_json:
            for document, entry in zip(documents, entries):
                entry.sceneJsonPath = write_scene_json(self.bundle_root, document, entry.sceneJsonPath)

        if options.generate_cpp:
            write_runtime_helper(self.bundle_root)
            if options.convert_scene_to_cpp:
                generator = CppSceneGenerator(options.base_scene_class)
                for document, entry in zip(documents, entries):
                    entry.sceneHeaderPath, entry.sceneCppPath = generator.write_scene_files(
                        self.bundle_root, document, entry.sceneClassName
                    )
            else:
                self.log.warn(
                    "Scene C++ generation disabled (convertSceneToCpp=false). "
                    "Generated project will load scenes from JSON."
                )
            self.manifest.generatedComponentHeaders = write_component_headers(self.bundle_root, unifier.schemas)
            self.report.stats.generatedCustomComponentCount = len(unifier.schemas)

        if not options.convert_scene_to_cpp or not options.generate_cpp:
            for entry in entries:
                entry.sceneClassName = ""

        if options.generate_cpp_project:
            self.manifest.generatedProject = write_project(
                self.bundle_root,
                entries,
                options.generated_project_name,
                convert_scene_to_cpp=options.convert_scene_to_cpp,
                engine_root=options.engine_root_path,
                log=self.log,
            )

        self.write_component_audit(audit.build_report(self.manifest.generatedAtUtc))
        self._fill_stats(store, documents)
        self.write_game_data()
        self.finish_report()
        self.write_outputs()

    # -- stages --------------------------------------------------------

    def _scene_paths(self) -> List[str]:
        seen: Dict[str, str] = {}
        for path in self.options.scene_paths:
            if path and path.strip():
                seen.setdefault(path.lower(), path)
        return sorted(seen.values(), key=str.lower)

    def prepare_directories(self) -> None:
        if self.options.clean_output and self.bundle_root.exists():
            shutil.rmtree(self.bundle_root)
        for rel in BUNDLE_DIRS:
            (self.bundle_root / rel).mkdir(parents=True, exist_ok=True)

    def collect_scenes(self, collector: SceneCollector) -> List[SceneDocument]:
        documents: List[SceneDocument] = []
        for scene_path in self._scene_paths():
            try:
                source = self.provider.open_scene(scene_path)
            except (SceneReadError, OSError) as exc:
                self.log.error(f"Scene export failed for {scene_path}: {exc}")
                continue
            document = collector.collect_scene(source)
            documents.append(document)
            self.report.stats.entityCount += len(document.entities)
            for warning in document.warnings:
                self.log.warn(warning)
        return documents

    def _scene_entries(self, documents: List[SceneDocument]) -> List[SceneManifestEntry]:
        used_files: Dict[str, int] = {}
        used_classes: Dict[str, int] = {}
        generator = CppSceneGenerator(self.options.base_scene_class)
        entries: List[SceneManifestEntry] = []
        for document in documents:
            stem = _unique(sanitize_identifier(document.sceneName, "Scene"), used_files)
            entry = SceneManifestEntry(
                sceneName=document.sceneName,
                sceneAssetPath=document.sceneAssetPath,
                sceneJsonPath=f"{SCENES_DIR}/{stem}.scene.json" if self.options.generate_json else "",
                sceneClassName=_unique(generator.class_name(document.sceneName), used_classes),
                entityCount=len(document.entities),
                customComponentCount=document.custom_component_count,
                warningCount=len(document.warnings),
            )
            entries.append(entry)
        self.manifest.scenes = entries
        return entries

    def _fill_stats(self, store: ContentStore, documents: List[SceneDocument]) -> None:
        stats = self.report.stats
        stats.sceneCount = len(documents)
        stats.textureCount = store.counts[AssetKind.TEXTURE]
        stats.modelAssetCount = store.counts[AssetKind.MODEL]
        stats.audioAssetCount = store.counts[AssetKind.AUDIO]
        stats.terrainAssetCount = store.counts[AssetKind.TERRAIN]
        stats.totalAssetBytes = store.total_bytes
        stats.materialCount = len(
            {
                e.model.material.stableId
                for d in documents
                for e in d.entities
                if e.model is not None and e.model.material is not None
            }
        )
        self.manifest.assets = store.manifest_entries()

    def write_component_audit(self, audit: ComponentAuditReport) -> None:
        self.manifest.componentAudit = audit.summary
        stats = self.report.stats
        stats.totalComponentTypeCount = audit.summary.totalComponentTypeCount
        stats.unsupportedBuiltinTypeCount = audit.summary.unsupportedBuiltinTypeCount
        stats.unsupportedBuiltinInstanceCount = audit.summary.unsupportedBuiltinInstanceCount
        data_dir = self.bundle_root / DATA_DIR
        _write_json(data_dir / "component_audit.json", audit.model_dump())
        (data_dir / "component_audit.md").write_text(audit_markdown(audit), encoding="utf-8")

    def write_game_data(self) -> None:
        project = self.manifest.generatedProject
        if project is not None and project.defaultSceneName:
            default_scene = project.defaultSceneName
        else:
            default_scene = self.manifest.scenes[0].sceneName if self.manifest.scenes else ""
        game = GameExportData(
            projectName=self.manifest.projectName,
            generatedAtUtc=self.manifest.generatedAtUtc,
            defaultSceneName=default_scene,
            scenes=[
                GameSceneEntry(
                    sceneName=s.sceneName,
                    sceneJsonPath=s.sceneJsonPath,
                    sceneHeaderPath=s.sceneHeaderPath,
                    sceneCppPath=s.sceneCppPath,
                )
                for s in sorted(self.manifest.scenes, key=lambda s: s.sceneName.lower())
            ],
        )
        _write_json(self.bundle_root / GAME_DATA_PATH, game.model_dump())
        self.manifest.gameDataPath = GAME_DATA_PATH

    # -- outputs -------------------------------------------------------

    def finish_report(self) -> None:
        self.report.durationSeconds = round(time.perf_counter() - self._started, 3)
        self.report.warnings = list(self.log.warnings)
        self.report.errors = list(self.log.errors)

    def write_outputs(self) -> None:
        data_dir = self.bundle_root / DATA_DIR
        _write_json(data_dir / "manifest.json", self.manifest.model_dump())
        _write_json(data_dir / "report.json", self.report.model_dump())
        (data_dir / "report.txt").write_text(report_text(self.report, self.manifest), encoding="utf-8")

    def write_failure_outputs(self) -> None:
        if not self.options.output_root or not self.options.output_root.strip():
            logger.error("no output root; failure report not written")
            return
        try:
            self.write_outputs()
        except OSError as exc:
            logger.error("could not write failure report under %s: %s", self.bundle_root, exc)


def report_text(report: ExportReport, manifest: ExportManifest) -> str:
    stats = report.stats
    lines = [
        "Scene Export Report",
        f"Generated: {report.generatedAtUtc}",
        f"Duration: {report.durationSeconds:.2f}s",
        "",
        "Stats:",
        f"- Scenes: {stats.sceneCount}",
        f"- Entities: {stats.entityCount}",
        f"- Materials: {stats.materialCount}",
        f"- Texture assets: {stats.textureCount}",
        f"- Model assets: {stats.modelAssetCount}",
        f"- Audio assets: {stats.audioAssetCount}",
        f"- Terrain assets: {stats.terrainAssetCount}",
        f"- Total asset bytes: {stats.totalAssetBytes}",
        f"- Generated custom components: {stats.generatedCustomComponentCount}",
        f"- Component types: {stats.totalComponentTypeCount}",
        f"- Unsupported built-in component types: {stats.unsupportedBuiltinTypeCount}",
        f"- Unsupported built-in component instances: {stats.unsupportedBuiltinInstanceCount}",
        "",
    ]
    if manifest.scenes:
        lines.append("Scenes:")
        lines += [f"- {s.sceneName} (entities={s.entityCount}, warnings={s.warningCount})" for s in manifest.scenes]
        if manifest.gameDataPath:
            lines.append(f"- Game data: {manifest.gameDataPath}")
        lines.append("")
    audit = manifest.componentAudit
    if audit is not None and audit.topMissing:
        lines.append("Top missing built-in components:")
        lines += [f"- {m.typeName} (usage={m.usageCount}, score={m.score:g})" for m in audit.topMissing[:10]]
        lines.append("")
    project = manifest.generatedProject
    if project is not None and project.rootPath:
        lines += [
            "Generated C++ project:",
            f"- Root: {project.rootPath}",
            f"- Default scene: {project.defaultSceneName}",
            f"- Scene loading mode: {project.sceneLoadingMode or 'cpp'}",
            f"- Engine folder required: {project.engineLinkPath}/",
            "- Build: cmake -S . -B build && cmake --build build",
            "",
        ]
    if report.warnings:
        lines.append("Warnings:")
        lines += [f"- {w}" for w in report.warnings]
        lines.append("")
    if report.errors:
        lines.append("Errors:")
        lines += [f"- {e}" for e in report.errors]
    else:
        lines.append("Errors: none")
    return "\n".join(lines) + "\n"


def run_export(options: ExportOptions, provider: SceneProvider) -> ExportRunResult:
    return SceneExportPipeline(options, provider).run()


def preview_scenes(options: ExportOptions, provider: SceneProvider) -> Tuple[List[SceneDocument], ExportReport]:
    """Collect scenes into a scratch bundle without generating code."""
    pipeline = SceneExportPipeline(options, provider)
    pipeline.prepare_directories()
    store = ContentStore(str(pipeline.bundle_root), options.asset_root, pipeline.log)
    collector = SceneCollector(store, CustomSchemaUnifier(pipeline.log), ComponentAudit(), pipeline.log)
    documents = pipeline.collect_scenes(collector)
    pipeline.finish_report()
    return documents, pipeline.report

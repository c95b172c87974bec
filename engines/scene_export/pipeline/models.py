"""Options, manifest and report models for one export run."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from engines.config import runtime_config
from engines.scene_export.assets.models import AssetManifestEntry
from engines.scene_export.collector.audit import ComponentAuditSummary
from engines.scene_export.ir.models import SceneDocument
from engines.scene_export.producer.protocol import AssetScope

MANIFEST_SCHEMA_VERSION = "1.2.0"
REPORT_SCHEMA_VERSION = "1.1.0"


class ExportOptions(BaseModel):
    output_root: str = Field(default_factory=runtime_config.get_output_root)
    asset_scope: AssetScope = AssetScope.DEPENDENCIES_ONLY
    scene_paths: List[str] = Field(default_factory=list)
    generate_cpp: bool = True
    generate_json: bool = True
    generate_cpp_project: bool = True
    convert_scene_to_cpp: bool = True
    engine_root_path: str = Field(default_factory=runtime_config.get_engine_root)
    generated_project_name: str = Field(default_factory=runtime_config.get_project_name)
    base_scene_class: str = Field(default_factory=runtime_config.get_base_scene_class)
    fail_on_error: bool = Field(default_factory=runtime_config.get_fail_on_error)
    clean_output: bool = True
    asset_root: str = Field(default_factory=runtime_config.get_asset_root)
    timestamp: Optional[str] = None

    def validate_options(self) -> Optional[str]:
        """Return the first precondition failure, or None. Normalises blank names."""
        if not self.output_root or not self.output_root.strip():
            return "Output root is empty."
        if not self.scene_paths:
            return "No scenes were selected for export."
        if not self.generate_cpp and not self.generate_json:
            return "At least one output mode must be enabled (C++ or JSON)."
        if not self.convert_scene_to_cpp and not self.generate_json:
            return "JSON output is required when convertSceneToCpp is disabled."
        if self.generate_cpp_project and not self.generate_cpp:
            return "C++ project generation requires generateCpp=true."
        if not self.base_scene_class or not self.base_scene_class.strip():
            self.base_scene_class = runtime_config.DEFAULT_BASE_SCENE_CLASS
        if not self.generated_project_name or not self.generated_project_name.strip():
            self.generated_project_name = runtime_config.DEFAULT_PROJECT_NAME
        return None

    def snapshot(self) -> "ExportOptionsSnapshot":
        return ExportOptionsSnapshot(
            outputRoot=self.output_root,
            assetScope=self.asset_scope.value,
            generateCpp=self.generate_cpp,
            generateJson=self.generate_json,
            generateCppProject=self.generate_cpp_project,
            convertSceneToCpp=self.convert_scene_to_cpp,
            engineRootPath=self.engine_root_path,
            generatedProjectName=self.generated_project_name,
            baseSceneClass=self.base_scene_class,
            failOnError=self.fail_on_error,
            cleanOutput=self.clean_output,
        )


class ExportOptionsSnapshot(BaseModel):
    outputRoot: str = ""
    assetScope: str = AssetScope.DEPENDENCIES_ONLY.value
    generateCpp: bool = True
    generateJson: bool = True
    generateCppProject: bool = True
    convertSceneToCpp: bool = True
    engineRootPath: str = ""
    generatedProjectName: str = ""
    baseSceneClass: str = ""
    failOnError: bool = False
    cleanOutput: bool = True


class SceneManifestEntry(BaseModel):
    sceneName: str
    sceneAssetPath: str = ""
    sceneJsonPath: str = ""
    sceneHeaderPath: str = ""
    sceneCppPath: str = ""
    sceneClassName: str = ""
    entityCount: int = 0
    customComponentCount: int = 0
    warningCount: int = 0


class GeneratedProjectEntry(BaseModel):
    rootPath: str = ""
    cmakePath: str = ""
    gameCmakePath: str = ""
    mainPath: str = ""
    sceneRegistryHeaderPath: str = ""
    sceneRegistryCppPath: str = ""
    readmePath: str = ""
    engineLinkPath: str = ""
    engineLinkCreated: bool = False
    defaultSceneName: str = ""
    sceneLoadingMode: str = ""


class ExportManifest(BaseModel):
    schemaVersion: str = MANIFEST_SCHEMA_VERSION
    projectName: str = ""
    generatedAtUtc: str = ""
    options: Optional[ExportOptionsSnapshot] = None
    scenes: List[SceneManifestEntry] = Field(default_factory=list)
    assets: List[AssetManifestEntry] = Field(default_factory=list)
    gameDataPath: str = ""
    generatedComponentHeaders: List[str] = Field(default_factory=list)
    generatedProject: Optional[GeneratedProjectEntry] = None
    componentAudit: Optional[ComponentAuditSummary] = None


class ExportStats(BaseModel):
    sceneCount: int = 0
    entityCount: int = 0
    materialCount: int = 0
    textureCount: int = 0
    modelAssetCount: int = 0
    audioAssetCount: int = 0
    terrainAssetCount: int = 0
    generatedCustomComponentCount: int = 0
    totalComponentTypeCount: int = 0
    unsupportedBuiltinTypeCount: int = 0
    unsupportedBuiltinInstanceCount: int = 0
    totalAssetBytes: int = 0


class ExportReport(BaseModel):
    schemaVersion: str = REPORT_SCHEMA_VERSION
    generatedAtUtc: str = ""
    durationSeconds: float = 0.0
    stats: ExportStats = Field(default_factory=ExportStats)
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class GameSceneEntry(BaseModel):
    sceneName: str
    sceneJsonPath: str = ""
    sceneHeaderPath: str = ""
    sceneCppPath: str = ""


class GameExportData(BaseModel):
    projectName: str = ""
    generatedAtUtc: str = ""
    defaultSceneName: str = ""
    scenes: List[GameSceneEntry] = Field(default_factory=list)


class ExportRunResult(BaseModel):
    bundleRoot: str = ""
    manifest: ExportManifest = Field(default_factory=ExportManifest)
    report: ExportReport = Field(default_factory=ExportReport)
    scenes: List[SceneDocument] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.report.errors)

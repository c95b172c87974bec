"""Runtime configuration helpers for the scene export engine."""
from __future__ import annotations

import os
from typing import Dict, Optional

DEFAULT_OUTPUT_ROOT = "./export_out"
DEFAULT_PROJECT_NAME = "ExportedProject"
DEFAULT_BASE_SCENE_CLASS = "Scene"


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def _truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes"}


def get_output_root() -> str:
    return _get_env("SCENE_EXPORT_OUTPUT_ROOT") or DEFAULT_OUTPUT_ROOT


def get_project_name() -> str:
    return _get_env("SCENE_EXPORT_PROJECT_NAME") or DEFAULT_PROJECT_NAME


def get_engine_root() -> str:
    """Path to the engine checkout the generated build descriptor links against."""
    return _get_env("SCENE_EXPORT_ENGINE_ROOT") or ""


def get_base_scene_class() -> str:
    return _get_env("SCENE_EXPORT_BASE_SCENE_CLASS") or DEFAULT_BASE_SCENE_CLASS


def get_fail_on_error() -> bool:
    return _truthy(_get_env("SCENE_EXPORT_FAIL_ON_ERROR"))


def get_asset_root() -> str:
    return _get_env("SCENE_EXPORT_ASSET_ROOT") or os.getcwd()


def config_snapshot() -> Dict[str, object]:
    return {
        "output_root": get_output_root(),
        "project_name": get_project_name(),
        "engine_root": get_engine_root(),
        "base_scene_class": get_base_scene_class(),
        "fail_on_error": get_fail_on_error(),
        "asset_root": get_asset_root(),
    }

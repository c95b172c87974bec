"""Liveness probe for the scene export service."""
from fastapi import APIRouter
from pydantic import BaseModel

from engines.config import runtime_config

router = APIRouter(tags=["system"])


class HealthStatus(BaseModel):
    status: str
    service: str = "scene_export"
    version: str = "0.1.0"
    baseSceneClass: str = ""


@router.get("/health", response_model=HealthStatus)
def health_check():
    return HealthStatus(status="ok", baseSceneClass=runtime_config.get_base_scene_class())

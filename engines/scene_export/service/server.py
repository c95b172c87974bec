"""Scene export HTTP app."""
from __future__ import annotations

import logging

from fastapi import FastAPI

from engines.common.health import router as health_router
from engines.config import runtime_config
from engines.scene_export.service.routes import router as scene_export_router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title="Scene Export Engine")
    app.include_router(health_router)
    app.include_router(scene_export_router)
    logger.info("scene export service config: %s", runtime_config.config_snapshot())
    return app


app = create_app()

"""Exceptions raised across the scene export pipeline."""
from __future__ import annotations


class SceneExportError(Exception):
    """Base class for export failures."""


class ExportValidationError(SceneExportError):
    """Pipeline preconditions are not met; nothing beyond the failure report is written."""


class SceneReadError(SceneExportError):
    """A requested scene could not be opened or read."""


class ExportFailedError(SceneExportError):
    """Raised after outputs are written when a fail-fast run recorded errors."""

    def __init__(self, message: str, errors=None):
        super().__init__(message)
        self.errors = list(errors or [])

"""Warning/error accumulation shared by one export run."""
from __future__ import annotations

import logging
from typing import List, Optional

logger = logging.getLogger(__name__)


class DiagnosticLog:
    """Ordered, de-duplicated warnings and errors.

    Warnings never stop a run. Errors are collected and only abort when the
    caller asked for fail-fast behaviour.
    """

    def __init__(self) -> None:
        self.warnings: List[str] = []
        self.errors: List[str] = []

    def warn(self, message: str, scene_warnings: Optional[List[str]] = None) -> None:
        if scene_warnings is not None and message not in scene_warnings:
            scene_warnings.append(message)
        if message in self.warnings:
            return
        self.warnings.append(message)
        logger.warning(message)

    def error(self, message: str) -> None:
        if message in self.errors:
            return
        self.errors.append(message)
        logger.error(message)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

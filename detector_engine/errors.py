"""Error taxonomy for detector initialization and event handling."""

from __future__ import annotations

from typing import Optional


class DetectorEngineError(Exception):
    """Base class for every error raised by the engine."""


class ConfigurationError(DetectorEngineError):
    """A required configuration field is missing or invalid."""


class ExternalCallError(DetectorEngineError):
    """A read-only collaborator call reverted, failed, or timed out."""


class InsufficientData(DetectorEngineError):
    """The rolling window holds no samples yet."""


class DetectorError(DetectorEngineError):
    def __init__(
        self,
        detector_type: str,
        detector_name: Optional[str],
        phase: str,
        cause: BaseException,
    ) -> None:
        self.detector_type = detector_type
        self.detector_name = detector_name
        self.phase = phase
        self.cause = cause
        super().__init__(
            f"{phase} failed for detector '{detector_name}' ({detector_type}): {cause}"
        )

"""Protocol monitoring detectors and the orchestrator that runs them."""

from .engine import DetectorFailure, Orchestrator
from .errors import (
    ConfigurationError,
    DetectorEngineError,
    DetectorError,
    ExternalCallError,
    InsufficientData,
)
from .io import FileAbiLoader, build_agent_configs, load_config
from .models import (
    BlockEvent,
    DecodedLog,
    Finding,
    FindingSeverity,
    FindingType,
    TransactionEvent,
)
from .reader import Web3ContractReader
from .registry import DETECTOR_REGISTRY, Capability, DetectorModule, Services
from .utils import RollingWindow

__all__ = [
    "BlockEvent",
    "Capability",
    "ConfigurationError",
    "DETECTOR_REGISTRY",
    "DecodedLog",
    "DetectorEngineError",
    "DetectorError",
    "DetectorFailure",
    "DetectorModule",
    "ExternalCallError",
    "FileAbiLoader",
    "Finding",
    "FindingSeverity",
    "FindingType",
    "InsufficientData",
    "Orchestrator",
    "RollingWindow",
    "Services",
    "TransactionEvent",
    "Web3ContractReader",
    "build_agent_configs",
    "load_config",
]

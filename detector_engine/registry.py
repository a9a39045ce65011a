"""Detector registry with capabilities declared at registration time."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Mapping, Optional

from .detectors import address_watch, contract_variable_monitor, governance
from .errors import ConfigurationError
from .models import BlockEvent, Finding, TransactionEvent
from .reader import ContractReader

DEFAULT_CALL_TIMEOUT = 10.0

AbiLoader = Callable[[str], List[Dict[str, Any]]]
Initializer = Callable[[Dict[str, Any], "Services"], Awaitable[Any]]
TransactionHandler = Callable[[Any, TransactionEvent], Awaitable[List[Finding]]]
BlockHandler = Callable[[Any, BlockEvent], Awaitable[List[Finding]]]


class Capability(Enum):
    INITIALIZE = "initialize"
    HANDLE_TRANSACTION = "handle_transaction"
    HANDLE_BLOCK = "handle_block"


@dataclass
class Services:
    """External collaborators handed to detector initializers."""

    abi_loader: Optional[AbiLoader] = None
    contract_reader: Optional[ContractReader] = None
    call_timeout: float = DEFAULT_CALL_TIMEOUT


@dataclass(frozen=True)
class DetectorModule:
    detector_type: str
    initialize: Optional[Initializer] = None
    handle_transaction: Optional[TransactionHandler] = None
    handle_block: Optional[BlockHandler] = None
    capabilities: FrozenSet[Capability] = field(init=False)

    def __post_init__(self) -> None:
        declared = {
            Capability.INITIALIZE: self.initialize,
            Capability.HANDLE_TRANSACTION: self.handle_transaction,
            Capability.HANDLE_BLOCK: self.handle_block,
        }
        capabilities = frozenset(cap for cap, func in declared.items() if func is not None)
        if not capabilities - {Capability.INITIALIZE}:
            raise ConfigurationError(
                f"Detector '{self.detector_type}' handles neither transactions nor blocks"
            )
        object.__setattr__(self, "capabilities", capabilities)

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities


DETECTOR_REGISTRY: Dict[str, DetectorModule] = {
    module.detector_type: module
    for module in (
        DetectorModule(
            detector_type="address-watch",
            initialize=address_watch.initialize,
            handle_transaction=address_watch.handle_transaction,
        ),
        DetectorModule(
            detector_type="contract-variable-monitor",
            initialize=contract_variable_monitor.initialize,
            handle_block=contract_variable_monitor.handle_block,
        ),
        DetectorModule(
            detector_type="governance",
            initialize=governance.initialize,
            handle_transaction=governance.handle_transaction,
        ),
    )
}


def resolve_detector(
    detector_type: str,
    registry: Mapping[str, DetectorModule] = DETECTOR_REGISTRY,
) -> DetectorModule:
    key = str(detector_type or "").strip()
    if key in registry:
        return registry[key]
    raise ConfigurationError(f"Unknown agentType '{detector_type}'")

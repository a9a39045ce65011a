"""Core dispatch entrypoints: concurrent fan-out of events to detectors."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .errors import DetectorEngineError, DetectorError
from .io import build_agent_configs
from .models import BlockEvent, Finding, TransactionEvent
from .registry import DETECTOR_REGISTRY, Capability, DetectorModule, Services, resolve_detector

logger = logging.getLogger(__name__)


@dataclass
class DetectorInstance:
    config: Dict[str, Any]
    module: DetectorModule
    state: Any = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def detector_type(self) -> str:
        return self.module.detector_type

    @property
    def name(self) -> Optional[str]:
        return self.config.get("name")


@dataclass(frozen=True)
class DetectorFailure:
    detector_type: str
    detector_name: Optional[str]
    phase: str
    error: BaseException


class Orchestrator:
    """Owns every configured detector instance and its private state.

    ``initialize`` must complete before events are handled. Handler calls for
    one instance are serialized by that instance's lock, while different
    instances run concurrently. Findings are always returned in registration
    order, whatever order the tasks finish in.

    By default any detector failure aborts the whole call with a
    ``DetectorError``. With ``isolate_failures`` the failing detector
    contributes nothing, the failure is recorded in ``last_failures``, and the
    other detectors' findings are still returned.
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        registry: Mapping[str, DetectorModule] = DETECTOR_REGISTRY,
        services: Optional[Services] = None,
        isolate_failures: bool = False,
    ) -> None:
        self.services = services or Services()
        self.isolate_failures = isolate_failures
        self.last_failures: List[DetectorFailure] = []
        self.initialized = False
        self._instances: List[DetectorInstance] = [
            DetectorInstance(config=agent, module=resolve_detector(agent["agentType"], registry))
            for agent in build_agent_configs(config)
        ]

    @property
    def instances(self) -> List[DetectorInstance]:
        return list(self._instances)

    async def _initialize_instance(self, instance: DetectorInstance) -> Any:
        if not instance.module.supports(Capability.INITIALIZE):
            return dict(instance.config)
        try:
            return await instance.module.initialize(dict(instance.config), self.services)
        except Exception as exc:
            raise DetectorError(instance.detector_type, instance.name, "initialize", exc) from exc

    async def initialize(self) -> None:
        self.initialized = False
        results = await asyncio.gather(
            *(self._initialize_instance(instance) for instance in self._instances),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

        for instance, state in zip(self._instances, results):
            instance.state = state
        self.initialized = True
        logger.info("Initialized %d detector(s)", len(self._instances))

    async def _invoke(self, instance: DetectorInstance, capability: Capability, event: Any) -> List[Finding]:
        handler = getattr(instance.module, capability.value)
        async with instance.lock:
            try:
                findings = await handler(instance.state, event)
            except Exception as exc:
                raise DetectorError(instance.detector_type, instance.name, capability.value, exc) from exc
        return list(findings or [])

    async def _dispatch(self, capability: Capability, event: Any) -> List[Finding]:
        if not self.initialized:
            raise DetectorEngineError("Orchestrator.initialize() has not completed")

        targets = [instance for instance in self._instances if instance.module.supports(capability)]
        results = await asyncio.gather(
            *(self._invoke(instance, capability, event) for instance in targets),
            return_exceptions=True,
        )

        findings: List[Finding] = []
        failures: List[DetectorFailure] = []
        for instance, result in zip(targets, results):
            if isinstance(result, DetectorError) and self.isolate_failures:
                logger.error("%s", result, exc_info=result)
                failures.append(DetectorFailure(
                    detector_type=instance.detector_type,
                    detector_name=instance.name,
                    phase=capability.value,
                    error=result.cause,
                ))
                continue
            if isinstance(result, BaseException):
                raise result
            findings.extend(result)

        self.last_failures = failures
        logger.debug(
            "%s dispatched to %d detector(s), %d finding(s)",
            capability.value,
            len(targets),
            len(findings),
        )
        return findings

    async def handle_transaction(self, tx_event: TransactionEvent) -> List[Finding]:
        return await self._dispatch(Capability.HANDLE_TRANSACTION, tx_event)

    async def handle_block(self, block_event: BlockEvent) -> List[Finding]:
        return await self._dispatch(Capability.HANDLE_BLOCK, block_event)

"""Shared data models for findings and pre-decoded chain events."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .errors import ConfigurationError

MetadataValue = Union[str, int, float]


class _NamedEnum(Enum):
    @classmethod
    def parse(cls, value: object):
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        for member in cls:
            if member.name.lower() == key:
                return member
        raise ConfigurationError(f"Unknown {cls.__name__} '{value}'")


class FindingType(_NamedEnum):
    Unknown = 0
    Exploit = 1
    Suspicious = 2
    Degraded = 3
    Info = 4


class FindingSeverity(_NamedEnum):
    Unknown = 0
    Info = 1
    Low = 2
    Medium = 3
    High = 4
    Critical = 5


def make_alert_id(developer_abbreviation: str, protocol_abbreviation: str, suffix: str) -> str:
    return f"{developer_abbreviation}-{protocol_abbreviation}-{suffix}"


@dataclass(frozen=True)
class Finding:
    name: str
    description: str
    alert_id: str
    type: FindingType
    severity: FindingSeverity
    protocol: Optional[str] = None
    metadata: Mapping[str, MetadataValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "description": self.description,
            "alertId": self.alert_id,
            "type": self.type.name,
            "severity": self.severity.name,
            "protocol": self.protocol,
            "metadata": dict(self.metadata),
        }


@dataclass
class DecodedLog:
    name: str
    signature: str
    address: str
    args: Dict[str, Any] = field(default_factory=dict)
    log_index: int = 0

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DecodedLog":
        name = str(payload["name"])
        return cls(
            name=name,
            signature=str(payload.get("signature") or name),
            address=str(payload.get("address", "")),
            args=dict(payload.get("args", {})),
            log_index=int(payload.get("logIndex", 0) or 0),
        )


@dataclass
class TransactionEvent:
    hash: str
    addresses: Dict[str, bool] = field(default_factory=dict)
    logs: List[DecodedLog] = field(default_factory=list)
    block_number: Optional[int] = None

    def filter_log(
        self,
        signatures: Union[str, Iterable[str]],
        address: Optional[str] = None,
    ) -> List[DecodedLog]:
        if isinstance(signatures, str):
            signatures = [signatures]
        wanted = set(signatures)
        wanted_names = {signature.split("(", 1)[0] for signature in wanted}
        target = address.lower() if address else None
        matched: List[DecodedLog] = []
        for log in self.logs:
            if target is not None and log.address.lower() != target:
                continue
            if log.signature in wanted:
                matched.append(log)
            # logs recorded without an argument list match on the event name
            elif "(" not in log.signature and log.signature in wanted_names:
                matched.append(log)
        return matched

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TransactionEvent":
        addresses = payload.get("addresses", {})
        if not isinstance(addresses, Mapping):
            addresses = {addr: True for addr in addresses}
        block_number = payload.get("blockNumber")
        return cls(
            hash=str(payload.get("hash", "")),
            addresses={str(addr): bool(flag) for addr, flag in addresses.items()},
            logs=[DecodedLog.from_dict(entry) for entry in payload.get("logs", [])],
            block_number=int(block_number) if block_number is not None else None,
        )


@dataclass
class BlockEvent:
    block_number: int
    block_hash: Optional[str] = None
    timestamp: Optional[int] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "BlockEvent":
        timestamp = payload.get("timestamp")
        return cls(
            block_number=int(payload["blockNumber"]),
            block_hash=payload.get("hash"),
            timestamp=int(timestamp) if timestamp is not None else None,
        )


@dataclass(frozen=True)
class ContractRef:
    name: str
    address: str
    abi: List[Dict[str, Any]] = field(default_factory=list, compare=False, repr=False)

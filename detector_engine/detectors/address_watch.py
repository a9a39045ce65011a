"""Flags transactions that involve a watched address."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping

from ..errors import ConfigurationError
from ..models import Finding, FindingSeverity, FindingType, TransactionEvent, make_alert_id
from ..utils import is_address, is_filled_string

if TYPE_CHECKING:
    from ..registry import Services

ALERT_SUFFIX = "ADDRESS-WATCH"


def create_alert(config: Mapping[str, Any], address: str, contract_name: str, watch: Mapping[str, Any]) -> Finding:
    return Finding(
        name=f"{config['protocolName']} Address Watch",
        description=f"Address {address} ({contract_name}) was involved in a transaction",
        alert_id=make_alert_id(config["developerAbbreviation"], config["protocolAbbreviation"], ALERT_SUFFIX),
        type=FindingType.parse(watch.get("type", "Info")),
        severity=FindingSeverity.parse(watch.get("severity", "Info")),
        protocol=config["protocolName"],
        metadata={"address": address, "contractName": contract_name},
    )


def validate_config(config: Mapping[str, Any]) -> None:
    contracts = config.get("contracts")
    if not isinstance(contracts, Mapping) or not contracts:
        raise ConfigurationError("Must supply at least one address to watch")

    for key, entry in contracts.items():
        if not isinstance(entry, Mapping):
            raise ConfigurationError(f"Watch entry '{key}' must be a mapping")
        address = entry.get("address")
        if not is_filled_string(address):
            raise ConfigurationError(f"No address found in configuration file for '{key}'")
        if not is_address(address):
            raise ConfigurationError(f"invalid address '{address}' for '{key}'")
        watch = entry.get("watch") or {}
        if not isinstance(watch, Mapping):
            raise ConfigurationError(f"watch block for '{key}' must be a mapping")
        FindingType.parse(watch.get("type", "Info"))
        FindingSeverity.parse(watch.get("severity", "Info"))


async def initialize(config: Dict[str, Any], services: "Services") -> Dict[str, Any]:
    validate_config(config)
    return dict(config)


async def handle_transaction(config: Dict[str, Any], tx_event: TransactionEvent) -> List[Finding]:
    findings: List[Finding] = []
    tx_addresses = {address.lower() for address in tx_event.addresses}

    for key, entry in config["contracts"].items():
        address = entry["address"]
        if address.lower() in tx_addresses:
            contract_name = entry.get("name", key)
            findings.append(create_alert(config, address, contract_name, entry.get("watch") or {}))
    return findings

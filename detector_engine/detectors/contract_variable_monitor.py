"""Rolling-window threshold monitor for contract getter values."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from ..errors import ConfigurationError, ExternalCallError
from ..io import parse_optional_decimal, parse_optional_int
from ..models import (
    BlockEvent,
    ContractRef,
    Finding,
    FindingSeverity,
    FindingType,
    make_alert_id,
)
from ..utils import RollingWindow, format_decimal, is_filled_string, percent_change, to_decimal

if TYPE_CHECKING:
    from ..reader import ContractReader
    from ..registry import Services

logger = logging.getLogger(__name__)

ALERT_SUFFIX = "CONTRACT-VARIABLE"


@dataclass
class MonitoredVariable:
    name: str
    type: FindingType
    severity: FindingSeverity
    contract: ContractRef
    upper_threshold_percent: Optional[Decimal]
    lower_threshold_percent: Optional[Decimal]
    min_num_elements: int
    past_values: RollingWindow


@dataclass
class MonitorState:
    config: Dict[str, Any]
    reader: "ContractReader"
    call_timeout: float
    variables: List[MonitoredVariable] = field(default_factory=list)


def create_alert(
    variable: MonitoredVariable,
    config: Mapping[str, Any],
    threshold_position: str,
    threshold_percent_limit: Decimal,
    actual_percent_change: Decimal,
) -> Finding:
    contract = variable.contract
    return Finding(
        name=f"{config['protocolName']} Contract Variable",
        description=(
            f"The {variable.name} variable value in the {contract.name} contract had a change"
            f" in value over the {threshold_position} threshold limit of"
            f" {format_decimal(threshold_percent_limit)} percent"
        ),
        alert_id=make_alert_id(
            config["developerAbbreviation"], config["protocolAbbreviation"], ALERT_SUFFIX
        ),
        type=variable.type,
        severity=variable.severity,
        protocol=config["protocolName"],
        metadata={
            "contractName": contract.name,
            "contractAddress": contract.address,
            "variableName": variable.name,
            "thresholdPosition": threshold_position,
            "thresholdPercentLimit": format_decimal(threshold_percent_limit),
            "actualPercentChange": format_decimal(actual_percent_change),
        },
    )


def validate_config(config: Mapping[str, Any]) -> None:
    for key in ("developerAbbreviation", "protocolName", "protocolAbbreviation"):
        if not is_filled_string(config.get(key)):
            raise ConfigurationError(f"No {key} found")

    contracts = config.get("contracts")
    if not isinstance(contracts, Mapping) or not contracts:
        raise ConfigurationError("contracts must be a non-empty mapping")

    for name, entry in contracts.items():
        if not isinstance(entry, Mapping):
            raise ConfigurationError(f"Contract entry '{name}' must be a mapping")
        if not is_filled_string(entry.get("address")):
            raise ConfigurationError(f"No address found in configuration file for '{name}'")
        if not is_filled_string(entry.get("abiFile")):
            raise ConfigurationError(f"No ABI file found in configuration file for '{name}'")
        variables = entry.get("variables")
        if not isinstance(variables, Mapping) or not variables:
            raise ConfigurationError(f"No variables found in configuration file for '{name}'")


def build_variable(variable_name: str, entry: Mapping[str, Any], contract: ContractRef) -> MonitoredVariable:
    label = f"{contract.name}.{variable_name}"
    upper = parse_optional_decimal(entry.get("upperThresholdPercent"), f"{label} upperThresholdPercent")
    lower = parse_optional_decimal(entry.get("lowerThresholdPercent"), f"{label} lowerThresholdPercent")
    if upper is None and lower is None:
        raise ConfigurationError(
            f"Either the upperThresholdPercent or lowerThresholdPercent for the variable"
            f" {label} must be defined"
        )
    for bound in (upper, lower):
        if bound is not None and bound <= 0:
            raise ConfigurationError(f"Threshold percents for {label} must be positive")

    num_data_points = parse_optional_int(entry.get("numDataPoints"), f"{label} numDataPoints")
    if num_data_points is None:
        raise ConfigurationError(f"The numDataPoints for the variable {label} must be defined")
    min_num_elements = parse_optional_int(entry.get("minNumElements"), f"{label} minNumElements")
    if min_num_elements is None:
        min_num_elements = num_data_points
    if min_num_elements < 1:
        raise ConfigurationError(f"minNumElements for {label} must be at least 1")

    return MonitoredVariable(
        name=variable_name,
        type=FindingType.parse(entry.get("type")),
        severity=FindingSeverity.parse(entry.get("severity")),
        contract=contract,
        upper_threshold_percent=upper,
        lower_threshold_percent=lower,
        min_num_elements=min_num_elements,
        past_values=RollingWindow(num_data_points),
    )


async def initialize(config: Dict[str, Any], services: "Services") -> MonitorState:
    validate_config(config)
    if services.contract_reader is None:
        raise ConfigurationError("contract-variable-monitor requires a contract reader")
    if services.abi_loader is None:
        raise ConfigurationError("contract-variable-monitor requires an ABI loader")

    timeout = config.get("callTimeoutSeconds", services.call_timeout)
    state = MonitorState(
        config=dict(config),
        reader=services.contract_reader,
        call_timeout=float(timeout),
    )

    for contract_name, entry in config["contracts"].items():
        contract = ContractRef(
            name=contract_name,
            address=entry["address"],
            abi=services.abi_loader(entry["abiFile"]),
        )
        for variable_name, variable_entry in entry["variables"].items():
            state.variables.append(build_variable(variable_name, variable_entry or {}, contract))

    logger.info(
        "Monitoring %d variable(s) for %s", len(state.variables), config.get("name")
    )
    return state


async def read_value(state: MonitorState, variable: MonitoredVariable, block_number: int) -> Decimal:
    try:
        raw = await asyncio.wait_for(
            state.reader.read(variable.contract, variable.name, block_number),
            timeout=state.call_timeout,
        )
    except asyncio.TimeoutError as exc:
        raise ExternalCallError(
            f"{variable.contract.name}.{variable.name} timed out after {state.call_timeout}s"
        ) from exc
    except Exception as exc:
        raise ExternalCallError(f"{variable.contract.name}.{variable.name} failed: {exc}") from exc
    try:
        return to_decimal(raw)
    except ValueError as exc:
        raise ExternalCallError(
            f"{variable.contract.name}.{variable.name} returned a non-numeric value {raw!r}"
        ) from exc


def check_thresholds(
    state: MonitorState,
    variable: MonitoredVariable,
    new_value: Decimal,
) -> List[Finding]:
    findings: List[Finding] = []
    window = variable.past_values
    if window.get_num_elements() < variable.min_num_elements:
        return findings

    average = window.get_average()
    if variable.upper_threshold_percent is not None and new_value > average:
        percent_over = percent_change(new_value, average)
        if percent_over is not None and percent_over > variable.upper_threshold_percent:
            findings.append(create_alert(
                variable, state.config, "upper", variable.upper_threshold_percent, percent_over,
            ))

    if variable.lower_threshold_percent is not None and new_value < average:
        percent_over = percent_change(new_value, average)
        if percent_over is not None and percent_over > variable.lower_threshold_percent:
            findings.append(create_alert(
                variable, state.config, "lower", variable.lower_threshold_percent, percent_over,
            ))
    return findings


async def evaluate_variable(
    state: MonitorState,
    variable: MonitoredVariable,
    block_number: int,
) -> List[Finding]:
    try:
        new_value = await read_value(state, variable, block_number)
    except ExternalCallError as exc:
        logger.warning("Skipping %s for block %s: %s", variable.name, block_number, exc)
        return []

    findings = check_thresholds(state, variable, new_value)
    variable.past_values.add_element(new_value)
    return findings


async def handle_block(state: MonitorState, block_event: BlockEvent) -> List[Finding]:
    results = await asyncio.gather(
        *(evaluate_variable(state, variable, block_event.block_number) for variable in state.variables)
    )
    return [finding for variable_findings in results for finding in variable_findings]

"""Governor contract lifecycle and parameter-change detector."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Sequence

from ..errors import ConfigurationError
from ..io import event_signature, get_events_from_abi
from ..models import (
    DecodedLog,
    Finding,
    FindingSeverity,
    FindingType,
    MetadataValue,
    TransactionEvent,
    make_alert_id,
)
from ..utils import is_address, is_filled_string

if TYPE_CHECKING:
    from ..registry import AbiLoader, Services

logger = logging.getLogger(__name__)


class GovernanceEvent(Enum):
    PROPOSAL_CREATED = "ProposalCreated"
    VOTE_CAST = "VoteCast"
    PROPOSAL_CANCELED = "ProposalCanceled"
    PROPOSAL_EXECUTED = "ProposalExecuted"
    PROPOSAL_QUEUED = "ProposalQueued"
    QUORUM_NUMERATOR_UPDATED = "QuorumNumeratorUpdated"
    TIMELOCK_CHANGE = "TimelockChange"
    VOTING_DELAY_SET = "VotingDelaySet"
    VOTING_PERIOD_SET = "VotingPeriodSet"
    PROPOSAL_THRESHOLD_SET = "ProposalThresholdSet"
    UNRECOGNIZED = ""

    @classmethod
    def classify(cls, event_name: str) -> "GovernanceEvent":
        try:
            member = cls(event_name)
        except ValueError:
            return cls.UNRECOGNIZED
        return member


MINIMUM_EVENT_LIST = (
    GovernanceEvent.PROPOSAL_CREATED,
    GovernanceEvent.VOTE_CAST,
    GovernanceEvent.PROPOSAL_CANCELED,
    GovernanceEvent.PROPOSAL_EXECUTED,
)

VOTE_SUPPORT_TEXT = {
    0: "against",
    1: "in support of",
    2: "abstaining from",
}


@dataclass(frozen=True)
class EventSignatureSet:
    name: str
    address: str
    signatures: Sequence[str]


@dataclass
class GovernanceState:
    config: Dict[str, Any]
    contracts: List[EventSignatureSet] = field(default_factory=list)


def _stringify(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return ",".join(_stringify(item) for item in value)
    return str(value)


def _finding(
    config: Mapping[str, Any],
    title: str,
    description: str,
    suffix: str,
    metadata: Dict[str, MetadataValue],
) -> Finding:
    return Finding(
        name=f"{config['protocolName']} {title}",
        description=description,
        alert_id=make_alert_id(config["developerAbbreviation"], config["protocolAbbreviation"], suffix),
        type=FindingType.Info,
        severity=FindingSeverity.Info,
        protocol=config["protocolName"],
        metadata=metadata,
    )


def proposal_created_finding(log: DecodedLog, address: str, config: Mapping[str, Any]) -> Finding:
    args = log.args
    proposal = {
        "proposalId": _stringify(args["proposalId"]),
        "proposer": _stringify(args["proposer"]),
        "targets": _stringify(args.get("targets", [])),
        "values": _stringify(args.get("values", [])),
        "signatures": _stringify(args.get("signatures", [])),
        "calldatas": _stringify(args.get("calldatas", [])),
        "startBlock": _stringify(args.get("startBlock", "")),
        "endBlock": _stringify(args.get("endBlock", "")),
        "description": _stringify(args.get("description", "")),
    }
    return _finding(
        config,
        "Governance Proposal Created",
        f"Governance Proposal {proposal['proposalId']} was just created",
        "PROPOSAL-CREATED",
        {"address": address, **proposal},
    )


def vote_cast_finding(log: DecodedLog, address: str, config: Mapping[str, Any]) -> Finding:
    args = log.args
    support = args["support"]
    proposal_id = _stringify(args["proposalId"])
    weight = _stringify(args["weight"])

    try:
        support_text = VOTE_SUPPORT_TEXT.get(int(support))
    except (TypeError, ValueError):
        support_text = None
    if support_text is None:
        support_text = f'with unknown support "{support}" for'

    return _finding(
        config,
        "Governance Proposal Vote Cast",
        f"Vote cast with weight {weight} {support_text} proposal {proposal_id}",
        "VOTE-CAST",
        {
            "address": address,
            "voter": _stringify(args["voter"]),
            "weight": weight,
            "reason": _stringify(args.get("reason", "")),
            "proposalId": proposal_id,
        },
    )


def _lifecycle_finding(state_name: str, title: str, suffix: str, template: str, extra_args=()):
    def build(log: DecodedLog, address: str, config: Mapping[str, Any]) -> Finding:
        proposal_id = _stringify(log.args["proposalId"])
        metadata: Dict[str, MetadataValue] = {
            "address": address,
            "proposalId": proposal_id,
            "state": state_name,
        }
        for arg in extra_args:
            metadata[arg] = _stringify(log.args[arg])
        return _finding(
            config,
            title,
            template.format(proposal_id=proposal_id),
            suffix,
            metadata,
        )

    return build


def _value_change_finding(title: str, template: str, suffix: str, arg_names, metadata_names):
    old_arg, new_arg = arg_names
    old_key, new_key = metadata_names

    def build(log: DecodedLog, address: str, config: Mapping[str, Any]) -> Finding:
        old_value = _stringify(log.args[old_arg])
        new_value = _stringify(log.args[new_arg])
        return _finding(
            config,
            title,
            template.format(old=old_value, new=new_value),
            suffix,
            {"address": address, old_key: old_value, new_key: new_value},
        )

    return build


FindingBuilder = Callable[[DecodedLog, str, Mapping[str, Any]], Finding]

FINDING_BUILDERS: Dict[GovernanceEvent, FindingBuilder] = {
    GovernanceEvent.PROPOSAL_CREATED: proposal_created_finding,
    GovernanceEvent.VOTE_CAST: vote_cast_finding,
    GovernanceEvent.PROPOSAL_CANCELED: _lifecycle_finding(
        "canceled", "Governance Proposal Canceled", "GOVERNANCE-PROPOSAL-CANCELED",
        "Governance proposal {proposal_id} has been canceled",
    ),
    GovernanceEvent.PROPOSAL_EXECUTED: _lifecycle_finding(
        "executed", "Governance Proposal Executed", "GOVERNANCE-PROPOSAL-EXECUTED",
        "Governance proposal {proposal_id} has been executed",
    ),
    GovernanceEvent.PROPOSAL_QUEUED: _lifecycle_finding(
        "queued", "Governance Proposal Queued", "GOVERNANCE-PROPOSAL-QUEUED",
        "Governance Proposal {proposal_id} has been queued",
        extra_args=("eta",),
    ),
    GovernanceEvent.QUORUM_NUMERATOR_UPDATED: _value_change_finding(
        "Governance Quorum Numerator Updated",
        "Quorum numerator updated from {old} to {new}",
        "GOVERNANCE-QUORUM-NUMERATOR-UPDATED",
        ("oldQuorumNumerator", "newQuorumNumerator"),
        ("oldNumerator", "newNumerator"),
    ),
    GovernanceEvent.TIMELOCK_CHANGE: _value_change_finding(
        "Governance Timelock Address Change",
        "Timelock address changed from {old} to {new}",
        "GOVERNANCE-TIMELOCK-ADDRESS-CHANGED",
        ("oldTimelock", "newTimelock"),
        ("oldTimelockAddress", "newTimelockAddress"),
    ),
    GovernanceEvent.VOTING_DELAY_SET: _value_change_finding(
        "Governance Voting Delay Set",
        "Voting delay change from {old} to {new}",
        "GOVERNANCE-VOTING-DELAY-SET",
        ("oldVotingDelay", "newVotingDelay"),
        ("oldVotingDelay", "newVotingDelay"),
    ),
    GovernanceEvent.VOTING_PERIOD_SET: _value_change_finding(
        "Governance Voting Period Set",
        "Voting period change from {old} to {new}",
        "GOVERNANCE-VOTING-PERIOD-SET",
        ("oldVotingPeriod", "newVotingPeriod"),
        ("oldVotingPeriod", "newVotingPeriod"),
    ),
    GovernanceEvent.PROPOSAL_THRESHOLD_SET: _value_change_finding(
        "Governance Proposal Threshold Set",
        "Proposal threshold change from {old} to {new}",
        "GOVERNANCE-PROPOSAL-THRESHOLD-SET",
        ("oldProposalThreshold", "newProposalThreshold"),
        ("oldThreshold", "newThreshold"),
    ),
}

_missing_builders = set(GovernanceEvent) - {GovernanceEvent.UNRECOGNIZED} - set(FINDING_BUILDERS)
if _missing_builders:
    raise RuntimeError(f"No finding builder for {_missing_builders}")


def validate_config(config: Mapping[str, Any], abi_loader: "AbiLoader") -> Dict[str, List[Dict[str, Any]]]:
    """Check the governance configuration and return the loaded ABI per contract."""
    for key in ("developerAbbreviation", "protocolName", "protocolAbbreviation"):
        if not is_filled_string(config.get(key)):
            raise ConfigurationError(f"{key} required")

    contracts = config.get("contracts")
    if not isinstance(contracts, Mapping) or not contracts:
        raise ConfigurationError("contract keys in contracts required")

    abis: Dict[str, List[Dict[str, Any]]] = {}
    for name, entry in contracts.items():
        if not isinstance(entry, Mapping) or not entry:
            raise ConfigurationError("contract keys in contracts required")

        address = entry.get("address")
        governance = entry.get("governance") or {}
        abi_file = governance.get("abiFile") if isinstance(governance, Mapping) else None

        if not is_filled_string(address):
            raise ConfigurationError(f"No address found in configuration file for '{name}'")
        if not is_filled_string(abi_file):
            raise ConfigurationError(f"No ABI file found in configuration file for '{name}'")
        if not is_address(address):
            raise ConfigurationError(f"invalid address '{address}' for '{name}'")

        abi = abi_loader(abi_file)
        events = get_events_from_abi(abi)
        for required in MINIMUM_EVENT_LIST:
            if required.value not in events:
                raise ConfigurationError(
                    f"ABI for '{name}' does not contain minimum supported event: {required.value}"
                )
        abis[name] = abi
    return abis


async def initialize(config: Dict[str, Any], services: "Services") -> GovernanceState:
    if services.abi_loader is None:
        raise ConfigurationError("governance requires an ABI loader")
    abis = validate_config(config, services.abi_loader)

    state = GovernanceState(config=dict(config))
    for name, entry in config["contracts"].items():
        events = get_events_from_abi(abis[name])
        state.contracts.append(EventSignatureSet(
            name=name,
            address=entry["address"],
            signatures=tuple(event_signature(event) for event in events.values()),
        ))
    logger.info(
        "Watching governance events on %d contract(s) for %s",
        len(state.contracts),
        config.get("name"),
    )
    return state


async def handle_transaction(state: GovernanceState, tx_event: TransactionEvent) -> List[Finding]:
    findings: List[Finding] = []
    for contract in state.contracts:
        logs = tx_event.filter_log(contract.signatures, contract.address)
        for log in logs:
            kind = GovernanceEvent.classify(log.name)
            if kind is GovernanceEvent.UNRECOGNIZED:
                continue
            try:
                findings.append(FINDING_BUILDERS[kind](log, contract.address, state.config))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(
                    "Skipping malformed %s log %s in tx %s: %s",
                    log.name,
                    log.log_index,
                    tx_event.hash,
                    exc,
                )
    return findings

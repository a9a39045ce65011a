from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from detector_engine.io import event_signature, get_events_from_abi
from detector_engine.models import ContractRef, DecodedLog

GOVERNOR_ADDRESS = "0x5e4be8bc9637f0eaa1a755019e06a68ce081d58f"
SECOND_GOVERNOR_ADDRESS = "0xc0da02939e1441f497fd74f78ce7decb17b66529"
POOL_ADDRESS = "0xBC4CA0EdA7647A8aB7C2061c2E118A18a936f13D"
WATCHED_ADDRESS = "0xBC4CA0EdA7647A8aB7C2061c2E118A18a936f13D"


def _event(name: str, *inputs: Tuple[str, str]) -> Dict[str, Any]:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [{"name": arg, "type": abi_type, "indexed": False} for arg, abi_type in inputs],
    }


GOVERNOR_ABI: List[Dict[str, Any]] = [
    _event(
        "ProposalCreated",
        ("proposalId", "uint256"),
        ("proposer", "address"),
        ("targets", "address[]"),
        ("values", "uint256[]"),
        ("signatures", "string[]"),
        ("calldatas", "bytes[]"),
        ("startBlock", "uint256"),
        ("endBlock", "uint256"),
        ("description", "string"),
    ),
    _event(
        "VoteCast",
        ("voter", "address"),
        ("proposalId", "uint256"),
        ("support", "uint8"),
        ("weight", "uint256"),
        ("reason", "string"),
    ),
    _event("ProposalCanceled", ("proposalId", "uint256")),
    _event("ProposalExecuted", ("proposalId", "uint256")),
    _event("ProposalQueued", ("proposalId", "uint256"), ("eta", "uint256")),
    _event("QuorumNumeratorUpdated", ("oldQuorumNumerator", "uint256"), ("newQuorumNumerator", "uint256")),
    _event("TimelockChange", ("oldTimelock", "address"), ("newTimelock", "address")),
    _event("VotingDelaySet", ("oldVotingDelay", "uint256"), ("newVotingDelay", "uint256")),
    _event("VotingPeriodSet", ("oldVotingPeriod", "uint256"), ("newVotingPeriod", "uint256")),
    _event("ProposalThresholdSet", ("oldProposalThreshold", "uint256"), ("newProposalThreshold", "uint256")),
    _event("Paused", ("account", "address")),
    {
        "type": "function",
        "name": "votingDelay",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
]

POOL_ABI: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": "totalSupply",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
]

GOVERNOR_SIGNATURES = {
    name: event_signature(entry) for name, entry in get_events_from_abi(GOVERNOR_ABI).items()
}


def make_log(name: str, address: str = GOVERNOR_ADDRESS, log_index: int = 0, **args: Any) -> DecodedLog:
    return DecodedLog(
        name=name,
        signature=GOVERNOR_SIGNATURES.get(name, f"{name}()"),
        address=address,
        args=args,
        log_index=log_index,
    )


class FakeReader:
    """Scripted contract reader: each (contract, function) pops its next value."""

    def __init__(
        self,
        values: Optional[Dict[Tuple[str, str], Sequence[Any]]] = None,
        delays: Optional[Dict[Tuple[str, str], float]] = None,
    ) -> None:
        self.values = {key: list(seq) for key, seq in (values or {}).items()}
        self.delays = dict(delays or {})
        self.calls: List[Tuple[Tuple[str, str], Optional[int]]] = []

    async def read(self, contract: ContractRef, function_name: str, block_number: Optional[int] = None) -> Any:
        key = (contract.name, function_name)
        self.calls.append((key, block_number))
        delay = self.delays.get(key, 0)
        if delay:
            await asyncio.sleep(delay)
        value = self.values[key].pop(0)
        if isinstance(value, BaseException):
            raise value
        return value


@pytest.fixture
def protocol_fields() -> Dict[str, str]:
    return {
        "developerAbbreviation": "DEVTEST",
        "protocolName": "PROTOTEST",
        "protocolAbbreviation": "PT",
    }


@pytest.fixture
def abi_loader():
    abis = {"Governor.json": GOVERNOR_ABI, "Pool.json": POOL_ABI}

    def load(abi_file: str) -> List[Dict[str, Any]]:
        return abis[abi_file]

    return load


@pytest.fixture
def governance_config(protocol_fields) -> Dict[str, Any]:
    return {
        **protocol_fields,
        "agentType": "governance",
        "name": "governor-watch",
        "contracts": {
            "Governor": {
                "address": GOVERNOR_ADDRESS,
                "governance": {"abiFile": "Governor.json"},
            },
        },
    }


@pytest.fixture
def address_watch_config(protocol_fields) -> Dict[str, Any]:
    return {
        **protocol_fields,
        "agentType": "address-watch",
        "name": "test-agent",
        "contracts": {
            "contractName1": {
                "name": "accountName1",
                "address": WATCHED_ADDRESS,
                "watch": {"type": "Info", "severity": "Info"},
            },
        },
    }

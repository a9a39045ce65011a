from __future__ import annotations

import asyncio
from types import SimpleNamespace

from web3 import AsyncWeb3

from conftest import POOL_ABI, POOL_ADDRESS
from detector_engine.models import ContractRef
from detector_engine.reader import Web3ContractReader


class _StubFunction:
    def __init__(self, calls, value):
        self.calls = calls
        self.value = value

    async def call(self, block_identifier="latest"):
        self.calls.append(block_identifier)
        return self.value


def _stub_w3(calls, value):
    def contract(address, abi):
        calls.append((address, len(abi)))
        return SimpleNamespace(functions=SimpleNamespace(totalSupply=lambda: _StubFunction(calls, value)))

    return SimpleNamespace(eth=SimpleNamespace(contract=contract))


def test_reads_getter_at_requested_block():
    calls = []
    reader = Web3ContractReader(_stub_w3(calls, 10**24))
    pool = ContractRef(name="Pool", address=POOL_ADDRESS.lower(), abi=POOL_ABI)

    value = asyncio.run(reader.read(pool, "totalSupply", 123))
    latest = asyncio.run(reader.read(pool, "totalSupply"))

    assert value == latest == 10**24
    assert calls == [(POOL_ADDRESS, 1), 123, (POOL_ADDRESS, 1), "latest"]


def test_from_url_builds_an_async_client():
    reader = Web3ContractReader.from_url("http://127.0.0.1:8545")

    assert isinstance(reader.w3, AsyncWeb3)

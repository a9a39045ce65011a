"""Read-only contract access used by block-polling detectors."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from web3 import AsyncWeb3

from .models import ContractRef

logger = logging.getLogger(__name__)


class ContractReader(Protocol):
    async def read(
        self,
        contract: ContractRef,
        function_name: str,
        block_number: Optional[int] = None,
    ) -> Any:
        ...


class Web3ContractReader:
    """Calls zero-argument view functions through web3's async client."""

    def __init__(self, w3: AsyncWeb3) -> None:
        self.w3 = w3

    @classmethod
    def from_url(cls, rpc_url: str) -> "Web3ContractReader":
        return cls(AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url)))

    async def read(
        self,
        contract: ContractRef,
        function_name: str,
        block_number: Optional[int] = None,
    ) -> Any:
        logger.debug(
            "Reading %s.%s at block %s", contract.name, function_name, block_number
        )
        checksum = AsyncWeb3.to_checksum_address(contract.address)
        instance = self.w3.eth.contract(address=checksum, abi=contract.abi)
        function = getattr(instance.functions, function_name)()
        block_identifier = block_number if block_number is not None else "latest"
        return await function.call(block_identifier=block_identifier)

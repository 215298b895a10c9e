"""UmaLedgerClient: UMA OptimisticOracleV2 ledger over AsyncWeb3.

Transactions are signed by the account configured on the AsyncWeb3 instance
(see ContractUtility) and confirmed by waiting for the receipt.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from web3 import AsyncWeb3

from ..ContractUtility import ContractUtility
from .base import LedgerClient, LedgerError, LedgerReceipt

if TYPE_CHECKING:
    from web3.contract.async_contract import AsyncContractFunction

logger = logging.getLogger(__name__)

# UMA optimistic oracle on Polygon PoS.
DEFAULT_ORACLE_ADDRESS = "0x5953f2538F613E05bAED8A5AeFa8e6622467AD3D"


class UmaLedgerClient(LedgerClient):
    """Ledger client backed by the UMA OptimisticOracleV2 contract.

    The signing account acts as both requester and proposer/disputer.

    :ivar w3: AsyncWeb3 instance with a default signing account.
    :ivar oracle_address: OptimisticOracleV2 contract address.
    :ivar receipt_timeout: Seconds to wait for each transaction receipt.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        oracle_address: str = DEFAULT_ORACLE_ADDRESS,
        receipt_timeout: float = 120.0,
    ) -> None:
        self.w3 = w3
        self.oracle_address = AsyncWeb3.to_checksum_address(oracle_address)
        self.receipt_timeout = receipt_timeout
        self.contract = w3.eth.contract(
            address=self.oracle_address,
            abi=ContractUtility.get_contract("OptimisticOracleV2"),
        )

    @property
    def requester(self) -> str:
        account = self.w3.eth.default_account
        if not account:
            raise LedgerError("No signing account configured for the UMA ledger")
        return str(account)

    async def _transact(self, action: str, fn: AsyncContractFunction) -> LedgerReceipt:
        """Send a contract transaction and wait for its receipt.

        :param action: Action name for logging.
        :param fn: Bound contract function.
        :returns: LedgerReceipt with the receipt status.
        :raises LedgerError: If submission or confirmation fails.
        """
        try:
            tx_hash = await fn.transact({"from": self.requester})
            receipt: Any = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout
            )
        except LedgerError:
            raise
        except Exception as e:
            raise LedgerError(f"UMA {action} failed: {e}") from e

        result = LedgerReceipt(
            tx_hash=AsyncWeb3.to_hex(tx_hash),
            success=receipt["status"] == 1,
            block_number=receipt.get("blockNumber"),
        )
        logger.info(f"UMA {action} tx {result.tx_hash} (success={result.success})")
        return result

    async def request_price(
        self,
        identifier: bytes,
        timestamp: int,
        ancillary_data: bytes,
        currency: str,
        reward: int,
    ) -> LedgerReceipt:
        fn = self.contract.functions.requestPrice(
            identifier,
            timestamp,
            ancillary_data,
            AsyncWeb3.to_checksum_address(currency),
            reward,
        )
        return await self._transact("requestPrice", fn)

    async def propose_price(
        self,
        identifier: bytes,
        timestamp: int,
        ancillary_data: bytes,
        proposed_price: int,
    ) -> LedgerReceipt:
        fn = self.contract.functions.proposePrice(
            self.requester, identifier, timestamp, ancillary_data, proposed_price
        )
        return await self._transact("proposePrice", fn)

    async def dispute_price(
        self,
        identifier: bytes,
        timestamp: int,
        ancillary_data: bytes,
    ) -> LedgerReceipt:
        fn = self.contract.functions.disputePrice(
            self.requester, identifier, timestamp, ancillary_data
        )
        return await self._transact("disputePrice", fn)

    async def settle(
        self,
        identifier: bytes,
        timestamp: int,
        ancillary_data: bytes,
    ) -> LedgerReceipt:
        fn = self.contract.functions.settle(
            self.requester, identifier, timestamp, ancillary_data
        )
        return await self._transact("settle", fn)

"""LedgerClient: Abstract interface for the bonding/settlement ledger.

The optimistic oracle coordinator never moves value itself. Each state
transition is mirrored by one ledger call, and the coordinator only commits
the transition once the call returns a successful receipt.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class LedgerError(Exception):
    """Raised when a ledger call cannot be submitted or confirmed."""

    pass


@dataclass(frozen=True)
class LedgerReceipt:
    """Outcome of a ledger transaction.

    :ivar tx_hash: Transaction handle (0x-prefixed hash).
    :ivar success: True if the transaction was confirmed successfully.
    :ivar block_number: Block the transaction was included in, if known.
    """

    tx_hash: str
    success: bool
    block_number: int | None = None


class LedgerClient(ABC):
    """Abstract base class for ledger implementations.

    Every method submits one transaction and waits for its receipt.
    Implementations raise LedgerError on transport or signing failures and
    return an unsuccessful receipt when the transaction reverts.
    """

    @abstractmethod
    async def request_price(
        self,
        identifier: bytes,
        timestamp: int,
        ancillary_data: bytes,
        currency: str,
        reward: int,
    ) -> LedgerReceipt:
        """Submit a new price request with its reward.

        :param identifier: 32-byte request identifier.
        :param timestamp: Resolution timestamp of the request.
        :param ancillary_data: Encoded question data.
        :param currency: Bond and reward currency address.
        :param reward: Reward in currency base units.
        :returns: Transaction receipt.
        """
        pass

    @abstractmethod
    async def propose_price(
        self,
        identifier: bytes,
        timestamp: int,
        ancillary_data: bytes,
        proposed_price: int,
    ) -> LedgerReceipt:
        """Submit a bonded proposal for a request.

        :param proposed_price: Proposed value (1e18 for YES, 0 for NO).
        :returns: Transaction receipt.
        """
        pass

    @abstractmethod
    async def dispute_price(
        self,
        identifier: bytes,
        timestamp: int,
        ancillary_data: bytes,
    ) -> LedgerReceipt:
        """Submit a bonded dispute of the current proposal.

        :returns: Transaction receipt.
        """
        pass

    @abstractmethod
    async def settle(
        self,
        identifier: bytes,
        timestamp: int,
        ancillary_data: bytes,
    ) -> LedgerReceipt:
        """Settle a request and release bonds and reward.

        :returns: Transaction receipt.
        """
        pass

"""Chainlink AggregatorV3 reader.

Reads ``latestRoundData()`` and ``decimals()`` from on-chain aggregator
contracts. Feed ids are aggregator contract addresses.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from web3 import AsyncWeb3

from ..ContractUtility import ContractUtility
from .base import BaseFeedReader, FeedReaderError, RoundData, register_reader

if TYPE_CHECKING:
    from web3.contract import AsyncContract

logger = logging.getLogger(__name__)


@register_reader
class ChainlinkFeedReader(BaseFeedReader):
    """Reader for Chainlink price feed aggregators.

    :ivar w3: AsyncWeb3 instance connected to the feed network.
    """

    name = "chainlink"

    def __init__(
        self,
        w3: AsyncWeb3 | None = None,
        network: str = "polygon",
        timeout: float | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the reader.

        :param w3: Optional AsyncWeb3 instance. Created for ``network`` if omitted.
        :param network: Network name or RPC URL used when ``w3`` is not given.
        :param timeout: Request timeout in seconds.
        """
        super().__init__(timeout=timeout)
        self.w3 = w3 if w3 is not None else ContractUtility(network).w3
        self._abi = ContractUtility.get_contract("AggregatorV3Interface")
        self._contracts: dict[str, AsyncContract] = {}
        # Decimals never change for a deployed aggregator.
        self._decimals: dict[str, int] = {}

    def _contract(self, feed_id: str) -> AsyncContract:
        if feed_id not in self._contracts:
            address = AsyncWeb3.to_checksum_address(feed_id)
            self._contracts[feed_id] = self.w3.eth.contract(address=address, abi=self._abi)
        return self._contracts[feed_id]

    async def latest_round(self, feed_id: str) -> RoundData:
        try:
            contract = self._contract(feed_id)
            round_id, answer, _started_at, updated_at, _answered_in_round = (
                await contract.functions.latestRoundData().call()
            )
            if feed_id not in self._decimals:
                self._decimals[feed_id] = await contract.functions.decimals().call()
        except Exception as e:
            raise FeedReaderError(f"[chainlink] Failed to read feed {feed_id}: {e}") from e

        round_data = RoundData(
            answer=int(answer),
            decimals=int(self._decimals[feed_id]),
            updated_at=int(updated_at),
            round_id=int(round_id),
        )
        logger.debug(f"[chainlink] {feed_id}: {round_data}")
        return round_data

"""ContractUtility: AsyncWeb3 initialization and contract ABI loading."""

import json
import os
from pathlib import Path

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.middleware import SignAndSendRawMiddlewareBuilder

# Public RPC endpoints per network.
NETWORKS = {
    "polygon": "https://polygon-rpc.com",
    "polygon-amoy": "https://rpc-amoy.polygon.technology",
    "localnet": "http://localhost:8545",
}


class ContractUtility:
    """Utility for AsyncWeb3 connection and contract ABI loading.

    :ivar network: Network RPC URL.
    :ivar w3: Configured AsyncWeb3 instance.
    :ivar account: Signing account, if a private key was supplied.
    """

    def __init__(self, network_name: str, private_key: str | None = None) -> None:
        """Initialize the contract utility.

        :param network_name: Name of the network to connect to, or an RPC URL.
        :param private_key: Optional hex private key used to sign transactions.
        """
        # RPC_URL env var overrides the default for the network
        self.network = os.environ.get("RPC_URL") or NETWORKS.get(network_name, network_name)

        self.w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(self.network))
        self.account: LocalAccount | None = None
        if private_key:
            self.account = Account.from_key(private_key)
            self.w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(self.account))
            self.w3.eth.default_account = self.account.address

    @staticmethod
    def get_contract(contract_name: str) -> list:
        """Fetch the ABI of a contract from the bundled abi folder.

        :param contract_name: Name of the contract (e.g., "AggregatorV3Interface").
        :returns: Contract ABI.
        """
        output_path = (Path(__file__).parent.parent / "abi" / f"{contract_name}.json").resolve()

        with open(output_path, "r") as file:
            contract_data = json.load(file)

        return contract_data["abi"]

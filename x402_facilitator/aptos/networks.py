"""
Aptos network identifiers accepted in payment requirements
Supports CAIP-2 ("aptos:1") and legacy ("aptos-mainnet") forms
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class AptosNetwork:
    name: str
    chain_id: Optional[int]
    gas_station_url: str


MAINNET = AptosNetwork(
    name="mainnet",
    chain_id=1,
    gas_station_url="https://api.mainnet.aptoslabs.com/gs/v1",
)
TESTNET = AptosNetwork(
    name="testnet",
    chain_id=2,
    gas_station_url="https://api.testnet.aptoslabs.com/gs/v1",
)
# Devnet is reset regularly and its chain id changes with it
DEVNET = AptosNetwork(
    name="devnet",
    chain_id=None,
    gas_station_url="https://api.devnet.aptoslabs.com/gs/v1",
)

NETWORKS: Dict[str, AptosNetwork] = {
    "aptos:1": MAINNET,
    "aptos:2": TESTNET,
    "aptos-mainnet": MAINNET,
    "aptos-testnet": TESTNET,
    "aptos-devnet": DEVNET,
}

SUPPORTED_NETWORKS = ("aptos:1", "aptos:2")


def resolve_network(network: Optional[str]) -> Optional[AptosNetwork]:
    """Look up a network identifier, returning None when it is not an Aptos network we know"""
    if not network:
        return None
    return NETWORKS.get(network.strip().lower())

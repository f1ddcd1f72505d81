"""
Aptos chain layer for the facilitator
BCS transaction decoding, fullnode REST client and gas station client
"""

from x402_facilitator.aptos.addresses import normalize_address, normalize_asset
from x402_facilitator.aptos.client import AptosRestClient, ChainAdapter, ChainError, SimulationResult
from x402_facilitator.aptos.gas_station import GasStationClient, SponsorResult
from x402_facilitator.aptos.transactions import DecodedTransfer, TransactionDecodeError, decode_transaction

__all__ = [
    "normalize_address",
    "normalize_asset",
    "AptosRestClient",
    "ChainAdapter",
    "ChainError",
    "SimulationResult",
    "GasStationClient",
    "SponsorResult",
    "DecodedTransfer",
    "TransactionDecodeError",
    "decode_transaction",
]

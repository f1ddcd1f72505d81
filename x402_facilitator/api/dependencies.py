"""
Shared dependencies for the facilitator API: rate limiter, chain clients, payment processor
"""

from typing import Dict, Optional

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address
import structlog

from x402_facilitator.aptos.client import AptosRestClient
from x402_facilitator.aptos.gas_station import GasStationClient
from x402_facilitator.aptos.networks import AptosNetwork
from x402_facilitator.config import get_facilitator_config
from x402_facilitator.payments.cache import IdempotencyCache
from x402_facilitator.payments.processor import PaymentProcessor

logger = structlog.get_logger()


def get_client_key(request: Request) -> str:
    """Get client identifier for rate limiting - uses IP address"""
    return get_remote_address(request)


def get_rate_limit() -> str:
    return get_facilitator_config().rate_limit


limiter = Limiter(key_func=get_client_key)

# One client per network, created on first use
_chain_clients: Dict[str, AptosRestClient] = {}
_gas_stations: Dict[str, GasStationClient] = {}
_processor: Optional[PaymentProcessor] = None


def get_chain_client(network: AptosNetwork) -> AptosRestClient:
    client = _chain_clients.get(network.name)
    if client is None:
        config = get_facilitator_config()
        client = AptosRestClient(
            node_url=config.node_url_for(network.name),
            api_key=config.aptos_api_key,
            timeout=config.chain_request_timeout,
            poll_interval=config.confirmation_poll_interval,
        )
        _chain_clients[network.name] = client
        logger.info("chain_client_created", network=network.name, node_url=client.node_url)
    return client


def get_gas_station(network: AptosNetwork) -> GasStationClient:
    station = _gas_stations.get(network.name)
    if station is None:
        config = get_facilitator_config()
        station = GasStationClient(
            base_url=config.gas_station_url or network.gas_station_url,
            api_key=config.gas_station_api_key,
            timeout=config.chain_request_timeout,
        )
        _gas_stations[network.name] = station
    return station


def get_payment_processor() -> PaymentProcessor:
    """Get or create the payment processor singleton"""
    global _processor
    if _processor is None:
        config = get_facilitator_config()
        _processor = PaymentProcessor(
            chain_factory=get_chain_client,
            gas_station_factory=get_gas_station,
            cache=IdempotencyCache(ttl_seconds=config.idempotency_ttl_seconds),
            config=config,
        )
    return _processor


async def close_clients() -> None:
    """Close every HTTP client and forget the processor"""
    global _processor
    for client in list(_chain_clients.values()) + list(_gas_stations.values()):
        await client.close()
    _chain_clients.clear()
    _gas_stations.clear()
    _processor = None

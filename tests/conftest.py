"""
Pytest configuration and shared fixtures
"""

import asyncio
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from x402_facilitator.aptos.client import ConfirmationResult, SimulationResult
from x402_facilitator.aptos.gas_station import NOT_CONFIGURED_ERROR, SponsorResult
from x402_facilitator.config import FacilitatorConfig
from x402_facilitator.payments.cache import IdempotencyCache
from x402_facilitator.payments.processor import PaymentProcessor

TX_HASH = "0x" + "ab" * 32
SPONSORED_TX_HASH = "0x" + "cd" * 32


class FakeChain:
    """In-memory ChainAdapter that records every call"""

    def __init__(self):
        self.simulation = SimulationResult(success=True, vm_status="Executed successfully", gas_used=12)
        self.simulate_error: Optional[Exception] = None
        self.submit_error: Optional[Exception] = None
        self.balance = 10**12
        self.balance_error: Optional[Exception] = None
        self.confirmation = ConfirmationResult(confirmed=True, success=True, vm_status="Executed successfully")
        self.release_confirmation: Optional[asyncio.Event] = None
        self.tx_hash = TX_HASH
        self.simulated: List = []
        self.submitted: List = []
        self.confirmed: List[str] = []
        self.closed = False

    async def simulate(self, decoded):
        self.simulated.append(decoded)
        if self.simulate_error is not None:
            raise self.simulate_error
        return self.simulation

    async def submit(self, decoded):
        self.submitted.append(decoded)
        if self.submit_error is not None:
            raise self.submit_error
        return self.tx_hash

    async def wait_for_confirmation(self, tx_hash, timeout):
        if self.release_confirmation is not None:
            await self.release_confirmation.wait()
        self.confirmed.append(tx_hash)
        return self.confirmation

    async def get_balance(self, address, asset=None):
        if self.balance_error is not None:
            raise self.balance_error
        return self.balance

    async def close(self):
        self.closed = True


class FakeGasStation:
    """Stands in for GasStationClient"""

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.result = SponsorResult(success=True, transaction_hash=SPONSORED_TX_HASH)
        self.calls: List = []

    def is_configured(self) -> bool:
        return self.configured

    async def sponsor_and_submit(self, transaction_bytes, authenticator_bytes):
        if not self.configured:
            return SponsorResult(success=False, error=NOT_CONFIGURED_ERROR)
        self.calls.append((transaction_bytes, authenticator_bytes))
        return self.result

    async def close(self):
        pass


@pytest.fixture
def fake_chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def fake_gas_station() -> FakeGasStation:
    return FakeGasStation()


@pytest.fixture
def facilitator_config() -> FacilitatorConfig:
    """Config independent of the environment and any .env file"""
    return FacilitatorConfig(_env_file=None, confirmation_timeout=5.0, settle_balance_check=True)


@pytest.fixture
def cache() -> IdempotencyCache:
    return IdempotencyCache(ttl_seconds=300)


@pytest.fixture
def processor(fake_chain, fake_gas_station, cache, facilitator_config) -> PaymentProcessor:
    return PaymentProcessor(
        chain_factory=lambda network: fake_chain,
        gas_station_factory=lambda network: fake_gas_station,
        cache=cache,
        config=facilitator_config,
    )


@pytest.fixture
def client(processor):
    """FastAPI test client wired to the fake chain"""
    from x402_facilitator.api.dependencies import get_payment_processor, limiter
    from x402_facilitator.api.server import app

    limiter.reset()
    app.dependency_overrides[get_payment_processor] = lambda: processor
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

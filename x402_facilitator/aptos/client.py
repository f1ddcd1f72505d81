"""
Aptos fullnode REST client
Dry-run simulation, BCS transaction submission, confirmation polling and balance queries
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
import structlog

from x402_facilitator.aptos.addresses import APT_COIN_TYPE, is_apt, normalize_address
from x402_facilitator.aptos.transactions import DecodedTransfer, build_signed_transaction

logger = structlog.get_logger()

BCS_SIGNED_TRANSACTION = "application/x.aptos.signed_transaction+bcs"


@dataclass(frozen=True)
class SimulationResult:
    success: bool
    vm_status: str
    gas_used: int = 0


@dataclass(frozen=True)
class ConfirmationResult:
    confirmed: bool
    success: Optional[bool] = None
    vm_status: Optional[str] = None
    timed_out: bool = False


class ChainError(Exception):
    """Fullnode rejected a request (non-2xx response)"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        vm_error_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.vm_error_code = vm_error_code

    def __str__(self) -> str:
        if self.error_code and self.error_code not in self.message:
            return f"{self.error_code}: {self.message}"
        return self.message


class ChainAdapter(Protocol):
    """What the verify/settle engines need from a chain"""

    async def simulate(self, decoded: DecodedTransfer) -> SimulationResult:
        ...

    async def submit(self, decoded: DecodedTransfer) -> str:
        ...

    async def wait_for_confirmation(self, tx_hash: str, timeout: float) -> ConfirmationResult:
        ...

    async def get_balance(self, address: str, asset: Optional[str] = None) -> int:
        ...

    async def close(self) -> None:
        ...


class AptosRestClient:
    """
    Thin async client for the Aptos fullnode REST API.

    Every request is bounded by the client's timeout; nothing here retries.
    """

    def __init__(
        self,
        node_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        poll_interval: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self.node_url = node_url.rstrip("/")
        self.poll_interval = poll_interval
        self._client = httpx.AsyncClient(
            base_url=self.node_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def simulate(self, decoded: DecodedTransfer) -> SimulationResult:
        """Dry-run the transaction with zeroed signatures against current chain state"""
        response = await self._client.post(
            "/transactions/simulate",
            content=build_signed_transaction(decoded, for_simulation=True),
            headers={"Content-Type": BCS_SIGNED_TRANSACTION},
        )
        _raise_for_error(response)

        results = response.json()
        if not isinstance(results, list) or not results:
            raise ChainError("Empty simulation response", status_code=response.status_code)

        result = results[0]
        return SimulationResult(
            success=bool(result.get("success")),
            vm_status=str(result.get("vm_status", "")),
            gas_used=int(result.get("gas_used", 0) or 0),
        )

    async def submit(self, decoded: DecodedTransfer) -> str:
        """Submit the signed transaction and return its hash"""
        response = await self._client.post(
            "/transactions",
            content=build_signed_transaction(decoded),
            headers={"Content-Type": BCS_SIGNED_TRANSACTION},
        )
        _raise_for_error(response)

        tx_hash = response.json().get("hash")
        if not tx_hash:
            raise ChainError("Submission response did not include a transaction hash", status_code=response.status_code)

        logger.debug("aptos_transaction_submitted", tx_hash=tx_hash, node=self.node_url)
        return tx_hash

    async def wait_for_confirmation(self, tx_hash: str, timeout: float) -> ConfirmationResult:
        """Poll until the transaction leaves the mempool or the timeout elapses"""
        try:
            return await asyncio.wait_for(self._poll_transaction(tx_hash), timeout=timeout)
        except asyncio.TimeoutError:
            return ConfirmationResult(confirmed=False, timed_out=True)

    async def _poll_transaction(self, tx_hash: str) -> ConfirmationResult:
        while True:
            response = await self._client.get(f"/transactions/by_hash/{tx_hash}")
            if response.status_code != 404:
                _raise_for_error(response)
                data = response.json()
                if data.get("type") != "pending_transaction":
                    return ConfirmationResult(
                        confirmed=True,
                        success=bool(data.get("success")),
                        vm_status=data.get("vm_status"),
                    )
            await asyncio.sleep(self.poll_interval)

    async def get_balance(self, address: str, asset: Optional[str] = None) -> int:
        """
        Balance of an account in the smallest unit.

        Args:
            address: Account address
            asset: Fungible asset metadata address or coin type; APT when omitted
        """
        owner = normalize_address(address)
        if asset is None or is_apt(asset):
            body = {"function": "0x1::coin::balance", "type_arguments": [APT_COIN_TYPE], "arguments": [owner]}
        elif "::" in asset:
            body = {"function": "0x1::coin::balance", "type_arguments": [asset], "arguments": [owner]}
        else:
            body = {
                "function": "0x1::primary_fungible_store::balance",
                "type_arguments": ["0x1::fungible_asset::Metadata"],
                "arguments": [owner, normalize_address(asset)],
            }

        response = await self._client.post("/view", json=body)
        _raise_for_error(response)
        values = response.json()
        return int(values[0])

    async def close(self) -> None:
        await self._client.aclose()


def _raise_for_error(response: httpx.Response) -> None:
    if response.is_success:
        return

    message = response.text
    error_code = None
    vm_error_code = None
    try:
        data = response.json()
        if isinstance(data, dict):
            message = data.get("message", message)
            error_code = data.get("error_code")
            vm_error_code = data.get("vm_error_code")
    except ValueError:
        pass

    raise ChainError(
        message or f"HTTP {response.status_code}",
        status_code=response.status_code,
        error_code=error_code,
        vm_error_code=vm_error_code,
    )

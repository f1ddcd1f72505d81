"""
Gas station client for sponsored (fee payer) transactions
The gas station signs as fee payer and submits on the payer's behalf
"""

from dataclasses import dataclass
from typing import Optional

import httpx
import structlog

logger = structlog.get_logger()

NOT_CONFIGURED_ERROR = "Gas station not configured. Set GAS_STATION_API_KEY."


@dataclass(frozen=True)
class SponsorResult:
    success: bool
    transaction_hash: Optional[str] = None
    error: Optional[str] = None


class GasStationClient:
    """
    Client for a hosted gas station's signAndSubmit API.

    Retries and backoff are the gas station's concern; a single call here
    either yields a transaction hash or an error string.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._client: Optional[httpx.AsyncClient] = None
        if self.is_configured():
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
                timeout=httpx.Timeout(timeout),
                transport=transport,
            )
        else:
            logger.warning("gas_station_not_configured", message="Sponsored settlement disabled")

    def is_configured(self) -> bool:
        return bool(self._api_key and self.base_url)

    async def sponsor_and_submit(self, transaction_bytes: bytes, authenticator_bytes: bytes) -> SponsorResult:
        """
        Ask the gas station to add its fee payer signature and submit.

        Args:
            transaction_bytes: BCS SimpleTransaction with the fee payer slot set
            authenticator_bytes: BCS AccountAuthenticator of the sender

        Returns:
            SponsorResult with the transaction hash on success
        """
        if self._client is None:
            return SponsorResult(success=False, error=NOT_CONFIGURED_ERROR)

        try:
            response = await self._client.post(
                "/api/transaction/signAndSubmit",
                json={
                    "transactionBytes": list(transaction_bytes),
                    "senderAuth": list(authenticator_bytes),
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            logger.error("gas_station_rejected", status_code=e.response.status_code, error=detail)
            return SponsorResult(success=False, error=f"Gas station rejected transaction: {detail}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("gas_station_request_failed", error=str(e))
            return SponsorResult(success=False, error=f"Gas station request failed: {e}")

        tx_hash = (data.get("transactionHash") or data.get("hash")) if isinstance(data, dict) else None
        if not tx_hash:
            return SponsorResult(success=False, error="Gas station response did not include a transaction hash")

        logger.info("gas_station_submitted", tx_hash=tx_hash)
        return SponsorResult(success=True, transaction_hash=tx_hash)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)
    return str(data)

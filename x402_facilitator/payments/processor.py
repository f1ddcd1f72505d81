"""
Payment processor for the x402 protocol on Aptos
Verifies signed transfers against payment requirements and settles them on-chain
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional, Set, Tuple

import httpx
import structlog

from x402_facilitator.aptos.addresses import is_apt
from x402_facilitator.aptos.client import ChainAdapter, ChainError
from x402_facilitator.aptos.gas_station import NOT_CONFIGURED_ERROR, GasStationClient
from x402_facilitator.aptos.networks import AptosNetwork, resolve_network
from x402_facilitator.aptos.transactions import DecodedTransfer, TransactionDecodeError, decode_transaction
from x402_facilitator.config import FacilitatorConfig
from x402_facilitator.payments.cache import IdempotencyCache, fingerprint
from x402_facilitator.payments.codec import EncodedPayment, decode_payment_header
from x402_facilitator.payments.errors import (
    ConflictError,
    DecodeError,
    ErrorKind,
    FacilitatorError,
    FieldMismatchError,
    SimulationError,
    SponsorUnavailableError,
    SubmissionError,
)
from x402_facilitator.payments.matcher import check_chain_id, check_protocol_fields, match_requirements
from x402_facilitator.payments.models import (
    SettleRequest,
    SettleResponse,
    VerifyRequest,
    VerifyResponse,
)

logger = structlog.get_logger()

ChainFactory = Callable[[AptosNetwork], ChainAdapter]
GasStationFactory = Callable[[AptosNetwork], GasStationClient]

# Submission errors meaning this exact payload (or its sequence number) already reached the chain
CONFLICT_MARKERS = (
    "SEQUENCE_NUMBER_TOO_OLD",
    "INVALID_SEQ_NUMBER",
    "already submitted",
    "transaction_already_exists",
    "already in mempool",
)
SUBMISSION_CATEGORIES = (
    "INSUFFICIENT_BALANCE_FOR_TRANSACTION_FEE",
    "SEQUENCE_NUMBER_MISMATCH",
    "INVALID_TRANSACTION",
)
FEE_PAYER_NOT_SPONSORED = "Fee payer transaction requires sponsored payment requirements"


@dataclass(frozen=True)
class SettlementOutcome:
    """Settle verdict plus the error kind the API maps to a status code"""
    response: SettleResponse
    kind: Optional[ErrorKind] = None
    cached: bool = False


def classify_submission_error(message: str) -> FacilitatorError:
    """Turn a chain or gas station error message into CONFLICT or SUBMISSION_FAILURE"""
    lowered = message.lower()
    if any(marker.lower() in lowered for marker in CONFLICT_MARKERS):
        return ConflictError(f"Transaction already used: {message}")
    upper = message.upper()
    for category in SUBMISSION_CATEGORIES:
        if category in upper and not upper.startswith(category):
            return SubmissionError(f"{category}: {message}")
    return SubmissionError(message)


class PaymentProcessor:
    """
    Handles the facilitator side of the x402 flow:
    - verify: decode, match against requirements, simulate
    - settle: decode, deduplicate, match, submit (directly or via the gas station)

    Settlement returns as soon as the chain accepts the transaction; confirmation
    runs in a detached task whose outcome is only logged.
    """

    def __init__(
        self,
        chain_factory: ChainFactory,
        gas_station_factory: GasStationFactory,
        cache: IdempotencyCache,
        config: FacilitatorConfig,
    ):
        self._chain_factory = chain_factory
        self._gas_station_factory = gas_station_factory
        self.cache = cache
        self.config = config
        self._pending: Set[asyncio.Task] = set()

    def _decode(self, request: VerifyRequest) -> Tuple[EncodedPayment, DecodedTransfer, AptosNetwork]:
        requirements = request.payment_requirements
        encoded = decode_payment_header(request.payment_header, request.x402_version)
        check_protocol_fields(encoded, requirements, request.x402_version)

        try:
            decoded = decode_transaction(encoded.transaction_bytes, encoded.signature_bytes)
        except TransactionDecodeError as e:
            raise DecodeError(str(e)) from e

        check_chain_id(decoded, requirements)
        return encoded, decoded, resolve_network(requirements.network)

    async def verify(self, request: VerifyRequest) -> VerifyResponse:
        """
        Verify a payment without touching chain state.

        Args:
            request: Payment header plus the seller's current requirements

        Returns:
            VerifyResponse; every expected failure is an invalid verdict, never an exception
        """
        requirements = request.payment_requirements
        try:
            _, decoded, network = self._decode(request)
        except FacilitatorError as e:
            logger.info("payment_verify_rejected", kind=e.kind.value, reason=e.reason)
            return VerifyResponse(is_valid=False, invalid_reason=e.reason)

        result = match_requirements(decoded, requirements)
        if not result.is_valid:
            logger.info("payment_verify_mismatch", payer=decoded.sender, reason=result.invalid_reason)
            return result

        if decoded.is_fee_payer and not requirements.sponsored:
            return VerifyResponse(is_valid=False, invalid_reason=FEE_PAYER_NOT_SPONSORED)

        chain = self._chain_factory(network)
        try:
            simulation = await chain.simulate(decoded)
        except (ChainError, httpx.HTTPError) as e:
            logger.warning("payment_simulation_error", payer=decoded.sender, error=str(e))
            return VerifyResponse(is_valid=False, invalid_reason=f"Simulation error: {e}")

        if not simulation.success:
            logger.info("payment_simulation_failed", payer=decoded.sender, vm_status=simulation.vm_status)
            return VerifyResponse(is_valid=False, invalid_reason=f"Simulation failed: {simulation.vm_status}")

        logger.info(
            "payment_verified",
            payer=decoded.sender,
            recipient=decoded.recipient,
            amount=decoded.amount,
            network=requirements.network,
            sponsored=decoded.is_fee_payer,
        )
        return VerifyResponse(is_valid=True)

    async def settle(self, request: SettleRequest) -> SettlementOutcome:
        """
        Submit a verified payment to the chain, at most once per payload.

        Args:
            request: Payment header plus the seller's current requirements

        Returns:
            SettlementOutcome carrying the response, the failure kind (if any),
            and whether the hash came from the idempotency cache
        """
        requirements = request.payment_requirements
        try:
            encoded, decoded, network = self._decode(request)
        except FacilitatorError as e:
            return self._failed(e, requirements.network)

        key = fingerprint(encoded.transaction_bytes, encoded.signature_bytes, network.name)
        entry = self.cache.get(key)
        if entry is not None:
            # Same payload, possibly different requirements: never hand out a hash for the wrong price
            rematch = match_requirements(decoded, requirements, check_expiry=False)
            if not rematch.is_valid:
                return self._failed(FieldMismatchError(rematch.invalid_reason), requirements.network, decoded.sender)
            logger.info("settlement_cache_hit", tx_hash=entry.transaction_hash, payer=entry.payer)
            return SettlementOutcome(
                response=SettleResponse(
                    success=True,
                    transaction=entry.transaction_hash,
                    network=entry.network,
                    payer=entry.payer,
                ),
                cached=True,
            )

        result = match_requirements(decoded, requirements)
        if not result.is_valid:
            return self._failed(FieldMismatchError(result.invalid_reason), requirements.network, decoded.sender)

        gas_station = None
        if decoded.is_fee_payer:
            if not requirements.sponsored:
                return self._failed(SponsorUnavailableError(FEE_PAYER_NOT_SPONSORED), requirements.network, decoded.sender)
            gas_station = self._gas_station_factory(network)
            if not gas_station.is_configured():
                return self._failed(SponsorUnavailableError(NOT_CONFIGURED_ERROR), requirements.network, decoded.sender)

        chain = self._chain_factory(network)
        if self.config.settle_balance_check:
            shortfall = await self._check_balance(chain, decoded)
            if shortfall:
                return self._failed(SimulationError(shortfall), requirements.network, decoded.sender)

        try:
            if gas_station is not None:
                tx_hash = await self._submit_sponsored(gas_station, decoded)
            else:
                tx_hash = await self._submit_direct(chain, decoded)
        except FacilitatorError as e:
            return self._failed(e, requirements.network, decoded.sender)

        self.cache.put(key, tx_hash, requirements.network, decoded.sender)
        logger.info(
            "payment_settled",
            tx_hash=tx_hash,
            payer=decoded.sender,
            recipient=decoded.recipient,
            amount=decoded.amount,
            network=requirements.network,
            sponsored=gas_station is not None,
        )
        self._spawn_confirmation(chain, tx_hash, requirements.network)

        return SettlementOutcome(
            response=SettleResponse(
                success=True,
                transaction=tx_hash,
                network=requirements.network,
                payer=decoded.sender,
            )
        )

    async def _check_balance(self, chain: ChainAdapter, decoded: DecodedTransfer) -> Optional[str]:
        """Returns a reason when the payer cannot cover the transfer; query failures are ignored"""
        required = decoded.amount
        if is_apt(decoded.asset) and not decoded.is_fee_payer:
            required += self.config.estimated_fee_octas

        try:
            balance = await chain.get_balance(decoded.sender, decoded.asset)
        except (ChainError, httpx.HTTPError, ValueError, LookupError) as e:
            logger.warning("balance_check_failed", payer=decoded.sender, error=str(e))
            return None

        if balance < required:
            return f"Insufficient balance: {balance} available, {required} required"
        return None

    async def _submit_direct(self, chain: ChainAdapter, decoded: DecodedTransfer) -> str:
        try:
            return await chain.submit(decoded)
        except ChainError as e:
            raise classify_submission_error(str(e)) from e
        except httpx.TimeoutException as e:
            raise SubmissionError("Transaction submission timed out") from e
        except httpx.HTTPError as e:
            raise SubmissionError(f"Transaction submission failed: {e}") from e

    async def _submit_sponsored(self, gas_station: GasStationClient, decoded: DecodedTransfer) -> str:
        result = await gas_station.sponsor_and_submit(decoded.transaction_bytes, decoded.authenticator.to_bytes())
        if not result.success:
            error = result.error or "Gas station submission failed"
            classified = classify_submission_error(error)
            if isinstance(classified, ConflictError):
                raise classified
            raise SponsorUnavailableError(error)
        return result.transaction_hash

    def _failed(self, error: FacilitatorError, network: str, payer: Optional[str] = None) -> SettlementOutcome:
        logger.info("payment_settle_rejected", kind=error.kind.value, reason=error.reason, payer=payer)
        return SettlementOutcome(
            response=SettleResponse(success=False, network=network, payer=payer, error=error.reason),
            kind=error.kind,
        )

    def _spawn_confirmation(self, chain: ChainAdapter, tx_hash: str, network: str) -> None:
        task = asyncio.create_task(self._confirm(chain, tx_hash, network))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _confirm(self, chain: ChainAdapter, tx_hash: str, network: str) -> None:
        try:
            result = await chain.wait_for_confirmation(tx_hash, timeout=self.config.confirmation_timeout)
        except asyncio.CancelledError:
            logger.info("confirmation_cancelled", tx_hash=tx_hash)
            raise
        except Exception as e:
            logger.error("confirmation_error", tx_hash=tx_hash, network=network, error=str(e))
            return

        if result.timed_out:
            logger.warning("confirmation_timeout", tx_hash=tx_hash, network=network,
                           timeout=self.config.confirmation_timeout)
        elif result.success:
            logger.info("payment_confirmed", tx_hash=tx_hash, network=network)
        else:
            logger.error("payment_failed_on_chain", tx_hash=tx_hash, network=network, vm_status=result.vm_status)

    @property
    def pending_confirmations(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for outstanding confirmation tasks (used at shutdown)"""
        if self._pending:
            logger.info("draining_confirmations", count=len(self._pending))
            await asyncio.gather(*list(self._pending), return_exceptions=True)

"""
Requirements matching
Compares a decoded transfer against the seller's payment requirements
"""

import time
from enum import Enum
from typing import Optional

from x402_facilitator.aptos.addresses import APT_COIN_TYPE, addresses_equal, normalize_asset
from x402_facilitator.aptos.networks import resolve_network
from x402_facilitator.aptos.transactions import DecodedTransfer
from x402_facilitator.payments.codec import EncodedPayment
from x402_facilitator.payments.errors import ProtocolMismatchError
from x402_facilitator.payments.models import PaymentRequirements, VerifyResponse

SUPPORTED_X402_VERSIONS = (1, 2)
SUPPORTED_SCHEMES = ("exact",)
DEFAULT_ASSET = APT_COIN_TYPE


class AmountPolicy(str, Enum):
    EXACT = "exact"
    AT_LEAST = "at_least"


def amount_policy_for(requirements: PaymentRequirements) -> AmountPolicy:
    if requirements.declares_maximum_only:
        return AmountPolicy.AT_LEAST
    return AmountPolicy.EXACT


def check_protocol_fields(encoded: EncodedPayment, requirements: PaymentRequirements, x402_version: int) -> None:
    """
    Ensure version, scheme and network are ones we settle and agree with the payload.

    Raises:
        ProtocolMismatchError: on any disagreement
    """
    if x402_version not in SUPPORTED_X402_VERSIONS:
        raise ProtocolMismatchError(f"Unsupported x402 version: {x402_version}")
    if requirements.scheme not in SUPPORTED_SCHEMES:
        raise ProtocolMismatchError(f"Unsupported scheme: {requirements.scheme}")
    if resolve_network(requirements.network) is None:
        raise ProtocolMismatchError(f"Unsupported network: {requirements.network}")

    if encoded.scheme is not None and encoded.scheme != requirements.scheme:
        raise ProtocolMismatchError(f"Scheme mismatch: {encoded.scheme} vs {requirements.scheme}")
    if encoded.network is not None and resolve_network(encoded.network) != resolve_network(requirements.network):
        raise ProtocolMismatchError(f"Network mismatch: {encoded.network} vs {requirements.network}")


def check_chain_id(decoded: DecodedTransfer, requirements: PaymentRequirements) -> None:
    network = resolve_network(requirements.network)
    if network is not None and network.chain_id is not None and decoded.chain_id != network.chain_id:
        raise ProtocolMismatchError(
            f"Chain id mismatch: transaction is for chain {decoded.chain_id}, "
            f"{requirements.network} is chain {network.chain_id}"
        )


def match_requirements(
    decoded: DecodedTransfer,
    requirements: PaymentRequirements,
    now: Optional[float] = None,
    check_expiry: bool = True,
) -> VerifyResponse:
    """
    Check expiry, asset, recipient and amount, in that order.

    Args:
        decoded: The decoded transfer
        requirements: Requirements supplied with this request
        now: Current unix time in seconds (defaults to time.time())
        check_expiry: False when re-matching an already-submitted payment

    Returns:
        VerifyResponse with the first failing reason, or is_valid=True
    """
    if check_expiry:
        current = time.time() if now is None else now
        if decoded.expiration_timestamp <= current:
            return _invalid(f"Transaction expired at {decoded.expiration_timestamp}")

    required_asset = requirements.asset or DEFAULT_ASSET
    if not _same_asset(decoded.asset, required_asset):
        return _invalid(f"Asset mismatch: {decoded.asset} vs {required_asset}")

    if not addresses_equal(decoded.recipient, requirements.pay_to):
        return _invalid(f"Recipient mismatch: {decoded.recipient} vs {requirements.pay_to}")

    required_amount = requirements.required_amount
    if amount_policy_for(requirements) is AmountPolicy.EXACT:
        if decoded.amount != required_amount:
            return _invalid(f"Amount mismatch: {decoded.amount} vs {required_amount}")
    elif decoded.amount < required_amount:
        return _invalid(f"Insufficient amount: {decoded.amount} vs {required_amount}")

    return VerifyResponse(is_valid=True)


def _same_asset(a: str, b: str) -> bool:
    try:
        return normalize_asset(a) == normalize_asset(b)
    except ValueError:
        return False


def _invalid(reason: str) -> VerifyResponse:
    return VerifyResponse(is_valid=False, invalid_reason=reason)

"""
x402 payment verification and settlement
"""

from x402_facilitator.payments.cache import CacheEntry, IdempotencyCache, fingerprint
from x402_facilitator.payments.codec import (
    EncodedPayment,
    WireShape,
    decode_payment_header,
    encode_combined,
    encode_split,
)
from x402_facilitator.payments.errors import ErrorKind, FacilitatorError
from x402_facilitator.payments.models import (
    PaymentPayload,
    PaymentRequirements,
    SettleRequest,
    SettleResponse,
    VerifyRequest,
    VerifyResponse,
)
from x402_facilitator.payments.processor import PaymentProcessor, SettlementOutcome

__all__ = [
    "CacheEntry",
    "IdempotencyCache",
    "fingerprint",
    "EncodedPayment",
    "WireShape",
    "decode_payment_header",
    "encode_combined",
    "encode_split",
    "ErrorKind",
    "FacilitatorError",
    "PaymentPayload",
    "PaymentRequirements",
    "SettleRequest",
    "SettleResponse",
    "VerifyRequest",
    "VerifyResponse",
    "PaymentProcessor",
    "SettlementOutcome",
]

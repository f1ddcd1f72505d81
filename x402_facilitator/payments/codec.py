"""
x402 payment header codec for Aptos payloads

Two wire shapes are accepted for payload.transaction/payload.signature:
  SPLIT:    transaction and signature as separate fields
            (hex in x402 v1, base64 in x402 v2)
  COMBINED: a single base64 field holding u32_be(len) || tx || signature
"""

import base64
import binascii
import json
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from x402_facilitator.payments.errors import DecodeError
from x402_facilitator.payments.models import PaymentPayload

LENGTH_PREFIX = struct.Struct(">I")


class WireShape(str, Enum):
    SPLIT = "split"
    COMBINED = "combined"


@dataclass(frozen=True)
class EncodedPayment:
    """Raw transaction/authenticator bytes lifted out of a payment header"""
    transaction_bytes: bytes
    signature_bytes: bytes
    shape: WireShape
    scheme: Optional[str] = None
    network: Optional[str] = None


def parse_envelope(header: Union[str, Dict[str, Any]]) -> PaymentPayload:
    """Parse a payment header that is a dict, a JSON string, or base64 of a JSON string"""
    if isinstance(header, dict):
        data = header
    elif isinstance(header, str):
        text = header.strip()
        if not text.startswith("{"):
            try:
                text = base64.b64decode(text, validate=True).decode("utf-8")
            except (binascii.Error, ValueError):
                raise DecodeError("Invalid base64 encoding in payment header")
        try:
            data = json.loads(text)
        except ValueError:
            raise DecodeError("Invalid JSON in payment payload")
    else:
        raise DecodeError("Payment payload must be a JSON object")

    if not isinstance(data, dict):
        raise DecodeError("Payment payload must be a JSON object")

    try:
        return PaymentPayload.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise DecodeError(f"Invalid payment payload: {location}: {first['msg']}")


def decode_payment_header(header: Union[str, Dict[str, Any]], x402_version: int) -> EncodedPayment:
    """
    Extract transaction and authenticator bytes from a payment header.

    Args:
        header: paymentHeader value from the request body
        x402_version: protocol version from the request; selects hex (1) or base64 (2) for SPLIT fields

    Raises:
        DecodeError: for any malformed input
    """
    payload = parse_envelope(header)
    inner = payload.payload

    transaction = inner.get("transaction")
    if not isinstance(transaction, str) or not transaction:
        raise DecodeError("Missing transaction in payment payload")

    signature = inner.get("signature")
    if signature is not None:
        if not isinstance(signature, str):
            raise DecodeError("Signature must be a string")
        tx_bytes = _decode_field(transaction, x402_version, "transaction")
        sig_bytes = _decode_field(signature, x402_version, "signature")
        shape = WireShape.SPLIT
    else:
        tx_bytes, sig_bytes = _split_combined(_b64decode(transaction, "transaction"))
        shape = WireShape.COMBINED

    if not tx_bytes:
        raise DecodeError("Transaction bytes are empty")
    if not sig_bytes:
        raise DecodeError("Signature bytes are empty")

    return EncodedPayment(
        transaction_bytes=tx_bytes,
        signature_bytes=sig_bytes,
        shape=shape,
        scheme=payload.declared_scheme,
        network=payload.declared_network,
    )


def encode_split(transaction_bytes: bytes, signature_bytes: bytes, x402_version: int = 2) -> Dict[str, str]:
    if x402_version == 1:
        return {"transaction": "0x" + transaction_bytes.hex(), "signature": "0x" + signature_bytes.hex()}
    return {
        "transaction": base64.b64encode(transaction_bytes).decode("ascii"),
        "signature": base64.b64encode(signature_bytes).decode("ascii"),
    }


def encode_combined(transaction_bytes: bytes, signature_bytes: bytes) -> Dict[str, str]:
    blob = LENGTH_PREFIX.pack(len(transaction_bytes)) + transaction_bytes + signature_bytes
    return {"transaction": base64.b64encode(blob).decode("ascii")}


def _split_combined(blob: bytes):
    if len(blob) < LENGTH_PREFIX.size:
        raise DecodeError("Combined payload is shorter than its length prefix")
    (tx_length,) = LENGTH_PREFIX.unpack_from(blob)
    body = blob[LENGTH_PREFIX.size:]
    if tx_length > len(body):
        raise DecodeError(f"Transaction length {tx_length} exceeds payload size {len(body)}")
    return body[:tx_length], body[tx_length:]


def _decode_field(value: str, x402_version: int, name: str) -> bytes:
    if x402_version == 1:
        return _hexdecode(value, name)
    return _b64decode(value, name)


def _hexdecode(value: str, name: str) -> bytes:
    text = value.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise DecodeError(f"Invalid hex encoding in {name}")


def _b64decode(value: str, name: str) -> bytes:
    try:
        return base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError):
        raise DecodeError(f"Invalid base64 encoding in {name}")

"""
Aptos transaction decoding for x402 payments

Turns the BCS bytes of a signed transfer (a SimpleTransaction plus the
sender's AccountAuthenticator) into a flat DecodedTransfer, and re-encodes
SignedTransactions for simulation and submission.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from x402_facilitator.aptos.addresses import (
    APT_COIN_TYPE,
    address_from_bytes,
    address_to_bytes,
    short_address,
)
from x402_facilitator.aptos.bcs import ADDRESS_LENGTH, BcsError, Deserializer, Serializer

MAX_TYPE_TAG_DEPTH = 8
MAX_AMOUNT_BYTES = 32

# TransactionPayload variants
PAYLOAD_VARIANTS = {0: "script", 1: "module bundle", 2: "entry function", 3: "multisig"}
ENTRY_FUNCTION_VARIANT = 2

# AccountAuthenticator variants
AUTH_ED25519 = 0
AUTH_MULTI_ED25519 = 1
AUTH_SINGLE_KEY = 2
AUTH_MULTI_KEY = 3
AUTH_NO_ACCOUNT = 4

# TransactionAuthenticator variants
TXN_AUTH_ED25519 = 0
TXN_AUTH_MULTI_ED25519 = 1
TXN_AUTH_FEE_PAYER = 3
TXN_AUTH_SINGLE_SENDER = 4

ED25519_PUBLIC_KEY_LENGTH = 32
ED25519_SIGNATURE_LENGTH = 64
MULTI_ED25519_BITMAP_LENGTH = 4


class TransactionDecodeError(ValueError):
    """Raised when transaction or authenticator bytes are not an acceptable transfer"""


@dataclass(frozen=True)
class TransferLayout:
    """Positional argument layout of an allowed transfer function"""
    recipient_index: int
    amount_index: int
    asset_index: Optional[int] = None
    asset_from_type_argument: bool = False
    fixed_asset: Optional[str] = None

    @property
    def expected(self) -> str:
        names = ["recipient", "amount"] if self.asset_index is None else ["asset", "recipient", "amount"]
        return "[" + ", ".join(names) + "]"


ALLOWED_TRANSFER_FUNCTIONS: Dict[str, TransferLayout] = {
    "0x1::primary_fungible_store::transfer": TransferLayout(asset_index=0, recipient_index=1, amount_index=2),
    "0x1::aptos_account::transfer_fungible_assets": TransferLayout(asset_index=0, recipient_index=1, amount_index=2),
    "0x1::aptos_account::transfer": TransferLayout(recipient_index=0, amount_index=1, fixed_asset=APT_COIN_TYPE),
    "0x1::coin::transfer": TransferLayout(recipient_index=0, amount_index=1, asset_from_type_argument=True),
    "0x1::aptos_account::transfer_coins": TransferLayout(recipient_index=0, amount_index=1, asset_from_type_argument=True),
}


@dataclass(frozen=True)
class AccountAuthenticator:
    """
    Sender authenticator, kept as its BCS parts so it can be re-encoded.

    public_key_bcs and signature_bcs are the encoded bodies that follow the
    variant tag; zeroed_signature_bcs has the same shape with every signature
    byte cleared, which is what the fullnode expects for simulation.
    """
    variant: int
    public_key: bytes
    public_key_bcs: bytes
    signature_bcs: bytes
    zeroed_signature_bcs: bytes

    def to_bytes(self, zero_signature: bool = False) -> bytes:
        signature = self.zeroed_signature_bcs if zero_signature else self.signature_bcs
        return Serializer().uleb128(self.variant).fixed_bytes(self.public_key_bcs).fixed_bytes(signature).output()

    @property
    def public_key_hex(self) -> str:
        return "0x" + self.public_key.hex()


@dataclass(frozen=True)
class DecodedTransfer:
    """A transfer transaction normalized into one shape, independent of how its arguments were encoded"""
    sender: str
    function_id: str
    asset: str
    recipient: str
    amount: int
    sequence_number: int
    expiration_timestamp: int
    max_gas_amount: int
    gas_unit_price: int
    chain_id: int
    authenticator: AccountAuthenticator
    raw_transaction: bytes
    transaction_bytes: bytes
    fee_payer: Optional[str] = None
    type_arguments: List[str] = field(default_factory=list)

    @property
    def is_fee_payer(self) -> bool:
        return self.fee_payer is not None


def reconstruct_le_uint(data: Sequence[int]) -> int:
    """Rebuild an unsigned integer from little-endian bytes: sum(byte[i] << 8*i)"""
    if not 1 <= len(data) <= MAX_AMOUNT_BYTES:
        raise ValueError(f"Integer byte length must be between 1 and {MAX_AMOUNT_BYTES}, got {len(data)}")

    value = 0
    for i, byte in enumerate(data):
        if isinstance(byte, bool) or not isinstance(byte, int) or not 0 <= byte <= 0xFF:
            raise ValueError(f"Invalid byte at position {i}: {byte!r}")
        value += byte << (8 * i)
    return value


def amount_from_argument(value: Any) -> int:
    """
    Normalize an amount argument to an int.

    Accepts an int, a decimal string, a little-endian byte sequence
    (bytes or list of ints), or an SDK-style wrapper with a "value" key.
    """
    if isinstance(value, bool):
        raise ValueError("Amount must not be a boolean")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Amount must be non-negative: {value}")
        return value
    if isinstance(value, str):
        text = value.strip()
        if not (text.isascii() and text.isdigit()):
            raise ValueError(f"Amount is not a decimal integer: {value!r}")
        return int(text)
    if isinstance(value, (bytes, bytearray, list, tuple)):
        return reconstruct_le_uint(list(value))
    if isinstance(value, dict) and "value" in value:
        return amount_from_argument(value["value"])
    raise ValueError(f"Unsupported amount representation: {type(value).__name__}")


def _read_type_tag(d: Deserializer, depth: int = 0) -> str:
    if depth > MAX_TYPE_TAG_DEPTH:
        raise TransactionDecodeError("Type tag nesting too deep")

    variant = d.uleb128()
    primitives = {0: "bool", 1: "u8", 2: "u64", 3: "u128", 4: "address", 5: "signer", 8: "u16", 9: "u32", 10: "u256"}
    if variant in primitives:
        return primitives[variant]
    if variant == 6:
        return f"vector<{_read_type_tag(d, depth + 1)}>"
    if variant == 7:
        address = short_address(address_from_bytes(d.address()))
        module = d.str()
        name = d.str()
        type_args = d.sequence(lambda inner: _read_type_tag(inner, depth + 1))
        tag = f"{address}::{module}::{name}"
        return f"{tag}<{', '.join(type_args)}>" if type_args else tag
    raise TransactionDecodeError(f"Unsupported type tag variant: {variant}")


def _read_public_key_and_signature(d: Deserializer, variant: int) -> AccountAuthenticator:
    pk_start = d.offset
    if variant in (AUTH_ED25519, AUTH_MULTI_ED25519):
        public_key = d.bytes()
        pk_bcs = Serializer().bytes(public_key).output()
        signature = d.bytes()
        sig_bcs = Serializer().bytes(signature).output()
        if variant == AUTH_ED25519:
            if len(public_key) != ED25519_PUBLIC_KEY_LENGTH:
                raise TransactionDecodeError(f"Invalid Ed25519 public key length: {len(public_key)}")
            if len(signature) != ED25519_SIGNATURE_LENGTH:
                raise TransactionDecodeError(f"Invalid Ed25519 signature length: {len(signature)}")
            zeroed = bytes(len(signature))
        else:
            # Keep the signer bitmap so the fullnode can still count signatures
            if len(signature) < MULTI_ED25519_BITMAP_LENGTH:
                raise TransactionDecodeError("MultiEd25519 signature is missing its bitmap")
            body = len(signature) - MULTI_ED25519_BITMAP_LENGTH
            zeroed = bytes(body) + signature[body:]
        return AccountAuthenticator(
            variant=variant,
            public_key=public_key,
            public_key_bcs=pk_bcs,
            signature_bcs=sig_bcs,
            zeroed_signature_bcs=Serializer().bytes(zeroed).output(),
        )

    if variant == AUTH_SINGLE_KEY:
        pk_variant, public_key = _read_any_key(d, "public key")
        pk_bcs = Serializer().uleb128(pk_variant).bytes(public_key).output()
        sig_variant, signature = _read_any_key(d, "signature")
        return AccountAuthenticator(
            variant=variant,
            public_key=public_key,
            public_key_bcs=pk_bcs,
            signature_bcs=Serializer().uleb128(sig_variant).bytes(signature).output(),
            zeroed_signature_bcs=Serializer().uleb128(sig_variant).bytes(bytes(len(signature))).output(),
        )

    if variant == AUTH_MULTI_KEY:
        public_keys = d.sequence(lambda inner: _read_any_key(inner, "public key"))
        d.u8()  # signatures_required
        pk_bcs = d.span(pk_start)
        signatures = d.sequence(lambda inner: _read_any_key(inner, "signature"))
        bitmap = d.bytes()

        signed = Serializer().uleb128(len(signatures))
        zeroed = Serializer().uleb128(len(signatures))
        for sig_variant, signature in signatures:
            signed.uleb128(sig_variant).bytes(signature)
            zeroed.uleb128(sig_variant).bytes(bytes(len(signature)))
        signed.bytes(bitmap)
        zeroed.bytes(bitmap)
        return AccountAuthenticator(
            variant=variant,
            public_key=public_keys[0][1] if public_keys else b"",
            public_key_bcs=pk_bcs,
            signature_bcs=signed.output(),
            zeroed_signature_bcs=zeroed.output(),
        )

    raise TransactionDecodeError(f"Unsupported authenticator variant: {variant}")


def _read_any_key(d: Deserializer, what: str) -> tuple:
    # Ed25519, Secp256k1 and Secp256r1/WebAuthn are all length-prefixed bytes
    variant = d.uleb128()
    if variant not in (0, 1, 2):
        raise TransactionDecodeError(f"Unsupported {what} variant: {variant}")
    return variant, d.bytes()


def decode_authenticator(signature_bytes: bytes) -> AccountAuthenticator:
    """Deserialize a BCS AccountAuthenticator"""
    if not signature_bytes:
        raise TransactionDecodeError("Empty authenticator")
    try:
        d = Deserializer(signature_bytes)
        authenticator = _read_public_key_and_signature(d, d.uleb128())
    except BcsError as e:
        raise TransactionDecodeError(f"Invalid authenticator BCS: {e}") from e
    if d.remaining():
        raise TransactionDecodeError(f"Unexpected {d.remaining()} trailing bytes after authenticator")
    return authenticator


def decode_transaction(transaction_bytes: bytes, signature_bytes: bytes) -> DecodedTransfer:
    """
    Deserialize a signed transfer and normalize it into a DecodedTransfer.

    Args:
        transaction_bytes: BCS SimpleTransaction (RawTransaction + optional fee payer)
        signature_bytes: BCS AccountAuthenticator of the sender

    Raises:
        TransactionDecodeError: on malformed BCS, a non-transfer function, or bad arguments
    """
    if not transaction_bytes:
        raise TransactionDecodeError("Empty transaction")

    authenticator = decode_authenticator(signature_bytes)

    try:
        d = Deserializer(transaction_bytes)
        sender = address_from_bytes(d.address())
        sequence_number = d.u64()

        payload_variant = d.uleb128()
        if payload_variant != ENTRY_FUNCTION_VARIANT:
            kind = PAYLOAD_VARIANTS.get(payload_variant, f"payload variant {payload_variant}")
            raise TransactionDecodeError(f"Invalid function: {kind} payload")

        module_address = short_address(address_from_bytes(d.address()))
        module_name = d.str()
        function_name = d.str()
        type_arguments = d.sequence(_read_type_tag)
        arguments = d.sequence(lambda inner: inner.bytes())

        max_gas_amount = d.u64()
        gas_unit_price = d.u64()
        expiration_timestamp = d.u64()
        chain_id = d.u8()
        raw_end = d.offset

        fee_payer = None
        if d.remaining():
            if d.bool():
                fee_payer = address_from_bytes(d.address())
        if d.remaining():
            raise TransactionDecodeError(f"Unexpected {d.remaining()} trailing bytes after transaction")
    except BcsError as e:
        raise TransactionDecodeError(f"Invalid BCS format: {e}") from e

    function_id = f"{module_address}::{module_name}::{function_name}"
    layout = ALLOWED_TRANSFER_FUNCTIONS.get(function_id)
    if layout is None:
        raise TransactionDecodeError(f"Invalid function: {function_id}")

    needed = max(i for i in (layout.asset_index, layout.recipient_index, layout.amount_index) if i is not None) + 1
    if len(arguments) < needed:
        raise TransactionDecodeError(
            f"Invalid arguments: expected {layout.expected}, got {len(arguments)} argument(s)"
        )

    recipient = _address_argument(arguments[layout.recipient_index], "recipient")
    try:
        amount = amount_from_argument(arguments[layout.amount_index])
    except ValueError as e:
        raise TransactionDecodeError(f"Invalid amount argument: {e}") from e

    if layout.asset_index is not None:
        asset = _address_argument(arguments[layout.asset_index], "asset")
    elif layout.asset_from_type_argument:
        if not type_arguments:
            raise TransactionDecodeError(f"Invalid type arguments: {function_id} requires a coin type")
        asset = type_arguments[0]
    else:
        asset = layout.fixed_asset

    return DecodedTransfer(
        sender=sender,
        function_id=function_id,
        asset=asset,
        recipient=recipient,
        amount=amount,
        sequence_number=sequence_number,
        expiration_timestamp=expiration_timestamp,
        max_gas_amount=max_gas_amount,
        gas_unit_price=gas_unit_price,
        chain_id=chain_id,
        authenticator=authenticator,
        raw_transaction=transaction_bytes[:raw_end],
        transaction_bytes=bytes(transaction_bytes),
        fee_payer=fee_payer,
        type_arguments=type_arguments,
    )


def _address_argument(raw: bytes, name: str) -> str:
    if len(raw) != ADDRESS_LENGTH:
        raise TransactionDecodeError(f"Invalid {name} argument: expected {ADDRESS_LENGTH}-byte address, got {len(raw)} bytes")
    return address_from_bytes(raw)


def build_signed_transaction(decoded: DecodedTransfer, for_simulation: bool = False) -> bytes:
    """
    Encode a BCS SignedTransaction (RawTransaction + TransactionAuthenticator).

    For simulation every signature is zeroed. A fee payer transaction is
    wrapped in a FeePayer authenticator whose fee payer side is left empty,
    which the fullnode accepts for simulation only.
    """
    sender_auth = decoded.authenticator.to_bytes(zero_signature=for_simulation)
    s = Serializer().fixed_bytes(decoded.raw_transaction)

    if decoded.is_fee_payer:
        s.uleb128(TXN_AUTH_FEE_PAYER)
        s.fixed_bytes(sender_auth)
        s.uleb128(0)  # secondary signer addresses
        s.uleb128(0)  # secondary signers
        s.address(address_to_bytes(decoded.fee_payer))
        s.uleb128(AUTH_NO_ACCOUNT)
    elif decoded.authenticator.variant == AUTH_ED25519:
        # Same body as the account authenticator, under the transaction-level tag
        s.uleb128(TXN_AUTH_ED25519).fixed_bytes(sender_auth[1:])
    elif decoded.authenticator.variant == AUTH_MULTI_ED25519:
        s.uleb128(TXN_AUTH_MULTI_ED25519).fixed_bytes(sender_auth[1:])
    else:
        s.uleb128(TXN_AUTH_SINGLE_SENDER).fixed_bytes(sender_auth)

    return s.output()

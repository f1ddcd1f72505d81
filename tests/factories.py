"""
Factory Boy factories and BCS builders for generating test data
"""

import time
from typing import List, Optional

import factory

from x402_facilitator.aptos.addresses import address_to_bytes
from x402_facilitator.aptos.bcs import Serializer
from x402_facilitator.payments.codec import encode_combined, encode_split
from x402_facilitator.payments.models import PaymentRequirements

USDC_TESTNET = "0x69091fbab5f7d635ee7ac5098cf0c1efbe31d68fec0f2cd565e8d168daf52832"
PAYER = "0x" + "11" * 32
MERCHANT = "0x" + "22" * 32
OTHER = "0x" + "33" * 32
PUBLIC_KEY = bytes(range(32))
SIGNATURE = bytes(range(64, 128))


class PaymentRequirementsFactory(factory.Factory):
    """Factory for PaymentRequirements (USDC on Aptos testnet)"""
    class Meta:
        model = PaymentRequirements

    scheme = "exact"
    network = "aptos:2"
    asset = USDC_TESTNET
    pay_to = MERCHANT
    amount = "1000"
    max_amount_required = None
    resource = "https://api.example.com/premium"
    description = "Premium endpoint"
    mime_type = "application/json"
    max_timeout_seconds = 60
    extra = None


class SponsoredRequirementsFactory(PaymentRequirementsFactory):
    """Requirements that allow the gas station to pay fees"""
    extra = factory.LazyFunction(lambda: {"sponsored": True})


def u64_argument(value: int) -> bytes:
    return Serializer().u64(value).output()


def struct_tag(address: str, module: str, name: str) -> bytes:
    return Serializer().uleb128(7).address(address_to_bytes(address)).str(module).str(name).uleb128(0).output()


def build_transaction(
    function: str = "0x1::primary_fungible_store::transfer",
    arguments: Optional[List[bytes]] = None,
    type_arguments: Optional[List[bytes]] = None,
    sender: str = PAYER,
    sequence_number: int = 7,
    max_gas_amount: int = 2000,
    gas_unit_price: int = 100,
    expiration_timestamp: Optional[int] = None,
    chain_id: int = 2,
    fee_payer: Optional[str] = None,
    asset: str = USDC_TESTNET,
    recipient: str = MERCHANT,
    amount: int = 1000,
) -> bytes:
    """BCS SimpleTransaction for a transfer; arguments default to [asset, recipient, amount]"""
    if arguments is None:
        arguments = [address_to_bytes(asset), address_to_bytes(recipient), u64_argument(amount)]
    if expiration_timestamp is None:
        expiration_timestamp = int(time.time()) + 600

    module_address, module, name = function.split("::")
    s = Serializer()
    s.address(address_to_bytes(sender)).u64(sequence_number)
    s.uleb128(2)
    s.address(address_to_bytes(module_address)).str(module).str(name)
    s.uleb128(len(type_arguments or []))
    for tag in type_arguments or []:
        s.fixed_bytes(tag)
    s.uleb128(len(arguments))
    for argument in arguments:
        s.bytes(argument)
    s.u64(max_gas_amount).u64(gas_unit_price).u64(expiration_timestamp).u8(chain_id)
    if fee_payer is not None:
        s.bool(True).address(address_to_bytes(fee_payer))
    return s.output()


def build_authenticator(public_key: bytes = PUBLIC_KEY, signature: bytes = SIGNATURE) -> bytes:
    """BCS Ed25519 AccountAuthenticator"""
    return Serializer().uleb128(0).bytes(public_key).bytes(signature).output()


def build_payment_header(
    transaction: Optional[bytes] = None,
    authenticator: Optional[bytes] = None,
    combined: bool = False,
    x402_version: int = 2,
    network: str = "aptos:2",
) -> dict:
    """x402 PaymentPayload dict in either wire shape"""
    transaction = build_transaction() if transaction is None else transaction
    authenticator = build_authenticator() if authenticator is None else authenticator
    if combined:
        payload = encode_combined(transaction, authenticator)
    else:
        payload = encode_split(transaction, authenticator, x402_version)

    header = {"x402Version": x402_version, "payload": payload}
    if x402_version == 1:
        header.update({"scheme": "exact", "network": network})
    else:
        header["accepted"] = {"scheme": "exact", "network": network}
    return header


def build_request_body(requirements: Optional[PaymentRequirements] = None, x402_version: int = 2, **header_kwargs) -> dict:
    """JSON body for POST /verify and /settle"""
    requirements = requirements or PaymentRequirementsFactory()
    return {
        "x402Version": x402_version,
        "paymentHeader": build_payment_header(x402_version=x402_version, **header_kwargs),
        "paymentRequirements": requirements.model_dump(by_alias=True, exclude_none=True),
    }

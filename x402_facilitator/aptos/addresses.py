"""
Aptos account address and asset identifier normalization
"""

from x402_facilitator.aptos.bcs import ADDRESS_LENGTH

ADDRESS_HEX_LENGTH = ADDRESS_LENGTH * 2
_HEX_DIGITS = set("0123456789abcdef")

APT_COIN_TYPE = "0x1::aptos_coin::AptosCoin"
APT_METADATA_ADDRESS = "0xa"


def normalize_address(address: str) -> str:
    """
    Normalize an address to its long form: lowercase, 0x prefix, 64 hex chars.

    Raises:
        ValueError: if the value is empty, not hex, or longer than 32 bytes
    """
    if not isinstance(address, str):
        raise ValueError(f"Address must be a string, got {type(address).__name__}")

    value = address.strip().lower()
    if value.startswith("0x"):
        value = value[2:]

    if not value:
        raise ValueError("Address is empty")
    if len(value) > ADDRESS_HEX_LENGTH:
        raise ValueError(f"Address is longer than {ADDRESS_LENGTH} bytes: {address}")
    if not set(value) <= _HEX_DIGITS:
        raise ValueError(f"Address is not hex: {address}")

    return "0x" + value.rjust(ADDRESS_HEX_LENGTH, "0")


def address_from_bytes(raw: bytes) -> str:
    if len(raw) != ADDRESS_LENGTH:
        raise ValueError(f"Address must be {ADDRESS_LENGTH} bytes, got {len(raw)}")
    return "0x" + raw.hex()


def address_to_bytes(address: str) -> bytes:
    return bytes.fromhex(normalize_address(address)[2:])


def short_address(address: str) -> str:
    """Render special addresses (0x0 through 0xf) in short form, everything else in long form"""
    long_form = normalize_address(address)
    stripped = long_form[2:].lstrip("0")
    if len(stripped) <= 1:
        return "0x" + (stripped or "0")
    return long_form


def addresses_equal(a: str, b: str) -> bool:
    try:
        return normalize_address(a) == normalize_address(b)
    except ValueError:
        return False


def normalize_asset(asset: str) -> str:
    """
    Normalize an asset identifier for comparison.

    Accepts either a fungible asset metadata address or a coin struct tag
    (``addr::module::Name``). The APT coin type and the APT fungible asset
    metadata address normalize to the same value.
    """
    value = asset.strip()
    if "::" in value:
        address, _, rest = value.partition("::")
        normalized = f"{normalize_address(address)}::{rest}"
        if normalized == f"{normalize_address('0x1')}::aptos_coin::AptosCoin":
            return normalize_address(APT_METADATA_ADDRESS)
        return normalized
    return normalize_address(value)


def is_apt(asset: str) -> bool:
    try:
        return normalize_asset(asset) == normalize_address(APT_METADATA_ADDRESS)
    except ValueError:
        return False

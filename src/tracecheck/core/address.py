# src/tracecheck/core/address.py
"""Filecoin address strings: parsing, checksums and protocol classes.

String form is ``<network><protocol><body>``:

- ID (0): body is the actor ID in decimal.
- SECP256K1 (1), ACTOR (2), BLS (3): body is lowercase unpadded base32 of
  payload + 4-byte checksum.
- DELEGATED (4): body is ``<namespace>f<base32(subaddress + checksum)>``.

The checksum is blake2b with a 4-byte digest over the protocol byte and
the payload (for delegated addresses: protocol byte, uvarint namespace,
subaddress).
"""

import base64
import hashlib
from dataclasses import dataclass
from pathlib import Path

from tracecheck.contracts.enums import AddressProtocol
from tracecheck.contracts.errors import InvalidAddressError

NETWORKS = frozenset({"f", "t"})

CHECKSUM_LENGTH = 4
MAX_ID_LENGTH = 20
MAX_SUBADDRESS_LENGTH = 54

# Payload length of the fixed-size protocols.
_PAYLOAD_LENGTHS: dict[AddressProtocol, int] = {
    AddressProtocol.SECP256K1: 20,
    AddressProtocol.ACTOR: 20,
    AddressProtocol.BLS: 48,
}

_MAX_UINT64 = 2**64 - 1


@dataclass(frozen=True)
class Address:
    """A validated address.

    Attributes:
        network: "f" (mainnet) or "t" (testnets)
        protocol: Address protocol
        actor_id: Actor ID for ID addresses, namespace for delegated ones
        payload: Decoded payload (subaddress for delegated ones), empty for ID
    """

    network: str
    protocol: AddressProtocol
    actor_id: int | None
    payload: bytes

    def __str__(self) -> str:
        return format_address(self.protocol, self.payload, actor_id=self.actor_id, network=self.network)

    @property
    def is_robust(self) -> bool:
        return is_robust(self.protocol)


def is_robust(protocol: int) -> bool:
    """Whether an address of this protocol survives chain reorgs.

    Everything except ID addresses, including protocols we do not know.
    """
    return protocol != AddressProtocol.ID


def _uvarint(value: int) -> bytes:
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def checksum(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=CHECKSUM_LENGTH).digest()


def _b32encode(data: bytes) -> str:
    return base64.b32encode(data).decode("ascii").lower().rstrip("=")


def _b32decode(text: str, address: str) -> bytes:
    if text != text.lower():
        raise InvalidAddressError(address, "base32 body must be lowercase")
    padded = text.upper() + "=" * (-len(text) % 8)
    try:
        return base64.b32decode(padded)
    except ValueError as exc:
        raise InvalidAddressError(address, "invalid base32 body") from exc


def _parse_decimal(text: str, address: str, what: str) -> int:
    if not text or not text.isdigit() or not text.isascii():
        raise InvalidAddressError(address, f"{what} must be decimal digits")
    if len(text) > MAX_ID_LENGTH:
        raise InvalidAddressError(address, f"{what} too long")
    value = int(text)
    if value > _MAX_UINT64:
        raise InvalidAddressError(address, f"{what} out of range")
    return value


def format_address(
    protocol: AddressProtocol,
    payload: bytes = b"",
    *,
    actor_id: int | None = None,
    network: str = "f",
) -> str:
    """Render an address string, computing its checksum."""
    if protocol == AddressProtocol.ID:
        if actor_id is None:
            raise ValueError("ID addresses need an actor_id")
        return f"{network}0{actor_id}"
    if protocol == AddressProtocol.DELEGATED:
        if actor_id is None:
            raise ValueError("delegated addresses need a namespace actor_id")
        digest = checksum(bytes([protocol]) + _uvarint(actor_id) + payload)
        return f"{network}4{actor_id}f{_b32encode(payload + digest)}"
    digest = checksum(bytes([protocol]) + payload)
    return f"{network}{int(protocol)}{_b32encode(payload + digest)}"


def parse_address(address: str) -> Address:
    """Parse and validate an address string.

    Raises:
        InvalidAddressError: On any malformed input, including a bad checksum.
    """
    if len(address) < 3:
        raise InvalidAddressError(address, "too short")
    network, protocol_char, body = address[0], address[1], address[2:]
    if network not in NETWORKS:
        raise InvalidAddressError(address, f"unknown network prefix {network!r}")
    if not protocol_char.isdigit():
        raise InvalidAddressError(address, f"unknown protocol {protocol_char!r}")
    try:
        protocol = AddressProtocol(int(protocol_char))
    except ValueError as exc:
        raise InvalidAddressError(address, f"unknown protocol {protocol_char!r}") from exc

    if protocol == AddressProtocol.ID:
        return Address(network, protocol, _parse_decimal(body, address, "actor id"), b"")

    if protocol == AddressProtocol.DELEGATED:
        namespace_text, sep, encoded = body.partition("f")
        if not sep:
            raise InvalidAddressError(address, "missing namespace separator")
        namespace = _parse_decimal(namespace_text, address, "namespace")
        raw = _b32decode(encoded, address)
        if len(raw) <= CHECKSUM_LENGTH:
            raise InvalidAddressError(address, "missing subaddress")
        subaddress, digest = raw[:-CHECKSUM_LENGTH], raw[-CHECKSUM_LENGTH:]
        if len(subaddress) > MAX_SUBADDRESS_LENGTH:
            raise InvalidAddressError(address, "subaddress too long")
        if checksum(bytes([protocol]) + _uvarint(namespace) + subaddress) != digest:
            raise InvalidAddressError(address, "checksum mismatch")
        return Address(network, protocol, namespace, subaddress)

    raw = _b32decode(body, address)
    expected = _PAYLOAD_LENGTHS[protocol]
    if len(raw) != expected + CHECKSUM_LENGTH:
        raise InvalidAddressError(address, f"payload must be {expected} bytes")
    payload, digest = raw[:expected], raw[expected:]
    if checksum(bytes([protocol]) + payload) != digest:
        raise InvalidAddressError(address, "checksum mismatch")
    return Address(network, protocol, None, payload)


def read_address_file(path: Path) -> list[str]:
    """Read newline-separated addresses, ignoring blank lines.

    Addresses are not validated here; a malformed one fails its own units.
    """
    return [line.strip() for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]

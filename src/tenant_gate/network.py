"""Trust-boundary client identification.

The forwarded-address header is client-controlled unless the direct peer is
a proxy we operate. ``ClientIdentifier`` only honours it when the physical
connection address falls inside the configured trusted-proxy list; the
result is the partition key used for rate limiting.
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

UNKNOWN_CLIENT = "unknown"


def parse_address(value: Optional[str]) -> Optional[IPAddress]:
    """Parse an IP literal, returning None when it is not one."""
    if not value:
        return None
    try:
        return ipaddress.ip_address(value.strip())
    except ValueError:
        return None


def _unwrap(address: IPAddress) -> IPAddress:
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


def is_in_network(address: IPAddress, network: IPAddress, prefix_length: int) -> bool:
    """Return True if ``address`` lies within ``network/prefix_length``.

    Whole bytes up to the prefix boundary are compared directly, then the
    remaining bits of the next byte under a mask. Addresses of different
    families are compared after unwrapping IPv4-mapped IPv6; if the families
    still differ the address is simply not in the network.
    """
    if address.version != network.version:
        address, network = _unwrap(address), _unwrap(network)
        if address.version != network.version:
            return False

    address_bytes = address.packed
    network_bytes = network.packed

    full_bytes, remaining_bits = divmod(prefix_length, 8)

    for i in range(min(full_bytes, len(address_bytes))):
        if address_bytes[i] != network_bytes[i]:
            return False

    if remaining_bits and full_bytes < len(address_bytes):
        mask = (0xFF << (8 - remaining_bits)) & 0xFF
        if address_bytes[full_bytes] & mask != network_bytes[full_bytes] & mask:
            return False

    return True


@dataclass(frozen=True)
class TrustedProxyNetwork:
    """A trusted-proxy entry: a single address or ``address/prefix``."""

    cidr_or_literal: str
    address: IPAddress
    prefix_length: Optional[int] = None

    @classmethod
    def parse(cls, entry: str) -> "TrustedProxyNetwork":
        text = entry.strip()
        if "/" not in text:
            address = parse_address(text)
            if address is None:
                raise ValueError(f"Invalid trusted proxy address: {entry!r}")
            return cls(cidr_or_literal=text, address=address)

        addr_part, _, prefix_part = text.partition("/")
        address = parse_address(addr_part)
        if address is None or not prefix_part.isdigit():
            raise ValueError(f"Invalid trusted proxy network: {entry!r}")
        prefix_length = int(prefix_part)
        if prefix_length > address.max_prefixlen:
            raise ValueError(
                f"Prefix length {prefix_length} too long for {addr_part!r}"
            )
        return cls(cidr_or_literal=text, address=address, prefix_length=prefix_length)

    @property
    def is_network(self) -> bool:
        return self.prefix_length is not None

    def contains(self, address: IPAddress) -> bool:
        if self.prefix_length is None:
            return _unwrap(address) == _unwrap(self.address)
        return is_in_network(address, self.address, self.prefix_length)


class ClientIdentifier:
    """Derives the abuse-control partition key for a request."""

    def __init__(self, trusted_proxies: Iterable[str]):
        self.trusted = [TrustedProxyNetwork.parse(entry) for entry in trusted_proxies]

    def is_trusted_proxy(self, address: IPAddress) -> bool:
        return any(network.contains(address) for network in self.trusted)

    def identify(
        self,
        physical_address: Optional[str],
        forwarded_header_value: Optional[str] = None,
    ) -> str:
        """Return the client identity string.

        The first entry of the forwarded header is used only when the
        physical peer is a trusted proxy and that entry is a valid address.
        Every other case falls back to the physical address.
        """
        if not physical_address:
            return UNKNOWN_CLIENT

        peer = parse_address(physical_address)
        if peer is None or not self.is_trusted_proxy(peer):
            return physical_address

        if not forwarded_header_value:
            return physical_address

        client = forwarded_header_value.split(",")[0].strip()
        if parse_address(client) is None:
            logger.debug(
                "Ignoring malformed forwarded address from trusted proxy",
                extra={"client_key": physical_address},
            )
            return physical_address
        return client

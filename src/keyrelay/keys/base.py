"""Derived key information records.

These hold public, derived data only. The private key is never part of
``KeyInfo``, so it is safe to log or serialize.
"""

from dataclasses import asdict, dataclass, field


@dataclass(frozen=True)
class ChainAddresses:
    """Bech32 addresses of one key on the X, P and C chains of a network."""

    x_address: str
    p_address: str
    c_address: str


@dataclass(frozen=True)
class KeyInfo:
    """Addresses derived from a public key.

    Attributes:
        short_address: Checksummed base-58 encoding of the 20-byte short id
        eth_address: EIP-55 checksummed Ethereum address
        addresses: Chain addresses keyed by network id
    """

    short_address: str
    eth_address: str
    addresses: dict[int, ChainAddresses] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "short_address": self.short_address,
            "eth_address": self.eth_address,
            "addresses": {
                network_id: asdict(chain_addresses)
                for network_id, chain_addresses in self.addresses.items()
            },
        }

    def __str__(self) -> str:
        lines = [
            f"short_address: {self.short_address}",
            f"eth_address: {self.eth_address}",
        ]
        for network_id, a in sorted(self.addresses.items()):
            lines.append(f"network {network_id}: {a.x_address} {a.p_address} {a.c_address}")
        return "\n".join(lines)

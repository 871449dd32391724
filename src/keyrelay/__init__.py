"""secp256k1 key material, local and KMS signers, and EIP-712 forwarder relays."""

__version__ = "0.1.0"

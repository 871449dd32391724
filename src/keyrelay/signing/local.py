"""Local signing backend.

Signs in-process with a ``PrivateKey`` held in memory. Suitable for:
- Development/testing
- Hot wallets and gasless senders whose key lives with the client

WARNING: The private key is held in memory. Use the KMS backend when the key
must never leave managed hardware.
"""

import logging

from keyrelay.keys.private_key import PrivateKey
from keyrelay.keys.signature import Signature
from keyrelay.signing.base import Signer, SignerType

logger = logging.getLogger(__name__)


class LocalSigner(Signer):
    """Signer backed by an in-memory private key.

    Signing never suspends; the async methods only exist to share the
    ``Signer`` contract with remote backends.
    """

    def __init__(self, private_key: PrivateKey, chain_id: int):
        super().__init__(SignerType.LOCAL, chain_id)
        self._private_key = private_key
        self._address = private_key.eth_address()

    @classmethod
    def from_string(cls, value: str, chain_id: int) -> "LocalSigner":
        """Create from a hex or "PrivateKey-..." encoded key."""
        return cls(PrivateKey.from_string(value), chain_id)

    @property
    def address(self) -> str:
        return self._address

    @property
    def public_key(self):
        return self._private_key.derive_public_key()

    def with_chain_id(self, chain_id: int) -> "LocalSigner":
        return LocalSigner(self._private_key, chain_id)

    async def _sign_digest(self, digest: bytes) -> Signature:
        return self._private_key.sign_digest(digest)

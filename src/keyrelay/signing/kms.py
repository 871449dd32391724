"""AWS KMS signing backend.

Uses AWS Key Management Service for secure key storage and signing.
KMS keys never leave AWS - signing happens in the cloud.

Setup:
1. Create an asymmetric key in AWS KMS (ECC_SECG_P256K1, SIGN_VERIFY)
2. Set AWS_KMS_KEY_ID (key id, ARN or alias)
3. Configure AWS credentials (IAM role, access keys, etc.)

KMS returns a DER-encoded (r, s) pair with no recovery id and no low-S
guarantee. Both are fixed up locally: s is normalized to the lower half of
the curve order, and the recovery id is found by recovering against the
public key fetched once when the signer is created.

Reference:
- https://docs.aws.amazon.com/kms/latest/APIReference/API_Sign.html
"""

import asyncio
import logging
import os
from typing import Any, Optional

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from cryptography.hazmat.primitives.asymmetric.ec import SECP256K1, EllipticCurvePublicKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat, load_der_public_key
from ecdsa import SECP256k1
from ecdsa.der import UnexpectedDER
from ecdsa.util import sigdecode_der

from keyrelay.errors import RemoteSignerError, SigningError
from keyrelay.keys.public_key import PublicKey
from keyrelay.keys.signature import Signature, canonicalize, recover_public_key
from keyrelay.signing.base import Signer, SignerType

logger = logging.getLogger(__name__)

KMS_KEY_SPEC = "ECC_SECG_P256K1"
KMS_SIGNING_ALGORITHM = "ECDSA_SHA_256"

# KMS error codes worth retrying by the caller
RETRYABLE_ERROR_CODES = {
    "ThrottlingException",
    "KMSInternalException",
    "DependencyTimeoutException",
    "KeyUnavailableException",
    "LimitExceededException",
}

# botocore failures that happen before KMS answers and may succeed on retry
RETRYABLE_BOTOCORE_ERRORS = (
    EndpointConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
    ConnectionClosedError,
)


def _remote_error(operation: str, error: Exception) -> RemoteSignerError:
    """Translate a botocore failure into a RemoteSignerError."""
    if isinstance(error, ClientError):
        error_code = error.response.get("Error", {}).get("Code", "Unknown")
        if error_code == "AccessDeniedException":
            message = "Access denied to KMS key. Check IAM permissions."
        elif error_code == "NotFoundException":
            message = "KMS key not found. Check key ID/ARN."
        else:
            message = f"KMS {operation} failed: {error}"
        return RemoteSignerError(
            message,
            is_retryable=error_code in RETRYABLE_ERROR_CODES,
            error_code=error_code,
        )

    # Credentials, parameter validation and the like never recover on retry
    return RemoteSignerError(
        f"KMS {operation} failed: {error}",
        is_retryable=isinstance(error, RETRYABLE_BOTOCORE_ERRORS),
        error_code=type(error).__name__,
    )


def parse_der_signature(der_signature: bytes) -> tuple[int, int]:
    """Parse a DER-encoded ECDSA signature into (r, s).

    DER format: 0x30 [total-length] 0x02 [r-length] [r] 0x02 [s-length] [s]
    """
    try:
        return sigdecode_der(der_signature, SECP256k1.order)
    except UnexpectedDER as e:
        raise SigningError(f"malformed DER signature from KMS: {e}") from e


def parse_der_public_key(der_key: bytes) -> PublicKey:
    """Parse a DER SubjectPublicKeyInfo into a secp256k1 public key."""
    try:
        public_key = load_der_public_key(der_key)
    except ValueError as e:
        raise SigningError(f"malformed DER public key from KMS: {e}") from e

    if not isinstance(public_key, EllipticCurvePublicKey) or not isinstance(public_key.curve, SECP256K1):
        raise SigningError("KMS key is not a secp256k1 key")

    return PublicKey.from_bytes(public_key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint))


class KmsKey:
    """Handle to one KMS asymmetric key and its digest-signing operation.

    Keys are identified by:
    - AWS KMS Key ID (e.g., "1234abcd-12ab-34cd-56ef-1234567890ab")
    - AWS KMS Key ARN
    - AWS KMS Key Alias (e.g., "alias/my-signing-key")
    """

    def __init__(self, key_id: str, region: Optional[str] = None, client: Any = None):
        """Initialize a KMS key handle.

        Args:
            key_id: KMS key id, ARN or alias
            region: AWS region (defaults to AWS_DEFAULT_REGION or us-east-1)
            client: Pre-built boto3 ``kms`` client (created lazily if None)
        """
        self.key_id = key_id
        self.region = region or os.environ.get("AWS_DEFAULT_REGION", "us-east-1")
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("kms", region_name=self.region)
        return self._client

    async def _call(self, operation: str, fn):
        # boto3 is blocking; run it in the default thread pool
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"KMS {operation} error for {self.key_id}: {e}")
            raise _remote_error(operation, e) from e

    async def sign_digest(self, digest: bytes) -> bytes:
        """Sign a 32-byte digest; returns the DER-encoded signature."""
        response = await self._call(
            "Sign",
            lambda: self.client.sign(
                KeyId=self.key_id,
                Message=digest,
                MessageType="DIGEST",
                SigningAlgorithm=KMS_SIGNING_ALGORITHM,
            ),
        )
        return response["Signature"]

    async def get_public_key(self) -> bytes:
        """Fetch the DER-encoded public key."""
        response = await self._call(
            "GetPublicKey",
            lambda: self.client.get_public_key(KeyId=self.key_id),
        )

        key_spec = response.get("KeySpec") or response.get("CustomerMasterKeySpec")
        if key_spec and key_spec != KMS_KEY_SPEC:
            raise RemoteSignerError(
                f"KMS key {self.key_id} has spec {key_spec}, expected {KMS_KEY_SPEC}",
                is_retryable=False,
            )
        return response["PublicKey"]

    def __repr__(self) -> str:
        return f"KmsKey(key_id={self.key_id!r}, region={self.region!r})"


class KMSSigner(Signer):
    """AWS KMS signing backend.

    Create with ``await KMSSigner.create(key, chain_id)``; the public key and
    address are fetched once and cached for the signer's lifetime.

    Usage:
        signer = await KMSSigner.create(KmsKey("alias/relay"), chain_id=43114)
        sig = await signer.sign_typed_data(relay_tx)
    """

    def __init__(self, key: KmsKey, chain_id: int, public_key: PublicKey):
        super().__init__(SignerType.KMS, chain_id)
        self._key = key
        self._public_key = public_key
        self._address = public_key.eth_address()

    @classmethod
    async def create(cls, key: KmsKey, chain_id: int) -> "KMSSigner":
        public_key = parse_der_public_key(await key.get_public_key())
        signer = cls(key, chain_id, public_key)
        logger.info(f"Loaded KMS signer {signer.address} for {key.key_id}")
        return signer

    @property
    def address(self) -> str:
        return self._address

    @property
    def public_key(self) -> PublicKey:
        return self._public_key

    @property
    def key(self) -> KmsKey:
        return self._key

    def with_chain_id(self, chain_id: int) -> "KMSSigner":
        return KMSSigner(self._key, chain_id, self._public_key)

    async def _sign_digest(self, digest: bytes) -> Signature:
        der_signature = await self._key.sign_digest(digest)
        r, s = parse_der_signature(der_signature)
        r, s, _ = canonicalize(r, s, 0)
        return Signature(r=r, s=s, v=self._recovery_id(digest, r, s))

    def _recovery_id(self, digest: bytes, r: int, s: int) -> int:
        """Find the recovery id whose recovered key is ours."""
        for recovery_id in (0, 1):
            try:
                recovered = recover_public_key(Signature(r=r, s=s, v=recovery_id), digest)
            except SigningError:
                continue
            if recovered == self._public_key:
                return recovery_id

        raise SigningError(f"KMS signature does not recover to {self.address}")

    async def health_check(self) -> bool:
        """Check if KMS is accessible and still holds the same key."""
        try:
            der_key = await self._key.get_public_key()
        except RemoteSignerError as e:
            logger.warning(f"KMS health check failed: {e}")
            return False
        try:
            return parse_der_public_key(der_key) == self._public_key
        except SigningError as e:
            logger.warning(f"KMS health check got an unusable public key: {e}")
            return False

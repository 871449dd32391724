"""Signer factory.

Creates the appropriate signing backend based on configuration.
"""

import logging
from typing import Optional

from keyrelay.config import Settings, get_settings
from keyrelay.crypto import decrypt_secret
from keyrelay.errors import KeyMaterialError
from keyrelay.keys.loader import load_keys_from_file
from keyrelay.keys.private_key import PrivateKey
from keyrelay.signing.base import Signer, SignerType

logger = logging.getLogger(__name__)


def get_signer_type(settings: Optional[Settings] = None) -> SignerType:
    """Determine which signer to use based on settings.

    Priority:
    1. SIGNER_BACKEND (explicit)
    2. AWS_KMS_KEY_ID present -> KMS
    3. Default to Local

    Raises:
        ValueError: If SIGNER_BACKEND names an unknown backend
    """
    settings = settings or get_settings()
    explicit = settings.signer_backend.strip().lower()

    if explicit:
        try:
            return SignerType(explicit)
        except ValueError:
            raise ValueError(f"Unknown SIGNER_BACKEND: {settings.signer_backend}") from None

    if settings.aws_kms_key_id:
        return SignerType.KMS

    return SignerType.LOCAL


def _load_local_key(settings: Settings) -> PrivateKey:
    if settings.private_key:
        return PrivateKey.from_string(decrypt_secret(settings.private_key, settings.master_key))

    if settings.key_file:
        keys = load_keys_from_file(settings.key_file)
        if not keys:
            raise KeyMaterialError(f"no keys found in {settings.key_file}")
        return keys[0]

    raise KeyMaterialError("local signer needs PRIVATE_KEY or KEY_FILE")


_signer_instance: Optional[Signer] = None


async def get_signer(settings: Optional[Settings] = None) -> Signer:
    """Get the configured signer instance.

    Returns singleton instance for the configured signer type.

    Raises:
        KeyMaterialError: If the local key is missing or malformed
        RemoteSignerError: If the KMS public key cannot be fetched
    """
    global _signer_instance

    if _signer_instance is not None:
        return _signer_instance

    settings = settings or get_settings()
    signer_type = get_signer_type(settings)
    logger.info(f"Initializing {signer_type.value} signer (chain {settings.chain_id})")

    if signer_type == SignerType.KMS:
        from keyrelay.signing.kms import KmsKey, KMSSigner

        if not settings.aws_kms_key_id:
            raise KeyMaterialError("kms signer needs AWS_KMS_KEY_ID")
        key = KmsKey(settings.aws_kms_key_id, region=settings.aws_default_region)
        _signer_instance = await KMSSigner.create(key, settings.chain_id)

    else:  # LOCAL
        from keyrelay.signing.local import LocalSigner

        _signer_instance = LocalSigner(_load_local_key(settings), settings.chain_id)

    return _signer_instance


def reset_signer():
    """Reset the signer instance (for testing)."""
    global _signer_instance
    _signer_instance = None


async def get_signer_info(settings: Optional[Settings] = None) -> dict:
    """Get information about the current signer configuration.

    Returns:
        Dict with signer type, address, chain id and health status
    """
    signer = await get_signer(settings)
    health = await signer.health_check()

    return {
        "type": signer.signer_type.value,
        "address": signer.address,
        "chain_id": signer.chain_id,
        "healthy": health,
        "class": signer.__class__.__name__,
    }

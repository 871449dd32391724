"""Configuration using pydantic-settings.

Settings are loaded from environment variables (or a ``.env`` file) and
select the signing backend, its key material and the default chain/network.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")

    # ======================
    # Signer backend
    # ======================
    signer_backend: str = Field(
        default="", description="Signing backend: 'local' or 'kms' (auto-detected if empty)"
    )
    private_key: Optional[str] = Field(
        default=None,
        description="Local signing key: 0x-hex, PrivateKey-... or Fernet-encrypted",
    )
    key_file: Optional[str] = Field(
        default=None, description="Path to a file of PrivateKey-... keys, one per line"
    )

    # ======================
    # AWS KMS
    # ======================
    aws_kms_key_id: Optional[str] = Field(
        default=None, description="KMS key id, ARN or alias (ECC_SECG_P256K1)"
    )
    aws_default_region: str = Field(default="us-east-1", description="AWS region")

    # ======================
    # Chains
    # ======================
    chain_id: int = Field(default=43114, description="Default EVM chain id")
    network_id: int = Field(default=1, description="Avalanche network id for HRP addresses")

    # ======================
    # Encryption
    # ======================
    master_key: Optional[str] = Field(
        default=None, description="Fernet key used to decrypt PRIVATE_KEY at rest"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def has_local_key(self) -> bool:
        return bool(self.private_key)

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "signer_backend": self.signer_backend or "(auto)",
            "private_key": "***" if self.private_key else "(not set)",
            "key_file": self.key_file or "(not set)",
            "aws_kms_key_id": self.aws_kms_key_id or "(not set)",
            "aws_default_region": self.aws_default_region,
            "chain_id": self.chain_id,
            "network_id": self.network_id,
            "master_key": "***" if self.master_key else "(not set)",
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

"""Pytest configuration and fixtures."""

import hashlib
import os

import pytest
from botocore.exceptions import ClientError
from ecdsa import SECP256k1, SigningKey
from ecdsa.util import sigencode_der

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ.pop("PRIVATE_KEY", None)
os.environ.pop("AWS_KMS_KEY_ID", None)
os.environ.pop("SIGNER_BACKEND", None)

from keyrelay.keys import PrivateKey
from keyrelay.signing.factory import reset_signer
from keyrelay.signing.kms import KmsKey

# Well-known test key ("ewoq") funded on local Avalanche networks
EWOQ_HEX = "0x56289e99c94b6912bfc12adc093c9b51124f0dc54ac7a766b2bc5ccf558d8027"
EWOQ_ETH_ADDRESS = "0x8db97C7cEcE249c2b98bDC0226Cc4C2A57BF52FC"

# Private key 1 and its well-known address
ONE_HEX = "0x" + "00" * 31 + "01"
ONE_ETH_ADDRESS = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"

GAS_PAYER_HEX = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
GAS_PAYER_ETH_ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"


class FakeKmsClient:
    """In-memory stand-in for the boto3 ``kms`` client.

    Signs with a local ``ecdsa`` key and answers like the real API: DER
    signatures (possibly high-S) and a DER SubjectPublicKeyInfo.
    """

    def __init__(self, raw_key: bytes, force_high_s: bool = False):
        self.signing_key = SigningKey.from_string(raw_key, curve=SECP256k1)
        self.force_high_s = force_high_s
        self.error = None
        self.sign_calls = []
        self.public_key_calls = 0

    def sign(self, KeyId, Message, MessageType, SigningAlgorithm):
        self.sign_calls.append(
            {"KeyId": KeyId, "Message": Message, "MessageType": MessageType, "SigningAlgorithm": SigningAlgorithm}
        )
        if self.error is not None:
            raise self.error

        order = SECP256k1.order
        r, s = self.signing_key.sign_digest_deterministic(
            Message, hashfunc=hashlib.sha256, sigencode=lambda r, s, order: (r, s)
        )
        if self.force_high_s and s <= order // 2:
            s = order - s
        return {
            "KeyId": KeyId,
            "Signature": sigencode_der(r, s, order),
            "SigningAlgorithm": SigningAlgorithm,
        }

    def get_public_key(self, KeyId):
        self.public_key_calls += 1
        if self.error is not None:
            raise self.error
        return {
            "KeyId": KeyId,
            "PublicKey": self.signing_key.get_verifying_key().to_der(),
            "KeySpec": "ECC_SECG_P256K1",
            "KeyUsage": "SIGN_VERIFY",
            "SigningAlgorithms": ["ECDSA_SHA_256"],
        }


def client_error(code: str, operation: str = "Sign") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} (test)"}}, operation)


@pytest.fixture(autouse=True)
def clean_signer():
    """Reset the signer singleton around each test."""
    reset_signer()
    yield
    reset_signer()


@pytest.fixture
def ewoq_key() -> PrivateKey:
    return PrivateKey.from_hex(EWOQ_HEX)


@pytest.fixture
def gas_payer_key() -> PrivateKey:
    return PrivateKey.from_hex(GAS_PAYER_HEX)


@pytest.fixture
def fake_kms_client(ewoq_key) -> FakeKmsClient:
    return FakeKmsClient(ewoq_key.to_bytes())


@pytest.fixture
def kms_key(fake_kms_client) -> KmsKey:
    return KmsKey("alias/test-relay", region="us-east-1", client=fake_kms_client)

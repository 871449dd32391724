"""Typed-data relay requests for a GSN-style trusted forwarder.

A relay request moves through three immutable stages:

1. RelayTx (built)        - domain + forward request, validated ranges only
2. SignedRelayTx (signed) - the sender's EIP-712 signature over the request
3. ExecuteCall (encoded)  - ``execute(...)`` calldata for the forwarder

The forwarder contract checks the nonce, expiry and domain on-chain; none of
those are checked here beyond their types.

Usage:
    relay_tx = (
        RelayTxBuilder()
        .domain_name("my name")
        .domain_version("1")
        .domain_chain_id(43112)
        .domain_verifying_contract(forwarder)
        .from_(sender.address)
        .to(counter)
        .gas(30000)
        .nonce(0)
        .data(calldata)
        .valid_until_time(deadline)
        .type_name("my name")
        .type_suffix_data("my suffix")
        .build()
    )
    signed = await relay_tx.sign(sender)
    call = signed.encode_execute_call()
"""

import logging
from dataclasses import dataclass
from typing import Annotated, Any, Optional, Union

from eth_abi import encode
from eth_abi.exceptions import EncodingError as AbiEncodingError
from eth_utils import (
    function_signature_to_4byte_selector,
    is_address,
    is_checksum_address,
    is_checksum_formatted_address,
    to_checksum_address,
)
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from keyrelay.errors import EncodingError, InvalidEncodingError, RelayBuildError
from keyrelay.keys.encoding import decode_hex
from keyrelay.keys.signature import ETH_V_OFFSET, Signature
from keyrelay.relay import eip712
from keyrelay.signing.base import Signer

logger = logging.getLogger(__name__)

MAX_UINT256 = 2**256 - 1

Uint256 = Annotated[int, Field(ge=0, le=MAX_UINT256)]

FORWARD_REQUEST_ABI = "(address,address,uint256,uint256,uint256,bytes,uint256)"
EXECUTE_SIGNATURE = f"execute({FORWARD_REQUEST_ABI},bytes32,bytes32,bytes,bytes)"
EXECUTE_SELECTOR = function_signature_to_4byte_selector(EXECUTE_SIGNATURE)


def _checksum_address(v: Union[str, bytes]) -> str:
    if isinstance(v, bytes):
        if len(v) != 20:
            raise ValueError(f"address must be 20 bytes, got {len(v)}")
        return to_checksum_address(v)
    if not isinstance(v, str) or not is_address(v):
        raise ValueError(f"invalid address: {v!r}")
    # Mixed case means the caller claims an EIP-55 checksum
    if is_checksum_formatted_address(v) and not is_checksum_address(v):
        raise ValueError(f"address checksum mismatch: {v!r}")
    return to_checksum_address(v)


class RelayDomain(BaseModel):
    """EIP-712 domain the forwarder registered with ``registerDomainSeparator``."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Domain name")
    version: str = Field(..., description="Domain version")
    chain_id: Uint256 = Field(..., description="EVM chain ID")
    verifying_contract: str = Field(..., description="Forwarder contract address")

    @field_validator("verifying_contract", mode="before")
    @classmethod
    def validate_verifying_contract(cls, v: Any) -> str:
        return _checksum_address(v)

    def separator(self) -> bytes:
        return eip712.domain_separator(self.name, self.version, self.chain_id, self.verifying_contract)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": self.verifying_contract,
        }


class ForwardRequest(BaseModel):
    """Call the forwarder executes on behalf of ``from``.

    Expiry is either ``valid_until_time`` (a Unix timestamp below the uint256
    maximum) or the explicit ``no_expiry`` flag, never both.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: str = Field(..., alias="from", description="Logical sender (not the gas payer)")
    to: str = Field(..., description="Recipient contract")
    value: Uint256 = Field(default=0, description="Wei forwarded with the call")
    gas: Uint256 = Field(..., description="Gas limit for the inner call")
    nonce: Uint256 = Field(..., description="Forwarder nonce of the sender")
    data: bytes = Field(default=b"", description="ABI-encoded call")
    valid_until_time: Optional[Uint256] = Field(
        None, description="Unix-epoch seconds after which the request is rejected"
    )
    no_expiry: bool = Field(default=False, description="Request never expires")
    type_name: str = Field(..., min_length=1, description="Registered request type name")
    type_suffix_data: str = Field(
        default="", description="Extra type fields, also appended raw to the struct encoding"
    )

    @field_validator("from_", "to", mode="before")
    @classmethod
    def validate_address(cls, v: Any) -> str:
        return _checksum_address(v)

    @field_validator("data", mode="before")
    @classmethod
    def validate_data(cls, v: Any) -> bytes:
        # Strings are hex calldata, not text
        if isinstance(v, str):
            try:
                return decode_hex(v)
            except InvalidEncodingError as e:
                raise ValueError(str(e)) from e
        return v

    @model_validator(mode="after")
    def validate_expiry(self) -> "ForwardRequest":
        if self.no_expiry:
            if self.valid_until_time is not None:
                raise ValueError("set either valid_until_time or no_expiry, not both")
        elif self.valid_until_time is None:
            raise ValueError("valid_until_time is required unless no_expiry is set")
        elif self.valid_until_time == MAX_UINT256:
            raise ValueError("max uint256 is not a timestamp; use no_expiry to disable expiry")
        return self

    @property
    def expiry(self) -> int:
        """validUntilTime as encoded on-chain."""
        return MAX_UINT256 if self.no_expiry else self.valid_until_time

    @property
    def suffix_bytes(self) -> bytes:
        return self.type_suffix_data.encode("utf-8")

    def as_tuple(self) -> tuple:
        return (self.from_, self.to, self.value, self.gas, self.nonce, self.data, self.expiry)

    def to_dict(self) -> dict:
        return {
            "from": self.from_,
            "to": self.to,
            "value": str(self.value),
            "gas": str(self.gas),
            "nonce": str(self.nonce),
            "data": "0x" + self.data.hex(),
            "validUntilTime": str(self.expiry),
        }


@dataclass(frozen=True)
class ExecuteCall:
    """Calldata for the forwarder's ``execute``; submit it to ``to``."""

    to: str
    data: bytes

    @property
    def data_hex(self) -> str:
        return "0x" + self.data.hex()


@dataclass(frozen=True)
class RelayTx:
    """A built relay request, ready to be signed by its sender."""

    domain: RelayDomain
    request: ForwardRequest

    @property
    def forwarder(self) -> str:
        return self.domain.verifying_contract

    def domain_separator(self) -> bytes:
        return self.domain.separator()

    def request_type(self) -> str:
        return eip712.request_type(self.request.type_name, self.request.type_suffix_data)

    def request_type_hash(self) -> bytes:
        return eip712.request_type_hash(self.request.type_name, self.request.type_suffix_data)

    def struct_hash(self) -> bytes:
        r = self.request
        return eip712.hash_request(
            self.request_type_hash(),
            r.from_, r.to, r.value, r.gas, r.nonce, r.data, r.expiry,
            r.suffix_bytes,
        )

    def eip712_digest(self) -> bytes:
        return eip712.eip712_digest(self.domain_separator(), self.struct_hash())

    def to_typed_data(self) -> dict:
        """Full ``eth_signTypedData_v4`` message, for wallets that sign themselves.

        Only requests without suffix data have a self-contained type set.

        Raises:
            EncodingError: If the request carries suffix data
        """
        if self.request.type_suffix_data:
            raise EncodingError("typed-data view is not available for requests with suffix data")

        return {
            "types": {
                "EIP712Domain": [
                    {"name": "name", "type": "string"},
                    {"name": "version", "type": "string"},
                    {"name": "chainId", "type": "uint256"},
                    {"name": "verifyingContract", "type": "address"},
                ],
                self.request.type_name: [
                    {"name": "from", "type": "address"},
                    {"name": "to", "type": "address"},
                    {"name": "value", "type": "uint256"},
                    {"name": "gas", "type": "uint256"},
                    {"name": "nonce", "type": "uint256"},
                    {"name": "data", "type": "bytes"},
                    {"name": "validUntilTime", "type": "uint256"},
                ],
            },
            "primaryType": self.request.type_name,
            "domain": self.domain.to_dict(),
            "message": {
                "from": self.request.from_,
                "to": self.request.to,
                "value": self.request.value,
                "gas": self.request.gas,
                "nonce": self.request.nonce,
                "data": "0x" + self.request.data.hex(),
                "validUntilTime": self.request.expiry,
            },
        }

    async def sign(self, signer: Signer) -> "SignedRelayTx":
        """Sign with the request's sender; signer errors propagate unchanged."""
        if signer.address != self.request.from_:
            logger.warning(
                f"Relay request from {self.request.from_} signed by {signer.address}; "
                "the forwarder will reject it"
            )

        signature = await signer.sign_typed_data(self)
        logger.info(
            f"Signed relay request from {self.request.from_} to {self.request.to} "
            f"(nonce {self.request.nonce}, forwarder {self.forwarder})"
        )
        return SignedRelayTx(relay_tx=self, signature=signature)


@dataclass(frozen=True)
class SignedRelayTx:
    """A relay request with its sender's typed-data signature."""

    relay_tx: RelayTx
    signature: Signature

    def encode_execute_call(self) -> ExecuteCall:
        """ABI-encode ``execute(request, domainSeparator, requestTypeHash, suffixData, signature)``.

        Raises:
            EncodingError: If the arguments cannot be ABI-encoded
        """
        if self.signature.v not in (ETH_V_OFFSET, ETH_V_OFFSET + 1):
            raise EncodingError(f"forwarder signatures need v of 27 or 28, got {self.signature.v}")

        relay_tx = self.relay_tx
        try:
            args = encode(
                [FORWARD_REQUEST_ABI, "bytes32", "bytes32", "bytes", "bytes"],
                [
                    relay_tx.request.as_tuple(),
                    relay_tx.domain_separator(),
                    relay_tx.request_type_hash(),
                    relay_tx.request.suffix_bytes,
                    self.signature.to_bytes(),
                ],
            )
        except AbiEncodingError as e:
            raise EncodingError(f"failed to encode execute call: {e}") from e

        return ExecuteCall(to=relay_tx.forwarder, data=EXECUTE_SELECTOR + args)

    def to_dict(self) -> dict:
        """JSON-ready view for relay servers."""
        return {
            "forwarder": self.relay_tx.forwarder,
            "domain": self.relay_tx.domain.to_dict(),
            "domainSeparator": "0x" + self.relay_tx.domain_separator().hex(),
            "requestType": self.relay_tx.request_type(),
            "requestTypeHash": "0x" + self.relay_tx.request_type_hash().hex(),
            "request": self.relay_tx.request.to_dict(),
            "suffixData": "0x" + self.relay_tx.request.suffix_bytes.hex(),
            "signature": self.signature.to_hex(),
        }


class RelayTxBuilder:
    """Fluent builder for ``RelayTx``.

    Setters only record values; ``build()`` validates them all at once.
    """

    def __init__(self):
        self._domain: dict = {}
        self._request: dict = {}

    def domain_name(self, name: str) -> "RelayTxBuilder":
        self._domain["name"] = name
        return self

    def domain_version(self, version: str) -> "RelayTxBuilder":
        self._domain["version"] = version
        return self

    def domain_chain_id(self, chain_id: int) -> "RelayTxBuilder":
        self._domain["chain_id"] = chain_id
        return self

    def domain_verifying_contract(self, address: Union[str, bytes]) -> "RelayTxBuilder":
        self._domain["verifying_contract"] = address
        return self

    def from_(self, address: Union[str, bytes]) -> "RelayTxBuilder":
        self._request["from_"] = address
        return self

    def to(self, address: Union[str, bytes]) -> "RelayTxBuilder":
        self._request["to"] = address
        return self

    def value(self, value: int) -> "RelayTxBuilder":
        self._request["value"] = value
        return self

    def gas(self, gas: int) -> "RelayTxBuilder":
        self._request["gas"] = gas
        return self

    def nonce(self, nonce: int) -> "RelayTxBuilder":
        self._request["nonce"] = nonce
        return self

    def data(self, data: Union[bytes, str]) -> "RelayTxBuilder":
        self._request["data"] = data
        return self

    def valid_until_time(self, timestamp: int) -> "RelayTxBuilder":
        self._request["valid_until_time"] = timestamp
        return self

    def no_expiry(self) -> "RelayTxBuilder":
        """Request never expires; a leaked signature stays valid until the nonce moves."""
        logger.warning("Relay request built with no expiry")
        self._request["no_expiry"] = True
        return self

    def type_name(self, name: str) -> "RelayTxBuilder":
        self._request["type_name"] = name
        return self

    def type_suffix_data(self, suffix: str) -> "RelayTxBuilder":
        self._request["type_suffix_data"] = suffix
        return self

    def build(self) -> RelayTx:
        """Validate and freeze.

        Raises:
            RelayBuildError: If any field is missing or out of range
        """
        try:
            domain = RelayDomain(**self._domain)
            request = ForwardRequest(**self._request)
        except ValidationError as e:
            raise RelayBuildError(f"invalid relay request: {e}") from e
        return RelayTx(domain=domain, request=request)

"""EIP-712 hashing primitives for the GSN-style trusted forwarder.

The forwarder registers request types of the form::

    {type_name}(address from,address to,uint256 value,uint256 gas,
                uint256 nonce,bytes data,uint256 validUntilTime{,suffix})

where the suffix carries any extra typed fields (and their nested type
definitions). The suffix data is appended raw to the ABI-encoded struct
before hashing, exactly as the contract does on-chain.
"""

from eth_abi import encode
from eth_utils import keccak, to_canonical_address

EIP712_DOMAIN_TYPE = "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
EIP712_DOMAIN_TYPEHASH = keccak(text=EIP712_DOMAIN_TYPE)

GENERIC_PARAMS = (
    "address from,address to,uint256 value,uint256 gas,"
    "uint256 nonce,bytes data,uint256 validUntilTime"
)

EIP712_PREFIX = b"\x19\x01"


def domain_separator(name: str, version: str, chain_id: int, verifying_contract: str) -> bytes:
    """keccak(typehash ‖ keccak(name) ‖ keccak(version) ‖ chainId ‖ verifyingContract)."""
    return keccak(
        encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [
                EIP712_DOMAIN_TYPEHASH,
                keccak(text=name),
                keccak(text=version),
                chain_id,
                to_canonical_address(verifying_contract),
            ],
        )
    )


def request_type(type_name: str, type_suffix: str = "") -> str:
    """Request type string; a non-empty suffix must close the parenthesis itself."""
    if type_suffix:
        return f"{type_name}({GENERIC_PARAMS},{type_suffix}"
    return f"{type_name}({GENERIC_PARAMS})"


def request_type_hash(type_name: str, type_suffix: str = "") -> bytes:
    return keccak(text=request_type(type_name, type_suffix))


def hash_request(
    type_hash: bytes,
    from_: str,
    to: str,
    value: int,
    gas: int,
    nonce: int,
    data: bytes,
    valid_until_time: int,
    suffix_data: bytes = b"",
) -> bytes:
    """Struct hash of a forward request, with the suffix data appended raw."""
    encoded = encode(
        ["bytes32", "address", "address", "uint256", "uint256", "uint256", "bytes32", "uint256"],
        [
            type_hash,
            to_canonical_address(from_),
            to_canonical_address(to),
            value,
            gas,
            nonce,
            keccak(data),
            valid_until_time,
        ],
    )
    return keccak(encoded + suffix_data)


def eip712_digest(domain_sep: bytes, struct_hash: bytes) -> bytes:
    """keccak(0x1901 ‖ domainSeparator ‖ structHash)."""
    return keccak(EIP712_PREFIX + domain_sep + struct_hash)

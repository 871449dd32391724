"""Tests for private/public key material and address derivation."""

import hashlib
import pickle

import base58
import pytest
from eth_utils import keccak

from conftest import EWOQ_ETH_ADDRESS, EWOQ_HEX, GAS_PAYER_ETH_ADDRESS, GAS_PAYER_HEX, ONE_ETH_ADDRESS, ONE_HEX
from keyrelay.errors import (
    ChecksumMismatchError,
    InvalidDigestLengthError,
    InvalidEncodingError,
    InvalidLengthError,
    InvalidScalarError,
    RandomSourceError,
)
from keyrelay.keys import PrivateKey, PublicKey, recover_public_key
from keyrelay.keys.encoding import (
    bech32_decode,
    decode_checksummed,
    encode_checksummed,
    get_hrp,
    hash160,
)
from keyrelay.keys.signature import SECP256K1_HALF_N, SECP256K1_N


class TestPrivateKeyEncodings:
    """Tests for PrivateKey construction and encodings."""

    def test_from_hex_known_addresses(self):
        assert PrivateKey.from_hex(ONE_HEX).eth_address() == ONE_ETH_ADDRESS
        assert PrivateKey.from_hex(GAS_PAYER_HEX).eth_address() == GAS_PAYER_ETH_ADDRESS
        assert PrivateKey.from_hex(EWOQ_HEX).eth_address() == EWOQ_ETH_ADDRESS

    def test_hex_prefix_optional(self):
        with_prefix = PrivateKey.from_hex(EWOQ_HEX)
        without_prefix = PrivateKey.from_hex(EWOQ_HEX[2:])
        assert with_prefix == without_prefix
        assert with_prefix.to_hex() == EWOQ_HEX

    def test_bytes_round_trip(self, ewoq_key):
        assert PrivateKey.from_bytes(ewoq_key.to_bytes()) == ewoq_key
        assert len(ewoq_key.to_bytes()) == 32

    def test_checksummed_round_trip(self, ewoq_key):
        encoded = ewoq_key.to_checksummed()
        assert encoded.startswith("PrivateKey-")
        assert PrivateKey.from_checksummed(encoded) == ewoq_key

    def test_checksummed_uses_double_sha256(self, ewoq_key):
        payload = base58.b58decode(ewoq_key.to_checksummed()[len("PrivateKey-"):])
        raw, check = payload[:32], payload[32:]
        assert raw == ewoq_key.to_bytes()
        assert check == hashlib.sha256(hashlib.sha256(raw).digest()).digest()[:4]

    def test_from_string_accepts_both_encodings(self, ewoq_key):
        assert PrivateKey.from_string(ewoq_key.to_checksummed()) == ewoq_key
        assert PrivateKey.from_string(f"  {EWOQ_HEX}\n") == ewoq_key

    @pytest.mark.parametrize("length", [31, 33])
    def test_from_bytes_wrong_length(self, length):
        with pytest.raises(InvalidLengthError):
            PrivateKey.from_bytes(b"\x01" * length)

    def test_from_bytes_zero_scalar(self):
        with pytest.raises(InvalidScalarError):
            PrivateKey.from_bytes(b"\x00" * 32)

    def test_from_bytes_scalar_at_order(self):
        with pytest.raises(InvalidScalarError):
            PrivateKey.from_bytes(SECP256K1_N.to_bytes(32, "big"))

    def test_from_bytes_largest_valid_scalar(self):
        key = PrivateKey.from_bytes((SECP256K1_N - 1).to_bytes(32, "big"))
        assert key.to_bytes() == (SECP256K1_N - 1).to_bytes(32, "big")

    def test_from_hex_malformed(self):
        with pytest.raises(InvalidEncodingError):
            PrivateKey.from_hex("0xzz" + "00" * 31)

    def test_from_checksummed_tampered_payload(self, ewoq_key):
        payload = bytearray(base58.b58decode(ewoq_key.to_checksummed()[len("PrivateKey-"):]))
        payload[0] ^= 0x01
        tampered = "PrivateKey-" + base58.b58encode(bytes(payload)).decode()

        with pytest.raises(ChecksumMismatchError):
            PrivateKey.from_checksummed(tampered)

    def test_from_checksummed_without_prefix(self, ewoq_key):
        bare = ewoq_key.to_checksummed()[len("PrivateKey-"):]

        assert PrivateKey.from_checksummed(bare) == ewoq_key

    def test_from_checksummed_not_base58(self):
        with pytest.raises(InvalidEncodingError):
            PrivateKey.from_checksummed("PrivateKey-0OIl")


class TestPrivateKeyGenerate:
    """Tests for key generation."""

    def test_generate_gives_distinct_keys(self):
        assert PrivateKey.generate() != PrivateKey.generate()

    def test_generate_with_injected_rng(self):
        key = PrivateKey.generate(rng=lambda n: b"\x00" * (n - 1) + b"\x01")
        assert key.eth_address() == ONE_ETH_ADDRESS

    def test_generate_redraws_out_of_range_scalars(self):
        draws = [b"\x00" * 32, b"\xff" * 32, b"\x00" * 31 + b"\x01"]

        key = PrivateKey.generate(rng=lambda n: draws.pop(0))

        assert key.eth_address() == ONE_ETH_ADDRESS
        assert draws == []

    def test_generate_random_source_failure(self):
        def broken(n):
            raise OSError("no entropy")

        with pytest.raises(RandomSourceError):
            PrivateKey.generate(rng=broken)

    def test_generate_short_read(self):
        with pytest.raises(RandomSourceError):
            PrivateKey.generate(rng=lambda n: b"\x01" * (n - 1))


class TestPrivateKeySecrecy:
    """The scalar must not leak through common object protocols."""

    def test_repr_and_str_hide_scalar(self, ewoq_key):
        secret = EWOQ_HEX[2:]
        assert secret not in repr(ewoq_key)
        assert secret not in str(ewoq_key)
        assert EWOQ_ETH_ADDRESS in repr(ewoq_key)

    def test_not_picklable(self, ewoq_key):
        with pytest.raises(TypeError):
            pickle.dumps(ewoq_key)

    def test_equality_and_hash(self, ewoq_key, gas_payer_key):
        assert ewoq_key == PrivateKey.from_hex(EWOQ_HEX)
        assert ewoq_key != gas_payer_key
        assert len({ewoq_key, PrivateKey.from_hex(EWOQ_HEX), gas_payer_key}) == 2

    def test_key_info_never_holds_private_key(self, ewoq_key):
        info = ewoq_key.derive_addresses(1)
        rendered = str(info) + repr(info) + str(info.to_dict())

        assert EWOQ_HEX[2:] not in rendered
        assert ewoq_key.to_checksummed() not in rendered


class TestAddressDerivation:
    """Tests for short id, HRP and Ethereum addresses."""

    def test_local_network_addresses(self, ewoq_key):
        info = ewoq_key.derive_addresses(12345)

        addresses = info.addresses[12345]
        assert addresses.x_address == "X-local18jma8ppw3nhx5r4ap8clazz0dps7rv5u00z96u"
        assert addresses.p_address == "P-local18jma8ppw3nhx5r4ap8clazz0dps7rv5u00z96u"
        assert addresses.c_address == "C-local18jma8ppw3nhx5r4ap8clazz0dps7rv5u00z96u"
        assert info.eth_address == EWOQ_ETH_ADDRESS

    def test_short_id_is_hash160_of_compressed_key(self, ewoq_key):
        public_key = ewoq_key.derive_public_key()
        compressed = public_key.to_compressed_bytes()

        assert len(compressed) == 33
        assert public_key.to_short_id() == hash160(compressed)
        assert len(public_key.to_short_id()) == 20
        assert decode_checksummed(ewoq_key.derive_addresses(1).short_address) == public_key.to_short_id()

    def test_bech32_payload_is_short_id(self, ewoq_key):
        public_key = ewoq_key.derive_public_key()
        x_address = ewoq_key.derive_addresses(1).addresses[1].x_address

        assert x_address.startswith("X-avax1")
        assert bech32_decode("avax", x_address[2:]) == public_key.to_short_id()

    @pytest.mark.parametrize(
        "network_id,hrp",
        [(1, "avax"), (2, "cascade"), (3, "denali"), (4, "everest"), (5, "fuji"),
         (10, "testing"), (12345, "local"), (7, "custom"), (99999, "custom")],
    )
    def test_hrp_table(self, network_id, hrp):
        assert get_hrp(network_id) == hrp

    def test_unknown_network_uses_custom_hrp(self, ewoq_key):
        info = ewoq_key.derive_addresses(4242)
        assert info.addresses[4242].x_address.startswith("X-custom1")

    def test_eth_address_is_keccak_of_uncompressed_key(self, ewoq_key):
        uncompressed = ewoq_key.derive_public_key().to_uncompressed_bytes()

        assert len(uncompressed) == 65 and uncompressed[0] == 0x04
        assert keccak(uncompressed[1:])[-20:] == ewoq_key.derive_public_key().eth_address_bytes()

    def test_key_info_to_dict(self, ewoq_key):
        data = ewoq_key.derive_addresses(5).to_dict()

        assert data["eth_address"] == EWOQ_ETH_ADDRESS
        assert data["addresses"][5]["x_address"].startswith("X-fuji1")


class TestPublicKey:
    """Tests for PublicKey parsing and verification."""

    def test_compressed_and_uncompressed_round_trip(self, ewoq_key):
        public_key = ewoq_key.derive_public_key()

        assert PublicKey.from_bytes(public_key.to_compressed_bytes()) == public_key
        assert PublicKey.from_bytes(public_key.to_uncompressed_bytes()) == public_key

    def test_from_bytes_wrong_length(self):
        with pytest.raises(InvalidLengthError):
            PublicKey.from_bytes(b"\x02" * 32)

    def test_from_bytes_bad_uncompressed_prefix(self, ewoq_key):
        raw = b"\x05" + ewoq_key.derive_public_key().to_uncompressed_bytes()[1:]
        with pytest.raises(InvalidEncodingError):
            PublicKey.from_bytes(raw)

    def test_verify(self, ewoq_key, gas_payer_key):
        digest = keccak(b"verify me")
        sig = ewoq_key.sign_digest(digest)

        assert ewoq_key.derive_public_key().verify(digest, sig)
        assert not gas_payer_key.derive_public_key().verify(digest, sig)
        assert not ewoq_key.derive_public_key().verify(keccak(b"other"), sig)


class TestSignDigest:
    """Tests for PrivateKey.sign_digest."""

    def test_signature_recovers_to_signer(self, ewoq_key):
        digest = hashlib.sha256(b"hello").digest()
        sig = ewoq_key.sign_digest(digest)

        assert sig.v in (0, 1)
        assert recover_public_key(sig, digest) == ewoq_key.derive_public_key()

    def test_signature_is_low_s(self, ewoq_key):
        for i in range(16):
            sig = ewoq_key.sign_digest(keccak(i.to_bytes(4, "big")))
            assert sig.s <= SECP256K1_HALF_N

    def test_deterministic(self, ewoq_key):
        digest = keccak(b"same input")
        assert ewoq_key.sign_digest(digest) == ewoq_key.sign_digest(digest)

    @pytest.mark.parametrize("length", [0, 31, 33, 64])
    def test_wrong_digest_length(self, ewoq_key, length):
        with pytest.raises(InvalidDigestLengthError):
            ewoq_key.sign_digest(b"\x00" * length)

    def test_digest_length_error_is_length_error(self, ewoq_key):
        with pytest.raises(InvalidLengthError):
            ewoq_key.sign_digest(b"\x00" * 31)


class TestChecksummedEncoding:
    """Tests for the checksummed base-58 helpers."""

    def test_round_trip_arbitrary_payload(self):
        payload = bytes(range(20))
        assert decode_checksummed(encode_checksummed(payload)) == payload

    def test_too_short(self):
        with pytest.raises(InvalidEncodingError):
            decode_checksummed(base58.b58encode(b"\x01\x02").decode())

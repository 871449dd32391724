"""Tests for bulk key loading."""

import pytest

from keyrelay.errors import ChecksumMismatchError, DuplicateKeyError, InvalidEncodingError
from keyrelay.keys import PrivateKey, load_keys_from_file, load_keys_from_text


@pytest.fixture
def keys():
    return [PrivateKey.from_bytes(i.to_bytes(32, "big")) for i in range(1, 6)]


def as_text(keys) -> str:
    return "\n".join(k.to_checksummed() for k in keys)


class TestLoadKeys:
    """Tests for load_keys_from_text / load_keys_from_file."""

    def test_loads_in_order(self, keys):
        assert load_keys_from_text(as_text(keys).encode()) == keys

    def test_accepts_str(self, keys):
        assert load_keys_from_text(as_text(keys)) == keys

    def test_trailing_newline(self, keys):
        assert load_keys_from_text(as_text(keys) + "\n") == keys

    def test_empty(self):
        assert load_keys_from_text(b"") == []

    def test_duplicate_line_reports_line_number(self, keys):
        lines = [k.to_checksummed() for k in keys]
        lines.insert(3, lines[1])

        with pytest.raises(DuplicateKeyError) as exc_info:
            load_keys_from_text("\n".join(lines))

        assert exc_info.value.line_number == 4
        assert "line 4" in str(exc_info.value)

    def test_duplicate_detected_before_decoding(self, keys):
        bad = "PrivateKey-notavalidkey"
        text = "\n".join([keys[0].to_checksummed(), bad, bad])

        # The second bad line would fail to decode; the first one does
        with pytest.raises((InvalidEncodingError, ChecksumMismatchError)):
            load_keys_from_text(text)

        text = "\n".join([keys[0].to_checksummed(), keys[0].to_checksummed(), bad])
        with pytest.raises(DuplicateKeyError):
            load_keys_from_text(text)

    def test_crlf_line_endings(self, keys):
        assert load_keys_from_text(as_text(keys).replace("\n", "\r\n") + "\r\n") == keys

    def test_only_newline_separates_lines(self, keys):
        text = keys[0].to_checksummed() + "\x0c" + keys[1].to_checksummed()

        with pytest.raises(InvalidEncodingError):
            load_keys_from_text(text)

    def test_unicode_line_separator_is_not_a_newline(self, keys):
        text = "\n".join([keys[0].to_checksummed() + "\u2028" + keys[1].to_checksummed(), keys[1].to_checksummed()])

        with pytest.raises(InvalidEncodingError):
            load_keys_from_text(text)

    def test_invalid_utf8(self):
        with pytest.raises(InvalidEncodingError):
            load_keys_from_text(b"\xff\xfe")

    def test_invalid_line(self, keys):
        with pytest.raises(InvalidEncodingError):
            load_keys_from_text(keys[0].to_checksummed() + "\n0x1234")

    def test_permute_keeps_same_keys(self, keys):
        loaded = load_keys_from_text(as_text(keys), permute=True)

        assert len(loaded) == len(keys)
        assert {k.eth_address() for k in loaded} == {k.eth_address() for k in keys}

    def test_permute_changes_order_eventually(self, keys):
        orders = {
            tuple(k.eth_address() for k in load_keys_from_text(as_text(keys), permute=True))
            for _ in range(50)
        }
        assert len(orders) > 1

    def test_load_from_file(self, tmp_path, keys):
        path = tmp_path / "keys.txt"
        path.write_bytes(as_text(keys).encode())

        assert load_keys_from_file(path) == keys
        assert load_keys_from_file(str(path)) == keys

"""Bulk loading of checksummed private keys.

File format: UTF-8 text, one "PrivateKey-..." key per line. Repeated lines
are rejected before the repeated line is decoded.
"""

import logging
import random
from pathlib import Path
from typing import Union

from keyrelay.errors import DuplicateKeyError, InvalidEncodingError
from keyrelay.keys.private_key import PrivateKey

logger = logging.getLogger(__name__)


def load_keys_from_text(data: Union[bytes, str], permute: bool = False) -> list[PrivateKey]:
    """Parse line-separated checksummed keys.

    Args:
        data: UTF-8 bytes (or already-decoded text)
        permute: Shuffle the result with the unseeded ``random`` module.
            This is for spreading load across test fixtures only; the order
            differs from run to run and has nothing to do with key secrecy.

    Returns:
        Keys in file order, or shuffled if ``permute`` is set

    Raises:
        InvalidEncodingError: If ``data`` is not valid UTF-8
        DuplicateKeyError: If a line repeats an earlier line exactly
        KeyMaterialError: If a line is not a valid checksummed key
    """
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidEncodingError(f"key text is not valid UTF-8: {e}") from e
    else:
        text = data

    keys: list[PrivateKey] = []
    seen: set[str] = set()
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    for line_number, line in enumerate(lines, start=1):
        line = line.removesuffix("\r")
        if line in seen:
            raise DuplicateKeyError(line_number)

        keys.append(PrivateKey.from_checksummed(line))
        seen.add(line)

    logger.debug(f"Loaded {len(keys)} keys (permute={permute})")

    if permute:
        random.shuffle(keys)
    return keys


def load_keys_from_file(path: Union[str, Path], permute: bool = False) -> list[PrivateKey]:
    """Read a key file and parse it with ``load_keys_from_text``."""
    return load_keys_from_text(Path(path).read_bytes(), permute=permute)

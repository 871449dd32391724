"""Exception types raised by keyrelay.

Every fallible operation raises one of these at the point of failure.
Callers can catch ``KeyRelayError`` for everything, or a subclass to tell
key decoding, signing and encoding failures apart.
"""

from typing import Optional


class KeyRelayError(Exception):
    """Base class for all keyrelay errors."""
    pass


# ----------------------
# Key material
# ----------------------


class KeyMaterialError(KeyRelayError):
    """Key material could not be created or decoded."""
    pass


class InvalidLengthError(KeyMaterialError):
    """Input is not exactly the expected number of bytes."""

    def __init__(self, what: str, expected: int, actual: int):
        super().__init__(f"{what} must be {expected} bytes, got {actual}")
        self.expected = expected
        self.actual = actual


class InvalidDigestLengthError(InvalidLengthError):
    """Digest passed to a signing call is not 32 bytes."""

    def __init__(self, actual: int):
        super().__init__("digest", 32, actual)


class InvalidScalarError(KeyMaterialError):
    """Bytes do not form a valid secp256k1 private key (zero or >= order)."""
    pass


class InvalidEncodingError(KeyMaterialError):
    """Textual key encoding is malformed (bad hex, bad base58, bad prefix)."""
    pass


class ChecksumMismatchError(KeyMaterialError):
    """Checksummed key decoded but its 4-byte checksum does not verify."""
    pass


class DuplicateKeyError(KeyMaterialError):
    """Bulk key text contains the same line twice."""

    def __init__(self, line_number: int):
        super().__init__(f"key at line {line_number} already added before")
        self.line_number = line_number


class RandomSourceError(KeyMaterialError):
    """The random source failed to produce bytes."""
    pass


# ----------------------
# Signing
# ----------------------


class SigningError(KeyRelayError):
    """Signing failed. Not retryable: it implies malformed input."""
    pass


class RemoteSignerError(SigningError):
    """The remote key-management call failed.

    Attributes:
        is_retryable: Hint from the remote service; never acted on here
        error_code: Service error code, if one was returned
    """

    def __init__(
        self,
        message: str,
        is_retryable: bool = False,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.is_retryable = is_retryable
        self.error_code = error_code


# ----------------------
# Encoding
# ----------------------


class EncodingError(KeyRelayError):
    """Typed-data or ABI encoding failed."""
    pass


class RelayBuildError(EncodingError):
    """Relay domain or request fields are out of range."""
    pass

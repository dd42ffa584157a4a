from typing import Optional


class HuffmanError(Exception):
    """Base class for every error raised by the treehuff core."""


class EmptyInputError(HuffmanError, ValueError):
    """Raised when a tree is requested for an empty frequency table."""

    def __init__(self, message: str = "Cannot build a Huffman tree from empty input"):
        super().__init__(message)


class MalformedArtifactError(HuffmanError, ValueError):
    """Raised when an artifact cannot be decoded structurally.

    :ivar expected: Number of bits the decoder needed, if known.
    :type expected: int | None
    :ivar got: Number of bits that were actually available, if known.
    :type got: int | None
    """

    def __init__(
        self,
        message: str = "Malformed artifact",
        expected: Optional[int] = None,
        got: Optional[int] = None,
    ):
        """Create the error, appending bit counts to ``message`` when given.

        :param str message: Human-readable description of what was being read.
        :param expected: Bits required to continue.
        :type expected: int | None
        :param got: Bits left in the stream.
        :type got: int | None
        :returns: None
        :rtype: None
        """
        if expected is not None and got is not None:
            message = f"{message}: expected {expected} bits, got {got}"
        super().__init__(message)
        self.expected = expected
        self.got = got


class AmbiguousTrailingBitsWarning(UserWarning):
    """Issued when the payload ends while the tree walk is not at the root.

    Usually the zero padding of the last byte in a length-less artifact,
    but it can also mean the payload was cut short.
    """


class InputTooLargeError(HuffmanError, ValueError):
    """Raised when the encoded body does not fit the artifact length field."""

import logging
from typing import Optional

from bitops import BitPacker, BitReader
from errors import InputTooLargeError, MalformedArtifactError
from huffman import (
    SYMBOL_BITS,
    HuffmanNode,
    build_tree,
    count_frequencies,
    decode_symbols,
    derive_codes,
    deserialize_tree,
    serialize_tree,
)

logger = logging.getLogger(__name__)


class CompressionStats:
    """Size figures for one encode.

    :ivar original_bits: Size of the input in bits.
    :type original_bits: int
    :ivar tree_bits: Bits taken by the serialized tree.
    :type tree_bits: int
    :ivar payload_bits: Bits taken by the encoded payload.
    :type payload_bits: int
    :ivar artifact_bytes: Length of the produced artifact, header included.
    :type artifact_bytes: int
    """

    def __init__(self, original_bits: int, tree_bits: int, payload_bits: int, artifact_bytes: int):
        self.original_bits = original_bits
        self.tree_bits = tree_bits
        self.payload_bits = payload_bits
        self.artifact_bytes = artifact_bytes

    @property
    def savings(self) -> float:
        """Percentage of input bits saved by the payload alone."""
        if self.original_bits == 0:
            return 0.0
        return 100.0 - self.payload_bits / self.original_bits * 100.0

    @property
    def ratio(self) -> float:
        """Input bytes per artifact byte."""
        if self.artifact_bytes == 0:
            return 0.0
        return (self.original_bits / 8) / self.artifact_bytes

    def __repr__(self):
        return (
            f"CompressionStats(original_bits={self.original_bits}, "
            f"tree_bits={self.tree_bits}, payload_bits={self.payload_bits}, "
            f"artifact_bytes={self.artifact_bytes})"
        )


class HuffmanCoder:
    """Static Huffman encoder/decoder producing self-describing artifacts.

    The framed layout (default) starts with an 8-bit version and a 32-bit
    count of the tree and payload bits that follow, so the zero padding of
    the last byte is never decoded. ``framed=False`` produces the bare
    ``[tree][payload][padding]`` layout, where the decoder cannot tell
    padding from payload and may emit extra trailing symbols.

    :ivar VERSION: Format version written in framed artifacts.
    :type VERSION: int
    :ivar LENGTH_BITS: Width of the body bit count in framed artifacts.
    :type LENGTH_BITS: int
    :ivar framed: Whether artifacts carry the version/length header.
    :type framed: bool
    :ivar trace: Whether tree building and coding steps are logged.
    :type trace: bool
    :ivar tree: Tree used by the most recent encode or decode.
    :type tree: HuffmanNode | None
    :ivar last_stats: Figures of the most recent encode.
    :type last_stats: CompressionStats | None
    """

    VERSION = 1
    VERSION_BITS = 8
    LENGTH_BITS = 32

    def __init__(self, framed: bool = True, trace: bool = False):
        """Configure the coder.

        :param bool framed: Write and expect the version/length header.
        :param bool trace: Log build, serialize and decode steps at DEBUG.
        :returns: None
        :rtype: None
        """
        self.framed = framed
        self.trace = trace
        self.tree: Optional[HuffmanNode] = None
        self.last_stats: Optional[CompressionStats] = None

    @property
    def header_bits(self) -> int:
        """Bits taken by the version/length header; ``0`` when unframed.

        :rtype: int
        """
        return self.VERSION_BITS + self.LENGTH_BITS if self.framed else 0

    def encode(self, data: bytes) -> bytes:
        """Compress ``data`` into an artifact.

        The header, tree and payload codes are written straight into one
        :class:`BitPacker`; the body length is computed from the code
        lengths and symbol counts before anything is written.

        :param data: Input bytes to compress.
        :type data: bytes
        :returns: Artifact bytes.
        :rtype: bytes
        :raises EmptyInputError: If ``data`` is empty.
        :raises InputTooLargeError: If the body does not fit the length field.
        """
        freqs = count_frequencies(data)
        root = build_tree(freqs, trace=self.trace)
        codes = derive_codes(root)

        # every leaf takes a tag and a symbol, every internal node a tag
        tree_bits = len(codes) * (SYMBOL_BITS + 1) + len(codes) - 1
        payload_bits = sum(len(codes[symbol]) * count for symbol, count in freqs.items())
        body_bits = tree_bits + payload_bits
        if self.framed and body_bits >= 1 << self.LENGTH_BITS:
            raise InputTooLargeError(
                f"Input too large: {body_bits} encoded bits exceed the "
                f"{self.LENGTH_BITS}-bit length field"
            )

        words = self._code_words(codes)
        packer = BitPacker()
        if self.framed:
            packer.write_bits(self.VERSION, self.VERSION_BITS)
            packer.write_bits(body_bits, self.LENGTH_BITS)
        serialize_tree(root, packer)
        write_bits = packer.write_bits
        for byte in data:
            write_bits(*words[byte])
        artifact = packer.flush()

        if self.trace:
            logger.debug(
                "encoded %d bytes: %d symbols, tree %d bits, payload %d bits, artifact %d bytes",
                len(data), len(codes), tree_bits, payload_bits, len(artifact),
            )

        self.tree = root
        self.last_stats = CompressionStats(
            original_bits=len(data) * 8,
            tree_bits=tree_bits,
            payload_bits=payload_bits,
            artifact_bytes=len(artifact),
        )
        return artifact

    @staticmethod
    def _code_words(codes):
        """Turn bit-tuple codes into ``(value, length)`` pairs for the packer.

        :param codes: Mapping from symbol to its code bits.
        :type codes: Dict[int, Tuple[int, ...]]
        :returns: Mapping from symbol to ``(code, length)``, code MSB first.
        :rtype: Dict[int, Tuple[int, int]]
        """
        words = {}
        for symbol, bits in codes.items():
            value = 0
            for bit in bits:
                value = (value << 1) | bit
            words[symbol] = (value, len(bits))
        return words

    def decode(self, artifact: bytes) -> bytes:
        """Decompress an artifact produced by :meth:`encode`.

        Bits are read from ``artifact`` on demand. A framed artifact must be
        exactly as long as its header says, with zero padding bits.

        :param artifact: Artifact bytes.
        :type artifact: bytes
        :returns: Original bytes. For unframed artifacts this may include
                  trailing symbols decoded from the padding bits.
        :rtype: bytes
        :raises MalformedArtifactError: If the header is unreadable or has an
            unsupported version, the artifact length or padding disagrees
            with the header, or the tree is truncated or invalid.
        """
        if self.framed:
            reader = self._framed_reader(artifact)
        else:
            reader = BitReader(artifact)

        root = deserialize_tree(reader)
        tree_end = reader.pos
        out = decode_symbols(root, reader)

        if self.trace:
            logger.debug(
                "decoded %d bytes: tree %d bits, payload %d bits",
                len(out), tree_end - self.header_bits, reader.pos - tree_end,
            )

        self.tree = root
        return out

    def _framed_reader(self, artifact: bytes) -> BitReader:
        """Validate the framed header and return a reader over the body.

        :param artifact: Framed artifact bytes.
        :type artifact: bytes
        :returns: Reader positioned on the first tree bit and limited to the
                  body bits recorded in the header.
        :rtype: BitReader
        :raises MalformedArtifactError: If the header is truncated or has an
            unsupported version, or the artifact length or padding does not
            match the recorded body length.
        """
        header_bytes = self.header_bits // 8
        if len(artifact) < header_bytes:
            raise MalformedArtifactError(
                "Truncated artifact header",
                expected=self.header_bits,
                got=len(artifact) * 8,
            )
        header = BitReader(artifact, self.header_bits)
        version = header.read_bits(self.VERSION_BITS)
        if version != self.VERSION:
            raise MalformedArtifactError(f"Unsupported version: {version}")
        body_bits = header.read_bits(self.LENGTH_BITS)

        total_bits = self.header_bits + body_bits
        total_bytes = (total_bits + 7) // 8
        if len(artifact) < total_bytes:
            raise MalformedArtifactError(
                "Artifact shorter than its recorded length",
                expected=body_bits,
                got=(len(artifact) - header_bytes) * 8,
            )
        if len(artifact) > total_bytes:
            raise MalformedArtifactError(
                f"{len(artifact) - total_bytes} unexpected bytes after the recorded body"
            )
        padding = total_bytes * 8 - total_bits
        if padding and artifact[-1] & ((1 << padding) - 1):
            raise MalformedArtifactError("Non-zero padding bits after the body")

        return BitReader(artifact, total_bits, pos=self.header_bits)

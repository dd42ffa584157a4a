from typing import Iterable, Iterator, List, Optional

from errors import MalformedArtifactError


class BitStream:
    """Ordered, growable sequence of bits.

    Bits are stored one per element as ``0``/``1`` integers and are not tied
    to byte boundaries. Meant for small sequences such as a single code or a
    serialized tree; artifacts are written through :class:`BitPacker`.

    :ivar bits: Underlying list of bits, first bit at index 0.
    :type bits: List[int]
    """

    def __init__(self, bits: Optional[Iterable[int]] = None):
        """Create a stream, optionally seeded with ``bits``.

        :param bits: Initial bits; every truthy value is stored as ``1``.
        :type bits: Iterable[int] | None
        :returns: None
        :rtype: None
        """
        self.bits: List[int] = []
        if bits is not None:
            self.extend(bits)

    @classmethod
    def from_string(cls, text: str) -> "BitStream":
        """Build a stream from a string of ``'0'``/``'1'`` characters.

        :param str text: Bit string, e.g. ``"0101"``.
        :returns: New stream holding those bits.
        :rtype: BitStream
        :raises ValueError: If ``text`` holds anything but ``0`` and ``1``.
        """
        if set(text) - {"0", "1"}:
            raise ValueError(f"Not a bit string: {text!r}")
        return cls(int(ch) for ch in text)

    def write_bit(self, bit: int):
        """Append a single bit.

        :param int bit: Bit value; any truthy value counts as ``1``.
        :returns: None
        :rtype: None
        """
        self.bits.append(1 if bit else 0)

    append = write_bit

    def extend(self, bits: Iterable[int]):
        """Append every bit of ``bits`` in order.

        :param bits: Bits to append.
        :type bits: Iterable[int]
        :returns: None
        :rtype: None
        """
        for bit in bits:
            self.write_bit(bit)

    def write_bits(self, value: int, nbits: int):
        """Append the lowest ``nbits`` of ``value``, MSB first.

        :param int value: Integer whose bits will be written.
        :param int nbits: Number of bits of ``value`` to append.
        :returns: None
        :rtype: None
        """
        for i in range(nbits - 1, -1, -1):
            self.bits.append((value >> i) & 1)

    def to_string(self) -> str:
        """Render the stream as a string of ``'0'``/``'1'`` characters.

        :returns: Bit string, first bit leftmost.
        :rtype: str
        """
        return "".join(str(bit) for bit in self.bits)

    def __len__(self) -> int:
        return len(self.bits)

    def __iter__(self) -> Iterator[int]:
        return iter(self.bits)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return BitStream(self.bits[index])
        return self.bits[index]

    def __eq__(self, other) -> bool:
        if isinstance(other, BitStream):
            return self.bits == other.bits
        return NotImplemented

    def __repr__(self) -> str:
        return f"BitStream('{self.to_string()}')"


class BitPacker:
    """Bit-packing writer.

    Accumulates bits into bytes, most significant bit first, and buffers
    them until flushed.

    :ivar buffer: Internal byte buffer holding fully written bytes.
    :type buffer: bytearray
    :ivar bit_buffer: Scratch register holding the pending bits (fewer than 8
                      between calls).
    :type bit_buffer: int
    :ivar bit_count: Number of valid bits currently stored in ``bit_buffer`` (0-7).
    :type bit_count: int
    :ivar bits_written: Total number of bits accepted so far.
    :type bits_written: int
    """

    def __init__(self):
        """Initialize an empty bit packer.

        :returns: None
        :rtype: None
        """
        self.buffer = bytearray()
        self.bit_buffer = 0
        self.bit_count = 0
        self.bits_written = 0

    def write_bit(self, bit: int):
        """Append a single bit.

        :param int bit: Bit value; any truthy value counts as ``1``.
        :returns: None
        :rtype: None
        """
        self.write_bits(1 if bit else 0, 1)

    def write_bits(self, value: int, nbits: int):
        """Write the lowest ``nbits`` of ``value`` to the buffer, MSB first.

        :param int value: Integer whose bits will be written.
        :param int nbits: Number of bits from ``value`` to write.
        :returns: None
        :rtype: None
        """
        if nbits <= 0:
            return
        self.bit_buffer = (self.bit_buffer << nbits) | (value & ((1 << nbits) - 1))
        self.bit_count += nbits
        self.bits_written += nbits
        while self.bit_count >= 8:
            self.bit_count -= 8
            self.buffer.append((self.bit_buffer >> self.bit_count) & 0xFF)
        self.bit_buffer &= (1 << self.bit_count) - 1

    def flush(self) -> bytes:
        """Flush remaining bits (if any) and return the full byte buffer.

        A partial byte in ``bit_buffer`` is shifted into the high-order bits
        and its low-order bits are left as zero padding.

        :returns: The accumulated bytes written so far.
        :rtype: bytes
        """
        if self.bit_count > 0:
            self.bit_buffer <<= (8 - self.bit_count)
            self.buffer.append(self.bit_buffer)
            self.bit_buffer = 0
            self.bit_count = 0
        return bytes(self.buffer)


def pack_bits(bits: Iterable[int]) -> bytes:
    """Pack ``bits`` into ``ceil(len(bits) / 8)`` bytes, MSB first.

    :param bits: Bits to pack.
    :type bits: Iterable[int]
    :returns: Packed bytes, zero-padded on the low side of the last byte.
    :rtype: bytes
    """
    packer = BitPacker()
    for bit in bits:
        packer.write_bit(bit)
    return packer.flush()


def unpack_bits(data: bytes, bit_length: Optional[int] = None) -> BitStream:
    """Expand ``data`` into a bit stream, MSB first per byte.

    :param data: Packed bytes.
    :type data: bytes
    :param bit_length: Number of meaningful bits; when given the stream is
                       truncated to it so padding never reaches the caller.
    :type bit_length: int | None
    :returns: Expanded bits.
    :rtype: BitStream
    :raises MalformedArtifactError: If ``data`` holds fewer than
        ``bit_length`` bits.
    """
    reader = BitReader(data, bit_length)
    stream = BitStream()
    while reader.remaining:
        stream.write_bit(reader.read_bit())
    return stream


class BitReader:
    """Bit reader over packed bytes.

    Bits are read MSB first on demand; the bytes are never expanded.

    :ivar data: Packed source bytes.
    :type data: bytes
    :ivar bit_length: Number of readable bits, counted from the start of
                      ``data``.
    :type bit_length: int
    :ivar pos: Index of the next bit to read.
    :type pos: int
    """

    def __init__(self, data: bytes, bit_length: Optional[int] = None, pos: int = 0):
        """Create a reader for ``data``.

        :param data: Source bytes.
        :type data: bytes
        :param bit_length: Readable bits; defaults to every bit of ``data``.
        :type bit_length: int | None
        :param int pos: Bit index to start reading from.
        :returns: None
        :rtype: None
        :raises MalformedArtifactError: If ``data`` holds fewer than
            ``bit_length`` bits.
        """
        available = len(data) * 8
        if bit_length is None:
            bit_length = available
        elif bit_length > available:
            raise MalformedArtifactError(
                "Artifact shorter than its recorded length",
                expected=bit_length,
                got=available,
            )
        self.data = data
        self.bit_length = bit_length
        self.pos = pos

    @classmethod
    def from_stream(cls, stream: BitStream) -> "BitReader":
        """Create a reader over the bits of ``stream``.

        :param stream: Bits to read.
        :type stream: BitStream
        :returns: Reader positioned on the first bit.
        :rtype: BitReader
        """
        return cls(pack_bits(stream), len(stream))

    @property
    def remaining(self) -> int:
        """Number of bits left to read.

        :rtype: int
        """
        return self.bit_length - self.pos

    def read_bit(self) -> int:
        """Read one bit.

        :returns: ``0`` or ``1``.
        :rtype: int
        :raises MalformedArtifactError: If no bits remain.
        """
        if self.pos >= self.bit_length:
            raise MalformedArtifactError("Unexpected end of bits", expected=1, got=0)
        pos = self.pos
        self.pos = pos + 1
        return (self.data[pos >> 3] >> (7 - (pos & 7))) & 1

    def read_bits(self, nbits: int) -> int:
        """Read ``nbits`` bits and return them as an integer, MSB first.

        Nothing is consumed when fewer than ``nbits`` bits remain.

        :param int nbits: Number of bits to read.
        :returns: The integer value composed of the next ``nbits`` bits.
        :rtype: int
        :raises MalformedArtifactError: If fewer than ``nbits`` bits remain.
        """
        if self.remaining < nbits:
            raise MalformedArtifactError(
                "Unexpected end of bits", expected=nbits, got=self.remaining
            )
        result = 0
        for _ in range(nbits):
            result = (result << 1) | self.read_bit()
        return result

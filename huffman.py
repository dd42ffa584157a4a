import heapq
import logging
import warnings
from collections import Counter
from typing import Dict, List, Set, Tuple

from bitops import BitReader
from errors import (
    AmbiguousTrailingBitsWarning,
    EmptyInputError,
    MalformedArtifactError,
)

logger = logging.getLogger(__name__)

SYMBOL_BITS = 8  #: Width of a serialized leaf symbol
MAX_DEPTH = 255  #: Deepest possible tree over a 256-symbol alphabet

LEAF_TAG = 1
INTERNAL_TAG = 0


class HuffmanNode:
    """Node of a binary Huffman tree.

    :ivar weight: Weight of the subtree rooted at this node; ``0`` for trees
                  rebuilt from an artifact.
    :type weight: int
    :ivar order: Creation sequence number used to break weight ties.
    :type order: int
    """

    is_leaf = False

    def __init__(self, weight: int = 0, order: int = 0):
        self.weight = weight
        self.order = order

    def __lt__(self, other):
        """Order nodes by weight, then by creation order (for priority queues).

        :param other: Another node to compare with.
        :type other: HuffmanNode
        :returns: ``True`` if this node sorts before ``other``.
        :rtype: bool
        """
        return (self.weight, self.order) < (other.weight, other.order)


class Leaf(HuffmanNode):
    """Leaf node holding one byte value.

    :ivar symbol: Byte value (0-255).
    :type symbol: int
    """

    is_leaf = True

    def __init__(self, symbol: int, weight: int = 0, order: int = 0):
        super().__init__(weight, order)
        self.symbol = symbol

    def __repr__(self):
        return f"Leaf(symbol={self.symbol!r}, weight={self.weight})"


class Internal(HuffmanNode):
    """Internal node owning exactly two children.

    The weight is the sum of both children's weights.

    :ivar left: Child reached by bit ``0``.
    :type left: HuffmanNode
    :ivar right: Child reached by bit ``1``.
    :type right: HuffmanNode
    """

    def __init__(self, left: HuffmanNode, right: HuffmanNode, order: int = 0):
        super().__init__(left.weight + right.weight, order)
        self.left = left
        self.right = right

    def __repr__(self):
        return f"Internal(weight={self.weight}, left={self.left!r}, right={self.right!r})"


def count_frequencies(data: bytes) -> Dict[int, int]:
    """Count occurrences of each byte value in ``data``.

    :param data: Input bytes.
    :type data: bytes
    :returns: Mapping from byte value to count; empty for empty input.
    :rtype: Dict[int, int]
    """
    return dict(Counter(data))


def build_tree(frequencies: Dict[int, int], trace: bool = False) -> HuffmanNode:
    """Build a Huffman tree by repeatedly merging the two lightest nodes.

    Leaves are created in ascending symbol order and every node gets a
    creation number, so ties in weight always resolve the same way and the
    same input always gives the same tree. The first node popped becomes
    the left child of the merged node, the second the right child.

    :param frequencies: Mapping from symbol to occurrence count.
    :type frequencies: Dict[int, int]
    :param bool trace: Log every leaf and merge at DEBUG level.
    :returns: Root of the tree; a bare :class:`Leaf` for a one-symbol table.
    :rtype: HuffmanNode
    :raises EmptyInputError: If ``frequencies`` is empty.
    """
    if not frequencies:
        raise EmptyInputError()

    heap: List[HuffmanNode] = []
    order = 0
    for symbol in sorted(frequencies):
        leaf = Leaf(symbol, frequencies[symbol], order)
        order += 1
        if trace:
            logger.debug("leaf %r weight=%d", symbol, leaf.weight)
        heap.append(leaf)
    heapq.heapify(heap)

    while len(heap) > 1:
        left = heapq.heappop(heap)
        right = heapq.heappop(heap)
        merged = Internal(left, right, order)
        order += 1
        if trace:
            logger.debug(
                "merge %d + %d -> %d", left.weight, right.weight, merged.weight
            )
        heapq.heappush(heap, merged)

    return heap[0]


def derive_codes(root: HuffmanNode) -> Dict[int, Tuple[int, ...]]:
    """Map every symbol to its root-to-leaf path (0 = left, 1 = right).

    A tree that is a single leaf gives that symbol the code ``(0,)``.

    :param root: Root of the tree.
    :type root: HuffmanNode
    :returns: Symbol to code mapping.
    :rtype: Dict[int, Tuple[int, ...]]
    """
    if root.is_leaf:
        return {root.symbol: (0,)}

    codes: Dict[int, Tuple[int, ...]] = {}
    stack: List[Tuple[HuffmanNode, Tuple[int, ...]]] = [(root, ())]
    while stack:
        node, path = stack.pop()
        if node.is_leaf:
            codes[node.symbol] = path
        else:
            stack.append((node.right, path + (1,)))
            stack.append((node.left, path + (0,)))
    return codes


def serialize_tree(root: HuffmanNode, writer):
    """Append the preorder encoding of ``root`` to ``writer``.

    A leaf is ``1`` followed by its symbol in 8 bits, MSB first. An internal
    node is ``0`` followed by its right subtree and then its left subtree.

    :param root: Tree to serialize.
    :type root: HuffmanNode
    :param writer: Bit sink with ``write_bit`` and ``write_bits(value, nbits)``.
    :type writer: BitStream | BitPacker
    :returns: None
    :rtype: None
    """
    if root.is_leaf:
        writer.write_bit(LEAF_TAG)
        writer.write_bits(root.symbol, SYMBOL_BITS)
    else:
        writer.write_bit(INTERNAL_TAG)
        serialize_tree(root.right, writer)
        serialize_tree(root.left, writer)


def deserialize_tree(reader: BitReader) -> HuffmanNode:
    """Rebuild a tree written by :func:`serialize_tree`.

    Reading starts at the reader's cursor and leaves it on the first bit
    after the tree. Rebuilt nodes carry weight ``0``.

    :param reader: Cursor over the artifact bits.
    :type reader: BitReader
    :returns: Root of the rebuilt tree.
    :rtype: HuffmanNode
    :raises MalformedArtifactError: If the bits run out, the tree is deeper
        than any 256-symbol tree can be, or a symbol appears twice.
    """
    return _read_node(reader, 0, set())


def _read_node(reader: BitReader, depth: int, seen: Set[int]) -> HuffmanNode:
    """Read one node and, for an internal node, both its subtrees.

    :param reader: Cursor over the artifact bits.
    :type reader: BitReader
    :param int depth: Number of internal nodes above this one.
    :param seen: Symbols already read, to reject repeated leaves.
    :type seen: Set[int]
    :returns: The node read.
    :rtype: HuffmanNode
    :raises MalformedArtifactError: If the bits run out or the tree is invalid.
    """
    if reader.remaining < 1:
        raise MalformedArtifactError("Missing tree node tag", expected=1, got=0)
    if reader.read_bit() == LEAF_TAG:
        if reader.remaining < SYMBOL_BITS:
            raise MalformedArtifactError(
                "Truncated leaf symbol", expected=SYMBOL_BITS, got=reader.remaining
            )
        symbol = reader.read_bits(SYMBOL_BITS)
        if symbol in seen:
            raise MalformedArtifactError(f"Symbol {symbol} appears twice in tree")
        seen.add(symbol)
        return Leaf(symbol)
    if depth >= MAX_DEPTH:
        raise MalformedArtifactError(f"Tree deeper than {MAX_DEPTH} levels")
    right = _read_node(reader, depth + 1, seen)
    left = _read_node(reader, depth + 1, seen)
    return Internal(left, right)


def decode_symbols(root: HuffmanNode, reader: BitReader) -> bytes:
    """Walk the tree with the remaining bits of ``reader``.

    Bit ``1`` moves to the right child and ``0`` to the left one; each leaf
    reached emits its symbol and restarts the walk at the root. With a
    single-leaf tree every bit stands for that leaf's symbol.

    :param root: Decoding tree.
    :type root: HuffmanNode
    :param reader: Cursor positioned on the first payload bit.
    :type reader: BitReader
    :returns: Decoded bytes.
    :rtype: bytes
    """
    out = bytearray()
    if root.is_leaf:
        count = reader.remaining
        reader.pos += count
        out.extend(bytes([root.symbol]) * count)
        return bytes(out)

    node = root
    consumed = 0
    while reader.remaining:
        node = node.right if reader.read_bit() else node.left
        consumed += 1
        if node.is_leaf:
            out.append(node.symbol)
            node = root
            consumed = 0

    if node is not root:
        message = (
            f"Payload ended {consumed} bits into a code after "
            f"{len(out)} symbols; trailing bits ignored"
        )
        warnings.warn(message, AmbiguousTrailingBitsWarning, stacklevel=2)
    return bytes(out)


def _symbol_label(symbol: int) -> str:
    """Printable form of ``symbol``: the ASCII character or ``\\xNN``."""
    if 32 <= symbol <= 126:
        return chr(symbol)
    return f"\\x{symbol:02x}"


def render_tree(root: HuffmanNode) -> str:
    """Render the tree sideways, right subtree on top.

    Every node is indented by one tab per level. Internal nodes show as
    ``(weight)`` and leaves as ``[weight|symbol]``.

    :param root: Tree to render.
    :type root: HuffmanNode
    :returns: Multi-line text, one node per line.
    :rtype: str
    """
    lines: List[str] = []
    _render_node(root, 0, lines)
    return "\n".join(lines)


def _render_node(node: HuffmanNode, depth: int, lines: List[str]):
    """Append the lines for ``node`` and its subtrees to ``lines``.

    :param node: Node to render.
    :type node: HuffmanNode
    :param int depth: Indentation level of ``node``.
    :param lines: Output lines, appended in place.
    :type lines: List[str]
    :returns: None
    :rtype: None
    """
    tab = "\t" * depth
    if node.is_leaf:
        lines.append(f"{tab}[{node.weight}|{_symbol_label(node.symbol)}]")
        return
    _render_node(node.right, depth + 1, lines)
    lines.append(f"{tab}({node.weight})")
    _render_node(node.left, depth + 1, lines)


def format_code_table(codes: Dict[int, Tuple[int, ...]]) -> List[str]:
    """Format ``codes`` as ``'<char>' -> <bits>`` lines, shortest codes first."""
    lines = []
    for symbol in sorted(codes, key=lambda s: (len(codes[s]), s)):
        bits = "".join(str(bit) for bit in codes[symbol])
        lines.append(f"'{_symbol_label(symbol)}' -> {bits}")
    return lines

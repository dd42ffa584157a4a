import pytest

from bitops import BitPacker, BitReader, BitStream, pack_bits
from errors import (
    AmbiguousTrailingBitsWarning,
    EmptyInputError,
    MalformedArtifactError,
)
from huffman import (
    Internal,
    Leaf,
    build_tree,
    count_frequencies,
    decode_symbols,
    derive_codes,
    deserialize_tree,
    format_code_table,
    render_tree,
    serialize_tree,
)


def _is_prefix(a, b):
    return len(a) <= len(b) and b[:len(a)] == a


def test_count_frequencies():
    assert count_frequencies(b"abracadabra") == {
        ord("a"): 5, ord("b"): 2, ord("r"): 2, ord("c"): 1, ord("d"): 1
    }
    assert count_frequencies(b"") == {}


def test_build_tree_empty_raises():
    with pytest.raises(EmptyInputError):
        build_tree({})


def test_build_single_symbol_gives_one_bit_code():
    root = build_tree({65: 10})
    assert isinstance(root, Leaf)
    assert root.weight == 10
    assert derive_codes(root) == {65: (0,)}


def test_build_tree_weights_and_leaf_count():
    freqs = count_frequencies(b"abracadabra")
    root = build_tree(freqs)
    assert root.weight == 11

    leaves, internals = [], []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_leaf:
            leaves.append(node)
        else:
            internals.append(node)
            assert node.weight == node.left.weight + node.right.weight
            stack.extend([node.left, node.right])
    assert len(internals) == len(leaves) - 1
    assert {leaf.symbol: leaf.weight for leaf in leaves} == freqs


def test_abracadabra_codes():
    codes = derive_codes(build_tree(count_frequencies(b"abracadabra")))
    a, c, d = codes[ord("a")], codes[ord("c")], codes[ord("d")]
    longest = max(len(code) for code in codes.values())
    assert len(a) == min(len(code) for code in codes.values())
    assert all(len(code) > len(a) for s, code in codes.items() if s != ord("a"))
    assert len(c) == len(d) == longest
    assert codes == {
        ord("a"): (0,),
        ord("c"): (1, 0, 0),
        ord("d"): (1, 0, 1),
        ord("b"): (1, 1, 0),
        ord("r"): (1, 1, 1),
    }


def test_build_tree_is_deterministic_on_ties(tree_signature_fn):
    freqs = {s: 1 for s in range(40)}
    shuffled = dict(reversed(list(freqs.items())))
    assert tree_signature_fn(build_tree(freqs)) == tree_signature_fn(build_tree(shuffled))


def test_codes_prefix_free(sample_inputs):
    for data in sample_inputs:
        codes = derive_codes(build_tree(count_frequencies(data)))
        assert set(codes) == set(data)
        values = list(codes.values())
        for i, first in enumerate(values):
            assert len(first) > 0
            for second in values[i + 1:]:
                assert not _is_prefix(first, second)
                assert not _is_prefix(second, first)


def test_serialize_abracadabra_layout():
    root = build_tree(count_frequencies(b"abracadabra"))
    stream = BitStream()
    serialize_tree(root, stream)
    assert stream.to_string() == (
        "0"             # root
        "0"             # right: (c d) (b r)
        "0"             # right: (b r)
        "1" "01110010"  # r
        "1" "01100010"  # b
        "0"             # left: (c d)
        "1" "01100100"  # d
        "1" "01100011"  # c
        "1" "01100001"  # a
    )
    assert len(stream) == 5 * 9 + 4


def test_serialize_appends_to_existing_stream():
    stream = BitStream([1, 1])
    serialize_tree(Leaf(0x41), stream)
    assert stream.to_string() == "11" "1" "01000001"


def test_tree_roundtrip(sample_inputs, tree_signature_fn):
    for data in sample_inputs + [b"aaaa"]:
        root = build_tree(count_frequencies(data))
        stream = BitStream()
        serialize_tree(root, stream)
        stream.extend([1, 0, 1])
        reader = BitReader.from_stream(stream)
        rebuilt = deserialize_tree(reader)
        assert tree_signature_fn(rebuilt) == tree_signature_fn(root)
        assert reader.remaining == 3


def test_deserialized_weights_are_zero():
    stream = BitStream()
    serialize_tree(build_tree({1: 4, 2: 9}), stream)
    rebuilt = deserialize_tree(BitReader.from_stream(stream))
    assert isinstance(rebuilt, Internal)
    assert rebuilt.weight == 0
    assert rebuilt.left.weight == rebuilt.right.weight == 0


def test_deserialize_truncated_symbol_raises(bits):
    with pytest.raises(MalformedArtifactError) as info:
        deserialize_tree(BitReader.from_stream(bits("0" "1" "0110")))
    assert info.value.expected == 8
    assert info.value.got == 4


def test_deserialize_missing_tag_raises(bits):
    with pytest.raises(MalformedArtifactError) as info:
        deserialize_tree(BitReader.from_stream(bits("0" "1" "01100001")))
    assert info.value.expected == 1
    assert info.value.got == 0


def test_deserialize_rejects_too_deep_tree():
    with pytest.raises(MalformedArtifactError):
        deserialize_tree(BitReader.from_stream(BitStream([0] * 5000)))


def test_deserialize_rejects_duplicate_symbol(bits):
    with pytest.raises(MalformedArtifactError):
        deserialize_tree(BitReader.from_stream(bits("0" "1" "01100001" "1" "01100001")))


def test_decode_symbols_walks_tree(bits):
    root = build_tree(count_frequencies(b"abracadabra"))
    reader = BitReader.from_stream(bits("0" "110" "111" "100" "101"))
    assert decode_symbols(root, reader) == b"abrcd"
    assert reader.remaining == 0


def test_decode_symbols_single_leaf(bits):
    assert decode_symbols(Leaf(ord("z")), BitReader.from_stream(bits("0000"))) == b"zzzz"


def test_decode_symbols_warns_on_partial_code(bits):
    root = build_tree(count_frequencies(b"abracadabra"))
    with pytest.warns(AmbiguousTrailingBitsWarning):
        out = decode_symbols(root, BitReader.from_stream(bits("0" "11")))
    assert out == b"a"


def test_render_tree_right_branch_first():
    root = build_tree({ord("a"): 3, ord("b"): 1, 0: 1})
    lines = render_tree(root).split("\n")
    assert lines == [
        "\t[3|a]",
        "(5)",
        "\t\t[1|b]",
        "\t(2)",
        "\t\t[1|\\x00]",
    ]


def test_format_code_table_sorted_by_length():
    codes = derive_codes(build_tree(count_frequencies(b"abracadabra")))
    lines = format_code_table(codes)
    assert lines[0] == "'a' -> 0"
    assert lines[1:] == ["'b' -> 110", "'c' -> 100", "'d' -> 101", "'r' -> 111"]


def test_serialize_into_packer_matches_stream():
    root = build_tree(count_frequencies(b"abracadabra"))
    stream = BitStream()
    serialize_tree(root, stream)
    packer = BitPacker()
    serialize_tree(root, packer)
    assert packer.bits_written == len(stream)
    assert packer.flush() == pack_bits(stream)


def test_render_decoded_tree_shows_zero_weights():
    stream = BitStream()
    serialize_tree(build_tree({ord("x"): 2, ord("y"): 7}), stream)
    rebuilt = deserialize_tree(BitReader.from_stream(stream))
    assert render_tree(rebuilt).split("\n") == ["\t[0|y]", "(0)", "\t[0|x]"]

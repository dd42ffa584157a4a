import sys
import random
from pathlib import Path
import importlib
import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture()
def m():
    """Lazily import the main module for tests to avoid module-level import."""
    return importlib.import_module("main")


@pytest.fixture()
def sample_inputs():
    """Inputs with at least two distinct byte values, including edge shapes."""
    rng = random.Random(1234)
    samples = [
        b"abracadabra",
        b"ab",
        b"aab",
        b"The quick brown fox jumps over the lazy dog. " * 5,
        bytes(range(256)),
        bytes(range(256)) * 3 + b"\x00" * 100,
        b"\x00\xff" * 17,
    ]
    for size in (3, 10, 97, 1000):
        samples.append(bytes(rng.getrandbits(8) for _ in range(size)) + b"\x00\x01")
    skewed = bytes(rng.choice(b"aaaaaaaabbbbccd") for _ in range(500))
    samples.append(skewed)
    # Fibonacci weights give the deepest possible trees
    fib = [1, 1]
    while len(fib) < 20:
        fib.append(fib[-1] + fib[-2])
    samples.append(b"".join(bytes([i]) * w for i, w in enumerate(fib)))
    return samples


def tree_signature(node):
    """Return a nested tuple describing tree shape and leaf symbols only."""
    if node.is_leaf:
        return node.symbol
    return (tree_signature(node.left), tree_signature(node.right))


@pytest.fixture()
def tree_signature_fn():
    """
    Fixture that provides the tree_signature helper without importing conftest.
    """
    return tree_signature


@pytest.fixture()
def bits():
    """Build a BitStream from a '0'/'1' string."""
    from bitops import BitStream

    return BitStream.from_string

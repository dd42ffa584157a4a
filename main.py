import argparse
import logging
import os
import sys

from coder import HuffmanCoder
from errors import HuffmanError
from huffman import derive_codes, format_code_table, render_tree

DEFAULT_SUFFIX = ".thf"  #: Suffix appended to compressed files when no output is given


def get_parser():
    """Create and configure the CLI argument parser.

    :returns: Configured argument parser.
    :rtype: argparse.ArgumentParser
    """
    parser = argparse.ArgumentParser(
        description="Static Huffman compressor with an embedded code tree"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log tree construction and coding steps",
    )
    subparsers = parser.add_subparsers(
        title="subcommands", dest="cmd", required=True
    )

    compress = subparsers.add_parser(
        "compress", aliases=["c"], help="Compress a file"
    )
    compress.add_argument("input", help="File to compress")
    compress.add_argument(
        "-o",
        "--output",
        help=f"Output file path (default: input + '{DEFAULT_SUFFIX}')",
    )
    compress.add_argument(
        "--raw",
        action="store_true",
        help="Omit the length header (padding may decode as extra symbols)",
    )
    compress.add_argument(
        "--show-tree", action="store_true", help="Print the Huffman tree"
    )
    compress.add_argument(
        "--show-codes", action="store_true", help="Print the code table"
    )

    decompress = subparsers.add_parser(
        "decompress", aliases=["d"], help="Decompress a file"
    )
    decompress.add_argument("input", help="Compressed file")
    decompress.add_argument(
        "-o",
        "--output",
        help=f"Output file path (default: input without '{DEFAULT_SUFFIX}')",
    )
    decompress.add_argument(
        "--raw",
        action="store_true",
        help="Input was written with --raw",
    )
    decompress.add_argument(
        "--show-tree", action="store_true", help="Print the decoded tree"
    )

    return parser


def _fmt_bytes(n: int) -> str:
    """Format a byte count into a human-readable string.

    :param n: Number of bytes.
    :type n: int
    :returns: Human-readable string.
    :rtype: str
    """
    for unit in ['', 'Ki', 'Mi', 'Gi', 'Ti']:
        if abs(n) < 1024:
            return f"{n:.2f} {unit}B"
        n /= 1024
    return f"{n:.2f} PiB"


def _default_output(input_path: str, decompress: bool) -> str:
    """Derive an output path from ``input_path``.

    :param str input_path: Input file path.
    :param bool decompress: Whether the path is for a decompressed file.
    :returns: Output path.
    :rtype: str
    """
    if not decompress:
        return input_path + DEFAULT_SUFFIX
    if input_path.endswith(DEFAULT_SUFFIX) and len(os.path.basename(input_path)) > len(DEFAULT_SUFFIX):
        return input_path[:-len(DEFAULT_SUFFIX)]
    return input_path + ".out"


def _read_input(path: str) -> bytes:
    """Read the whole file at ``path``.

    :param str path: File path.
    :returns: File contents.
    :rtype: bytes
    :raises FileNotFoundError: If ``path`` does not exist.
    """
    with open(path, "rb") as f:
        return f.read()


def compress_file(
    input_path: str,
    output_path: str,
    raw: bool = False,
    show_tree: bool = False,
    show_codes: bool = False,
    trace: bool = False,
) -> int:
    """Compress ``input_path`` into ``output_path`` and print a size report.

    :param str input_path: File to compress.
    :param str output_path: Destination artifact path.
    :param bool raw: Write the header-less layout.
    :param bool show_tree: Print the tree before the report.
    :param bool show_codes: Print the code table before the report.
    :param bool trace: Log coding steps.
    :returns: Process exit status.
    :rtype: int
    """
    try:
        data = _read_input(input_path)
    except FileNotFoundError:
        print(f"[!] Input file not found: {input_path}")
        return 1

    coder = HuffmanCoder(framed=not raw, trace=trace)
    try:
        artifact = coder.encode(data)
    except HuffmanError as e:
        print(f"[!] {e}")
        return 1

    if show_tree:
        print(render_tree(coder.tree))
    if show_codes:
        for line in format_code_table(derive_codes(coder.tree)):
            print(line)

    with open(output_path, "wb") as out:
        out.write(artifact)

    stats = coder.last_stats
    print("Size before compression: ", _fmt_bytes(len(data)))
    print("Size after compression: ", _fmt_bytes(stats.artifact_bytes))
    print(
        f"Payload: {stats.payload_bits} bits "
        f"({stats.savings:.2f}% smaller than input), "
        f"tree: {stats.tree_bits} bits"
    )
    print(f"Compression ratio: {stats.ratio:.2f}")
    return 0


def decompress_file(
    input_path: str,
    output_path: str,
    raw: bool = False,
    show_tree: bool = False,
    trace: bool = False,
) -> int:
    """Decompress ``input_path`` into ``output_path``.

    :param str input_path: Artifact to decompress.
    :param str output_path: Destination path.
    :param bool raw: Input uses the header-less layout.
    :param bool show_tree: Print the decoded tree.
    :param bool trace: Log coding steps.
    :returns: Process exit status.
    :rtype: int
    """
    try:
        artifact = _read_input(input_path)
    except FileNotFoundError:
        print(f"[!] Archive file not found: {input_path}")
        return 1

    coder = HuffmanCoder(framed=not raw, trace=trace)
    try:
        data = coder.decode(artifact)
    except HuffmanError as e:
        print(f"[!] Cannot decompress {input_path}: {e}")
        return 1

    if show_tree:
        print(render_tree(coder.tree))

    with open(output_path, "wb") as out:
        out.write(data)
    print(
        f"Decompressed {_fmt_bytes(len(artifact))} to {_fmt_bytes(len(data))}"
    )
    return 0


def main(argv=None):
    """Entry point for the CLI tool.

    :param argv: Arguments to parse instead of ``sys.argv[1:]``.
    :type argv: List[str] | None
    :returns: None
    :rtype: None
    """
    parser = get_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    logging.captureWarnings(True)

    decompress = args.cmd in ["decompress", "d"]
    output = args.output or _default_output(args.input, decompress)

    if decompress:
        status = decompress_file(
            args.input, output, args.raw, args.show_tree, args.verbose
        )
    else:
        status = compress_file(
            args.input,
            output,
            args.raw,
            args.show_tree,
            args.show_codes,
            args.verbose,
        )
    if status:
        sys.exit(status)


if __name__ == "__main__":
    main()

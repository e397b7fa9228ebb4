"""Command-line interface for generating carno bindings for *.proto schemas.

Notes:
    - The outputs of this generator require a carno runtime that provides
      `carno.SUPPORT_PACKAGE_IS_VERSION_4`.
"""

from __future__ import annotations

import argparse
import logging
import os.path
from collections.abc import Sequence

from carno_stub_generator.run import run

logger = logging.getLogger(__name__)


def _add_recursive_argument(parser: argparse.ArgumentParser):
    """Add a recursive argument to a parser.

    Args:
        parser (argparse.ArgumentParser): The parser to add the argument to.
    """
    parser.add_argument(
        "-r",
        "--recursive",
        dest="recursive",
        default=False,
        action="store_true",
        help="recursively search for *.proto files with a given glob expression.",
    )


def setup_parser() -> argparse.ArgumentParser:
    """Setup for the parser.

    Returns:
        argparse.ArgumentParser: The parser after setup.
    """
    parser = argparse.ArgumentParser(description="Generate carno client and server bindings for proto files.")

    parser.add_argument(
        "-p",
        "--paths",
        type=str,
        nargs="+",
        default=["**/*.proto"],
        help="path or glob expressions that match *.proto files for generation.",
    )

    parser.add_argument(
        "-e",
        "--excludes",
        type=str,
        nargs="+",
        default=[],
        help="path or glob expressions to exclude from path matches.",
    )

    parser.add_argument(
        "-o",
        "--output-dir",
        type=str,
        default="",
        help="directory to write all generated modules to; defaults to the working directory.",
    )

    parser.add_argument(
        "-I",
        "--import-path",
        dest="import_paths",
        type=str,
        nargs="+",
        default=[],
        help="import paths for resolving proto imports; also determine the generated module names.",
    )

    parser.add_argument(
        "--descriptor-set",
        dest="descriptor_set",
        type=str,
        default="",
        help="read a FileDescriptorSet written by protoc instead of parsing *.proto files.",
    )

    parser.add_argument(
        "--reserved-name",
        dest="reserved_names",
        type=str,
        action="append",
        default=[],
        help="identifier that generated names must not use; matching names get a trailing underscore.",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="number of threads that emit service modules.",
    )

    parser.add_argument(
        "--no-format",
        dest="skip_format",
        default=False,
        action="store_true",
        help="skip formatting the generated modules with ruff.",
    )

    parser.add_argument(
        "--pyright",
        dest="pyright",
        default=False,
        action="store_true",
        help="validate the generated modules with pyright; needs the carno runtime and the *_pb2 modules.",
    )

    _add_recursive_argument(parser)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the generator.

    Args:
        argv (Sequence[str] | None, optional): Run arguments. Defaults to None.

    Returns:
        int: Error code.
    """
    logging.basicConfig(level=logging.INFO)

    root_directory = os.getcwd()
    logging.info("Working from root directory: %s", root_directory)

    parser = setup_parser()
    args = parser.parse_args(argv)

    return run(args, root_directory)

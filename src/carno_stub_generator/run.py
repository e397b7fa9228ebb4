"""Top-level module for generating carno bindings from the command line."""

from __future__ import annotations

import argparse
import glob
import importlib.resources
import logging
import os.path
import subprocess
import tempfile
from pathlib import Path

from google.protobuf import descriptor_pb2
from google.protobuf.message import DecodeError
from grpc_tools import protoc

from carno_stub_generator.carno_types import PROTO_SUFFIX, ConfigurationError
from carno_stub_generator.config import GeneratorConfig
from carno_stub_generator.generator import GeneratedFile, new_generator

logger = logging.getLogger(__name__)


class ProtocError(Exception):
    """Raised when protoc fails to parse the input schemas."""

    pass


class PyrightValidationError(Exception):
    """Raised when pyright validation finds type errors in generated modules."""

    pass


def _well_known_types_path() -> str:
    """The include path of the well-known types bundled with grpc_tools."""
    return str(importlib.resources.files("grpc_tools") / "_proto")


def _proto_name(path: str, import_paths: list[str]) -> tuple[str, str]:
    """Find the name protoc gives a file, relative to the import path that contains it.

    Args:
        path: Absolute path of a .proto file.
        import_paths: Absolute import paths.

    Returns:
        Tuple of (import path, proto name). Falls back to the file's own directory.
    """
    for import_path in import_paths:
        try:
            if os.path.commonpath([path, import_path]) == import_path:
                return import_path, Path(os.path.relpath(path, import_path)).as_posix()
        except ValueError:
            # Paths on different drives (Windows)
            continue

    directory = os.path.dirname(path)
    return directory, os.path.basename(path)


def load_descriptor_set(
    proto_paths: list[str], import_paths: list[str]
) -> tuple[descriptor_pb2.FileDescriptorSet, list[str]]:
    """Parse .proto files with grpc_tools' bundled protoc.

    Args:
        proto_paths: Absolute paths of the files to generate.
        import_paths: Absolute import paths for resolving imports.

    Returns:
        Tuple of (descriptor set including all imports, names of the files to generate).

    Raises:
        ProtocError: If protoc rejects the input.
    """
    include_paths = list(import_paths)
    names = []
    for path in proto_paths:
        include_path, name = _proto_name(path, include_paths)
        if include_path not in include_paths:
            include_paths.append(include_path)
        names.append(name)

    with tempfile.TemporaryDirectory() as temp_dir:
        descriptor_path = os.path.join(temp_dir, "descriptors.pb")
        command = [
            "grpc_tools.protoc",
            *(f"-I{p}" for p in include_paths),
            f"-I{_well_known_types_path()}",
            f"--descriptor_set_out={descriptor_path}",
            "--include_imports",
            "--include_source_info",
            *names,
        ]
        logger.debug("Running %s", " ".join(command))

        if protoc.main(command) != 0:
            raise ProtocError(f"protoc failed to parse {', '.join(names)}.")

        descriptor_set = descriptor_pb2.FileDescriptorSet()
        descriptor_set.ParseFromString(Path(descriptor_path).read_bytes())

    return descriptor_set, names


def read_descriptor_set(path: str) -> tuple[descriptor_pb2.FileDescriptorSet, list[str]]:
    """Read a descriptor set written by `protoc --descriptor_set_out`.

    Every file of the set is generated. Sets built with `--include_imports` therefore
    generate the services of imported files, too.

    Args:
        path: The path of the serialized FileDescriptorSet.

    Returns:
        Tuple of (descriptor set, names of the files to generate).

    Raises:
        OSError: If the file cannot be read.
        DecodeError: If the file is not a serialized FileDescriptorSet.
    """
    descriptor_set = descriptor_pb2.FileDescriptorSet()
    descriptor_set.ParseFromString(Path(path).read_bytes())
    return descriptor_set, [proto.name for proto in descriptor_set.file]


def validate_with_pyright(paths: list[str]) -> None:
    """Validate generated modules using pyright.

    Args:
        paths: The generated files.

    Raises:
        PyrightValidationError: If pyright finds any type errors.
    """
    if not paths:
        logger.warning("No generated files found to validate")
        return

    logger.info(f"Validating {len(paths)} generated file(s) with pyright...")

    try:
        result = subprocess.run(
            ["pyright", *paths],
            capture_output=True,
            text=True,
            check=False,
        )

        error_count = result.stdout.count(" error:")

        if error_count > 0 or result.returncode != 0:
            error_msg = f"Pyright validation failed with {error_count} error(s):\n\n{result.stdout}"
            logger.error(error_msg)
            raise PyrightValidationError(error_msg)

        logger.info("Pyright validation passed - no type errors found")

    except FileNotFoundError:
        logger.error("pyright not found. Please install pyright: pip install pyright")
        raise PyrightValidationError("pyright command not found. Please install pyright.") from None
    except subprocess.SubprocessError as e:
        error_msg = f"Error running pyright: {e}"
        logger.error(error_msg)
        raise PyrightValidationError(error_msg) from e


def format_outputs(raw_input: str) -> str:
    """Formats raw input using ruff.

    Args:
        raw_input (str): The unformatted input.

    Returns:
        str: The formatted outputs, or the input itself if ruff is unavailable or fails.
    """
    try:
        # Write to temporary file for ruff to process
        with tempfile.NamedTemporaryFile(mode="w", suffix=".py", delete=False, encoding="utf-8") as f:
            temp_path = Path(f.name)
            f.write(raw_input)

        try:
            # Run ruff check --fix to fix import ordering
            subprocess.run(
                ["ruff", "check", "--fix", "--select", "I", str(temp_path)],
                capture_output=True,
                check=False,  # Don't raise on non-zero exit
            )

            subprocess.run(
                ["ruff", "format", "--line-length", "120", str(temp_path)],
                capture_output=True,
                check=True,
            )

            return temp_path.read_text(encoding="utf-8")

        finally:
            temp_path.unlink(missing_ok=True)

    except subprocess.CalledProcessError as e:
        logger.error(f"Ruff formatting failed: {e}")
        logger.error(f"Stderr: {e.stderr.decode('utf-8', errors='replace')}")
        return raw_input
    except FileNotFoundError:
        logger.warning("ruff not found, writing unformatted output.")
        return raw_input


def write_outputs(files: list[GeneratedFile], output_dir: str, format_output: bool = True) -> list[str]:
    """Write generated modules below an output directory.

    Args:
        files: The generated modules.
        output_dir: The output root.
        format_output: Whether to run the modules through ruff first.

    Returns:
        The written paths.
    """
    written = []
    for generated in files:
        path = os.path.join(output_dir, *generated.name.split("/"))
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

        content = format_outputs(generated.content) if format_output else generated.content
        with open(path, "w", encoding="utf8") as output_file:
            output_file.write(content)

        logger.info("Wrote bindings for '%s' to '%s'.", generated.source, path)
        written.append(path)

    return written


def find_proto_paths(args: argparse.Namespace, root_directory: str) -> list[str]:
    """Resolve the path and exclude expressions to a sorted list of .proto files.

    Args:
        args (argparse.Namespace): The parsed arguments.
        root_directory (str): The directory relative paths are resolved against.

    Returns:
        list[str]: Absolute paths of the files to generate.
    """
    excluded_paths: set[str] = set()
    for exclude in args.excludes:
        exclude_path = os.path.join(root_directory, exclude)
        # Handle both specific files and glob patterns
        if os.path.isfile(exclude_path):
            excluded_paths.add(os.path.abspath(exclude_path))
        else:
            excluded_paths.update(os.path.abspath(p) for p in glob.glob(exclude_path, recursive=args.recursive))

    search_paths: set[str] = set()
    for path in args.paths:
        search_path = os.path.join(root_directory, path)

        # If recursive flag is set and path is a directory, find all .proto files recursively
        if args.recursive and os.path.isdir(search_path):
            for root, _, files in os.walk(search_path):
                for file in files:
                    if file.endswith(PROTO_SUFFIX):
                        search_paths.add(os.path.join(root, file))
        # If path is a directory without recursive flag, find only direct children
        elif os.path.isdir(search_path):
            for file in os.listdir(search_path):
                file_path = os.path.join(search_path, file)
                if os.path.isfile(file_path) and file.endswith(PROTO_SUFFIX):
                    search_paths.add(file_path)
        # Otherwise use glob for patterns or specific files
        else:
            search_paths.update(glob.glob(search_path, recursive=args.recursive))

    valid_paths = {os.path.abspath(p) for p in search_paths} - excluded_paths
    return sorted(valid_paths)


def run(args: argparse.Namespace, root_directory: str) -> int:
    """Run the generator on a set of .proto schemas or on a prebuilt descriptor set.

    Args:
        args (argparse.Namespace): The arguments that were passed when calling the generator.
        root_directory (str): The directory, from which the generator is executed.

    Returns:
        int: Error code. 1 if any file failed, in which case the other files are still written.
    """
    output_dir: str = args.output_dir or root_directory
    import_paths = [os.path.abspath(os.path.join(root_directory, p)) for p in args.import_paths]

    try:
        config = GeneratorConfig(reserved_names=frozenset(args.reserved_names), workers=args.workers)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    if args.descriptor_set:
        try:
            descriptor_set, file_to_generate = read_descriptor_set(os.path.join(root_directory, args.descriptor_set))
        except (OSError, DecodeError) as e:
            logger.error("Cannot read descriptor set '%s': %s", args.descriptor_set, e)
            return 1
    else:
        proto_paths = find_proto_paths(args, root_directory)
        if not proto_paths:
            logger.warning("No .proto files matched %s.", args.paths)
            return 0

        try:
            descriptor_set, file_to_generate = load_descriptor_set(proto_paths, import_paths)
        except ProtocError as e:
            logger.error(str(e))
            return 1

    result = new_generator(config).generate_protos(list(descriptor_set.file), file_to_generate)

    written = write_outputs(result.files, output_dir, format_output=not args.skip_format)

    for name, error in result.errors.items():
        logger.error("No output for %s: %s", name, error)

    if args.pyright:
        validate_with_pyright(written)

    return 0 if result.ok else 1

"""Pytest configuration and fixtures for carno stub generator tests."""

from __future__ import annotations

import importlib
import sys
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

import pytest
from google.protobuf import descriptor_pb2

from carno_stub_generator.collector import TypeTable
from carno_stub_generator.config import GeneratorConfig
from carno_stub_generator.descriptors import FileDescriptor
from carno_stub_generator.generator import GeneratedFile, Generator, new_generator
from carno_stub_generator.helper import NameResolver
from carno_stub_generator.registry import RegistryBuilder
from carno_stub_generator.stubs import StubEmitter

# Test directory structure
TESTS_DIR = Path(__file__).parent
SCHEMAS_DIR = TESTS_DIR / "schemas"
RUNTIME_DIR = TESTS_DIR / "runtime"

MethodSpec = tuple[str, str, str, bool, bool]


def unary(name: str, input_type: str = "Input", output_type: str = "Output") -> MethodSpec:
    return (name, input_type, output_type, False, False)


def server_stream(name: str, input_type: str = "Input", output_type: str = "Output") -> MethodSpec:
    return (name, input_type, output_type, False, True)


def client_stream(name: str, input_type: str = "Input", output_type: str = "Output") -> MethodSpec:
    return (name, input_type, output_type, True, False)


def bidi_stream(name: str, input_type: str = "Input", output_type: str = "Output") -> MethodSpec:
    return (name, input_type, output_type, True, True)


def build_file_proto(
    name: str,
    package: str,
    services: dict[str, Sequence[MethodSpec]] | None = None,
    messages: Sequence[str] = ("Input", "Output"),
) -> descriptor_pb2.FileDescriptorProto:
    """Build a file descriptor the way protoc would hand it to a plugin.

    Args:
        name: The file name, e.g. "demo/echo.proto".
        package: The package, may be empty.
        services: Service name to (method, input, output, client streaming, server streaming) specs.
            Input and output types are message names within the package.
        messages: Names of the messages the file defines.

    Returns:
        The file descriptor.
    """
    proto = descriptor_pb2.FileDescriptorProto(name=name, package=package, syntax="proto3")
    for message in messages:
        proto.message_type.add(name=message)

    prefix = f".{package}" if package else ""
    for service_name, methods in (services or {}).items():
        service = proto.service.add(name=service_name)
        for method_name, input_type, output_type, client_streaming, server_streaming in methods:
            service.method.add(
                name=method_name,
                input_type=f"{prefix}.{input_type}",
                output_type=f"{prefix}.{output_type}",
                client_streaming=client_streaming,
                server_streaming=server_streaming,
            )
    return proto


@pytest.fixture
def file_proto() -> Callable[..., descriptor_pb2.FileDescriptorProto]:
    """Factory for file descriptors, see `build_file_proto`."""
    return build_file_proto


@pytest.fixture
def method_specs() -> dict[str, Callable[..., MethodSpec]]:
    """Factories for the four method shapes."""
    return {
        "unary": unary,
        "server_stream": server_stream,
        "client_stream": client_stream,
        "bidi_stream": bidi_stream,
    }


@pytest.fixture
def echo_proto() -> descriptor_pb2.FileDescriptorProto:
    """`demo/echo.proto`: service Echo with a unary Say and a server streaming Watch."""
    return build_file_proto("demo/echo.proto", "demo", {"Echo": [unary("Say"), server_stream("Watch")]})


@pytest.fixture
def echo_file(echo_proto) -> FileDescriptor:
    return FileDescriptor.from_proto(echo_proto)


@pytest.fixture
def resolver() -> NameResolver:
    return NameResolver()


@pytest.fixture
def emitter_for(resolver) -> Callable[..., StubEmitter]:
    """Build a stub emitter that knows the messages of the given file descriptors."""

    def build(*protos: descriptor_pb2.FileDescriptorProto) -> StubEmitter:
        return StubEmitter(resolver, TypeTable.from_protos(protos), RegistryBuilder(resolver))

    return build


@pytest.fixture
def generator() -> Generator:
    return new_generator()


@pytest.fixture
def threaded_generator() -> Generator:
    return new_generator(GeneratorConfig(workers=4))


def output_by_name(files: Sequence[GeneratedFile]) -> dict[str, str]:
    """Map output paths to content."""
    return {generated.name: generated.content for generated in files}


@pytest.fixture
def outputs() -> Callable[[Sequence[GeneratedFile]], dict[str, str]]:
    return output_by_name


@pytest.fixture
def runtime(monkeypatch) -> Iterator:
    """Put the carno runtime test double on the import path and reset its records."""
    monkeypatch.syspath_prepend(str(RUNTIME_DIR))
    carno = importlib.import_module("carno")
    carno.reset()
    yield carno
    carno.reset()


@pytest.fixture
def import_generated(tmp_path, monkeypatch, runtime) -> Iterator[Callable]:
    """Write generated modules plus message stand-ins below tmp_path and import them.

    Yields a function taking the generated files and a mapping of message module
    name to message class names. It writes everything and returns an import function.
    """
    imported_roots: set[str] = set()
    monkeypatch.syspath_prepend(str(tmp_path))

    def write(files: Sequence[GeneratedFile], messages: dict[str, Sequence[str]]) -> Callable[[str], object]:
        for generated in files:
            path = tmp_path / generated.name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(generated.content, encoding="utf8")
            imported_roots.add(generated.name.split("/")[0].removesuffix(".py"))

        for module, classes in messages.items():
            path = tmp_path / (module.replace(".", "/") + ".py")
            path.parent.mkdir(parents=True, exist_ok=True)
            body = "\n\n".join(f"class {name}:\n    pass\n" for name in classes)
            path.write_text(body, encoding="utf8")
            imported_roots.add(module.split(".")[0])

        importlib.invalidate_caches()
        return importlib.import_module

    yield write

    for name in list(sys.modules):
        if name.split(".")[0] in imported_roots:
            del sys.modules[name]

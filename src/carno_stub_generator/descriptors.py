"""Immutable descriptor model that the generator consumes.

The classes in here are thin, frozen views of the protobuf descriptors that
protoc hands to a plugin. They are materialized once per generation run and
never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass

from google.protobuf import descriptor_pb2

# Field numbers of FileDescriptorProto.service and ServiceDescriptorProto.method,
# used to address locations in SourceCodeInfo.
SERVICE_PATH_TAG = 6
METHOD_PATH_TAG = 2


@dataclass(frozen=True)
class MethodDescriptor:
    """A single RPC method of a service."""

    name: str
    input_type: str
    output_type: str
    client_streaming: bool = False
    server_streaming: bool = False
    comments: str = ""

    @property
    def is_streaming(self) -> bool:
        """Whether either side of the call exchanges a sequence of messages."""
        return self.client_streaming or self.server_streaming

    @property
    def is_unary(self) -> bool:
        """Whether the method takes exactly one request and returns one response."""
        return not self.is_streaming


@dataclass(frozen=True)
class ServiceDescriptor:
    """A named, ordered collection of methods declared in one file."""

    name: str
    file_name: str
    methods: tuple[MethodDescriptor, ...] = ()
    comments: str = ""

    @property
    def unary_methods(self) -> tuple[MethodDescriptor, ...]:
        """The unary subsequence of the methods, in declared order."""
        return tuple(method for method in self.methods if method.is_unary)


@dataclass(frozen=True)
class FileDescriptor:
    """One parsed interface-definition file."""

    name: str
    package: str
    services: tuple[ServiceDescriptor, ...] = ()

    @property
    def has_services(self) -> bool:
        return bool(self.services)

    @classmethod
    def from_proto(cls, proto: descriptor_pb2.FileDescriptorProto) -> FileDescriptor:
        """Build a file descriptor from its protobuf representation.

        Leading comments found in the source code info are correlated with
        services and methods by their declaration index.

        Args:
            proto (descriptor_pb2.FileDescriptorProto): The parsed file.

        Returns:
            FileDescriptor: The immutable view of the file.
        """
        comments = _collect_comments(proto)

        services = []
        for service_index, service in enumerate(proto.service):
            methods = tuple(
                MethodDescriptor(
                    name=method.name,
                    input_type=method.input_type,
                    output_type=method.output_type,
                    client_streaming=method.client_streaming,
                    server_streaming=method.server_streaming,
                    comments=comments.get((SERVICE_PATH_TAG, service_index, METHOD_PATH_TAG, method_index), ""),
                )
                for method_index, method in enumerate(service.method)
            )
            services.append(
                ServiceDescriptor(
                    name=service.name,
                    file_name=proto.name,
                    methods=methods,
                    comments=comments.get((SERVICE_PATH_TAG, service_index), ""),
                )
            )

        return cls(name=proto.name, package=proto.package, services=tuple(services))


@dataclass(frozen=True)
class PackageGroup:
    """All services of one package, aggregated across input files."""

    package: str
    services: tuple[ServiceDescriptor, ...]
    file_names: tuple[str, ...]


def _collect_comments(proto: descriptor_pb2.FileDescriptorProto) -> dict[tuple[int, ...], str]:
    """Map service and method locations to their cleaned up leading comments."""
    comments: dict[tuple[int, ...], str] = {}

    for location in proto.source_code_info.location:
        path = tuple(location.path)
        if not path or path[0] != SERVICE_PATH_TAG:
            continue
        is_service = len(path) == 2
        is_method = len(path) == 4 and path[2] == METHOD_PATH_TAG
        if not (is_service or is_method):
            continue

        text = location.leading_comments.strip()
        if text:
            comments[path] = "\n".join(line.strip() for line in text.splitlines())

    return comments

"""Group service descriptors by package and resolve message type references."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from google.protobuf import descriptor_pb2

from carno_stub_generator import helper
from carno_stub_generator.carno_types import ConfigurationError
from carno_stub_generator.descriptors import FileDescriptor, PackageGroup, ServiceDescriptor
from carno_stub_generator.writer_dto import TypeRef

logger = logging.getLogger(__name__)


class DescriptorCollector:
    """Collects the services of many input files into package groups.

    Packages keep the order in which they were first seen, and so do the services
    within a package. Services of several files that share a package are
    concatenated in the order the files are added.
    """

    def __init__(self) -> None:
        self._services: dict[str, list[ServiceDescriptor]] = {}
        self._files: dict[str, list[str]] = {}

    def add_file(self, file: FileDescriptor) -> bool:
        """Validate a file and add its services to the package groups.

        The file is validated completely before anything is recorded, so a failing
        file never leaves a group half updated.

        Args:
            file (FileDescriptor): The file to add.

        Returns:
            bool: Whether the file contributed services. Files without services pass through.

        Raises:
            ConfigurationError: If the file declares no package, or if a service or method
                name is not unique.
        """
        if not file.has_services:
            logger.debug("Skipping '%s', it declares no services.", file.name)
            return False

        if not file.package:
            raise ConfigurationError(f"'{file.name}' declares services but has an empty package name.")

        known = {service.name for service in self._services.get(file.package, [])}
        for service in file.services:
            if service.name in known:
                raise ConfigurationError(
                    f"'{file.name}': service '{service.name}' is declared twice in package '{file.package}'."
                )
            known.add(service.name)

            method_names = [method.name for method in service.methods]
            if len(set(method_names)) != len(method_names):
                raise ConfigurationError(f"'{file.name}': service '{service.name}' declares a method twice.")

        self._services.setdefault(file.package, []).extend(file.services)
        self._files.setdefault(file.package, []).append(file.name)
        return True

    def groups(self) -> dict[str, PackageGroup]:
        """The package groups collected so far, in first-seen order."""
        return {
            package: PackageGroup(package=package, services=tuple(services), file_names=tuple(self._files[package]))
            for package, services in self._services.items()
        }

    @classmethod
    def collect(cls, files: Iterable[FileDescriptor]) -> dict[str, PackageGroup]:
        """Group the services of all files by package, failing on the first invalid file.

        Args:
            files (Iterable[FileDescriptor]): The files, in processing order.

        Returns:
            dict[str, PackageGroup]: The groups, keyed by package name.
        """
        collector = cls()
        for file in files:
            collector.add_file(file)
        return collector.groups()


class TypeTable:
    """Resolves fully qualified message names to the Python types protoc generates for them."""

    def __init__(self, refs: dict[str, TypeRef] | None = None):
        self._refs: dict[str, TypeRef] = dict(refs) if refs else {}

    def __contains__(self, type_name: str) -> bool:
        return type_name in self._refs

    def __len__(self) -> int:
        return len(self._refs)

    def add(self, type_name: str, ref: TypeRef) -> None:
        self._refs[type_name] = ref

    def resolve(self, type_name: str) -> TypeRef:
        """Resolve a fully qualified type name, e.g. '.demo.Input'.

        Args:
            type_name (str): The type name as found in a method descriptor.

        Returns:
            TypeRef: The reference to the generated message class.

        Raises:
            ConfigurationError: If the type is not defined by any known file.
        """
        try:
            return self._refs[type_name]
        except KeyError:
            raise ConfigurationError(f"Unknown message type '{type_name}'.") from None

    @classmethod
    def from_protos(cls, protos: Sequence[descriptor_pb2.FileDescriptorProto]) -> TypeTable:
        """Index every message of every file, nested messages included.

        Args:
            protos (Sequence[descriptor_pb2.FileDescriptorProto]): All files of the request,
                including dependencies that are not generated.

        Returns:
            TypeTable: The populated table.
        """
        table = cls()
        for proto in protos:
            module = helper.module_name(proto.name)
            alias = helper.module_alias(proto.name)
            prefix = f".{proto.package}" if proto.package else ""

            pending: list[tuple[str, str, descriptor_pb2.DescriptorProto]] = [
                (prefix, "", message) for message in proto.message_type
            ]
            while pending:
                parent_proto, parent_py, message = pending.pop(0)
                proto_name = f"{parent_proto}.{message.name}"
                python_name = f"{parent_py}.{message.name}" if parent_py else message.name
                table.add(proto_name, TypeRef(module=module, alias=alias, name=python_name))
                pending.extend((proto_name, python_name, nested) for nested in message.nested_type)

        return table

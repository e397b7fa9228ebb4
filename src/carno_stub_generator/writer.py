"""Render carno bindings into Python source text.

The writer only formats. Every decision about names, order and shape has already
been taken by the stub emitter, the registry builder and the package aggregator.
"""

from __future__ import annotations

import json
import logging
from typing import Literal

from carno_stub_generator import helper
from carno_stub_generator.carno_types import (
    RUNTIME_PACKAGE,
    SUPPORT_PACKAGE_MARKER,
    CarnoCall,
    CarnoType,
)
from carno_stub_generator.writer_dto import (
    AggregateBinding,
    ClientMethod,
    FileBinding,
    MethodSignature,
    ServiceBinding,
    StreamHandle,
)

logger = logging.getLogger(__name__)

INDENT = "    "
GENERATOR_NAME = "carno-stub-generator"


def quote(value: str) -> str:
    """A double quoted Python string literal.

    Characters outside the basic multilingual plane are kept as they are, JSON would
    split them into surrogate pair escapes that Python does not join back.
    """
    return json.dumps(value, ensure_ascii=False)


class Writer:
    """Accumulates the lines and imports of one generated module."""

    VALID_TYPING_IMPORTS = Literal["Protocol"]

    def __init__(self, docstring: str):
        """Initialize the writer.

        Args:
            docstring (str): The module docstring.
        """
        self.docstring = docstring
        self._imports: list[str] = ["from __future__ import annotations"]
        self._stdlib_imports: list[str] = []
        self._typing_imports: set[Writer.VALID_TYPING_IMPORTS] = set()
        self._runtime_imports: list[str] = []
        self._module_imports: list[str] = []
        self._lines: list[str] = []

    @classmethod
    def for_file(cls, binding: FileBinding) -> Writer:
        writer = cls(
            f'"""Generated carno bindings for `{binding.source_name}`.\n\n'
            f'DO NOT EDIT. This module is produced by {GENERATOR_NAME}.\n"""'
        )
        writer.gen_file(binding)
        return writer

    @classmethod
    def for_aggregate(cls, binding: AggregateBinding) -> Writer:
        writer = cls(
            f'"""Generated carno package bundle for `{binding.package}`.\n\n'
            f'DO NOT EDIT. This module is produced by {GENERATOR_NAME}.\n"""'
        )
        writer.gen_aggregate(binding)
        return writer

    # ===== Imports =====

    def _add_typing_import(self, name: Writer.VALID_TYPING_IMPORTS):
        self._typing_imports.add(name)

    @staticmethod
    def _add_unique(target: list[str], line: str):
        # Preserve insertion order while avoiding duplicates
        if line not in target:
            target.append(line)

    def _add_stdlib_import(self, import_line: str):
        self._add_unique(self._stdlib_imports, import_line)

    def _add_runtime_import(self, import_line: str):
        self._add_unique(self._runtime_imports, import_line)

    def _add_module_import(self, import_line: str):
        self._add_unique(self._module_imports, import_line)

    @property
    def imports(self) -> list[str]:
        """The import block, one section per origin, separated by blank lines."""
        stdlib = list(self._stdlib_imports)
        if self._typing_imports:
            stdlib.append("from typing import " + ", ".join(sorted(self._typing_imports)))

        sections = [self._imports, stdlib, self._runtime_imports, self._module_imports]

        import_lines: list[str] = []
        for section in sections:
            if not section:
                continue
            if import_lines:
                import_lines.append("")
            import_lines.extend(section)
        return import_lines

    # ===== Lines =====

    def add(self, line: str = "", depth: int = 0):
        self._lines.append(f"{INDENT * depth}{line}" if line else "")

    def add_block_separator(self):
        # Two blank lines between top level definitions
        while self._lines and not self._lines[-1]:
            self._lines.pop()
        if self._lines:
            self._lines.extend(["", ""])

    def _add_version_assertion(self):
        self._add_runtime_import(f"import {RUNTIME_PACKAGE}")
        self.add("# This is a compile-time assertion to ensure that this generated file")
        self.add("# is compatible with the carno package it is being compiled against.")
        self.add(f"_SUPPORT_PACKAGE = {RUNTIME_PACKAGE}.{SUPPORT_PACKAGE_MARKER}")

    def _add_protocol(self, name: str, members: tuple[MethodSignature, ...], doc: str = ""):
        self._add_typing_import("Protocol")
        self.add_block_separator()
        self.add(helper.new_class_declaration(name, ["Protocol"]))

        docstring = helper.new_docstring(doc, INDENT)
        self._lines.extend(docstring)
        if docstring and members:
            self.add()

        if not members and not docstring:
            self.add("...", depth=1)

        for index, member in enumerate(members):
            if index:
                self.add()
            if member.doc:
                self.add(member.declaration(stub=False), depth=1)
                self._lines.extend(helper.new_docstring(member.doc, INDENT * 2))
                self.add("...", depth=2)
            else:
                self.add(member.declaration(), depth=1)

    def _add_stream_handles(self, streams: tuple[StreamHandle, ...]):
        for stream in streams:
            self._add_protocol(stream.name, stream.members)

    # ===== Services =====

    def _gen_client_method(self, method: ClientMethod):
        self.add(method.signature.declaration(stub=False), depth=1)
        if method.call is None:
            message = quote(f"carno does not dispatch streaming method '{method.qualified_name}'")
            self.add(f"raise NotImplementedError({message})", depth=2)
            return

        # The connection's error, if any, reaches the caller unchanged.
        call = method.call
        arguments = helper.join_parameters(
            ["ctx", quote(call.service_name), quote(call.method_name), "request", str(call.response_type), "*opts"]
        )
        self.add("cc = self._cc", depth=2)
        self.add(f"return cc.call({arguments})", depth=2)

    def gen_client(self, service: ServiceBinding):
        """Generate the client interface, its stream handles, implementation and factory."""
        self.add_block_separator()
        self.add(f"# Client API for {service.identifier} service")

        self._add_protocol(service.client_interface_name, service.client_interface, service.doc)
        self._add_stream_handles(service.client_streams)

        self.add_block_separator()
        self.add(helper.new_class_declaration(service.client_impl_name))
        self.add(helper.new_function("__init__", ["self", f"cc: {CarnoType.CLIENT}"], stub=False), depth=1)
        self.add("self._cc = cc", depth=2)
        for method in service.client_methods:
            self.add()
            self._gen_client_method(method)

        self.add_block_separator()
        self.add(
            helper.new_function(
                service.new_client_name,
                [f"*opts: {CarnoType.CLIENT_OPTION}"],
                service.client_interface_name,
                stub=False,
            )
        )
        self.add(f"cc = {CarnoCall.NEW_CLIENT}({quote(service.package)}, *opts)", depth=1)
        self.add("cc.start()", depth=1)
        self.add(f"return {service.client_impl_name}(cc)", depth=1)

    def gen_server(self, service: ServiceBinding):
        """Generate the server contract, its stream handles and the registration function."""
        self.add_block_separator()
        self.add(f"# Server API for {service.identifier} service")

        self._add_protocol(service.server_interface_name, service.server_interface, service.doc)
        self._add_stream_handles(service.server_streams)

        self.add_block_separator()
        self.add(helper.new_function(service.register_name, [f"srv: {service.server_interface_name}"], stub=False))
        self.add(f"{CarnoCall.HANDLE_SERVICE}({service.registry.var_name}, srv)", depth=1)

    def gen_registry(self, service: ServiceBinding):
        """Generate the static service descriptor holding the dispatch table."""
        registry = service.registry
        self.add_block_separator()
        self.add(f"{registry.var_name} = {CarnoType.SERVICE_DESC}(")
        self.add(f"service_name={quote(registry.service_name)},", depth=1)
        if registry.methods:
            self.add("methods=(", depth=1)
            for method in registry.methods:
                self.add(f"{quote(method)},", depth=2)
            self.add("),", depth=1)
        else:
            self.add("methods=(),", depth=1)
        self.add(")")

    def gen_service(self, service: ServiceBinding):
        self.gen_client(service)
        self.gen_server(service)
        self.gen_registry(service)

    def gen_file(self, binding: FileBinding):
        """Generate the module of one input file.

        Args:
            binding (FileBinding): The bindings of all services of the file.
        """
        self._add_runtime_import(f"import {RUNTIME_PACKAGE}")
        self._add_runtime_import(f"from {RUNTIME_PACKAGE} import client, mux")
        for ref in binding.type_refs:
            self._add_module_import(ref.import_line)

        self._add_version_assertion()
        for service in binding.services:
            self.gen_service(service)

    # ===== Packages =====

    def gen_aggregate(self, binding: AggregateBinding):
        """Generate the package module with the aggregate type and its constructor.

        Args:
            binding (AggregateBinding): The aggregate of the package.
        """
        self._add_stdlib_import("from dataclasses import dataclass")
        self._add_runtime_import(f"import {RUNTIME_PACKAGE}")
        self._add_runtime_import(f"from {RUNTIME_PACKAGE} import client")
        for ref in binding.modules:
            self._add_module_import(ref.import_line)

        self._add_version_assertion()
        self.add()
        self.add(f"SERVER_NAME = {quote(binding.package)}")

        self.add_block_separator()
        self.add(helper.new_decorator("dataclass", ["frozen=True"]))
        self.add(helper.new_class_declaration(binding.identifier))
        self.add(
            f'"""Clients of all services in package `{binding.package}`, sharing one connection."""',
            depth=1,
        )
        self.add()
        for field in binding.fields:
            self.add(f"{field.name}: {field.interface}", depth=1)

        self.add_block_separator()
        self.add(
            helper.new_function(
                binding.constructor_name, [f"*opts: {CarnoType.CLIENT_OPTION}"], binding.identifier, stub=False
            )
        )
        # Start the connection before building any client.
        self.add(f"cc = {CarnoCall.NEW_CLIENT}(SERVER_NAME, *opts)", depth=1)
        self.add("cc.start()", depth=1)
        self.add(f"return {binding.identifier}(", depth=1)
        for field in binding.fields:
            self.add(f"{field.name}={field.implementation}(cc),", depth=2)
        self.add(")", depth=1)

        self.add_block_separator()
        self.add(helper.new_function("InitCarno", [f"*opts: {CarnoType.OPTION}"], stub=False))
        self.add(f"{CarnoCall.INIT}(SERVER_NAME, *opts)", depth=1)

    # ===== Output =====

    def dumps_py(self) -> str:
        """Generates the string output of the module.

        Returns:
            str: The output string, ending in a single newline.
        """
        out: list[str] = [self.docstring, ""]
        out.extend(self.imports)
        out.extend(["", ""])

        lines = list(self._lines)
        while lines and not lines[-1]:
            lines.pop()
        out.extend(lines)

        return "\n".join(out) + "\n"

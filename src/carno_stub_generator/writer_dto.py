"""Intermediate representation of the generated bindings.

The stub emitter, registry builder and package aggregator turn descriptors into
these values. The writer turns them into source text. Keeping the two apart means
naming, ordering and collision handling can be tested without looking at text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import override

from carno_stub_generator import helper


@dataclass(frozen=True)
class TypeRef:
    """A reference to a type that lives in an imported module.

    Attributes:
        module: The dotted module name, e.g. "demo.echo_pb2"
        alias: The name the module is imported as, e.g. "demo_dot_echo__pb2"
        name: The (possibly nested) attribute name in that module, e.g. "Outer.Inner"
    """

    module: str
    alias: str
    name: str

    @property
    def import_line(self) -> str:
        """The import statement that makes this reference resolvable."""
        return f"import {self.module} as {self.alias}"

    @override
    def __str__(self) -> str:
        return f"{self.alias}.{self.name}"


@dataclass(frozen=True)
class MethodSignature:
    """A method declaration, rendered as a Protocol member or an implementation header.

    Attributes:
        name: The method identifier
        parameters: The parameters, including `self`
        return_type: The annotated return type
        doc: Documentation correlated from the schema, if any
    """

    name: str
    parameters: tuple[str, ...]
    return_type: str
    doc: str = ""

    def declaration(self, stub: bool = True) -> str:
        """The `def` line of this signature.

        Args:
            stub (bool): Whether to close the declaration with `...`.

        Returns:
            str: The declaration.
        """
        return helper.new_function(self.name, self.parameters, self.return_type, stub=stub)


@dataclass(frozen=True)
class UnaryCall:
    """The body of a unary client method.

    The rendered body binds the shared connection, calls it with the raw service
    and method names, and returns the response as received.

    Attributes:
        service_name: The raw service name sent over the wire
        method_name: The raw method name sent over the wire
        response_type: The type the runtime decodes the response into
    """

    service_name: str
    method_name: str
    response_type: TypeRef


@dataclass(frozen=True)
class ClientMethod:
    """One method of the client implementation.

    A method without a call is a streaming method that the runtime cannot dispatch.
    """

    signature: MethodSignature
    call: UnaryCall | None
    qualified_name: str

    @property
    def is_unary(self) -> bool:
        return self.call is not None


@dataclass(frozen=True)
class StreamHandle:
    """A per-method stream handle Protocol, e.g. `Echo_WatchClient`."""

    name: str
    members: tuple[MethodSignature, ...]


@dataclass(frozen=True)
class RegistryTable:
    """The static dispatch descriptor of a service.

    Attributes:
        var_name: The module level variable holding the descriptor
        service_name: The raw service name
        methods: The raw names of the unary methods, in declared order
    """

    var_name: str
    service_name: str
    methods: tuple[str, ...]


@dataclass(frozen=True)
class ServiceBinding:
    """Everything that is generated for one service.

    Attributes:
        name: The raw service name
        package: The package the service belongs to
        identifier: The exported service identifier, e.g. "Echo"
        doc: Documentation correlated from the schema, if any
        client_interface_name: e.g. "EchoClient"
        client_interface: The client Protocol members, in declared order
        client_impl_name: e.g. "_echoClient"
        client_methods: The client implementation methods, in declared order
        new_client_name: e.g. "NewEchoClient"
        server_interface_name: e.g. "EchoServer"
        server_interface: The server Protocol members, in declared order
        register_name: e.g. "RegisterEchoServer"
        client_streams: Client side stream handles of the streaming methods
        server_streams: Server side stream handles of the streaming methods
        registry: The dispatch registry of the unary methods
        type_refs: Every message type the service refers to
    """

    name: str
    package: str
    identifier: str
    doc: str
    client_interface_name: str
    client_interface: tuple[MethodSignature, ...]
    client_impl_name: str
    client_methods: tuple[ClientMethod, ...]
    new_client_name: str
    server_interface_name: str
    server_interface: tuple[MethodSignature, ...]
    register_name: str
    client_streams: tuple[StreamHandle, ...]
    server_streams: tuple[StreamHandle, ...]
    registry: RegistryTable
    type_refs: tuple[TypeRef, ...]

    def top_level_names(self) -> list[str]:
        """All module level names that this service defines."""
        names = [
            self.client_interface_name,
            self.client_impl_name,
            self.new_client_name,
            self.server_interface_name,
            self.register_name,
            self.registry.var_name,
        ]
        names.extend(stream.name for stream in self.client_streams)
        names.extend(stream.name for stream in self.server_streams)
        return names


@dataclass(frozen=True)
class FileBinding:
    """The generated module for one input file.

    Attributes:
        source_name: The proto file the module is generated from
        output_name: The path of the generated module
        module: The dotted module name of the generated module
        package: The package of the file
        services: The service bindings, in declared order
    """

    source_name: str
    output_name: str
    module: str
    package: str
    services: tuple[ServiceBinding, ...]

    @property
    def type_refs(self) -> list[TypeRef]:
        """The message types used by all services, first use first, without duplicates."""
        refs: dict[TypeRef, None] = {}
        for service in self.services:
            for ref in service.type_refs:
                refs.setdefault(ref, None)
        return list(refs)


@dataclass(frozen=True)
class AggregateField:
    """One field of the package aggregate.

    Attributes:
        name: The field name, e.g. "EchoClient"
        interface: The client Protocol the field is typed as
        implementation: The client implementation constructed for the field
    """

    name: str
    interface: TypeRef
    implementation: TypeRef


@dataclass(frozen=True)
class AggregateBinding:
    """The umbrella type of one package, bundling one client per service.

    Attributes:
        package: The raw package name, which scopes the shared connection
        identifier: The exported package identifier, e.g. "Demo"
        output_name: The path of the generated package module
        constructor_name: e.g. "NewDemo"
        fields: One field per service, in first-seen order
    """

    package: str
    identifier: str
    output_name: str
    constructor_name: str
    fields: tuple[AggregateField, ...] = field(default_factory=tuple)

    @property
    def modules(self) -> list[TypeRef]:
        """One reference per imported service module, without duplicates."""
        refs: dict[tuple[str, str], TypeRef] = {}
        for agg_field in self.fields:
            ref = agg_field.interface
            refs.setdefault((ref.module, ref.alias), ref)
        return list(refs.values())

"""Shape the client stubs and server contracts of a service."""

from __future__ import annotations

import logging

from carno_stub_generator import helper
from carno_stub_generator.carno_types import MODULE_SUFFIX, CarnoType, NameCollisionError
from carno_stub_generator.collector import TypeTable
from carno_stub_generator.descriptors import FileDescriptor, MethodDescriptor, ServiceDescriptor
from carno_stub_generator.registry import RegistryBuilder
from carno_stub_generator.writer_dto import (
    ClientMethod,
    FileBinding,
    MethodSignature,
    ServiceBinding,
    StreamHandle,
    TypeRef,
    UnaryCall,
)

logger = logging.getLogger(__name__)

SELF = "self"
CONTEXT_PARAM = f"ctx: {CarnoType.CONTEXT}"
CALL_OPTIONS_PARAM = f"*opts: {CarnoType.CALL_OPTION}"


class StubEmitter:
    """Builds the client interface, client implementation and server contract of services.

    Every operation keeps the declared method order. Unary methods take one request
    and return one response. A method with either streaming flag is shaped around a
    dedicated stream handle instead, and is left out of the dispatch registry.
    """

    def __init__(self, resolver: helper.NameResolver, types: TypeTable, registry: RegistryBuilder):
        """Initialize the emitter.

        Args:
            resolver (helper.NameResolver): Computes identifiers from schema names.
            types (TypeTable): Resolves message type references.
            registry (RegistryBuilder): Builds the dispatch registry of each service.
        """
        self._resolver = resolver
        self._types = types
        self._registry = registry

    # ===== Naming =====

    def _service_identifier(self, service: ServiceDescriptor) -> str:
        return self._resolver.service_identifier(service.name)

    def _method_identifier(self, method: MethodDescriptor) -> str:
        return self._resolver.method_identifier(method.name)

    def client_interface_name(self, service: ServiceDescriptor) -> str:
        return f"{self._service_identifier(service)}Client"

    def client_impl_name(self, service: ServiceDescriptor) -> str:
        return f"_{self._resolver.service_identifier(service.name, exported=False)}Client"

    def server_interface_name(self, service: ServiceDescriptor) -> str:
        return f"{self._service_identifier(service)}Server"

    def stream_name(self, service: ServiceDescriptor, method: MethodDescriptor, side: str) -> str:
        """The stream handle of a streaming method, e.g. `Echo_WatchClient`.

        Args:
            service (ServiceDescriptor): The service of the method.
            method (MethodDescriptor): The streaming method.
            side (str): Either "Client" or "Server".

        Returns:
            str: The stream handle name.
        """
        return f"{self._service_identifier(service)}_{self._method_identifier(method)}{side}"

    def _input(self, method: MethodDescriptor) -> TypeRef:
        return self._types.resolve(method.input_type)

    def _output(self, method: MethodDescriptor) -> TypeRef:
        return self._types.resolve(method.output_type)

    # ===== Client =====

    def client_signature(self, service: ServiceDescriptor, method: MethodDescriptor) -> MethodSignature:
        """The client side signature of a method.

        A unary method takes the context, the request and call options, and returns the
        response. A streaming method returns its stream handle instead; with client
        streaming the request parameter is dropped, since values are sent through the handle.
        """
        parameters = [SELF, CONTEXT_PARAM]
        if not method.client_streaming:
            parameters.append(f"request: {self._input(method)}")
        parameters.append(CALL_OPTIONS_PARAM)

        if method.is_streaming:
            return_type = self.stream_name(service, method, "Client")
        else:
            return_type = str(self._output(method))

        return MethodSignature(
            name=self._method_identifier(method),
            parameters=tuple(parameters),
            return_type=return_type,
            doc=method.comments,
        )

    def client_interface(self, service: ServiceDescriptor) -> tuple[MethodSignature, ...]:
        """One client signature per method, in declared order."""
        return tuple(self.client_signature(service, method) for method in service.methods)

    def client_implementation(self, service: ServiceDescriptor) -> tuple[ClientMethod, ...]:
        """The methods of the client implementation, in declared order.

        Unary methods call the shared connection with the raw service and method names.
        Streaming methods carry no call, the runtime contract only dispatches unary calls.
        """
        methods = []
        for method in service.methods:
            signature = self.client_signature(service, method)
            call = None
            if method.is_unary:
                call = UnaryCall(
                    service_name=service.name,
                    method_name=method.name,
                    response_type=self._output(method),
                )
            methods.append(
                ClientMethod(
                    signature=MethodSignature(signature.name, signature.parameters, signature.return_type),
                    call=call,
                    qualified_name=f"{service.name}.{method.name}",
                )
            )
        return tuple(methods)

    # ===== Server =====

    def server_signature(self, service: ServiceDescriptor, method: MethodDescriptor) -> MethodSignature:
        """The server side signature of a method, mirroring the client shape."""
        parameters = [SELF, CONTEXT_PARAM]
        if not method.client_streaming:
            parameters.append(f"request: {self._input(method)}")

        if method.is_streaming:
            parameters.append(f"stream: {self.stream_name(service, method, 'Server')}")
            return_type = "None"
        else:
            return_type = str(self._output(method))

        return MethodSignature(
            name=self._method_identifier(method),
            parameters=tuple(parameters),
            return_type=return_type,
            doc=method.comments,
        )

    def server_interface(self, service: ServiceDescriptor) -> tuple[MethodSignature, ...]:
        """One server signature per method, in declared order."""
        return tuple(self.server_signature(service, method) for method in service.methods)

    # ===== Streams =====

    def stream_handles(self, service: ServiceDescriptor) -> tuple[tuple[StreamHandle, ...], tuple[StreamHandle, ...]]:
        """The client and server stream handles of all streaming methods.

        Returns:
            tuple: The client side handles and the server side handles, in declared order.
        """
        client_streams = []
        server_streams = []

        for method in service.methods:
            if not method.is_streaming:
                continue

            in_type = str(self._input(method))
            out_type = str(self._output(method))

            send_in = MethodSignature("send", (SELF, f"msg: {in_type}"), "None")
            send_out = MethodSignature("send", (SELF, f"msg: {out_type}"), "None")
            recv_in = MethodSignature("recv", (SELF,), in_type)
            recv_out = MethodSignature("recv", (SELF,), out_type)

            if method.client_streaming and method.server_streaming:
                client_members = (send_in, recv_out, MethodSignature("close_send", (SELF,), "None"))
                server_members = (send_out, recv_in)
            elif method.client_streaming:
                client_members = (send_in, MethodSignature("close_and_recv", (SELF,), out_type))
                server_members = (recv_in, MethodSignature("send_and_close", (SELF, f"msg: {out_type}"), "None"))
            else:
                client_members = (recv_out,)
                server_members = (send_out,)

            client_streams.append(StreamHandle(self.stream_name(service, method, "Client"), client_members))
            server_streams.append(StreamHandle(self.stream_name(service, method, "Server"), server_members))

        return tuple(client_streams), tuple(server_streams)

    # ===== Service and file =====

    def type_refs(self, service: ServiceDescriptor) -> tuple[TypeRef, ...]:
        """Every message type referenced by a service, first use first."""
        refs: dict[TypeRef, None] = {}
        for method in service.methods:
            refs.setdefault(self._input(method), None)
            refs.setdefault(self._output(method), None)
        return tuple(refs)

    def emit(self, service: ServiceDescriptor, package: str) -> ServiceBinding:
        """Build the complete binding of one service.

        Args:
            service (ServiceDescriptor): The service.
            package (str): The package of the file declaring the service.

        Returns:
            ServiceBinding: The binding.

        Raises:
            NameCollisionError: If two methods resolve to the same identifier.
            ConfigurationError: If a message type cannot be resolved.
        """
        self._resolver.check_unique(f"'{service.name}' method", [method.name for method in service.methods])

        identifier = self._service_identifier(service)
        client_streams, server_streams = self.stream_handles(service)

        return ServiceBinding(
            name=service.name,
            package=package,
            identifier=identifier,
            doc=service.comments,
            client_interface_name=self.client_interface_name(service),
            client_interface=self.client_interface(service),
            client_impl_name=self.client_impl_name(service),
            client_methods=self.client_implementation(service),
            new_client_name=f"New{identifier}Client",
            server_interface_name=self.server_interface_name(service),
            server_interface=self.server_interface(service),
            register_name=f"Register{identifier}Server",
            client_streams=client_streams,
            server_streams=server_streams,
            registry=self._registry.build(service),
            type_refs=self.type_refs(service),
        )

    def emit_file(self, file: FileDescriptor) -> FileBinding:
        """Build the bindings of all services declared in one file.

        Args:
            file (FileDescriptor): The file.

        Returns:
            FileBinding: The bindings of the generated module.

        Raises:
            NameCollisionError: If two generated module level names collide.
        """
        self._resolver.check_unique("service", [service.name for service in file.services])

        services = tuple(self.emit(service, file.package) for service in file.services)

        defined: dict[str, str] = {}
        for service in services:
            for name in service.top_level_names():
                if name in defined:
                    raise NameCollisionError(
                        f"'{file.name}': '{name}' of service '{service.name}' "
                        f"collides with a name generated for service '{defined[name]}'."
                    )
                defined[name] = service.name

        logger.debug("Built bindings for %d service(s) of '%s'.", len(services), file.name)

        return FileBinding(
            source_name=file.name,
            output_name=helper.output_file_name(file.name),
            module=helper.module_name(file.name, MODULE_SUFFIX),
            package=file.package,
            services=services,
        )

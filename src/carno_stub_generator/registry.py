"""Build the per-service dispatch registry."""

from __future__ import annotations

from carno_stub_generator.descriptors import ServiceDescriptor
from carno_stub_generator.helper import NameResolver
from carno_stub_generator.writer_dto import RegistryTable


class RegistryBuilder:
    """Builds the static descriptor the runtime uses to validate and route named calls.

    Only unary methods are routable, so streaming methods never enter the table.
    Slots follow the declared order of the unary methods, but nothing in the
    generated code addresses a method by its slot: clients and the runtime look
    methods up by name.
    """

    def __init__(self, resolver: NameResolver):
        self._resolver = resolver

    def build_table(self, service: ServiceDescriptor) -> tuple[str, ...]:
        """The raw names of the unary methods of a service, in declared order."""
        return tuple(method.name for method in service.unary_methods)

    def descriptor_name(self, service: ServiceDescriptor) -> str:
        """The module level variable of the descriptor, e.g. `_Echo_serviceDesc`."""
        return f"_{self._resolver.service_identifier(service.name)}_serviceDesc"

    def build(self, service: ServiceDescriptor) -> RegistryTable:
        """Build the descriptor object of a service.

        Args:
            service (ServiceDescriptor): The service.

        Returns:
            RegistryTable: The service name together with its table.
        """
        return RegistryTable(
            var_name=self.descriptor_name(service),
            service_name=service.name,
            methods=self.build_table(service),
        )

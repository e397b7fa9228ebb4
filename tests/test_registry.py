"""Tests for the per-service dispatch registry."""

from __future__ import annotations

from carno_stub_generator.descriptors import FileDescriptor
from carno_stub_generator.registry import RegistryBuilder


class TestRegistryBuilder:
    def test_unary_methods_in_declared_order(self, resolver, file_proto, method_specs):
        proto = file_proto(
            "demo/mixed.proto",
            "demo",
            {
                "Mixed": [
                    method_specs["unary"]("zeta"),
                    method_specs["server_stream"]("Watch"),
                    method_specs["unary"]("alpha"),
                    method_specs["bidi_stream"]("Chat"),
                    method_specs["unary"]("Mid"),
                ]
            },
        )
        service = FileDescriptor.from_proto(proto).services[0]

        table = RegistryBuilder(resolver).build(service)

        # Raw names, not sorted, no streaming methods.
        assert table.methods == ("zeta", "alpha", "Mid")
        assert table.service_name == "Mixed"
        assert table.var_name == "_Mixed_serviceDesc"

    def test_streaming_only_service_has_empty_table(self, resolver, file_proto, method_specs):
        proto = file_proto("demo/s.proto", "demo", {"Feed": [method_specs["server_stream"]("Watch")]})
        service = FileDescriptor.from_proto(proto).services[0]
        assert RegistryBuilder(resolver).build_table(service) == ()

    def test_table_length_equals_unary_count(self, resolver, echo_file):
        service = echo_file.services[0]
        assert len(RegistryBuilder(resolver).build_table(service)) == len(service.unary_methods) == 1

    def test_descriptor_name_uses_resolved_identifier(self, resolver, file_proto, method_specs):
        proto = file_proto("demo/s.proto", "demo", {"echo_service": [method_specs["unary"]("M")]})
        service = FileDescriptor.from_proto(proto).services[0]

        table = RegistryBuilder(resolver).build(service)

        assert table.var_name == "_EchoService_serviceDesc"
        assert table.service_name == "echo_service"

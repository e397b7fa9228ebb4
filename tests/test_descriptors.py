"""Tests for the immutable descriptor model."""

from __future__ import annotations

import dataclasses

import pytest
from google.protobuf import descriptor_pb2

from carno_stub_generator.descriptors import FileDescriptor, MethodDescriptor


class TestMethodDescriptor:
    @pytest.mark.parametrize(
        ("client_streaming", "server_streaming", "streaming"),
        [(False, False, False), (False, True, True), (True, False, True), (True, True, True)],
    )
    def test_streaming_flags(self, client_streaming, server_streaming, streaming):
        method = MethodDescriptor("M", ".p.In", ".p.Out", client_streaming, server_streaming)
        assert method.is_streaming is streaming
        assert method.is_unary is not streaming

    def test_is_frozen(self):
        method = MethodDescriptor("M", ".p.In", ".p.Out")
        with pytest.raises(dataclasses.FrozenInstanceError):
            method.name = "N"  # type: ignore[misc]


class TestFromProto:
    """Conversion from the descriptors protoc hands to a plugin."""

    def test_keeps_declared_order(self, file_proto, method_specs):
        unary = method_specs["unary"]
        proto = file_proto(
            "demo/echo.proto",
            "demo",
            {"Zeta": [unary("B"), unary("A")], "Alpha": [unary("Y"), unary("X")]},
        )
        file = FileDescriptor.from_proto(proto)

        assert file.name == "demo/echo.proto"
        assert file.package == "demo"
        assert [service.name for service in file.services] == ["Zeta", "Alpha"]
        assert [method.name for method in file.services[0].methods] == ["B", "A"]
        assert all(service.file_name == "demo/echo.proto" for service in file.services)

    def test_streaming_flags_and_types(self, echo_file):
        say, watch = echo_file.services[0].methods
        assert (say.input_type, say.output_type) == (".demo.Input", ".demo.Output")
        assert say.is_unary
        assert watch.server_streaming and not watch.client_streaming

    def test_unary_methods(self, file_proto, method_specs):
        proto = file_proto(
            "demo/mixed.proto",
            "demo",
            {
                "Mixed": [
                    method_specs["bidi_stream"]("Chat"),
                    method_specs["unary"]("Get"),
                    method_specs["client_stream"]("Upload"),
                    method_specs["unary"]("Put"),
                ]
            },
        )
        service = FileDescriptor.from_proto(proto).services[0]
        assert [method.name for method in service.unary_methods] == ["Get", "Put"]

    def test_file_without_services(self, file_proto):
        file = FileDescriptor.from_proto(file_proto("common/types.proto", "common"))
        assert not file.has_services
        assert file.services == ()

    def test_comments_are_correlated(self, echo_proto):
        info = echo_proto.source_code_info
        info.location.add(path=[6, 0], leading_comments=" Echo echoes.\n Twice.\n")
        info.location.add(path=[6, 0, 2, 1], leading_comments=" Watch streams.\n")
        # Trailing comments and unrelated paths are ignored.
        info.location.add(path=[6, 0, 2, 0], trailing_comments=" ignored\n")
        info.location.add(path=[4, 0], leading_comments=" A message.\n")
        info.location.add(path=[6, 0, 3, 0], leading_comments=" An option.\n")

        service = FileDescriptor.from_proto(echo_proto).services[0]

        assert service.comments == "Echo echoes.\nTwice."
        assert service.methods[0].comments == ""
        assert service.methods[1].comments == "Watch streams."

    def test_empty_package_is_kept(self):
        proto = descriptor_pb2.FileDescriptorProto(name="nopackage.proto")
        proto.service.add(name="Pinger")
        file = FileDescriptor.from_proto(proto)
        assert file.package == ""
        assert file.has_services

"""Tests for the per-package aggregate."""

from __future__ import annotations

import threading

import pytest

from carno_stub_generator.aggregator import PackageAggregator
from carno_stub_generator.carno_types import NameCollisionError
from carno_stub_generator.collector import DescriptorCollector
from carno_stub_generator.descriptors import FileDescriptor
from carno_stub_generator.helper import NameResolver


@pytest.fixture
def demo_group(file_proto, method_specs):
    unary = method_specs["unary"]
    files = [
        FileDescriptor.from_proto(file_proto("demo/echo.proto", "demo", {"Echo": [unary("Say")]})),
        FileDescriptor.from_proto(
            file_proto("demo/admin.proto", "demo", {"Admin": [unary("Reset")], "audit_log": [unary("Read")]})
        ),
    ]
    return DescriptorCollector.collect(files)["demo"]


class TestPackageAggregator:
    def test_one_field_per_service(self, resolver, demo_group):
        binding = PackageAggregator(resolver).build(demo_group)

        assert binding.identifier == "Demo"
        assert binding.constructor_name == "NewDemo"
        assert binding.output_name == "demo/carno_package.py"
        assert [field.name for field in binding.fields] == ["EchoClient", "AdminClient", "AuditLogClient"]

    def test_fields_reference_service_modules(self, resolver, demo_group):
        fields = PackageAggregator(resolver).build(demo_group).fields

        assert str(fields[0].interface) == "demo_dot_echo__carno.EchoClient"
        assert str(fields[0].implementation) == "demo_dot_echo__carno._echoClient"
        assert str(fields[2].implementation) == "demo_dot_admin__carno._auditLogClient"

    def test_modules_are_deduplicated(self, resolver, demo_group):
        binding = PackageAggregator(resolver).build(demo_group)
        assert [ref.import_line for ref in binding.modules] == [
            "import demo.echo_carno as demo_dot_echo__carno",
            "import demo.admin_carno as demo_dot_admin__carno",
        ]

    def test_dotted_package(self, resolver, file_proto, method_specs):
        file = FileDescriptor.from_proto(
            file_proto("shop/v1/catalog.proto", "shop.v1", {"Catalog": [method_specs["unary"]("Get")]})
        )
        aggregator = PackageAggregator(resolver)
        binding = aggregator.build(DescriptorCollector.collect([file])["shop.v1"])

        assert binding.identifier == "ShopV1"
        assert binding.constructor_name == "NewShopV1"
        assert binding.output_name == "shop/v1/carno_package.py"

    def test_builds_once_per_package(self, resolver, demo_group):
        aggregator = PackageAggregator(resolver)

        assert aggregator.build(demo_group) is not None
        assert aggregator.build(demo_group) is None
        assert aggregator.built_packages == frozenset({"demo"})

    def test_builds_once_under_contention(self, resolver, demo_group):
        aggregator = PackageAggregator(resolver)
        barrier = threading.Barrier(8)
        results = []
        lock = threading.Lock()

        def build():
            barrier.wait()
            binding = aggregator.build(demo_group)
            with lock:
                results.append(binding)

        threads = [threading.Thread(target=build) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 8
        assert len([binding for binding in results if binding is not None]) == 1

    def test_field_collision(self, resolver, file_proto, method_specs):
        unary = method_specs["unary"]
        files = [
            FileDescriptor.from_proto(file_proto("demo/a.proto", "demo", {"audit_log": [unary("M")]})),
            FileDescriptor.from_proto(file_proto("demo/b.proto", "demo", {"AuditLog": [unary("M")]})),
        ]
        group = DescriptorCollector.collect(files)["demo"]
        aggregator = PackageAggregator(resolver)

        with pytest.raises(NameCollisionError):
            aggregator.build(group)
        # A rejected package is not marked as built.
        assert aggregator.built_packages == frozenset()

    def test_reserved_field_name(self, file_proto, method_specs):
        file = FileDescriptor.from_proto(file_proto("demo/a.proto", "demo", {"Close": [method_specs["unary"]("M")]}))
        binding = PackageAggregator(NameResolver(["Close"])).build(DescriptorCollector.collect([file])["demo"])

        assert binding.fields[0].name == "Close_Client"
        assert binding.fields[0].implementation.name == "_close_Client"

"""Bundle the clients of one package behind a single shared connection."""

from __future__ import annotations

import logging
import threading

from carno_stub_generator import helper
from carno_stub_generator.carno_types import MODULE_SUFFIX, PACKAGE_MODULE_NAME
from carno_stub_generator.descriptors import PackageGroup
from carno_stub_generator.writer_dto import AggregateBinding, AggregateField, TypeRef

logger = logging.getLogger(__name__)


class PackageAggregator:
    """Builds the umbrella type of a package, exactly once per package.

    The aggregate has one field per service of the package. Its constructor opens a
    single connection scoped to the package and hands it to every client. The
    aggregator has to run after every service of the package went through the stub
    emitter, which the generator pipeline guarantees. Running it again for a package
    it has already built is a no-op; the gate is keyed by package name and guarded by
    a lock, so parallel package processing cannot build an aggregate twice.
    """

    def __init__(self, resolver: helper.NameResolver):
        self._resolver = resolver
        self._lock = threading.Lock()
        self._built: set[str] = set()

    def _claim(self, package: str) -> bool:
        with self._lock:
            if package in self._built:
                return False
            self._built.add(package)
            return True

    @property
    def built_packages(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._built)

    def output_name(self, package: str) -> str:
        """The path of the package module, e.g. `demo/v1/carno_package.py`."""
        return "/".join([*package.split("."), PACKAGE_MODULE_NAME]) + ".py"

    def build(self, group: PackageGroup) -> AggregateBinding | None:
        """Build the aggregate of a package.

        Args:
            group (PackageGroup): The package with all of its services.

        Returns:
            AggregateBinding | None: The aggregate, or None if it was already built in this run.

        Raises:
            NameCollisionError: If two services of the package resolve to the same field name.
        """
        # Validate before claiming, a rejected package must not look built.
        self._resolver.check_unique(f"package '{group.package}' service", [s.name for s in group.services])

        if not self._claim(group.package):
            logger.debug("Aggregate of package '%s' was already built.", group.package)
            return None

        fields = []
        for service in group.services:
            identifier = self._resolver.service_identifier(service.name)
            module = helper.module_name(service.file_name, MODULE_SUFFIX)
            alias = helper.module_alias(service.file_name, MODULE_SUFFIX)
            fields.append(
                AggregateField(
                    name=f"{identifier}Client",
                    interface=TypeRef(module=module, alias=alias, name=f"{identifier}Client"),
                    implementation=TypeRef(
                        module=module,
                        alias=alias,
                        name=f"_{self._resolver.service_identifier(service.name, exported=False)}Client",
                    ),
                )
            )

        identifier = self._resolver.package_identifier(group.package)
        logger.info("Aggregating %d service(s) of package '%s' into '%s'.", len(fields), group.package, identifier)

        return AggregateBinding(
            package=group.package,
            identifier=identifier,
            output_name=self.output_name(group.package),
            constructor_name=f"New{identifier}",
            fields=tuple(fields),
        )

"""The generation pipeline: collect, emit services, then emit package aggregates."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TypeVar

from google.protobuf import descriptor_pb2

from carno_stub_generator.aggregator import PackageAggregator
from carno_stub_generator.carno_types import CarnoGeneratorError
from carno_stub_generator.collector import DescriptorCollector, TypeTable
from carno_stub_generator.config import GeneratorConfig
from carno_stub_generator.descriptors import FileDescriptor, PackageGroup
from carno_stub_generator.helper import NameResolver
from carno_stub_generator.registry import RegistryBuilder
from carno_stub_generator.stubs import StubEmitter
from carno_stub_generator.writer import Writer

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class GeneratedFile:
    """One generated module.

    Attributes:
        name: The output path, relative to the output root
        content: The module source
        source: The proto file or package the module was generated from
    """

    name: str
    content: str
    source: str


@dataclass
class GenerationResult:
    """The outcome of a generation run.

    Attributes:
        files: The generated service modules in input order, followed by the
            package modules in first-seen package order
        errors: The errors of failed files, keyed by file name (or `package <name>`
            for a failed aggregate)
    """

    files: list[GeneratedFile] = field(default_factory=list)
    errors: dict[str, CarnoGeneratorError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


class Generator:
    """Turns a set of input files into carno bindings.

    Generation runs in two phases. First the module of every file with services is
    emitted, then, once all of them are done, the aggregate module of every package.
    The boundary is a join over all phase one work, so an aggregate never refers to a
    client that has not been emitted, and never misses a service of its package.
    Files of the request that are not generated still contribute their services to
    the aggregate of their package, if that package is generated.

    Errors are local to the file they occur in: a failing file produces no output
    and is reported in the result. A package that lost one of its files gets no
    aggregate, since the aggregate would refer to the missing clients.
    """

    def __init__(self, config: GeneratorConfig):
        self.config = config
        self.resolver = NameResolver(config.reserved_names)
        self.registry = RegistryBuilder(self.resolver)

    def _map(self, function: Callable[[T], R], items: Sequence[T]) -> list[R]:
        if self.config.workers == 1 or len(items) < 2:
            return [function(item) for item in items]

        # Returns once every submitted task has completed.
        with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            return list(executor.map(function, items))

    def generate(
        self,
        files: Iterable[FileDescriptor],
        types: TypeTable,
        known_files: Iterable[FileDescriptor] = (),
    ) -> GenerationResult:
        """Generate the bindings of all files.

        Args:
            files (Iterable[FileDescriptor]): The files to generate, in processing order.
            types (TypeTable): Resolves the message types the methods refer to.
            known_files (Iterable[FileDescriptor]): Files that are not generated, but whose
                services join the aggregate of a generated package. Their modules are
                expected to exist from an earlier run.

        Returns:
            GenerationResult: The generated modules and the errors of failed files.
        """
        result = GenerationResult()
        failed_packages: set[str] = set()

        collector = DescriptorCollector()
        accepted: list[FileDescriptor] = []
        for file in files:
            try:
                if collector.add_file(file):
                    accepted.append(file)
            except CarnoGeneratorError as e:
                self._fail(result, file.name, e)
                if file.package:
                    failed_packages.add(file.package)

        generated_packages = {file.package for file in accepted}
        for file in known_files:
            if file.package not in generated_packages:
                continue
            try:
                if collector.add_file(file):
                    logger.debug("Aggregating the services of '%s' without generating it.", file.name)
            except CarnoGeneratorError as e:
                self._fail(result, file.name, e)
                failed_packages.add(file.package)

        # Phase 1: service modules.
        emitter = StubEmitter(self.resolver, types, self.registry)
        outcomes = self._map(lambda file: self._emit_file(emitter, file), accepted)

        for file, outcome in zip(accepted, outcomes):
            if isinstance(outcome, CarnoGeneratorError):
                self._fail(result, file.name, outcome)
                failed_packages.add(file.package)
            else:
                result.files.append(outcome)

        # Phase 2: package aggregates, strictly after every service module above.
        aggregator = PackageAggregator(self.resolver)
        groups = []
        for package, group in collector.groups().items():
            if package in failed_packages:
                logger.error("Not aggregating package '%s', some of its files failed.", package)
            else:
                groups.append(group)

        for group, outcome in zip(groups, self._map(lambda group: self._emit_aggregate(aggregator, group), groups)):
            if isinstance(outcome, CarnoGeneratorError):
                self._fail(result, f"package {group.package}", outcome)
            elif outcome is not None:
                result.files.append(outcome)

        logger.info("Generated %d module(s), %d error(s).", len(result.files), len(result.errors))
        return result

    def generate_protos(
        self,
        protos: Sequence[descriptor_pb2.FileDescriptorProto],
        file_to_generate: Sequence[str] | None = None,
    ) -> GenerationResult:
        """Generate bindings from protobuf file descriptors.

        Args:
            protos (Sequence[descriptor_pb2.FileDescriptorProto]): All files, including
                dependencies whose messages may be referenced. The services of files
                that are not generated still join the aggregates of generated packages.
            file_to_generate (Sequence[str] | None): Names of the files to generate, in
                processing order. Defaults to all files.

        Returns:
            GenerationResult: The generated modules and the errors of failed files.
        """
        by_name = {proto.name: proto for proto in protos}
        if file_to_generate is None:
            file_to_generate = [proto.name for proto in protos]

        files = []
        for name in file_to_generate:
            if name not in by_name:
                logger.warning("'%s' was requested but no descriptor was supplied for it.", name)
                continue
            files.append(FileDescriptor.from_proto(by_name[name]))

        generated = {file.name for file in files}
        known_files = [FileDescriptor.from_proto(proto) for proto in protos if proto.name not in generated]

        return self.generate(files, TypeTable.from_protos(protos), known_files)

    @staticmethod
    def _fail(result: GenerationResult, name: str, error: CarnoGeneratorError):
        logger.error("Generation failed for %s: %s", name, error)
        result.errors[name] = error

    @staticmethod
    def _emit_file(emitter: StubEmitter, file: FileDescriptor) -> GeneratedFile | CarnoGeneratorError:
        try:
            binding = emitter.emit_file(file)
        except CarnoGeneratorError as e:
            return e

        return GeneratedFile(
            name=binding.output_name,
            content=Writer.for_file(binding).dumps_py(),
            source=file.name,
        )

    @staticmethod
    def _emit_aggregate(
        aggregator: PackageAggregator, group: PackageGroup
    ) -> GeneratedFile | CarnoGeneratorError | None:
        try:
            binding = aggregator.build(group)
        except CarnoGeneratorError as e:
            return e

        if binding is None:
            return None

        return GeneratedFile(
            name=binding.output_name,
            content=Writer.for_aggregate(binding).dumps_py(),
            source=group.package,
        )


def new_generator(config: GeneratorConfig | None = None) -> Generator:
    """Create a generator instance.

    Args:
        config (GeneratorConfig | None): The run configuration. Defaults to the default configuration.

    Returns:
        Generator: The generator.
    """
    return Generator(config if config is not None else GeneratorConfig())

"""Generate carno client stubs, server contracts and dispatch registries from proto services."""

from __future__ import annotations

from carno_stub_generator.carno_types import (
    GENERATED_CODE_VERSION,
    CarnoGeneratorError,
    ConfigurationError,
    NameCollisionError,
)
from carno_stub_generator.config import GeneratorConfig
from carno_stub_generator.generator import GeneratedFile, GenerationResult, Generator, new_generator

__all__ = [
    "GENERATED_CODE_VERSION",
    "CarnoGeneratorError",
    "ConfigurationError",
    "GeneratedFile",
    "GenerationResult",
    "Generator",
    "GeneratorConfig",
    "NameCollisionError",
    "new_generator",
]

"""Configuration of a generation run."""

from __future__ import annotations

from dataclasses import dataclass, field

from carno_stub_generator.carno_types import ConfigurationError

PARAMETER_SEPARATOR = ","
RESERVED_NAME_SEPARATOR = "+"


@dataclass(frozen=True)
class GeneratorConfig:
    """Settings that are loaded once per run and never change during generation.

    Attributes:
        reserved_names: Exported identifiers that are suffixed with an underscore, so
            they cannot collide with generated infrastructure names. Empty by default.
        workers: Number of threads that emit service modules. 1 disables threading.
    """

    reserved_names: frozenset[str] = field(default_factory=frozenset)
    workers: int = 1

    def __post_init__(self):
        """Sanity check for provided settings."""
        if self.workers < 1:
            raise ConfigurationError(f"workers must be at least 1, got {self.workers}.")

    @classmethod
    def from_parameter(cls, parameter: str) -> GeneratorConfig:
        """Parse the parameter string protoc passes to a plugin.

        The format is `key=value` pairs separated by commas, e.g.
        `reserved=Close+String,workers=2`.

        Args:
            parameter (str): The raw parameter string, possibly empty.

        Returns:
            GeneratorConfig: The parsed configuration.

        Raises:
            ConfigurationError: If a key is unknown or a value is malformed.
        """
        reserved_names: set[str] = set()
        workers = 1

        for part in parameter.split(PARAMETER_SEPARATOR):
            part = part.strip()
            if not part:
                continue

            key, _, value = part.partition("=")
            key = key.strip()
            value = value.strip()

            if key == "reserved":
                reserved_names.update(name for name in value.split(RESERVED_NAME_SEPARATOR) if name)
            elif key == "workers":
                try:
                    workers = int(value)
                except ValueError:
                    raise ConfigurationError(f"workers must be an integer, got '{value}'.") from None
            else:
                raise ConfigurationError(f"Unknown generator parameter '{key}'.")

        return cls(reserved_names=frozenset(reserved_names), workers=workers)

"""Constants and error types that are common to the carno stub generator."""

from __future__ import annotations

# generatedCodeVersion of the carno runtime contract.
# Incremented whenever the shape of the emitted code changes in a way that is
# incompatible with previously generated code. Generated modules reference
# carno.SUPPORT_PACKAGE_IS_VERSION_<N>, so a mismatched runtime fails on import.
GENERATED_CODE_VERSION = 4

RUNTIME_PACKAGE = "carno"
SUPPORT_PACKAGE_MARKER = f"SUPPORT_PACKAGE_IS_VERSION_{GENERATED_CODE_VERSION}"

PROTO_SUFFIX = ".proto"
PB2_SUFFIX = "_pb2"
MODULE_SUFFIX = "_carno"
PACKAGE_MODULE_NAME = "carno_package"

# Suffix appended to identifiers that would collide with reserved names.
RESERVED_SUFFIX = "_"


class CarnoType:
    """Names of the runtime types referenced by generated code."""

    CONTEXT = "carno.Context"
    OPTION = "carno.Option"
    CLIENT = "client.Client"
    CLIENT_OPTION = "client.Option"
    CALL_OPTION = "client.CallOption"
    SERVICE_DESC = "mux.ServiceDesc"


class CarnoCall:
    """Names of the runtime callables invoked by generated code."""

    NEW_CLIENT = "carno.new_client"
    HANDLE_SERVICE = "carno.handle_service"
    INIT = "carno.init"


class CarnoGeneratorError(Exception):
    """Base class of all errors raised while generating carno bindings."""


class ConfigurationError(CarnoGeneratorError):
    """Raised for structurally invalid input, e.g. a file without a package name."""


class NameCollisionError(ConfigurationError):
    """Raised when two schema names resolve to the same generated identifier."""

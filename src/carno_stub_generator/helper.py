"""Helper functionality that is used in other modules of this package."""

from __future__ import annotations

import keyword
from collections.abc import Iterable, Sequence

from carno_stub_generator.carno_types import (
    MODULE_SUFFIX,
    PB2_SUFFIX,
    PROTO_SUFFIX,
    RESERVED_SUFFIX,
    NameCollisionError,
)


def sanitize_name(name: str) -> str:
    """Sanitize a name to avoid Python keywords.

    If the name is a Python keyword, append an underscore.
    E.g. 'None' becomes 'None_', 'class' becomes 'class_'.

    Args:
        name (str): The original name.

    Returns:
        str: The sanitized name.
    """
    if keyword.iskeyword(name):
        return f"{name}{RESERVED_SUFFIX}"
    return name


def camel_case(name: str) -> str:
    """Convert a schema name to an exported, word-boundary-aware CamelCase identifier.

    An underscore that is followed by a lowercase letter is dropped and the letter is
    capitalized. A lowercase letter that starts a word, e.g. after a digit, is capitalized.
    A leading underscore becomes 'X', since the result must start with a capital letter.

    Examples:
        >>> camel_case("say_hello")
        'SayHello'
        >>> camel_case("v1_api")
        'V1Api'
        >>> camel_case("_private")
        'XPrivate'
        >>> camel_case("HTTPServer")
        'HTTPServer'

    Args:
        name (str): The raw schema name.

    Returns:
        str: The CamelCase identifier.
    """
    if not name:
        return ""

    out: list[str] = []
    i = 0
    if name[0] == "_":
        out.append("X")
        i = 1

    while i < len(name):
        c = name[i]
        if c == "_" and i + 1 < len(name) and _is_ascii_lower(name[i + 1]):
            i += 1
            continue

        if c.isdigit():
            out.append(c)
            i += 1
            continue

        if _is_ascii_lower(c):
            c = c.upper()
        out.append(c)

        # Accept the lowercase run that follows.
        while i + 1 < len(name) and _is_ascii_lower(name[i + 1]):
            i += 1
            out.append(name[i])
        i += 1

    return "".join(out)


def unexport(name: str) -> str:
    """Lowercase the first character of a name."""
    return name[:1].lower() + name[1:]


def _is_ascii_lower(c: str) -> bool:
    return "a" <= c <= "z"


class NameResolver:
    """Computes canonical identifiers for packages, services and methods.

    The resolver is configured once with the set of reserved names. An exported
    identifier found in that set, or one that is a Python keyword, receives a
    trailing underscore. The resolver holds no other state, so resolving the same
    raw name twice always yields the same identifier.
    """

    def __init__(self, reserved_names: Iterable[str] = ()):
        """Initialize the resolver.

        Args:
            reserved_names (Iterable[str]): Exported identifiers that must be suffixed.
        """
        self._reserved_names = frozenset(reserved_names)

    @property
    def reserved_names(self) -> frozenset[str]:
        return self._reserved_names

    def resolve(self, raw_name: str, exported: bool = True) -> str:
        """Resolve a raw schema name to a code-safe identifier.

        Args:
            raw_name (str): The name as declared in the schema.
            exported (bool): Whether to return the exported (CamelCase) form. The
                unexported form lowercases only the first character of the exported form.

        Returns:
            str: The identifier.
        """
        identifier = camel_case(raw_name)
        if identifier in self._reserved_names:
            identifier += RESERVED_SUFFIX
        else:
            identifier = sanitize_name(identifier)

        if exported:
            return identifier
        return unexport(identifier)

    def package_identifier(self, package: str) -> str:
        """The exported identifier of a package, e.g. 'demo.v1' becomes 'DemoV1'."""
        return self.resolve(package.replace(".", "_"))

    def service_identifier(self, service_name: str, exported: bool = True) -> str:
        return self.resolve(service_name, exported)

    def method_identifier(self, method_name: str) -> str:
        return self.resolve(method_name)

    def check_unique(self, kind: str, raw_names: Sequence[str], exported: bool = True) -> None:
        """Make sure that no two raw names resolve to the same identifier.

        Args:
            kind (str): What the names are, used in the error message.
            raw_names (Sequence[str]): The raw names to resolve.
            exported (bool): Which identifier form to check.

        Raises:
            NameCollisionError: If two different raw names share an identifier.
        """
        seen: dict[str, str] = {}
        for raw_name in raw_names:
            identifier = self.resolve(raw_name, exported)
            if identifier in seen and seen[identifier] != raw_name:
                raise NameCollisionError(
                    f"{kind} names '{seen[identifier]}' and '{raw_name}' both resolve to '{identifier}'."
                )
            seen[identifier] = raw_name


def replace_proto_suffix(original: str, suffix: str) -> str:
    """Replaces the .proto suffix of a file name with a module suffix.

    Hyphens are converted to underscores, like protoc's Python generator does,
    to create valid Python identifiers.

    For example, `demo/some-service.proto` becomes `demo/some_service_pb2` for the suffix `_pb2`.

    Args:
        original (str): The proto file name.
        suffix (str): The module suffix to append.

    Returns:
        str: The file name without extension, with the suffix appended.
    """
    result = original
    if result.endswith(PROTO_SUFFIX):
        result = result[: -len(PROTO_SUFFIX)]

    return result.replace("-", "_") + suffix


def module_name(proto_file_name: str, suffix: str = PB2_SUFFIX) -> str:
    """The dotted Python module name generated for a proto file.

    E.g. `demo/echo.proto` becomes `demo.echo_pb2`.
    """
    return replace_proto_suffix(proto_file_name, suffix).replace("/", ".")


def module_alias(proto_file_name: str, suffix: str = PB2_SUFFIX) -> str:
    """The import alias for a generated module, following grpc's naming scheme.

    E.g. `demo/echo.proto` becomes `demo_dot_echo__pb2`.
    """
    stem = replace_proto_suffix(proto_file_name, suffix)
    return stem.replace("_", "__").replace(".", "_dot_").replace("/", "_dot_")


def output_file_name(proto_file_name: str) -> str:
    """The path of the generated carno module for a proto file.

    E.g. `demo/echo.proto` becomes `demo/echo_carno.py`.
    """
    return replace_proto_suffix(proto_file_name, MODULE_SUFFIX) + ".py"


def join_parameters(parameters: Sequence[str] | None) -> str:
    """Joins parameters by means of ', '.

    Args:
        parameters (Sequence[str] | None): The parameters to join.

    Returns:
        str: The joined parameters.
    """
    if parameters:
        return ", ".join(str(p) for p in parameters if p)

    else:
        return ""


def new_function(
    name: str,
    parameters: Sequence[str] | None = None,
    return_type: str | None = None,
    stub: bool = True,
) -> str:
    """Create a string for a function.

    Args:
        name (str): The function name.
        parameters (Sequence[str] | None, optional): The function parameters, if any. Defaults to None.
        return_type (str | None, optional): The function's return type. Defaults to None.
        stub (bool, optional): Whether to close the declaration with `...`. Defaults to True.

    Returns:
        str: The function string.
    """
    if return_type is None:
        return_type = "None"

    arguments = join_parameters(parameters)
    declaration = f"def {name}({arguments}) -> {return_type}:"
    if stub:
        return f"{declaration} ..."
    return declaration


def new_decorator(name: str, parameters: Sequence[str] | None = None) -> str:
    """Create a new decorator.

    Args:
        name (str): The name of the decorator.
        parameters (Sequence[str] | None, optional): The parameters (args, kwargs) of the decorator,
            if any. Defaults to None.

    Returns:
        str: The decorator string.
    """
    if parameters:
        return f"@{name}({join_parameters(parameters)})"

    else:
        return f"@{name}"


def new_class_declaration(name: str, parameters: Sequence[str] | None = None) -> str:
    """Creates a string for declaring a class.

    For example, for a name of 'EchoClient' and a list of parameters that is 'Protocol', the output
    will be 'class EchoClient(Protocol):'.

    If no parameters are provided, the output is just 'class EchoClient:'.

    Args:
        name (str): The class name.
        parameters (Sequence[str] | None, optional):
            A list of parameters that are part of the class declaration. Defaults to None.

    Returns:
        str: The class declaration.
    """
    if parameters:
        return f"class {name}({join_parameters(parameters)}):"
    else:
        return f"class {name}:"


def new_docstring(text: str, indent: str = "") -> list[str]:
    """Create the lines of a docstring.

    Args:
        text (str): The docstring text, possibly spanning multiple lines.
        indent (str): The indentation to prefix each line with.

    Returns:
        list[str]: The docstring lines, empty if there is no text.
    """
    text = text.strip().replace("\\", "\\\\")
    if not text:
        return []
    if text.endswith('"'):
        # Keeps the closing quotes apart from the text.
        text = text[:-1] + r"\""
    text = text.replace('"""', r"\"\"\"")

    lines = text.splitlines()
    if len(lines) == 1:
        return [f'{indent}"""{lines[0]}"""']

    out = [f'{indent}"""{lines[0]}']
    out.extend(f"{indent}{line}" if line else "" for line in lines[1:])
    out.append(f'{indent}"""')
    return out

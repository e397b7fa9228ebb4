"""protoc plugin entry point, installed as `protoc-gen-carno`.

Usage:
    protoc --plugin=protoc-gen-carno --carno_out=reserved=Close,workers=2:out/ demo/echo.proto
"""

from __future__ import annotations

import logging
import sys

from google.protobuf.compiler import plugin_pb2

from carno_stub_generator.carno_types import CarnoGeneratorError
from carno_stub_generator.config import GeneratorConfig
from carno_stub_generator.generator import new_generator

logger = logging.getLogger(__name__)


def generate_response(request: plugin_pb2.CodeGeneratorRequest) -> plugin_pb2.CodeGeneratorResponse:
    """Answer a code generation request.

    Failures are reported through the `error` field of the response, in which case
    protoc discards every file of the response.

    Args:
        request (plugin_pb2.CodeGeneratorRequest): The request protoc sent.

    Returns:
        plugin_pb2.CodeGeneratorResponse: The generated files, or the errors.
    """
    response = plugin_pb2.CodeGeneratorResponse()
    response.supported_features = plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL

    try:
        config = GeneratorConfig.from_parameter(request.parameter)
    except CarnoGeneratorError as e:
        response.error = str(e)
        return response

    result = new_generator(config).generate_protos(list(request.proto_file), list(request.file_to_generate))

    if not result.ok:
        response.error = "\n".join(f"{name}: {error}" for name, error in result.errors.items())
        return response

    for generated in result.files:
        out = response.file.add()
        out.name = generated.name
        out.content = generated.content

    return response


def main() -> int:
    """Read a request from stdin and write the response to stdout.

    Returns:
        int: Error code.
    """
    # stdout carries the response, so logs go to stderr.
    logging.basicConfig(level=logging.WARNING, stream=sys.stderr)

    request = plugin_pb2.CodeGeneratorRequest()
    request.ParseFromString(sys.stdin.buffer.read())

    response = generate_response(request)
    sys.stdout.buffer.write(response.SerializeToString())

    return 0


if __name__ == "__main__":
    sys.exit(main())

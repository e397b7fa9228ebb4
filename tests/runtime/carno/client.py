"""Connection test double."""

from __future__ import annotations

from typing import Any

FAIL_START = "fail-start"


class TransportError(Exception):
    """Raised by the connection when the peer cannot be reached."""


class Option:
    """Connection option."""


class CallOption:
    """Per call option."""


class Client:
    """A connection that records calls and answers them from a script."""

    def __init__(self, package: str, opts: tuple[object, ...]):
        self.package = package
        self.opts = opts
        self.started = False
        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[tuple[str, str], Exception] = {}

    def start(self) -> None:
        if FAIL_START in self.opts:
            raise TransportError(f"cannot start connection to {self.package}")
        self.started = True

    def call(self, ctx: Any, service: str, method: str, request: Any, response_type: type, *opts: Any) -> Any:
        self.calls.append((ctx, service, method, request, response_type, opts))
        if (service, method) in self.failures:
            raise self.failures[(service, method)]
        return response_type()

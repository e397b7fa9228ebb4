"""In-memory test double of the carno runtime.

Implements just the surface that generated bindings call, and records every
interaction so tests can assert on it.
"""

from __future__ import annotations

from carno import client, mux
from carno.client import Client

SUPPORT_PACKAGE_IS_VERSION_4 = True

FAIL_NEW_CLIENT = "fail-new-client"


class Context:
    """Call context passed through to the connection."""


class Option:
    """Runtime level option."""


connections: list[Client] = []
handled: list[tuple[mux.ServiceDesc, object]] = []
initialized: list[tuple[str, tuple[object, ...]]] = []


def new_client(package: str, *opts: object) -> Client:
    if FAIL_NEW_CLIENT in opts:
        raise client.TransportError(f"cannot reach {package}")

    connection = Client(package, opts)
    connections.append(connection)
    return connection


def handle_service(desc: mux.ServiceDesc, handler: object) -> None:
    handled.append((desc, handler))


def init(name: str, *opts: object) -> None:
    initialized.append((name, opts))


def reset() -> None:
    connections.clear()
    handled.clear()
    initialized.clear()

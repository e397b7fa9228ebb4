"""Service descriptor test double."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ServiceDesc:
    service_name: str
    methods: tuple[str, ...]

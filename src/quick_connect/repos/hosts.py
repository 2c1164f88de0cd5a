"""Host list collaborator and canonical host selection."""

from __future__ import annotations

from typing import Iterable, NamedTuple, Protocol


class Host(NamedTuple):
    """One entry of the host list. Aliases share an ``ip``."""

    name: str
    ip: str


class HostRegistry(Protocol):
    """Supplies the ordered host list."""

    def list(self) -> list[Host]: ...


class StaticHostRegistry:
    """Registry over a fixed, in-memory host list."""

    def __init__(self, hosts: Iterable[Host] = ()) -> None:
        self._hosts = list(hosts)

    def list(self) -> list[Host]:
        return list(self._hosts)

    def replace(self, hosts: Iterable[Host]) -> None:
        self._hosts = list(hosts)


def parse_host_spec(spec: str) -> Host:
    """Parse ``NAME`` or ``NAME=IP``. A bare name is its own address."""
    name, sep, ip = spec.partition("=")
    name = name.strip()
    ip = ip.strip() if sep else name
    return Host(name, ip or name)


def canonical_hosts(hosts: Iterable[Host]) -> list[str]:
    """First-listed name for each distinct ip, in registry order."""
    seen: set[str] = set()
    result: list[str] = []
    for host in hosts:
        if host.ip in seen:
            continue
        seen.add(host.ip)
        result.append(host.name)
    return result

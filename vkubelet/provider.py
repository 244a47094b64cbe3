"""Registry of provider backends and the configuration they start from."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

from .errdefs import invalid_input

__all__ = [
    "OPERATING_SYSTEM_LINUX",
    "OPERATING_SYSTEM_WINDOWS",
    "VALID_OPERATING_SYSTEMS",
    "Provider",
    "InitConfig",
    "InitFunc",
    "Store",
    "operating_system_names",
]

OPERATING_SYSTEM_LINUX = "linux"
OPERATING_SYSTEM_WINDOWS = "windows"

VALID_OPERATING_SYSTEMS = frozenset({OPERATING_SYSTEM_LINUX, OPERATING_SYSTEM_WINDOWS})


def operating_system_names() -> list[str]:
    """Return the operating systems a node may run, sorted."""
    return sorted(VALID_OPERATING_SYSTEMS)


class Provider(ABC):
    """A backend that runs pods and can configure the node it serves."""

    @abstractmethod
    def configure_node(self, node: Any) -> None:
        """Adjust the node object that will be registered with the cluster."""


@dataclass
class InitConfig:
    """Configuration handed to a provider's init function."""

    config_path: str = ""
    node_name: str = ""
    operating_system: str = ""
    internal_ip: str = ""
    daemon_port: int = 0
    kube_cluster_domain: str = ""
    resource_manager: Any = None


InitFunc = Callable[[InitConfig], Provider]


class Store:
    """Thread-safe registry of provider init functions by name."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._funcs: dict[str, InitFunc] = {}

    def register(self, name: str, init_func: InitFunc | None) -> None:
        """Register ``init_func`` under ``name``, replacing any earlier one."""
        if init_func is None:
            raise invalid_input("provided init function cannot be None")
        with self._lock:
            self._funcs[name] = init_func

    def get(self, name: str) -> InitFunc | None:
        """Return the init function for ``name``, or None if unregistered."""
        with self._lock:
            return self._funcs.get(name)

    def list(self) -> list[str]:
        """Return the names of all registered providers."""
        with self._lock:
            return list(self._funcs)

    def exists(self, name: str) -> bool:
        """Tell whether a provider is registered under ``name``."""
        with self._lock:
            return name in self._funcs
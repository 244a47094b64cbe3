"""Options for the root command and the settings derived from them."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum

from .errdefs import invalid_input

__all__ = [
    "DEFAULT_NODE_NAME",
    "DEFAULT_OPERATING_SYSTEM",
    "DEFAULT_INFORMER_RESYNC_PERIOD",
    "DEFAULT_METRICS_ADDR",
    "DEFAULT_LISTEN_PORT",
    "DEFAULT_POD_SYNC_WORKERS",
    "DEFAULT_KUBE_NAMESPACE",
    "DEFAULT_KUBE_CLUSTER_DOMAIN",
    "DEFAULT_TAINT_EFFECT",
    "DEFAULT_TAINT_KEY",
    "DEFAULT_STREAM_IDLE_TIMEOUT",
    "DEFAULT_STREAM_CREATION_TIMEOUT",
    "MAX_INT32",
    "MapVar",
    "TracingExporterOptions",
    "Opts",
    "TaintEffect",
    "Taint",
    "ApiServerConfig",
    "get_env",
    "set_default_opts",
    "get_taint",
    "get_api_config",
]

DEFAULT_NODE_NAME = "virtual-kubelet"
DEFAULT_OPERATING_SYSTEM = "linux"
DEFAULT_INFORMER_RESYNC_PERIOD = timedelta(minutes=1)
DEFAULT_METRICS_ADDR = ":10255"
DEFAULT_LISTEN_PORT = 10250
DEFAULT_POD_SYNC_WORKERS = 10
# The empty namespace means "all namespaces".
DEFAULT_KUBE_NAMESPACE = ""
DEFAULT_KUBE_CLUSTER_DOMAIN = "cluster.local"
DEFAULT_TAINT_EFFECT = "NoSchedule"
DEFAULT_TAINT_KEY = "virtual-kubelet.io/provider"
DEFAULT_STREAM_IDLE_TIMEOUT = timedelta(seconds=30)
DEFAULT_STREAM_CREATION_TIMEOUT = timedelta(seconds=30)

MAX_INT32 = (1 << 31) - 1

_INTEGER = re.compile(r"[+-]?[0-9]+")


class MapVar(dict):
    """A string map filled one ``key=value`` pair at a time."""

    type = "map"

    def set(self, text: str) -> None:
        """Add a ``key=value`` pair; keys may not repeat."""
        key, sep, value = text.partition("=")
        if not sep:
            raise ValueError(f"invalid format, must be `key=value`: {text}")
        if key in self:
            raise ValueError(f"duplicate key: {key}")
        self[key] = value

    def __str__(self) -> str:
        return ", ".join(f"{key}={value}" for key, value in self.items())


@dataclass
class TracingExporterOptions:
    """Options passed to a tracing exporter's init function."""

    tags: dict[str, str] = field(default_factory=MapVar)
    service_name: str = ""


@dataclass
class Opts:
    """All the options that configure the root command."""

    kube_config_path: str = ""
    kube_namespace: str = ""
    kube_cluster_domain: str = ""
    listen_port: int = 0
    node_name: str = ""
    operating_system: str = ""
    provider: str = ""
    provider_config_path: str = ""
    taint_key: str = ""
    taint_effect: str = ""
    disable_taint: bool = False
    metrics_addr: str = ""
    pod_sync_workers: int = 0
    informer_resync_period: timedelta = timedelta(0)
    enable_node_lease: bool = False
    trace_exporters: list[str] = field(default_factory=list)
    trace_sample_rate: str = ""
    trace_config: TracingExporterOptions = field(default_factory=TracingExporterOptions)
    startup_timeout: timedelta = timedelta(0)
    stream_idle_timeout: timedelta = timedelta(0)
    stream_creation_timeout: timedelta = timedelta(0)
    version: str = ""


class TaintEffect(str, Enum):
    """Effects a node taint may have."""

    NO_SCHEDULE = "NoSchedule"
    NO_EXECUTE = "NoExecute"
    PREFER_NO_SCHEDULE = "PreferNoSchedule"


@dataclass(frozen=True)
class Taint:
    """A taint to place on the node."""

    key: str
    value: str
    effect: TaintEffect


@dataclass
class ApiServerConfig:
    """Settings for the node's HTTP API server."""

    cert_path: str = ""
    key_path: str = ""
    ca_cert_path: str = ""
    addr: str = ""
    metrics_addr: str = ""
    stream_idle_timeout: timedelta = timedelta(0)
    stream_creation_timeout: timedelta = timedelta(0)


def get_env(key: str, default: str) -> str:
    """Return the environment variable ``key``, or ``default`` if it is unset."""
    return os.environ.get(key, default)


def _home_dir() -> str:
    home = os.path.expanduser("~")
    return "" if home == "~" else home


def _listen_port_from_env() -> int:
    text = os.environ.get("KUBELET_PORT", "")
    if not text:
        return DEFAULT_LISTEN_PORT
    if not _INTEGER.fullmatch(text):
        raise ValueError(
            f"error parsing KUBELET_PORT environment variable: invalid syntax: {text!r}"
        )
    port = int(text)
    if port > MAX_INT32:
        raise ValueError("KUBELET_PORT environment variable is too large")
    return port


def set_default_opts(opts: Opts) -> None:
    """Fill in defaults for every unset field of ``opts``, in place."""
    if not opts.operating_system:
        opts.operating_system = DEFAULT_OPERATING_SYSTEM
    if not opts.node_name:
        opts.node_name = get_env("DEFAULT_NODE_NAME", DEFAULT_NODE_NAME)
    if not opts.informer_resync_period:
        opts.informer_resync_period = DEFAULT_INFORMER_RESYNC_PERIOD
    if not opts.metrics_addr:
        opts.metrics_addr = DEFAULT_METRICS_ADDR
    if not opts.pod_sync_workers:
        opts.pod_sync_workers = DEFAULT_POD_SYNC_WORKERS
    if not opts.trace_config.service_name:
        opts.trace_config.service_name = DEFAULT_NODE_NAME
    if not opts.listen_port:
        opts.listen_port = _listen_port_from_env()
    if not opts.kube_namespace:
        opts.kube_namespace = DEFAULT_KUBE_NAMESPACE
    if not opts.kube_cluster_domain:
        opts.kube_cluster_domain = DEFAULT_KUBE_CLUSTER_DOMAIN
    if not opts.taint_key:
        opts.taint_key = DEFAULT_TAINT_KEY
    if not opts.taint_effect:
        opts.taint_effect = DEFAULT_TAINT_EFFECT
    if not opts.kube_config_path:
        opts.kube_config_path = os.environ.get("KUBECONFIG", "")
        if not opts.kube_config_path:
            home = _home_dir()
            if home:
                opts.kube_config_path = os.path.join(home, ".kube", "config")
    if not opts.stream_idle_timeout:
        opts.stream_idle_timeout = DEFAULT_STREAM_IDLE_TIMEOUT
    if not opts.stream_creation_timeout:
        opts.stream_creation_timeout = DEFAULT_STREAM_CREATION_TIMEOUT


def get_taint(opts: Opts) -> Taint:
    """Build the node taint from ``opts``, letting the environment override it."""
    key = opts.taint_key or DEFAULT_TAINT_KEY
    effect_default = opts.taint_effect or DEFAULT_TAINT_EFFECT

    key = get_env("VKUBELET_TAINT_KEY", key)
    value = get_env("VKUBELET_TAINT_VALUE", opts.provider)
    effect_text = get_env("VKUBELET_TAINT_EFFECT", effect_default)

    try:
        effect = TaintEffect(effect_text)
    except ValueError:
        raise invalid_input(
            f"taint effect {json.dumps(effect_text)} is not supported"
        ) from None
    return Taint(key=key, value=value, effect=effect)


def get_api_config(opts: Opts) -> ApiServerConfig:
    """Build the API server settings from ``opts`` and the environment."""
    return ApiServerConfig(
        cert_path=os.environ.get("APISERVER_CERT_LOCATION", ""),
        key_path=os.environ.get("APISERVER_KEY_LOCATION", ""),
        ca_cert_path=os.environ.get("APISERVER_CA_CERT_LOCATION", ""),
        addr=f":{opts.listen_port}",
        metrics_addr=opts.metrics_addr,
        stream_idle_timeout=opts.stream_idle_timeout,
        stream_creation_timeout=opts.stream_creation_timeout,
    )
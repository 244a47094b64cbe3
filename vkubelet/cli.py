"""Command line entry point for the virtual kubelet.

A virtual kubelet is a node agent that plays the same basic role as the
kubelet while leaving the behaviour of running pods to a pluggable provider
backend.  The root command validates its options, initialises the selected
provider, prepares the node object and tracing, and then runs until it is
interrupted.  The ``version`` and ``providers`` subcommands report build
information and the registered providers.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import platform
import re
import signal
import sys
import threading
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Any, Callable, Sequence

from .errdefs import invalid_input
from .options import MapVar, Opts, Taint, get_api_config, get_taint, set_default_opts
from .provider import VALID_OPERATING_SYSTEMS, Provider, Store, InitConfig
from .tracing import Sampler, available_trace_exporters, setup_tracing

__all__ = ["BUILD_VERSION", "BUILD_TIME", "K8S_VERSION", "build_parser", "run_root", "main"]

BUILD_VERSION = "N/A"
BUILD_TIME = "N/A"
K8S_VERSION = "v1.15.2"

log = logging.getLogger("vkubelet")

_LOG_LEVELS = {
    "panic": logging.CRITICAL,
    "fatal": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}

_GO_ARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "armv6l": "arm",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
}

_DURATION_UNITS = {
    "ns": 1e-3,
    "us": 1.0,
    "µs": 1.0,
    "μs": 1.0,
    "ms": 1e3,
    "s": 1e6,
    "m": 60e6,
    "h": 3600e6,
}
_DURATION_PART = r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)"
_DURATION = re.compile(rf"([-+]?)((?:{_DURATION_PART})+)")

# Fields of Opts that map one to one onto a flag's destination.
_OPTS_FIELDS = (
    "kube_config_path",
    "kube_namespace",
    "kube_cluster_domain",
    "node_name",
    "operating_system",
    "provider",
    "provider_config_path",
    "metrics_addr",
    "taint_key",
    "disable_taint",
    "pod_sync_workers",
    "enable_node_lease",
    "trace_exporters",
    "trace_sample_rate",
    "informer_resync_period",
    "startup_timeout",
    "stream_idle_timeout",
    "stream_creation_timeout",
)


def _parse_duration(text: str) -> timedelta:
    if text in ("0", "+0", "-0"):
        return timedelta(0)
    match = _DURATION.fullmatch(text)
    if match is None:
        raise argparse.ArgumentTypeError(f"invalid duration {json.dumps(text)}")
    sign, body = match.groups()
    micros = sum(
        float(number) * _DURATION_UNITS[unit]
        for number, unit in re.findall(_DURATION_PART, body)
    )
    delta = timedelta(microseconds=micros)
    return -delta if sign == "-" else delta


class _MapAction(argparse.Action):
    """Adds one ``key=value`` pair to a map-valued option."""

    def __call__(self, parser, namespace, values, option_string=None):
        current = MapVar(getattr(namespace, self.dest) or {})
        try:
            current.set(values)
        except ValueError as err:
            raise argparse.ArgumentError(self, str(err)) from None
        setattr(namespace, self.dest, current)


class _SliceAction(argparse.Action):
    """A comma separated list; the first use replaces the default."""

    def __call__(self, parser, namespace, values, option_string=None):
        marker = f"_{self.dest}_given"
        items = [item for item in values.split(",")]
        if getattr(namespace, marker, False):
            setattr(namespace, self.dest, list(getattr(namespace, self.dest)) + items)
        else:
            setattr(namespace, self.dest, items)
            setattr(namespace, marker, True)


class _DeprecatedAction(argparse.Action):
    """Stores a value and warns that the flag is deprecated."""

    def __init__(self, *args, deprecation: str, **kwargs):
        super().__init__(*args, **kwargs)
        self.deprecation = deprecation

    def __call__(self, parser, namespace, values, option_string=None):
        print(f"Flag {option_string} has been deprecated, {self.deprecation}", file=sys.stderr)
        setattr(namespace, self.dest, True if self.nargs == 0 else values)


class _RootParser(argparse.ArgumentParser):
    """Argument parser that also attaches the resulting options as ``opts``."""

    def __init__(self, *args, base_opts: Opts, **kwargs):
        super().__init__(*args, **kwargs)
        self._base_opts = base_opts

    def parse_known_args(self, args=None, namespace=None):
        parsed, extras = super().parse_known_args(args, namespace)
        values = {name: getattr(parsed, name) for name in _OPTS_FIELDS}
        values["trace_exporters"] = list(values["trace_exporters"])
        trace_config = replace(
            self._base_opts.trace_config,
            service_name=parsed.trace_service_name,
            tags=MapVar(parsed.trace_tags or {}),
        )
        parsed.opts = replace(self._base_opts, trace_config=trace_config, **values)
        return parsed, extras


def _version_handler(args: argparse.Namespace) -> int:
    print(f"Version: {BUILD_VERSION}, Built: {BUILD_TIME}")
    return 0


def _providers_handler(
    store: Store, parser: argparse.ArgumentParser
) -> Callable[[argparse.Namespace], int]:
    def handle(args: argparse.Namespace) -> int:
        names = args.names
        if len(names) > 2:
            parser.error(f"accepts at most 2 arg(s), received {len(names)}")
        if not names:
            for name in store.list():
                print(name)
        elif len(names) == 1:
            if not store.exists(names[0]):
                print("no such provider", names[0], file=sys.stderr)
                return 1
            print(names[0])
        return 0

    return handle


def build_parser(name: str, store: Store, opts: Opts) -> argparse.ArgumentParser:
    """Build the command line parser with ``opts`` as the flag defaults.

    The parsed namespace carries the resulting options as ``opts`` and, for
    subcommands, a ``handler`` that runs the subcommand and returns its exit
    status.
    """
    parser = _RootParser(
        prog=name,
        base_opts=opts,
        description=(
            f"{name} implements the Kubelet interface with a pluggable backend "
            "implementation allowing users to create kubernetes nodes without "
            "running the kubelet. This allows users to schedule kubernetes "
            "workloads on nodes that aren't running Kubernetes."
        ),
    )
    parser.set_defaults(command=None, handler=None)
    add = parser.add_argument
    add("--kubeconfig", dest="kube_config_path", default=opts.kube_config_path,
        help="kube config file to use for connecting to the Kubernetes API server")
    add("--namespace", dest="kube_namespace", default=opts.kube_namespace,
        action=_DeprecatedAction, help=argparse.SUPPRESS,
        deprecation="Nodes must watch for pods in all namespaces. This option is now ignored.")
    add("--cluster-domain", dest="kube_cluster_domain", default=opts.kube_cluster_domain,
        help="kubernetes cluster-domain (default is 'cluster.local')")
    add("--nodename", dest="node_name", default=opts.node_name, help="kubernetes node name")
    add("--os", dest="operating_system", default=opts.operating_system,
        help="Operating System (Linux/Windows)")
    add("--provider", dest="provider", default=opts.provider, help="cloud provider")
    add("--provider-config", dest="provider_config_path", default=opts.provider_config_path,
        help="cloud provider configuration file")
    add("--metrics-addr", dest="metrics_addr", default=opts.metrics_addr,
        help="address to listen for metrics/stats requests")
    add("--taint", dest="taint_key", default=opts.taint_key, action=_DeprecatedAction,
        help="Set node taint key",
        deprecation="Taint key should now be configured using the VK_TAINT_KEY environment variable")
    add("--disable-taint", dest="disable_taint", default=opts.disable_taint,
        action="store_true", help="disable the virtual-kubelet node taint")
    add("--pod-sync-workers", dest="pod_sync_workers", type=int, default=opts.pod_sync_workers,
        help="set the number of pod synchronization workers")
    add("--enable-node-lease", dest="enable_node_lease", default=opts.enable_node_lease,
        action=_DeprecatedAction, nargs=0, help=argparse.SUPPRESS,
        deprecation="leases are always enabled")
    add("--trace-exporter", dest="trace_exporters", default=list(opts.trace_exporters),
        action=_SliceAction,
        help="sets the tracing exporter to use, available exporters: "
        + ", ".join(available_trace_exporters()))
    add("--trace-service-name", dest="trace_service_name",
        default=opts.trace_config.service_name,
        help="sets the name of the service used to register with the trace exporter")
    add("--trace-tag", dest="trace_tags", default=MapVar(opts.trace_config.tags or {}),
        action=_MapAction, help="add tags to include with traces in key=value form")
    add("--trace-sample-rate", dest="trace_sample_rate", default=opts.trace_sample_rate,
        help="set probability of tracing samples")
    add("--full-resync-period", dest="informer_resync_period", type=_parse_duration,
        default=opts.informer_resync_period,
        help="how often to perform a full resync of pods between kubernetes and the provider")
    add("--startup-timeout", dest="startup_timeout", type=_parse_duration,
        default=opts.startup_timeout, help="How long to wait for the virtual-kubelet to start")
    add("--stream-idle-timeout", dest="stream_idle_timeout", type=_parse_duration,
        default=opts.stream_idle_timeout,
        help="stream-idle-timeout is the maximum time a streaming connection can be idle "
        "before the connection is automatically closed, default 30s.")
    add("--stream-creation-timeout", dest="stream_creation_timeout", type=_parse_duration,
        default=opts.stream_creation_timeout,
        help="stream-creation-timeout is the maximum time for streaming connection, default 30s.")
    add("--log-level", dest="log_level", default="info",
        help='set the log level, e.g. "debug", "info", "warn", "error"')

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--log-level", dest="log_level", default=argparse.SUPPRESS,
                        help='set the log level, e.g. "debug", "info", "warn", "error"')

    commands = parser.add_subparsers(dest="command", parser_class=argparse.ArgumentParser)
    version = commands.add_parser("version", parents=[common],
                                  help="Show the version of the program")
    version.set_defaults(handler=_version_handler)
    providers = commands.add_parser("providers", parents=[common],
                                    help="Show the list of supported providers")
    providers.add_argument("names", nargs="*")
    providers.set_defaults(handler=_providers_handler(store, providers))
    return parser


@dataclass
class _PreparedNode:
    """What the root command sets up before it starts serving."""

    provider: Provider
    node: dict[str, Any]
    api_config: Any
    taint: Taint | None
    exporters: list[Any] = field(default_factory=list)
    sampler: Sampler | None = None


def _architecture() -> str:
    machine = platform.machine()
    return _GO_ARCH.get(machine.lower(), machine.lower())


def run_root(store: Store, opts: Opts) -> _PreparedNode:
    """Validate ``opts``, start the provider and prepare the node and tracing."""
    if opts.operating_system not in VALID_OPERATING_SYSTEMS:
        raise invalid_input(
            f"operating system {json.dumps(opts.operating_system)} is not supported"
        )
    if opts.pod_sync_workers == 0:
        raise invalid_input("pod sync workers must be greater than 0")

    taint = None if opts.disable_taint else get_taint(opts)
    api_config = get_api_config(opts)

    node: dict[str, Any] = {
        "metadata": {"name": opts.node_name},
        "spec": {"taints": []},
        "status": {
            "nodeInfo": {
                "architecture": _architecture(),
                "operatingSystem": opts.operating_system,
            }
        },
    }
    if taint is not None:
        node["spec"]["taints"].append(
            {"key": taint.key, "value": taint.value, "effect": taint.effect.value}
        )

    init_func = store.get(opts.provider)
    if init_func is None:
        raise LookupError(f"provider {json.dumps(opts.provider)} not found")
    config = InitConfig(
        config_path=opts.provider_config_path,
        node_name=opts.node_name,
        operating_system=opts.operating_system,
        internal_ip=os.environ.get("VKUBELET_POD_IP", ""),
        daemon_port=opts.listen_port,
        kube_cluster_domain=opts.kube_cluster_domain,
    )
    try:
        provider = init_func(config)
    except Exception as err:
        raise RuntimeError(f"error initializing provider {opts.provider}: {err}") from err
    provider.configure_node(node)
    node["status"]["nodeInfo"]["kubeletVersion"] = opts.version

    exporters, sampler = setup_tracing(opts)
    log.info(
        "Node prepared (provider=%s, operatingSystem=%s, node=%s, watchedNamespace=%s)",
        opts.provider, opts.operating_system, opts.node_name, opts.kube_namespace,
    )
    return _PreparedNode(provider, node, api_config, taint, exporters, sampler)


def _wait_for_shutdown() -> None:
    stop = threading.Event()

    def handle(signum, frame):
        stop.set()

    previous = {sig: signal.signal(sig, handle) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        while not stop.wait(1.0):
            pass
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line and return its exit status."""
    logging.basicConfig(format="%(asctime)s %(levelname)s %(message)s")

    opts = Opts()
    opts_err: Exception | None = None
    try:
        set_default_opts(opts)
    except ValueError as err:
        opts_err = err
    opts.version = "-".join([K8S_VERSION, "vk", BUILD_VERSION])

    store = Store()
    parser = build_parser(os.path.basename(sys.argv[0]) or "virtual-kubelet", store, opts)
    args = parser.parse_args(argv)

    if args.log_level:
        level = _LOG_LEVELS.get(args.log_level.lower())
        if level is None:
            log.critical(
                "could not parse log level: not a valid logrus Level: %s",
                json.dumps(args.log_level),
            )
            return 1
        log.setLevel(level)

    if args.handler is not None:
        return args.handler(args)

    if opts_err is not None:
        log.critical("%s", opts_err)
        return 1
    try:
        run_root(store, args.opts)
    except Exception as err:
        log.critical("%s", err)
        return 1
    log.info("Ready")
    _wait_for_shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
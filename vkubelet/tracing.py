"""Tracing exporters, their registry and the tracing setup for the node."""

from __future__ import annotations

import json
import logging
import os
import random
import re
import threading
from dataclasses import dataclass, field, replace
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable

from .errdefs import as_invalid_input, invalid_input, not_found
from .options import Opts, TracingExporterOptions

__all__ = [
    "Sampler",
    "JaegerExporter",
    "OCAgentExporter",
    "TracingExporterInitFunc",
    "register_tracing_exporter",
    "unregister_tracing_exporter",
    "get_tracing_exporter",
    "available_trace_exporters",
    "new_jaeger_exporter",
    "new_ocagent_exporter",
    "parse_sample_rate",
    "setup_tracing",
]

log = logging.getLogger(__name__)

TracingExporterInitFunc = Callable[[TracingExporterOptions], Any]

_RESERVED_TAG_NAMES = frozenset({"operatingSystem", "provider", "nodeName"})
_INTEGER = re.compile(r"[+-]?[0-9]+")

_tracing_exporters: dict[str, TracingExporterInitFunc] = {}
_active_exporters: list[Any] = []
_default_sampler: Sampler | None = None


@dataclass(frozen=True)
class Sampler:
    """Decides whether a trace is recorded, with a fixed probability."""

    probability: float

    @classmethod
    def always(cls) -> Sampler:
        return cls(1.0)

    @classmethod
    def never(cls) -> Sampler:
        return cls(0.0)

    def sample(self) -> bool:
        """Return True if a new trace should be recorded."""
        if self.probability >= 1.0:
            return True
        if self.probability <= 0.0:
            return False
        return random.random() < self.probability


@dataclass(frozen=True)
class JaegerExporter:
    """Settings for exporting traces to a Jaeger collector or agent."""

    service_name: str
    collector_endpoint: str = ""
    agent_endpoint: str = ""
    username: str = ""
    password: str = field(default="", repr=False)
    tags: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class OCAgentExporter:
    """Settings for exporting traces through an OpenCensus agent."""

    service_name: str
    address: str
    insecure: bool = False


def register_tracing_exporter(name: str, init_func: TracingExporterInitFunc) -> None:
    """Make an exporter selectable under ``name``."""
    _tracing_exporters[name] = init_func


def unregister_tracing_exporter(name: str) -> None:
    """Remove the exporter registered under ``name``, if any."""
    _tracing_exporters.pop(name, None)


def get_tracing_exporter(name: str, options: TracingExporterOptions) -> Any:
    """Create the exporter registered under ``name`` with ``options``."""
    init_func = _tracing_exporters.get(name)
    if init_func is None:
        raise not_found(f"tracing exporter {json.dumps(name)} not found")
    return init_func(options)


def available_trace_exporters() -> list[str]:
    """Return the names of all registered exporters."""
    return list(_tracing_exporters)


def new_jaeger_exporter(options: TracingExporterOptions) -> JaegerExporter:
    """Create a Jaeger exporter configured from the environment."""
    collector = os.environ.get("JAEGER_COLLECTOR_ENDPOINT", "")
    agent = os.environ.get("JAEGER_AGENT_ENDPOINT", "")
    if not collector and not agent:
        raise ValueError(
            "must specify either JAEGER_COLLECTOR_ENDPOINT or JAEGER_AGENT_ENDPOINT"
        )
    return JaegerExporter(
        service_name=options.service_name,
        collector_endpoint=collector,
        agent_endpoint=agent,
        username=os.environ.get("JAEGER_USER", ""),
        password=os.environ.get("JAEGER_PASSWORD", ""),
        tags=tuple(options.tags.items()),
    )


def new_ocagent_exporter(options: TracingExporterOptions) -> OCAgentExporter:
    """Create an OpenCensus agent exporter configured from the environment."""
    endpoint = os.environ.get("OCAGENT_ENDPOINT", "")
    if not endpoint:
        raise invalid_input("must set endpoint address in OCAGENT_ENDPOINT")
    setting = os.environ.get("OCAGENT_INSECURE", "")
    if setting in ("0", "no", "n", "off", ""):
        insecure = False
    elif setting in ("1", "yes", "y", "on"):
        insecure = True
    else:
        raise invalid_input("invalid value for OCAGENT_INSECURE")
    return OCAgentExporter(
        service_name=options.service_name, address=endpoint, insecure=insecure
    )


def parse_sample_rate(rate: str) -> Sampler | None:
    """Turn a sample rate setting into a sampler; empty means no change."""
    lowered = rate.lower()
    if lowered == "":
        return None
    if lowered == "always":
        return Sampler.always()
    if lowered == "never":
        return Sampler.never()
    if not _INTEGER.fullmatch(rate):
        cause = ValueError(
            f"unsupported trace sample rate: strconv.Atoi: parsing "
            f"{json.dumps(rate)}: invalid syntax"
        )
        raise as_invalid_input(cause)
    value = int(rate)
    if value < 0 or value > 100:
        raise invalid_input("trace sample rate must be between 0 and 100")
    return Sampler(value / 100)


class _ZPagesHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:  # noqa: N802
        if self.path.rstrip("/") != "/debug/tracez":
            self.send_error(404)
            return
        lines = [f"exporter: {exporter!r}" for exporter in _active_exporters]
        sampler = _default_sampler
        lines.append(
            f"sampler: {sampler.probability if sampler is not None else 'default'}"
        )
        body = ("\n".join(lines) + "\n").encode()
        self.send_response(200)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        log.debug(format, *args)


def _setup_zpages() -> None:
    address = os.environ.get("ZPAGES_PORT", "")
    if not address:
        log.error("Missing ZPAGES_PORT env var, cannot setup zpages endpoint")
    host, _, port_text = address.rpartition(":")
    try:
        port = int(port_text) if port_text else 0
        server = ThreadingHTTPServer((host, port), _ZPagesHandler)
    except (OSError, ValueError, OverflowError) as err:
        log.error("Cannot bind to ZPAGES PORT, cannot setup listener: %s", err)
        return

    def serve() -> None:
        try:
            server.serve_forever()
        except Exception as err:  # pragma: no cover - runs in background
            log.error("Zpages server exited: %s", err)

    threading.Thread(target=serve, name="zpages", daemon=True).start()


def setup_tracing(opts: Opts) -> tuple[list[Any], Sampler | None]:
    """Register the exporters and sampler chosen in ``opts``.

    Returns the exporters created and the sampler applied, if any.
    """
    global _default_sampler

    for key in opts.trace_config.tags:
        if key in _RESERVED_TAG_NAMES:
            raise invalid_input(
                f"invalid trace tag {json.dumps(key)}, must not use a reserved tag key"
            )
    tags = dict(opts.trace_config.tags)
    tags["operatingSystem"] = opts.operating_system
    tags["provider"] = opts.provider
    tags["nodeName"] = opts.node_name
    exporter_options = replace(opts.trace_config, tags=tags)

    created: list[Any] = []
    for name in opts.trace_exporters:
        if name == "zpages":
            _setup_zpages()
            continue
        exporter = get_tracing_exporter(name, exporter_options)
        _active_exporters.append(exporter)
        created.append(exporter)

    sampler = None
    if opts.trace_exporters:
        sampler = parse_sample_rate(opts.trace_sample_rate)
        if sampler is not None:
            _default_sampler = sampler
    return created, sampler


register_tracing_exporter("jaeger", new_jaeger_exporter)
register_tracing_exporter("ocagent", new_ocagent_exporter)
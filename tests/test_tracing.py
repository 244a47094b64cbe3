import pytest

from vkubelet.errdefs import NotFoundError, is_invalid_input, is_not_found
from vkubelet.options import MapVar, Opts, TracingExporterOptions
from vkubelet.tracing import (
    JaegerExporter,
    OCAgentExporter,
    Sampler,
    available_trace_exporters,
    get_tracing_exporter,
    new_jaeger_exporter,
    new_ocagent_exporter,
    parse_sample_rate,
    register_tracing_exporter,
    setup_tracing,
    unregister_tracing_exporter,
)


@pytest.fixture
def mock_exporter():
    received = []

    def init(options):
        received.append(options)
        return ("mock-exporter", options.service_name)

    register_tracing_exporter("mock", init)
    try:
        yield received
    finally:
        unregister_tracing_exporter("mock")


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "JAEGER_COLLECTOR_ENDPOINT",
        "JAEGER_AGENT_ENDPOINT",
        "JAEGER_USER",
        "JAEGER_PASSWORD",
        "OCAGENT_ENDPOINT",
        "OCAGENT_INSECURE",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_get_tracing_exporter_not_found():
    with pytest.raises(NotFoundError) as info:
        get_tracing_exporter("notexist", TracingExporterOptions())
    assert is_not_found(info.value)
    assert str(info.value) == 'tracing exporter "notexist" not found'


def test_get_tracing_exporter_registered(mock_exporter):
    result = get_tracing_exporter("mock", TracingExporterOptions(service_name="svc"))
    assert result == ("mock-exporter", "svc")
    assert len(mock_exporter) == 1


def test_available_exporters_includes_mock(mock_exporter):
    assert "mock" in available_trace_exporters()


def test_builtin_exporters_registered():
    names = available_trace_exporters()
    assert "jaeger" in names
    assert "ocagent" in names


def test_unregister_removes_exporter():
    register_tracing_exporter("temporary", lambda options: None)
    unregister_tracing_exporter("temporary")
    assert "temporary" not in available_trace_exporters()
    with pytest.raises(NotFoundError):
        get_tracing_exporter("temporary", TracingExporterOptions())


def test_jaeger_requires_endpoint(clean_env):
    with pytest.raises(ValueError, match="JAEGER_COLLECTOR_ENDPOINT"):
        new_jaeger_exporter(TracingExporterOptions(service_name="svc"))


def test_jaeger_from_environment(clean_env):
    clean_env.setenv("JAEGER_AGENT_ENDPOINT", "localhost:6831")
    clean_env.setenv("JAEGER_USER", "user")
    clean_env.setenv("JAEGER_PASSWORD", "password")
    options = TracingExporterOptions(tags=MapVar(team="core"), service_name="svc")
    exporter = new_jaeger_exporter(options)
    assert isinstance(exporter, JaegerExporter)
    assert exporter.agent_endpoint == "localhost:6831"
    assert exporter.collector_endpoint == ""
    assert exporter.username == "user"
    assert exporter.password == "password"
    assert exporter.service_name == "svc"
    assert exporter.tags == (("team", "core"),)


def test_ocagent_requires_endpoint(clean_env):
    with pytest.raises(Exception) as info:
        new_ocagent_exporter(TracingExporterOptions(service_name="svc"))
    assert is_invalid_input(info.value)
    assert str(info.value) == "must set endpoint address in OCAGENT_ENDPOINT"


@pytest.mark.parametrize(
    "setting, expected",
    [("", False), ("0", False), ("off", False), ("n", False),
     ("1", True), ("yes", True), ("y", True), ("on", True)],
)
def test_ocagent_insecure_values(clean_env, setting, expected):
    clean_env.setenv("OCAGENT_ENDPOINT", "localhost:55678")
    clean_env.setenv("OCAGENT_INSECURE", setting)
    exporter = new_ocagent_exporter(TracingExporterOptions(service_name="svc"))
    assert exporter == OCAgentExporter(
        service_name="svc", address="localhost:55678", insecure=expected
    )


def test_ocagent_invalid_insecure(clean_env):
    clean_env.setenv("OCAGENT_ENDPOINT", "localhost:55678")
    clean_env.setenv("OCAGENT_INSECURE", "maybe")
    with pytest.raises(Exception) as info:
        new_ocagent_exporter(TracingExporterOptions())
    assert is_invalid_input(info.value)


@pytest.mark.parametrize(
    "rate, expected",
    [("", None), ("always", Sampler(1.0)), ("ALWAYS", Sampler(1.0)),
     ("never", Sampler(0.0)), ("50", Sampler(0.5)), ("0", Sampler(0.0)),
     ("100", Sampler(1.0))],
)
def test_parse_sample_rate(rate, expected):
    assert parse_sample_rate(rate) == expected


def test_parse_sample_rate_not_a_number():
    with pytest.raises(Exception) as info:
        parse_sample_rate("often")
    assert is_invalid_input(info.value)
    assert str(info.value).startswith("unsupported trace sample rate")


@pytest.mark.parametrize("rate", ["101", "-1"])
def test_parse_sample_rate_out_of_range(rate):
    with pytest.raises(Exception) as info:
        parse_sample_rate(rate)
    assert is_invalid_input(info.value)


def test_sampler_decisions():
    assert Sampler.always().sample() is True
    assert Sampler.never().sample() is False


def test_setup_tracing_rejects_reserved_tag(mock_exporter):
    opts = Opts(
        trace_exporters=["mock"],
        trace_config=TracingExporterOptions(tags=MapVar(provider="x")),
    )
    with pytest.raises(Exception) as info:
        setup_tracing(opts)
    assert is_invalid_input(info.value)
    assert mock_exporter == []


def test_setup_tracing_adds_tags_and_sampler(mock_exporter):
    opts = Opts(
        operating_system="linux",
        provider="mock",
        node_name="node-1",
        trace_exporters=["mock"],
        trace_sample_rate="25",
        trace_config=TracingExporterOptions(tags=MapVar(team="core"), service_name="svc"),
    )
    exporters, sampler = setup_tracing(opts)
    assert exporters == [("mock-exporter", "svc")]
    assert sampler == Sampler(0.25)
    assert mock_exporter[0].tags == {
        "team": "core",
        "operatingSystem": "linux",
        "provider": "mock",
        "nodeName": "node-1",
    }


def test_setup_tracing_without_exporters_ignores_rate():
    opts = Opts(trace_sample_rate="not-a-rate")
    assert setup_tracing(opts) == ([], None)


def test_setup_tracing_unknown_exporter():
    opts = Opts(trace_exporters=["missing"])
    with pytest.raises(NotFoundError):
        setup_tracing(opts)
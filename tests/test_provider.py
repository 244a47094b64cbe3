import pytest

from vkubelet.errdefs import InvalidInputError, is_invalid_input
from vkubelet.provider import (
    InitConfig,
    Provider,
    Store,
    VALID_OPERATING_SYSTEMS,
    operating_system_names,
)


class _FakeProvider(Provider):
    def __init__(self, cfg):
        self.cfg = cfg
        self.configured = []

    def configure_node(self, node):
        self.configured.append(node)


def test_register_and_get():
    store = Store()
    store.register("mock", _FakeProvider)
    assert store.get("mock") is _FakeProvider
    assert store.exists("mock") is True


def test_get_missing_is_none():
    store = Store()
    assert store.get("missing") is None
    assert store.exists("missing") is False


def test_register_none_raises_invalid_input():
    store = Store()
    with pytest.raises(InvalidInputError) as info:
        store.register("mock", None)
    assert is_invalid_input(info.value)
    assert store.exists("mock") is False


def test_list_contains_registered_names():
    store = Store()
    for name in ("a", "b", "c"):
        store.register(name, _FakeProvider)
    assert sorted(store.list()) == ["a", "b", "c"]


def test_register_replaces():
    store = Store()
    store.register("mock", _FakeProvider)

    def other(cfg):
        return _FakeProvider(cfg)

    store.register("mock", other)
    assert store.get("mock") is other
    assert store.list() == ["mock"]


def test_init_func_receives_config():
    store = Store()
    store.register("mock", _FakeProvider)
    cfg = InitConfig(config_path="/tmp/cfg", node_name="node-1", daemon_port=10250)
    provider = store.get("mock")(cfg)
    provider.configure_node("node-object")
    assert provider.cfg.node_name == "node-1"
    assert provider.configured == ["node-object"]


def test_provider_is_abstract():
    with pytest.raises(TypeError):
        Provider()


def test_operating_system_names():
    assert operating_system_names() == ["linux", "windows"]
    assert set(operating_system_names()) == set(VALID_OPERATING_SYSTEMS)
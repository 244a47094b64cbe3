# vkubelet

`vkubelet` holds the pieces for a node agent that plays the same basic role
as the kubelet while leaving the work of running pods to a backend of your
choice, called a *provider*. It has no dependencies beyond the standard
library and needs Python 3.10 or later.

## Modules

- `vkubelet.errdefs` – the error types `InvalidInputError` and
  `NotFoundError`, and the helpers `invalid_input`, `as_invalid_input`,
  `is_invalid_input`, `not_found`, `as_not_found` and `is_not_found`. The
  `is_*` helpers follow an error's chain of causes (its `cause` attribute or
  `__cause__`) and report the first marker they find.
- `vkubelet.expansion` – `$(VAR)` reference expansion (`expand`,
  `mapping_func_for`). `$$` is an escaped `$`; an unknown name is left as
  `$(NAME)`; anything else after `$` is kept as written.
- `vkubelet.monitor` – `MonitorVariable`, a value that subscribers can wait
  on. `subscribe()` returns a `Subscription` whose `new_value_ready()` gives a
  `threading.Event` and whose `value()` returns a `Value(value, version)`;
  version 0 means the variable was never set.
- `vkubelet.provider` – the abstract `Provider` (with `configure_node`), the
  `InitConfig` handed to a provider's init function, a thread-safe `Store`
  of init functions by name (`register`, `get`, `list`, `exists`), and
  `operating_system_names()` (`linux`, `windows`).
- `vkubelet.options` – the node options `Opts`, their defaults
  (`set_default_opts`), the node taint (`get_taint`, giving a `Taint` with a
  `TaintEffect`), the API server settings (`get_api_config`, giving an
  `ApiServerConfig`), `MapVar` for `key=value` maps, and `get_env`.
- `vkubelet.tracing` – a registry of tracing exporters
  (`register_tracing_exporter`, `unregister_tracing_exporter`,
  `get_tracing_exporter`, `available_trace_exporters`), the built-in `jaeger`
  and `ocagent` exporters (`new_jaeger_exporter`, `new_ocagent_exporter`),
  `parse_sample_rate` and `setup_tracing`.
- `vkubelet.cli` – the `vkubelet` command (`main`), its parser
  (`build_parser`) and `run_root`, which prepares a node.

## Examples

Expanding variable references:

```python
from vkubelet.expansion import expand, mapping_func_for

mapping = mapping_func_for({"FOO": "bar"})
expand("$(FOO)-1", mapping)        # "bar-1"
expand("$$(FOO)", mapping)         # "$(FOO)"
expand("$(MISSING)", mapping)      # "$(MISSING)"
```

Telling errors apart:

```python
from vkubelet import errdefs

try:
    raise errdefs.not_found("pod default/web not found")
except Exception as err:
    assert errdefs.is_not_found(err)
    assert not errdefs.is_invalid_input(err)
```

Waiting for a value:

```python
from vkubelet.monitor import MonitorVariable

variable = MonitorVariable()
subscription = variable.subscribe()
variable.set("ready")
subscription.new_value_ready().wait()
subscription.value().value          # "ready"
```

Registering a provider and preparing a node:

```python
from vkubelet.cli import run_root
from vkubelet.options import Opts, set_default_opts
from vkubelet.provider import Provider, Store


class ExampleProvider(Provider):
    def __init__(self, config):
        self.config = config

    def configure_node(self, node):
        node["metadata"]["labels"] = {"type": "virtual-kubelet"}


store = Store()
store.register("example", ExampleProvider)

opts = Opts(provider="example")
set_default_opts(opts)
prepared = run_root(store, opts)
prepared.node["spec"]["taints"]    # the virtual-kubelet.io/provider taint
```

`run_root` checks the operating system and the number of pod sync workers,
builds the taint (unless `disable_taint` is set) and the API server settings,
calls the provider's init function with an `InitConfig`, lets the provider
configure the node (a plain `dict`), sets the kubelet version on it, and sets
up tracing. It returns an object with the attributes `provider`, `node`,
`api_config`, `taint`, `exporters` and `sampler`.

## The command

```
vkubelet --nodename my-node --provider example --log-level debug
vkubelet providers
vkubelet providers example
vkubelet version
```

The root command prepares the node as `run_root` does, logs `Ready`, and then
waits until it receives SIGINT or SIGTERM. `providers` lists the registered
providers, or with one name prints it if registered and otherwise writes
`no such provider` and exits with status 1. `version` prints the build
version and time.

Options of the root command:

| option                      | meaning                                           |
|-----------------------------|---------------------------------------------------|
| `--kubeconfig`              | kube config file for the API server               |
| `--cluster-domain`          | cluster domain (default `cluster.local`)          |
| `--nodename`                | node name (default `virtual-kubelet`)             |
| `--os`                      | `linux` or `windows` (default `linux`)            |
| `--provider`                | name of the registered provider                   |
| `--provider-config`         | provider configuration file                       |
| `--metrics-addr`            | metrics address (default `:10255`)                |
| `--disable-taint`           | do not taint the node                             |
| `--pod-sync-workers`        | number of pod sync workers (default 10)           |
| `--trace-exporter`          | comma separated tracing exporters                 |
| `--trace-service-name`      | service name given to the exporters               |
| `--trace-tag`               | `key=value` tag, may be repeated                  |
| `--trace-sample-rate`       | `always`, `never`, or a percentage from 0 to 100  |
| `--full-resync-period`      | duration such as `1m` or `30s`                    |
| `--startup-timeout`         | duration                                          |
| `--stream-idle-timeout`     | duration (default `30s`)                          |
| `--stream-creation-timeout` | duration (default `30s`)                          |
| `--log-level`               | `debug`, `info`, `warn`, `error`, …               |

`--taint`, `--namespace` and `--enable-node-lease` are accepted but
deprecated and print a warning.

### Environment

- `KUBELET_PORT` – port to listen on (default 10250).
- `KUBECONFIG` – kube config file when `--kubeconfig` is not given; otherwise
  `~/.kube/config`.
- `DEFAULT_NODE_NAME` – node name when `--nodename` is not given.
- `VKUBELET_TAINT_KEY`, `VKUBELET_TAINT_VALUE`, `VKUBELET_TAINT_EFFECT` –
  override the node taint; the effect must be `NoSchedule`, `NoExecute` or
  `PreferNoSchedule`.
- `VKUBELET_POD_IP` – internal IP passed to the provider.
- `APISERVER_CERT_LOCATION`, `APISERVER_KEY_LOCATION`,
  `APISERVER_CA_CERT_LOCATION` – recorded in the API server settings.
- `JAEGER_COLLECTOR_ENDPOINT` or `JAEGER_AGENT_ENDPOINT`, and `JAEGER_USER`,
  `JAEGER_PASSWORD` – for the `jaeger` exporter.
- `OCAGENT_ENDPOINT`, `OCAGENT_INSECURE` – for the `ocagent` exporter.
- `ZPAGES_PORT` – address for the `zpages` exporter's small HTTP page at
  `/debug/tracez`.

## What it does not do

- The command's store starts empty and no provider is bundled, so
  `vkubelet providers` prints nothing and the root command stops with
  `provider "..." not found`. To use a provider, register it in a `Store`
  and call `run_root` (or `build_parser`) from your own code.
- Nothing talks to a Kubernetes API server: the node is prepared as a
  dictionary but not registered, no pods are synchronised, and no HTTP API
  server is started from the API server settings.
- The `jaeger` and `ocagent` exporters hold their settings only; they do not
  send traces anywhere.

## Running the tests

```
pip install .[test]
pytest
```
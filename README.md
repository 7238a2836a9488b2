# spokeagent

Controllers for the agent of a multi-cluster networking add-on. The agent
runs on a managed ("spoke") cluster, looks at what is there, and reports
the state back to the hub as status conditions. It also labels worker
nodes as gateways so that their number matches the desired gateway count.

## What is inside

| Module | Purpose |
| --- | --- |
| `spokeagent.model` | Shared types: `Condition`, `ConditionStatus`, `Node`, `EventRecorder`, the exceptions `NotFoundError`, `ConflictError` and `AggregateError`, and the helpers `find_status_condition`, `is_status_condition_true`, `set_status_condition` and `aggregate_errors`. |
| `spokeagent.gateways_controller` | `GatewaysStatusController` and `gateway_nodes_condition` report whether any node carries the label `submariner.io/gateway=true` (condition `SubmarinerGatewayNodesLabeled`). |
| `spokeagent.connections_controller` | `ConnectionsStatusController` looks at the connections of the active gateways of a `Submariner` resource and reports `SubmarinerConnectionDegraded`. |
| `spokeagent.config_controller` | `SubmarinerConfigController` applies a `SubmarinerConfig`: it labels or unlabels gateway nodes, asks a `CloudProvider` to prepare or clean up the cluster environment, and reports `SubmarinerGatewaysLabeled`. |
| `spokeagent.agent` | `AgentOptions` and `parse_options` for the agent's `--hub-kubeconfig` and `--cluster-name` settings. |

The package has no runtime dependencies. The clients and listers the
controllers call are plain Python objects that you supply, so the
controllers work the same against a real cluster client or against an
in-memory one.

## Conditions

Every controller describes its result as a `Condition` with a type, a
`ConditionStatus` (`TRUE`, `FALSE`, `UNKNOWN`), a reason and a message.

```python
from spokeagent.model import find_status_condition, is_status_condition_true
from spokeagent.config_controller import success_condition

condition = success_condition(["worker-1"])
# condition.reason == "Success"
# condition.message == '1 node(s) ("worker-1") are labeled as gateways'

conditions = [condition]
assert is_status_condition_true(conditions, "SubmarinerGatewaysLabeled")
assert find_status_condition(conditions, "SubmarinerGatewaysLabeled") is condition
```

`set_status_condition(conditions, condition)` adds the condition to the
list, or updates the one of the same type in place, and returns whether
anything changed. The transition time only moves when the status changes.

## What the controllers expect

- `GatewaysStatusController(cluster_name, addon_client, node_lister, recorder)`:
  `node_lister()` returns the nodes; `addon_client.update_status_condition(cluster_name, condition)`
  returns the resulting conditions and whether they changed. `sync()`
  returns the condition it reported. `handles(node)` is true for worker nodes.
- `ConnectionsStatusController(cluster_name, addon_client, submariner_lister, recorder)`:
  `submariner_lister(namespace, name)` returns a `Submariner` or raises
  `NotFoundError`. `sync("namespace/name")` returns the reported condition,
  or `None` when the resource is gone.
- `SubmarinerConfigController(cluster_name, kube_client, config_client, node_lister, addon_lister, config_lister, cloud_provider_factory)`:
  `kube_client` provides `get_node(name)` and `update_node(node)`;
  `config_client.update_status_condition(namespace, name, condition)`
  returns the resulting conditions and whether they changed;
  `addon_lister` and `config_lister` take a namespace and a name and raise
  `NotFoundError` when the object is missing. `cloud_provider_factory` is a
  `CloudProviderFactory` whose `get` returns a `CloudProvider`.
  `sync(recorder)` returns the reported gateway condition, or `None` when
  there is nothing to report.

A failure is raised as an exception; several failures collected in one
pass are raised together as an `AggregateError`. An update of a node that
raises `ConflictError` is retried a few times with a growing delay.

Events worth recording, such as a changed status, go through an
`EventRecorder`, whose `eventf(reason, message, *args)` formats the message
printf-style, keeps the event in `events` and logs it.

## Agent options

```python
from spokeagent.agent import parse_options

options = parse_options(["--hub-kubeconfig", "/etc/hub/kubeconfig",
                         "--cluster-name", "cluster1"])
options.complete(None)   # installation namespace falls back to "submariner-operator"
options.validate()
```

`validate` raises `ValueError` when the hub kubeconfig path or the cluster
name is missing.

## What this package does not do

- It has no command and no long-running agent: nothing watches the cluster,
  queues changes or calls `sync` for you, and no lease is kept with the hub.
- It has no Kubernetes client of its own; you supply the clients and listers.
- It does not report on the operator subscription, the operator deployment
  or the gateway and route-agent daemon sets.

## Tests

The test suite uses pytest and is installed with the `test` extra.
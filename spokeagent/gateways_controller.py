"""Reports whether worker nodes are labeled as gateways to the hub add-on status."""

from __future__ import annotations

import json
from typing import Callable, Iterable

from spokeagent.model import (
    SUBMARINER_GATEWAY_LABEL,
    WORKER_NODE_LABEL,
    Condition,
    ConditionStatus,
    EventRecorder,
    Node,
)

SUBMARINER_GATEWAY_NODES_LABELED = "SubmarinerGatewayNodesLabeled"


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def gateway_nodes_condition(nodes: Iterable[Node]) -> Condition:
    """Build the gateway-nodes condition from the nodes labeled as gateways."""
    names = sorted(
        node.name for node in nodes if node.labels.get(SUBMARINER_GATEWAY_LABEL) == "true"
    )
    label = _quote(SUBMARINER_GATEWAY_LABEL)
    if names:
        status = ConditionStatus.TRUE
        reason = "SubmarinerGatewayNodesLabeled"
        message = f"The nodes {_quote(','.join(names))} are labeled with {label}"
    else:
        status = ConditionStatus.FALSE
        reason = "SubmarinerGatewayNodesUnlabeled"
        message = f"There are no nodes with label {label}"
    return Condition(
        type=SUBMARINER_GATEWAY_NODES_LABELED, status=status, reason=reason, message=message
    )


class GatewaysStatusController:
    """Watches worker nodes and reports gateway labeling to the add-on on the hub.

    ``addon_client.update_status_condition(cluster_name, condition)`` must return
    the resulting conditions and whether they changed. ``node_lister()`` returns
    the current nodes.
    """

    def __init__(
        self,
        cluster_name: str,
        addon_client,
        node_lister: Callable[[], Iterable[Node]],
        recorder: EventRecorder,
    ):
        self.cluster_name = cluster_name
        self.addon_client = addon_client
        self.node_lister = node_lister
        self.recorder = recorder

    def handles(self, node: Node) -> bool:
        """Only changes of worker nodes trigger a sync."""
        return WORKER_NODE_LABEL in node.labels

    def sync(self) -> Condition:
        """Compute the condition and push it to the hub; return the condition."""
        condition = gateway_nodes_condition(self.node_lister())
        conditions, updated = self.addon_client.update_status_condition(
            self.cluster_name, condition
        )
        if updated:
            self.recorder.eventf(
                "ManagedClusterAddOnStatusUpdated", "Updated status conditions:  %r", conditions
            )
        return condition
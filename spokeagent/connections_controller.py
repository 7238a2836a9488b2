"""Reflects the submariner gateway connection status to the hub add-on status."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from spokeagent.model import Condition, ConditionStatus, EventRecorder, NotFoundError

SUBMARINER_CONNECTION_DEGRADED = "SubmarinerConnectionDegraded"


class HAStatus(str, Enum):
    """High-availability role of a gateway."""

    ACTIVE = "active"
    PASSIVE = "passive"


class ConnectionStatus(str, Enum):
    """State of a connection to a remote cluster."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass
class Connection:
    """A gateway's connection to the endpoint of a remote cluster."""

    status: ConnectionStatus
    cluster_id: str

    def __post_init__(self):
        self.status = ConnectionStatus(self.status)


@dataclass
class GatewayStatus:
    """Status of one gateway and its connections."""

    ha_status: HAStatus
    connections: List[Connection] = field(default_factory=list)

    def __post_init__(self):
        self.ha_status = HAStatus(self.ha_status)


@dataclass
class Submariner:
    """The submariner resource with its reported gateways."""

    name: str
    namespace: str
    gateways: Optional[List[GatewayStatus]] = None


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _split_key(key: str):
    parts = key.split("/")
    if len(parts) == 1:
        return "", parts[0]
    if len(parts) == 2:
        return parts[0], parts[1]
    return None


class ConnectionsStatusController:
    """Watches the submariner resource and reports connection health to the hub.

    ``submariner_lister(namespace, name)`` returns a Submariner or raises
    NotFoundError. ``addon_client.update_status_condition(cluster_name, condition)``
    returns the resulting conditions and whether they changed.
    """

    def __init__(
        self,
        cluster_name: str,
        addon_client,
        submariner_lister: Callable[[str, str], Submariner],
        recorder: EventRecorder,
    ):
        self.cluster_name = cluster_name
        self.addon_client = addon_client
        self.submariner_lister = submariner_lister
        self.recorder = recorder

    def check_submariner_connections(self, submariner: Submariner) -> Condition:
        """Derive the degraded condition from the active gateways' connections."""
        connected: List[str] = []
        unconnected: List[str] = []
        cluster = _quote(self.cluster_name)
        for gateway in submariner.gateways or []:
            if gateway.ha_status != HAStatus.ACTIVE:
                continue
            for connection in gateway.connections or []:
                remote = _quote(connection.cluster_id)
                if connection.status != ConnectionStatus.CONNECTED:
                    unconnected.append(
                        f"The connection between clusters {cluster} and {remote} is not "
                        f"established (status={connection.status.value})"
                    )
                else:
                    connected.append(
                        f"The connection between clusters {cluster} and {remote} is established"
                    )

        if not connected and not unconnected:
            return Condition(
                type=SUBMARINER_CONNECTION_DEGRADED,
                status=ConditionStatus.TRUE,
                reason="ConnectionsNotEstablished",
                message="There are no connections on gateways",
            )
        if unconnected:
            return Condition(
                type=SUBMARINER_CONNECTION_DEGRADED,
                status=ConditionStatus.TRUE,
                reason="ConnectionsDegraded",
                message="\n".join(connected + unconnected),
            )
        return Condition(
            type=SUBMARINER_CONNECTION_DEGRADED,
            status=ConditionStatus.FALSE,
            reason="ConnectionsEstablished",
            message="\n".join(connected),
        )

    def sync(self, queue_key: str) -> Optional[Condition]:
        """Process the submariner named by ``namespace/name``; None if it is gone."""
        split = _split_key(queue_key)
        if split is None:
            return None
        namespace, name = split
        try:
            submariner = self.submariner_lister(namespace, name)
        except NotFoundError:
            return None

        condition = self.check_submariner_connections(submariner)
        conditions, updated = self.addon_client.update_status_condition(
            self.cluster_name, condition
        )
        if updated:
            self.recorder.eventf(
                "ManagedClusterAddOnStatusUpdated", "Updated status conditions:  %r", conditions
            )
        return condition
"""Applies the hub's SubmarinerConfig to the managed cluster by labeling gateway nodes."""

from __future__ import annotations

import json
import logging
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from itertools import islice, zip_longest
from typing import Callable, Iterable, List, Optional

from spokeagent.model import (
    SUBMARINER_GATEWAY_LABEL,
    WORKER_NODE_LABEL,
    Condition,
    ConditionStatus,
    ConflictError,
    EventRecorder,
    Node,
    NotFoundError,
    aggregate_errors,
    is_status_condition_true,
)

_log = logging.getLogger(__name__)

SUBMARINER_ADDON_NAME = "submariner"
SUBMARINER_CONFIG_NAME = "submariner"

SUBMARINER_GATEWAY_CONDITION = "SubmarinerGatewaysLabeled"
SUBMARINER_CONFIG_CONDITION_ENV_PREPARED = "SubmarinerClusterEnvironmentPrepared"
SUBMARINER_UDP_PORT_LABEL = "gateway.submariner.io/udp-port"

DEFAULT_ZONE_LABEL = ""

_RETRY_STEPS = 4
_RETRY_DELAY = 0.01
_RETRY_FACTOR = 5.0
_RETRY_JITTER = 0.1


@dataclass
class ManagedClusterInfo:
    """Information about the managed cluster reported in the config status."""

    platform: str = ""


@dataclass
class SubmarinerConfig:
    """The submariner configuration for one managed cluster, kept on the hub."""

    name: str = SUBMARINER_CONFIG_NAME
    namespace: str = ""
    gateways: int = 1
    ipsec_natt_port: int = 4500
    managed_cluster_info: ManagedClusterInfo = field(default_factory=ManagedClusterInfo)
    conditions: List[Condition] = field(default_factory=list)
    deletion_timestamp: Optional[datetime] = None


@dataclass
class ManagedClusterAddOn:
    """The submariner add-on of a managed cluster, kept on the hub."""

    name: str = SUBMARINER_ADDON_NAME
    namespace: str = ""
    deletion_timestamp: Optional[datetime] = None


class CloudProvider(ABC):
    """Prepares and cleans up the cloud environment that submariner needs."""

    @abstractmethod
    def prepare_submariner_cluster_env(self) -> None:
        """Open the ports and set up the gateways in the cloud; raise on failure."""

    @abstractmethod
    def clean_up_submariner_cluster_env(self) -> None:
        """Undo what prepare_submariner_cluster_env did; raise on failure."""


class CloudProviderFactory(ABC):
    """Creates the cloud provider that matches a managed cluster."""

    @abstractmethod
    def get(
        self, cluster_info: ManagedClusterInfo, config: SubmarinerConfig, recorder: EventRecorder
    ) -> CloudProvider:
        """Return the provider for the cluster; raise if none can be built."""


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def failed_condition(format_msg: str, *args) -> Condition:
    """A False gateway condition with reason Failure and a printf-style message."""
    return Condition(
        type=SUBMARINER_GATEWAY_CONDITION,
        status=ConditionStatus.FALSE,
        reason="Failure",
        message=format_msg % args if args else format_msg,
    )


def success_condition(gateway_names: List[str]) -> Condition:
    """A True gateway condition naming the labeled gateway nodes."""
    return Condition(
        type=SUBMARINER_GATEWAY_CONDITION,
        status=ConditionStatus.TRUE,
        reason="Success",
        message=(
            f"{len(gateway_names)} node(s) ({_quote(','.join(gateway_names))}) "
            "are labeled as gateways"
        ),
    )


class _GatewayLabelingError(Exception):
    """Carries the condition to report together with the underlying failure."""

    def __init__(self, condition: Condition, error: BaseException):
        super().__init__(str(error))
        self.condition = condition
        self.error = error


def _apply_each(action: Callable[[Node], None], nodes: Iterable[Node]) -> None:
    errors = []
    for node in nodes:
        try:
            action(node)
        except Exception as exc:  # collected and reported together
            errors.append(exc)
    error = aggregate_errors(errors)
    if error is not None:
        raise error


class SubmarinerConfigController:
    """Watches the SubmarinerConfig on the hub and applies it to the managed cluster.

    ``kube_client`` provides ``get_node(name)`` and ``update_node(node)``; the latter
    may raise ConflictError. ``config_client.update_status_condition(namespace, name,
    condition)`` returns the resulting conditions and whether they changed.
    ``node_lister()`` returns the current nodes; ``addon_lister(namespace, name)`` and
    ``config_lister(namespace, name)`` return the object or raise NotFoundError.
    """

    def __init__(
        self,
        cluster_name: str,
        kube_client,
        config_client,
        node_lister: Callable[[], Iterable[Node]],
        addon_lister: Callable[[str, str], ManagedClusterAddOn],
        config_lister: Callable[[str, str], SubmarinerConfig],
        cloud_provider_factory: CloudProviderFactory,
    ):
        self.cluster_name = cluster_name
        self.kube_client = kube_client
        self.config_client = config_client
        self.node_lister = node_lister
        self.addon_lister = addon_lister
        self.config_lister = config_lister
        self.cloud_provider_factory = cloud_provider_factory

    def handles_addon(self, addon: ManagedClusterAddOn) -> bool:
        """Only the submariner add-on triggers a sync."""
        return addon.name == SUBMARINER_ADDON_NAME

    def handles_config(self, config: SubmarinerConfig) -> bool:
        """Only the submariner config triggers a sync."""
        return config.name == SUBMARINER_CONFIG_NAME

    def handles_node(self, node: Node) -> bool:
        """Only changes of worker nodes trigger a sync."""
        return WORKER_NODE_LABEL in node.labels

    def sync(self, recorder: EventRecorder) -> Optional[Condition]:
        """Reconcile the managed cluster with the config; return the reported gateway condition."""
        try:
            addon = self.addon_lister(self.cluster_name, SUBMARINER_ADDON_NAME)
            config = self.config_lister(self.cluster_name, SUBMARINER_CONFIG_NAME)
        except NotFoundError:
            return None

        platform = config.managed_cluster_info.platform
        if not platform:
            return None

        if addon.deletion_timestamp is not None:
            condition = Condition(
                type=SUBMARINER_GATEWAY_CONDITION,
                status=ConditionStatus.FALSE,
                reason="ManagedClusterAddOnDeleted",
                message="There are no nodes labeled as gateways",
            )
            error = None
            try:
                self._cleanup_cluster_environment(config, recorder)
            except Exception as exc:
                error = exc
                condition = failed_condition(str(exc))
            self._report(recorder, config, condition, error)
            return condition

        if config.deletion_timestamp is not None:
            self._cleanup_cluster_environment(config, recorder)
            return None

        if platform == "AWS":
            return self._update_gateway_status(recorder, config)

        if platform == "GCP":
            if not is_status_condition_true(
                config.conditions, SUBMARINER_CONFIG_CONDITION_ENV_PREPARED
            ):
                self._prepare_cluster_environment(config, recorder)
            return self._update_gateway_status(recorder, config)

        try:
            condition = self._ensure_gateways(config)
        except _GatewayLabelingError as exc:
            self._report(recorder, config, exc.condition, exc.error)
            return exc.condition
        self._report(recorder, config, condition)
        return condition

    def _prepare_cluster_environment(
        self, config: SubmarinerConfig, recorder: EventRecorder
    ) -> None:
        errors = []
        try:
            provider = self.cloud_provider_factory.get(
                config.managed_cluster_info, config, recorder
            )
            provider.prepare_submariner_cluster_env()
            condition = Condition(
                type=SUBMARINER_CONFIG_CONDITION_ENV_PREPARED,
                status=ConditionStatus.TRUE,
                reason="SubmarinerClusterEnvPrepared",
                message="Submariner cluster environment was prepared",
            )
        except Exception as exc:
            condition = Condition(
                type=SUBMARINER_CONFIG_CONDITION_ENV_PREPARED,
                status=ConditionStatus.FALSE,
                reason="SubmarinerClusterEnvPreparationFailed",
                message=f"Failed to prepare submariner cluster environment: {exc}",
            )
            errors.append(exc)

        try:
            _, updated = self.config_client.update_status_condition(
                config.namespace, config.name, condition
            )
            if updated:
                recorder.eventf(
                    "SubmarinerClusterEnvPrepared",
                    "submariner cluster environment was prepared for managed cluster %s",
                    config.namespace,
                )
        except Exception as exc:
            errors.append(exc)

        error = aggregate_errors(errors)
        if error is not None:
            raise error

    def _cleanup_cluster_environment(
        self, config: SubmarinerConfig, recorder: EventRecorder
    ) -> None:
        platform = config.managed_cluster_info.platform
        if platform == "GCP":
            try:
                provider = self.cloud_provider_factory.get(
                    config.managed_cluster_info, config, recorder
                )
                provider.clean_up_submariner_cluster_env()
            except Exception as exc:
                raise RuntimeError(
                    f"Failed to clean up the submariner cluster environment: {exc}"
                ) from exc
            return

        if platform != "AWS":
            try:
                self._remove_all_gateways()
            except Exception as exc:
                raise RuntimeError(f"Failed to unlabel the gateway nodes: {exc}") from exc

    def _report(
        self,
        recorder: EventRecorder,
        config: SubmarinerConfig,
        condition: Condition,
        error: Optional[BaseException] = None,
    ) -> None:
        """Write the condition; raise ``error`` if given, else any update failure."""
        try:
            self._update_config_status(recorder, config, condition)
        except Exception:
            if error is None:
                raise
            _log.debug("status update failed while reporting an earlier error", exc_info=True)
        if error is not None:
            raise error

    def _update_config_status(
        self, recorder: EventRecorder, config: SubmarinerConfig, condition: Condition
    ) -> None:
        conditions, updated = self.config_client.update_status_condition(
            config.namespace, config.name, condition
        )
        if updated:
            recorder.eventf(
                "SubmarinerConfigStatusUpdated", "Updated status conditions:  %r", conditions
            )

    def _ensure_gateways(self, config: SubmarinerConfig) -> Condition:
        if config.gateways < 1:
            return Condition(
                type=SUBMARINER_GATEWAY_CONDITION,
                status=ConditionStatus.FALSE,
                reason="InvalidInput",
                message="The desired number of gateways must be at least 1",
            )

        try:
            current = self._nodes_with(labeled=(SUBMARINER_GATEWAY_LABEL,))
        except Exception as exc:
            raise _GatewayLabelingError(
                failed_condition("Error retrieving nodes: %s", exc), exc
            ) from exc

        current_names = [node.name for node in current]
        required = config.gateways - len(current)

        try:
            if required == 0:
                _apply_each(lambda node: self._label_node(config, node), current)
                updated_names = current_names
            elif required > 0:
                updated_names = self._add_gateways(config, required)
            else:
                removed = set(self._remove_gateways(current, -required))
                updated_names = [name for name in current_names if name not in removed]
        except Exception as exc:
            raise _GatewayLabelingError(
                failed_condition("Unable to label the gateway nodes: %s", exc), exc
            ) from exc

        if not updated_names:
            return Condition(
                type=SUBMARINER_GATEWAY_CONDITION,
                status=ConditionStatus.FALSE,
                reason="InsufficientNodes",
                message=(
                    "Insufficient number of worker nodes to satisfy the desired number of gateways"
                ),
            )
        return success_condition(sorted(updated_names))

    def _nodes_with(self, labeled: Iterable[str] = (), unlabeled: Iterable[str] = ()) -> List[Node]:
        labeled, unlabeled = tuple(labeled), tuple(unlabeled)
        return [
            node
            for node in self.node_lister()
            if all(label in node.labels for label in labeled)
            and not any(label in node.labels for label in unlabeled)
        ]

    def _label_node(self, config: SubmarinerConfig, node: Node) -> None:
        natt_port = str(config.ipsec_natt_port)
        if (
            SUBMARINER_GATEWAY_LABEL in node.labels
            and node.labels.get(SUBMARINER_UDP_PORT_LABEL) == natt_port
        ):
            return

        def mutate(target: Node) -> None:
            target.labels[SUBMARINER_GATEWAY_LABEL] = "true"
            target.labels[SUBMARINER_UDP_PORT_LABEL] = natt_port

        self._update_node(node, mutate)

    def _unlabel_node(self, node: Node) -> None:
        if (
            SUBMARINER_GATEWAY_LABEL not in node.labels
            and SUBMARINER_UDP_PORT_LABEL not in node.labels
        ):
            return

        def mutate(target: Node) -> None:
            target.labels.pop(SUBMARINER_GATEWAY_LABEL, None)
            target.labels.pop(SUBMARINER_UDP_PORT_LABEL, None)

        self._update_node(node, mutate)

    def _update_node(self, node: Node, mutate: Callable[[Node], None]) -> None:
        """Apply ``mutate`` to a copy of the node and store it, retrying on conflicts."""
        current: Optional[Node] = node
        delay = _RETRY_DELAY
        for attempt in range(_RETRY_STEPS):
            if current is None:
                current = self.kube_client.get_node(node.name)
            candidate = replace(current, labels=dict(current.labels))
            mutate(candidate)
            try:
                self.kube_client.update_node(candidate)
                return
            except ConflictError:
                if attempt == _RETRY_STEPS - 1:
                    raise
            time.sleep(delay * (1 + random.random() * _RETRY_JITTER))
            delay *= _RETRY_FACTOR
            current = None

    def _add_gateways(self, config: SubmarinerConfig, expected: int) -> List[str]:
        gateways = self._find_gateways_with_zone(expected, DEFAULT_ZONE_LABEL)
        _apply_each(lambda node: self._label_node(config, node), gateways)
        return [node.name for node in gateways]

    def _remove_gateways(self, gateways: List[Node], count: int) -> List[str]:
        selected = gateways[: min(count, len(gateways))]
        _apply_each(self._unlabel_node, selected)
        return [node.name for node in selected]

    def _remove_all_gateways(self) -> None:
        gateways = self._nodes_with(labeled=(SUBMARINER_GATEWAY_LABEL,))
        self._remove_gateways(gateways, len(gateways))

    def _find_gateways_with_zone(self, expected: int, zone_label: str) -> List[Node]:
        """Pick candidate gateways spread over as many zones as possible."""
        workers = self._nodes_with(
            labeled=(WORKER_NODE_LABEL,), unlabeled=(SUBMARINER_GATEWAY_LABEL,)
        )
        if len(workers) < expected:
            return []

        zones: dict = {}
        for worker in workers:
            zones.setdefault(worker.labels.get(zone_label, "unknown"), []).append(worker)

        interleaved = (
            node for group in zip_longest(*zones.values()) for node in group if node is not None
        )
        return list(islice(interleaved, expected))

    def _update_gateway_status(
        self, recorder: EventRecorder, config: SubmarinerConfig
    ) -> Condition:
        gateways = self._nodes_with(labeled=(WORKER_NODE_LABEL, SUBMARINER_GATEWAY_LABEL))
        names = [node.name for node in gateways]

        if config.gateways != len(gateways):
            condition = Condition(
                type=SUBMARINER_GATEWAY_CONDITION,
                status=ConditionStatus.FALSE,
                reason="InsufficientNodes",
                message=(
                    f"The {len(names)} worker nodes labeled as gateways "
                    f"({_quote(','.join(names))}) does not match the desired number "
                    f"{config.gateways}"
                ),
            )
        else:
            condition = success_condition(names)

        self._update_config_status(recorder, config, condition)
        return condition
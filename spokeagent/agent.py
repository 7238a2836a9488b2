"""Options of the spoke agent that runs the submariner status controllers."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from typing import NamedTuple, Optional, Sequence

DEFAULT_INSTALLATION_NAMESPACE = "submariner-operator"
SUBMARINER_ADDON_NAME = "submariner"


class GroupVersionResource(NamedTuple):
    """Identifies a kind of resource served by the API server."""

    group: str
    version: str
    resource: str


SUBMARINER_GVR = GroupVersionResource("submariner.io", "v1alpha1", "submariners")
SUBSCRIPTION_GVR = GroupVersionResource("operators.coreos.com", "v1alpha1", "subscriptions")


@dataclass
class AgentOptions:
    """Settings the agent needs to connect to the hub and the managed cluster."""

    installation_namespace: str = ""
    hub_kubeconfig_file: str = ""
    cluster_name: str = ""

    def add_flags(self, parser: argparse.ArgumentParser) -> None:
        """Register the agent's command-line flags, defaulting to the current values."""
        parser.add_argument(
            "--hub-kubeconfig",
            dest="hub_kubeconfig_file",
            default=self.hub_kubeconfig_file,
            help="Location of kubeconfig file to connect to hub cluster.",
        )
        parser.add_argument(
            "--cluster-name",
            dest="cluster_name",
            default=self.cluster_name,
            help="Name of managed cluster.",
        )

    def complete(self, current_namespace: Optional[str]) -> None:
        """Set the installation namespace, falling back to the default one."""
        self.installation_namespace = current_namespace or DEFAULT_INSTALLATION_NAMESPACE

    def validate(self) -> None:
        """Raise ValueError if a required option is missing."""
        if not self.hub_kubeconfig_file:
            raise ValueError("hub-kubeconfig is required")
        if not self.cluster_name:
            raise ValueError("cluster name is empty")


def parse_options(argv: Optional[Sequence[str]] = None) -> AgentOptions:
    """Parse command-line arguments into AgentOptions."""
    options = AgentOptions()
    parser = argparse.ArgumentParser(prog="agent", description="Run the submariner add-on agent.")
    options.add_flags(parser)
    namespace = parser.parse_args(argv)
    options.hub_kubeconfig_file = namespace.hub_kubeconfig_file
    options.cluster_name = namespace.cluster_name
    return options
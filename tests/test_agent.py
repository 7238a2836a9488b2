import argparse

import pytest

from spokeagent.agent import AgentOptions, parse_options


def test_parse_options_reads_flags():
    options = parse_options(["--hub-kubeconfig", "/tmp/hub.kubeconfig", "--cluster-name", "cluster1"])
    assert options.hub_kubeconfig_file == "/tmp/hub.kubeconfig"
    assert options.cluster_name == "cluster1"


def test_parse_options_defaults_to_empty():
    options = parse_options([])
    assert options.hub_kubeconfig_file == ""
    assert options.cluster_name == ""


def test_add_flags_uses_current_values_as_defaults():
    options = AgentOptions(hub_kubeconfig_file="/etc/hub", cluster_name="c")
    parser = argparse.ArgumentParser()
    options.add_flags(parser)
    namespace = parser.parse_args([])
    assert namespace.hub_kubeconfig_file == "/etc/hub"
    assert namespace.cluster_name == "c"


def test_complete_falls_back_to_default_namespace():
    options = AgentOptions()
    options.complete(None)
    assert options.installation_namespace == "submariner-operator"


def test_complete_uses_current_namespace():
    options = AgentOptions()
    options.complete("open-cluster-management-agent-addon")
    assert options.installation_namespace == "open-cluster-management-agent-addon"


def test_validate_requires_hub_kubeconfig():
    options = AgentOptions(cluster_name="cluster1")
    with pytest.raises(ValueError, match="hub-kubeconfig is required"):
        options.validate()


def test_validate_requires_cluster_name():
    options = AgentOptions(hub_kubeconfig_file="/tmp/hub.kubeconfig")
    with pytest.raises(ValueError, match="cluster name is empty"):
        options.validate()


def test_validate_accepts_complete_options():
    options = parse_options(["--hub-kubeconfig", "/tmp/hub.kubeconfig", "--cluster-name", "cluster1"])
    options.complete(None)
    options.validate()
    assert (options.installation_namespace, options.cluster_name) == ("submariner-operator", "cluster1")
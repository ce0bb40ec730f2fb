"""Shared fixtures: an in-memory Linode API and secret store."""

from __future__ import annotations

import itertools
from typing import Any

import pytest

from nodebalancer_reconciler.exceptions import LinodeNotFoundError, SecretNotFoundError
from nodebalancer_reconciler.linode.loadbalancers import LoadBalancers
from nodebalancer_reconciler.linode.models import NodeBalancer, NodeBalancerConfig, NodeBalancerNode


class FakeLinodeClient:
    """Stateful stand-in for LinodeClient; records every mutating call."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.nodebalancers: dict[int, dict[str, Any]] = {}
        self.configs: dict[int, dict[int, dict[str, Any]]] = {}
        self.nodes: dict[int, dict[int, dict[str, Any]]] = {}
        self.calls: list[tuple] = []

    # NodeBalancers

    def list_nodebalancers(self, filters=None, ctx=None) -> list[NodeBalancer]:
        label = (filters or {}).get("label")
        return [
            NodeBalancer.from_api(nb) for nb in self.nodebalancers.values()
            if label is None or nb["label"] == label
        ]

    def get_nodebalancer(self, nodebalancer_id, ctx=None) -> NodeBalancer:
        return NodeBalancer.from_api(self._nb(nodebalancer_id))

    def create_nodebalancer(self, data, ctx=None) -> NodeBalancer:
        nb_id = next(self._ids)
        self.calls.append(("create_nodebalancer", data))
        self.nodebalancers[nb_id] = {
            "id": nb_id,
            "hostname": f"nb-{nb_id}.newark.nodebalancer.linode.com",
            "ipv4": f"192.0.2.{nb_id}",
            "ipv6": None,
            **data,
        }
        self.configs[nb_id] = {}
        return NodeBalancer.from_api(self.nodebalancers[nb_id])

    def update_nodebalancer(self, nodebalancer_id, data, ctx=None) -> NodeBalancer:
        self.calls.append(("update_nodebalancer", nodebalancer_id, data))
        self._nb(nodebalancer_id).update(data)
        return NodeBalancer.from_api(self._nb(nodebalancer_id))

    def delete_nodebalancer(self, nodebalancer_id, ctx=None) -> None:
        self.calls.append(("delete_nodebalancer", nodebalancer_id))
        self._nb(nodebalancer_id)
        for config_id in self.configs.pop(nodebalancer_id):
            self.nodes.pop(config_id, None)
        del self.nodebalancers[nodebalancer_id]

    # Configs

    def list_configs(self, nodebalancer_id, ctx=None) -> list[NodeBalancerConfig]:
        self._nb(nodebalancer_id)
        return [NodeBalancerConfig.from_api(c) for c in self.configs[nodebalancer_id].values()]

    def create_config(self, nodebalancer_id, data, ctx=None) -> NodeBalancerConfig:
        self._nb(nodebalancer_id)
        config_id = next(self._ids)
        self.calls.append(("create_config", nodebalancer_id, data))
        self.configs[nodebalancer_id][config_id] = {"id": config_id, "nodebalancer_id": nodebalancer_id, **data}
        self.nodes[config_id] = {}
        return NodeBalancerConfig.from_api(self.configs[nodebalancer_id][config_id])

    def update_config(self, nodebalancer_id, config_id, data, ctx=None) -> NodeBalancerConfig:
        self.calls.append(("update_config", nodebalancer_id, config_id, data))
        config = self._config(nodebalancer_id, config_id)
        config.update(data)
        return NodeBalancerConfig.from_api(config)

    def delete_config(self, nodebalancer_id, config_id, ctx=None) -> None:
        self.calls.append(("delete_config", nodebalancer_id, config_id))
        self._config(nodebalancer_id, config_id)
        del self.configs[nodebalancer_id][config_id]
        self.nodes.pop(config_id, None)

    # Nodes

    def list_nodes(self, nodebalancer_id, config_id, ctx=None) -> list[NodeBalancerNode]:
        self._config(nodebalancer_id, config_id)
        return [NodeBalancerNode.from_api(n) for n in self.nodes[config_id].values()]

    def create_node(self, nodebalancer_id, config_id, data, ctx=None) -> NodeBalancerNode:
        self._config(nodebalancer_id, config_id)
        node_id = next(self._ids)
        self.calls.append(("create_node", nodebalancer_id, config_id, data))
        self.nodes[config_id][node_id] = {"id": node_id, "config_id": config_id, **data}
        return NodeBalancerNode.from_api(self.nodes[config_id][node_id])

    def delete_node(self, nodebalancer_id, config_id, node_id, ctx=None) -> None:
        self.calls.append(("delete_node", nodebalancer_id, config_id, node_id))
        self._config(nodebalancer_id, config_id)
        if node_id not in self.nodes[config_id]:
            raise LinodeNotFoundError()
        del self.nodes[config_id][node_id]

    # Helpers

    def mutating_calls(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    def _nb(self, nodebalancer_id) -> dict[str, Any]:
        if nodebalancer_id not in self.nodebalancers:
            raise LinodeNotFoundError()
        return self.nodebalancers[nodebalancer_id]

    def _config(self, nodebalancer_id, config_id) -> dict[str, Any]:
        self._nb(nodebalancer_id)
        if config_id not in self.configs[nodebalancer_id]:
            raise LinodeNotFoundError()
        return self.configs[nodebalancer_id][config_id]


class FakeSecretStore:
    def __init__(self, secrets: dict[tuple[str, str], dict[str, bytes]] | None = None) -> None:
        self.secrets = secrets or {}
        self.lookups: list[tuple[str, str]] = []

    def get_secret(self, namespace, name, ctx=None) -> dict[str, bytes]:
        self.lookups.append((namespace, name))
        if (namespace, name) not in self.secrets:
            raise SecretNotFoundError(namespace, name)
        return self.secrets[(namespace, name)]


@pytest.fixture
def fake_client():
    return FakeLinodeClient()


@pytest.fixture
def secret_store():
    return FakeSecretStore({
        ("default", "tls-secret"): {"tls.crt": b"CERT", "tls.key": b"KEY"},
    })


@pytest.fixture
def load_balancers(fake_client, secret_store):
    return LoadBalancers(fake_client, "us-east", secret_store)

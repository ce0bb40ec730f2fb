"""Data models for Linode NodeBalancer resources and the payloads sent to create them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Linode labels are limited to 32 characters.
MAX_LABEL_LENGTH = 32


@dataclass(frozen=True)
class NodeBalancer:
    """A NodeBalancer as returned by the Linode API."""

    id: int
    label: str
    region: str
    client_conn_throttle: int = 0
    hostname: str | None = None
    ipv4: str | None = None
    ipv6: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> NodeBalancer:
        return cls(
            id=data["id"],
            label=data.get("label") or "",
            region=data.get("region") or "",
            client_conn_throttle=data.get("client_conn_throttle") or 0,
            hostname=data.get("hostname"),
            ipv4=data.get("ipv4"),
            ipv6=data.get("ipv6"),
        )


@dataclass(frozen=True)
class NodeBalancerConfig:
    """One listening port on a NodeBalancer."""

    id: int
    port: int
    protocol: str
    check: str = "connection"
    algorithm: str = "roundrobin"
    nodebalancer_id: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> NodeBalancerConfig:
        return cls(
            id=data["id"],
            port=data["port"],
            protocol=data.get("protocol") or "",
            check=data.get("check") or "none",
            algorithm=data.get("algorithm") or "roundrobin",
            nodebalancer_id=data.get("nodebalancer_id"),
        )


@dataclass(frozen=True)
class NodeBalancerNode:
    """A backend registered under a NodeBalancer config."""

    id: int
    address: str  # "ip:port"
    label: str = ""
    config_id: int | None = None
    status: str = "unknown"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> NodeBalancerNode:
        return cls(
            id=data["id"],
            address=data.get("address") or "",
            label=data.get("label") or "",
            config_id=data.get("config_id"),
            status=data.get("status") or "unknown",
        )


@dataclass(frozen=True)
class NodeRequest:
    address: str
    label: str
    weight: int = 100
    mode: str = "accept"

    def to_payload(self) -> dict[str, Any]:
        return {"address": self.address, "label": self.label, "weight": self.weight, "mode": self.mode}


@dataclass(frozen=True)
class ConfigRequest:
    """Desired state of one NodeBalancer config, including its backends."""

    port: int
    protocol: str
    check: str
    ssl_cert: str | None = None
    ssl_key: str | None = None
    algorithm: str = "roundrobin"
    nodes: list[NodeRequest] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Body for config create/update calls; nodes are registered separately."""
        payload: dict[str, Any] = {
            "port": self.port,
            "protocol": self.protocol,
            "check": self.check,
            "algorithm": self.algorithm,
        }
        if self.ssl_cert is not None:
            payload["ssl_cert"] = self.ssl_cert
            payload["ssl_key"] = self.ssl_key
        return payload


@dataclass(frozen=True)
class NodeBalancerRequest:
    label: str
    region: str
    client_conn_throttle: int
    configs: list[ConfigRequest] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Body for the NodeBalancer create call; configs are created separately."""
        return {
            "label": self.label,
            "region": self.region,
            "client_conn_throttle": self.client_conn_throttle,
        }


@dataclass(frozen=True)
class LoadBalancerIngress:
    ip: str
    hostname: str | None = None


@dataclass(frozen=True)
class LoadBalancerStatus:
    """Externally visible address of a load balancer, returned to the orchestrator."""

    ingress: list[LoadBalancerIngress] = field(default_factory=list)

    @classmethod
    def from_nodebalancer(cls, nb: NodeBalancer) -> LoadBalancerStatus:
        if not nb.ipv4:
            return cls(ingress=[])
        return cls(ingress=[LoadBalancerIngress(ip=nb.ipv4, hostname=nb.hostname)])

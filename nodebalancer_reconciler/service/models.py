"""Data models for service and node descriptors handed in by the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

NODE_INTERNAL_IP = "InternalIP"


class Protocol(str, Enum):
    TCP = "tcp"
    HTTP = "http"
    HTTPS = "https"


class HealthCheckType(str, Enum):
    CONNECTION = "connection"
    HTTP = "http"


@dataclass(frozen=True)
class ServicePort:
    name: str
    port: int
    node_port: int
    protocol: str = "TCP"  # L4 protocol as declared on the service


@dataclass
class ServiceDescriptor:
    """Desired exposure of one service: identity, annotations and ports."""

    name: str
    namespace: str = "default"
    uid: str = ""
    annotations: dict[str, str] = field(default_factory=dict)
    ports: list[ServicePort] = field(default_factory=list)

    @classmethod
    def from_manifest(cls, manifest: dict[str, Any]) -> ServiceDescriptor:
        """Build a descriptor from a decoded Kubernetes ``Service`` object."""
        metadata = manifest.get("metadata") or {}
        spec = manifest.get("spec") or {}
        ports = [
            ServicePort(
                name=p.get("name", ""),
                port=int(p["port"]),
                node_port=int(p.get("nodePort") or 0),
                protocol=p.get("protocol", "TCP"),
            )
            for p in spec.get("ports") or []
        ]
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace") or "default",
            uid=metadata.get("uid") or "",
            annotations={k: str(v) for k, v in (metadata.get("annotations") or {}).items()},
            ports=ports,
        )


@dataclass(frozen=True)
class NodeAddress:
    type: str
    address: str


@dataclass
class NodeDescriptor:
    """A backend compute node eligible to receive traffic."""

    name: str
    addresses: list[NodeAddress] = field(default_factory=list)

    @classmethod
    def from_manifest(cls, manifest: dict[str, Any]) -> NodeDescriptor:
        """Build a descriptor from a decoded Kubernetes ``Node`` object."""
        metadata = manifest.get("metadata") or {}
        status = manifest.get("status") or {}
        return cls(
            name=metadata.get("name", ""),
            addresses=[
                NodeAddress(type=a.get("type", ""), address=a.get("address", ""))
                for a in status.get("addresses") or []
            ],
        )


@dataclass(frozen=True)
class PortConfig:
    """Resolved settings for one exposed port, recomputed on every reconcile."""

    port: int
    protocol: Protocol = Protocol.TCP
    tls_secret_name: str = ""
    health_check_type: HealthCheckType = HealthCheckType.CONNECTION
    throttle: int = 20


@dataclass(frozen=True)
class PortConfigAnnotation:
    """Decoded per-port JSON annotation; fields left empty when not given."""

    tls_secret_name: str = ""
    protocol: str = ""


@dataclass(frozen=True)
class Certificate:
    cert_pem: str
    key_pem: str


def get_node_internal_ip(node: NodeDescriptor) -> str:
    """Return the node's first InternalIP address, or "" when it has none."""
    for addr in node.addresses:
        if addr.type == NODE_INTERNAL_IP:
            return addr.address
    return ""


def load_service_manifests(path: str | Path) -> list[ServiceDescriptor]:
    """Read every ``kind: Service`` document from a multi-document YAML file."""
    with open(path) as f:
        documents = list(yaml.safe_load_all(f))
    return [
        ServiceDescriptor.from_manifest(doc)
        for doc in documents
        if isinstance(doc, dict) and doc.get("kind") == "Service"
    ]

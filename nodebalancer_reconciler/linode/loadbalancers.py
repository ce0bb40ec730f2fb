"""NodeBalancer reconciliation: converge a Linode NodeBalancer to a service descriptor."""

from __future__ import annotations

import logging
import time

from ..context import ReconcileContext
from ..exceptions import LinodeNotFoundError, LoadBalancerNotFoundError
from ..service import SecretStore
from ..service.annotations import get_connection_throttle, get_port_config
from ..service.models import NodeDescriptor, Protocol, ServiceDescriptor, ServicePort, get_node_internal_ip
from ..service.secrets import get_tls_cert_info
from .api_client import LinodeClient
from .models import (
    MAX_LABEL_LENGTH,
    ConfigRequest,
    LoadBalancerStatus,
    NodeBalancer,
    NodeBalancerConfig,
    NodeBalancerRequest,
    NodeRequest,
)

logger = logging.getLogger(__name__)


def get_load_balancer_name(service: ServiceDescriptor) -> str:
    """Deterministic NodeBalancer label for a service.

    "a" + the service UID without dashes, or "a" + the service name when the
    UID is unset, truncated to the Linode label limit.
    """
    ident = service.uid.replace("-", "") if service.uid else service.name
    return f"a{ident}"[:MAX_LABEL_LENGTH]


class LoadBalancers:
    """Creates, updates and deletes the NodeBalancer backing each service.

    Every entry point is safe to re-invoke after any failure: the desired state
    is recomputed from the descriptor and diffed against what Linode reports.
    The caller serializes calls per service; no locking happens here.
    """

    def __init__(self, client: LinodeClient, region: str, secret_store: SecretStore):
        self._client = client
        self._region = region
        self._secret_store = secret_store

    # ── Lookup ──────────────────────────────────────────────────────

    def _lb_by_name(self, name: str, ctx: ReconcileContext | None = None) -> NodeBalancer | None:
        """Return the NodeBalancer labelled ``name``, or None if there is none yet."""
        for nb in self._client.list_nodebalancers(filters={"label": name}, ctx=ctx):
            if nb.label == name:
                return nb
        return None

    def get_load_balancer(
        self, cluster_name: str, service: ServiceDescriptor, ctx: ReconcileContext | None = None,
    ) -> tuple[LoadBalancerStatus | None, bool]:
        nb = self._lb_by_name(get_load_balancer_name(service), ctx)
        if nb is None:
            return None, False
        return LoadBalancerStatus.from_nodebalancer(nb), True

    # ── Ensure / Update / Delete ────────────────────────────────────

    def ensure_load_balancer(
        self,
        cluster_name: str,
        service: ServiceDescriptor,
        nodes: list[NodeDescriptor],
        ctx: ReconcileContext | None = None,
    ) -> LoadBalancerStatus:
        start = time.monotonic()
        name = get_load_balancer_name(service)
        extra = {"service": _service_key(service)}

        # Resolve everything first so validation errors leave Linode untouched.
        request = self.build_load_balancer_request(service, nodes, ctx)

        nb = self._lb_by_name(name, ctx)
        if nb is None:
            logger.info("Creating NodeBalancer %s with %d configs", name, len(request.configs), extra=extra)
            nb = self.create_node_balancer(service, request.configs, ctx)
        else:
            logger.info("NodeBalancer %s exists (id %d), updating", name, nb.id, extra=extra)
            desired = {config.port: config for config in request.configs}
            self._update_node_balancer(nb, service, desired, ctx)
            nb = self._client.get_nodebalancer(nb.id, ctx=ctx)

        logger.info(
            "Ensured NodeBalancer %s",
            name,
            extra={**extra, "nodebalancer": nb.id, "elapsed_seconds": round(time.monotonic() - start, 2)},
        )
        return LoadBalancerStatus.from_nodebalancer(nb)

    def update_load_balancer(
        self,
        cluster_name: str,
        service: ServiceDescriptor,
        nodes: list[NodeDescriptor],
        ctx: ReconcileContext | None = None,
    ) -> None:
        """Converge an existing NodeBalancer. Raises LoadBalancerNotFoundError if absent."""
        # Resolve everything first so validation errors leave Linode untouched.
        desired = self._build_config_requests(service, nodes, ctx)

        name = get_load_balancer_name(service)
        nb = self._lb_by_name(name, ctx)
        if nb is None:
            raise LoadBalancerNotFoundError(name)
        self._update_node_balancer(nb, service, desired, ctx)

    def ensure_load_balancer_deleted(
        self, cluster_name: str, service: ServiceDescriptor, ctx: ReconcileContext | None = None,
    ) -> None:
        name = get_load_balancer_name(service)
        extra = {"service": _service_key(service)}

        nb = self._lb_by_name(name, ctx)
        if nb is None:
            logger.info("NodeBalancer %s already absent", name, extra=extra)
            return

        logger.info("Deleting NodeBalancer %s", name, extra={**extra, "nodebalancer": nb.id})
        try:
            self._client.delete_nodebalancer(nb.id, ctx=ctx)
        except LinodeNotFoundError:
            logger.info("NodeBalancer %s vanished before delete", name, extra=extra)

    # ── Request building ────────────────────────────────────────────

    def build_load_balancer_request(
        self,
        service: ServiceDescriptor,
        nodes: list[NodeDescriptor],
        ctx: ReconcileContext | None = None,
    ) -> NodeBalancerRequest:
        configs = self._build_config_requests(service, nodes, ctx)
        return NodeBalancerRequest(
            label=get_load_balancer_name(service),
            region=self._region,
            client_conn_throttle=get_connection_throttle(service),
            configs=list(configs.values()),
        )

    def _build_config_requests(
        self,
        service: ServiceDescriptor,
        nodes: list[NodeDescriptor],
        ctx: ReconcileContext | None,
    ) -> dict[int, ConfigRequest]:
        """Desired configs keyed by external port, in service port order."""
        return {port.port: self._build_config_request(service, port, nodes, ctx) for port in service.ports}

    def _build_config_request(
        self,
        service: ServiceDescriptor,
        port: ServicePort,
        nodes: list[NodeDescriptor],
        ctx: ReconcileContext | None,
    ) -> ConfigRequest:
        port_config = get_port_config(service, port.port)

        ssl_cert = ssl_key = None
        if port_config.protocol is Protocol.HTTPS:
            cert = get_tls_cert_info(self._secret_store, service.namespace, port_config, ctx)
            ssl_cert, ssl_key = cert.cert_pem, cert.key_pem

        return ConfigRequest(
            port=port.port,
            protocol=port_config.protocol.value,
            check=port_config.health_check_type.value,
            ssl_cert=ssl_cert,
            ssl_key=ssl_key,
            nodes=_build_node_requests(port.node_port, nodes),
        )

    # ── Creation ────────────────────────────────────────────────────

    def create_node_balancer(
        self,
        service: ServiceDescriptor,
        configs: list[ConfigRequest],
        ctx: ReconcileContext | None = None,
    ) -> NodeBalancer:
        request = NodeBalancerRequest(
            label=get_load_balancer_name(service),
            region=self._region,
            client_conn_throttle=get_connection_throttle(service),
        )
        nb = self._client.create_nodebalancer(request.to_payload(), ctx=ctx)
        logger.info(
            "Created NodeBalancer %s in %s", nb.label, nb.region,
            extra={"service": _service_key(service), "nodebalancer": nb.id},
        )
        for config in configs:
            self._create_config(nb, config, ctx)
        return nb

    def _create_config(self, nb: NodeBalancer, request: ConfigRequest, ctx: ReconcileContext | None) -> None:
        config = self._client.create_config(nb.id, request.to_payload(), ctx=ctx)
        logger.info(
            "Created %s config on port %d with %d nodes",
            request.protocol, request.port, len(request.nodes),
            extra={"nodebalancer": nb.id, "port": request.port, "config_id": config.id},
        )
        for node in request.nodes:
            self._client.create_node(nb.id, config.id, node.to_payload(), ctx=ctx)

    # ── Update ──────────────────────────────────────────────────────

    def _update_node_balancer(
        self,
        nb: NodeBalancer,
        service: ServiceDescriptor,
        desired: dict[int, ConfigRequest],
        ctx: ReconcileContext | None,
    ) -> None:
        throttle = get_connection_throttle(service)
        if nb.client_conn_throttle != throttle:
            logger.info(
                "Updating client_conn_throttle %d -> %d", nb.client_conn_throttle, throttle,
                extra={"nodebalancer": nb.id},
            )
            self._client.update_nodebalancer(nb.id, {"client_conn_throttle": throttle}, ctx=ctx)

        existing: dict[int, NodeBalancerConfig] = {}
        stale: list[NodeBalancerConfig] = []
        for config in self._client.list_configs(nb.id, ctx=ctx):
            if config.port in desired and config.port not in existing:
                existing[config.port] = config
            else:
                stale.append(config)

        # Add and update before deleting so a port change never drops every config.
        for port, request in desired.items():
            current = existing.get(port)
            if current is None:
                self._create_config(nb, request, ctx)
                continue
            self._update_config(nb, current, request, ctx)
            self._reconcile_nodes(nb, current, request, ctx)

        for config in stale:
            logger.info(
                "Deleting config on port %d", config.port,
                extra={"nodebalancer": nb.id, "port": config.port, "config_id": config.id},
            )
            self._client.delete_config(nb.id, config.id, ctx=ctx)

    def _update_config(
        self,
        nb: NodeBalancer,
        current: NodeBalancerConfig,
        request: ConfigRequest,
        ctx: ReconcileContext | None,
    ) -> None:
        # Stored certificates come back redacted, so https configs are always re-sent.
        changed = (
            current.protocol != request.protocol
            or current.check != request.check
            or request.ssl_cert is not None
        )
        if not changed:
            return
        logger.info(
            "Updating config on port %d (%s -> %s)", request.port, current.protocol, request.protocol,
            extra={"nodebalancer": nb.id, "port": request.port, "config_id": current.id},
        )
        self._client.update_config(nb.id, current.id, request.to_payload(), ctx=ctx)

    def _reconcile_nodes(
        self,
        nb: NodeBalancer,
        config: NodeBalancerConfig,
        request: ConfigRequest,
        ctx: ReconcileContext | None,
    ) -> None:
        desired = {node.address: node for node in request.nodes}
        registered: set[str] = set()
        to_remove = []
        for node in self._client.list_nodes(nb.id, config.id, ctx=ctx):
            if node.address in desired and node.address not in registered:
                registered.add(node.address)
            else:
                to_remove.append(node)

        # Register first: removing before adding could leave the port with no backend.
        for address, node in desired.items():
            if address not in registered:
                logger.info(
                    "Registering node %s", address,
                    extra={"nodebalancer": nb.id, "port": config.port, "config_id": config.id},
                )
                self._client.create_node(nb.id, config.id, node.to_payload(), ctx=ctx)

        for node in to_remove:
            logger.info(
                "Deregistering node %s", node.address,
                extra={"nodebalancer": nb.id, "port": config.port, "config_id": config.id},
            )
            self._client.delete_node(nb.id, config.id, node.id, ctx=ctx)


def _build_node_requests(node_port: int, nodes: list[NodeDescriptor]) -> list[NodeRequest]:
    """Backend entries for every node with an internal IP, one per address."""
    requests: dict[str, NodeRequest] = {}
    for node in nodes:
        ip = get_node_internal_ip(node)
        if not ip:
            logger.debug("Node %s has no internal IP, skipping", node.name)
            continue
        address = f"{ip}:{node_port}"
        if address not in requests:
            requests[address] = NodeRequest(address=address, label=(node.name or ip)[:MAX_LABEL_LENGTH])
    return list(requests.values())


def _service_key(service: ServiceDescriptor) -> str:
    return f"{service.namespace}/{service.name}"

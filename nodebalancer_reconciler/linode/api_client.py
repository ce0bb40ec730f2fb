"""REST client for the Linode NodeBalancer API (v4)."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterator

import requests

from ..config import LinodeConfig
from ..context import ReconcileContext
from ..exceptions import LinodeAPIError, LinodeNotFoundError, ReconcileCancelled
from .models import NodeBalancer, NodeBalancerConfig, NodeBalancerNode

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class LinodeClient:
    """Thin wrapper around the NodeBalancer endpoints of the Linode API.

    Session headers are set once here and never changed per call, and the
    API sets no cookies. requests does not promise Session thread safety, so
    callers that reconcile from several threads should give each thread its
    own client.
    """

    def __init__(self, config: LinodeConfig):
        self._base = config.api_url.rstrip("/")
        self._session = requests.Session()
        self._session.headers["Authorization"] = f"Bearer {config.token}"
        self._session.headers["Content-Type"] = "application/json"
        self._session.headers["User-Agent"] = config.user_agent
        self._session.verify = config.verify_ssl
        self._timeout = config.timeout

    # ── NodeBalancers ───────────────────────────────────────────────

    def list_nodebalancers(
        self, filters: dict[str, Any] | None = None, ctx: ReconcileContext | None = None,
    ) -> list[NodeBalancer]:
        return [NodeBalancer.from_api(d) for d in self._paginate("/nodebalancers", filters, ctx)]

    def get_nodebalancer(self, nodebalancer_id: int, ctx: ReconcileContext | None = None) -> NodeBalancer:
        resp = self._get(f"/nodebalancers/{nodebalancer_id}", ctx=ctx)
        return NodeBalancer.from_api(resp.json())

    def create_nodebalancer(self, data: dict[str, Any], ctx: ReconcileContext | None = None) -> NodeBalancer:
        resp = self._post("/nodebalancers", json=data, ctx=ctx)
        return NodeBalancer.from_api(resp.json())

    def update_nodebalancer(
        self, nodebalancer_id: int, data: dict[str, Any], ctx: ReconcileContext | None = None,
    ) -> NodeBalancer:
        resp = self._put(f"/nodebalancers/{nodebalancer_id}", json=data, ctx=ctx)
        return NodeBalancer.from_api(resp.json())

    def delete_nodebalancer(self, nodebalancer_id: int, ctx: ReconcileContext | None = None) -> None:
        self._delete(f"/nodebalancers/{nodebalancer_id}", ctx=ctx)

    # ── Configs ─────────────────────────────────────────────────────

    def list_configs(self, nodebalancer_id: int, ctx: ReconcileContext | None = None) -> list[NodeBalancerConfig]:
        path = f"/nodebalancers/{nodebalancer_id}/configs"
        return [NodeBalancerConfig.from_api(d) for d in self._paginate(path, None, ctx)]

    def create_config(
        self, nodebalancer_id: int, data: dict[str, Any], ctx: ReconcileContext | None = None,
    ) -> NodeBalancerConfig:
        resp = self._post(f"/nodebalancers/{nodebalancer_id}/configs", json=data, ctx=ctx)
        return NodeBalancerConfig.from_api(resp.json())

    def update_config(
        self, nodebalancer_id: int, config_id: int, data: dict[str, Any], ctx: ReconcileContext | None = None,
    ) -> NodeBalancerConfig:
        resp = self._put(f"/nodebalancers/{nodebalancer_id}/configs/{config_id}", json=data, ctx=ctx)
        return NodeBalancerConfig.from_api(resp.json())

    def delete_config(self, nodebalancer_id: int, config_id: int, ctx: ReconcileContext | None = None) -> None:
        self._delete(f"/nodebalancers/{nodebalancer_id}/configs/{config_id}", ctx=ctx)

    # ── Nodes ───────────────────────────────────────────────────────

    def list_nodes(
        self, nodebalancer_id: int, config_id: int, ctx: ReconcileContext | None = None,
    ) -> list[NodeBalancerNode]:
        path = f"/nodebalancers/{nodebalancer_id}/configs/{config_id}/nodes"
        return [NodeBalancerNode.from_api(d) for d in self._paginate(path, None, ctx)]

    def create_node(
        self, nodebalancer_id: int, config_id: int, data: dict[str, Any], ctx: ReconcileContext | None = None,
    ) -> NodeBalancerNode:
        resp = self._post(f"/nodebalancers/{nodebalancer_id}/configs/{config_id}/nodes", json=data, ctx=ctx)
        return NodeBalancerNode.from_api(resp.json())

    def delete_node(
        self, nodebalancer_id: int, config_id: int, node_id: int, ctx: ReconcileContext | None = None,
    ) -> None:
        self._delete(f"/nodebalancers/{nodebalancer_id}/configs/{config_id}/nodes/{node_id}", ctx=ctx)

    # ── Internal HTTP helpers ───────────────────────────────────────

    def _paginate(
        self, path: str, filters: dict[str, Any] | None, ctx: ReconcileContext | None,
    ) -> Iterator[dict[str, Any]]:
        headers = {"X-Filter": json.dumps(filters)} if filters else None
        page = 1
        while True:
            resp = self._get(path, params={"page": page, "page_size": PAGE_SIZE}, headers=headers, ctx=ctx)
            body = resp.json()
            yield from body.get("data", [])
            if page >= body.get("pages", 1):
                return
            page += 1

    def _get(self, path: str, params: dict | None = None, headers: dict | None = None,
             ctx: ReconcileContext | None = None) -> requests.Response:
        return self._request("GET", path, params=params, headers=headers, ctx=ctx)

    def _post(self, path: str, json: Any = None, ctx: ReconcileContext | None = None) -> requests.Response:
        return self._request("POST", path, json=json, ctx=ctx)

    def _put(self, path: str, json: Any = None, ctx: ReconcileContext | None = None) -> requests.Response:
        return self._request("PUT", path, json=json, ctx=ctx)

    def _delete(self, path: str, ctx: ReconcileContext | None = None) -> requests.Response:
        return self._request("DELETE", path, ctx=ctx)

    def _request(self, method: str, path: str, ctx: ReconcileContext | None = None, **kwargs) -> requests.Response:
        url = f"{self._base}{path}"
        timeout: float = self._timeout
        if ctx is not None:
            ctx.check()
            timeout = ctx.timeout_for(self._timeout)
        kwargs["timeout"] = timeout
        logger.debug("%s %s params=%s", method, path, kwargs.get("params"))

        try:
            resp = self._session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            if ctx is not None and ctx.done:
                raise ReconcileCancelled(f"{method} {path} aborted: {exc}") from exc
            raise LinodeAPIError(f"Request failed: {exc}") from exc

        if resp.status_code == 404:
            raise LinodeNotFoundError(f"HTTP 404 on {method} {path}: {resp.text}", response_body=resp.text)

        if resp.status_code >= 400:
            raise LinodeAPIError(
                f"HTTP {resp.status_code} on {method} {path}: {resp.text}",
                status_code=resp.status_code,
                response_body=resp.text,
            )

        return resp

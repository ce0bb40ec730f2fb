"""Tests for the Linode API client."""

import json

import pytest
import requests
import responses
from responses import matchers

from nodebalancer_reconciler.config import LinodeConfig
from nodebalancer_reconciler.context import ReconcileContext
from nodebalancer_reconciler.exceptions import LinodeAPIError, LinodeNotFoundError, ReconcileCancelled
from nodebalancer_reconciler.linode.api_client import LinodeClient

BASE = "https://api.linode.com/v4"

NB = {
    "id": 12,
    "label": "afoobar123",
    "region": "us-east",
    "client_conn_throttle": 15,
    "hostname": "nb-12.newark.nodebalancer.linode.com",
    "ipv4": "203.0.113.12",
    "ipv6": "2600:3c03::f03c:91ff:fe24:12",
}


def _page(data, page=1, pages=1):
    return {"data": data, "page": page, "pages": pages, "results": len(data)}


@pytest.fixture
def client():
    return LinodeClient(LinodeConfig(token="secret-token", region="us-east"))


class TestNodeBalancers:
    @responses.activate
    def test_list_sends_filter_and_auth(self, client):
        responses.add(
            responses.GET, f"{BASE}/nodebalancers",
            json=_page([NB]),
            match=[
                matchers.header_matcher({
                    "X-Filter": json.dumps({"label": "afoobar123"}),
                    "Authorization": "Bearer secret-token",
                }),
            ],
        )
        result = client.list_nodebalancers(filters={"label": "afoobar123"})
        assert len(result) == 1
        assert result[0].id == 12
        assert result[0].ipv4 == "203.0.113.12"

    @responses.activate
    def test_list_follows_pages(self, client):
        responses.add(
            responses.GET, f"{BASE}/nodebalancers",
            json=_page([NB], page=1, pages=2),
            match=[matchers.query_param_matcher({"page": "1", "page_size": "100"})],
        )
        responses.add(
            responses.GET, f"{BASE}/nodebalancers",
            json=_page([{**NB, "id": 13, "label": "other"}], page=2, pages=2),
            match=[matchers.query_param_matcher({"page": "2", "page_size": "100"})],
        )
        result = client.list_nodebalancers()
        assert [nb.id for nb in result] == [12, 13]

    @responses.activate
    def test_get(self, client):
        responses.add(responses.GET, f"{BASE}/nodebalancers/12", json=NB)
        assert client.get_nodebalancer(12).label == "afoobar123"

    @responses.activate
    def test_create(self, client):
        body = {"label": "afoobar123", "region": "us-east", "client_conn_throttle": 15}
        responses.add(
            responses.POST, f"{BASE}/nodebalancers",
            json=NB, status=200,
            match=[matchers.json_params_matcher(body)],
        )
        assert client.create_nodebalancer(body).id == 12

    @responses.activate
    def test_update(self, client):
        responses.add(
            responses.PUT, f"{BASE}/nodebalancers/12",
            json={**NB, "client_conn_throttle": 10},
            match=[matchers.json_params_matcher({"client_conn_throttle": 10})],
        )
        assert client.update_nodebalancer(12, {"client_conn_throttle": 10}).client_conn_throttle == 10

    @responses.activate
    def test_delete(self, client):
        responses.add(responses.DELETE, f"{BASE}/nodebalancers/12", json={})
        client.delete_nodebalancer(12)

    @responses.activate
    def test_delete_not_found(self, client):
        responses.add(
            responses.DELETE, f"{BASE}/nodebalancers/12",
            json={"errors": [{"reason": "Not found"}]}, status=404,
        )
        with pytest.raises(LinodeNotFoundError) as exc_info:
            client.delete_nodebalancer(12)
        assert exc_info.value.status_code == 404


class TestConfigs:
    @responses.activate
    def test_list(self, client):
        responses.add(
            responses.GET, f"{BASE}/nodebalancers/12/configs",
            json=_page([{"id": 5, "port": 80, "protocol": "http", "check": "connection", "nodebalancer_id": 12}]),
        )
        (cfg,) = client.list_configs(12)
        assert (cfg.id, cfg.port, cfg.protocol) == (5, 80, "http")

    @responses.activate
    def test_create(self, client):
        payload = {"port": 443, "protocol": "https", "check": "connection", "algorithm": "roundrobin",
                   "ssl_cert": "CERT", "ssl_key": "KEY"}
        responses.add(
            responses.POST, f"{BASE}/nodebalancers/12/configs",
            json={"id": 6, "port": 443, "protocol": "https", "check": "connection", "ssl_cert": "<REDACTED>"},
            match=[matchers.json_params_matcher(payload)],
        )
        assert client.create_config(12, payload).id == 6

    @responses.activate
    def test_update(self, client):
        responses.add(
            responses.PUT, f"{BASE}/nodebalancers/12/configs/5",
            json={"id": 5, "port": 80, "protocol": "tcp", "check": "connection"},
        )
        assert client.update_config(12, 5, {"protocol": "tcp"}).protocol == "tcp"

    @responses.activate
    def test_delete(self, client):
        responses.add(responses.DELETE, f"{BASE}/nodebalancers/12/configs/5", json={})
        client.delete_config(12, 5)


class TestNodes:
    @responses.activate
    def test_list(self, client):
        responses.add(
            responses.GET, f"{BASE}/nodebalancers/12/configs/5/nodes",
            json=_page([{"id": 9, "address": "10.0.0.1:30000", "label": "node-1", "config_id": 5}]),
        )
        (node,) = client.list_nodes(12, 5)
        assert node.address == "10.0.0.1:30000"

    @responses.activate
    def test_create(self, client):
        payload = {"address": "10.0.0.1:30000", "label": "node-1", "weight": 100, "mode": "accept"}
        responses.add(
            responses.POST, f"{BASE}/nodebalancers/12/configs/5/nodes",
            json={"id": 9, **payload, "config_id": 5},
            match=[matchers.json_params_matcher(payload)],
        )
        assert client.create_node(12, 5, payload).id == 9

    @responses.activate
    def test_delete(self, client):
        responses.add(responses.DELETE, f"{BASE}/nodebalancers/12/configs/5/nodes/9", json={})
        client.delete_node(12, 5, 9)


class TestErrorHandling:
    @responses.activate
    def test_generic_error(self, client):
        responses.add(
            responses.GET, f"{BASE}/nodebalancers/12",
            body="internal error", status=500,
        )
        with pytest.raises(LinodeAPIError) as exc_info:
            client.get_nodebalancer(12)
        assert exc_info.value.status_code == 500
        assert exc_info.value.response_body == "internal error"

    @responses.activate
    def test_transport_error(self, client):
        responses.add(
            responses.GET, f"{BASE}/nodebalancers/12",
            body=requests.ConnectionError("connection refused"),
        )
        with pytest.raises(LinodeAPIError, match="Request failed"):
            client.get_nodebalancer(12)


class TestCancellation:
    @responses.activate
    def test_cancelled_context_issues_no_request(self, client):
        ctx = ReconcileContext()
        ctx.cancel()
        with pytest.raises(ReconcileCancelled):
            client.get_nodebalancer(12, ctx=ctx)
        assert len(responses.calls) == 0

    @responses.activate
    def test_expired_deadline(self, client):
        with pytest.raises(ReconcileCancelled, match="deadline"):
            client.delete_nodebalancer(12, ctx=ReconcileContext(timeout=0))
        assert len(responses.calls) == 0

    @responses.activate
    def test_live_context_passes_through(self, client):
        responses.add(responses.GET, f"{BASE}/nodebalancers/12", json=NB)
        assert client.get_nodebalancer(12, ctx=ReconcileContext(timeout=30)).id == 12

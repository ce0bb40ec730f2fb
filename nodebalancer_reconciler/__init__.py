"""Reconciles Kubernetes LoadBalancer services against Linode NodeBalancers."""

from .context import ReconcileContext
from .linode.loadbalancers import LoadBalancers, get_load_balancer_name
from .provider import bootstrap, build_load_balancers

__all__ = ["LoadBalancers", "ReconcileContext", "bootstrap", "build_load_balancers", "get_load_balancer_name"]

"""Wires configured collaborators into a LoadBalancers reconciler."""

from __future__ import annotations

import logging
from pathlib import Path

from .config import AppConfig, load_config
from .linode.api_client import LinodeClient
from .linode.loadbalancers import LoadBalancers
from .logging_config import configure_logging
from .service.secrets import KubernetesSecretStore

logger = logging.getLogger(__name__)


def build_load_balancers(config: AppConfig) -> LoadBalancers:
    """Instantiate the Linode client and secret store described by ``config``."""
    client = LinodeClient(config.linode)
    secret_store = KubernetesSecretStore.from_config(config.kubernetes)
    logger.info("NodeBalancer reconciler ready for region %s", config.linode.region)
    return LoadBalancers(client, config.linode.region, secret_store)


def bootstrap(config_path: str | Path) -> LoadBalancers:
    """Load the config file, install logging from it, and build the reconciler.

    Entry point for a controller process. Raises ConfigError before any
    logging is touched when the file is missing or invalid.
    """
    config = load_config(config_path)
    configure_logging(config.logging, cluster_name=config.cluster_name)
    return build_load_balancers(config)

"""TLS material lookup backed by Kubernetes secrets."""

from __future__ import annotations

import base64
import binascii
import logging

from kubernetes import client
from kubernetes import config as kube_config
from kubernetes.client.rest import ApiException

from ..config import KubernetesConfig
from ..context import ReconcileContext
from ..exceptions import MissingTLSSecretError, SecretNotFoundError, SecretStoreError
from . import SecretStore
from .models import Certificate, PortConfig

logger = logging.getLogger(__name__)

TLS_CERT_KEY = "tls.crt"
TLS_PRIVATE_KEY_KEY = "tls.key"


class KubernetesSecretStore:
    """Reads secrets through the Kubernetes CoreV1 API."""

    def __init__(self, core_v1: client.CoreV1Api, request_timeout: int = 10):
        self._core_v1 = core_v1
        self._timeout = request_timeout

    @classmethod
    def from_config(cls, config: KubernetesConfig) -> KubernetesSecretStore:
        if config.in_cluster:
            kube_config.load_incluster_config()
            api_client = client.ApiClient()
        else:
            api_client = kube_config.new_client_from_config(
                config_file=config.kubeconfig, context=config.context,
            )
        return cls(client.CoreV1Api(api_client), request_timeout=config.request_timeout)

    def get_secret(self, namespace: str, name: str, ctx: ReconcileContext | None = None) -> dict[str, bytes]:
        timeout: float = self._timeout
        if ctx is not None:
            ctx.check()
            timeout = ctx.timeout_for(self._timeout)

        logger.debug("Reading secret %s/%s", namespace, name)
        try:
            secret = self._core_v1.read_namespaced_secret(name, namespace, _request_timeout=timeout)
        except ApiException as exc:
            if exc.status == 404:
                raise SecretNotFoundError(namespace, name) from exc
            raise SecretStoreError(f"reading secret {namespace}/{name} failed: {exc.reason}") from exc

        data: dict[str, bytes] = {}
        for key, value in (secret.data or {}).items():
            try:
                data[key] = base64.b64decode(value)
            except (binascii.Error, TypeError) as exc:
                raise SecretStoreError(f"secret {namespace}/{name} key {key} is not valid base64") from exc
        return data


def get_tls_cert_info(
    secret_store: SecretStore,
    namespace: str,
    port_config: PortConfig,
    ctx: ReconcileContext | None = None,
) -> Certificate:
    """Fetch the certificate and private key referenced by a port's TLS secret.

    Raises MissingTLSSecretError without touching the store when the port has
    no secret name. SecretNotFoundError from the store propagates unchanged.
    """
    if not port_config.tls_secret_name:
        raise MissingTLSSecretError(port_config.port)

    data = secret_store.get_secret(namespace, port_config.tls_secret_name, ctx=ctx)
    try:
        cert = data.get(TLS_CERT_KEY, b"").decode()
        key = data.get(TLS_PRIVATE_KEY_KEY, b"").decode()
    except UnicodeDecodeError as exc:
        raise SecretStoreError(
            f"secret {namespace}/{port_config.tls_secret_name} holds non-UTF-8 PEM data: {exc.reason}"
        ) from exc
    if not cert or not key:
        raise SecretStoreError(
            f"secret {namespace}/{port_config.tls_secret_name} has no {TLS_CERT_KEY}/{TLS_PRIVATE_KEY_KEY} data"
        )
    return Certificate(cert_pem=cert, key_pem=key)

"""Annotation parsing and per-port configuration resolution."""

from __future__ import annotations

import json
import logging
import re

from ..exceptions import InvalidHealthCheckTypeError, InvalidProtocolError, PortConfigAnnotationError
from .models import HealthCheckType, PortConfig, PortConfigAnnotation, Protocol, ServiceDescriptor

logger = logging.getLogger(__name__)

ANN_THROTTLE = "service.beta.kubernetes.io/linode-loadbalancer-throttle"
ANN_DEFAULT_PROTOCOL = "service.beta.kubernetes.io/linode-loadbalancer-default-protocol"
ANN_PORT_CONFIG_PREFIX = "service.beta.kubernetes.io/linode-loadbalancer-port-"
ANN_HEALTH_CHECK_TYPE = "service.beta.kubernetes.io/linode-loadbalancer-check-type"

DEFAULT_THROTTLE = 20
MIN_THROTTLE = 0
MAX_THROTTLE = 20

# Plain decimal only: no whitespace, underscores or other int() extensions.
_INTEGER = re.compile(r"[+-]?[0-9]+")


def get_connection_throttle(service: ServiceDescriptor) -> int:
    """Client connections per second per IP, clamped to [0, 20]. Never raises."""
    raw = service.annotations.get(ANN_THROTTLE)
    if raw is None:
        return DEFAULT_THROTTLE
    if not _INTEGER.fullmatch(raw):
        logger.debug("Ignoring non-integer throttle annotation %r on %s", raw, service.name)
        return DEFAULT_THROTTLE
    value = int(raw)
    return max(MIN_THROTTLE, min(MAX_THROTTLE, value))


def get_health_check_type(service: ServiceDescriptor) -> HealthCheckType:
    raw = service.annotations.get(ANN_HEALTH_CHECK_TYPE, "")
    if not raw:
        return HealthCheckType.CONNECTION
    # Case-sensitive: "HTTP" is rejected.
    for check in HealthCheckType:
        if check.value == raw:
            return check
    raise InvalidHealthCheckTypeError(raw, ANN_HEALTH_CHECK_TYPE)


def get_port_config_annotation(service: ServiceDescriptor, port: int) -> PortConfigAnnotation:
    """Decode the ``...-port-<port>`` JSON annotation.

    An absent annotation yields an empty PortConfigAnnotation. Malformed JSON
    raises json.JSONDecodeError unchanged; unknown keys are ignored.
    """
    raw = service.annotations.get(f"{ANN_PORT_CONFIG_PREFIX}{port}")
    if raw is None:
        return PortConfigAnnotation()

    decoded = json.loads(raw)
    if not isinstance(decoded, dict):
        raise PortConfigAnnotationError(
            f"annotation {ANN_PORT_CONFIG_PREFIX}{port} must be a JSON object"
        )
    return PortConfigAnnotation(
        tls_secret_name=str(decoded.get("tls-secret-name") or ""),
        protocol=str(decoded.get("protocol") or ""),
    )


def get_port_config(service: ServiceDescriptor, port: int) -> PortConfig:
    """Resolve one port: per-port annotation > default-protocol annotation > tcp."""
    annotation = get_port_config_annotation(service, port)

    protocol = annotation.protocol
    if not protocol:
        protocol = service.annotations.get(ANN_DEFAULT_PROTOCOL, "")
    if not protocol:
        protocol = Protocol.TCP.value
    protocol = protocol.lower()

    try:
        resolved = Protocol(protocol)
    except ValueError:
        raise InvalidProtocolError(protocol) from None

    return PortConfig(
        port=port,
        protocol=resolved,
        tls_secret_name=annotation.tls_secret_name,
        health_check_type=get_health_check_type(service),
        throttle=get_connection_throttle(service),
    )

"""Custom exception hierarchy for the NodeBalancer reconciler."""


class NodeBalancerError(Exception):
    """Base exception for all reconciler errors."""


class ConfigError(NodeBalancerError):
    """Invalid or missing configuration."""


class ValidationError(NodeBalancerError):
    """Desired state rejected before any API call was issued."""


class InvalidProtocolError(ValidationError):
    def __init__(self, value: str):
        super().__init__(f'invalid protocol: "{value}" specified')
        self.value = value


class InvalidHealthCheckTypeError(ValidationError):
    def __init__(self, value: str, annotation: str):
        super().__init__(f'invalid health check type: "{value}" specified in annotation: "{annotation}"')
        self.value = value
        self.annotation = annotation


class MissingTLSSecretError(ValidationError):
    def __init__(self, port: int):
        super().__init__(f"TLS secret name for port {port} is not specified")
        self.port = port


class PortConfigAnnotationError(ValidationError):
    """Per-port annotation decoded to something other than a JSON object."""


class LinodeAPIError(NodeBalancerError):
    """Error communicating with the Linode API."""

    def __init__(self, message: str, status_code: int | None = None, response_body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class LinodeNotFoundError(LinodeAPIError):
    """HTTP 404: the referenced Linode resource does not exist."""

    def __init__(self, message: str = "Resource not found", response_body: str | None = None):
        super().__init__(message, status_code=404, response_body=response_body)


class LoadBalancerNotFoundError(NodeBalancerError):
    """No NodeBalancer carries the label computed for the service."""

    def __init__(self, name: str):
        super().__init__(f"load balancer {name!r} not found")
        self.name = name


class SecretStoreError(NodeBalancerError):
    """Error reading from the secret store."""


class SecretNotFoundError(SecretStoreError):
    def __init__(self, namespace: str, name: str):
        super().__init__(f'secrets "{name}" not found in namespace "{namespace}"')
        self.namespace = namespace
        self.name = name


class ReconcileCancelled(NodeBalancerError):
    """The caller's context was cancelled or its deadline passed."""

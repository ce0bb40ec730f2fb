"""Service-side inputs: descriptors, annotations, and the secret store protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..context import ReconcileContext


@runtime_checkable
class SecretStore(Protocol):
    """Protocol that every secret store backend must satisfy."""

    def get_secret(self, namespace: str, name: str, ctx: ReconcileContext | None = None) -> dict[str, bytes]:
        """Return the secret's data entries. Raises SecretNotFoundError when absent."""
        ...

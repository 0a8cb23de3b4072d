"""
ConfigSync Provider Base.

Defines the three-operation contract every exchange backend implements. The
sync engine depends on this contract only, never on a concrete backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from configsync.core.models import ConfigSnapshot, SyncMeta


class SyncProvider(ABC):
    """Abstract base class for remote exchange points.

    Implementations must be safe to call from any thread without extra
    locking by the caller; each call is self-contained.

    Failures are raised as ``ProviderError`` subclasses:
    ``RemoteNotFoundError`` when no remote state exists yet (non-fatal),
    ``NetworkError`` for transport failures, and ``ProviderResponseError``
    for non-success responses.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'folder', 'hosted')."""

    @abstractmethod
    def push(self, snapshot: ConfigSnapshot) -> None:
        """Upload a snapshot, replacing the remote state."""

    @abstractmethod
    def pull(self) -> ConfigSnapshot:
        """Download the remote snapshot."""

    @abstractmethod
    def remote_meta(self) -> SyncMeta:
        """Fetch remote metadata without downloading the blobs."""

    def close(self) -> None:
        """Release any held resources."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"

"""
ConfigSync providers.

Exchange-point backends implementing the push/pull/meta contract.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from configsync.providers.base import SyncProvider

if TYPE_CHECKING:
    from configsync.core.config import SyncConfig


def create_provider(config: SyncConfig) -> SyncProvider:
    """Build the provider selected by the tagged provider config."""
    provider = config.provider

    if provider.type == "folder":
        from configsync.providers.folder import FolderProvider

        return FolderProvider(provider.sync_directory)
    elif provider.type == "hosted":
        from configsync.providers.hosted import HostedProvider

        return HostedProvider(
            api_url=provider.api_url,
            api_key=provider.api_key,
            device_name=config.device_name,
            timeout=provider.timeout_seconds,
        )
    else:
        raise ValueError(f"Unsupported provider: {provider.type}")


__all__ = ["SyncProvider", "create_provider"]

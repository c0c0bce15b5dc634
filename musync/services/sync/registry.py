"""Adapter registry - central lookup for streaming-platform adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING

from musync.models.platform import PlatformType
from musync.services.sync.base import PlatformAdapter

if TYPE_CHECKING:
    from musync.models.platform import Platform

_adapters: dict[str, PlatformAdapter] = {}


def _key(platform_type: str | PlatformType) -> str:
    return platform_type.value if isinstance(platform_type, PlatformType) else platform_type


def register_adapter(adapter: PlatformAdapter) -> None:
    """Register an adapter by its platform type. Re-registering replaces."""
    _adapters[adapter.name] = adapter


def get_adapter(platform_type: str | PlatformType) -> PlatformAdapter | None:
    """Get a registered adapter by platform type."""
    return _adapters.get(_key(platform_type))


def get_connected_adapters(platforms: list[Platform]) -> list[tuple[PlatformAdapter, Platform]]:
    """Pair each connected platform with its adapter, skipping unregistered types."""
    pairs = []
    for platform in platforms:
        adapter = _adapters.get(platform.type)
        if platform.is_connected and adapter is not None:
            pairs.append((adapter, platform))
    return pairs


def list_adapters() -> list[PlatformAdapter]:
    """Get all registered adapters."""
    return list(_adapters.values())


def _clear_adapters() -> None:
    """Clear all registered adapters (for testing only)."""
    _adapters.clear()

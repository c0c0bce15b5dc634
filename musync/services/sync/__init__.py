"""Streaming-platform adapters.

Auto-registers all built-in adapters on import.
"""

from musync.core.config import Settings, get_settings
from musync.services.sync.apple_music_adapter import AppleMusicAdapter
from musync.services.sync.base import ProviderConfig
from musync.services.sync.registry import register_adapter
from musync.services.sync.soundcloud_adapter import SoundCloudAdapter
from musync.services.sync.spotify_adapter import SpotifyAdapter


def register_default_adapters(settings: Settings) -> None:
    """Build the three built-in adapters from ``settings`` and register them."""
    timeout = settings.provider_http_timeout
    register_adapter(
        SpotifyAdapter(
            ProviderConfig(
                client_id=settings.spotify_client_id,
                client_secret=settings.spotify_client_secret,
                redirect_uri=settings.spotify_redirect_uri,
                timeout=timeout,
            )
        )
    )
    register_adapter(
        AppleMusicAdapter(
            ProviderConfig(
                client_id=settings.apple_music_client_id,
                client_secret=settings.apple_music_client_secret,
                redirect_uri=settings.apple_music_redirect_uri,
                timeout=timeout,
            ),
            developer_token=settings.apple_music_developer_token,
            storefront=settings.apple_music_storefront,
        )
    )
    register_adapter(
        SoundCloudAdapter(
            ProviderConfig(
                client_id=settings.soundcloud_client_id,
                client_secret=settings.soundcloud_client_secret,
                redirect_uri=settings.soundcloud_redirect_uri,
                timeout=timeout,
            )
        )
    )


# Auto-register built-in adapters
register_default_adapters(get_settings())

"""Cross-platform liked-songs synchronization for Spotify, Apple Music and SoundCloud."""

__version__ = "0.1.0"

"""Song identity across catalogs.

Platforms share no track IDs, so a song is identified by its title and artist
text only: case-folded and trimmed, nothing else. Diacritics, punctuation and
"feat." variants are not normalized, so "Beyonce" and "Beyoncé" are different
songs.
"""

from collections.abc import Iterable, Sequence
from typing import Protocol, TypeVar


class SongLike(Protocol):
    title: str
    artist: str


S = TypeVar("S", bound=SongLike)


def normalize(text: str | None) -> str:
    """Case-fold and trim ``text`` for equality comparison."""
    if not text:
        return ""
    return text.strip().casefold()


def song_key(title: str | None, artist: str | None) -> tuple[str, str]:
    """The (normalized title, normalized artist) identity pair."""
    return normalize(title), normalize(artist)


def is_same_song(a: SongLike, b: SongLike) -> bool:
    return song_key(a.title, a.artist) == song_key(b.title, b.artist)


def compute_missing(
    source_songs: Sequence[S], existing_target_songs: Iterable[SongLike]
) -> list[S]:
    """Source songs with no ``is_same_song`` match among the target's songs.

    Source order is preserved, and duplicates within the source are kept, so
    callers see exactly what ``is_same_song`` would decide pairwise.
    """
    existing = {song_key(s.title, s.artist) for s in existing_target_songs}
    return [s for s in source_songs if song_key(s.title, s.artist) not in existing]

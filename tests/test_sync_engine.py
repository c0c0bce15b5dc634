"""Tests for the sync engine."""

from unittest.mock import patch

import pytest
from helpers import FakeAdapter, record

from musync.core.config import Settings
from musync.core.errors import (
    AuthExpired,
    InvalidSyncRequest,
    NotFound,
    ProviderTimeout,
    ProviderUnavailable,
)
from musync.models.platform import PlatformType
from musync.services.matcher import song_key
from musync.services.sync.engine import SongSyncStatus, sync_platforms
from musync.services.sync.registry import register_adapter


@pytest.fixture(autouse=True)
def clean_registry(empty_registry):
    yield


@pytest.fixture
def spotify(connect_platform):
    connect_platform(PlatformType.SPOTIFY)
    adapter = FakeAdapter(PlatformType.SPOTIFY, liked=[record("A", "X"), record("B", "Y")])
    register_adapter(adapter)
    return adapter


@pytest.fixture
def soundcloud(connect_platform):
    platform = connect_platform(PlatformType.SOUNDCLOUD)
    adapter = FakeAdapter(
        PlatformType.SOUNDCLOUD,
        catalog=[record("A", "X", "sc-a"), record("B", "Y", "sc-b"), record("C", "Z", "sc-c")],
    )
    adapter.platform_id = platform.id
    register_adapter(adapter)
    return adapter


def _song_tags(storage, user_id, title, artist):
    for song in storage.get_songs_by_user_id(user_id):
        if song_key(song.title, song.artist) == song_key(title, artist):
            return song.platform_ids
    return None


class TestSyncScenario:
    def test_only_missing_song_searched_and_added(self, storage, test_user, spotify, soundcloud):
        storage.create_song(test_user.id, "a", "x", [soundcloud.platform_id])

        result = sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])

        assert soundcloud.searches == ["B Y"]
        assert soundcloud.saved == ["sc-b"]
        assert result.tally() == {"soundcloud": 1}
        assert result.total_added == 1
        assert soundcloud.platform_id in _song_tags(storage, test_user.id, "B", "Y")

    def test_history_recorded(self, storage, test_user, spotify, soundcloud):
        result = sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])

        history = storage.get_sync_history_by_user_id(test_user.id)
        assert len(history) == 1
        assert history[0].id == result.history_id
        assert history[0].type == "full"
        assert history[0].status == "completed"
        assert history[0].songs_added == 2
        assert history[0].target_platforms == [soundcloud.platform_id]
        assert history[0].results[0]["platform_type"] == "soundcloud"
        assert history[0].results[0]["songs_added"] == 2

    def test_every_addable_song_tagged(self, storage, test_user, spotify, soundcloud):
        sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])

        for title, artist in [("A", "X"), ("B", "Y")]:
            assert _song_tags(storage, test_user.id, title, artist) == [soundcloud.platform_id]

    def test_second_run_adds_nothing(self, storage, test_user, spotify, soundcloud):
        first = sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])
        soundcloud.searches.clear()

        second = sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])

        assert first.total_added == 2
        assert second.tally() == {"soundcloud": 0}
        assert soundcloud.searches == []
        assert len(storage.get_songs_by_user_id(test_user.id)) == 2

    def test_search_miss_skipped(self, storage, test_user, spotify, soundcloud):
        soundcloud.catalog = [record("A", "X", "sc-a")]

        result = sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])

        statuses = {o.title: o.status for o in result.targets[0].outcomes}
        assert statuses == {"A": SongSyncStatus.ADDED, "B": SongSyncStatus.NOT_FOUND}
        assert result.tally() == {"soundcloud": 1}
        assert storage.get_sync_history_by_user_id(test_user.id)[0].status == "completed"
        assert _song_tags(storage, test_user.id, "B", "Y") is None

    def test_add_failure_recorded(self, storage, test_user, spotify, soundcloud):
        soundcloud.fail_add = {"sc-a"}

        result = sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])

        outcomes = result.targets[0].outcomes
        assert outcomes[0].status == SongSyncStatus.ADD_FAILED
        assert outcomes[0].external_id == "sc-a"
        assert outcomes[1].status == SongSyncStatus.ADDED
        assert _song_tags(storage, test_user.id, "A", "X") is None

    def test_repeated_source_song_searched_once(self, storage, test_user, spotify, soundcloud):
        spotify.liked = [record("A", "X"), record(" a ", "x")]

        result = sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])

        assert soundcloud.searches == ["A X"]
        assert result.total_added == 1
        assert len(storage.get_songs_by_user_id(test_user.id)) == 1

    def test_existing_row_gets_target_tag(self, storage, test_user, spotify, soundcloud):
        song = storage.create_song(test_user.id, "A", "X", [999])

        sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])

        tags = _song_tags(storage, test_user.id, "A", "X")
        assert tags == [999, soundcloud.platform_id]
        assert len([s for s in storage.get_songs_by_user_id(test_user.id) if s.id == song.id]) == 1


class TestMultipleTargets:
    def test_targets_processed_in_order(
        self, storage, test_user, connect_platform, spotify, soundcloud
    ):
        connect_platform(PlatformType.APPLE_MUSIC)
        apple = FakeAdapter(PlatformType.APPLE_MUSIC, catalog=[record("A", "X", "am-a")])
        register_adapter(apple)

        result = sync_platforms(storage, test_user.id, "spotify", ["apple_music", "soundcloud"])

        assert [t.platform_type for t in result.targets] == ["apple_music", "soundcloud"]
        assert result.tally() == {"apple_music": 1, "soundcloud": 2}
        assert result.total_added == 3

    def test_auth_expired_stops_only_that_target(
        self, storage, test_user, connect_platform, spotify, soundcloud
    ):
        connect_platform(PlatformType.APPLE_MUSIC)
        apple = FakeAdapter(
            PlatformType.APPLE_MUSIC,
            catalog=[record("A", "X", "am-a"), record("B", "Y", "am-b")],
            search_errors={"A X": AuthExpired("apple_music")},
        )
        register_adapter(apple)

        result = sync_platforms(storage, test_user.id, "spotify", ["apple_music", "soundcloud"])

        apple_result, sc_result = result.targets
        assert apple.searches == ["A X"]
        assert "reconnect required" in apple_result.error
        assert [o.status for o in apple_result.outcomes] == [SongSyncStatus.ERROR] * 2
        assert sc_result.songs_added == 2
        assert result.tally() == {"apple_music": 0, "soundcloud": 2}
        history = storage.get_sync_history_by_user_id(test_user.id)[0]
        assert history.status == "completed"
        assert history.results[0]["error"] is not None

    def test_per_song_error_does_not_abort_target(self, storage, test_user, spotify, soundcloud):
        soundcloud.search_errors = {"A X": ProviderTimeout("soundcloud", "External API timeout")}

        result = sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])

        first, second = result.targets[0].outcomes
        assert first.status == SongSyncStatus.ERROR
        assert first.error == "soundcloud: External API timeout"
        assert second.status == SongSyncStatus.ADDED
        assert result.targets[0].error is None

    def test_storage_failure_on_one_song_does_not_abort_run(
        self, storage, test_user, spotify, soundcloud, reject_song_insert
    ):
        long_title = "Q" * 300
        spotify.liked = [record(long_title, "X"), record("B", "Y")]
        soundcloud.catalog = [record(long_title, "X", "sc-long"), record("B", "Y", "sc-b")]
        reject_song_insert(long_title)

        result = sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])

        first, second = result.targets[0].outcomes
        assert first.status == SongSyncStatus.ERROR
        assert first.error == "Could not save Song"
        assert second.status == SongSyncStatus.ADDED
        assert result.tally() == {"soundcloud": 1}
        assert soundcloud.platform_id in _song_tags(storage, test_user.id, "B", "Y")
        history = storage.get_sync_history_by_user_id(test_user.id)
        assert len(history) == 1
        assert history[0].status == "completed"


class TestSourceFailure:
    def test_source_fetch_failure_aborts_run(self, storage, test_user, spotify, soundcloud):
        spotify.fetch_error = ProviderUnavailable("spotify", "External API error: HTTP 503", 503)

        with pytest.raises(ProviderUnavailable):
            sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])

        assert soundcloud.searches == []
        history = storage.get_sync_history_by_user_id(test_user.id)
        assert len(history) == 1
        assert history[0].status == "failed"
        assert history[0].songs_added == 0

    def test_source_auth_expired_surfaces(self, storage, test_user, spotify, soundcloud):
        spotify.fetch_error = AuthExpired("spotify")

        with pytest.raises(AuthExpired) as exc_info:
            sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])
        assert "reconnect required" in exc_info.value.message


class TestPreconditions:
    def test_empty_targets(self, storage, test_user, spotify, soundcloud):
        with pytest.raises(InvalidSyncRequest):
            sync_platforms(storage, test_user.id, "spotify", [])
        assert spotify.fetch_calls == 0
        assert storage.get_sync_history_by_user_id(test_user.id) == []

    def test_source_in_targets(self, storage, test_user, spotify, soundcloud):
        with pytest.raises(InvalidSyncRequest):
            sync_platforms(storage, test_user.id, "spotify", ["soundcloud", "spotify"])
        assert spotify.fetch_calls == 0

    def test_duplicate_targets(self, storage, test_user, spotify, soundcloud):
        with pytest.raises(InvalidSyncRequest):
            sync_platforms(storage, test_user.id, "spotify", ["soundcloud", "soundcloud"])

    def test_unknown_types(self, storage, test_user, spotify, soundcloud):
        with pytest.raises(InvalidSyncRequest):
            sync_platforms(storage, test_user.id, "tidal", ["soundcloud"])
        with pytest.raises(InvalidSyncRequest):
            sync_platforms(storage, test_user.id, "spotify", ["deezer"])

    def test_disconnected_target(self, storage, test_user, spotify):
        storage.create_platform(test_user.id, "soundcloud", is_connected=False)
        register_adapter(FakeAdapter(PlatformType.SOUNDCLOUD))
        with pytest.raises(InvalidSyncRequest):
            sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])
        assert spotify.fetch_calls == 0

    def test_source_not_connected(self, storage, test_user, soundcloud):
        register_adapter(FakeAdapter(PlatformType.SPOTIFY))
        with pytest.raises(InvalidSyncRequest):
            sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])

    def test_target_without_adapter(self, storage, test_user, connect_platform, spotify):
        connect_platform(PlatformType.APPLE_MUSIC)
        with pytest.raises(InvalidSyncRequest):
            sync_platforms(storage, test_user.id, "spotify", ["apple_music"])
        assert spotify.fetch_calls == 0

    def test_unknown_user(self, storage, spotify, soundcloud):
        with pytest.raises(NotFound):
            sync_platforms(storage, 9999, "spotify", ["soundcloud"])


class TestLiveTargetCatalog:
    @patch("musync.services.sync.engine.get_settings")
    def test_refetch_skips_songs_already_on_target(
        self, mock_settings, storage, test_user, spotify, soundcloud
    ):
        mock_settings.return_value = Settings(sync_refetch_target_catalog=True)
        soundcloud.liked = [record("b", "y", "sc-b")]

        result = sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])

        assert soundcloud.fetch_calls == 1
        assert soundcloud.searches == ["A X"]
        assert result.tally() == {"soundcloud": 1}

    def test_cached_view_by_default(self, storage, test_user, spotify, soundcloud):
        soundcloud.liked = [record("B", "Y", "sc-b")]

        sync_platforms(storage, test_user.id, "spotify", ["soundcloud"])

        assert soundcloud.fetch_calls == 0
        assert soundcloud.searches == ["A X", "B Y"]

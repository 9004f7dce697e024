import asyncio
import time

import httpx
import pytest

from conftest import SETTINGS, spotify_routes, spotify_transport, track_json
from FETCH.client import SpotifyClient
from FETCH.models import SpotifyTokenSet
from FETCH.rate_limit import RateLimitState
from SYNC import service as sync_service
from SYNC.service import SyncFailure, SyncService, resolve_sync_options


class RecordingStore:
    """Wraps a SessionStore and records every progress record written."""

    def __init__(self, store, fail_progress=False):
        self._store = store
        self.fail_progress = fail_progress
        self.progress = []

    def set_session_sync_progress(self, session_id, progress):
        if self.fail_progress:
            raise RuntimeError("disk full")
        self.progress.append(progress)
        self._store.set_session_sync_progress(session_id, progress)

    def __getattr__(self, name):
        return getattr(self._store, name)


def make_service(store, routes, fake_sleep, seen=None, rate_limit=None):
    client = SpotifyClient(
        rate_limit=rate_limit or RateLimitState(),
        transport=spotify_transport(routes, seen if seen is not None else []),
        sleep=fake_sleep,
    )
    return SyncService(store, client=client, settings=SETTINGS)


def valid_tokens():
    return SpotifyTokenSet(access_token="token", refresh_token="r", expires_at=time.time() + 3600)


def test_resolve_sync_options():
    quick = resolve_sync_options()
    assert (quick.mode, quick.limit) == ("quick", 20)
    assert quick.include_recently_played and not quick.include_saved_albums

    full = resolve_sync_options("full")
    assert (full.mode, full.limit) == ("full", 180)
    assert full.include_saved_albums

    assert resolve_sync_options("turbo", 5).limit == 20
    assert resolve_sync_options("full", 5000).limit == 1000
    assert resolve_sync_options("quick", 77.9).limit == 77
    assert resolve_sync_options("quick", float("nan")).limit == 20
    assert resolve_sync_options("quick", "abc").limit == 20


def test_successful_sync(store, fake_sleep):
    store.set_session_tokens("s1", valid_tokens())
    recording = RecordingStore(store)
    service = make_service(recording, spotify_routes(), fake_sleep)

    sphere = asyncio.run(service.sync("s1"))

    assert sphere.track_count == 5
    replayed = next(t for t in sphere.tracks if t.id == "l0")
    assert replayed.name == "Replayed"

    data = store.get_session_data("s1")
    assert data.sphere.track_count == 5
    assert data.profile.display_name == "User One"
    assert data.sync_progress.status == "done"
    assert data.sync_progress.track_count == 5

    phases = [p.phase for p in recording.progress]
    assert phases[0] == "auth"
    assert phases[-3:] == ["features", "embedding", "done"]
    percents = [p.percent for p in recording.progress]
    assert percents == sorted(percents)
    assert percents[-1] == 100


def test_quick_sync_skips_saved_albums(store, fake_sleep):
    store.set_session_tokens("s1", valid_tokens())
    seen = []
    service = make_service(store, spotify_routes(), fake_sleep, seen)

    asyncio.run(service.sync("s1", "quick"))

    assert "/v1/me/albums" not in {r.url.path for r in seen}


def test_full_sync_includes_saved_albums(store, fake_sleep):
    store.set_session_tokens("s1", valid_tokens())
    seen = []
    albums = {"items": [{"album": {"name": "LP", "images": [], "tracks": {"items": [track_json("s1")]}}}], "next": None}
    service = make_service(store, spotify_routes(**{"/v1/me/albums": albums}), fake_sleep, seen)

    sphere = asyncio.run(service.sync("s1", "full"))

    assert "/v1/me/albums" in {r.url.path for r in seen}
    assert "s1" in {t.id for t in sphere.tracks}


def test_not_authenticated(store, fake_sleep):
    seen = []
    service = make_service(store, spotify_routes(), fake_sleep, seen)

    with pytest.raises(SyncFailure) as exc_info:
        asyncio.run(service.sync("anonymous"))

    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Not authenticated with Spotify."
    assert seen == []


def test_rate_limited_before_any_request(store, fake_sleep):
    store.set_session_tokens("s1", valid_tokens())
    seen = []
    rate_limit = RateLimitState()
    rate_limit.extend(30)
    service = make_service(store, spotify_routes(), fake_sleep, seen, rate_limit=rate_limit)

    with pytest.raises(SyncFailure) as exc_info:
        asyncio.run(service.sync("s1"))

    failure = exc_info.value
    assert failure.status_code == 429
    assert 29_000 < failure.retry_after_ms <= 30_000
    assert failure.message == "Spotify rate-limited requests (429). Wait 30s and sync again."
    assert seen == []
    progress = store.get_session_data("s1").sync_progress
    assert progress.status == "error"
    assert progress.error == failure.message


def test_rate_limited_during_sync(store, fake_sleep):
    store.set_session_tokens("s1", valid_tokens())
    service = make_service(store, spotify_routes(**{"/v1/me/tracks": 429}), fake_sleep)

    with pytest.raises(SyncFailure) as exc_info:
        asyncio.run(service.sync("s1"))

    assert exc_info.value.status_code == 429
    assert exc_info.value.retry_after_ms > 0
    assert "rate-limited" in exc_info.value.message


def test_forbidden_token_refresh_message(store, fake_sleep):
    store.set_session_tokens("s1", SpotifyTokenSet(access_token="old", refresh_token="r", expires_at=0))
    service = make_service(store, spotify_routes(**{"/api/token": 403}), fake_sleep)

    with pytest.raises(SyncFailure) as exc_info:
        asyncio.run(service.sync("s1"))

    assert exc_info.value.status_code == 500
    assert exc_info.value.message.startswith("Spotify returned 403.")


def test_refreshed_tokens_are_stored(store, fake_sleep):
    store.set_session_tokens("s1", SpotifyTokenSet(access_token="old", refresh_token="r", expires_at=0))
    service = make_service(store, spotify_routes(), fake_sleep)

    asyncio.run(service.sync("s1"))

    tokens = store.get_session_data("s1").tokens
    assert tokens.access_token == "fresh"
    assert tokens.refresh_token == "r"


def test_transport_failure_message(store, fake_sleep):
    store.set_session_tokens("s1", valid_tokens())
    routes = spotify_routes(**{"/v1/me/tracks": httpx.ConnectError("down")})
    service = make_service(store, routes, fake_sleep)

    with pytest.raises(SyncFailure) as exc_info:
        asyncio.run(service.sync("s1"))

    assert exc_info.value.status_code == 500
    assert exc_info.value.message.startswith("Spotify request timed out.")


def test_track_phase_timeout(store, fake_sleep, monkeypatch):
    store.set_session_tokens("s1", valid_tokens())
    monkeypatch.setitem(sync_service.TRACK_FETCH_TIMEOUT, "quick", 0.05)

    async def slow(request):
        await asyncio.sleep(1)
        return {"items": [], "next": None}

    service = make_service(store, spotify_routes(**{"/v1/me/tracks": slow}), fake_sleep)

    with pytest.raises(SyncFailure) as exc_info:
        asyncio.run(service.sync("s1"))

    assert exc_info.value.message == "Spotify took too long to return your tracks. Retry Quick Sync."
    assert store.get_session_data("s1").sync_progress.phase == "error"
    assert store.get_session_data("s1").sphere is None


def test_feature_phase_timeout(store, fake_sleep, monkeypatch):
    store.set_session_tokens("s1", valid_tokens())
    monkeypatch.setitem(sync_service.FEATURE_FETCH_TIMEOUT, "quick", 0.05)

    async def slow(request):
        await asyncio.sleep(1)
        return {"audio_features": []}

    service = make_service(store, spotify_routes(**{"/v1/audio-features": slow}), fake_sleep)

    with pytest.raises(SyncFailure) as exc_info:
        asyncio.run(service.sync("s1"))

    assert exc_info.value.message == "Spotify took too long to return audio features. Retry Quick Sync."


def test_forbidden_features_fall_back_to_synthesized(store, fake_sleep):
    store.set_session_tokens("s1", valid_tokens())
    service = make_service(store, spotify_routes(**{"/v1/audio-features": 403}), fake_sleep)

    sphere = asyncio.run(service.sync("s1"))

    assert sphere.track_count == 5


def test_profile_failure_does_not_abort(store, fake_sleep):
    store.set_session_tokens("s1", valid_tokens())
    service = make_service(store, spotify_routes(**{"/v1/me": 403}), fake_sleep)

    sphere = asyncio.run(service.sync("s1"))

    assert sphere.track_count == 5
    assert store.get_session_data("s1").profile is None


def test_progress_write_failure_does_not_abort(store, fake_sleep):
    store.set_session_tokens("s1", valid_tokens())
    service = make_service(RecordingStore(store, fail_progress=True), spotify_routes(), fake_sleep)

    sphere = asyncio.run(service.sync("s1"))

    assert sphere.track_count == 5
    assert store.get_session_data("s1").sphere.track_count == 5


def test_seeded_syncs_are_reproducible(store, fake_sleep):
    store.set_session_tokens("s1", valid_tokens())
    first = asyncio.run(make_service(store, spotify_routes(), fake_sleep).sync("s1"))
    second = asyncio.run(make_service(store, spotify_routes(), fake_sleep).sync("s1"))

    assert [t.position for t in first.tracks] == [t.position for t in second.tracks]

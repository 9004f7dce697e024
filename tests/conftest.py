import sys
from pathlib import Path

import httpx
import pytest

# Ensure repository root is on sys.path for dev runs without install
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import Settings  # noqa: E402
from FETCH.models import AudioFeatures, RawTrack  # noqa: E402
from SYNC.store import SessionStore  # noqa: E402


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """Records requested delays and advances the paired clock instead of waiting."""

    def __init__(self, clock: FakeClock = None):
        self.clock = clock
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_sleep(clock):
    return FakeSleep(clock)


@pytest.fixture
def store(tmp_path):
    return SessionStore.from_url(f"sqlite:///{tmp_path / 'sessions.db'}")


def make_track(track_id, name=None, artists=("Artist",), album_name="Album"):
    return RawTrack(
        id=track_id,
        name=name or f"Track {track_id}",
        uri=f"spotify:track:{track_id}",
        artists=list(artists),
        album_name=album_name,
    )


def make_features(track_id, **overrides):
    values = dict(
        id=track_id,
        danceability=0.5,
        energy=0.5,
        key=5,
        loudness=-8.0,
        mode=1,
        speechiness=0.05,
        acousticness=0.3,
        instrumentalness=0.0,
        liveness=0.1,
        valence=0.5,
        tempo=120.0,
        time_signature=4,
    )
    values.update(overrides)
    return AudioFeatures(**values)


def track_json(track_id, name=None, album=None):
    """Spotify track object as returned by the Web API."""
    data = {
        "id": track_id,
        "name": name or f"Track {track_id}",
        "uri": f"spotify:track:{track_id}",
        "artists": [{"name": "Artist"}],
        "external_urls": {"spotify": f"https://open.spotify.com/track/{track_id}"},
        "preview_url": None,
    }
    if album is not None:
        data["album"] = album
    return data


def features_json(track_id, **overrides):
    return make_features(track_id, **overrides).model_dump()


SETTINGS = Settings(spotify_client_id="cid", spotify_client_secret="secret", embedding_seed=3)


def spotify_routes(**overrides):
    routes = {
        "/v1/me": {"id": "user1", "display_name": "User One"},
        "/v1/me/tracks": {
            "items": [{"track": track_json(f"l{i}")} for i in range(4)],
            "next": None,
        },
        "/v1/me/player/recently-played": {
            "items": [{"track": track_json("l0", "Replayed")}, {"track": track_json("r1")}],
            "next": None,
        },
        "/v1/me/albums": {"items": [], "next": None},
        "/v1/audio-features": None,
        "/api/token": {"access_token": "fresh", "token_type": "Bearer", "expires_in": 3600},
    }
    routes.update(overrides)
    return routes


def spotify_transport(routes, seen):
    """Route by path: dict → JSON, int → error status, exception → raised, coroutine fn → awaited."""
    async def handler(request):
        seen.append(request)
        route = routes[request.url.path]
        if callable(route):
            route = await route(request)
        if isinstance(route, Exception):
            raise route
        if isinstance(route, int):
            return httpx.Response(route, text="error")
        if route is None:
            ids = request.url.params["ids"].split(",")
            return httpx.Response(200, json={"audio_features": [features_json(i, energy=0.1 * n) for n, i in enumerate(ids)]})
        return httpx.Response(200, json=route)

    return httpx.MockTransport(handler)

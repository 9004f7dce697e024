from conftest import make_track
from FETCH.models import SpotifyProfile, SpotifyTokenSet
from SPHERE.payload import create_sphere_payload
from SYNC.progress import done_progress, running_progress
from SYNC.store import SessionStore, SphereSession


def test_unknown_session_is_empty(store):
    data = store.get_session_data("nobody")
    assert data.tokens is None
    assert data.profile is None
    assert data.sphere is None
    assert data.sync_progress is None


def test_round_trip_fields(store):
    tokens = SpotifyTokenSet(access_token="a", refresh_token="r", expires_at=123.0)
    profile = SpotifyProfile(id="u1", display_name="User")
    sphere = create_sphere_payload([make_track("t1"), make_track("t2")], {})

    store.set_session_tokens("s1", tokens)
    store.set_session_profile("s1", profile)
    store.set_session_sphere("s1", sphere)
    store.set_session_sync_progress("s1", done_progress(2))

    data = store.get_session_data("s1")
    assert data.tokens == tokens
    assert data.profile == profile
    assert data.sphere.track_count == 2
    assert [t.id for t in data.sphere.tracks] == ["t1", "t2"]
    assert data.sync_progress.status == "done"


def test_sphere_is_replaced_wholesale(store):
    store.set_session_sphere("s1", create_sphere_payload([make_track("a"), make_track("b")], {}))
    store.set_session_sphere("s1", create_sphere_payload([make_track("c")], {}))

    sphere = store.get_session_data("s1").sphere
    assert [t.id for t in sphere.tracks] == ["c"]


def test_sessions_are_isolated(store):
    store.set_session_sync_progress("s1", running_progress(20, "tracks", "Fetching"))
    assert store.get_session_data("s2").sync_progress is None


def test_clear_session(store):
    store.set_session_tokens("s1", SpotifyTokenSet(access_token="a", expires_at=1.0))
    store.clear_session("s1")
    store.clear_session("never-existed")
    assert store.get_session_data("s1").tokens is None


def test_unreadable_value_is_ignored(store):
    db = store._session_factory()
    try:
        db.add(SphereSession(session_id="s1", tokens="{not json"))
        db.commit()
    finally:
        db.close()

    assert store.get_session_data("s1").tokens is None


def test_from_url_creates_sqlite_file(tmp_path):
    path = tmp_path / "nested" / "store.db"
    SessionStore.from_url(f"sqlite:///{path}")
    assert path.exists()

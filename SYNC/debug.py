"""
Spotify 연결 진단 - 주요 엔드포인트를 재시도 없이 한 번씩 호출해 본다.
"""
import time
from urllib.parse import quote
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

from FETCH.client import SpotifyClient
from FETCH.constants import SPOTIFY_API_URL

PROBE_TIMEOUT = 15.0
PREVIEW_CHARS = 240


class ProbeResult(BaseModel):
    endpoint: str
    ok: bool
    status: Optional[int] = None
    duration_ms: int
    body_preview: str
    body_json: Any = None


async def probe(
    endpoint: str,
    access_token: str,
    timeout: float = PROBE_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProbeResult:
    started = time.monotonic()
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.get(
                f"{SPOTIFY_API_URL}{endpoint}",
                headers={"Authorization": f"Bearer {access_token}"},
            )
    except httpx.HTTPError as e:
        return ProbeResult(
            endpoint=endpoint,
            ok=False,
            duration_ms=int((time.monotonic() - started) * 1000),
            body_preview=f"ERROR: {e or type(e).__name__}",
        )

    try:
        body_json = resp.json()
    except ValueError:
        body_json = None

    return ProbeResult(
        endpoint=endpoint,
        ok=resp.is_success,
        status=resp.status_code,
        duration_ms=int((time.monotonic() - started) * 1000),
        body_preview=resp.text[:PREVIEW_CHARS],
        body_json=body_json,
    )


async def run_probes(client: SpotifyClient, access_token: str) -> Dict[str, Optional[ProbeResult]]:
    transport = client.transport
    me = await probe("/me", access_token, transport=transport)
    tracks = await probe("/me/tracks?limit=1", access_token, transport=transport)
    recent = await probe("/me/player/recently-played?limit=1", access_token, transport=transport)

    first_track_id = None
    if tracks.ok and isinstance(tracks.body_json, dict):
        items = tracks.body_json.get("items") or []
        if items and isinstance(items[0], dict):
            first_track_id = (items[0].get("track") or {}).get("id")

    features = None
    if first_track_id:
        features = await probe(f"/audio-features?ids={quote(first_track_id, safe='')}", access_token, transport=transport)

    return {"me": me, "tracks": tracks, "recent": recent, "features": features}

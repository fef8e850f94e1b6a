import os
import sys
from typing import Dict, List, Optional, Sequence

import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()

from findvibes.domain.entities import (  # noqa: E402
    Artist, RecommendationRequest, TimeRange, Track, UserProfile
)
from findvibes.domain.errors import NotFound  # noqa: E402


class FakeRecommendationClient:
    """In-memory client: deterministic top items, recommendations and playlists."""

    def __init__(self, top_track_ids: Sequence[str] = (), top_artist_ids: Sequence[str] = (),
                 country: str = "SE", failing_artists: Sequence[str] = ()):
        self.top_track_ids = list(top_track_ids)
        self.top_artist_ids = list(top_artist_ids)
        self.user = UserProfile(id="user_1", country=country)
        self.failing_artists = set(failing_artists)
        self.top_calls: List[tuple] = []
        self.recommendation_requests: List[RecommendationRequest] = []
        self.playlists: Dict[str, List[str]] = {}
        self.created: List[dict] = []
        self.top_track_lookups: List[tuple] = []

    def get_top_artists(self, limit: int, time_range: TimeRange) -> List[Artist]:
        self.top_calls.append(('artists', limit, time_range))
        return [Artist(id=artist_id, name=artist_id.upper()) for artist_id in self.top_artist_ids[:limit]]

    def get_top_tracks(self, limit: int, time_range: TimeRange) -> List[Track]:
        self.top_calls.append(('tracks', limit, time_range))
        return [Track(id=track_id) for track_id in self.top_track_ids[:limit]]

    def get_recommendations(self, request: RecommendationRequest) -> List[Track]:
        self.recommendation_requests.append(request)
        index = len(self.recommendation_requests)
        prefix = 'ta' if request.category.value == 'seed_artists' else 'tt'
        return [
            Track(id=f"{prefix}{index}_{n}", name=f"Song {index}.{n}",
                  artists=[Artist(id=f"artist_{request.seeds[0]}", name="Seed Artist")])
            for n in range(request.limit)
        ]

    def get_current_user(self) -> UserProfile:
        return self.user

    def create_playlist(self, user_id: str, name: str, description: str = "", public: bool = False) -> str:
        playlist_id = f"pl{len(self.created) + 1}"
        self.created.append({'user_id': user_id, 'name': name, 'description': description, 'public': public})
        self.playlists[playlist_id] = []
        return playlist_id

    def add_tracks_to_playlist(self, playlist_id: str, track_uris: Sequence[str],
                               position: Optional[int] = None) -> None:
        if playlist_id not in self.playlists:
            raise NotFound(playlist_id)
        if position is None:
            self.playlists[playlist_id].extend(track_uris)
        else:
            self.playlists[playlist_id][position:position] = list(track_uris)

    def remove_tracks_from_playlist(self, playlist_id: str, track_uris: Sequence[str]) -> None:
        if playlist_id not in self.playlists:
            raise NotFound(playlist_id)
        self.playlists[playlist_id] = [uri for uri in self.playlists[playlist_id] if uri not in track_uris]

    def get_artist_top_tracks(self, artist_id: str, country: Optional[str]) -> List[Track]:
        self.top_track_lookups.append((artist_id, country))
        if artist_id in self.failing_artists:
            raise RuntimeError(f"lookup failed for {artist_id}")
        return [Track(id=f"{artist_id}_hit{n}") for n in range(2)]


@pytest.fixture
def fake_client_factory():
    return FakeRecommendationClient


@pytest.fixture(autouse=True)
def _clear_findvibes_env():
    """Keep SPOTIFY_ACCESS_TOKEN and FINDVIBES_* settings from leaking across tests."""
    keys = ['SPOTIFY_ACCESS_TOKEN', 'FINDVIBES_METHOD', 'FINDVIBES_USE_TOP', 'FINDVIBES_TIME_RANGE',
            'FINDVIBES_PLAYLIST_LENGTH', 'FINDVIBES_PLAYLIST_NAME', 'FINDVIBES_MARKET']
    backup = {k: os.environ.get(k) for k in keys}
    for k in keys:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k, v in backup.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v

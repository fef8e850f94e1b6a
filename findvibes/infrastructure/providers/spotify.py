import os
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

import spotipy
from spotipy.exceptions import SpotifyException
from requests.exceptions import RequestException

from findvibes.domain.entities import Artist, RecommendationRequest, TimeRange, Track, UserProfile
from findvibes.domain.ports import RecommendationClient
from findvibes.domain.errors import (
    ExpiredSessionError, NotFound, PermanentFailure, RateLimited, TemporaryFailure
)

logger = logging.getLogger(__name__)

MAX_TOP_ITEMS = 50
MAX_RECOMMENDATIONS = 100


class SpotifyProvider(RecommendationClient):
    """Spotify Web API client backed by spotipy."""

    def __init__(self,
                 access_token: Optional[str] = None,
                 client: Optional[spotipy.Spotify] = None,
                 market: Optional[str] = None,
                 requests_timeout: int = 15):
        """Initialize Spotify provider.

        Args:
            access_token: OAuth access token of the listener
            client: Pre-built spotipy client, used instead of ``access_token``
            market: Fallback country for artist top tracks
            requests_timeout: HTTP timeout in seconds
        """
        if client is None:
            if not access_token:
                raise ValueError("Either access_token or client is required")
            # Retries stay with the caller
            client = spotipy.Spotify(
                auth=access_token,
                requests_timeout=requests_timeout,
                retries=0,
                status_retries=0,
            )
        self._client = client
        self._market = market or os.getenv('FINDVIBES_MARKET', 'US')

    def _call(self, operation: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Invoke a spotipy method and translate its failures into domain errors."""
        try:
            return func(*args, **kwargs)
        except SpotifyException as e:
            status = getattr(e, 'http_status', None)
            if status == 401:
                raise ExpiredSessionError(f"Spotify session expired during {operation}") from e
            if status == 429:
                headers = getattr(e, 'headers', None) or {}
                try:
                    retry_after = int(headers.get('Retry-After', 1))
                except (TypeError, ValueError):
                    retry_after = 1
                raise RateLimited(retry_after_ms=retry_after * 1000) from e
            if status == 404:
                raise NotFound(f"{operation}: {e.msg}") from e
            if status is not None and int(status) >= 500:
                raise TemporaryFailure(f"{operation}: {e.msg}") from e
            logger.error(f"Spotify rejected {operation}: {e}")
            raise PermanentFailure(f"{operation}: {e.msg}") from e
        except RequestException as e:
            raise TemporaryFailure(f"{operation}: {e}") from e

    def _spotify_track_to_domain(self, spotify_track: Dict[str, Any]) -> Optional[Track]:
        """Convert Spotify track to domain Track entity.

        Args:
            spotify_track: Spotify track object

        Returns:
            Domain Track entity or None if the payload has no id
        """
        if not spotify_track or not spotify_track.get('id'):
            return None

        artists = [
            Artist(id=artist['id'], name=artist.get('name', ''))
            for artist in spotify_track.get('artists') or []
            if artist.get('id')
        ]
        album = spotify_track.get('album') or {}

        return Track(
            id=spotify_track['id'],
            name=spotify_track.get('name', ''),
            uri=spotify_track.get('uri'),
            artists=artists,
            album=album.get('name'),
            duration_ms=spotify_track.get('duration_ms', 0),
        )

    def _tracks(self, items: Sequence[Dict[str, Any]]) -> List[Track]:
        tracks = []
        for item in items or []:
            track = self._spotify_track_to_domain(item)
            if track:
                tracks.append(track)
        return tracks

    def get_top_artists(self, limit: int, time_range: TimeRange) -> List[Artist]:
        """Return the current user's top artists."""
        result = self._call(
            "get_top_artists",
            self._client.current_user_top_artists,
            limit=min(limit, MAX_TOP_ITEMS),
            offset=0,
            time_range=time_range.value,
        )
        return [
            Artist(id=item['id'], name=item.get('name', ''))
            for item in (result or {}).get('items', [])
            if item.get('id')
        ]

    def get_top_tracks(self, limit: int, time_range: TimeRange) -> List[Track]:
        """Return the current user's top tracks."""
        result = self._call(
            "get_top_tracks",
            self._client.current_user_top_tracks,
            limit=min(limit, MAX_TOP_ITEMS),
            offset=0,
            time_range=time_range.value,
        )
        return self._tracks((result or {}).get('items', []))

    def get_recommendations(self, request: RecommendationRequest) -> List[Track]:
        """Return tracks recommended for the request's seeds."""
        query = request.as_query()
        query['limit'] = min(query['limit'], MAX_RECOMMENDATIONS)
        result = self._call("get_recommendations", self._client.recommendations, **query)
        return self._tracks((result or {}).get('tracks', []))

    def get_current_user(self) -> UserProfile:
        """Return the authenticated user's id and country."""
        me = self._call("get_current_user", self._client.current_user)
        return UserProfile(id=me['id'], country=me.get('country'))

    def create_playlist(self, user_id: str, name: str, description: str = "", public: bool = False) -> str:
        """Create a playlist owned by ``user_id`` and return its id."""
        result = self._call(
            "create_playlist",
            self._client.user_playlist_create,
            user_id,
            name,
            public=public,
            description=description,
        )
        return result['id']

    def add_tracks_to_playlist(self, playlist_id: str, track_uris: Sequence[str],
                               position: Optional[int] = None) -> None:
        """Add track URIs to a playlist, optionally at ``position``."""
        if not track_uris:
            return
        self._call(
            "add_tracks_to_playlist",
            self._client.playlist_add_items,
            playlist_id,
            list(track_uris),
            position=position,
        )

    def remove_tracks_from_playlist(self, playlist_id: str, track_uris: Sequence[str]) -> None:
        """Remove every occurrence of the URIs from a playlist."""
        if not track_uris:
            return
        self._call(
            "remove_tracks_from_playlist",
            self._client.playlist_remove_all_occurrences_of_items,
            playlist_id,
            list(track_uris),
        )

    def get_artist_top_tracks(self, artist_id: str, country: Optional[str]) -> List[Track]:
        """Return an artist's top tracks in ``country`` (or the default market)."""
        result = self._call(
            "get_artist_top_tracks",
            self._client.artist_top_tracks,
            artist_id,
            country=country or self._market,
        )
        return self._tracks((result or {}).get('tracks', []))

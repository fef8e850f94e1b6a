from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from .entities import Artist, RecommendationRequest, TimeRange, Track, UserProfile


class RecommendationClient(Protocol):
    """Port for the authenticated streaming API.

    Implementations map provider payloads into domain entities and provider
    failures into ``findvibes.domain.errors``.
    """

    def get_top_artists(self, limit: int, time_range: TimeRange) -> List[Artist]:
        """Return the current user's top artists."""

    def get_top_tracks(self, limit: int, time_range: TimeRange) -> List[Track]:
        """Return the current user's top tracks."""

    def get_recommendations(self, request: RecommendationRequest) -> List[Track]:
        """Return tracks recommended for the request's seeds."""

    def get_current_user(self) -> UserProfile:
        """Return the profile of the authenticated user."""

    def create_playlist(self, user_id: str, name: str, description: str = "", public: bool = False) -> str:
        """Create a playlist and return its id."""

    def add_tracks_to_playlist(self, playlist_id: str, track_uris: Sequence[str],
                               position: Optional[int] = None) -> None:
        """Add track URIs to the playlist."""

    def remove_tracks_from_playlist(self, playlist_id: str, track_uris: Sequence[str]) -> None:
        """Remove every occurrence of the track URIs from the playlist."""

    def get_artist_top_tracks(self, artist_id: str, country: Optional[str]) -> List[Track]:
        """Return the artist's top tracks in the given market."""

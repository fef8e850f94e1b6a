from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from findvibes.application.fanout import fan_out
from findvibes.crosscutting.config import DEFAULT_PLAYLIST_DESCRIPTION, DEFAULT_PLAYLIST_NAME
from findvibes.domain.entities import Playlist, Track
from findvibes.domain.errors import EmptyResultError, ExpiredSessionError, PerTrackEnrichmentError
from findvibes.domain.ports import RecommendationClient

logger = logging.getLogger(__name__)

# Spotify accepts up to 100 items per add request
ADD_BATCH_SIZE = 100


def track_uri(song_id: str) -> str:
    return f"spotify:track:{song_id}"


class PlaylistAssembler:
    """Creates the playlist for a set of tracks and enriches the tracks for display."""

    def __init__(self,
                 client: RecommendationClient,
                 name: str = DEFAULT_PLAYLIST_NAME,
                 description: str = DEFAULT_PLAYLIST_DESCRIPTION,
                 public: bool = False,
                 max_workers: int = 8):
        """Initialize assembler.

        Args:
            client: Authenticated API client
            name: Name of created playlists
            description: Description of created playlists
            public: Whether created playlists are public
            max_workers: Concurrent enrichment fetches
        """
        self.client = client
        self.name = name
        self.description = description
        self.public = public
        self.max_workers = max_workers

    def create_playlist(self, tracks: Sequence[Track]) -> Playlist:
        """Create a playlist holding ``tracks`` and attach each artist's top tracks.

        Args:
            tracks: Tracks to add, in playlist order

        Returns:
            The created playlist; every track has ``top_tracks`` set

        Raises:
            EmptyResultError: if ``tracks`` is empty
        """
        if not tracks:
            raise EmptyResultError("Cannot create a playlist from zero tracks")

        user = self.client.get_current_user()
        playlist_id = self.client.create_playlist(
            user.id, self.name, description=self.description, public=self.public
        )
        logger.info(f"Created playlist {playlist_id} for user {user.id}")

        playlist = Playlist(id=playlist_id, tracks=list(tracks), name=self.name)
        uris = list(playlist.track_uris)
        for i in range(0, len(uris), ADD_BATCH_SIZE):
            self.client.add_tracks_to_playlist(playlist_id, uris[i:i + ADD_BATCH_SIZE])

        playlist.enrichment_errors = self.enrich(playlist.tracks, user.country)
        return playlist

    def enrich(self, tracks: Sequence[Track], country: Optional[str]) -> List[PerTrackEnrichmentError]:
        """Attach the primary artist's top tracks to every track.

        A failure only degrades its own track to an empty ``top_tracks``,
        except an expired session, which is raised once every lookup has
        finished.

        Returns:
            Errors of the tracks that could not be enriched

        Raises:
            ExpiredSessionError: if any lookup was rejected for an expired token
        """
        def fetch(track: Track) -> List[Track]:
            artist = track.primary_artist
            if artist is None or not artist.id:
                raise ValueError("track has no artist")
            return self.client.get_artist_top_tracks(artist.id, country)

        errors: List[PerTrackEnrichmentError] = []
        for outcome in fan_out(fetch, tracks, max_workers=self.max_workers):
            track = outcome.item
            if outcome.ok:
                track.top_tracks = list(outcome.value or [])
                continue
            error = PerTrackEnrichmentError(track.id, outcome.error)
            logger.warning(str(error))
            track.top_tracks = []
            errors.append(error)

        for error in errors:
            if isinstance(error.cause, ExpiredSessionError):
                raise error.cause
        return errors

    def add_track(self, playlist_id: str, song_id: str) -> None:
        """Insert a track at the top of the playlist."""
        self.client.add_tracks_to_playlist(playlist_id, [track_uri(song_id)], position=0)

    def remove_track(self, playlist_id: str, song_id: str) -> None:
        """Remove every occurrence of a track from the playlist."""
        self.client.remove_tracks_from_playlist(playlist_id, [track_uri(song_id)])

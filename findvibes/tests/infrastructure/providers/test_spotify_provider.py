from unittest.mock import Mock, patch

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError
from spotipy.exceptions import SpotifyException

from findvibes.domain.entities import Artist, RecommendationRequest, SeedCategory, TimeRange
from findvibes.domain.errors import (
    ExpiredSessionError, NotFound, PermanentFailure, RateLimited, TemporaryFailure
)
from findvibes.infrastructure.providers.spotify import SpotifyProvider


def spotify_track(track_id, name="Song", artist_id="ar1"):
    return {
        'id': track_id,
        'name': name,
        'uri': f'spotify:track:{track_id}',
        'artists': [{'id': artist_id, 'name': 'Artist'}],
        'album': {'name': 'Album'},
        'duration_ms': 180000,
    }


class TestSpotifyProvider:
    """Contract tests for the Spotify client adapter."""

    def setup_method(self):
        """Set up test fixtures."""
        self.mock_spotify = Mock()
        self.provider = SpotifyProvider(client=self.mock_spotify, market="DE")

    def test_requires_token_or_client(self):
        with pytest.raises(ValueError):
            SpotifyProvider()

    @patch('findvibes.infrastructure.providers.spotify.spotipy.Spotify')
    def test_builds_spotipy_client_without_retries(self, mock_spotify_class):
        SpotifyProvider(access_token="token")

        mock_spotify_class.assert_called_once_with(
            auth="token", requests_timeout=15, retries=0, status_retries=0
        )

    def test_get_top_artists_maps_ids(self):
        self.mock_spotify.current_user_top_artists.return_value = {
            'items': [{'id': 'a1', 'name': 'One'}, {'id': 'a2', 'name': 'Two'}]
        }

        artists = self.provider.get_top_artists(2, TimeRange.LONG_TERM)

        assert artists == [Artist(id='a1', name='One'), Artist(id='a2', name='Two')]
        self.mock_spotify.current_user_top_artists.assert_called_once_with(
            limit=2, offset=0, time_range='long_term'
        )

    def test_get_top_tracks_caps_limit(self):
        self.mock_spotify.current_user_top_tracks.return_value = {'items': [spotify_track('t1')]}

        tracks = self.provider.get_top_tracks(80, TimeRange.SHORT_TERM)

        assert [t.id for t in tracks] == ['t1']
        self.mock_spotify.current_user_top_tracks.assert_called_once_with(
            limit=50, offset=0, time_range='short_term'
        )

    def test_get_recommendations_passes_seed_parameter(self):
        self.mock_spotify.recommendations.return_value = {
            'tracks': [spotify_track('r1'), spotify_track('r2'), {'id': None}]
        }
        request = RecommendationRequest(SeedCategory.TRACKS, ['t1', 't2'], 20)

        tracks = self.provider.get_recommendations(request)

        assert [t.id for t in tracks] == ['r1', 'r2']
        assert tracks[0].artists == [Artist(id='ar1', name='Artist')]
        assert tracks[0].album == 'Album'
        assert tracks[0].top_tracks is None
        self.mock_spotify.recommendations.assert_called_once_with(limit=20, seed_tracks=['t1', 't2'])

    def test_get_current_user(self):
        self.mock_spotify.current_user.return_value = {'id': 'u1', 'country': 'FR'}

        user = self.provider.get_current_user()

        assert user.id == 'u1'
        assert user.country == 'FR'

    def test_create_playlist_returns_id(self):
        self.mock_spotify.user_playlist_create.return_value = {'id': 'pl1'}

        playlist_id = self.provider.create_playlist('u1', 'Mix', description='desc', public=False)

        assert playlist_id == 'pl1'
        self.mock_spotify.user_playlist_create.assert_called_once_with(
            'u1', 'Mix', public=False, description='desc'
        )

    def test_add_tracks_with_position(self):
        self.provider.add_tracks_to_playlist('pl1', ['spotify:track:x'], position=0)

        self.mock_spotify.playlist_add_items.assert_called_once_with('pl1', ['spotify:track:x'], position=0)

    def test_add_tracks_empty_is_noop(self):
        self.provider.add_tracks_to_playlist('pl1', [])
        self.mock_spotify.playlist_add_items.assert_not_called()

    def test_remove_tracks(self):
        self.provider.remove_tracks_from_playlist('pl1', ['spotify:track:x'])

        self.mock_spotify.playlist_remove_all_occurrences_of_items.assert_called_once_with(
            'pl1', ['spotify:track:x']
        )

    def test_artist_top_tracks_falls_back_to_market(self):
        self.mock_spotify.artist_top_tracks.return_value = {'tracks': [spotify_track('h1')]}

        tracks = self.provider.get_artist_top_tracks('ar1', None)

        assert [t.id for t in tracks] == ['h1']
        self.mock_spotify.artist_top_tracks.assert_called_once_with('ar1', country='DE')

    def test_artist_top_tracks_uses_country(self):
        self.mock_spotify.artist_top_tracks.return_value = {'tracks': []}

        self.provider.get_artist_top_tracks('ar1', 'JP')

        self.mock_spotify.artist_top_tracks.assert_called_once_with('ar1', country='JP')


class TestSpotifyErrorMapping:
    """Translation of spotipy failures into domain errors."""

    def setup_method(self):
        self.mock_spotify = Mock()
        self.provider = SpotifyProvider(client=self.mock_spotify)

    def test_401_is_expired_session(self):
        self.mock_spotify.current_user.side_effect = SpotifyException(401, -1, "The access token expired")

        with pytest.raises(ExpiredSessionError):
            self.provider.get_current_user()

    def test_429_is_rate_limited_with_retry_after(self):
        self.mock_spotify.recommendations.side_effect = SpotifyException(
            429, -1, "Too many requests", headers={'Retry-After': '3'}
        )

        with pytest.raises(RateLimited) as exc_info:
            self.provider.get_recommendations(RecommendationRequest(SeedCategory.ARTISTS, ['a'], 5))
        assert exc_info.value.retry_after_ms == 3000

    def test_404_is_not_found(self):
        self.mock_spotify.playlist_add_items.side_effect = SpotifyException(404, -1, "Not found")

        with pytest.raises(NotFound):
            self.provider.add_tracks_to_playlist('missing', ['spotify:track:x'])

    def test_5xx_is_temporary(self):
        self.mock_spotify.current_user_top_tracks.side_effect = SpotifyException(503, -1, "Unavailable")

        with pytest.raises(TemporaryFailure):
            self.provider.get_top_tracks(5, TimeRange.MEDIUM_TERM)

    def test_other_4xx_is_permanent(self):
        self.mock_spotify.user_playlist_create.side_effect = SpotifyException(403, -1, "Forbidden")

        with pytest.raises(PermanentFailure):
            self.provider.create_playlist('u1', 'Mix')

    def test_transport_error_is_temporary(self):
        self.mock_spotify.artist_top_tracks.side_effect = RequestsConnectionError("reset")

        with pytest.raises(TemporaryFailure):
            self.provider.get_artist_top_tracks('ar1', 'US')

    def test_unexpected_errors_propagate_unchanged(self):
        self.mock_spotify.current_user.side_effect = KeyError('id')

        with pytest.raises(KeyError):
            self.provider.get_current_user()

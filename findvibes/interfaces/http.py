import os
import logging
from typing import Any, Callable, Dict, Optional
from datetime import datetime

from flask import Flask, request, jsonify

from findvibes.application.playlist import PlaylistAssembler
from findvibes.application.recommendation import RecommendationOrchestrator
from findvibes.crosscutting.config import ConfigError, RecommendationOptions
from findvibes.domain.entities import Playlist, Track
from findvibes.domain.errors import (
    EmptyResultError, ExpiredSessionError, FindVibesError, RateLimited
)
from findvibes.domain.ports import RecommendationClient
from findvibes.infrastructure.providers.spotify import SpotifyProvider

ClientFactory = Callable[[str], RecommendationClient]


def _default_client_factory(access_token: str) -> RecommendationClient:
    return SpotifyProvider(access_token=access_token)


def track_to_dict(track: Track, include_top_tracks: bool = True) -> Dict[str, Any]:
    data = {
        'id': track.id,
        'name': track.name,
        'uri': track.uri,
        'album': track.album,
        'durationMs': track.duration_ms,
        'artists': [{'id': artist.id, 'name': artist.name} for artist in track.artists],
    }
    if include_top_tracks and track.top_tracks is not None:
        data['topTracks'] = [track_to_dict(top, include_top_tracks=False) for top in track.top_tracks]
    return data


def playlist_to_dict(playlist: Playlist) -> Dict[str, Any]:
    return {
        'playListId': playlist.id,
        'name': playlist.name,
        'recommendedList': [track_to_dict(track) for track in playlist.tracks],
        'enrichmentErrors': [str(error) for error in playlist.enrichment_errors],
    }


class HTTPServer:
    """HTTP front-end that runs recommendations for a bearer token."""

    def __init__(self, host: str = 'localhost', port: int = 3000, debug: bool = False,
                 client_factory: Optional[ClientFactory] = None):
        """Initialize HTTP server."""
        self.host = host
        self.port = port
        self.debug = debug
        self.app = Flask(__name__)
        self.logger = logging.getLogger(__name__)
        self.client_factory = client_factory or _default_client_factory

        self.version = "0.1.0"
        self.commit = os.getenv('GIT_COMMIT', 'unknown')
        self.login_url = os.getenv('FINDVIBES_LOGIN_URL', 'http://localhost:8888/login')

        self._setup_routes()

    def _bearer_token(self) -> Optional[str]:
        header = request.headers.get('Authorization', '')
        if header.lower().startswith('bearer '):
            token = header[7:].strip()
            return token or None
        return None

    def _error(self, status: int, message: str, **extra):
        body = {'error': message}
        body.update(extra)
        return jsonify(body), status

    def _with_client(self, action: Callable[[RecommendationClient], Any]):
        """Run ``action`` against a client for the request's token and map domain errors."""
        token = self._bearer_token()
        if not token:
            return self._error(401, 'Missing bearer token', login_url=self.login_url)

        try:
            return action(self.client_factory(token))
        except ConfigError as e:
            return self._error(400, 'Invalid options', details=str(e))
        except ExpiredSessionError as e:
            self.logger.info(f"Session expired: {e}")
            return self._error(401, 'Session expired', login_url=self.login_url)
        except EmptyResultError as e:
            return self._error(422, 'No recommendations available', details=str(e))
        except RateLimited as e:
            response, status = self._error(429, 'Rate limited', retry_after_ms=e.retry_after_ms)
            response.headers['Retry-After'] = str(max(1, e.retry_after_ms // 1000))
            return response, status
        except FindVibesError as e:
            self.logger.error(f"Upstream failure: {e}")
            return self._error(502, 'Upstream failure', details=str(e))

    def _setup_routes(self) -> None:
        """Setup Flask routes."""

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'version': self.version,
                'commit': self.commit,
                'timestamp': datetime.now().isoformat()
            }), 200

        @self.app.route('/', methods=['GET'])
        def root():
            """Root endpoint with basic info."""
            return jsonify({
                'service': 'Find Vibes HTTP Interface',
                'version': self.version,
                'endpoints': {
                    'health': '/health',
                    'recommendations': '/recommendations',
                    'playlist_tracks': '/playlists/<playlist_id>/tracks/<track_id>'
                }
            }), 200

        @self.app.route('/recommendations', methods=['POST'])
        def recommendations():
            """Create a recommended playlist from the JSON options body."""
            body = request.get_json(silent=True)
            if body is None:
                body = {}
            options_data = body.get('options', body) if isinstance(body, dict) else None
            if not isinstance(options_data, dict):
                return self._error(400, 'Invalid options', details='JSON body must be an object')

            def action(client: RecommendationClient):
                options = RecommendationOptions.from_mapping(options_data)
                orchestrator = RecommendationOrchestrator(client, options)
                assembler = PlaylistAssembler(
                    client,
                    name=options.playlist_name,
                    description=options.playlist_description,
                    public=options.playlist_public,
                )
                playlist = orchestrator.run(assembler)
                self.logger.info(f"Created playlist {playlist.id} with {len(playlist.tracks)} tracks")
                return jsonify(playlist_to_dict(playlist)), 201

            return self._with_client(action)

        @self.app.route('/playlists/<playlist_id>/tracks/<track_id>', methods=['POST', 'DELETE'])
        def playlist_track(playlist_id: str, track_id: str):
            """Add (POST) or remove (DELETE) one track."""
            def action(client: RecommendationClient):
                assembler = PlaylistAssembler(client)
                if request.method == 'POST':
                    assembler.add_track(playlist_id, track_id)
                else:
                    assembler.remove_track(playlist_id, track_id)
                return '', 204

            return self._with_client(action)

    def run(self) -> None:
        """Run the HTTP server."""
        self.logger.info(f"Starting Find Vibes HTTP server on {self.host}:{self.port}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug
        )


def create_app(client_factory: Optional[ClientFactory] = None) -> Flask:
    """Create Flask app for testing."""
    server = HTTPServer(client_factory=client_factory)
    return server.app


if __name__ == '__main__':
    server = HTTPServer()
    server.run()

import os
import json
from dataclasses import dataclass
from typing import Dict, Any, Mapping, Optional
from pathlib import Path

from dotenv import dotenv_values

from findvibes.domain.entities import RecommendationMethod, TimeRange

DEFAULT_PLAYLIST_NAME = "Your Top Recommendations"
DEFAULT_PLAYLIST_DESCRIPTION = "A playlist of recommended songs made with Find Vibes"

MAX_TOP_ITEMS = 50
MAX_PLAYLIST_LENGTH = 100


class ConfigError(Exception):
    """Configuration error."""
    pass


def _to_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class RecommendationOptions:
    """User options for one recommendation run."""

    recommendations_method: RecommendationMethod = RecommendationMethod.ONLY_TRACK
    use_top_tracks: int = 5
    time_range: TimeRange = TimeRange.MEDIUM_TERM
    play_list_length: int = 30
    playlist_name: str = DEFAULT_PLAYLIST_NAME
    playlist_description: str = DEFAULT_PLAYLIST_DESCRIPTION
    playlist_public: bool = False

    def __post_init__(self):
        if not 1 <= self.use_top_tracks <= MAX_TOP_ITEMS:
            raise ConfigError(f"useTopTracks must be between 1 and {MAX_TOP_ITEMS}, got {self.use_top_tracks}")
        if not 1 <= self.play_list_length <= MAX_PLAYLIST_LENGTH:
            raise ConfigError(
                f"playListLength must be between 1 and {MAX_PLAYLIST_LENGTH}, got {self.play_list_length}"
            )
        if not self.playlist_name.strip():
            raise ConfigError("Playlist name must not be empty")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'RecommendationOptions':
        """Build options from a mapping using camelCase or snake_case keys."""
        def pick(*keys, default=None):
            for key in keys:
                if data.get(key) not in (None, ''):
                    return data[key]
            return default

        time_range_value = pick('timeRange', 'time_range', default=TimeRange.MEDIUM_TERM.value)
        try:
            time_range = TimeRange(time_range_value)
        except ValueError:
            raise ConfigError(f"Unknown time range: {time_range_value!r}")

        return cls(
            recommendations_method=RecommendationMethod.parse(
                pick('recommendationsMethod', 'recommendations_method', 'method')
            ),
            use_top_tracks=_to_int(pick('useTopTracks', 'use_top_tracks', default=5), 'useTopTracks'),
            time_range=time_range,
            play_list_length=_to_int(pick('playListLength', 'play_list_length', default=30), 'playListLength'),
            playlist_name=str(pick('playlistName', 'playlist_name', default=DEFAULT_PLAYLIST_NAME)),
            playlist_description=str(
                pick('playlistDescription', 'playlist_description', default=DEFAULT_PLAYLIST_DESCRIPTION)
            ),
            playlist_public=_to_bool(pick('public', 'playlist_public', default=False)),
        )

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'RecommendationOptions':
        """Build options from FINDVIBES_* environment variables."""
        env = os.environ if env is None else env
        return cls.from_mapping({
            'recommendationsMethod': env.get('FINDVIBES_METHOD'),
            'useTopTracks': env.get('FINDVIBES_USE_TOP'),
            'timeRange': env.get('FINDVIBES_TIME_RANGE'),
            'playListLength': env.get('FINDVIBES_PLAYLIST_LENGTH'),
            'playlistName': env.get('FINDVIBES_PLAYLIST_NAME'),
        })

    def to_dict(self) -> Dict[str, Any]:
        return {
            'recommendationsMethod': self.recommendations_method.value,
            'useTopTracks': self.use_top_tracks,
            'timeRange': self.time_range.value,
            'playListLength': self.play_list_length,
            'playlistName': self.playlist_name,
            'playlistDescription': self.playlist_description,
            'public': self.playlist_public,
        }


class SecretManager:
    """Manages Spotify tokens and the local .env file."""

    def __init__(self, config_dir: Optional[str] = None):
        """Initialize secret manager."""
        self.config_dir = Path(config_dir) if config_dir else Path.home() / '.findvibes'
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.tokens_file = self.config_dir / 'tokens.json'
        self.env_file = self.config_dir / '.env'

    def get_spotify_scopes(self) -> list:
        """Get minimal required Spotify scopes."""
        return [
            'user-top-read',              # Read top artists and tracks
            'user-read-private',          # Read the user's country
            'playlist-modify-public',     # Create/modify public playlists
            'playlist-modify-private',    # Create/modify private playlists
        ]

    def get_spotify_scope_string(self) -> str:
        """Get Spotify scopes as space-separated string."""
        return ' '.join(self.get_spotify_scopes())

    def get_missing_spotify_scopes(self, scopes: str) -> list:
        """Get list of missing required Spotify scopes."""
        provided_scopes = set(scopes.split())
        return [scope for scope in self.get_spotify_scopes() if scope not in provided_scopes]

    def load_tokens(self) -> Dict[str, Any]:
        """Load tokens from tokens.json file."""
        if not self.tokens_file.exists():
            return {}

        try:
            with open(self.tokens_file, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Failed to load tokens from {self.tokens_file}: {e}")

    def save_tokens(self, tokens: Dict[str, Any]) -> None:
        """Save tokens to tokens.json file."""
        existing_tokens = self.load_tokens()
        existing_tokens.update(tokens)
        try:
            with open(self.tokens_file, 'w') as f:
                json.dump(existing_tokens, f, indent=2, ensure_ascii=False)
        except IOError as e:
            raise ConfigError(f"Failed to save tokens to {self.tokens_file}: {e}")

    def get_spotify_tokens(self) -> Optional[Dict[str, str]]:
        """Get Spotify tokens from tokens.json."""
        tokens = self.load_tokens()
        return tokens.get('spotify')

    def save_spotify_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        """Save Spotify tokens."""
        spotify = {'access_token': access_token}
        if refresh_token:
            spotify['refresh_token'] = refresh_token
        self.save_tokens({'spotify': spotify})

    def load_env_vars(self) -> Dict[str, str]:
        """Load environment variables from .env file."""
        if not self.env_file.exists():
            return {}
        return {key: value for key, value in dotenv_values(self.env_file).items() if value is not None}

    def get_spotify_access_token(self) -> str:
        """Resolve the access token: environment first, then .env, then tokens.json."""
        token = os.getenv('SPOTIFY_ACCESS_TOKEN') or self.load_env_vars().get('SPOTIFY_ACCESS_TOKEN')
        if not token:
            spotify_tokens = self.get_spotify_tokens() or {}
            token = spotify_tokens.get('access_token')
        if not token or not str(token).strip():
            raise ConfigError("SPOTIFY_ACCESS_TOKEN not found in environment, .env or tokens.json")
        return str(token).strip()

import argparse
import sys
import logging
import signal
import time
from typing import List, Optional
from datetime import datetime

from dotenv import load_dotenv

from findvibes.application.playlist import PlaylistAssembler
from findvibes.application.recommendation import RecommendationOrchestrator
from findvibes.crosscutting.config import ConfigError, RecommendationOptions, SecretManager
from findvibes.crosscutting.logging import log_error, log_run_complete, log_run_start, setup_logging
from findvibes.domain.entities import RecommendationMethod, TimeRange
from findvibes.domain.errors import EmptyResultError, ExpiredSessionError
from findvibes.infrastructure.providers.spotify import SpotifyProvider

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_EMPTY = 2
EXIT_EXPIRED = 3
EXIT_INTERRUPTED = 130


class CLI:
    """Command Line Interface for Find Vibes."""

    def __init__(self, secret_manager: Optional[SecretManager] = None):
        """Initialize CLI."""
        self.parser = self._create_parser()
        self.secret_manager = secret_manager
        self._start_time = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='findvibes',
            description='Build a Spotify playlist from recommendations seeded by your top artists and tracks'
        )
        parser.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            default='INFO',
            help='Set logging level'
        )
        parser.add_argument(
            '--env-file',
            help='Load environment variables from this file before running'
        )
        parser.add_argument(
            '--config-dir',
            help='Directory holding tokens.json and .env (default: ~/.findvibes)'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        recommend_parser = subparsers.add_parser('recommend', help='Create a recommended playlist')
        recommend_parser.add_argument(
            '--method',
            choices=[m.value for m in RecommendationMethod],
            help='Which top items seed the recommendations (default: $FINDVIBES_METHOD or onlyTrack)'
        )
        recommend_parser.add_argument(
            '--use-top',
            type=int,
            help='Number of top items to use as seeds (default: $FINDVIBES_USE_TOP or 5)'
        )
        recommend_parser.add_argument(
            '--time-range',
            choices=[t.value for t in TimeRange],
            help='Time range of the top items (default: $FINDVIBES_TIME_RANGE or medium_term)'
        )
        recommend_parser.add_argument(
            '--length',
            type=int,
            help='Target playlist length (default: $FINDVIBES_PLAYLIST_LENGTH or 30)'
        )
        recommend_parser.add_argument(
            '--name',
            help='Playlist name (default: $FINDVIBES_PLAYLIST_NAME)'
        )

        scopes_parser = subparsers.add_parser('scopes', help='Show the Spotify scopes a token needs')
        scopes_parser.add_argument(
            '--granted',
            help='Space-separated scopes granted to your token; missing ones are reported'
        )

        for command, help_text in (('add', 'Add a track to a playlist'),
                                   ('remove', 'Remove a track from a playlist')):
            track_parser = subparsers.add_parser(command, help=help_text)
            track_parser.add_argument('--playlist-id', required=True, help='Target playlist ID')
            track_parser.add_argument('--track-id', required=True, help='Spotify track ID')

        return parser

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            logger = logging.getLogger(__name__)
            logger.warning(f"Received signal {signum}, shutting down...")
            sys.exit(EXIT_INTERRUPTED)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _create_run_id(self) -> str:
        """Create unique run identifier."""
        return f"findvibes_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

    def _get_secret_manager(self, args: argparse.Namespace) -> SecretManager:
        if self.secret_manager is None:
            self.secret_manager = SecretManager(getattr(args, 'config_dir', None))
        return self.secret_manager

    def _create_provider(self, args: argparse.Namespace) -> SpotifyProvider:
        """Create the Spotify client from the stored access token."""
        token = self._get_secret_manager(args).get_spotify_access_token()
        return SpotifyProvider(access_token=token)

    def _build_options(self, args: argparse.Namespace) -> RecommendationOptions:
        """Command-line flags override FINDVIBES_* environment settings."""
        data = RecommendationOptions.from_env().to_dict()
        overrides = {
            'recommendationsMethod': args.method,
            'useTopTracks': args.use_top,
            'timeRange': args.time_range,
            'playListLength': args.length,
            'playlistName': args.name,
        }
        data.update({key: value for key, value in overrides.items() if value is not None})
        return RecommendationOptions.from_mapping(data)

    def _scopes(self, args: argparse.Namespace) -> int:
        """Print the required scopes, or the ones missing from ``--granted``."""
        secret_manager = self._get_secret_manager(args)
        if args.granted is None:
            print(secret_manager.get_spotify_scope_string())
            return EXIT_OK

        missing = secret_manager.get_missing_spotify_scopes(args.granted)
        if missing:
            print("Missing Spotify scopes:")
            for scope in missing:
                print(f"  - {scope}")
            return EXIT_ERROR
        print("All required Spotify scopes are granted")
        return EXIT_OK

    def _recommend(self, args: argparse.Namespace) -> int:
        """Run a recommendation and print the created playlist."""
        logger = logging.getLogger(__name__)

        options = self._build_options(args)
        provider = self._create_provider(args)
        run_id = self._create_run_id()
        log_run_start(logger, run_id, options.recommendations_method.value,
                      options.use_top_tracks, options.play_list_length)

        orchestrator = RecommendationOrchestrator(provider, options)
        assembler = PlaylistAssembler(
            provider,
            name=options.playlist_name,
            description=options.playlist_description,
            public=options.playlist_public,
        )
        playlist = orchestrator.run(assembler)

        log_run_complete(logger, run_id, playlist.id, len(playlist.tracks), len(playlist.enrichment_errors))

        print(f"Playlist {playlist.name} ({playlist.id}):")
        print("-" * 50)
        for index, track in enumerate(playlist.tracks, start=1):
            artist = track.primary_artist.name if track.primary_artist else 'Unknown'
            print(f"{index:3}. {track.name} - {artist} (top tracks: {len(track.top_tracks or [])})")
        return EXIT_OK

    def _edit_playlist(self, args: argparse.Namespace) -> int:
        """Add or remove a single track."""
        assembler = PlaylistAssembler(self._create_provider(args))
        if args.command == 'add':
            assembler.add_track(args.playlist_id, args.track_id)
            print(f"Added {args.track_id} to {args.playlist_id}")
        else:
            assembler.remove_track(args.playlist_id, args.track_id)
            print(f"Removed {args.track_id} from {args.playlist_id}")
        return EXIT_OK

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run the CLI and return the exit code."""
        self._start_time = time.time()
        logger = logging.getLogger(__name__)

        args = self.parser.parse_args(argv)
        if not args.command:
            self.parser.print_help()
            return EXIT_ERROR

        if args.env_file:
            load_dotenv(args.env_file)
        setup_logging(args.log_level)

        try:
            if args.command == 'recommend':
                return self._recommend(args)
            if args.command == 'scopes':
                return self._scopes(args)
            return self._edit_playlist(args)
        except ExpiredSessionError as e:
            log_error(logger, "Spotify session expired; obtain a new access token", e)
            return EXIT_EXPIRED
        except EmptyResultError as e:
            log_error(logger, "No tracks to build a playlist from", e)
            return EXIT_EMPTY
        except ConfigError as e:
            log_error(logger, "Invalid configuration", e)
            return EXIT_ERROR
        except KeyboardInterrupt:
            logger.warning("Operation cancelled by user")
            return EXIT_INTERRUPTED
        except Exception as e:
            log_error(logger, f"Command '{args.command}' failed", e)
            return EXIT_ERROR
        finally:
            logger.debug(f"CLI execution time: {time.time() - self._start_time:.2f}s")


def main():
    """Main entry point."""
    cli = CLI()
    cli._setup_signal_handlers()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

MAX_SEEDS = 5


class SeedCategory(Enum):
    """Which recommendation parameter a seed set populates."""

    TRACKS = "seed_tracks"
    ARTISTS = "seed_artists"


class RecommendationMethod(Enum):
    """How top items are turned into seeds."""

    ONLY_ARTIST = "onlyArtist"
    SPLIT = "split"
    ONLY_TRACK = "onlyTrack"

    @classmethod
    def parse(cls, value: Optional[str]) -> "RecommendationMethod":
        """Return the matching method; anything unknown seeds from tracks only."""
        if isinstance(value, cls):
            return value
        for method in cls:
            if method.value == value:
                return method
        return cls.ONLY_TRACK


class TimeRange(Enum):
    SHORT_TERM = "short_term"
    MEDIUM_TERM = "medium_term"
    LONG_TERM = "long_term"


@dataclass(frozen=True)
class Artist:
    """Artist reference as returned by top-items and track payloads."""

    id: str
    name: str = ""


@dataclass
class Track:
    """Recommended track.

    ``top_tracks`` stays ``None`` until the playlist assembler enriches the
    track with its primary artist's top tracks; it is set exactly once.
    """

    id: str
    name: str = ""
    uri: Optional[str] = None
    artists: List[Artist] = field(default_factory=list)
    album: Optional[str] = None
    duration_ms: int = 0
    top_tracks: Optional[List["Track"]] = None

    def __post_init__(self):
        if self.uri is None and self.id:
            self.uri = f"spotify:track:{self.id}"

    @property
    def primary_artist(self) -> Optional[Artist]:
        return self.artists[0] if self.artists else None


@dataclass(frozen=True)
class UserProfile:
    """Current user as needed for playlist creation and market scoping."""

    id: str
    country: Optional[str] = None


@dataclass(frozen=True)
class RecommendationRequest:
    """One call to the recommendation endpoint.

    Holds at most ``MAX_SEEDS`` seeds of a single category and a
    non-negative result limit.
    """

    category: SeedCategory
    seeds: Tuple[str, ...]
    limit: int

    def __post_init__(self):
        object.__setattr__(self, 'seeds', tuple(self.seeds))
        if not self.seeds:
            raise ValueError("A recommendation request needs at least one seed")
        if len(self.seeds) > MAX_SEEDS:
            raise ValueError(f"At most {MAX_SEEDS} seeds are allowed per request, got {len(self.seeds)}")
        if self.limit < 0:
            raise ValueError(f"Limit must be non-negative, got {self.limit}")

    def as_query(self) -> dict:
        """Render the request as recommendation endpoint parameters."""
        return {
            'limit': self.limit,
            self.category.value: list(self.seeds),
        }


@dataclass
class Playlist:
    """Playlist created for one recommendation run."""

    id: str
    tracks: List[Track] = field(default_factory=list)
    name: str = ""
    enrichment_errors: List[Exception] = field(default_factory=list)

    @property
    def track_uris(self) -> Sequence[str]:
        return [track.uri for track in self.tracks if track.uri]

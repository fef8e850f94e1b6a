from __future__ import annotations

import logging
import math
from typing import Dict, List, TYPE_CHECKING

from findvibes.application.allocation import allocate
from findvibes.crosscutting.config import RecommendationOptions
from findvibes.domain.entities import (
    Playlist,
    RecommendationMethod,
    RecommendationRequest,
    SeedCategory,
    Track,
)
from findvibes.domain.errors import EmptyResultError
from findvibes.domain.ports import RecommendationClient

if TYPE_CHECKING:
    from findvibes.application.playlist import PlaylistAssembler

logger = logging.getLogger(__name__)

# Artist-seeded requests are issued before track-seeded ones.
ISSUE_ORDER = (SeedCategory.ARTISTS, SeedCategory.TRACKS)


class RecommendationOrchestrator:
    """Gathers top-item seeds, requests recommendations per category and merges them."""

    def __init__(self, client: RecommendationClient, options: RecommendationOptions):
        """Initialize orchestrator.

        Args:
            client: Authenticated API client
            options: Seed mode, top-item count, time range and playlist length
        """
        self.client = client
        self.options = options

    @property
    def method(self) -> RecommendationMethod:
        return self.options.recommendations_method

    def top_item_counts(self) -> Dict[SeedCategory, int]:
        """Number of top items to fetch per seed category."""
        n = self.options.use_top_tracks
        if self.method is RecommendationMethod.ONLY_ARTIST:
            return {SeedCategory.ARTISTS: n}
        if self.method is RecommendationMethod.SPLIT:
            tracks = math.ceil(n / 2)
            counts = {SeedCategory.TRACKS: tracks}
            if n - tracks > 0:
                counts[SeedCategory.ARTISTS] = n - tracks
            return counts
        return {SeedCategory.TRACKS: n}

    def quota_for(self, category: SeedCategory) -> int:
        """Share of the playlist length assigned to requests seeded by ``category``."""
        length = self.options.play_list_length
        if self.method is RecommendationMethod.SPLIT:
            if category is SeedCategory.TRACKS:
                return math.ceil(length / 2)
            return length // 2
        return length

    def gather_seeds(self) -> Dict[SeedCategory, List[str]]:
        """Fetch the user's top items and return their ids per category."""
        seeds: Dict[SeedCategory, List[str]] = {}
        counts = self.top_item_counts()
        time_range = self.options.time_range

        if SeedCategory.TRACKS in counts:
            top_tracks = self.client.get_top_tracks(limit=counts[SeedCategory.TRACKS], time_range=time_range)
            seeds[SeedCategory.TRACKS] = [track.id for track in top_tracks if track.id]
        if SeedCategory.ARTISTS in counts:
            top_artists = self.client.get_top_artists(limit=counts[SeedCategory.ARTISTS], time_range=time_range)
            seeds[SeedCategory.ARTISTS] = [artist.id for artist in top_artists if artist.id]

        summary = ", ".join(f"{category.value}={len(ids)}" for category, ids in seeds.items())
        logger.debug(f"Gathered seeds: {summary}")
        return seeds

    def plan(self, seeds: Dict[SeedCategory, List[str]]) -> List[RecommendationRequest]:
        """Allocate every non-empty category into requests, in issue order."""
        requests: List[RecommendationRequest] = []
        for category in ISSUE_ORDER:
            ids = seeds.get(category)
            quota = self.quota_for(category)
            if not ids or quota <= 0:
                continue
            requests.extend(allocate(ids, category, quota))
        return requests

    def recommend(self) -> List[Track]:
        """Return recommended tracks for the configured seeds.

        Returns:
            Tracks of every request concatenated in issue order

        Raises:
            EmptyResultError: if no request produced any track
        """
        seeds = self.gather_seeds()
        requests = self.plan(seeds)

        tracks: List[Track] = []
        for request in requests:
            batch = self.client.get_recommendations(request)
            logger.debug(
                f"{request.category.value} x{len(request.seeds)} limit={request.limit} -> {len(batch)} tracks"
            )
            tracks.extend(batch)

        if not tracks:
            raise EmptyResultError(
                f"No recommendations for method '{self.method.value}' ({len(requests)} requests issued)"
            )

        logger.info(f"Collected {len(tracks)} recommended tracks from {len(requests)} requests")
        return tracks

    def run(self, assembler: 'PlaylistAssembler') -> Playlist:
        """Recommend tracks and materialize them as a playlist."""
        tracks = self.recommend()
        return assembler.create_playlist(tracks)

"""Share content: what every channel renders for a ready episode."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..config_constants import MAX_SHARE_HIGHLIGHTS
from ..exceptions import NotFoundError
from ..storage import EpisodeRecord, EpisodeRepository, SummaryRepository

logger = logging.getLogger(__name__)

UNKNOWN_PODCAST = "Unknown Podcast"
FALLBACK_HEADLINE = "New episode analysis available"


@dataclass(frozen=True)
class ShareContent:
    episode_title: str
    podcast_name: str
    podcast_image_url: Optional[str]
    hook_headline: str
    highlights: Tuple[str, ...] = field(default_factory=tuple)
    insights_url: str = ""


def insights_url(app_url: str, episode_id: str) -> str:
    return f"{app_url.rstrip('/')}/episode/{episode_id}/insights"


class ShareContentBuilder:
    """Builds ``ShareContent`` from the catalog and ready summaries."""

    def __init__(
        self,
        episodes: EpisodeRepository,
        summaries: SummaryRepository,
        app_url: str,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.episodes = episodes
        self.summaries = summaries
        self.app_url = app_url
        self.log = log or logger

    def _episode(self, episode_id: str) -> EpisodeRecord:
        episode = self.episodes.get(episode_id)
        if episode is None:
            raise NotFoundError("episode", episode_id)
        return episode

    def build(self, episode_id: str) -> ShareContent:
        """Full content: hook headline from the quick summary, highlights from insights.

        Raises:
            NotFoundError: If the episode does not exist
        """
        episode = self._episode(episode_id)

        quick = self.summaries.latest_ready(episode_id, "quick")
        headline = None
        if quick is not None and quick.content:
            headline = quick.content.get("hook_headline")

        highlights: Tuple[str, ...] = ()
        insights = self.summaries.latest_ready(episode_id, "insights")
        if insights is not None and insights.content:
            quotes = [
                str(item.get("quote", "")).strip()
                for item in insights.content.get("highlights") or []
                if isinstance(item, dict)
            ]
            highlights = tuple(q for q in quotes if q)[:MAX_SHARE_HIGHLIGHTS]

        return ShareContent(
            episode_title=episode.title,
            podcast_name=episode.podcast_title or UNKNOWN_PODCAST,
            podcast_image_url=episode.podcast_image_url,
            hook_headline=headline or episode.title,
            highlights=highlights,
            insights_url=insights_url(self.app_url, episode_id),
        )

    def build_minimal(self, episode_id: str) -> ShareContent:
        """Content without summaries, for admin force-sends."""
        episode = self.episodes.get(episode_id)
        title = episode.title if episode is not None else ""
        return ShareContent(
            episode_title=title or "Episode",
            podcast_name=(episode.podcast_title if episode else None) or UNKNOWN_PODCAST,
            podcast_image_url=episode.podcast_image_url if episode else None,
            hook_headline=title or FALLBACK_HEADLINE,
            highlights=(),
            insights_url=insights_url(self.app_url, episode_id),
        )

"""Content generators for each summary level.

``deep`` runs the agent pipeline; ``quick`` and ``insights`` are single model
calls. Every generator returns the JSON-ready dict that is persisted as the
summary content.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .. import config, config_constants
from ..exceptions import ValidationError
from ..models import DiarizedTranscript, SUMMARY_LEVELS
from ..prompt_store import render_prompt
from ..schemas import InsightsContent, QuickSummaryContent
from .agents import AgentPipeline, json_system_prompt
from .json_extract import parse_model_output
from .llm import LanguageModel

logger = logging.getLogger(__name__)


def truncate_transcript(text: str, limit: int) -> str:
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit]


class LevelGenerator:
    """Produces summary content for a level from a diarized transcript."""

    def __init__(
        self,
        model: LanguageModel,
        pipeline: AgentPipeline,
        quick_model: Optional[str] = None,
        insights_model: Optional[str] = None,
        transcript_char_limit: int = config_constants.DEFAULT_TRANSCRIPT_CHAR_LIMIT,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.model = model
        self.pipeline = pipeline
        self.quick_model = quick_model
        self.insights_model = insights_model
        self.transcript_char_limit = transcript_char_limit
        self.log = log or logger

    @classmethod
    def from_config(
        cls, cfg: config.Config, model: LanguageModel, log: Optional[logging.Logger] = None
    ) -> "LevelGenerator":
        pipeline = AgentPipeline(
            model,
            model_name=cfg.agent_model,
            writer_concurrency=cfg.writer_concurrency,
            log=log,
        )
        return cls(
            model,
            pipeline,
            quick_model=cfg.quick_model,
            insights_model=cfg.insights_model,
            transcript_char_limit=cfg.transcript_char_limit,
            log=log,
        )

    def generate(
        self, level: str, transcript: DiarizedTranscript, language: Optional[str] = None
    ) -> Dict[str, Any]:
        """Return persisted content for ``level``.

        Raises:
            ValidationError: If ``level`` is unknown
            AgentOutputError: If model output cannot be used
            ProviderError: If the model call fails after retries
        """
        if level == "deep":
            return self.pipeline.run(transcript).to_dict()
        if level == "quick":
            return self._generate_quick(transcript, language)
        if level == "insights":
            return self._generate_insights(transcript, language)
        raise ValidationError(f"Unknown summary level {level!r}; expected one of {SUMMARY_LEVELS}")

    def _transcript_text(self, transcript: DiarizedTranscript) -> str:
        text = transcript.to_caption_text()
        truncated = truncate_transcript(text, self.transcript_char_limit)
        if len(truncated) < len(text):
            self.log.info(
                "Transcript truncated from %d to %d characters", len(text), len(truncated)
            )
        return truncated

    def _generate_quick(
        self, transcript: DiarizedTranscript, language: Optional[str]
    ) -> Dict[str, Any]:
        prompt = render_prompt(
            "levels/quick_user",
            transcript_text=self._transcript_text(transcript),
            language=language,
        )
        text = self.model.complete(
            json_system_prompt("a podcast editor who writes short episode summaries"),
            prompt,
            config_constants.QUICK_MAX_TOKENS,
            model=self.quick_model,
            operation_name="quick",
        )
        content = parse_model_output("quick", text, QuickSummaryContent)
        return content.model_dump()

    def _generate_insights(
        self, transcript: DiarizedTranscript, language: Optional[str]
    ) -> Dict[str, Any]:
        prompt = render_prompt(
            "levels/insights_user",
            transcript_text=self._transcript_text(transcript),
            language=language,
        )
        text = self.model.complete(
            json_system_prompt("a podcast researcher who extracts keywords and quotes"),
            prompt,
            config_constants.INSIGHTS_MAX_TOKENS,
            model=self.insights_model,
            operation_name="insights",
        )
        content = parse_model_output("insights", text, InsightsContent)
        content = content.model_copy(
            update={"generated_at": datetime.now(timezone.utc).isoformat()}
        )
        return content.model_dump()

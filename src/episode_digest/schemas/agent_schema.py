"""Validated shapes of language-model output for every summarization stage.

Models accept both snake_case and camelCase keys, because models do not always
follow the requested casing. Lenient defaults mirror what a reader can still
use; structural problems (no topic blocks, no tldr) fail validation.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..models import SPEAKER_ROLES


def _string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ValueError("expected a list of strings")
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


class _AgentModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SpeakerOut(_AgentModel):
    id: int
    name: str = ""
    role: str = "unknown"

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> str:
        role = str(value or "").strip().lower()
        return role if role in SPEAKER_ROLES else "unknown"


class TopicBlockOut(_AgentModel):
    id: str
    label: str = ""
    utterance_indices: List[int] = Field(
        validation_alias=AliasChoices("utterance_indices", "utteranceIndices")
    )
    primary_speaker: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("primary_speaker", "primarySpeaker")
    )

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value).strip()


class AnalystOutput(_AgentModel):
    speakers: List[SpeakerOut] = Field(default_factory=list)
    topic_blocks: List[TopicBlockOut] = Field(
        min_length=1, validation_alias=AliasChoices("topic_blocks", "topicBlocks")
    )


class ContributionOut(_AgentModel):
    speaker: str
    contribution: str = ""


class WriterOutput(_AgentModel):
    summary: str = ""
    key_points: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("key_points", "keyPoints")
    )
    speaker_contributions: List[ContributionOut] = Field(
        default_factory=list,
        validation_alias=AliasChoices("speaker_contributions", "speakerContributions"),
    )

    @field_validator("key_points", mode="before")
    @classmethod
    def _coerce_points(cls, value: Any) -> List[str]:
        return _string_list(value)


class SectionOut(_AgentModel):
    title: str = ""
    summary: str = ""
    key_points: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("key_points", "keyPoints")
    )
    speakers: List[str] = Field(default_factory=list)

    @field_validator("key_points", "speakers", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> List[str]:
        return _string_list(value)


class EditorOutput(_AgentModel):
    tldr: str = Field(min_length=1)
    sections: List[SectionOut] = Field(default_factory=list)
    key_takeaways: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("key_takeaways", "keyTakeaways")
    )
    action_items: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("action_items", "actionItems")
    )
    topics: List[str] = Field(default_factory=list)

    @field_validator("tldr", mode="before")
    @classmethod
    def _strip_tldr(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator("key_takeaways", "action_items", "topics", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> List[str]:
        return _string_list(value)


class QuickSummaryContent(_AgentModel):
    """Persisted content of a ``quick`` summary."""

    tldr: str = Field(min_length=1)
    hook_headline: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("hook_headline", "hookHeadline")
    )
    key_takeaways: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("key_takeaways", "keyTakeaways")
    )
    who_is_this_for: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("who_is_this_for", "whoIsThisFor")
    )
    topics: List[str] = Field(default_factory=list)

    @field_validator("key_takeaways", "topics", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> List[str]:
        return _string_list(value)


class KeywordItem(_AgentModel):
    word: str
    frequency: int = 1
    relevance: str = "medium"

    @field_validator("relevance", mode="before")
    @classmethod
    def _normalize_relevance(cls, value: Any) -> str:
        relevance = str(value or "").strip().lower()
        return relevance if relevance in ("high", "medium", "low") else "medium"


class HighlightItem(_AgentModel):
    quote: str = Field(min_length=1)
    context: str = ""
    importance: str = "notable"

    @field_validator("importance", mode="before")
    @classmethod
    def _normalize_importance(cls, value: Any) -> str:
        importance = str(value or "").strip().lower()
        return importance if importance in ("critical", "important", "notable") else "notable"


class ShownotesSection(_AgentModel):
    title: str
    content: str = ""


class InsightsContent(_AgentModel):
    """Persisted content of an ``insights`` summary."""

    keywords: List[KeywordItem] = Field(default_factory=list)
    highlights: List[HighlightItem] = Field(default_factory=list)
    shownotes: List[ShownotesSection] = Field(default_factory=list)
    generated_at: Optional[str] = None

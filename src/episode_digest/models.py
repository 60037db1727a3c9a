"""Domain models for transcripts and summaries.

Transcript data produced by providers is immutable: ``Utterance`` and
``DiarizedTranscript`` are frozen dataclasses, and summarization stages only
read them.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple

from .config_constants import SPEAKER_MERGE_GAP_SECONDS

SummaryLevel = Literal["quick", "deep", "insights"]
SummaryStatus = Literal["not_ready", "queued", "transcribing", "summarizing", "ready", "failed"]
TranscriptStatus = Literal["not_ready", "queued", "transcribing", "ready", "failed"]
SpeakerRole = Literal["host", "guest", "unknown"]

SUMMARY_LEVELS: Tuple[str, ...] = ("quick", "deep", "insights")
SPEAKER_ROLES: Tuple[str, ...] = ("host", "guest", "unknown")


def format_timestamp(seconds: float) -> str:
    """Render seconds as zero-padded ``mm:ss`` (minutes may exceed 59)."""
    total = max(0, int(seconds))
    return f"{total // 60:02d}:{total % 60:02d}"


def format_clock(seconds: float) -> str:
    """Render seconds as ``m:ss`` for prompt text."""
    total = max(0, int(seconds))
    return f"{total // 60}:{total % 60:02d}"


@dataclass(frozen=True)
class Utterance:
    """One timestamped, speaker-attributed span of transcript text.

    Attributes:
        start: Start time in seconds.
        end: End time in seconds.
        speaker: Non-negative speaker id, scoped to one transcript.
        text: Spoken text.
        confidence: Provider confidence in [0, 1].
    """

    start: float
    end: float
    speaker: int
    text: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Utterance":
        return cls(
            start=float(data.get("start", 0.0)),
            end=float(data.get("end", 0.0)),
            speaker=int(data.get("speaker", 0)),
            text=str(data.get("text", "")),
            confidence=float(data.get("confidence", 0.0)),
        )


@dataclass(frozen=True)
class DiarizedTranscript:
    """Ordered utterances of one episode in one language, plus derived views.

    Example:
        >>> t = DiarizedTranscript.from_utterances([Utterance(0, 5, 0, "Hi", 0.9)])
        >>> t.to_caption_text()
        '[00:00] [Speaker 0] Hi'
    """

    utterances: Tuple[Utterance, ...] = ()
    detected_language: Optional[str] = None

    @classmethod
    def from_utterances(
        cls, utterances: Iterable[Utterance], detected_language: Optional[str] = None
    ) -> "DiarizedTranscript":
        return cls(utterances=tuple(utterances), detected_language=detected_language)

    @property
    def full_text(self) -> str:
        return " ".join(u.text for u in self.utterances if u.text)

    @property
    def duration(self) -> float:
        if not self.utterances:
            return 0.0
        return self.utterances[-1].end

    @property
    def speaker_ids(self) -> List[int]:
        return sorted({u.speaker for u in self.utterances})

    @property
    def speaker_count(self) -> int:
        return len(self.speaker_ids)

    def to_caption_text(self) -> str:
        """One ``[mm:ss] [Speaker N] text`` line per utterance."""
        return "\n".join(
            f"[{format_timestamp(u.start)}] [Speaker {u.speaker}] {u.text}"
            for u in self.utterances
        )

    def to_speaker_text(
        self,
        speakers: Sequence["SpeakerInfo"] = (),
        max_gap_seconds: float = SPEAKER_MERGE_GAP_SECONDS,
    ) -> str:
        """Render paragraphs with speaker names.

        Consecutive utterances of one speaker are merged unless separated by more
        than ``max_gap_seconds``.
        """
        names = {s.id: s.name for s in speakers}
        paragraphs: List[Tuple[int, float, List[str]]] = []
        last_end = 0.0
        for u in self.utterances:
            gap = u.start - last_end
            if paragraphs and paragraphs[-1][0] == u.speaker and gap <= max_gap_seconds:
                paragraphs[-1][2].append(u.text)
            else:
                paragraphs.append((u.speaker, u.start, [u.text]))
            last_end = u.end
        return "\n".join(
            f"[{format_timestamp(start)}] [{names.get(speaker, f'Speaker {speaker}')}] "
            f"{' '.join(texts)}"
            for speaker, start, texts in paragraphs
        )

    def to_prompt_text(self) -> str:
        """Index-addressable rendering ``[i] Speaker X: text`` used by the Analyst."""
        return "\n".join(
            f"[{i}] Speaker {u.speaker}: {u.text}" for i, u in enumerate(self.utterances)
        )

    def utterances_to_json(self) -> List[Dict[str, Any]]:
        return [u.to_dict() for u in self.utterances]

    @classmethod
    def from_json(
        cls, utterances: Optional[Iterable[Mapping[str, Any]]], detected_language: Optional[str]
    ) -> "DiarizedTranscript":
        return cls.from_utterances(
            (Utterance.from_dict(u) for u in utterances or ()), detected_language
        )


@dataclass(frozen=True)
class SpeakerInfo:
    id: int
    name: str
    role: str = "unknown"

    @property
    def display_name(self) -> str:
        """Name with role in parentheses, e.g. ``Dana (host)``."""
        return f"{self.name} ({self.role})"


@dataclass(frozen=True)
class TopicBlock:
    """A contiguous, subject-coherent group of utterances produced by the Analyst."""

    id: str
    label: str
    utterance_indices: Tuple[int, ...]
    utterances: Tuple[Utterance, ...]
    primary_speaker: int
    start_time: float
    end_time: float


@dataclass(frozen=True)
class AnalysisResult:
    speakers: Tuple[SpeakerInfo, ...]
    topic_blocks: Tuple[TopicBlock, ...]


@dataclass(frozen=True)
class SpeakerContribution:
    speaker: str
    contribution: str


@dataclass(frozen=True)
class BlockSummary:
    block_id: str
    label: str
    summary: str
    key_points: Tuple[str, ...] = ()
    speaker_contributions: Tuple[SpeakerContribution, ...] = ()


@dataclass(frozen=True)
class FinalSection:
    title: str
    summary: str
    key_points: Tuple[str, ...] = ()
    speakers: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FinalSummary:
    """Editor output; the persisted content of a ``deep`` summary."""

    tldr: str
    speakers: Tuple[SpeakerInfo, ...] = ()
    sections: Tuple[FinalSection, ...] = ()
    key_takeaways: Tuple[str, ...] = ()
    action_items: Tuple[str, ...] = ()
    topics: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tldr": self.tldr,
            "speakers": [asdict(s) for s in self.speakers],
            "sections": [
                {
                    "title": s.title,
                    "summary": s.summary,
                    "key_points": list(s.key_points),
                    "speakers": list(s.speakers),
                }
                for s in self.sections
            ],
            "key_takeaways": list(self.key_takeaways),
            "action_items": list(self.action_items),
            "topics": list(self.topics),
        }


@dataclass
class SummaryResult:
    """What ``request_summary`` returns to its caller.

    ``error`` is a short human-readable message, never a stack trace.
    """

    status: str
    error: Optional[str] = None
    content: Optional[Dict[str, Any]] = None
    started: bool = False


@dataclass
class StatusSnapshot:
    """Current transcript and per-level summary state of one episode/language."""

    episode_id: str
    language: str
    transcript: Optional[Dict[str, Any]] = None
    summaries: Dict[str, Optional[Dict[str, Any]]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "episode_id": self.episode_id,
            "language": self.language,
            "transcript": self.transcript,
            "summaries": self.summaries,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StatusSnapshot":
        return cls(
            episode_id=data["episode_id"],
            language=data["language"],
            transcript=data.get("transcript"),
            summaries=dict(data.get("summaries") or {}),
        )

"""Three-stage summarization pipeline: Analyst, Writer, Editor.

The Analyst names speakers and partitions the transcript into topic blocks,
Writers summarize each block concurrently, and the Editor merges the ordered
block summaries into a ``FinalSummary``. Any stage failure aborts the run;
nothing partial is returned.
"""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Dict, List, Optional, Sequence

from .. import config_constants
from ..exceptions import AgentOutputError
from ..models import (
    AnalysisResult,
    BlockSummary,
    DiarizedTranscript,
    FinalSection,
    FinalSummary,
    format_clock,
    SpeakerContribution,
    SpeakerInfo,
    TopicBlock,
    Utterance,
)
from ..prompt_store import get_prompt_metadata, render_prompt
from ..schemas import AnalystOutput, EditorOutput, WriterOutput
from ..schemas.agent_schema import TopicBlockOut
from .json_extract import parse_model_output
from .llm import LanguageModel

logger = logging.getLogger(__name__)

AGENT_PROMPTS = ("agents/analyst_user", "agents/writer_user", "agents/editor_user")


def json_system_prompt(role_description: str) -> str:
    return render_prompt("agents/system_json", role_description=role_description)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def dominant_speaker(utterances: Sequence[Utterance]) -> int:
    """Speaker with the most speaking time; lowest id wins ties."""
    totals: Dict[int, float] = {}
    for u in utterances:
        totals[u.speaker] = totals.get(u.speaker, 0.0) + max(0.0, u.end - u.start)
    if not totals:
        return 0
    return min(totals, key=lambda speaker: (-totals[speaker], speaker))


def validate_partition(blocks: Sequence[TopicBlockOut], utterance_count: int) -> None:
    """Check that every utterance index belongs to exactly one block.

    Raises:
        AgentOutputError: On an out-of-range index, a duplicate, a gap, or an empty block
    """
    seen: Dict[int, str] = {}
    for block in blocks:
        if not block.utterance_indices:
            raise AgentOutputError("analyst", f"topic block {block.id} has no utterances")
        for index in block.utterance_indices:
            if index < 0 or index >= utterance_count:
                raise AgentOutputError(
                    "analyst",
                    f"utterance index {index} out of range (0..{utterance_count - 1})",
                )
            if index in seen:
                raise AgentOutputError(
                    "analyst",
                    f"utterance index {index} assigned to blocks {seen[index]} and {block.id}",
                )
            seen[index] = block.id
    missing = sorted(set(range(utterance_count)) - set(seen))
    if missing:
        preview = ", ".join(str(i) for i in missing[:10])
        raise AgentOutputError("analyst", f"utterances not assigned to any block: {preview}")


class Analyst:
    """Identifies speakers and topic blocks in one model call."""

    stage = "analyst"

    def __init__(
        self,
        model: LanguageModel,
        model_name: Optional[str] = None,
        max_tokens: int = config_constants.ANALYST_MAX_TOKENS,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.model = model
        self.model_name = model_name
        self.max_tokens = max_tokens
        self.log = log or logger

    def analyze(self, transcript: DiarizedTranscript) -> AnalysisResult:
        utterances = transcript.utterances
        if not utterances:
            raise AgentOutputError(self.stage, "transcript has no utterances")

        prompt = render_prompt(
            "agents/analyst_user",
            transcript_text=transcript.to_prompt_text(),
            speaker_ids=transcript.speaker_ids,
            last_index=len(utterances) - 1,
            min_blocks=min(config_constants.MIN_TOPIC_BLOCKS, len(utterances)),
            max_blocks=config_constants.MAX_TOPIC_BLOCKS,
        )
        text = self.model.complete(
            json_system_prompt("a podcast analyst who identifies speakers and topics"),
            prompt,
            self.max_tokens,
            model=self.model_name,
            operation_name=self.stage,
        )
        output = parse_model_output(self.stage, text, AnalystOutput)
        validate_partition(output.topic_blocks, len(utterances))

        speakers = self._resolve_speakers(output, transcript.speaker_ids)
        blocks = tuple(self._build_block(block, utterances) for block in output.topic_blocks)
        return AnalysisResult(speakers=speakers, topic_blocks=blocks)

    @staticmethod
    def _resolve_speakers(output: AnalystOutput, speaker_ids: Sequence[int]) -> tuple:
        named: Dict[int, SpeakerInfo] = {}
        for speaker in output.speakers:
            if speaker.id in named:
                continue
            named[speaker.id] = SpeakerInfo(
                id=speaker.id,
                name=speaker.name or f"Speaker {speaker.id}",
                role=speaker.role,
            )
        for speaker_id in speaker_ids:
            named.setdefault(speaker_id, SpeakerInfo(id=speaker_id, name=f"Speaker {speaker_id}"))
        return tuple(named[speaker_id] for speaker_id in sorted(named))

    @staticmethod
    def _build_block(block: TopicBlockOut, utterances: Sequence[Utterance]) -> TopicBlock:
        indices = tuple(sorted(block.utterance_indices))
        members = tuple(utterances[i] for i in indices)
        speaking = {u.speaker for u in members}
        if block.primary_speaker is not None and block.primary_speaker in speaking:
            primary = block.primary_speaker
        else:
            primary = dominant_speaker(members)
        return TopicBlock(
            id=block.id,
            label=block.label or f"Topic {block.id}",
            utterance_indices=indices,
            utterances=members,
            primary_speaker=primary,
            start_time=members[0].start,
            end_time=members[-1].end,
        )


class Writer:
    """Summarizes one topic block."""

    stage = "writer"

    def __init__(
        self,
        model: LanguageModel,
        model_name: Optional[str] = None,
        max_tokens: int = config_constants.WRITER_MAX_TOKENS,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.model = model
        self.model_name = model_name
        self.max_tokens = max_tokens
        self.log = log or logger

    def summarize_block(self, block: TopicBlock, speakers: Sequence[SpeakerInfo]) -> BlockSummary:
        block_text = DiarizedTranscript.from_utterances(block.utterances).to_speaker_text(speakers)
        prompt = render_prompt(
            "agents/writer_user",
            label=block.label,
            start=format_clock(block.start_time),
            end=format_clock(block.end_time),
            speakers=speakers,
            block_text=block_text,
        )
        text = self.model.complete(
            json_system_prompt("a podcast writer who summarizes one topic at a time"),
            prompt,
            self.max_tokens,
            model=self.model_name,
            operation_name=f"{self.stage}:{block.id}",
        )
        output = parse_model_output(self.stage, text, WriterOutput)
        return BlockSummary(
            block_id=block.id,
            label=block.label,
            summary=output.summary,
            key_points=tuple(output.key_points),
            speaker_contributions=tuple(
                SpeakerContribution(speaker=c.speaker, contribution=c.contribution)
                for c in output.speaker_contributions
            ),
        )


class Editor:
    """Merges ordered block summaries into the final summary."""

    stage = "editor"

    def __init__(
        self,
        model: LanguageModel,
        model_name: Optional[str] = None,
        max_tokens: int = config_constants.EDITOR_MAX_TOKENS,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.model = model
        self.model_name = model_name
        self.max_tokens = max_tokens
        self.log = log or logger

    def synthesize(
        self, block_summaries: Sequence[BlockSummary], speakers: Sequence[SpeakerInfo]
    ) -> FinalSummary:
        payload = [
            {
                "blockId": s.block_id,
                "label": s.label,
                "summary": s.summary,
                "keyPoints": list(s.key_points),
                "speakerContributions": [
                    {"speaker": c.speaker, "contribution": c.contribution}
                    for c in s.speaker_contributions
                ],
            }
            for s in block_summaries
        ]
        prompt = render_prompt(
            "agents/editor_user",
            speakers=speakers,
            block_summaries_json=json.dumps(payload, ensure_ascii=False, indent=2),
        )
        text = self.model.complete(
            json_system_prompt("a podcast editor who writes the final episode summary"),
            prompt,
            self.max_tokens,
            model=self.model_name,
            operation_name=self.stage,
        )
        output = parse_model_output(self.stage, text, EditorOutput)
        return FinalSummary(
            tldr=output.tldr,
            speakers=tuple(speakers),
            sections=tuple(
                FinalSection(
                    title=s.title,
                    summary=s.summary,
                    key_points=tuple(s.key_points),
                    speakers=tuple(s.speakers),
                )
                for s in output.sections
            ),
            key_takeaways=tuple(output.key_takeaways),
            action_items=tuple(output.action_items),
            topics=tuple(output.topics),
        )


class AgentPipeline:
    """Runs Analyst, then Writers concurrently, then Editor."""

    def __init__(
        self,
        model: LanguageModel,
        model_name: Optional[str] = None,
        writer_concurrency: int = config_constants.DEFAULT_WRITER_CONCURRENCY,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.log = log or logger
        self.analyst = Analyst(model, model_name=model_name, log=self.log)
        self.writer = Writer(model, model_name=model_name, log=self.log)
        self.editor = Editor(model, model_name=model_name, log=self.log)
        self.writer_concurrency = max(1, writer_concurrency)

    def run(self, transcript: DiarizedTranscript) -> FinalSummary:
        self.log.debug(
            "Agent prompts: %s",
            ", ".join(
                f"{meta['name']}@{meta['sha256'][:8]}"
                for meta in (get_prompt_metadata(name) for name in AGENT_PROMPTS)
            ),
        )
        started = time.monotonic()
        analysis = self.analyst.analyze(transcript)
        self.log.info(
            "Analyst found %d speakers and %d topic blocks",
            len(analysis.speakers),
            len(analysis.topic_blocks),
            extra={"stage": "analyst", "duration_ms": _elapsed_ms(started)},
        )

        started = time.monotonic()
        block_summaries = self._write_blocks(analysis)
        self.log.info(
            "Writers summarized %d blocks",
            len(block_summaries),
            extra={"stage": "writer", "duration_ms": _elapsed_ms(started)},
        )

        started = time.monotonic()
        final = self.editor.synthesize(block_summaries, analysis.speakers)
        self.log.info(
            "Editor produced %d sections",
            len(final.sections),
            extra={"stage": "editor", "duration_ms": _elapsed_ms(started)},
        )
        return final

    def _write_blocks(self, analysis: AnalysisResult) -> List[BlockSummary]:
        blocks = analysis.topic_blocks
        workers = min(self.writer_concurrency, len(blocks))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="writer") as executor:
            futures: List[Future] = [
                executor.submit(self.writer.summarize_block, block, analysis.speakers)
                for block in blocks
            ]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in futures:
                if future in done and future.exception() is not None:
                    for other in pending:
                        other.cancel()
                    raise future.exception()  # type: ignore[misc]
            # Results keep block order regardless of completion order
            return [future.result() for future in futures]

"""Pydantic schemas for language-model output and persisted summary content."""

from .agent_schema import (
    AnalystOutput,
    EditorOutput,
    InsightsContent,
    QuickSummaryContent,
    WriterOutput,
)

__all__ = [
    "AnalystOutput",
    "EditorOutput",
    "InsightsContent",
    "QuickSummaryContent",
    "WriterOutput",
]

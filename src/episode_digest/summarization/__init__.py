"""Summarization: the Analyst/Writer/Editor pipeline and per-level generators."""

from .agents import AgentPipeline, Analyst, Editor, validate_partition, Writer
from .json_extract import extract_json_object, JSONExtraction, parse_model_output
from .levels import LevelGenerator
from .llm import AnthropicLanguageModel, LanguageModel

__all__ = [
    "AgentPipeline",
    "Analyst",
    "AnthropicLanguageModel",
    "Editor",
    "JSONExtraction",
    "LanguageModel",
    "LevelGenerator",
    "Writer",
    "extract_json_object",
    "parse_model_output",
    "validate_partition",
]

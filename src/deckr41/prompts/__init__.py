"""Prompt compilation: placeholder discovery, substitution, metadata."""

from deckr41.prompts.compiler import (
    CompiledPrompt,
    MetadataProvider,
    PromptCompiler,
    find_variable_names,
    interpolate,
)
from deckr41.prompts.metadata import BufferMetadataProvider

__all__ = [
    "BufferMetadataProvider",
    "CompiledPrompt",
    "MetadataProvider",
    "PromptCompiler",
    "find_variable_names",
    "interpolate",
]

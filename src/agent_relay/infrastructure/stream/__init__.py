"""Inbound streaming: provider parts to chunks, tool-call fragments to calls."""

from .assembler import ToolCallAssembler
from .normalizer import IGNORED_PART_TYPES, normalize_part, usage_chunk_from
from .raw_chunks import RawToolCallTracker

__all__ = [
    "IGNORED_PART_TYPES",
    "RawToolCallTracker",
    "ToolCallAssembler",
    "normalize_part",
    "usage_chunk_from",
]

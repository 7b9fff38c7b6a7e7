"""
Utilities package for the proposal cache.

This package contains reusable helpers for:
- Embedding blob encoding
- Text preparation and chunking
"""

from .vector_codec import pack_vector, unpack_array, unpack_vector, vector_dimension
from .text_chunker import TextChunk, chunk_text, prepare_proposal_text

__all__ = [
    "pack_vector",
    "unpack_array",
    "unpack_vector",
    "vector_dimension",
    "TextChunk",
    "chunk_text",
    "prepare_proposal_text",
]

"""
Packing of embedding vectors into SQLite blobs.

A vector of N floats is stored as exactly 4*N bytes of little-endian
IEEE-754 float32, independent of the host byte order.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from ..errors import VectorEncodingError

# Little-endian float32
VECTOR_DTYPE = np.dtype("<f4")


def pack_vector(vector: Sequence[float]) -> bytes:
    """Serialise a float sequence to a little-endian float32 blob."""
    array = np.asarray(vector, dtype=VECTOR_DTYPE)
    if array.ndim != 1 or array.size == 0:
        raise VectorEncodingError("Embedding must be a non-empty 1-D vector")
    if not np.all(np.isfinite(array)):
        raise VectorEncodingError("Embedding contains NaN or infinite values")
    return array.tobytes()


def unpack_array(blob: bytes) -> np.ndarray:
    """
    Decode a blob into a float32 numpy array.

    Raises:
        VectorEncodingError: if the blob is empty or its length is not a
            multiple of 4
    """
    size = len(blob)
    if size == 0 or size % VECTOR_DTYPE.itemsize:
        raise VectorEncodingError(
            f"Embedding blob of {size} bytes is not a whole number of float32 values"
        )
    return np.frombuffer(blob, dtype=VECTOR_DTYPE).astype(np.float32)


def unpack_vector(blob: bytes) -> list[float]:
    """Decode a blob into a list of Python floats."""
    return unpack_array(blob).tolist()


def vector_dimension(blob: bytes) -> int:
    """Number of floats stored in a blob."""
    return len(unpack_array(blob))

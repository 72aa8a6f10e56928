"""
Vector codecs - serialize fixed-dimension vectors for persistence.
Pure functions: no I/O, no shared state.
"""

import json
import math
from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, ValidationError

from ..core.errors import DimensionMismatchError, MalformedEncodingError


class IVectorCodec(ABC):
    """Abstract interface for vector encodings."""

    @abstractmethod
    def encode(self, vector: Sequence[float]) -> Union[str, bytes]:
        """Encode a vector, preserving component order."""
        pass

    @abstractmethod
    def decode(self, encoded: Union[str, bytes], expected_dimension: int) -> np.ndarray:
        """Decode a vector and check it has ``expected_dimension`` components."""
        pass


def _check_dimension(vector: np.ndarray, expected_dimension: int) -> np.ndarray:
    if len(vector) != expected_dimension:
        raise DimensionMismatchError(expected_dimension, len(vector), context="decode")
    return vector


class TextVectorCodec(IVectorCodec):
    """Comma-separated float components.

    Components are written with ``repr`` so that decoding reconstructs the
    exact float64 value that was encoded.
    """

    separator = ","

    def encode(self, vector: Sequence[float]) -> str:
        return self.separator.join(repr(float(component)) for component in vector)

    def decode(self, encoded: Union[str, bytes], expected_dimension: int) -> np.ndarray:
        if isinstance(encoded, bytes):
            try:
                encoded = encoded.decode("ascii")
            except UnicodeDecodeError as e:
                raise MalformedEncodingError(f"Vector text is not ASCII: {e}") from e
        if not isinstance(encoded, str):
            raise MalformedEncodingError(f"Cannot decode vector from {type(encoded).__name__}")
        if not encoded.strip():
            raise MalformedEncodingError("Empty vector encoding")

        components = []
        for position, part in enumerate(encoded.split(self.separator)):
            try:
                value = float(part.strip())
            except ValueError:
                raise MalformedEncodingError(
                    f"Unparsable vector component {part!r} at position {position}"
                ) from None
            if not math.isfinite(value):
                raise MalformedEncodingError(f"Non-finite vector component at position {position}")
            components.append(value)

        return _check_dimension(np.array(components, dtype=np.float64), expected_dimension)


class BinaryVectorCodec(IVectorCodec):
    """Packed little-endian float64 components."""

    dtype = np.dtype("<f8")

    def encode(self, vector: Sequence[float]) -> bytes:
        return np.asarray(vector, dtype=self.dtype).tobytes()

    def decode(self, encoded: Union[str, bytes], expected_dimension: int) -> np.ndarray:
        if not isinstance(encoded, (bytes, bytearray, memoryview)):
            raise MalformedEncodingError(f"Cannot decode vector from {type(encoded).__name__}")
        if len(encoded) == 0 or len(encoded) % self.dtype.itemsize:
            raise MalformedEncodingError(
                f"Binary vector length {len(encoded)} is not a positive multiple of {self.dtype.itemsize}"
            )

        vector = np.frombuffer(bytes(encoded), dtype=self.dtype).astype(np.float64)
        if not np.all(np.isfinite(vector)):
            raise MalformedEncodingError("Non-finite vector component")
        return _check_dimension(vector, expected_dimension)


class StoredRecord(BaseModel):
    """Shape of a record as written to the persistence collaborator."""

    model_config = ConfigDict(extra="forbid")

    name: str
    vector: str
    metadata: Dict[str, str] = {}


default_codec = TextVectorCodec()


def encode_record(name: str, vector: Sequence[float], metadata: Optional[Dict[str, str]] = None,
                  codec: TextVectorCodec = default_codec) -> str:
    """Serialize a whole record (name, vector, metadata) to a JSON string."""
    payload = StoredRecord(name=name, vector=codec.encode(vector), metadata=dict(metadata or {}))
    return payload.model_dump_json()


def decode_record(encoded: Union[str, bytes], expected_dimension: int,
                  codec: TextVectorCodec = default_codec) -> Tuple[str, np.ndarray, Dict[str, str]]:
    """Parse a record written by ``encode_record``.

    Raises:
        MalformedEncodingError: payload is not a valid record document
        DimensionMismatchError: the stored vector has the wrong length
    """
    try:
        stored = StoredRecord.model_validate_json(encoded)
    except (ValidationError, json.JSONDecodeError, TypeError) as e:
        raise MalformedEncodingError(f"Invalid record payload: {e}") from e

    vector = codec.decode(stored.vector, expected_dimension)
    return stored.name, vector, dict(stored.metadata)

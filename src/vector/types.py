"""
Record and result types for the flat vector index.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Union

import numpy as np

MetadataValue = Optional[Union[str, int, float, bool]]

SCALAR_TYPES = (str, int, float, bool, type(None))


def validate_metadata(metadata: Optional[Dict[str, object]]) -> Dict[str, MetadataValue]:
    """Return a copy of metadata, rejecting non-string keys and non-scalar values."""
    if metadata is None:
        return {}
    if not isinstance(metadata, dict):
        raise ValueError(f"metadata must be a mapping, got {type(metadata).__name__}")

    clean = {}
    for key, value in metadata.items():
        if not isinstance(key, str):
            raise ValueError(f"metadata key {key!r} is not a string")
        if not isinstance(value, SCALAR_TYPES):
            raise ValueError(
                f"metadata value for '{key}' must be a scalar, got {type(value).__name__}"
            )
        clean[key] = value
    return clean


@dataclass
class Record:
    """A stored embedding with the text it was computed from."""

    id: str
    """Stable identifier, unique within one index"""

    embedding: np.ndarray
    """One-dimensional float vector"""

    text: str = ""
    """Source text, kept for presenting results"""

    metadata: Dict[str, MetadataValue] = field(default_factory=dict)
    """Scalar metadata used for filtering (e.g. section, source)"""

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id:
            raise ValueError("record id must be a non-empty string")
        self.embedding = np.asarray(self.embedding, dtype=np.float64)
        if self.embedding.ndim != 1:
            raise ValueError(f"embedding must be one-dimensional, got shape {self.embedding.shape}")
        self.metadata = validate_metadata(self.metadata)

    @property
    def dimension(self) -> int:
        return int(self.embedding.shape[0])

    def to_dict(self) -> Dict[str, object]:
        """Convert record to a JSON-serializable dictionary."""
        return {
            "id": self.id,
            "text": self.text,
            "embedding": [float(x) for x in self.embedding],
            "metadata": dict(self.metadata),
        }


@dataclass
class SearchHit:
    """A record matched by a query, with its cosine similarity."""

    record: Record
    score: float
    """Cosine similarity in [-1, 1]; 0.0 when either vector has zero norm"""

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def text(self) -> str:
        return self.record.text

    @property
    def metadata(self) -> Dict[str, MetadataValue]:
        return self.record.metadata

"""
Flat in-memory vector index with exact cosine similarity search.
Linear scan over every record; intended for small corpora.
"""

from abc import ABC, abstractmethod
import threading
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np

from .errors import DimensionMismatch, LoadError
from .persistence import PathLike, load_records, save_records
from .types import MetadataValue, Record, SearchHit
from util.logging import logger

MetadataPredicate = Callable[[Mapping[str, MetadataValue]], bool]
MetadataFilter = Union[MetadataPredicate, Mapping[str, MetadataValue]]

VectorLike = Union[np.ndarray, Sequence[float]]


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero norm instead of dividing by zero.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatch(a.shape[0], b.shape[0])

    denom = np.linalg.norm(a) * np.linalg.norm(b)
    if denom == 0:
        return 0.0
    if np.array_equal(a, b):
        return 1.0
    return float(np.clip(np.dot(a, b) / denom, -1.0, 1.0))


def as_predicate(metadata_filter: Optional[MetadataFilter]) -> Optional[MetadataPredicate]:
    """Normalize a filter: callables pass through, mappings mean key equality on every entry."""
    if metadata_filter is None:
        return None
    if callable(metadata_filter):
        return metadata_filter
    if isinstance(metadata_filter, Mapping):
        expected = dict(metadata_filter)
        return lambda metadata: all(
            key in metadata and metadata[key] == value for key, value in expected.items()
        )
    raise TypeError(f"metadata filter must be a callable or a mapping, got {type(metadata_filter).__name__}")


def _score(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of every row of matrix against query; zero-norm rows score 0.

    Rows identical to a nonzero query score exactly 1.0.
    """
    denom = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    scores = np.zeros(matrix.shape[0], dtype=np.float64)
    np.divide(dots, denom, out=scores, where=denom > 0)
    scores = np.clip(scores, -1.0, 1.0)
    scores[np.all(matrix == query, axis=1) & (denom > 0)] = 1.0
    return scores


class IVectorStore(ABC):
    """Abstract interface for vector storage operations."""

    @abstractmethod
    def insert(self, record: Record) -> None:
        """Add a single record, overwriting any record with the same id."""
        pass

    @abstractmethod
    def insert_many(self, records: Iterable[Record]) -> None:
        """Add multiple records."""
        pass

    @abstractmethod
    def search(self, vector: VectorLike, k: int = 4,
               metadata_filter: Optional[MetadataFilter] = None) -> List[SearchHit]:
        """Return the k most similar records, best first."""
        pass

    @abstractmethod
    def save(self, path: PathLike) -> None:
        """Persist every record to path."""
        pass


class VectorIndex(IVectorStore):
    """
    Flat vector index holding (id, embedding, text, metadata) records.

    Dimensionality is fixed by the first record inserted (or by the
    `dimension` argument) and enforced for every later insert and query.

    Inserting a record whose id already exists overwrites it in place: the
    new record keeps the old one's position, which only matters for
    breaking exact score ties.

    Inserts are serialized by a lock. Searches take a snapshot of the
    record list under the same lock and score it without holding it.
    """

    def __init__(self, dimension: Optional[int] = None):
        if dimension is not None and dimension < 1:
            raise ValueError("dimension must be a positive integer")
        self._dimension = dimension
        self._records: List[Record] = []
        self._positions: Dict[str, int] = {}  # record_id -> position in _records
        self._lock = threading.Lock()

    @classmethod
    def from_records(cls, records: Iterable[Record]) -> "VectorIndex":
        """Build an index from records. Raises DimensionMismatch if their lengths differ."""
        index = cls()
        index.insert_many(records)
        return index

    @classmethod
    def from_persisted_file(cls, path: PathLike) -> "VectorIndex":
        """Build an index from a persisted vector file. Raises LoadError on a bad file."""
        try:
            records = load_records(path)
        except LoadError:
            logger.log_index_io("load", str(path), 0, status="failed")
            raise

        index = cls.from_records(records)
        logger.log_index_io("load", str(path), len(index), index.dimension)
        return index

    @property
    def dimension(self) -> Optional[int]:
        """Established dimensionality, or None for an empty index created without one."""
        return self._dimension

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._positions

    def ids(self) -> List[str]:
        """Record ids in storage order."""
        with self._lock:
            return [record.id for record in self._records]

    def get(self, record_id: str) -> Optional[Record]:
        with self._lock:
            position = self._positions.get(record_id)
            return self._records[position] if position is not None else None

    def records(self) -> List[Record]:
        """Snapshot of all records in storage order."""
        with self._lock:
            return list(self._records)

    def _check_dimension(self, record: Record, expected: Optional[int]) -> int:
        if record.dimension == 0:
            raise DimensionMismatch(expected or 0, 0, f"record '{record.id}' embedding")
        if expected is not None and record.dimension != expected:
            raise DimensionMismatch(expected, record.dimension, f"record '{record.id}' embedding")
        return record.dimension

    def _store(self, record: Record) -> None:
        position = self._positions.get(record.id)
        if position is None:
            self._positions[record.id] = len(self._records)
            self._records.append(record)
        else:
            self._records[position] = record
            logger.log_vector_operation("overwrite", record.id, {"position": position})

    def insert(self, record: Record) -> None:
        """Add a single record. The first record into an empty index establishes the dimension."""
        with self._lock:
            self._dimension = self._check_dimension(record, self._dimension)
            self._store(record)

    def insert_many(self, records: Iterable[Record]) -> None:
        """Add multiple records. Nothing is stored unless every record has the right dimension."""
        batch = list(records)
        if not batch:
            return

        with self._lock:
            dimension = self._dimension
            for record in batch:
                dimension = self._check_dimension(record, dimension)

            self._dimension = dimension
            for record in batch:
                self._store(record)

    def search(self, vector: VectorLike, k: int = 4,
               metadata_filter: Optional[MetadataFilter] = None) -> List[SearchHit]:
        """
        Rank records by cosine similarity to vector.

        Args:
            vector: Query embedding; its length must equal the index dimension
            k: Maximum number of hits to return (must be >= 1)
            metadata_filter: Callable over metadata, or a mapping of required
                key/value pairs. Records failing it are excluded before scoring.

        Returns:
            Up to k hits ordered by descending score. Exact ties keep storage
            order. Fewer than k hits is not an error.
        """
        if isinstance(k, bool) or not isinstance(k, (int, np.integer)) or k < 1:
            raise ValueError(f"k must be a positive integer, got {k!r}")

        query = np.asarray(vector, dtype=np.float64)
        if query.ndim != 1:
            raise ValueError(f"query vector must be one-dimensional, got shape {query.shape}")

        with self._lock:
            candidates = list(self._records)
            dimension = self._dimension

        if dimension is not None and query.shape[0] != dimension:
            raise DimensionMismatch(dimension, query.shape[0], "query vector")

        predicate = as_predicate(metadata_filter)
        if predicate is not None:
            candidates = [record for record in candidates if predicate(record.metadata)]

        if not candidates:
            return []

        matrix = np.vstack([record.embedding for record in candidates])
        scores = _score(matrix, query)

        # Stable sort keeps storage order among equal scores
        order = np.argsort(-scores, kind="stable")[:k]
        return [SearchHit(record=candidates[i], score=float(scores[i])) for i in order]

    def save(self, path: PathLike) -> None:
        """Write every record to path, replacing the file entirely."""
        records = self.records()
        count = save_records(path, records)
        logger.log_index_io("save", str(path), count, self._dimension)

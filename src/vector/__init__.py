"""
Flat vector index - in-memory records ranked by exact cosine similarity.
"""

# Package initialization for vector module
from .errors import VectorIndexError, DimensionMismatch, LoadError
from .types import Record, SearchHit
from .index import IVectorStore, VectorIndex, cosine_similarity
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding, EmbeddingError

__all__ = [
    'VectorIndexError',
    'DimensionMismatch',
    'LoadError',
    'Record',
    'SearchHit',
    'IVectorStore',
    'VectorIndex',
    'cosine_similarity',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'EmbeddingError'
]

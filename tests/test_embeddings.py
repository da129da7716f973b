"""
Tests for embedding providers.
"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from src.vector.embeddings import (
    DeterministicHashEmbedding,
    EmbeddingError,
    IEmbeddingProvider,
    SentenceTransformerEmbedding,
)
from src.vector.index import cosine_similarity


def test_embedding_interface():
    """Test that the embedding provider implements the interface correctly."""
    embedder = DeterministicHashEmbedding(dimension=384)

    assert isinstance(embedder, IEmbeddingProvider)
    assert embedder.get_dimension() == 384


def test_deterministic_embedding():
    """Test that the same input always produces the same output."""
    embedder = DeterministicHashEmbedding(dimension=384)

    text = "Hello, world!"
    vector1 = embedder.embed_text(text)
    vector2 = DeterministicHashEmbedding(dimension=384).embed_text(text)

    assert vector1 == vector2
    assert len(vector1) == 384


def test_different_inputs_produce_different_vectors():
    embedder = DeterministicHashEmbedding(dimension=384)

    assert embedder.embed_text("Hello, world!") != embedder.embed_text("Goodbye, moon!")


def test_shared_words_are_similar():
    """Texts sharing words point in closer directions than unrelated texts."""
    embedder = DeterministicHashEmbedding(dimension=256)

    query = embedder.embed_text("how many applications in barreiro")
    related = embedder.embed_text("applications received in barreiro this year")
    unrelated = embedder.embed_text("football match report")

    assert cosine_similarity(query, related) > cosine_similarity(query, unrelated)


def test_embedding_with_different_dimensions():
    assert len(DeterministicHashEmbedding(dimension=64).embed_text("test")) == 64
    assert len(DeterministicHashEmbedding(dimension=512).embed_text("test")) == 512


def test_empty_string_is_zero_vector():
    vector = DeterministicHashEmbedding(dimension=16).embed_text("")

    assert vector == [0.0] * 16


def test_invalid_dimension():
    with pytest.raises(ValueError):
        DeterministicHashEmbedding(dimension=0)


def test_embed_many_preserves_order():
    embedder = DeterministicHashEmbedding(dimension=32)
    texts = ["one", "two", "three"]

    assert embedder.embed_many(texts) == [embedder.embed_text(t) for t in texts]


class TestSentenceTransformerEmbedding:
    @patch("src.vector.embeddings.SentenceTransformer")
    def test_model_loaded_lazily(self, mock_cls):
        embedder = SentenceTransformerEmbedding("all-MiniLM-L6-v2")

        mock_cls.assert_not_called()
        embedder.model
        mock_cls.assert_called_once_with("all-MiniLM-L6-v2")

    @patch("src.vector.embeddings.SentenceTransformer")
    def test_embed_many_batches(self, mock_cls):
        model = MagicMock()
        model.encode.return_value = np.array([[0.1, 0.2], [0.3, 0.4]])
        mock_cls.return_value = model

        vectors = SentenceTransformerEmbedding().embed_many(["a", "b"])

        assert vectors == [[0.1, 0.2], [0.3, 0.4]]
        model.encode.assert_called_once_with(["a", "b"], convert_to_numpy=True)

    @patch("src.vector.embeddings.SentenceTransformer")
    def test_embed_text(self, mock_cls):
        model = MagicMock()
        model.encode.return_value = np.array([[1.0, 0.0, 0.0]])
        mock_cls.return_value = model

        assert SentenceTransformerEmbedding().embed_text("hello") == [1.0, 0.0, 0.0]

    @patch("src.vector.embeddings.SentenceTransformer")
    def test_dimension_from_model(self, mock_cls):
        model = MagicMock()
        model.get_sentence_embedding_dimension.return_value = 384
        mock_cls.return_value = model

        assert SentenceTransformerEmbedding().get_dimension() == 384

    @patch("src.vector.embeddings.SentenceTransformer")
    def test_encode_failure_raises_embedding_error(self, mock_cls):
        model = MagicMock()
        model.encode.side_effect = RuntimeError("CUDA out of memory")
        mock_cls.return_value = model

        with pytest.raises(EmbeddingError, match="CUDA out of memory"):
            SentenceTransformerEmbedding().embed_text("hello")

    @patch("src.vector.embeddings.SentenceTransformer")
    def test_load_failure_raises_embedding_error(self, mock_cls):
        mock_cls.side_effect = OSError("model not found")

        with pytest.raises(EmbeddingError, match="model not found"):
            SentenceTransformerEmbedding("missing-model").embed_text("hello")

    def test_empty_batch(self):
        assert SentenceTransformerEmbedding().embed_many([]) == []

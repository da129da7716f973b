"""
Tests for index building and the retrieval-QA state machine.
"""

import json
from unittest.mock import MagicMock

import pytest

from src.agents.completion import CompletionError, MockCompletionService
from src.core.loader import Chunk
from src.core.rag import (
    AWAITING_QUERY,
    DONE,
    FAILED,
    GENERATING,
    RETRIEVING,
    SYSTEM_PROMPT,
    InvalidTransition,
    QARun,
    RetrievalQA,
    build_index,
    build_messages,
    chunk_id,
    format_context,
)
from src.vector.embeddings import DeterministicHashEmbedding, EmbeddingError
from src.vector.errors import DimensionMismatch
from src.vector.index import VectorIndex
from src.vector.types import Record, SearchHit


@pytest.fixture
def embedder():
    return DeterministicHashEmbedding(dimension=256)


@pytest.fixture
def chunks():
    return [
        Chunk(text="The barreiro office received twelve applications.",
              metadata={"source": "db", "chunk": 0, "section": "beginning"}),
        Chunk(text="Applicants may register online or in person.",
              metadata={"source": "db", "chunk": 1, "section": "middle"}),
        Chunk(text="The football season ended in May.",
              metadata={"source": "news", "chunk": 0, "section": "end"}),
    ]


@pytest.fixture
def index(chunks, embedder):
    return build_index(chunks, embedder)


def test_build_index(index, embedder):
    assert len(index) == 3
    assert index.dimension == embedder.get_dimension()
    assert index.ids() == ["db:0", "db:1", "news:0"]
    assert index.get("news:0").metadata["section"] == "end"


def test_build_index_uses_batch_embedding(chunks):
    embedder = MagicMock()
    embedder.embed_many.return_value = [[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]]

    index = build_index(chunks, embedder)

    embedder.embed_many.assert_called_once_with([c.text for c in chunks])
    embedder.embed_text.assert_not_called()
    assert index.dimension == 2


def test_chunk_id_fallback():
    assert chunk_id(Chunk(text="x"), 5) == "doc:5"


def test_format_context():
    hits = [
        SearchHit(Record(id="a", embedding=[1.0], text="alpha", metadata={"source": "a.txt"}), 0.9),
        SearchHit(Record(id="b", embedding=[1.0], text="beta"), 0.5),
    ]

    assert format_context(hits) == "Source: a.txt\nContent: alpha\n\nSource: b\nContent: beta"


def test_build_messages():
    messages = build_messages("Why?", "Source: s\nContent: c")

    assert messages[0]['role'] == 'system'
    assert messages[0]['content'].startswith(SYSTEM_PROMPT)
    assert messages[0]['content'].endswith("Content: c")
    assert messages[1] == {'role': 'user', 'content': 'Why?'}


def test_ask_runs_through_states(index, embedder):
    service = MockCompletionService(reply="Twelve.")
    pipeline = RetrievalQA(index, embedder, service, k=2)

    run = pipeline.ask("How many applications did the barreiro office receive?")

    assert run.state == DONE
    assert run.answer == "Twelve."
    assert len(run.hits) == 2
    assert run.hits[0].id == "db:0"
    assert [(t["from"], t["to"]) for t in run.transitions] == [
        (AWAITING_QUERY, RETRIEVING),
        (RETRIEVING, GENERATING),
        (GENERATING, DONE),
    ]

    system_message = service.calls[0][0]['content']
    assert "Content: The barreiro office received twelve applications." in system_message


def test_ask_with_filter(index, embedder):
    pipeline = RetrievalQA(index, embedder, MockCompletionService(), k=4)

    run = pipeline.ask("applications", metadata_filter={"section": "middle"})

    assert [hit.id for hit in run.hits] == ["db:1"]


def test_ask_k_override(index, embedder):
    pipeline = RetrievalQA(index, embedder, MockCompletionService(), k=1)

    assert len(pipeline.ask("applications", k=3).hits) == 3
    assert len(pipeline.ask("applications").hits) == 1


def test_transition_log_written(index, embedder, tmp_path):
    log_path = tmp_path / "logs" / "transitions.jsonl"
    pipeline = RetrievalQA(index, embedder, MockCompletionService(), transition_log_path=str(log_path))

    first = pipeline.ask("applications")
    second = pipeline.ask("football")

    lines = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert len(lines) == 6
    assert [line["run_id"] for line in lines] == [first.run_id] * 3 + [second.run_id] * 3
    assert lines[-1]["to"] == DONE


def test_embedding_failure_marks_run_failed(index, tmp_path):
    embedder = MagicMock()
    embedder.embed_text.side_effect = EmbeddingError("model offline")
    log_path = tmp_path / "transitions.jsonl"
    pipeline = RetrievalQA(index, embedder, MockCompletionService(), transition_log_path=str(log_path))

    with pytest.raises(EmbeddingError, match="model offline"):
        pipeline.ask("anything")

    lines = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert [line["to"] for line in lines] == [RETRIEVING, FAILED]
    assert "EmbeddingError" in lines[-1]["error"]


def test_dimension_mismatch_propagates(index):
    pipeline = RetrievalQA(index, DeterministicHashEmbedding(dimension=8), MockCompletionService())

    with pytest.raises(DimensionMismatch):
        pipeline.ask("applications")


def test_completion_failure_propagates(index, embedder):
    service = MagicMock()
    service.complete.side_effect = CompletionError("rate limited")
    pipeline = RetrievalQA(index, embedder, service)

    with pytest.raises(CompletionError, match="rate limited"):
        pipeline.ask("applications")


def test_empty_index_still_answers(embedder):
    pipeline = RetrievalQA(VectorIndex(), embedder, MockCompletionService(reply="I don't know."))

    run = pipeline.ask("anything")

    assert run.hits == []
    assert run.answer == "I don't know."
    assert run.state == DONE


def test_empty_question_rejected(index, embedder):
    pipeline = RetrievalQA(index, embedder, MockCompletionService())

    with pytest.raises(ValueError):
        pipeline.ask("   ")


def test_invalid_k(index, embedder):
    with pytest.raises(ValueError):
        RetrievalQA(index, embedder, MockCompletionService(), k=0)


def test_ask_with_zero_k_rejected(index, embedder):
    pipeline = RetrievalQA(index, embedder, MockCompletionService())

    with pytest.raises(ValueError, match="k must be a positive integer"):
        pipeline.ask("applications", k=0)


def test_invalid_transition(index, embedder):
    pipeline = RetrievalQA(index, embedder, MockCompletionService())
    run = QARun(question="q")

    with pytest.raises(InvalidTransition):
        pipeline._transition(run, DONE)
    assert run.state == AWAITING_QUERY

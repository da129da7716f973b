"""
Retrieval-augmented question answering over a VectorIndex.

A run moves through an explicit state machine:

    awaiting_query -> retrieving -> generating -> done
                           \\             \\
                            +-> failed    +-> failed

Each transition is kept in memory on the run and, when a log path is
configured, appended to a JSON-lines file. The index, embedder and
completion service are all injected.
"""

from dataclasses import dataclass, field
from datetime import datetime
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
import uuid

from src.agents.completion import ICompletionService
from src.vector.embeddings import IEmbeddingProvider
from src.vector.index import IVectorStore, MetadataFilter, VectorIndex
from src.vector.types import Record, SearchHit
from util.logging import logger, truncate

from .loader import Chunk

AWAITING_QUERY = "awaiting_query"
RETRIEVING = "retrieving"
GENERATING = "generating"
DONE = "done"
FAILED = "failed"

TRANSITIONS = {
    AWAITING_QUERY: {RETRIEVING},
    RETRIEVING: {GENERATING, FAILED},
    GENERATING: {DONE, FAILED},
    DONE: set(),
    FAILED: set(),
}

SYSTEM_PROMPT = (
    "You are an assistant for question-answering tasks. "
    "Use the following pieces of retrieved context to answer the question. "
    "If you don't know the answer, say that you don't know. "
    "Use three sentences maximum and keep the answer concise."
)


class InvalidTransition(Exception):
    """Raised when a run is asked to move to a state not reachable from its current one."""
    pass


def chunk_id(chunk: Chunk, position: int) -> str:
    """Record id for a chunk: <source>:<chunk number>, falling back to list position."""
    source = chunk.metadata.get("source", "doc")
    number = chunk.metadata.get("chunk", position)
    return f"{source}:{number}"


def build_index(chunks: Sequence[Chunk], embedder: IEmbeddingProvider) -> VectorIndex:
    """Embed chunk texts in one batch and index them."""
    chunks = list(chunks)
    vectors = embedder.embed_many([chunk.text for chunk in chunks])
    records = [
        Record(id=chunk_id(chunk, i), embedding=vector, text=chunk.text, metadata=chunk.metadata)
        for i, (chunk, vector) in enumerate(zip(chunks, vectors))
    ]
    index = VectorIndex.from_records(records)
    logger.log_operation("index.build", "success", {
        "record_count": len(index),
        "dimension": index.dimension
    })
    return index


def format_context(hits: Sequence[SearchHit]) -> str:
    """Render hits as Source/Content blocks for the prompt."""
    return "\n\n".join(
        f"Source: {hit.metadata.get('source', hit.id)}\nContent: {hit.text}" for hit in hits
    )


def build_messages(question: str, context: str, system_prompt: str = SYSTEM_PROMPT) -> List[Dict[str, str]]:
    return [
        {'role': 'system', 'content': f"{system_prompt}\n\n{context}"},
        {'role': 'user', 'content': question},
    ]


@dataclass
class QARun:
    """State, transition log and results of one question."""
    question: str
    run_id: str = field(default_factory=lambda: f"run_{uuid.uuid4().hex[:12]}")
    state: str = AWAITING_QUERY
    transitions: List[Dict[str, Any]] = field(default_factory=list)
    hits: List[SearchHit] = field(default_factory=list)
    answer: Optional[str] = None
    error: Optional[str] = None


class RetrievalQA:
    """Answers questions by retrieving top-k chunks and passing them to a completion service."""

    def __init__(self, index: IVectorStore, embedder: IEmbeddingProvider,
                 completion_service: ICompletionService, k: int = 4,
                 transition_log_path: Optional[str] = None,
                 system_prompt: str = SYSTEM_PROMPT):
        if k < 1:
            raise ValueError("k must be >= 1")
        self.index = index
        self.embedder = embedder
        self.completion_service = completion_service
        self.k = k
        self.transition_log_path = Path(transition_log_path) if transition_log_path else None
        self.system_prompt = system_prompt

    def _transition(self, run: QARun, to_state: str, details: Optional[Dict[str, Any]] = None) -> None:
        if to_state not in TRANSITIONS[run.state]:
            raise InvalidTransition(f"{run.state} -> {to_state} is not allowed")

        entry = {
            "run_id": run.run_id,
            "from": run.state,
            "to": to_state,
            "timestamp": datetime.now().isoformat(),
        }
        if details:
            entry.update(details)

        run.transitions.append(entry)
        logger.log_pipeline_transition(run.run_id, run.state, to_state, details)
        run.state = to_state

        if self.transition_log_path is not None:
            self.transition_log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.transition_log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")

    def _fail(self, run: QARun, error: Exception) -> None:
        run.error = f"{type(error).__name__}: {error}"
        self._transition(run, FAILED, {"error": truncate(run.error)})

    def retrieve(self, question: str, k: Optional[int] = None,
                 metadata_filter: Optional[MetadataFilter] = None) -> List[SearchHit]:
        """Embed the question and search the index."""
        vector = self.embedder.embed_text(question)
        return self.index.search(vector, self.k if k is None else k, metadata_filter)

    def ask(self, question: str, k: Optional[int] = None,
            metadata_filter: Optional[MetadataFilter] = None) -> QARun:
        """
        Run one question through retrieval and generation.

        Errors from the embedder, index or completion service move the run
        to the failed state and are re-raised unchanged.
        """
        if not question or not question.strip():
            raise ValueError("question cannot be empty")

        run = QARun(question=question)
        self._transition(run, RETRIEVING, {"question": truncate(question)})

        try:
            run.hits = self.retrieve(question, k, metadata_filter)
        except Exception as e:
            self._fail(run, e)
            raise

        self._transition(run, GENERATING, {"hits": [hit.id for hit in run.hits]})

        try:
            messages = build_messages(question, format_context(run.hits), self.system_prompt)
            run.answer = self.completion_service.complete(messages)
        except Exception as e:
            self._fail(run, e)
            raise

        self._transition(run, DONE, {"answer_length": len(run.answer)})
        return run

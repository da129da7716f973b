"""
Corpus loading and chunking.

Loaders turn a source into (text, metadata) documents; the splitter windows
them into overlapping chunks. Chunking policy lives here, not in the index.
"""

from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from src.vector.errors import LoadError
from src.vector.types import MetadataValue, validate_metadata
from util.logging import logger

SECTIONS = ("beginning", "middle", "end")


@dataclass
class Chunk:
    """A span of source text with its metadata."""
    text: str
    metadata: Dict[str, MetadataValue] = field(default_factory=dict)


class JSONCorpusLoader:
    """
    Loads a JSON list of {"text": ..., "metadata": {...}} objects.
    Any "embedding" field is ignored; texts are re-embedded downstream.
    """

    def load(self, source: str) -> List[Chunk]:
        path = Path(source)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise LoadError(f"malformed JSON at line {e.lineno} column {e.colno}", str(path)) from e
        except OSError as e:
            raise LoadError(f"cannot read file ({e})", str(path)) from e

        if not isinstance(data, list):
            raise LoadError("expected a JSON list of documents", str(path))

        documents = []
        for position, item in enumerate(data):
            if not isinstance(item, dict) or not isinstance(item.get("text"), str):
                raise LoadError(f"document {position} has no 'text' string", str(path))
            try:
                metadata = validate_metadata(item.get("metadata"))
            except ValueError as e:
                raise LoadError(f"document {position}: {e}", str(path)) from e
            metadata.setdefault("source", path.name)
            documents.append(Chunk(text=item["text"], metadata=metadata))

        return documents


class TextFileLoader:
    """Loads a plain-text file as a single document tagged with its source."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def load(self, source: str) -> List[Chunk]:
        path = Path(source)
        try:
            text = path.read_text(encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise LoadError(f"cannot read file ({e})", str(path)) from e
        return [Chunk(text=text, metadata={"source": path.name})]


def loader_for(source: str):
    """Pick a loader by file extension."""
    if Path(source).suffix.lower() == ".json":
        return JSONCorpusLoader()
    return TextFileLoader()


class RecursiveCharacterSplitter:
    """
    Splits text into chunks of at most chunk_size characters, preferring
    paragraph, line, sentence and word boundaries in that order before
    falling back to single characters. Consecutive chunks share up to
    chunk_overlap characters of trailing context.
    """

    SEPARATORS = ["\n\n", "\n", ". ", " ", ""]

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200,
                 separators: Optional[Sequence[str]] = None):
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be >= 0 and smaller than chunk_size")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = list(separators) if separators is not None else list(self.SEPARATORS)

    def split_text(self, text: str) -> List[str]:
        return [chunk for chunk in self._split(text, self.separators) if chunk.strip()]

    def _split(self, text: str, separators: List[str]) -> List[str]:
        if len(text) <= self.chunk_size:
            return [text]

        # First separator present in the text; "" always matches
        separator = ""
        remaining: List[str] = []
        for i, candidate in enumerate(separators):
            if candidate == "" or candidate in text:
                separator = candidate
                remaining = separators[i + 1:]
                break

        pieces = text.split(separator) if separator else list(text)

        chunks: List[str] = []
        pending: List[str] = []
        for piece in pieces:
            if len(piece) > self.chunk_size:
                if pending:
                    chunks.extend(self._merge(pending, separator))
                    pending = []
                chunks.extend(self._split(piece, remaining) if remaining else [piece])
            else:
                pending.append(piece)
        if pending:
            chunks.extend(self._merge(pending, separator))

        return chunks

    def _merge(self, pieces: List[str], separator: str) -> List[str]:
        """Greedily join pieces up to chunk_size, carrying overlap into the next chunk."""
        chunks: List[str] = []
        window: List[str] = []
        length = 0

        for piece in pieces:
            added = len(piece) + (len(separator) if window else 0)
            if window and length + added > self.chunk_size:
                chunks.append(separator.join(window).strip())
                # Drop from the front until the carried-over tail fits the overlap
                while window and (length > self.chunk_overlap or
                                  length + len(piece) + len(separator) > self.chunk_size):
                    length -= len(window[0]) + (len(separator) if len(window) > 1 else 0)
                    window.pop(0)
                added = len(piece) + (len(separator) if window else 0)
            window.append(piece)
            length += added

        if window:
            chunks.append(separator.join(window).strip())
        return chunks

    def split_documents(self, documents: Iterable[Chunk]) -> List[Chunk]:
        """Split each document, copying its metadata onto every chunk."""
        chunks = []
        for document in documents:
            for text in self.split_text(document.text):
                chunks.append(Chunk(text=text, metadata=dict(document.metadata)))
        return chunks


def tag_sections(chunks: List[Chunk]) -> List[Chunk]:
    """
    Tag chunks as beginning, middle or end by which third of the list they fall in.

    Thirds are rounded down, so any remainder lands in the end section.
    """
    third = len(chunks) // 3
    for position, chunk in enumerate(chunks):
        if position < third:
            chunk.metadata["section"] = SECTIONS[0]
        elif position < 2 * third:
            chunk.metadata["section"] = SECTIONS[1]
        else:
            chunk.metadata["section"] = SECTIONS[2]
    return chunks


def load_corpus(sources: Iterable[str], splitter: RecursiveCharacterSplitter,
                with_sections: bool = False) -> List[Chunk]:
    """
    Load and split every source.

    Each chunk's metadata gets a `chunk` number, its position within its
    source, used to derive stable record ids.
    """
    all_chunks = []
    for source in sources:
        documents = loader_for(source).load(source)
        chunks = splitter.split_documents(documents)
        if with_sections:
            tag_sections(chunks)
        for position, chunk in enumerate(chunks):
            chunk.metadata["chunk"] = position
        logger.log_ingestion(source, len(documents), len(chunks))
        all_chunks.extend(chunks)
    return all_chunks

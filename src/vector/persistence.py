"""
Persisted vector file format.

The file is a JSON list of entries:

    [{"id": "doc:0", "text": "...", "embedding": [0.1, ...], "metadata": {"section": "middle"}}, ...]

`text` and `embedding` are required. `metadata` defaults to an empty mapping.
An entry without `id` is assigned `entry-<position>` (zero-based position in the
file); such ids are only stable for one load of one file. A file in which an
explicit `id` equals one of these derived ids is rejected with LoadError.
Repeated explicit ids load with the last entry winning.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import LoadError
from .types import Record, validate_metadata

PathLike = Union[str, os.PathLike]


def derived_id(position: int) -> str:
    """Identifier given to a persisted entry that has no `id` field."""
    return f"entry-{position}"


class PersistedEntry(BaseModel):
    """One entry of a persisted vector file."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    text: str
    embedding: List[float]
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('id')
    @classmethod
    def id_must_not_be_empty(cls, v):
        if v is not None and not v.strip():
            raise ValueError('id cannot be empty')
        return v

    @field_validator('embedding', mode='before')
    @classmethod
    def embedding_must_be_numeric(cls, v):
        if not isinstance(v, list) or not v:
            raise ValueError('embedding must be a non-empty list of numbers')
        for item in v:
            if isinstance(item, bool) or not isinstance(item, (int, float)):
                raise ValueError(f'embedding contains non-numeric value {item!r}')
        return v

    @field_validator('metadata')
    @classmethod
    def metadata_must_be_scalar(cls, v):
        return validate_metadata(v)

    def to_record(self, position: int) -> Record:
        return Record(
            id=self.id if self.id is not None else derived_id(position),
            embedding=self.embedding,
            text=self.text,
            metadata=self.metadata or {},
        )


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "entry"
    return f"{location}: {first.get('msg', 'invalid value')}"


def parse_entries(data: Any, path: Optional[str] = None) -> List[Record]:
    """Validate decoded JSON and convert it into records."""
    if not isinstance(data, list):
        raise LoadError(f"expected a JSON list of entries, got {type(data).__name__}", path)

    records = []
    explicit_ids = set()
    derived_ids = set()
    dimension = None
    for position, raw in enumerate(data):
        if not isinstance(raw, dict):
            raise LoadError(f"entry {position} is not an object", path)
        try:
            entry = PersistedEntry.model_validate(raw)
        except ValidationError as e:
            raise LoadError(f"entry {position} is invalid ({_describe(e)})", path) from e

        if dimension is None:
            dimension = len(entry.embedding)
        elif len(entry.embedding) != dimension:
            raise LoadError(
                f"entry {position} has embedding length {len(entry.embedding)}, "
                f"file uses {dimension}",
                path
            )
        record = entry.to_record(position)
        if entry.id is None:
            derived_ids.add(record.id)
        else:
            explicit_ids.add(record.id)
        records.append(record)

    collisions = explicit_ids & derived_ids
    if collisions:
        raise LoadError(f"explicit id '{min(collisions)}' collides with a derived entry id", path)

    return records


def load_records(path: PathLike) -> List[Record]:
    """Read a persisted vector file. Raises LoadError on any problem."""
    path_str = str(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise LoadError(f"malformed JSON at line {e.lineno} column {e.colno}", path_str) from e
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(f"cannot read file ({e})", path_str) from e

    return parse_entries(data, path_str)


def save_records(path: PathLike, records: Iterable[Record]) -> int:
    """
    Write records to a persisted vector file, replacing any existing file.

    Data goes to a temporary file in the destination directory first and is
    moved into place with os.replace, so readers never see a partial file.

    Returns:
        Number of records written
    """
    entries: List[Dict[str, Any]] = [record.to_dict() for record in records]

    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(
        dir=str(destination.parent), prefix=f".{destination.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(entries, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, destination)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise

    return len(entries)

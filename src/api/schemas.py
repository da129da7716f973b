"""
Request and response models for the retrieval API.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Optional, Union

MetadataScalar = Optional[Union[bool, int, float, str]]


class SearchRequest(BaseModel):
    query: str
    k: int = Field(default=4, ge=1, le=100)
    filter: Optional[Dict[str, MetadataScalar]] = None

    @field_validator('query')
    @classmethod
    def query_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('query cannot be empty')
        return v


class AskRequest(BaseModel):
    question: str
    k: int = Field(default=4, ge=1, le=100)
    filter: Optional[Dict[str, MetadataScalar]] = None

    @field_validator('question')
    @classmethod
    def question_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('question cannot be empty')
        return v


class SearchHitResponse(BaseModel):
    id: str
    score: float
    text: str
    metadata: Dict[str, MetadataScalar]


class SearchResponse(BaseModel):
    query: str
    results: List[SearchHitResponse]


class AskResponse(BaseModel):
    run_id: str
    question: str
    answer: str
    sources: List[SearchHitResponse]


class HealthResponse(BaseModel):
    status: str
    version: str
    record_count: int
    dimension: Optional[int] = None


class ErrorResponse(BaseModel):
    error: str
    message: str

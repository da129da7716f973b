"""
HTTP host application for the retrieval stack.
Exposes health, semantic search and retrieval-QA over one VectorIndex.
"""

from fastapi import FastAPI, HTTPException, Depends, Request
from typing import Optional

from .schemas import (
    SearchRequest,
    SearchResponse,
    SearchHitResponse,
    AskRequest,
    AskResponse,
    HealthResponse,
)
from ..agents.completion import CompletionError, ICompletionService
from ..core import config
from ..core.rag import RetrievalQA
from ..vector.embeddings import EmbeddingError, IEmbeddingProvider
from ..vector.errors import DimensionMismatch, LoadError
from ..vector.index import VectorIndex
from ..vector.types import SearchHit
from util.logging import logger


def _hit_response(hit: SearchHit) -> SearchHitResponse:
    return SearchHitResponse(id=hit.id, score=hit.score, text=hit.text, metadata=hit.metadata)


def _load_default_index() -> VectorIndex:
    path = config.get_vectorstore_path()
    if not path.exists():
        logger.warning(f"No persisted index at {path}, starting empty")
        return VectorIndex()
    return VectorIndex.from_persisted_file(path)


def create_app(index: Optional[VectorIndex] = None,
               embedder: Optional[IEmbeddingProvider] = None,
               completion_service: Optional[ICompletionService] = None) -> FastAPI:
    """
    Build the API around explicit collaborators.
    Anything not supplied is built from configuration on first use.
    """
    app = FastAPI(
        title="Flat Vector RAG API",
        version=config.VERSION,
        description="Cosine-similarity retrieval over an in-memory vector index",
        docs_url="/docs" if config.debug_enabled() else None,
        redoc_url="/redoc" if config.debug_enabled() else None
    )
    app.state.index = index
    app.state.embedder = embedder
    app.state.completion_service = completion_service

    def get_index(request: Request) -> VectorIndex:
        state = request.app.state
        if state.index is None:
            try:
                state.index = _load_default_index()
            except LoadError as e:
                raise HTTPException(status_code=500, detail=f"Index unavailable: {e}")
        return state.index

    def get_embedder(request: Request) -> IEmbeddingProvider:
        state = request.app.state
        if state.embedder is None:
            state.embedder = config.get_embedding_provider()
        return state.embedder

    def get_pipeline(request: Request,
                     index: VectorIndex = Depends(get_index),
                     embedder: IEmbeddingProvider = Depends(get_embedder)) -> RetrievalQA:
        state = request.app.state
        if state.completion_service is None:
            state.completion_service = config.get_completion_service()
        return RetrievalQA(
            index, embedder, state.completion_service,
            k=config.SEARCH_TOP_K,
            transition_log_path=config.TRANSITION_LOG_PATH
        )

    def require_search_api():
        if not config.is_search_api_enabled():
            raise HTTPException(status_code=403, detail="Search API disabled")

    @app.get("/health", response_model=HealthResponse)
    def health_check_endpoint(index: VectorIndex = Depends(get_index)):
        """Check system health."""
        return HealthResponse(
            status="healthy",
            version=config.VERSION,
            record_count=len(index),
            dimension=index.dimension
        )

    @app.post("/search", response_model=SearchResponse, dependencies=[Depends(require_search_api)])
    def search_endpoint(req: SearchRequest,
                        index: VectorIndex = Depends(get_index),
                        embedder: IEmbeddingProvider = Depends(get_embedder)):
        """Embed the query and return the top-k most similar records."""
        try:
            vector = embedder.embed_text(req.query)
            hits = index.search(vector, req.k, req.filter)
        except (DimensionMismatch, ValueError) as e:
            raise HTTPException(status_code=400, detail=str(e))
        except EmbeddingError as e:
            raise HTTPException(status_code=502, detail=str(e))

        return SearchResponse(query=req.query, results=[_hit_response(hit) for hit in hits])

    @app.post("/ask", response_model=AskResponse, dependencies=[Depends(require_search_api)])
    def ask_endpoint(req: AskRequest, pipeline: RetrievalQA = Depends(get_pipeline)):
        """Answer a question from retrieved context."""
        try:
            run = pipeline.ask(req.question, req.k, req.filter)
        except (DimensionMismatch, ValueError) as e:
            raise HTTPException(status_code=400, detail=str(e))
        except (EmbeddingError, CompletionError) as e:
            raise HTTPException(status_code=502, detail=str(e))

        return AskResponse(
            run_id=run.run_id,
            question=run.question,
            answer=run.answer,
            sources=[_hit_response(hit) for hit in run.hits]
        )

    return app


app = create_app()

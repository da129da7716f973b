"""
Configuration for the retrieval stack, read from environment variables (.env supported).
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Debug flag
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Embedding configuration
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "hash")  # hash|sentence-transformers
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-MiniLM-L6-v2")
EMBED_DIM = int(os.getenv("EMBED_DIM", "384"))

# Completion configuration
COMPLETION_PROVIDER = os.getenv("COMPLETION_PROVIDER", "mock")  # mock|ollama
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3.2:latest")
COMPLETION_TEMPERATURE = float(os.getenv("COMPLETION_TEMPERATURE", "0.0"))

# Index and ingestion configuration
VECTORSTORE_PATH = os.getenv("VECTORSTORE_PATH", "./data/vectorstore.json")
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "1000"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "200"))
SEARCH_TOP_K = int(os.getenv("SEARCH_TOP_K", "4"))

# Host application
SEARCH_API_ENABLED = os.getenv("SEARCH_API_ENABLED", "true").lower() == "true"
TRANSITION_LOG_PATH = os.getenv("TRANSITION_LOG_PATH") or None

EMBED_PROVIDERS = ["hash", "sentence-transformers"]
COMPLETION_PROVIDERS = ["mock", "ollama"]

# Version string
VERSION = "0.1.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def is_search_api_enabled():
    """Check if the search and ask endpoints are enabled."""
    return os.getenv("SEARCH_API_ENABLED", "true").lower() == "true"


def get_vectorstore_path() -> Path:
    """Path of the persisted index file."""
    return Path(os.getenv("VECTORSTORE_PATH", VECTORSTORE_PATH))


def get_embedding_provider(provider: str = None):
    """Build the configured embedding provider."""
    provider = provider or EMBED_PROVIDER

    if provider == "hash":
        from src.vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(EMBED_DIM)
    elif provider == "sentence-transformers":
        from src.vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(EMBED_MODEL_NAME)
    else:
        raise ValueError(f"Unknown EMBED_PROVIDER: {provider}")


def get_completion_service(provider: str = None):
    """Build the configured completion service."""
    provider = provider or COMPLETION_PROVIDER

    if provider == "mock":
        from src.agents.completion import MockCompletionService
        return MockCompletionService()
    elif provider == "ollama":
        from src.agents.completion import OllamaCompletionService
        return OllamaCompletionService(OLLAMA_MODEL, temperature=COMPLETION_TEMPERATURE)
    else:
        raise ValueError(f"Unknown COMPLETION_PROVIDER: {provider}")


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if EMBED_PROVIDER not in EMBED_PROVIDERS:
        issues.append(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")

    if COMPLETION_PROVIDER not in COMPLETION_PROVIDERS:
        issues.append(f"Invalid COMPLETION_PROVIDER: {COMPLETION_PROVIDER}")

    if EMBED_DIM < 1:
        issues.append("EMBED_DIM must be >= 1")

    if CHUNK_SIZE < 1:
        issues.append("CHUNK_SIZE must be >= 1")

    if CHUNK_OVERLAP < 0 or CHUNK_OVERLAP >= CHUNK_SIZE:
        issues.append("CHUNK_OVERLAP must be >= 0 and smaller than CHUNK_SIZE")

    if SEARCH_TOP_K < 1:
        issues.append("SEARCH_TOP_K must be >= 1")

    return issues

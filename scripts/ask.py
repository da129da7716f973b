#!/usr/bin/env python3
"""
Ask a question against a persisted vector index.
Retrieves the top-k chunks and prints the completion service's answer with its sources.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.agents.completion import CompletionError
from src.core import config
from src.core.loader import SECTIONS
from src.core.rag import RetrievalQA
from src.vector.embeddings import EmbeddingError
from src.vector.errors import DimensionMismatch, LoadError
from src.vector.index import VectorIndex


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Answer a question from a persisted vector index"
    )

    parser.add_argument("question", help="Question to ask")

    parser.add_argument(
        "--index", "-i",
        default=None,
        help="Persisted index file (default: VECTORSTORE_PATH)"
    )

    parser.add_argument(
        "--k", "-k",
        type=int,
        default=config.SEARCH_TOP_K,
        help="Number of chunks to retrieve"
    )

    parser.add_argument(
        "--section",
        choices=SECTIONS,
        default=None,
        help="Only retrieve chunks from this section"
    )

    parser.add_argument(
        "--search-only",
        action="store_true",
        help="Print retrieved chunks without calling the completion service"
    )

    parser.add_argument(
        "--embed-provider",
        choices=config.EMBED_PROVIDERS,
        default=None,
        help="Override EMBED_PROVIDER (must match the one used to build the index)"
    )

    parser.add_argument(
        "--completion-provider",
        choices=config.COMPLETION_PROVIDERS,
        default=None,
        help="Override COMPLETION_PROVIDER"
    )

    args = parser.parse_args(argv)

    if args.k < 1:
        parser.error("--k must be >= 1")

    index_path = Path(args.index) if args.index else config.get_vectorstore_path()
    metadata_filter = {"section": args.section} if args.section else None

    try:
        index = VectorIndex.from_persisted_file(index_path)
        embedder = config.get_embedding_provider(args.embed_provider)

        if args.search_only:
            hits = index.search(embedder.embed_text(args.question), args.k, metadata_filter)
            for rank, hit in enumerate(hits, start=1):
                print(f"\n#{rank}  score={hit.score:.3f}  id={hit.id}")
                print(hit.text[:500])
            return 0

        pipeline = RetrievalQA(
            index, embedder,
            config.get_completion_service(args.completion_provider),
            k=args.k,
            transition_log_path=config.TRANSITION_LOG_PATH
        )
        run = pipeline.ask(args.question, args.k, metadata_filter)

    except LoadError as e:
        print(f"ERROR: Failed to load index: {e}")
        return 1
    except DimensionMismatch as e:
        print(f"ERROR: Query does not fit index: {e}")
        return 1
    except (EmbeddingError, CompletionError) as e:
        print(f"ERROR: Model call failed: {e}")
        return 1

    print(f"❓ Question: {run.question}")
    print(f"💬 Answer: {run.answer}")
    print("\nSources:")
    for hit in run.hits:
        print(f"  - {hit.id} (score={hit.score:.3f})")
    return 0


if __name__ == "__main__":
    sys.exit(main())

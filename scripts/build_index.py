#!/usr/bin/env python3
"""
Index build utility.
Loads corpus files, splits them into chunks, embeds the chunks and writes a persisted vector file.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core import config
from src.core.loader import RecursiveCharacterSplitter, load_corpus
from src.core.rag import build_index
from src.vector.embeddings import EmbeddingError
from src.vector.errors import LoadError


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Build a persisted vector index from corpus files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s docs/guide.txt                     # Index one text file
  %(prog)s export.json notes.txt --sections   # Tag chunks beginning/middle/end
  %(prog)s docs/*.txt --out data/index.json --chunk-size 500 --chunk-overlap 50

JSON sources are lists of {"text": ..., "metadata": {...}} objects.

Environment variables:
- EMBED_PROVIDER=hash|sentence-transformers (default hash)
- EMBED_MODEL_NAME=all-MiniLM-L6-v2
- VECTORSTORE_PATH=./data/vectorstore.json (default output)
        """
    )

    parser.add_argument(
        "sources",
        nargs="+",
        help="Corpus files (.json or plain text)"
    )

    parser.add_argument(
        "--out", "-o",
        default=None,
        help="Output file (default: VECTORSTORE_PATH)"
    )

    parser.add_argument(
        "--chunk-size",
        type=int,
        default=config.CHUNK_SIZE,
        help="Maximum characters per chunk"
    )

    parser.add_argument(
        "--chunk-overlap",
        type=int,
        default=config.CHUNK_OVERLAP,
        help="Characters shared between consecutive chunks"
    )

    parser.add_argument(
        "--sections", "-s",
        action="store_true",
        help="Tag chunks with a section (beginning|middle|end) per source"
    )

    parser.add_argument(
        "--embed-provider",
        choices=config.EMBED_PROVIDERS,
        default=None,
        help="Override EMBED_PROVIDER"
    )

    args = parser.parse_args(argv)

    try:
        splitter = RecursiveCharacterSplitter(args.chunk_size, args.chunk_overlap)
    except ValueError as e:
        parser.error(str(e))

    out_path = Path(args.out) if args.out else config.get_vectorstore_path()

    try:
        chunks = load_corpus(args.sources, splitter, with_sections=args.sections)
        if not chunks:
            print("ERROR: Sources produced no chunks")
            return 1

        print(f"Embedding {len(chunks)} chunks...")
        embedder = config.get_embedding_provider(args.embed_provider)
        index = build_index(chunks, embedder)
        index.save(out_path)

    except LoadError as e:
        print(f"ERROR: Failed to load corpus: {e}")
        return 1
    except EmbeddingError as e:
        print(f"ERROR: Embedding failed: {e}")
        return 1

    print(f"✓ Wrote {len(index)} records ({index.dimension} dimensions) to {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

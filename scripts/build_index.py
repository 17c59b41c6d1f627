import asyncio
import json
import os
import sys

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from pydantic import ValidationError

from yoga_rag.config import settings
from yoga_rag.core.logging_utils import setup_logging
from yoga_rag.embeddings.embedder import EmbeddingError, create_embedder
from yoga_rag.embeddings.index import VectorIndex, VectorIndexError
from yoga_rag.embeddings.models import Document


def load_documents(path):
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, list):
        raise ValueError(f"{path} must contain a JSON list of entries")
    return [Document.model_validate(entry) for entry in raw]


async def main():
    path = sys.argv[1] if len(sys.argv) > 1 else settings.knowledge_base_path
    print(f"Knowledge base path: {path}")

    documents = load_documents(path)
    print(f"Loaded {len(documents)} documents.")

    embedder = create_embedder()
    index = VectorIndex(embedder)

    print(f"Creating embeddings with {embedder.describe()} (this may take time)...")
    stats = await index.build(documents)

    print("Done! Index saved.")
    print(f"  Documents indexed:   {stats.documents_count}")
    print(f"  Embedding dimension: {stats.embedding_dimension}")
    print(f"  Index file:          {settings.vector_index_path}")
    print(f"  Metadata file:       {settings.vector_meta_path}")


if __name__ == "__main__":
    setup_logging(settings.log_level)
    try:
        asyncio.run(main())
    except (OSError, ValueError, ValidationError, EmbeddingError, VectorIndexError) as e:
        print(f"Error building index: {e}", file=sys.stderr)
        sys.exit(1)

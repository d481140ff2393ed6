"""Per-race vector stores, embeddings and document ingestion."""

from equiscope.vectors.embeddings import EmbeddingService, cosine_similarity
from equiscope.vectors.store import RaceVectorStore, VectorDocument
from equiscope.vectors.registry import VectorStoreRegistry
from equiscope.vectors.ingestion import RaceDocumentBuilder, build_documents

__all__ = [
    "EmbeddingService",
    "cosine_similarity",
    "RaceVectorStore",
    "VectorDocument",
    "VectorStoreRegistry",
    "RaceDocumentBuilder",
    "build_documents",
]

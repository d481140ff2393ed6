"""Embedding service mapping document text to vectors."""

import logging
import math
from typing import Optional, Protocol

from equiscope.config import settings
from equiscope.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    """Anything that can turn text into a fixed-length vector."""

    async def embed_text(self, text: str) -> list[float]: ...


class EmbeddingService:
    """Generate embeddings through the OpenAI embeddings API."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key or settings.openai_api_key
        self.model = model or settings.embedding_model
        self._client = None

    def _get_client(self):
        """Lazy init OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise UpstreamUnavailableError("no OpenAI API key configured")
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def embed_text(self, text: str) -> list[float]:
        """Get the embedding for one text.

        Raises:
            UpstreamUnavailableError: when the API call fails. Nothing is
            retried here; callers decide whether to abort or degrade.
        """
        client = self._get_client()
        try:
            response = await client.embeddings.create(model=self.model, input=text)
        except Exception as e:
            logger.error(f"Failed to get embedding: {e}")
            raise UpstreamUnavailableError(str(e)) from e
        return list(response.data[0].embedding)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity between two embeddings.

    Returns 0.0 when the dimensions differ and NaN when either vector has
    zero norm; rankers treat NaN as 0.
    """
    if len(a) != len(b):
        return 0.0

    dot_product = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))

    if norm_a == 0 or norm_b == 0:
        return math.nan

    # Guard against float drift just outside [-1, 1]
    return max(-1.0, min(1.0, dot_product / (norm_a * norm_b)))

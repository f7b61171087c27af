"""Embedding service backed by the OpenAI embeddings API."""

from __future__ import annotations

from openai import AsyncOpenAI


class OpenAIEmbeddingService:
    """OpenAI implementation of ``IEmbeddingService``.

    Network and model errors propagate to the caller unchanged; there is no
    retry or local fallback here.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "text-embedding-3-large",
        batch_size: int = 100,
    ) -> None:
        """
        Initialize the embedding service.

        Args:
            client: A configured ``AsyncOpenAI`` client
            model: Embedding model name
            batch_size: Maximum number of inputs per API call
        """
        self.client = client
        self.model = model
        self.batch_size = batch_size

    @classmethod
    def from_settings(cls, api_key: str, base_url: str | None, model: str, batch_size: int):
        client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        return cls(client=client, model=model, batch_size=batch_size)

    @staticmethod
    def _to_float_list(embedding: list[float]) -> list[float]:
        """Ensure embedding is a plain list of Python floats (JSON-serialisable)."""
        return [float(x) for x in embedding]

    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        response = await self.client.embeddings.create(model=self.model, input=text)
        return self._to_float_list(response.data[0].embedding)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for multiple texts.

        Args:
            texts: List of input texts to embed

        Returns:
            One embedding per input text, in input order
        """
        all_embeddings: list[list[float]] = []

        # Process in batches to stay under the per-request input limit
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            response = await self.client.embeddings.create(model=self.model, input=batch)
            items = sorted(response.data, key=lambda item: item.index)
            all_embeddings.extend(self._to_float_list(item.embedding) for item in items)

        return all_embeddings

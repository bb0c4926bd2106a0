#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import asyncio
import logging
from typing import List, Sequence

from llama_index.core import QueryBundle, StorageContext, VectorStoreIndex
from llama_index.core.embeddings import BaseEmbedding
from llama_index.core.schema import TextNode
from llama_index.core.vector_stores.types import BasePydanticVectorStore

from .types import MemoryItem, RetrievalRequest, RetrievalResult, RetrievedEntity

logger = logging.getLogger(__name__)


class EmbeddingDimensionError(ValueError):
    """Размерность эмбеддинга не совпадает с размерностью хранилища."""


class SemanticTextMemory:
    """Семантическая память поверх VectorStoreIndex.

    1) Векторизует пачку текстов и проверяет размерность
    2) Записывает их в векторное хранилище одним вызовом
    3) Ищет ближайшие фрагменты для запроса с порогом сходства
    """
    def __init__(self, vector_store: BasePydanticVectorStore, embed_model: BaseEmbedding, embed_dim: int) -> None:
        self._vector_store = vector_store
        self._embed_model = embed_model
        self._embed_dim = embed_dim
        self._storage_context = StorageContext.from_defaults(vector_store=vector_store)
        self._index = VectorStoreIndex(nodes=[], storage_context=self._storage_context, embed_model=embed_model)
        self._recorded = 0

    @property
    def vector_store(self) -> BasePydanticVectorStore:
        return self._vector_store

    @property
    def recorded_count(self) -> int:
        """Сколько элементов записано этим процессом."""
        return self._recorded

    def _to_items(self, texts: List[str], embeddings: List[List[float]]) -> List[MemoryItem]:
        if len(embeddings) != len(texts):
            raise EmbeddingDimensionError(
                f"Embedder returned {len(embeddings)} vectors for {len(texts)} texts"
            )
        items = []
        for text, emb in zip(texts, embeddings):
            if len(emb) != self._embed_dim:
                raise EmbeddingDimensionError(
                    f"Embedding has dimension {len(emb)}, vector store expects {self._embed_dim}"
                )
            items.append(MemoryItem(text=text, embedding=tuple(emb)))
        return items

    async def record_batched_items(self, texts: Sequence[str]) -> List[str]:
        """Векторизует и сохраняет все тексты; при ошибке не записывается ни один.

        Возвращает идентификаторы созданных узлов.
        """
        texts = list(texts)
        if not texts:
            return []

        embeddings = await self._embed_model.aget_text_embedding_batch(texts)
        items = self._to_items(texts, embeddings)
        nodes = [TextNode(text=item.text, embedding=list(item.embedding)) for item in items]
        await asyncio.to_thread(self._index.insert_nodes, nodes)

        self._recorded += len(nodes)
        logger.info("Recorded %d memory items (dim=%d)", len(nodes), self._embed_dim)
        return [n.node_id for n in nodes]

    async def retrieve(self, request: RetrievalRequest) -> RetrievalResult:
        """Возвращает до top_k элементов со сходством не ниже порога, по убыванию сходства."""
        cfg = request.config
        if cfg.top_k <= 0:
            return RetrievalResult()

        query_embedding = await self._embed_model.aget_query_embedding(request.query)
        bundle = QueryBundle(query_str=request.query, embedding=query_embedding)
        retriever = self._index.as_retriever(similarity_top_k=cfg.top_k)
        hits = await asyncio.to_thread(retriever.retrieve, bundle)

        entities = []
        for hit in hits:
            score = hit.score if hit.score is not None else 0.0
            if score < cfg.min_similarity:
                continue
            entities.append(RetrievedEntity(item=MemoryItem(text=hit.node.get_content()), score=score))
        entities.sort(key=lambda e: e.score, reverse=True)

        logger.debug(
            "Retrieved %d/%d items for task=%s (threshold=%.3f)",
            len(entities), len(hits), cfg.task_type.value, cfg.min_similarity,
        )
        return RetrievalResult(entities=entities[: cfg.top_k])
